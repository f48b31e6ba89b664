"""
测试区间分配器
"""
import pytest
from datetime import datetime, timedelta, timezone
from hms.config import settings
from hms.exceptions import ConflictError, InvalidInputError, NotFoundError
from hms.models.ontology import Room, Stay, StayStatus, SportReservation, SportReservationStatus
from hms.services.interval_allocator import (
    BookingKind, IntervalAllocator, facility_capacity, validate_range
)
from tests.conftest import COMPANY_ID, OTHER_COMPANY_ID


def _stay(db_session, room, client, start, end, status=StayStatus.CONFIRMED):
    stay = Stay(company_id=COMPANY_ID, room_id=room.id, client_id=client.id,
                check_in_date=start, check_out_date=end, status=status)
    db_session.add(stay)
    db_session.commit()
    return stay


def _sport(db_session, facility, client, start, end, quantity,
           status=SportReservationStatus.PENDING):
    reservation = SportReservation(
        company_id=COMPANY_ID, client_id=client.id, facility_id=facility.id,
        start_time=start, end_time=end, quantity=quantity, status=status,
    )
    db_session.add(reservation)
    db_session.commit()
    return reservation


class TestValidateRange:
    def test_start_after_end(self, base_day):
        with pytest.raises(InvalidInputError, match="结束时间必须晚于开始时间"):
            validate_range(base_day, base_day)

    def test_start_in_past(self, base_day):
        with pytest.raises(InvalidInputError, match="早于当前时间"):
            validate_range(base_day, base_day + timedelta(hours=1),
                           now=base_day + timedelta(minutes=1))

    def test_timezone_aware_rejected(self, base_day):
        start = base_day.astimezone(timezone.utc)
        with pytest.raises(InvalidInputError, match="时区"):
            validate_range(start, start + timedelta(hours=1), now=datetime.now())


class TestCheckConflict:
    """check_conflict 是纯读取"""

    def test_finds_overlapping_stays(self, db_session, sample_room, sample_client, base_day):
        booked = _stay(db_session, sample_room, sample_client, base_day, base_day + timedelta(days=4))
        allocator = IntervalAllocator(db_session)

        check = allocator.check_conflict(
            BookingKind.STAY, COMPANY_ID, sample_room.id,
            base_day + timedelta(days=2), base_day + timedelta(days=5)
        )
        assert check.has_conflict
        assert [ref.booking_id for ref in check.conflicting] == [booked.id]
        assert check.booked_quantity == 1

    def test_touching_boundary_is_free(self, db_session, sample_room, sample_client, base_day):
        _stay(db_session, sample_room, sample_client, base_day, base_day + timedelta(days=4))
        check = IntervalAllocator(db_session).check_conflict(
            BookingKind.STAY, COMPANY_ID, sample_room.id,
            base_day + timedelta(days=4), base_day + timedelta(days=7)
        )
        assert not check.has_conflict

    def test_cancelled_stays_ignored(self, db_session, sample_room, sample_client, base_day):
        _stay(db_session, sample_room, sample_client, base_day, base_day + timedelta(days=4),
              status=StayStatus.CANCELLED)
        check = IntervalAllocator(db_session).check_conflict(
            BookingKind.STAY, COMPANY_ID, sample_room.id, base_day, base_day + timedelta(days=1)
        )
        assert not check.has_conflict

    def test_checked_out_stays_still_count(self, db_session, sample_room, sample_client, base_day):
        """住宿只有取消才释放区间"""
        _stay(db_session, sample_room, sample_client, base_day, base_day + timedelta(days=2),
              status=StayStatus.CHECKED_OUT)
        check = IntervalAllocator(db_session).check_conflict(
            BookingKind.STAY, COMPANY_ID, sample_room.id, base_day, base_day + timedelta(days=1)
        )
        assert check.has_conflict

    def test_excluding_own_booking(self, db_session, sample_room, sample_client, base_day):
        booked = _stay(db_session, sample_room, sample_client, base_day, base_day + timedelta(days=4))
        check = IntervalAllocator(db_session).check_conflict(
            BookingKind.STAY, COMPANY_ID, sample_room.id,
            base_day + timedelta(days=1), base_day + timedelta(days=6),
            excluding_booking_id=booked.id,
        )
        assert not check.has_conflict

    def test_other_tenant_invisible(self, db_session, sample_room, sample_client, base_day):
        _stay(db_session, sample_room, sample_client, base_day, base_day + timedelta(days=4))
        check = IntervalAllocator(db_session).check_conflict(
            BookingKind.STAY, OTHER_COMPANY_ID, sample_room.id, base_day, base_day + timedelta(days=1)
        )
        assert not check.has_conflict

    def test_sport_terminal_states_ignored(self, db_session, swimming_pool, sample_client, base_day):
        start, end = base_day + timedelta(hours=9), base_day + timedelta(hours=10)
        _sport(db_session, swimming_pool, sample_client, start, end, 2,
               status=SportReservationStatus.COMPLETED)
        _sport(db_session, swimming_pool, sample_client, start, end, 1,
               status=SportReservationStatus.CANCELLED)
        live = _sport(db_session, swimming_pool, sample_client, start, end, 1)

        check = IntervalAllocator(db_session).check_conflict(
            BookingKind.SPORT, COMPANY_ID, swimming_pool.id, start, end
        )
        assert [ref.booking_id for ref in check.conflicting] == [live.id]
        assert check.booked_quantity == 1

    def test_invalid_range(self, db_session, sample_room, base_day):
        with pytest.raises(InvalidInputError):
            IntervalAllocator(db_session).check_conflict(
                BookingKind.STAY, COMPANY_ID, sample_room.id, base_day, base_day
            )


class TestEnsureAvailable:
    def test_capacity_one_rejects_any_overlap(self, db_session, sample_room, sample_client, base_day):
        _stay(db_session, sample_room, sample_client, base_day, base_day + timedelta(days=4))
        with pytest.raises(ConflictError):
            IntervalAllocator(db_session).ensure_available(
                BookingKind.STAY, COMPANY_ID, sample_room.id,
                base_day + timedelta(days=3), base_day + timedelta(days=5)
            )

    def test_capacity_sums_quantities(self, db_session, swimming_pool, sample_client, base_day):
        start, end = base_day + timedelta(hours=9), base_day + timedelta(hours=11)
        _sport(db_session, swimming_pool, sample_client, start, end, 2)
        allocator = IntervalAllocator(db_session)

        check = allocator.ensure_available(
            BookingKind.SPORT, COMPANY_ID, swimming_pool.id, start, end,
            requested_quantity=1, capacity=3
        )
        assert check.booked_quantity == 2

        with pytest.raises(ConflictError, match="容量不足"):
            allocator.ensure_available(
                BookingKind.SPORT, COMPANY_ID, swimming_pool.id, start, end,
                requested_quantity=2, capacity=3
            )

    def test_non_positive_quantity(self, db_session, swimming_pool, base_day):
        with pytest.raises(InvalidInputError):
            IntervalAllocator(db_session).ensure_available(
                BookingKind.SPORT, COMPANY_ID, swimming_pool.id,
                base_day, base_day + timedelta(hours=1), requested_quantity=0, capacity=3
            )


class TestLockResource:
    def test_returns_row(self, db_session, sample_room):
        room = IntervalAllocator(db_session).lock_resource(Room, COMPANY_ID, sample_room.id, "房间")
        assert room.id == sample_room.id

    def test_missing_resource(self, db_session, sample_room):
        with pytest.raises(NotFoundError, match="房间不存在"):
            IntervalAllocator(db_session).lock_resource(Room, OTHER_COMPANY_ID, sample_room.id, "房间")


class TestFacilityCapacity:
    def test_configured_capacity(self, swimming_pool):
        assert facility_capacity(swimming_pool) == 3

    def test_falls_back_to_settings(self, tennis_court, monkeypatch):
        tennis_court.capacity = None
        monkeypatch.setattr(settings, "SPORT_FACILITY_DEFAULT_CAPACITY", 5)
        assert facility_capacity(tennis_court) == 5


class TestAvailability:
    def test_day_view(self, db_session, swimming_pool, sample_client, base_day):
        _sport(db_session, swimming_pool, sample_client,
               base_day + timedelta(hours=9), base_day + timedelta(hours=11), 2)
        _sport(db_session, swimming_pool, sample_client,
               base_day + timedelta(hours=10), base_day + timedelta(hours=12), 1)
        # 次日的预订不计入
        _sport(db_session, swimming_pool, sample_client,
               base_day + timedelta(days=1, hours=9), base_day + timedelta(days=1, hours=10), 3)

        view = IntervalAllocator(db_session).get_availability(COMPANY_ID, swimming_pool, base_day.date())
        assert view.capacity == 3
        assert len(view.slots) == 2
        assert view.peak_booked == 3
