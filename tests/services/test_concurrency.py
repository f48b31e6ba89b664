"""
测试并发预订：同一时段的并发创建只能成功一个
使用文件数据库，每个线程独立会话与连接
"""
import threading
import pytest
from datetime import timedelta
from sqlalchemy.orm import sessionmaker

from hms.database import Base, build_engine
from hms.exceptions import ConflictError
from hms.models.ontology import (
    Category, CategoryType, Client, Product, Room, SportReservation, Stay
)
from hms.models.schemas import SportReservationCreate, StayCreate
from hms.services.sport_reservation_service import SportReservationService
from hms.services.stay_service import StayService
from tests.conftest import COMPANY_ID, USER_ID

WORKERS = 8


@pytest.fixture
def file_session_factory(tmp_path):
    engine = build_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def seeded(file_session_factory):
    """写入一位客人、一间房、一个容量 3 的泳池"""
    session = file_session_factory()
    guest = Client(company_id=COMPANY_ID, first_name="王", last_name="五")
    room = Room(company_id=COMPANY_ID, room_number="301", floor=3, price_per_night_cents=28800)
    category = Category(company_id=COMPANY_ID, name="Sport", category_type=CategoryType.SPORT)
    session.add_all([guest, room, category])
    session.flush()
    pool = Product(company_id=COMPANY_ID, category_id=category.id, name="泳池",
                   price_cents=3000, capacity=3)
    session.add(pool)
    session.commit()
    ids = {"client": guest.id, "room": room.id, "pool": pool.id}
    session.close()
    return ids


def _race(session_factory, attempt):
    """WORKERS 个线程同时执行 attempt(session)，返回每个线程的结果"""
    barrier = threading.Barrier(WORKERS)
    results = []
    lock = threading.Lock()

    def worker():
        session = session_factory()
        try:
            barrier.wait()
            attempt(session)
            outcome = "ok"
        except ConflictError:
            outcome = "conflict"
        finally:
            session.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


class TestConcurrentBooking:
    def test_same_stay_window_booked_once(self, file_session_factory, seeded, base_day):
        data = StayCreate(room_id=seeded["room"], client_id=seeded["client"],
                          check_in_date=base_day, check_out_date=base_day + timedelta(days=2))

        results = _race(file_session_factory,
                        lambda session: StayService(session).create(COMPANY_ID, USER_ID, data))

        assert sorted(results) == ["conflict"] * (WORKERS - 1) + ["ok"]
        session = file_session_factory()
        assert session.query(Stay).count() == 1
        session.close()

    def test_facility_capacity_never_exceeded(self, file_session_factory, seeded, base_day):
        start = base_day + timedelta(hours=9)
        data = SportReservationCreate(client_id=seeded["client"], facility_id=seeded["pool"],
                                      start_time=start, end_time=start + timedelta(hours=1))

        results = _race(file_session_factory,
                        lambda session: SportReservationService(session).create(COMPANY_ID, USER_ID, data))

        assert results.count("ok") == 3
        assert results.count("conflict") == WORKERS - 3
        session = file_session_factory()
        assert session.query(SportReservation).count() == 3
        session.close()
