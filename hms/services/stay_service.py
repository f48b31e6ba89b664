"""
住宿服务 - 本体操作层
管理 Stay 对象（房间占用的聚合根）
创建和改期都经过区间分配器；房间状态随每次住宿状态转换同步
"""
from datetime import date, datetime, time, timedelta
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from hms.config import settings
from hms.database import atomic
from hms.domain.lifecycles import STAY_MACHINE, fire, is_final, state_value
from hms.exceptions import InvalidInputError, InvalidStateError
from hms.models.ontology import Client, Room, RoomStatus, Stay, StayStatus
from hms.models.schemas import StayCreate, StayUpdate
from hms.services.interval_allocator import BookingKind, IntervalAllocator, validate_range
from hms.services.lookup import get_scoped
from hms_core.money import to_cents

logger = logging.getLogger(__name__)

# 住宿状态 -> 房间状态投影
ROOM_STATUS_PROJECTION = {
    StayStatus.CONFIRMED: RoomStatus.RESERVED,
    StayStatus.CHECKED_IN: RoomStatus.OCCUPIED,
    StayStatus.CHECKED_OUT: RoomStatus.AVAILABLE,
    StayStatus.CANCELLED: RoomStatus.AVAILABLE,
}


def count_nights(check_in: datetime, check_out: datetime) -> int:
    """按日历日计算晚数，不足一晚按一晚计"""
    return max((check_out.date() - check_in.date()).days, 1)


def _amount_cents(amount) -> int:
    try:
        cents = to_cents(amount)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if cents < 0:
        raise InvalidInputError("金额不能为负数")
    return cents


class StayService:
    """住宿服务"""

    def __init__(self, db: Session):
        self.db = db
        self.allocator = IntervalAllocator(db)

    # ============== 查询 ==============

    def get(self, company_id: int, stay_id: int) -> Stay:
        """获取单个住宿"""
        return get_scoped(self.db, Stay, company_id, stay_id, "住宿")

    def get_active_stays(self, company_id: int) -> List[Stay]:
        """获取所有在住记录"""
        return self.db.query(Stay).filter(
            Stay.company_id == company_id,
            Stay.deleted_at.is_(None),
            Stay.status == StayStatus.CHECKED_IN,
        ).order_by(Stay.check_out_date).all()

    def get_upcoming_stays(self, company_id: int, days: Optional[int] = None) -> List[Stay]:
        """获取未来若干天内将入住的已确认住宿"""
        days = days if days is not None else settings.UPCOMING_STAYS_DAYS
        start = datetime.combine(date.today(), time.min)
        end = start + timedelta(days=days + 1)
        return self.db.query(Stay).filter(
            Stay.company_id == company_id,
            Stay.deleted_at.is_(None),
            Stay.status == StayStatus.CONFIRMED,
            Stay.check_in_date >= start,
            Stay.check_in_date < end,
        ).order_by(Stay.check_in_date).all()

    # ============== 创建与修改 ==============

    def create(self, company_id: int, user_id: Optional[int], data: StayCreate) -> Stay:
        """
        创建住宿

        Raises:
            NotFoundError: 房间或客人不存在
            InvalidInputError: 区间非法或入住日期早于今天
            ConflictError: 房间在该区间已被占用
        """
        # 入住日期按日历日比较，允许当天稍早时刻登记
        validate_range(data.check_in_date, data.check_out_date,
                       now=datetime.combine(date.today(), time.min))

        with atomic(self.db):
            client = get_scoped(self.db, Client, company_id, data.client_id, "客人")
            room = self.allocator.lock_resource(Room, company_id, data.room_id, "房间")
            self.allocator.ensure_available(
                BookingKind.STAY, company_id, room.id,
                data.check_in_date, data.check_out_date, capacity=room.capacity,
            )

            if data.total_amount is not None:
                total_cents = _amount_cents(data.total_amount)
            else:
                total_cents = room.price_per_night_cents * count_nights(
                    data.check_in_date, data.check_out_date
                )

            stay = Stay(
                company_id=company_id,
                room_id=room.id,
                client_id=client.id,
                check_in_date=data.check_in_date,
                check_out_date=data.check_out_date,
                adults=data.adults,
                children=data.children,
                total_amount_cents=total_cents,
                paid_amount_cents=0,
                status=StayStatus.CONFIRMED,
                notes=data.notes,
                created_by=user_id,
                updated_by=user_id,
            )
            self.db.add(stay)
            room.status = ROOM_STATUS_PROJECTION[StayStatus.CONFIRMED]
            self.db.flush()

        logger.info(
            f"Stay #{stay.id} created: room {room.room_number} "
            f"[{stay.check_in_date}, {stay.check_out_date})"
        )
        return stay

    def update(self, company_id: int, stay_id: int, data: StayUpdate,
               user_id: Optional[int] = None) -> Stay:
        """
        修改住宿

        日期或房间变化时对新区间重新分配（排除自身）。
        """
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        with atomic(self.db):
            stay = get_scoped(self.db, Stay, company_id, stay_id, "住宿", lock=True)
            if is_final(STAY_MACHINE, stay.status):
                raise InvalidStateError(f"状态为 {state_value(stay.status)} 的住宿不可修改")

            new_room_id = update_data.get("room_id", stay.room_id)
            new_start = update_data.get("check_in_date", stay.check_in_date)
            new_end = update_data.get("check_out_date", stay.check_out_date)
            reschedule = (
                new_room_id != stay.room_id
                or new_start != stay.check_in_date
                or new_end != stay.check_out_date
            )
            if reschedule and stay.status == StayStatus.CHECKED_IN and new_start != stay.check_in_date:
                raise InvalidStateError("已入住的住宿不能修改入住时间")

            old_room = stay.room
            if reschedule:
                validate_range(new_start, new_end)
                room = self.allocator.lock_resource(Room, company_id, new_room_id, "房间")
                self.allocator.ensure_available(
                    BookingKind.STAY, company_id, room.id, new_start, new_end,
                    capacity=room.capacity, excluding_booking_id=stay.id,
                )
            else:
                room = old_room

            if "total_amount" in update_data:
                total = update_data.pop("total_amount")
                if total is not None:
                    stay.total_amount_cents = _amount_cents(total)
            elif reschedule:
                stay.total_amount_cents = room.price_per_night_cents * count_nights(new_start, new_end)

            update_data.pop("room_id", None)
            for key, value in update_data.items():
                setattr(stay, key, value)
            stay.room = room
            stay.updated_by = user_id

            if room.id != old_room.id:
                old_room.status = RoomStatus.AVAILABLE
                room.status = ROOM_STATUS_PROJECTION[stay.status]
            self.db.flush()

        if reschedule:
            logger.info(
                f"Stay #{stay.id} rescheduled: room {room.room_number} [{new_start}, {new_end})"
            )
        return stay

    # ============== 状态转换 ==============

    def _transition(self, company_id: int, stay_id: int, trigger: str,
                    user_id: Optional[int] = None, actual: Optional[datetime] = None) -> Stay:
        with atomic(self.db):
            stay = get_scoped(self.db, Stay, company_id, stay_id, "住宿", lock=True)
            previous = state_value(stay.status)
            new_status = StayStatus(fire(STAY_MACHINE, stay.status, trigger))

            if trigger == "check_in":
                stay.actual_check_in = actual or datetime.now()
            elif trigger == "check_out":
                stay.actual_check_out = actual or datetime.now()

            stay.status = new_status
            stay.updated_by = user_id
            stay.room.status = ROOM_STATUS_PROJECTION[new_status]

        logger.info(f"Stay #{stay.id} status: {previous} -> {new_status.value}")
        return stay

    def check_in(self, company_id: int, stay_id: int, user_id: Optional[int] = None,
                 actual: Optional[datetime] = None) -> Stay:
        """办理入住，仅限 CONFIRMED"""
        return self._transition(company_id, stay_id, "check_in", user_id, actual)

    def check_out(self, company_id: int, stay_id: int, user_id: Optional[int] = None,
                  actual: Optional[datetime] = None) -> Stay:
        """办理退房，仅限 CHECKED_IN"""
        return self._transition(company_id, stay_id, "check_out", user_id, actual)

    def cancel(self, company_id: int, stay_id: int, user_id: Optional[int] = None) -> Stay:
        """取消住宿，不校验支付状态"""
        return self._transition(company_id, stay_id, "cancel", user_id)

    def remove(self, company_id: int, stay_id: int, user_id: Optional[int] = None) -> Stay:
        """软删除住宿，仅限已取消或已退房"""
        with atomic(self.db):
            stay = get_scoped(self.db, Stay, company_id, stay_id, "住宿", lock=True)
            if not is_final(STAY_MACHINE, stay.status):
                raise InvalidStateError("只能删除已取消或已退房的住宿")
            stay.deleted_at = datetime.now()
            stay.deleted_by = user_id

        logger.info(f"Stay #{stay.id} removed by user {user_id}")
        return stay
