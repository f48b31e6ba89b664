"""
区间分配服务 - 防止房间、体育设施的重复预订
冲突检查是纯读取；调用方在同一事务中先锁定资源行，再检查并写入
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List, Optional, Type
import logging

from sqlalchemy.orm import Session

from hms.config import settings
from hms.exceptions import ConflictError, InvalidInputError
from hms.models.ontology import (
    Stay, StayStatus, SportReservation, SportReservationStatus, Product
)
from hms.models.schemas import BookedSlot, FacilityAvailability
from hms.services.lookup import get_scoped
from hms_core.intervals import is_valid_range, peak_load

logger = logging.getLogger(__name__)


class BookingKind(str, Enum):
    """可分配资源的预订类型"""
    STAY = "stay"                  # 房间住宿，容量 1
    SPORT = "sport"                # 体育设施，按容量叠加


@dataclass(frozen=True)
class BookingSource:
    """某类预订在数据库中的字段映射"""
    model: Type
    resource_column: str
    start_column: str
    end_column: str
    void_states: tuple
    quantity_column: Optional[str] = None


BOOKING_SOURCES = {
    BookingKind.STAY: BookingSource(
        model=Stay,
        resource_column="room_id",
        start_column="check_in_date",
        end_column="check_out_date",
        void_states=(StayStatus.CANCELLED,),
    ),
    BookingKind.SPORT: BookingSource(
        model=SportReservation,
        resource_column="facility_id",
        start_column="start_time",
        end_column="end_time",
        void_states=(SportReservationStatus.CANCELLED, SportReservationStatus.COMPLETED),
        quantity_column="quantity",
    ),
}


@dataclass(frozen=True)
class BookingRef:
    """与请求区间重叠的已有预订"""
    booking_id: int
    start: datetime
    end: datetime
    quantity: int


@dataclass
class ConflictCheck:
    """冲突检查结果"""
    conflicting: List[BookingRef] = field(default_factory=list)
    booked_quantity: int = 0

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicting)


def validate_range(start: datetime, end: datetime, now: Optional[datetime] = None) -> None:
    """
    校验预订区间

    Raises:
        InvalidInputError: start >= end，给定 now 时 start 早于 now，或时间带时区
    """
    if any(t is not None and t.tzinfo is not None for t in (start, end, now)):
        raise InvalidInputError("时间不能带时区，请换算为本地时间")
    if not start < end:
        raise InvalidInputError("结束时间必须晚于开始时间")
    if not is_valid_range(start, end, now):
        raise InvalidInputError("开始时间不能早于当前时间")


def facility_capacity(facility: Product) -> int:
    """设施容量：优先使用设施自身配置，否则使用全局默认值"""
    if facility.capacity is not None:
        return facility.capacity
    return settings.SPORT_FACILITY_DEFAULT_CAPACITY


class IntervalAllocator:
    """区间分配器"""

    def __init__(self, db: Session):
        self.db = db

    def lock_resource(self, model: Type, company_id: int, resource_id: int, label: str):
        """
        锁定资源行直到事务提交

        必须在 check_conflict 之前、且与随后的写入处于同一事务中调用。
        """
        return get_scoped(self.db, model, company_id, resource_id, label, lock=True)

    def check_conflict(self, kind: BookingKind, company_id: int, resource_id: int,
                       start: datetime, end: datetime,
                       excluding_booking_id: Optional[int] = None) -> ConflictCheck:
        """
        查找与 [start, end) 重叠的未终结预订

        Args:
            kind: 预订类型
            company_id: 租户 ID
            resource_id: 房间或设施 ID
            start, end: 请求的半开区间
            excluding_booking_id: 修改已有预订时排除其自身

        Returns:
            ConflictCheck: 重叠的预订及其数量之和
        """
        validate_range(start, end)
        source = BOOKING_SOURCES[kind]
        model = source.model
        start_col = getattr(model, source.start_column)
        end_col = getattr(model, source.end_column)

        query = self.db.query(model).filter(
            model.company_id == company_id,
            getattr(model, source.resource_column) == resource_id,
            model.deleted_at.is_(None),
            model.status.notin_(source.void_states),
            # 半开区间相交：s1 < e2 且 s2 < e1
            start_col < end,
            end_col > start,
        )
        if excluding_booking_id is not None:
            query = query.filter(model.id != excluding_booking_id)

        conflicting = [
            BookingRef(
                booking_id=booking.id,
                start=getattr(booking, source.start_column),
                end=getattr(booking, source.end_column),
                quantity=getattr(booking, source.quantity_column) if source.quantity_column else 1,
            )
            for booking in query.order_by(start_col).all()
        ]
        return ConflictCheck(
            conflicting=conflicting,
            booked_quantity=sum(ref.quantity for ref in conflicting),
        )

    def ensure_available(self, kind: BookingKind, company_id: int, resource_id: int,
                         start: datetime, end: datetime, requested_quantity: int = 1,
                         capacity: int = 1,
                         excluding_booking_id: Optional[int] = None) -> ConflictCheck:
        """
        检查资源是否可分配，不可分配时抛出 ConflictError

        容量为 1 的资源任何重叠都拒绝；其他资源要求 已订数量 + 请求数量 <= 容量。
        """
        if requested_quantity < 1:
            raise InvalidInputError("预订数量必须至少为 1")

        check = self.check_conflict(
            kind, company_id, resource_id, start, end, excluding_booking_id
        )
        if capacity <= 1 and check.has_conflict:
            logger.debug(
                f"Allocation rejected: {kind.value} #{resource_id} [{start}, {end}) "
                f"overlaps {[ref.booking_id for ref in check.conflicting]}"
            )
            raise ConflictError("该时间段已被预订")
        if check.booked_quantity + requested_quantity > capacity:
            logger.debug(
                f"Allocation rejected: {kind.value} #{resource_id} [{start}, {end}) "
                f"booked={check.booked_quantity} requested={requested_quantity} capacity={capacity}"
            )
            raise ConflictError(
                f"容量不足：已预订 {check.booked_quantity}，请求 {requested_quantity}，容量 {capacity}"
            )

        logger.debug(
            f"Allocation accepted: {kind.value} #{resource_id} [{start}, {end}) "
            f"booked={check.booked_quantity} requested={requested_quantity} capacity={capacity}"
        )
        return check

    def get_availability(self, company_id: int, facility: Product, day: date) -> FacilityAvailability:
        """某设施某天的已订时段与容量"""
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        check = self.check_conflict(BookingKind.SPORT, company_id, facility.id, day_start, day_end)

        reservations = {
            r.id: r for r in self.db.query(SportReservation).filter(
                SportReservation.id.in_([ref.booking_id for ref in check.conflicting])
            ).all()
        }
        slots = [
            BookedSlot(
                reservation_id=ref.booking_id,
                start_time=ref.start,
                end_time=ref.end,
                quantity=ref.quantity,
                status=reservations[ref.booking_id].status,
            )
            for ref in check.conflicting
        ]
        return FacilityAvailability(
            facility_id=facility.id,
            day=day,
            capacity=facility_capacity(facility),
            peak_booked=peak_load((ref.start, ref.end, ref.quantity) for ref in check.conflicting),
            slots=slots,
        )
