"""
体育设施预订服务 - 本体操作层
设施是 SPORT 分类下的商品，按容量叠加分配
"""
from datetime import date, datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from hms.database import atomic
from hms.domain.lifecycles import SPORT_RESERVATION_MACHINE, fire, is_final, state_value
from hms.exceptions import InvalidInputError, InvalidStateError
from hms.models.ontology import (
    CategoryType, Client, Payment, PaymentMethod, PaymentStatus, Product,
    ServiceMode, SportReservation, SportReservationStatus, Stay, StayStatus
)
from hms.models.schemas import (
    FacilityAvailability, PaymentCreate, SportReservationCreate, SportReservationUpdate
)
from hms.services.interval_allocator import (
    BookingKind, IntervalAllocator, facility_capacity, validate_range
)
from hms.services.lookup import get_scoped
from hms.services.order_ledger import (
    check_no_overpayment, parse_payment_amount, payment_status_for
)
from hms_core.money import from_cents, line_total

logger = logging.getLogger(__name__)


class SportReservationService:
    """体育设施预订服务"""

    def __init__(self, db: Session):
        self.db = db
        self.allocator = IntervalAllocator(db)

    # ============== 查询 ==============

    def get(self, company_id: int, reservation_id: int) -> SportReservation:
        """获取单个预订"""
        return get_scoped(self.db, SportReservation, company_id, reservation_id, "预订")

    def list(self, company_id: int, facility_id: Optional[int] = None,
             status: Optional[SportReservationStatus] = None) -> List[SportReservation]:
        """获取预订列表"""
        query = self.db.query(SportReservation).filter(
            SportReservation.company_id == company_id,
            SportReservation.deleted_at.is_(None),
        )
        if facility_id:
            query = query.filter(SportReservation.facility_id == facility_id)
        if status:
            query = query.filter(SportReservation.status == status)
        return query.order_by(SportReservation.start_time).all()

    def get_availability(self, company_id: int, facility_id: int, day: date) -> FacilityAvailability:
        """某设施某天的已订时段与容量"""
        facility = self._get_facility(company_id, facility_id)
        return self.allocator.get_availability(company_id, facility, day)

    # ============== 创建与修改 ==============

    def _get_facility(self, company_id: int, facility_id: int, lock: bool = False) -> Product:
        if lock:
            facility = self.allocator.lock_resource(Product, company_id, facility_id, "体育设施")
        else:
            facility = get_scoped(self.db, Product, company_id, facility_id, "体育设施")
        if facility.category is None or facility.category.category_type != CategoryType.SPORT:
            raise InvalidInputError(f"{facility.name} 不是体育设施")
        return facility

    def create(self, company_id: int, user_id: Optional[int],
               data: SportReservationCreate) -> SportReservation:
        """
        创建预订

        Raises:
            NotFoundError: 客人、住宿或设施不存在
            InvalidInputError: 数量小于 1，区间非法或开始时间已过
            ConflictError: 容量不足
        """
        if data.quantity is None or data.quantity < 1:
            raise InvalidInputError("预订数量必须至少为 1")
        validate_range(data.start_time, data.end_time, now=datetime.now())

        with atomic(self.db):
            client = get_scoped(self.db, Client, company_id, data.client_id, "客人")
            service_mode = ServiceMode.WALK_IN
            if data.stay_id is not None:
                stay = get_scoped(self.db, Stay, company_id, data.stay_id, "住宿")
                if stay.client_id != client.id:
                    raise InvalidInputError("住宿不属于该客人")
                if stay.status in (StayStatus.CANCELLED, StayStatus.CHECKED_OUT):
                    raise InvalidStateError("住宿已结束，不能关联预订")
                service_mode = ServiceMode.HOTEL_GUEST

            facility = self._get_facility(company_id, data.facility_id, lock=True)
            self.allocator.ensure_available(
                BookingKind.SPORT, company_id, facility.id, data.start_time, data.end_time,
                requested_quantity=data.quantity, capacity=facility_capacity(facility),
            )

            reservation = SportReservation(
                company_id=company_id,
                client_id=client.id,
                stay_id=data.stay_id,
                facility_id=facility.id,
                start_time=data.start_time,
                end_time=data.end_time,
                quantity=data.quantity,
                unit_price_cents=facility.price_cents,
                total_cents=line_total(facility.price_cents, data.quantity),
                paid_amount_cents=0,
                status=SportReservationStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                service_mode=service_mode,
                notes=data.notes,
                created_by=user_id,
                updated_by=user_id,
            )
            self.db.add(reservation)
            self.db.flush()

        logger.info(
            f"Sport reservation #{reservation.id} created: facility {facility.name} "
            f"[{reservation.start_time}, {reservation.end_time}) x{reservation.quantity}"
        )
        return reservation

    def update(self, company_id: int, reservation_id: int, data: SportReservationUpdate,
               user_id: Optional[int] = None) -> SportReservation:
        """修改预订；时间、数量或设施变化时重新分配并重新计价"""
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        with atomic(self.db):
            reservation = get_scoped(
                self.db, SportReservation, company_id, reservation_id, "预订", lock=True
            )
            if is_final(SPORT_RESERVATION_MACHINE, reservation.status):
                raise InvalidStateError(
                    f"状态为 {state_value(reservation.status)} 的预订不可修改"
                )

            facility_id = update_data.get("facility_id", reservation.facility_id)
            start = update_data.get("start_time", reservation.start_time)
            end = update_data.get("end_time", reservation.end_time)
            quantity = update_data.get("quantity", reservation.quantity)
            if quantity is None or quantity < 1:
                raise InvalidInputError("预订数量必须至少为 1")

            reschedule = (
                facility_id != reservation.facility_id
                or start != reservation.start_time
                or end != reservation.end_time
                or quantity != reservation.quantity
            )
            if reschedule:
                now = datetime.now() if start != reservation.start_time else None
                validate_range(start, end, now=now)
                facility = self._get_facility(company_id, facility_id, lock=True)
                self.allocator.ensure_available(
                    BookingKind.SPORT, company_id, facility.id, start, end,
                    requested_quantity=quantity, capacity=facility_capacity(facility),
                    excluding_booking_id=reservation.id,
                )
                unit_price_cents = (
                    facility.price_cents if facility.id != reservation.facility_id
                    else reservation.unit_price_cents
                )
                total_cents = line_total(unit_price_cents, quantity)
                if total_cents < reservation.paid_amount_cents:
                    raise InvalidInputError(
                        f"新总额 {from_cents(total_cents)} 低于已付金额 {reservation.paid_amount}"
                    )
                reservation.facility_id = facility.id
                reservation.start_time = start
                reservation.end_time = end
                reservation.quantity = quantity
                reservation.unit_price_cents = unit_price_cents
                reservation.total_cents = total_cents
                if reservation.paid_amount_cents > 0:
                    reservation.payment_status = payment_status_for(
                        reservation.paid_amount_cents, total_cents
                    )

            if "notes" in update_data:
                reservation.notes = update_data["notes"]
            reservation.updated_by = user_id

        if reschedule:
            logger.info(
                f"Sport reservation #{reservation.id} rescheduled: "
                f"[{reservation.start_time}, {reservation.end_time}) x{reservation.quantity}"
            )
        return reservation

    # ============== 状态转换 ==============

    def _transition(self, company_id: int, reservation_id: int, trigger: str,
                    user_id: Optional[int] = None) -> SportReservation:
        with atomic(self.db):
            reservation = get_scoped(
                self.db, SportReservation, company_id, reservation_id, "预订", lock=True
            )
            previous = state_value(reservation.status)
            reservation.status = SportReservationStatus(
                fire(SPORT_RESERVATION_MACHINE, reservation.status, trigger)
            )
            reservation.updated_by = user_id

        logger.info(
            f"Sport reservation #{reservation.id} status: {previous} -> {reservation.status.value}"
        )
        return reservation

    def confirm(self, company_id: int, reservation_id: int,
                user_id: Optional[int] = None) -> SportReservation:
        return self._transition(company_id, reservation_id, "confirm", user_id)

    def start(self, company_id: int, reservation_id: int,
              user_id: Optional[int] = None) -> SportReservation:
        return self._transition(company_id, reservation_id, "start", user_id)

    def complete(self, company_id: int, reservation_id: int,
                 user_id: Optional[int] = None) -> SportReservation:
        return self._transition(company_id, reservation_id, "complete", user_id)

    def cancel(self, company_id: int, reservation_id: int,
               user_id: Optional[int] = None) -> SportReservation:
        return self._transition(company_id, reservation_id, "cancel", user_id)

    # ============== 支付与删除 ==============

    def record_payment(self, company_id: int, reservation_id: int, data: PaymentCreate,
                       user_id: Optional[int] = None) -> Payment:
        """记录支付，规则同订单，付清不自动完成"""
        amount_cents = parse_payment_amount(data.amount)
        with atomic(self.db):
            reservation = get_scoped(
                self.db, SportReservation, company_id, reservation_id, "预订", lock=True
            )
            if reservation.status == SportReservationStatus.CANCELLED:
                raise InvalidStateError("已取消的预订不能支付")
            check_no_overpayment(
                reservation.paid_amount_cents, amount_cents, reservation.total_cents
            )

            payment = Payment(
                company_id=company_id,
                sport_reservation_id=reservation.id,
                amount_cents=amount_cents,
                method=data.method or PaymentMethod.CASH,
                reference=data.reference,
                notes=data.notes,
                payment_date=datetime.now(),
                created_by=user_id,
            )
            self.db.add(payment)
            reservation.paid_amount_cents += amount_cents
            reservation.payment_status = payment_status_for(
                reservation.paid_amount_cents, reservation.total_cents
            )
            reservation.updated_by = user_id
            self.db.flush()

        logger.info(
            f"Sport reservation #{reservation.id} payment {payment.amount}: "
            f"paid={reservation.paid_amount} status={reservation.payment_status.value}"
        )
        return payment

    def remove(self, company_id: int, reservation_id: int,
               user_id: Optional[int] = None) -> SportReservation:
        """软删除预订，仅限已取消或已完成"""
        with atomic(self.db):
            reservation = get_scoped(
                self.db, SportReservation, company_id, reservation_id, "预订", lock=True
            )
            if not is_final(SPORT_RESERVATION_MACHINE, reservation.status):
                raise InvalidStateError("只能删除已取消或已完成的预订")
            reservation.deleted_at = datetime.now()
            reservation.deleted_by = user_id

        logger.info(f"Sport reservation #{reservation.id} removed by user {user_id}")
        return reservation
