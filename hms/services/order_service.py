"""
订单服务 - 本体操作层
餐厅、超市、洗衣订单结构相同，由同一生命周期按类型规则实例化
明细、支付、取消委托给订单账本
"""
from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from hms.database import atomic
from hms.domain.lifecycles import (
    ORDER_MACHINE, ORDER_ADVANCE_TRIGGERS, ORDER_TERMINAL_STATES, fire, state_value
)
from hms.exceptions import ForbiddenError, InvalidInputError, InvalidStateError
from hms.models.ontology import (
    Order, OrderType, OrderStatus, Payment, RestaurantTable
)
from hms.models.schemas import (
    OrderCreate, OrderUpdate, OrderItemCreate, PaymentCreate
)
from hms.services.order_ledger import OrderLedger

logger = logging.getLogger(__name__)


class OrderService:
    """订单服务"""

    def __init__(self, db: Session, order_type: OrderType):
        self.db = db
        self.order_type = order_type
        self.ledger = OrderLedger(db, order_type)

    # ============== 查询 ==============

    def get(self, company_id: int, order_id: int) -> Order:
        """获取单个订单"""
        return self.ledger.get_order(company_id, order_id)

    def list(self, company_id: int, status: Optional[OrderStatus] = None,
             stay_id: Optional[int] = None, client_id: Optional[int] = None) -> List[Order]:
        """获取订单列表"""
        query = self.db.query(Order).filter(
            Order.company_id == company_id,
            Order.order_type == self.order_type,
            Order.deleted_at.is_(None),
        )
        if status:
            query = query.filter(Order.status == status)
        if stay_id:
            query = query.filter(Order.stay_id == stay_id)
        if client_id:
            query = query.filter(Order.client_id == client_id)
        return query.order_by(Order.order_date.desc(), Order.id.desc()).all()

    # ============== 账本操作 ==============

    def create(self, company_id: int, user_id: Optional[int], data: OrderCreate) -> Order:
        """创建订单"""
        header = data.model_dump(exclude={"client_id", "items", "stay_id", "service_mode"})
        self._validate_header(header)
        return self.ledger.create_order(
            company_id, user_id, data.client_id, data.items,
            stay_id=data.stay_id, service_mode=data.service_mode, **header
        )

    def add_items(self, company_id: int, order_id: int, items: List[OrderItemCreate],
                  user_id: Optional[int] = None) -> Order:
        return self.ledger.add_items(company_id, order_id, items, user_id)

    def update_item_quantity(self, company_id: int, order_id: int, item_id: int,
                             quantity: int, user_id: Optional[int] = None) -> Order:
        return self.ledger.update_item_quantity(company_id, order_id, item_id, quantity, user_id)

    def remove_item(self, company_id: int, order_id: int, item_id: int,
                    user_id: Optional[int] = None) -> Order:
        return self.ledger.remove_item(company_id, order_id, item_id, user_id)

    def pay(self, company_id: int, order_id: int, data: PaymentCreate,
            user_id: Optional[int] = None) -> Payment:
        return self.ledger.record_payment(
            company_id, order_id, data.amount, data.method,
            reference=data.reference, notes=data.notes, user_id=user_id
        )

    def cancel(self, company_id: int, order_id: int, user_id: Optional[int] = None) -> Order:
        return self.ledger.cancel(company_id, order_id, user_id)

    # ============== 生命周期 ==============

    def advance(self, company_id: int, order_id: int, status: OrderStatus,
                user_id: Optional[int] = None) -> Order:
        """
        推进订单状态 PENDING → PREPARING → READY → DELIVERED → COMPLETED

        取消不走此入口，必须调用 cancel 以归还库存。
        """
        target = state_value(status)
        trigger = ORDER_ADVANCE_TRIGGERS.get(target)
        if trigger is None:
            raise InvalidStateError(f"不能通过状态推进进入 {target}")

        with atomic(self.db):
            order = self.ledger.get_order(company_id, order_id, lock=True)
            previous = state_value(order.status)
            new_status = fire(ORDER_MACHINE, order.status, trigger)
            if new_status != target:
                raise InvalidStateError(f"订单状态 {previous} 不能进入 {target}")
            order.status = OrderStatus(new_status)
            order.updated_by = user_id

        logger.info(f"Order #{order.id} status: {previous} -> {new_status}")
        return order

    def complete(self, company_id: int, order_id: int, user_id: Optional[int] = None) -> Order:
        """直接完成订单（任意未终结状态）"""
        return self.advance(company_id, order_id, OrderStatus.COMPLETED, user_id)

    def update(self, company_id: int, order_id: int, data: OrderUpdate,
               user_id: Optional[int] = None) -> Order:
        """修改订单表头"""
        update_data = data.model_dump(exclude_unset=True)
        # 服务方式不可为空；取件/送回时间允许显式清空
        if "service_mode" in update_data and update_data["service_mode"] is None:
            del update_data["service_mode"]
        with atomic(self.db):
            order = self.ledger.get_order(company_id, order_id, lock=True)
            if state_value(order.status) in ORDER_TERMINAL_STATES:
                raise InvalidStateError(f"订单状态为 {state_value(order.status)}，不可修改")

            merged = {
                "pickup_date": order.pickup_date,
                "delivery_date": order.delivery_date,
                **update_data,
            }
            self._validate_header(merged)
            for key, value in update_data.items():
                setattr(order, key, value)
            order.updated_by = user_id

        return order

    def remove(self, company_id: int, order_id: int, user_id: Optional[int] = None) -> Order:
        """
        软删除订单

        Raises:
            ForbiddenError: 已有支付，或仍有餐桌绑定该订单
        """
        with atomic(self.db):
            order = self.ledger.get_order(company_id, order_id, lock=True)
            if order.paid_amount_cents > 0:
                raise ForbiddenError("订单已有支付，不能删除")
            bound_table = self.db.query(RestaurantTable).filter(
                RestaurantTable.current_order_id == order.id,
                RestaurantTable.deleted_at.is_(None),
            ).first()
            if bound_table:
                raise ForbiddenError(f"订单仍绑定餐桌 {bound_table.table_number}，不能删除")

            order.deleted_at = datetime.now()
            order.deleted_by = user_id

        logger.info(f"Order #{order.id} removed by user {user_id}")
        return order

    def _validate_header(self, header: dict) -> None:
        """按订单类型校验表头字段"""


class RestaurantOrderService(OrderService):
    """餐厅订单：加入即扣库存，付清自动完成"""

    def __init__(self, db: Session):
        super().__init__(db, OrderType.RESTAURANT)


class SupermarketOrderService(OrderService):
    """超市订单：同一商品合并明细"""

    def __init__(self, db: Session):
        super().__init__(db, OrderType.SUPERMARKET)


class LaundryOrderService(OrderService):
    """洗衣订单：同一商品合并明细，记录取件与送回时间"""

    def __init__(self, db: Session):
        super().__init__(db, OrderType.LAUNDRY)

    def _validate_header(self, header: dict) -> None:
        pickup = header.get("pickup_date")
        delivery = header.get("delivery_date")
        if pickup and delivery and delivery < pickup:
            raise InvalidInputError("送回时间不能早于取件时间")
