"""
订单账本 - 明细、总额、库存、分次支付保持一致
每个写操作是一个事务：订单行加锁，涉及库存的商品行加锁，校验全部通过后才写入
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from hms.database import atomic
from hms.domain.lifecycles import ORDER_MACHINE, ORDER_TERMINAL_STATES, fire, state_value
from hms.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from hms.models.ontology import (
    Order, OrderItem, OrderType, OrderStatus, PaymentStatus, PaymentMethod, Payment,
    Product, CategoryType, Client, Stay, StayStatus, ServiceMode
)
from hms.services.lookup import get_scoped
from hms_core.money import to_cents, from_cents, line_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderTypeRule:
    """
    订单类型规则

    Attributes:
        order_type: 订单类型
        category_type: 明细商品必须属于的分类
        reserves_stock: 加入明细时立即扣减库存
        merges_lines: 同一商品合并为一行
        completes_on_payment: 付清后自动完成
    """

    order_type: OrderType
    category_type: CategoryType
    reserves_stock: bool
    merges_lines: bool
    completes_on_payment: bool


ORDER_TYPE_RULES: Dict[OrderType, OrderTypeRule] = {
    OrderType.RESTAURANT: OrderTypeRule(
        order_type=OrderType.RESTAURANT,
        category_type=CategoryType.RESTAURANT,
        reserves_stock=True,
        merges_lines=False,
        completes_on_payment=True,
    ),
    OrderType.SUPERMARKET: OrderTypeRule(
        order_type=OrderType.SUPERMARKET,
        category_type=CategoryType.SUPERMARKET,
        reserves_stock=False,
        merges_lines=True,
        completes_on_payment=False,
    ),
    OrderType.LAUNDRY: OrderTypeRule(
        order_type=OrderType.LAUNDRY,
        category_type=CategoryType.LAUNDRY,
        reserves_stock=False,
        merges_lines=True,
        completes_on_payment=False,
    ),
}


# ============== 支付规则（订单与体育设施预订共用） ==============

def parse_payment_amount(amount) -> int:
    """
    支付金额转换为分

    Raises:
        InvalidInputError: 非法金额或金额不大于 0
    """
    try:
        cents = to_cents(amount)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if cents <= 0:
        raise InvalidInputError("支付金额必须大于 0")
    return cents


def check_no_overpayment(paid_cents: int, amount_cents: int, total_cents: int) -> None:
    if paid_cents + amount_cents > total_cents:
        raise InvalidInputError(
            f"支付金额超过未付余额：余额 {from_cents(total_cents - paid_cents)}，"
            f"支付 {from_cents(amount_cents)}"
        )


def payment_status_for(paid_cents: int, total_cents: int) -> PaymentStatus:
    """已付等于总额为 PAID，未付为 PENDING，否则为 PARTIAL"""
    if paid_cents == total_cents:
        return PaymentStatus.PAID
    if paid_cents == 0:
        return PaymentStatus.PENDING
    return PaymentStatus.PARTIAL


def _positive_quantity(quantity: int) -> int:
    if quantity is None or quantity < 1:
        raise InvalidInputError("商品数量必须至少为 1")
    return quantity


class OrderLedger:
    """订单账本"""

    def __init__(self, db: Session, order_type: OrderType):
        self.db = db
        self.rule = ORDER_TYPE_RULES[order_type]

    # ============== 查询 ==============

    def get_order(self, company_id: int, order_id: int, lock: bool = False) -> Order:
        """获取本类型的订单，其他类型视为不存在"""
        order = get_scoped(self.db, Order, company_id, order_id, "订单", lock=lock)
        if order.order_type != self.rule.order_type:
            raise NotFoundError("订单不存在")
        return order

    def _get_item(self, order: Order, item_id: int) -> OrderItem:
        for item in order.items:
            if item.id == item_id:
                return item
        raise NotFoundError("订单明细不存在")

    def _get_product(self, company_id: int, product_id: int) -> Product:
        product = get_scoped(
            self.db, Product, company_id, product_id, "商品", lock=self.rule.reserves_stock
        )
        if product.category is None or product.category.category_type != self.rule.category_type:
            raise InvalidInputError(
                f"商品 {product.name} 不属于 {self.rule.category_type.value} 分类"
            )
        return product

    def _ensure_mutable(self, order: Order) -> None:
        if state_value(order.status) in ORDER_TERMINAL_STATES:
            raise InvalidStateError(f"订单状态为 {state_value(order.status)}，不可修改")

    def _ensure_covers_paid(self, order: Order, new_total_cents: int) -> None:
        """修改后的总额不能低于已付金额"""
        if new_total_cents < order.paid_amount_cents:
            raise InvalidStateError(
                f"修改后总额 {from_cents(new_total_cents)} 低于已付金额 {order.paid_amount}"
            )

    def _sync_payment_status(self, order: Order) -> None:
        """总额变化后按 已付 与 总额 重新计算支付状态"""
        if order.paid_amount_cents > 0:
            order.payment_status = payment_status_for(order.paid_amount_cents, order.total_cents)

    # ============== 库存 ==============

    def _reserve_stock(self, lines: List[Tuple[Product, int]]) -> None:
        """先校验全部商品库存，再统一扣减"""
        if not self.rule.reserves_stock:
            return
        needed: Dict[int, int] = {}
        products: Dict[int, Product] = {}
        for product, quantity in lines:
            needed[product.id] = needed.get(product.id, 0) + quantity
            products[product.id] = product
        for product_id, quantity in needed.items():
            product = products[product_id]
            if product.stock < quantity:
                raise InvalidInputError(
                    f"商品 {product.name} 库存不足：库存 {product.stock}，需要 {quantity}"
                )
        for product_id, quantity in needed.items():
            products[product_id].stock -= quantity

    def _release_stock(self, company_id: int, product_id: int, quantity: int) -> None:
        if not self.rule.reserves_stock or quantity <= 0:
            return
        product = self.db.query(Product).filter(
            Product.id == product_id, Product.company_id == company_id
        ).with_for_update().first()
        # 已软删除的商品仍然归还库存
        if product is not None:
            product.stock += quantity

    # ============== 明细 ==============

    def _apply_items(self, order: Order, items: Iterable) -> int:
        """加入明细，返回订单总额增量（分）"""
        lines = [
            (self._get_product(order.company_id, item.product_id), _positive_quantity(item.quantity))
            for item in items
        ]
        if not lines:
            raise InvalidInputError("至少需要一个商品")
        self._reserve_stock(lines)

        delta = 0
        for product, quantity in lines:
            existing = None
            if self.rule.merges_lines:
                existing = next((i for i in order.items if i.product_id == product.id), None)
            if existing is not None:
                old_total = existing.total_cents
                existing.quantity += quantity
                existing.total_cents = line_total(existing.unit_price_cents, existing.quantity)
                delta += existing.total_cents - old_total
            else:
                item = OrderItem(
                    product_id=product.id,
                    quantity=quantity,
                    unit_price_cents=product.price_cents,
                    total_cents=line_total(product.price_cents, quantity),
                )
                order.items.append(item)
                delta += item.total_cents
        order.total_cents = (order.total_cents or 0) + delta
        self._sync_payment_status(order)
        return delta

    # ============== 写操作 ==============

    def create_order(self, company_id: int, user_id: Optional[int], client_id: int,
                     items: Iterable, stay_id: Optional[int] = None,
                     service_mode: ServiceMode = ServiceMode.WALK_IN,
                     **header) -> Order:
        """
        创建订单

        Args:
            company_id: 租户 ID
            user_id: 操作人
            client_id: 客人
            items: [{product_id, quantity}]
            stay_id: 关联住宿（可选），必须属于该客人且未结束
            service_mode: 服务方式
            header: notes / pickup_date / delivery_date 等表头字段
        """
        with atomic(self.db):
            client = get_scoped(self.db, Client, company_id, client_id, "客人")
            if stay_id is not None:
                stay = get_scoped(self.db, Stay, company_id, stay_id, "住宿")
                if stay.client_id != client.id:
                    raise InvalidInputError("住宿不属于该客人")
                if stay.status in (StayStatus.CANCELLED, StayStatus.CHECKED_OUT):
                    raise InvalidStateError("住宿已结束，不能关联订单")

            order = Order(
                company_id=company_id,
                order_type=self.rule.order_type,
                client_id=client.id,
                stay_id=stay_id,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                service_mode=service_mode,
                total_cents=0,
                paid_amount_cents=0,
                order_date=datetime.now(),
                created_by=user_id,
                updated_by=user_id,
                **header,
            )
            self.db.add(order)
            self._apply_items(order, items)
            self.db.flush()

        logger.info(
            f"Order created: {self.rule.order_type.value} #{order.id} total={order.total}"
        )
        return order

    def add_items(self, company_id: int, order_id: int, items: Iterable,
                  user_id: Optional[int] = None) -> Order:
        """追加明细；超市/洗衣合并同一商品，餐厅总是新增一行"""
        with atomic(self.db):
            order = self.get_order(company_id, order_id, lock=True)
            self._ensure_mutable(order)
            delta = self._apply_items(order, items)
            order.updated_by = user_id

        logger.info(f"Order #{order.id} items added: delta={from_cents(delta)} total={order.total}")
        return order

    def update_item_quantity(self, company_id: int, order_id: int, item_id: int,
                             quantity: int, user_id: Optional[int] = None) -> Order:
        """修改明细数量：total = total - 旧行金额 + 新行金额"""
        quantity = _positive_quantity(quantity)
        with atomic(self.db):
            order = self.get_order(company_id, order_id, lock=True)
            self._ensure_mutable(order)
            item = self._get_item(order, item_id)
            new_line_total = line_total(item.unit_price_cents, quantity)
            self._ensure_covers_paid(order, order.total_cents - item.total_cents + new_line_total)

            change = quantity - item.quantity
            if change > 0:
                product = self._get_product(company_id, item.product_id)
                self._reserve_stock([(product, change)])
            elif change < 0:
                self._release_stock(company_id, item.product_id, -change)

            old_total = item.total_cents
            item.quantity = quantity
            item.total_cents = new_line_total
            order.total_cents = order.total_cents - old_total + item.total_cents
            self._sync_payment_status(order)
            order.updated_by = user_id

        logger.info(f"Order #{order.id} item #{item_id} quantity -> {quantity}, total={order.total}")
        return order

    def remove_item(self, company_id: int, order_id: int, item_id: int,
                    user_id: Optional[int] = None) -> Order:
        """删除明细，归还库存；订单至少保留一行"""
        with atomic(self.db):
            order = self.get_order(company_id, order_id, lock=True)
            self._ensure_mutable(order)
            item = self._get_item(order, item_id)
            if len(order.items) <= 1:
                raise InvalidStateError("订单至少需要一个商品，如需清空请取消订单")
            self._ensure_covers_paid(order, order.total_cents - item.total_cents)

            self._release_stock(company_id, item.product_id, item.quantity)
            order.total_cents -= item.total_cents
            order.items.remove(item)
            self._sync_payment_status(order)
            order.updated_by = user_id

        logger.info(f"Order #{order.id} item #{item_id} removed, total={order.total}")
        return order

    def record_payment(self, company_id: int, order_id: int, amount,
                       method: PaymentMethod, reference: Optional[str] = None,
                       notes: Optional[str] = None, user_id: Optional[int] = None) -> Payment:
        """
        记录支付

        Raises:
            InvalidInputError: 金额不大于 0，或超出未付余额
            InvalidStateError: 订单已取消
        """
        amount_cents = parse_payment_amount(amount)
        with atomic(self.db):
            order = self.get_order(company_id, order_id, lock=True)
            if order.status == OrderStatus.CANCELLED:
                raise InvalidStateError("已取消的订单不能支付")
            check_no_overpayment(order.paid_amount_cents, amount_cents, order.total_cents)

            payment = Payment(
                company_id=company_id,
                order_id=order.id,
                amount_cents=amount_cents,
                method=method,
                reference=reference,
                notes=notes,
                payment_date=datetime.now(),
                created_by=user_id,
            )
            self.db.add(payment)
            order.paid_amount_cents += amount_cents
            order.payment_status = payment_status_for(order.paid_amount_cents, order.total_cents)
            order.updated_by = user_id

            previous = state_value(order.status)
            if (order.payment_status == PaymentStatus.PAID
                    and self.rule.completes_on_payment
                    and previous not in ORDER_TERMINAL_STATES):
                order.status = OrderStatus(fire(ORDER_MACHINE, order.status, "complete"))
            self.db.flush()

        logger.info(
            f"Order #{order.id} payment {payment.amount} via {method.value}: "
            f"paid={order.paid_amount} status={order.payment_status.value}"
        )
        if state_value(order.status) != previous:
            logger.info(f"Order #{order.id} status: {previous} -> {order.status.value}")
        return payment

    def cancel(self, company_id: int, order_id: int, user_id: Optional[int] = None) -> Order:
        """
        取消订单，归还全部已扣库存

        已支付的订单需先在外部退款，不能直接取消。
        """
        with atomic(self.db):
            order = self.get_order(company_id, order_id, lock=True)
            previous = state_value(order.status)
            new_status = fire(ORDER_MACHINE, order.status, "cancel")
            if order.paid_amount_cents > 0:
                raise InvalidStateError("订单已有支付，请先退款再取消")

            for item in order.items:
                self._release_stock(company_id, item.product_id, item.quantity)
            order.status = OrderStatus(new_status)
            order.updated_by = user_id

        logger.info(f"Order #{order.id} status: {previous} -> {new_status}")
        return order
