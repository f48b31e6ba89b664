"""
测试订单账本：明细、总额、库存、分次支付
"""
import pytest
from datetime import timedelta
from decimal import Decimal
from hms.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from hms.models.ontology import (
    OrderStatus, OrderType, PaymentMethod, PaymentStatus, StayStatus, Stay
)
from hms.models.schemas import OrderItemCreate as Item
from hms.services.order_ledger import (
    ORDER_TYPE_RULES, OrderLedger, payment_status_for
)
from tests.conftest import COMPANY_ID, OTHER_COMPANY_ID, USER_ID


def assert_consistent(order):
    """总额等于明细之和，0 <= 已付 <= 总额"""
    assert order.total_cents == sum(item.total_cents for item in order.items)
    assert 0 <= order.paid_amount_cents <= order.total_cents


@pytest.fixture
def ledger(db_session):
    return OrderLedger(db_session, OrderType.RESTAURANT)


@pytest.fixture
def order(ledger, sample_client, dish_x, dish_y):
    """[(X, 2, 10.00), (Y, 1, 5.00)] → 25.00"""
    return ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [
        Item(product_id=dish_x.id, quantity=2),
        Item(product_id=dish_y.id, quantity=1),
    ])


def _item_for(order, product):
    return next(i for i in order.items if i.product_id == product.id)


class TestOrderTypeRules:
    def test_restaurant_reserves_stock_and_autocompletes(self):
        rule = ORDER_TYPE_RULES[OrderType.RESTAURANT]
        assert rule.reserves_stock and rule.completes_on_payment and not rule.merges_lines

    @pytest.mark.parametrize("order_type", [OrderType.SUPERMARKET, OrderType.LAUNDRY])
    def test_other_types_merge_without_stock(self, order_type):
        rule = ORDER_TYPE_RULES[order_type]
        assert rule.merges_lines
        assert not rule.reserves_stock
        assert not rule.completes_on_payment


class TestCreateOrder:
    def test_totals_and_stock(self, db_session, order, dish_x, dish_y):
        assert order.total == Decimal("25.00")
        assert order.paid_amount == Decimal("0.00")
        assert order.payment_status == PaymentStatus.PENDING
        assert order.status == OrderStatus.PENDING
        assert order.order_type == OrderType.RESTAURANT
        assert_consistent(order)

        db_session.refresh(dish_x)
        db_session.refresh(dish_y)
        assert dish_x.stock == 8
        assert dish_y.stock == 9

    def test_price_snapshot(self, db_session, order, dish_x):
        """商品改价不影响已下单明细"""
        dish_x.price_cents = 9999
        db_session.commit()
        assert _item_for(order, dish_x).unit_price == Decimal("10.00")

    def test_insufficient_stock_leaves_nothing(self, db_session, ledger, sample_client, dish_x, dish_y):
        with pytest.raises(InvalidInputError, match="库存不足"):
            ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [
                Item(product_id=dish_y.id, quantity=1),
                Item(product_id=dish_x.id, quantity=11),
            ])
        db_session.refresh(dish_x)
        db_session.refresh(dish_y)
        assert dish_x.stock == 10
        assert dish_y.stock == 10

    def test_duplicate_lines_checked_together(self, ledger, sample_client, dish_x):
        """同一商品多行的需求合并后校验库存"""
        with pytest.raises(InvalidInputError):
            ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [
                Item(product_id=dish_x.id, quantity=6),
                Item(product_id=dish_x.id, quantity=6),
            ])

    def test_wrong_category(self, ledger, sample_client, snack):
        with pytest.raises(InvalidInputError, match="分类"):
            ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [
                Item(product_id=snack.id, quantity=1)
            ])

    def test_unknown_product(self, ledger, sample_client):
        with pytest.raises(NotFoundError, match="商品不存在"):
            ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [
                Item(product_id=999, quantity=1)
            ])

    def test_client_of_other_tenant(self, ledger, sample_client, dish_x):
        with pytest.raises(NotFoundError, match="客人不存在"):
            ledger.create_order(OTHER_COMPANY_ID, USER_ID, sample_client.id, [
                Item(product_id=dish_x.id, quantity=1)
            ])

    def test_non_positive_quantity(self, ledger, sample_client, dish_x):
        with pytest.raises(InvalidInputError):
            ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [
                Item(product_id=dish_x.id, quantity=0)
            ])

    def test_empty_items(self, ledger, sample_client):
        with pytest.raises(InvalidInputError):
            ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [])

    def test_stay_must_belong_to_client(self, db_session, ledger, sample_client, sample_client_2,
                                        sample_room, dish_x, base_day):
        stay = Stay(company_id=COMPANY_ID, room_id=sample_room.id, client_id=sample_client_2.id,
                    check_in_date=base_day, check_out_date=base_day + timedelta(days=1),
                    status=StayStatus.CONFIRMED)
        db_session.add(stay)
        db_session.commit()
        with pytest.raises(InvalidInputError, match="住宿不属于该客人"):
            ledger.create_order(COMPANY_ID, USER_ID, sample_client.id, [
                Item(product_id=dish_x.id, quantity=1)
            ], stay_id=stay.id)


class TestAddItems:
    def test_restaurant_appends_new_line(self, db_session, ledger, order, dish_x):
        order = ledger.add_items(COMPANY_ID, order.id, [Item(product_id=dish_x.id, quantity=1)])
        assert len(order.items) == 3
        assert order.total == Decimal("35.00")
        assert_consistent(order)
        db_session.refresh(dish_x)
        assert dish_x.stock == 7

    def test_add_then_remove_round_trip(self, db_session, ledger, order, dish_x):
        """追加后删除同一明细，总额与库存回到追加前"""
        before_total = order.total_cents
        db_session.refresh(dish_x)
        before_stock = dish_x.stock

        order = ledger.add_items(COMPANY_ID, order.id, [Item(product_id=dish_x.id, quantity=3)])
        added = max(order.items, key=lambda i: i.id)
        order = ledger.remove_item(COMPANY_ID, order.id, added.id)

        assert order.total_cents == before_total
        db_session.refresh(dish_x)
        assert dish_x.stock == before_stock
        assert_consistent(order)

    def test_terminal_order_rejected(self, ledger, order, dish_x):
        ledger.cancel(COMPANY_ID, order.id)
        with pytest.raises(InvalidStateError):
            ledger.add_items(COMPANY_ID, order.id, [Item(product_id=dish_x.id, quantity=1)])

    def test_insufficient_stock(self, db_session, ledger, order, dish_x):
        with pytest.raises(InvalidInputError, match="库存不足"):
            ledger.add_items(COMPANY_ID, order.id, [Item(product_id=dish_x.id, quantity=9)])
        db_session.refresh(order)
        assert order.total == Decimal("25.00")


class TestUpdateItemQuantity:
    def test_replaces_line_total(self, db_session, ledger, order, dish_x):
        item = _item_for(order, dish_x)
        order = ledger.update_item_quantity(COMPANY_ID, order.id, item.id, 5)
        assert order.total == Decimal("55.00")
        assert_consistent(order)
        db_session.refresh(dish_x)
        assert dish_x.stock == 5

        order = ledger.update_item_quantity(COMPANY_ID, order.id, item.id, 1)
        assert order.total == Decimal("15.00")
        db_session.refresh(dish_x)
        assert dish_x.stock == 9

    def test_quantity_must_be_positive(self, ledger, order, dish_x):
        with pytest.raises(InvalidInputError):
            ledger.update_item_quantity(COMPANY_ID, order.id, _item_for(order, dish_x).id, 0)

    def test_unknown_item(self, ledger, order):
        with pytest.raises(NotFoundError, match="订单明细不存在"):
            ledger.update_item_quantity(COMPANY_ID, order.id, 999, 1)

    def test_cannot_drop_below_paid(self, ledger, order, dish_x):
        ledger.record_payment(COMPANY_ID, order.id, Decimal("20.00"), PaymentMethod.CASH)
        with pytest.raises(InvalidStateError, match="低于已付金额"):
            ledger.update_item_quantity(COMPANY_ID, order.id, _item_for(order, dish_x).id, 1)


class TestRemoveItem:
    def test_scenario_remove_then_pay(self, db_session, ledger, order, dish_y):
        """删除 Y 后总额 20.00，Y 库存归还 1；支付 20.00 后 PAID"""
        order = ledger.remove_item(COMPANY_ID, order.id, _item_for(order, dish_y).id)
        assert order.total == Decimal("20.00")
        db_session.refresh(dish_y)
        assert dish_y.stock == 10

        ledger.record_payment(COMPANY_ID, order.id, Decimal("20.00"), PaymentMethod.CARD)
        db_session.refresh(order)
        assert order.payment_status == PaymentStatus.PAID
        assert order.paid_amount == Decimal("20.00")
        assert_consistent(order)

    def test_last_item_rejected(self, ledger, order, dish_x, dish_y):
        ledger.remove_item(COMPANY_ID, order.id, _item_for(order, dish_y).id)
        with pytest.raises(InvalidStateError, match="至少需要一个商品"):
            ledger.remove_item(COMPANY_ID, order.id, _item_for(order, dish_x).id)


class TestRecordPayment:
    def test_partial_then_full(self, db_session, ledger, order):
        payment = ledger.record_payment(COMPANY_ID, order.id, Decimal("10.00"), PaymentMethod.CASH,
                                        reference="R-1", user_id=USER_ID)
        assert payment.amount == Decimal("10.00")
        assert payment.order_id == order.id
        db_session.refresh(order)
        assert order.payment_status == PaymentStatus.PARTIAL
        assert order.status == OrderStatus.PENDING

        ledger.record_payment(COMPANY_ID, order.id, "15.00", PaymentMethod.CASH)
        db_session.refresh(order)
        assert order.payment_status == PaymentStatus.PAID
        # 餐厅订单付清后自动完成
        assert order.status == OrderStatus.COMPLETED
        assert len(order.payments) == 2

    def test_overpay_rejected_without_change(self, db_session, ledger, order):
        """总额 25.00 支付 30.00 被拒绝，状态不变"""
        with pytest.raises(InvalidInputError, match="超过未付余额"):
            ledger.record_payment(COMPANY_ID, order.id, Decimal("30.00"), PaymentMethod.CASH)
        db_session.refresh(order)
        assert order.paid_amount == Decimal("0.00")
        assert order.payment_status == PaymentStatus.PENDING
        assert order.payments == []

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_non_positive_amount(self, ledger, order, amount):
        with pytest.raises(InvalidInputError):
            ledger.record_payment(COMPANY_ID, order.id, amount, PaymentMethod.CASH)

    def test_cancelled_order_rejected(self, ledger, order):
        ledger.cancel(COMPANY_ID, order.id)
        with pytest.raises(InvalidStateError):
            ledger.record_payment(COMPANY_ID, order.id, Decimal("1.00"), PaymentMethod.CASH)

    def test_exact_decimal_equality(self, db_session, sample_client, snack):
        """3 × 3.50 分三次支付 3.50，恰好 PAID"""
        market = OrderLedger(db_session, OrderType.SUPERMARKET)
        order = market.create_order(COMPANY_ID, USER_ID, sample_client.id, [
            Item(product_id=snack.id, quantity=3)
        ])
        for _ in range(3):
            market.record_payment(COMPANY_ID, order.id, Decimal("3.50"), PaymentMethod.CASH)
        db_session.refresh(order)
        assert order.payment_status == PaymentStatus.PAID
        # 超市订单付清不自动完成
        assert order.status == OrderStatus.PENDING


class TestPaymentStatusFollowsTotal:
    def test_adding_items_to_paid_order(self, db_session, sample_client, snack):
        """2 × 3.50 付清后追加 1 件 → PARTIAL，改回 2 件 → PAID"""
        market = OrderLedger(db_session, OrderType.SUPERMARKET)
        order = market.create_order(COMPANY_ID, USER_ID, sample_client.id, [
            Item(product_id=snack.id, quantity=2)
        ])
        market.record_payment(COMPANY_ID, order.id, Decimal("7.00"), PaymentMethod.CASH)

        order = market.add_items(COMPANY_ID, order.id, [Item(product_id=snack.id, quantity=1)])
        assert order.total == Decimal("10.50")
        assert order.payment_status == PaymentStatus.PARTIAL

        order = market.update_item_quantity(COMPANY_ID, order.id, order.items[0].id, 2)
        assert order.total == Decimal("7.00")
        assert order.payment_status == PaymentStatus.PAID
        assert_consistent(order)

    def test_removing_item_down_to_paid_amount(self, ledger, order, dish_y):
        ledger.record_payment(COMPANY_ID, order.id, Decimal("20.00"), PaymentMethod.CASH)
        order = ledger.remove_item(COMPANY_ID, order.id, _item_for(order, dish_y).id)
        assert order.total == Decimal("20.00")
        assert order.payment_status == PaymentStatus.PAID

    def test_unpaid_order_stays_pending(self, ledger, order, dish_x):
        order = ledger.add_items(COMPANY_ID, order.id, [Item(product_id=dish_x.id, quantity=1)])
        assert order.payment_status == PaymentStatus.PENDING


class TestCancel:
    def test_restores_stock(self, db_session, ledger, order, dish_x, dish_y):
        order = ledger.cancel(COMPANY_ID, order.id)
        assert order.status == OrderStatus.CANCELLED
        db_session.refresh(dish_x)
        db_session.refresh(dish_y)
        assert dish_x.stock == 10
        assert dish_y.stock == 10

    def test_cancel_twice_does_not_restore_again(self, db_session, ledger, order, dish_x):
        ledger.cancel(COMPANY_ID, order.id)
        with pytest.raises(InvalidStateError):
            ledger.cancel(COMPANY_ID, order.id)
        db_session.refresh(dish_x)
        assert dish_x.stock == 10

    def test_paid_order_cannot_be_cancelled(self, ledger, order):
        ledger.record_payment(COMPANY_ID, order.id, Decimal("5.00"), PaymentMethod.CASH)
        with pytest.raises(InvalidStateError, match="退款"):
            ledger.cancel(COMPANY_ID, order.id)

    def test_completed_order_cannot_be_cancelled(self, ledger, order):
        ledger.record_payment(COMPANY_ID, order.id, Decimal("25.00"), PaymentMethod.CASH)
        with pytest.raises(InvalidStateError):
            ledger.cancel(COMPANY_ID, order.id)


class TestTypeIsolation:
    def test_other_type_not_found(self, db_session, order):
        with pytest.raises(NotFoundError):
            OrderLedger(db_session, OrderType.LAUNDRY).get_order(COMPANY_ID, order.id)


def test_payment_status_for():
    assert payment_status_for(0, 100) == PaymentStatus.PENDING
    assert payment_status_for(50, 100) == PaymentStatus.PARTIAL
    assert payment_status_for(100, 100) == PaymentStatus.PAID
