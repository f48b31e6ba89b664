"""
订单路由
餐厅、超市、洗衣三类订单接口相同，由同一工厂按服务类生成
"""
from typing import List, Optional, Type
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hms.database import get_db
from hms.models.ontology import OrderStatus
from hms.models.schemas import (
    OrderCreate, OrderUpdate, OrderAdvance, OrderItemsAdd, OrderItemQuantityUpdate,
    OrderResponse, PaymentCreate, PaymentResponse
)
from hms.security import permissions as P
from hms.security.auth import RequestContext
from hms.security.policy import require_operation
from hms.services.order_service import (
    OrderService, RestaurantOrderService, SupermarketOrderService, LaundryOrderService
)


def build_order_router(prefix: str, tag: str, service_cls: Type[OrderService]) -> APIRouter:
    """按订单类型生成路由"""
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("", response_model=List[OrderResponse])
    def list_orders(
        status: Optional[OrderStatus] = None,
        stay_id: Optional[int] = None,
        client_id: Optional[int] = None,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_READ))
    ):
        """获取订单列表"""
        return service_cls(db).list(ctx.company_id, status, stay_id, client_id)

    @router.get("/{order_id}", response_model=OrderResponse)
    def get_order(
        order_id: int,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_READ))
    ):
        """获取订单详情"""
        return service_cls(db).get(ctx.company_id, order_id)

    @router.post("", response_model=OrderResponse, status_code=201)
    def create_order(
        data: OrderCreate,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_WRITE))
    ):
        """创建订单"""
        return service_cls(db).create(ctx.company_id, ctx.user_id, data)

    @router.put("/{order_id}", response_model=OrderResponse)
    def update_order(
        order_id: int,
        data: OrderUpdate,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_WRITE))
    ):
        """修改订单表头"""
        return service_cls(db).update(ctx.company_id, order_id, data, ctx.user_id)

    @router.post("/{order_id}/items", response_model=OrderResponse)
    def add_items(
        order_id: int,
        data: OrderItemsAdd,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_WRITE))
    ):
        """追加明细"""
        return service_cls(db).add_items(ctx.company_id, order_id, data.items, ctx.user_id)

    @router.put("/{order_id}/items/{item_id}", response_model=OrderResponse)
    def update_item_quantity(
        order_id: int,
        item_id: int,
        data: OrderItemQuantityUpdate,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_WRITE))
    ):
        """修改明细数量"""
        return service_cls(db).update_item_quantity(
            ctx.company_id, order_id, item_id, data.quantity, ctx.user_id
        )

    @router.delete("/{order_id}/items/{item_id}", response_model=OrderResponse)
    def remove_item(
        order_id: int,
        item_id: int,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_WRITE))
    ):
        """删除明细"""
        return service_cls(db).remove_item(ctx.company_id, order_id, item_id, ctx.user_id)

    @router.post("/{order_id}/payments", response_model=PaymentResponse, status_code=201)
    def pay_order(
        order_id: int,
        data: PaymentCreate,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_PAY))
    ):
        """记录支付"""
        return service_cls(db).pay(ctx.company_id, order_id, data, ctx.user_id)

    @router.post("/{order_id}/advance", response_model=OrderResponse)
    def advance_order(
        order_id: int,
        data: OrderAdvance,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_ADVANCE))
    ):
        """推进订单状态"""
        return service_cls(db).advance(ctx.company_id, order_id, data.status, ctx.user_id)

    @router.post("/{order_id}/complete", response_model=OrderResponse)
    def complete_order(
        order_id: int,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_ADVANCE))
    ):
        """完成订单"""
        return service_cls(db).complete(ctx.company_id, order_id, ctx.user_id)

    @router.post("/{order_id}/cancel", response_model=OrderResponse)
    def cancel_order(
        order_id: int,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_CANCEL))
    ):
        """取消订单"""
        return service_cls(db).cancel(ctx.company_id, order_id, ctx.user_id)

    @router.delete("/{order_id}", status_code=204)
    def remove_order(
        order_id: int,
        db: Session = Depends(get_db),
        ctx: RequestContext = Depends(require_operation(P.ORDER_DELETE))
    ):
        """删除订单（软删除）"""
        service_cls(db).remove(ctx.company_id, order_id, ctx.user_id)

    return router


restaurant_router = build_order_router("/restaurant-orders", "餐厅订单", RestaurantOrderService)
supermarket_router = build_order_router("/supermarket-orders", "超市订单", SupermarketOrderService)
laundry_router = build_order_router("/laundry-orders", "洗衣订单", LaundryOrderService)
