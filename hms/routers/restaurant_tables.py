"""
餐桌管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hms.database import get_db
from hms.models.ontology import TableStatus
from hms.models.schemas import (
    RestaurantTableCreate, RestaurantTableUpdate, RestaurantTableResponse, TableAssign
)
from hms.security import permissions as P
from hms.security.auth import RequestContext
from hms.security.policy import require_operation
from hms.services.restaurant_table_service import RestaurantTableService

router = APIRouter(prefix="/restaurant-tables", tags=["餐桌管理"])


@router.get("", response_model=List[RestaurantTableResponse])
def list_tables(
    status: Optional[TableStatus] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_READ))
):
    """获取餐桌列表"""
    return RestaurantTableService(db).list(ctx.company_id, status)


@router.get("/{table_id}", response_model=RestaurantTableResponse)
def get_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_READ))
):
    return RestaurantTableService(db).get(ctx.company_id, table_id)


@router.post("", response_model=RestaurantTableResponse, status_code=201)
def create_table(
    data: RestaurantTableCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_WRITE))
):
    """创建餐桌"""
    return RestaurantTableService(db).create(ctx.company_id, ctx.user_id, data)


@router.put("/{table_id}", response_model=RestaurantTableResponse)
def update_table(
    table_id: int,
    data: RestaurantTableUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_WRITE))
):
    """修改餐桌"""
    return RestaurantTableService(db).update(ctx.company_id, table_id, data, ctx.user_id)


@router.post("/{table_id}/assign", response_model=RestaurantTableResponse)
def assign_table(
    table_id: int,
    data: TableAssign,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_ASSIGN))
):
    """分配订单到餐桌"""
    return RestaurantTableService(db).assign(ctx.company_id, table_id, data.order_id, ctx.user_id)


@router.post("/{table_id}/clear", response_model=RestaurantTableResponse)
def clear_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_ASSIGN))
):
    """清台"""
    return RestaurantTableService(db).clear(ctx.company_id, table_id, ctx.user_id)


@router.post("/{table_id}/reserve", response_model=RestaurantTableResponse)
def reserve_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_ASSIGN))
):
    """预留餐桌"""
    return RestaurantTableService(db).reserve(ctx.company_id, table_id, ctx.user_id)


@router.post("/{table_id}/unreserve", response_model=RestaurantTableResponse)
def unreserve_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_ASSIGN))
):
    """取消预留"""
    return RestaurantTableService(db).unreserve(ctx.company_id, table_id, ctx.user_id)


@router.delete("/{table_id}", status_code=204)
def remove_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.TABLE_DELETE))
):
    """删除餐桌（软删除）"""
    RestaurantTableService(db).remove(ctx.company_id, table_id, ctx.user_id)
