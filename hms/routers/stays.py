"""
住宿管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hms.database import get_db
from hms.models.schemas import StayCreate, StayUpdate, StayTransition, StayResponse
from hms.security import permissions as P
from hms.security.auth import RequestContext
from hms.security.policy import require_operation
from hms.services.stay_service import StayService

router = APIRouter(prefix="/stays", tags=["住宿管理"])


@router.get("/active", response_model=List[StayResponse])
def list_active_stays(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_READ))
):
    """获取所有在住记录"""
    return StayService(db).get_active_stays(ctx.company_id)


@router.get("/upcoming", response_model=List[StayResponse])
def list_upcoming_stays(
    days: Optional[int] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_READ))
):
    """获取即将到店的住宿"""
    return StayService(db).get_upcoming_stays(ctx.company_id, days)


@router.get("/{stay_id}", response_model=StayResponse)
def get_stay(
    stay_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_READ))
):
    """获取住宿详情"""
    return StayService(db).get(ctx.company_id, stay_id)


@router.post("", response_model=StayResponse, status_code=201)
def create_stay(
    data: StayCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_WRITE))
):
    """创建住宿"""
    return StayService(db).create(ctx.company_id, ctx.user_id, data)


@router.put("/{stay_id}", response_model=StayResponse)
def update_stay(
    stay_id: int,
    data: StayUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_WRITE))
):
    """修改住宿"""
    return StayService(db).update(ctx.company_id, stay_id, data, ctx.user_id)


@router.post("/{stay_id}/check-in", response_model=StayResponse)
def check_in(
    stay_id: int,
    data: Optional[StayTransition] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_CHECKIN))
):
    """办理入住"""
    actual = data.actual if data else None
    return StayService(db).check_in(ctx.company_id, stay_id, ctx.user_id, actual)


@router.post("/{stay_id}/check-out", response_model=StayResponse)
def check_out(
    stay_id: int,
    data: Optional[StayTransition] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_CHECKOUT))
):
    """办理退房"""
    actual = data.actual if data else None
    return StayService(db).check_out(ctx.company_id, stay_id, ctx.user_id, actual)


@router.post("/{stay_id}/cancel", response_model=StayResponse)
def cancel_stay(
    stay_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_CANCEL))
):
    """取消住宿"""
    return StayService(db).cancel(ctx.company_id, stay_id, ctx.user_id)


@router.delete("/{stay_id}", status_code=204)
def remove_stay(
    stay_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.STAY_DELETE))
):
    """删除住宿（软删除）"""
    StayService(db).remove(ctx.company_id, stay_id, ctx.user_id)
