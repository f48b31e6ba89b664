"""
体育设施预订路由
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from hms.database import get_db
from hms.models.ontology import SportReservationStatus
from hms.models.schemas import (
    SportReservationCreate, SportReservationUpdate, SportReservationResponse,
    FacilityAvailability, PaymentCreate, PaymentResponse
)
from hms.security import permissions as P
from hms.security.auth import RequestContext
from hms.security.policy import require_operation
from hms.services.sport_reservation_service import SportReservationService

router = APIRouter(prefix="/sport-reservations", tags=["体育设施预订"])


@router.get("", response_model=List[SportReservationResponse])
def list_reservations(
    facility_id: Optional[int] = None,
    status: Optional[SportReservationStatus] = None,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_READ))
):
    """获取预订列表"""
    return SportReservationService(db).list(ctx.company_id, facility_id, status)


@router.get("/availability/{facility_id}", response_model=FacilityAvailability)
def get_availability(
    facility_id: int,
    day: date,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_READ))
):
    """查询设施某天的占用情况"""
    return SportReservationService(db).get_availability(ctx.company_id, facility_id, day)


@router.get("/{reservation_id}", response_model=SportReservationResponse)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_READ))
):
    """获取预订详情"""
    return SportReservationService(db).get(ctx.company_id, reservation_id)


@router.post("", response_model=SportReservationResponse, status_code=201)
def create_reservation(
    data: SportReservationCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_WRITE))
):
    """创建预订"""
    return SportReservationService(db).create(ctx.company_id, ctx.user_id, data)


@router.put("/{reservation_id}", response_model=SportReservationResponse)
def update_reservation(
    reservation_id: int,
    data: SportReservationUpdate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_WRITE))
):
    """修改预订"""
    return SportReservationService(db).update(ctx.company_id, reservation_id, data, ctx.user_id)


@router.post("/{reservation_id}/confirm", response_model=SportReservationResponse)
def confirm_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_TRANSITION))
):
    return SportReservationService(db).confirm(ctx.company_id, reservation_id, ctx.user_id)


@router.post("/{reservation_id}/start", response_model=SportReservationResponse)
def start_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_TRANSITION))
):
    return SportReservationService(db).start(ctx.company_id, reservation_id, ctx.user_id)


@router.post("/{reservation_id}/complete", response_model=SportReservationResponse)
def complete_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_TRANSITION))
):
    return SportReservationService(db).complete(ctx.company_id, reservation_id, ctx.user_id)


@router.post("/{reservation_id}/cancel", response_model=SportReservationResponse)
def cancel_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_CANCEL))
):
    """取消预订"""
    return SportReservationService(db).cancel(ctx.company_id, reservation_id, ctx.user_id)


@router.post("/{reservation_id}/payments", response_model=PaymentResponse, status_code=201)
def pay_reservation(
    reservation_id: int,
    data: PaymentCreate,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_PAY))
):
    """记录支付"""
    return SportReservationService(db).record_payment(ctx.company_id, reservation_id, data, ctx.user_id)


@router.delete("/{reservation_id}", status_code=204)
def remove_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(require_operation(P.SPORT_DELETE))
):
    """删除预订（软删除）"""
    SportReservationService(db).remove(ctx.company_id, reservation_id, ctx.user_id)
