"""
操作授权策略
静态表 (操作 -> 允许的角色)，在路由边界求值；服务层不接收角色参数
"""
from enum import Enum
from typing import Dict, FrozenSet, Union
import logging

from fastapi import Depends

from hms.exceptions import ForbiddenError
from hms.security import permissions as P
from hms.security.auth import RequestContext, get_request_context

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    """操作人角色"""
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    RECEPTIONIST = "RECEPTIONIST"
    STAFF = "STAFF"
    WAITER = "WAITER"                # 餐厅点单与餐桌
    CASHIER = "CASHIER"              # 收银


_ADMINS = frozenset({UserRole.SUPER_ADMIN, UserRole.ADMIN})
_MANAGERS = _ADMINS | {UserRole.MANAGER}
_FRONT_DESK = _MANAGERS | {UserRole.RECEPTIONIST}
_STAFF = _FRONT_DESK | {UserRole.STAFF}
_DINING = _STAFF | {UserRole.WAITER}
_TILL = _STAFF | {UserRole.CASHIER}
_EVERYONE = frozenset(UserRole)

OPERATION_POLICY: Dict[str, FrozenSet[UserRole]] = {
    # 住宿
    P.STAY_READ: _EVERYONE,
    P.STAY_WRITE: _FRONT_DESK,
    P.STAY_CHECKIN: _FRONT_DESK,
    P.STAY_CHECKOUT: _FRONT_DESK,
    P.STAY_CANCEL: _FRONT_DESK,
    P.STAY_DELETE: _MANAGERS,
    # 体育设施预订
    P.SPORT_READ: _EVERYONE,
    P.SPORT_WRITE: _STAFF,
    P.SPORT_TRANSITION: _STAFF,
    P.SPORT_CANCEL: _FRONT_DESK,
    P.SPORT_PAY: _TILL,
    P.SPORT_DELETE: _ADMINS,
    # 订单
    P.ORDER_READ: _EVERYONE,
    P.ORDER_WRITE: _DINING,
    P.ORDER_ADVANCE: _DINING,
    P.ORDER_PAY: _TILL,
    P.ORDER_CANCEL: _MANAGERS,
    P.ORDER_DELETE: _ADMINS,
    # 餐桌
    P.TABLE_READ: _EVERYONE,
    P.TABLE_WRITE: _MANAGERS,
    P.TABLE_ASSIGN: _DINING,
    P.TABLE_DELETE: _ADMINS,
}


def is_allowed(operation: str, role: Union[UserRole, str, None]) -> bool:
    """未登记的操作或未知角色一律拒绝"""
    if role is None:
        return False
    try:
        role = UserRole(role)
    except ValueError:
        return False
    return role in OPERATION_POLICY.get(operation, frozenset())


def require_operation(operation: str):
    """
    依赖注入：校验当前角色是否允许执行操作

    Example:
        @router.post("/{stay_id}/cancel")
        def cancel(ctx: RequestContext = Depends(require_operation(STAY_CANCEL))): ...
    """
    def checker(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        if not is_allowed(operation, ctx.role):
            logger.warning(f"Operation {operation} denied for role {ctx.role} (user {ctx.user_id})")
            raise ForbiddenError(f"角色 {ctx.role} 无权执行 {operation}")
        return ctx
    return checker
