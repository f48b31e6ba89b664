"""
安全模块 - 请求上下文与操作授权策略
"""
from hms.security.auth import RequestContext, get_request_context
from hms.security.policy import UserRole, OPERATION_POLICY, is_allowed, require_operation

__all__ = [
    "RequestContext", "get_request_context",
    "UserRole", "OPERATION_POLICY", "is_allowed", "require_operation",
]
