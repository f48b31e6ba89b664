"""
请求上下文
租户、操作人、角色由上游网关通过请求头传入，本服务不做身份认证
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Header


@dataclass(frozen=True)
class RequestContext:
    """
    当前请求的调用方

    Attributes:
        company_id: 租户 ID，所有核心操作的必填参数
        user_id: 操作人 ID，写入审计字段
        role: 操作人角色，仅用于路由层策略判断
    """

    company_id: int
    user_id: Optional[int] = None
    role: Optional[str] = None


def get_request_context(
    x_company_id: int = Header(..., description="租户 ID"),
    x_user_id: Optional[int] = Header(None, description="操作人 ID"),
    x_user_role: Optional[str] = Header(None, description="操作人角色"),
) -> RequestContext:
    """依赖注入：从请求头解析调用方"""
    return RequestContext(company_id=x_company_id, user_id=x_user_id, role=x_user_role)
