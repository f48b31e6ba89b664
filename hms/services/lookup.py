"""
租户范围内的实体查找
所有读取都按 company_id 过滤并排除软删除记录，找不到统一抛出 NotFoundError
"""
from typing import Type, TypeVar

from sqlalchemy.orm import Session

from hms.exceptions import NotFoundError

T = TypeVar("T")


def get_scoped(db: Session, model: Type[T], company_id: int, entity_id: int,
               label: str, lock: bool = False) -> T:
    """
    按租户获取实体

    Args:
        model: ORM 模型类
        company_id: 租户 ID
        entity_id: 实体 ID
        label: 错误消息中的实体名称
        lock: 是否以 SELECT ... FOR UPDATE 锁定该行直到事务结束

    Raises:
        NotFoundError: 实体不存在、已删除或不属于该租户
    """
    query = db.query(model).filter(
        model.id == entity_id,
        model.company_id == company_id,
    )
    if hasattr(model, "deleted_at"):
        query = query.filter(model.deleted_at.is_(None))
    if lock:
        query = query.with_for_update()
    entity = query.first()
    if entity is None:
        raise NotFoundError(f"{label}不存在")
    return entity
