"""
餐桌服务 - 本体操作层
餐桌与订单之间是两个独立的引用（table.current_order_id 与 order.table_number），
由 assign / clear 在同一事务内同时维护，绑定期间改名时 update 同步订单上的餐桌号
"""
from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from hms.database import atomic
from hms.domain.lifecycles import ORDER_TERMINAL_STATES, TABLE_MACHINE, fire, state_value
from hms.exceptions import ConflictError, ForbiddenError, InvalidStateError
from hms.models.ontology import (
    Order, OrderType, RestaurantTable, TableStatus
)
from hms.models.schemas import RestaurantTableCreate, RestaurantTableUpdate
from hms.services.lookup import get_scoped

logger = logging.getLogger(__name__)


class RestaurantTableService:
    """餐桌服务"""

    def __init__(self, db: Session):
        self.db = db

    # ============== 查询 ==============

    def get(self, company_id: int, table_id: int) -> RestaurantTable:
        return get_scoped(self.db, RestaurantTable, company_id, table_id, "餐桌")

    def list(self, company_id: int, status: Optional[TableStatus] = None) -> List[RestaurantTable]:
        query = self.db.query(RestaurantTable).filter(
            RestaurantTable.company_id == company_id,
            RestaurantTable.deleted_at.is_(None),
        )
        if status:
            query = query.filter(RestaurantTable.status == status)
        return query.order_by(RestaurantTable.table_number).all()

    def find_by_order(self, company_id: int, order_id: int) -> Optional[RestaurantTable]:
        """按订单反查绑定的餐桌"""
        return self.db.query(RestaurantTable).filter(
            RestaurantTable.company_id == company_id,
            RestaurantTable.current_order_id == order_id,
            RestaurantTable.deleted_at.is_(None),
        ).first()

    def _ensure_unique_number(self, company_id: int, table_number: str,
                              excluding_id: Optional[int] = None) -> None:
        query = self.db.query(RestaurantTable).filter(
            RestaurantTable.company_id == company_id,
            RestaurantTable.table_number == table_number,
            RestaurantTable.deleted_at.is_(None),
        )
        if excluding_id is not None:
            query = query.filter(RestaurantTable.id != excluding_id)
        if query.first():
            raise ConflictError(f"餐桌号 {table_number} 已存在")

    # ============== 写操作 ==============

    def create(self, company_id: int, user_id: Optional[int],
               data: RestaurantTableCreate) -> RestaurantTable:
        """创建餐桌，餐桌号在租户内唯一"""
        with atomic(self.db):
            self._ensure_unique_number(company_id, data.table_number)
            table = RestaurantTable(
                company_id=company_id,
                table_number=data.table_number,
                capacity=data.capacity,
                location=data.location,
                status=TableStatus.AVAILABLE,
                created_by=user_id,
                updated_by=user_id,
            )
            self.db.add(table)
            self.db.flush()

        logger.info(f"Table {table.table_number} created")
        return table

    def update(self, company_id: int, table_id: int, data: RestaurantTableUpdate,
               user_id: Optional[int] = None) -> RestaurantTable:
        """修改餐桌；绑定订单期间不能改状态，改名同步到订单"""
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        with atomic(self.db):
            table = get_scoped(self.db, RestaurantTable, company_id, table_id, "餐桌", lock=True)

            if update_data.get("table_number") and update_data["table_number"] != table.table_number:
                self._ensure_unique_number(company_id, update_data["table_number"], table.id)

            status = update_data.pop("status", None)
            if status is not None and status != table.status:
                if table.current_order_id is not None:
                    raise InvalidStateError("餐桌绑定了订单，不能修改状态，请先清台")
                if status == TableStatus.OCCUPIED:
                    raise InvalidStateError("占用状态只能通过分配订单设置")
                table.status = status

            for key, value in update_data.items():
                setattr(table, key, value)
            table.updated_by = user_id

            # 绑定期间改名，订单上的餐桌号同步
            if table.current_order_id is not None and "table_number" in update_data:
                order = self.db.query(Order).filter(
                    Order.id == table.current_order_id
                ).with_for_update().first()
                if order is not None:
                    order.table_number = table.table_number
                    order.updated_by = user_id

        return table

    def assign(self, company_id: int, table_id: int, order_id: int,
               user_id: Optional[int] = None) -> RestaurantTable:
        """
        把餐厅订单分配到餐桌

        Raises:
            InvalidStateError: 餐桌不空闲，订单已终结或已绑定其他餐桌
        """
        with atomic(self.db):
            table = get_scoped(self.db, RestaurantTable, company_id, table_id, "餐桌", lock=True)
            order = get_scoped(self.db, Order, company_id, order_id, "订单", lock=True)
            if order.order_type != OrderType.RESTAURANT:
                raise InvalidStateError("只有餐厅订单可以分配餐桌")

            new_status = fire(TABLE_MACHINE, table.status, "assign")
            if state_value(order.status) in ORDER_TERMINAL_STATES:
                raise InvalidStateError(f"订单状态为 {state_value(order.status)}，不能分配餐桌")
            if order.table_number or self.find_by_order(company_id, order.id):
                raise InvalidStateError("订单已分配到其他餐桌")

            table.status = TableStatus(new_status)
            table.current_order_id = order.id
            table.updated_by = user_id
            order.table_number = table.table_number
            order.updated_by = user_id

        logger.info(f"Table {table.table_number} assigned to order #{order.id}")
        return table

    def clear(self, company_id: int, table_id: int, user_id: Optional[int] = None) -> RestaurantTable:
        """清台：绑定的订单必须已完成或已取消"""
        with atomic(self.db):
            table = get_scoped(self.db, RestaurantTable, company_id, table_id, "餐桌", lock=True)
            if table.current_order_id is None:
                raise InvalidStateError("餐桌没有绑定订单")
            order = self.db.query(Order).filter(
                Order.id == table.current_order_id
            ).with_for_update().first()
            if order is not None and state_value(order.status) not in ORDER_TERMINAL_STATES:
                raise InvalidStateError("订单尚未完成或取消，不能清台")

            new_status = fire(TABLE_MACHINE, table.status, "clear")
            table.status = TableStatus(new_status)
            table.current_order_id = None
            table.updated_by = user_id
            if order is not None:
                order.table_number = None
                order.updated_by = user_id

        logger.info(f"Table {table.table_number} cleared")
        return table

    def _toggle(self, company_id: int, table_id: int, trigger: str,
                user_id: Optional[int] = None) -> RestaurantTable:
        with atomic(self.db):
            table = get_scoped(self.db, RestaurantTable, company_id, table_id, "餐桌", lock=True)
            previous = state_value(table.status)
            table.status = TableStatus(fire(TABLE_MACHINE, table.status, trigger))
            table.updated_by = user_id

        logger.info(f"Table {table.table_number} status: {previous} -> {table.status.value}")
        return table

    def reserve(self, company_id: int, table_id: int, user_id: Optional[int] = None) -> RestaurantTable:
        """预留餐桌，仅限空闲"""
        return self._toggle(company_id, table_id, "reserve", user_id)

    def unreserve(self, company_id: int, table_id: int, user_id: Optional[int] = None) -> RestaurantTable:
        """取消预留"""
        return self._toggle(company_id, table_id, "unreserve", user_id)

    def remove(self, company_id: int, table_id: int, user_id: Optional[int] = None) -> RestaurantTable:
        """软删除餐桌；绑定订单期间禁止删除"""
        with atomic(self.db):
            table = get_scoped(self.db, RestaurantTable, company_id, table_id, "餐桌", lock=True)
            if table.current_order_id is not None:
                raise ForbiddenError("餐桌绑定了订单，不能删除")
            table.deleted_at = datetime.now()
            table.deleted_by = user_id

        logger.info(f"Table {table.table_number} removed by user {user_id}")
        return table
