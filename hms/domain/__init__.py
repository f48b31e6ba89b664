"""
领域层 - 生命周期状态机定义
"""
from hms.domain.lifecycles import (
    STAY_MACHINE, SPORT_RESERVATION_MACHINE, ORDER_MACHINE, TABLE_MACHINE, fire,
)

__all__ = [
    "STAY_MACHINE", "SPORT_RESERVATION_MACHINE", "ORDER_MACHINE", "TABLE_MACHINE", "fire",
]
