"""
hms/domain/lifecycles.py

住宿、体育设施预订、订单、餐桌的生命周期状态机
服务层只通过 fire() 推进状态，非法转换统一转换为 InvalidStateError
"""
from enum import Enum
from typing import Union

from hms_core.engine import StateMachine, StateMachineConfig, StateTransition, TransitionError
from hms.exceptions import InvalidStateError
from hms.models.ontology import (
    StayStatus, SportReservationStatus, OrderStatus, TableStatus
)


def _t(from_state: Enum, to_state: Enum, trigger: str) -> StateTransition:
    return StateTransition(from_state=from_state.value, to_state=to_state.value, trigger=trigger)


# ============== 住宿 ==============

STAY_MACHINE = StateMachineConfig(
    name="Stay",
    states=[s.value for s in StayStatus],
    transitions=[
        _t(StayStatus.CONFIRMED, StayStatus.CHECKED_IN, "check_in"),
        _t(StayStatus.CHECKED_IN, StayStatus.CHECKED_OUT, "check_out"),
        _t(StayStatus.CONFIRMED, StayStatus.CANCELLED, "cancel"),
        _t(StayStatus.CHECKED_IN, StayStatus.CANCELLED, "cancel"),
    ],
    initial_state=StayStatus.CONFIRMED.value,
    final_states=[StayStatus.CHECKED_OUT.value, StayStatus.CANCELLED.value],
)


# ============== 体育设施预订 ==============

_SR = SportReservationStatus

SPORT_RESERVATION_MACHINE = StateMachineConfig(
    name="SportReservation",
    states=[s.value for s in SportReservationStatus],
    transitions=[
        _t(_SR.PENDING, _SR.CONFIRMED, "confirm"),
        _t(_SR.CONFIRMED, _SR.IN_PROGRESS, "start"),
        _t(_SR.IN_PROGRESS, _SR.COMPLETED, "complete"),
    ] + [
        _t(state, _SR.CANCELLED, "cancel")
        for state in (_SR.PENDING, _SR.CONFIRMED, _SR.IN_PROGRESS)
    ],
    initial_state=_SR.PENDING.value,
    final_states=[_SR.COMPLETED.value, _SR.CANCELLED.value],
)


# ============== 订单 ==============

_ACTIVE_ORDER_STATES = (
    OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.DELIVERED
)

ORDER_MACHINE = StateMachineConfig(
    name="Order",
    states=[s.value for s in OrderStatus],
    transitions=[
        _t(OrderStatus.PENDING, OrderStatus.PREPARING, "prepare"),
        _t(OrderStatus.PREPARING, OrderStatus.READY, "ready"),
        _t(OrderStatus.READY, OrderStatus.DELIVERED, "deliver"),
    ] + [
        # 任意未终结状态都可以直接完成（付清或人工完结）
        _t(state, OrderStatus.COMPLETED, "complete") for state in _ACTIVE_ORDER_STATES
    ] + [
        _t(state, OrderStatus.CANCELLED, "cancel") for state in _ACTIVE_ORDER_STATES
    ],
    initial_state=OrderStatus.PENDING.value,
    final_states=[OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value],
)

# advance() 可以推进到的目标状态及其触发动作；取消必须走 cancel 以归还库存
ORDER_ADVANCE_TRIGGERS = {
    OrderStatus.PREPARING.value: "prepare",
    OrderStatus.READY.value: "ready",
    OrderStatus.DELIVERED.value: "deliver",
    OrderStatus.COMPLETED.value: "complete",
}

ORDER_TERMINAL_STATES = frozenset(ORDER_MACHINE.final_states)


# ============== 餐桌 ==============

TABLE_MACHINE = StateMachineConfig(
    name="RestaurantTable",
    states=[s.value for s in TableStatus],
    transitions=[
        _t(TableStatus.AVAILABLE, TableStatus.RESERVED, "reserve"),
        _t(TableStatus.RESERVED, TableStatus.AVAILABLE, "unreserve"),
        _t(TableStatus.AVAILABLE, TableStatus.OCCUPIED, "assign"),
        _t(TableStatus.OCCUPIED, TableStatus.AVAILABLE, "clear"),
    ],
    initial_state=TableStatus.AVAILABLE.value,
)


def state_value(state: Union[Enum, str]) -> str:
    """ORM 枚举或字符串统一为状态字符串"""
    return state.value if isinstance(state, Enum) else state


def is_final(config: StateMachineConfig, state: Union[Enum, str]) -> bool:
    return state_value(state) in config.final_states


def fire(config: StateMachineConfig, current: Union[Enum, str], trigger: str) -> str:
    """
    按触发动作计算目标状态

    Args:
        config: 状态机配置
        current: 实体当前状态
        trigger: 触发动作

    Returns:
        目标状态字符串

    Raises:
        InvalidStateError: 当前状态不允许该触发动作
    """
    machine = StateMachine(config, current_state=state_value(current))
    try:
        return machine.fire(trigger)
    except TransitionError as e:
        raise InvalidStateError(str(e)) from e
