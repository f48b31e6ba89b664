"""
hms_core/engine/state_machine.py

状态机引擎 - 生命周期状态转换校验
"""
from typing import Dict, List, Optional
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


class TransitionError(Exception):
    """非法状态转换"""

    def __init__(self, machine: str, from_state: str, trigger: str):
        self.machine = machine
        self.from_state = from_state
        self.trigger = trigger
        super().__init__(f"{machine}: 状态 {from_state} 不允许执行 {trigger}")


@dataclass(frozen=True)
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发动作
    """

    from_state: str
    to_state: str
    trigger: str


@dataclass
class StateMachineConfig:
    """
    状态机配置

    Attributes:
        name: 状态机名称
        states: 所有状态的列表
        transitions: 转换列表
        initial_state: 初始状态
        final_states: 终态（不允许任何转出）
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    initial_state: str
    final_states: List[str] = field(default_factory=list)


class StateMachine:
    """
    状态机引擎

    按实体当前状态构造，校验 (当前状态, 触发动作) 是否存在对应转换。

    Example:
        >>> machine = StateMachine(STAY_MACHINE, current_state="confirmed")
        >>> machine.fire("check_in")
        'checked_in'
    """

    def __init__(self, config: StateMachineConfig, current_state: Optional[str] = None):
        self._config = config
        self._current_state = current_state if current_state is not None else config.initial_state
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}

        if self._current_state not in config.states:
            raise ValueError(f"{config.name}: 未知状态 {self._current_state}")

        # 构建转换映射: (from_state, trigger) -> transition
        for t in config.transitions:
            if t.from_state in config.final_states:
                raise ValueError(f"{config.name}: 终态 {t.from_state} 不能有转出")
            self._transition_map.setdefault(t.from_state, {})[t.trigger] = t

    @property
    def current_state(self) -> str:
        """获取当前状态"""
        return self._current_state

    def target_of(self, trigger: str) -> Optional[str]:
        """当前状态下触发动作对应的目标状态，不存在返回 None"""
        transition = self._transition_map.get(self._current_state, {}).get(trigger)
        return transition.to_state if transition else None

    def can_transition_to(self, target_state: str, trigger: str) -> bool:
        """
        检查是否可以转换到目标状态

        Args:
            target_state: 目标状态
            trigger: 触发动作

        Returns:
            True 如果转换被允许
        """
        if target_state not in self._config.states:
            return False
        return self.target_of(trigger) == target_state

    def transition_to(self, target_state: str, trigger: str) -> bool:
        """
        执行状态转换

        Returns:
            True 如果转换成功
        """
        if not self.can_transition_to(target_state, trigger):
            logger.warning(
                f"Invalid transition: {self._config.name} {self._current_state} -> {target_state} (trigger: {trigger})"
            )
            return False

        previous_state = self._current_state
        self._current_state = target_state

        logger.debug(f"State transition: {self._config.name} {previous_state} -> {target_state} (trigger: {trigger})")
        return True

    def fire(self, trigger: str) -> str:
        """
        按触发动作转换，返回新状态

        Raises:
            TransitionError: 当前状态不存在该触发动作
        """
        target = self.target_of(trigger)
        if target is None or not self.transition_to(target, trigger):
            logger.warning(
                f"Rejected trigger: {self._config.name} {self._current_state} (trigger: {trigger})"
            )
            raise TransitionError(self._config.name, self._current_state, trigger)
        return target


# 导出
__all__ = [
    "TransitionError",
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
]
