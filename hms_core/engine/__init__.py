"""
hms_core/engine - 框架引擎
"""
from hms_core.engine.state_machine import (
    StateTransition,
    StateMachineConfig,
    StateMachine,
    TransitionError,
)

__all__ = [
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
    "TransitionError",
]
