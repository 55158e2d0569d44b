from deck_controller.actions.base import BaseAction, ConfiguredAction, ConfiguredActionFactory
from deck_controller.actions.cancellation import AbortedError, CancelSignal
from deck_controller.actions.registry import ActionRegistry, build_default_registry
from deck_controller.actions.types import (
    Action,
    ActionContext,
    ActionEvent,
    ActionFactory,
    ActionOptions,
    ActionResult,
    ActionStatus,
)

__all__ = [
    "AbortedError",
    "Action",
    "ActionContext",
    "ActionEvent",
    "ActionFactory",
    "ActionOptions",
    "ActionRegistry",
    "ActionResult",
    "ActionStatus",
    "BaseAction",
    "CancelSignal",
    "ConfiguredAction",
    "ConfiguredActionFactory",
    "build_default_registry",
]
