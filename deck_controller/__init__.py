"""Action execution and device-state coordination for macro-pad decks."""

from deck_controller.actions.types import ActionContext, ActionOptions, ActionResult, ActionStatus
from deck_controller.button_state import ButtonState, ButtonStateEvent, ButtonVisual
from deck_controller.config import DeckConfig, load_deck_config
from deck_controller.controller import DeckController
from deck_controller.executor import ActionExecutor, ExecutorEvent
from deck_controller.integration import StateActionIntegration
from deck_controller.navigation import NavigatingStateManager
from deck_controller.state_manager import StateManager, StateManagerEvent

__all__ = [
    "ActionContext",
    "ActionExecutor",
    "ActionOptions",
    "ActionResult",
    "ActionStatus",
    "ButtonState",
    "ButtonStateEvent",
    "ButtonVisual",
    "DeckConfig",
    "DeckController",
    "ExecutorEvent",
    "NavigatingStateManager",
    "StateActionIntegration",
    "StateManager",
    "StateManagerEvent",
    "load_deck_config",
]
