"""Maps action type strings to factories."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from deck_controller.actions.device_event import DeviceEventActionFactory
from deck_controller.actions.execute_script import ExecuteScriptActionFactory
from deck_controller.actions.http_request import HttpRequestActionFactory
from deck_controller.actions.inline_code import InlineCodeActionFactory
from deck_controller.actions.launch_app import LaunchAppActionFactory
from deck_controller.actions.page_switch import PageSwitchActionFactory
from deck_controller.actions.types import Action, ActionFactory
from deck_controller.errors import (
    DuplicateActionTypeError,
    InvalidActionConfigError,
    UnregisteredActionTypeError,
)

if TYPE_CHECKING:
    from deck_controller.device_events import DeviceEventSource
    from deck_controller.state_manager import StateManager


class ActionRegistry:
    def __init__(self) -> None:
        self._factories: dict[str, ActionFactory] = {}

    def register(self, factory: ActionFactory) -> None:
        action_type = factory.get_type()
        if action_type in self._factories:
            raise DuplicateActionTypeError(action_type)
        self._factories[action_type] = factory

    def unregister(self, action_type: str) -> bool:
        return self._factories.pop(action_type, None) is not None

    def get_factory(self, action_type: str) -> ActionFactory | None:
        return self._factories.get(action_type)

    def has_factory(self, action_type: str) -> bool:
        return action_type in self._factories

    def get_types(self) -> list[str]:
        return list(self._factories)

    def get_factories(self) -> list[ActionFactory]:
        return list(self._factories.values())

    def validate_config(self, action_type: str, config: dict[str, Any]) -> bool:
        factory = self._factories.get(action_type)
        if factory is None:
            raise UnregisteredActionTypeError(action_type)
        return factory.validate(config)

    def create_action(self, action_type: str, config: dict[str, Any]) -> Action:
        """Validate config and build a fresh action.

        Raises:
            UnregisteredActionTypeError: No factory for action_type.
            InvalidActionConfigError: The factory rejects config.
        """
        factory = self._factories.get(action_type)
        if factory is None:
            raise UnregisteredActionTypeError(action_type)
        if not factory.validate(config):
            raise InvalidActionConfigError(action_type)
        return factory.create({**config, "type": action_type})


def build_default_registry(
    state_manager: "StateManager | None" = None,
    event_source: "DeviceEventSource | None" = None,
) -> ActionRegistry:
    """Registry with the built-in action types.

    ``device_event`` is only registered when an event source is given.
    """
    registry = ActionRegistry()
    registry.register(LaunchAppActionFactory())
    registry.register(ExecuteScriptActionFactory())
    registry.register(HttpRequestActionFactory())
    registry.register(InlineCodeActionFactory())
    registry.register(PageSwitchActionFactory(state_manager))
    if event_source is not None:
        registry.register(DeviceEventActionFactory(event_source))
    return registry
