"""Switch a device to another page."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Optional, TYPE_CHECKING

from deck_controller.actions.base import (
    ActionConfigModel,
    ConfiguredAction,
    ConfiguredActionFactory,
    NonBlankStr,
)
from deck_controller.actions.types import ActionContext, ActionResult
from deck_controller.errors import ActionConfigError, ActionExecutionError

if TYPE_CHECKING:
    from deck_controller.state_manager import StateManager


class PageSwitchConfig(ActionConfigModel):
    page_id: NonBlankStr
    device_serial: Optional[str] = None
    show_indicator: bool = True
    animate: bool = True
    push_to_stack: bool = True


class PageSwitchAction(ConfiguredAction):
    action_type = "page_switch"
    config_model = PageSwitchConfig
    config_error = "Page switch action requires a valid page id"

    def __init__(
        self,
        config,
        state_manager: "StateManager | None" = None,
        action_id: str | None = None,
    ) -> None:
        super().__init__(config, action_id)
        self._state_manager = state_manager

    def _resolve_manager(self, context: ActionContext) -> "StateManager":
        manager = self._state_manager or context.data.get("state_manager")
        if manager is None:
            raise ActionConfigError("Page switch action has no state manager")
        return manager

    async def execute_action(self, context: ActionContext) -> ActionResult:
        button = context.button_state
        original_visual = asdict(button.visual) if button is not None else None
        try:
            manager = self._resolve_manager(context)
            device_serial = self.config.device_serial or (button.device_serial if button else None)
            if not device_serial:
                raise ActionExecutionError("No device to switch", code="no_device")

            if self.config.show_indicator and button is not None:
                button.update_visual(text=f"→ {self.config.page_id}")

            from_page = manager.get_active_page(device_serial)
            if not manager.has_page(device_serial, self.config.page_id):
                raise ActionExecutionError(
                    f'Page "{self.config.page_id}" does not exist for device {device_serial}',
                    code="unknown_page",
                )
            manager.activate_page(
                device_serial,
                self.config.page_id,
                push_to_stack=self.config.push_to_stack,
                animate=self.config.animate,
            )
        except (ActionConfigError, ActionExecutionError) as exc:
            self._restore(button, original_visual)
            return ActionResult.failure(exc, message=f"Failed to switch page: {exc}")

        return ActionResult.success(
            {"device_serial": device_serial, "from_page": from_page, "to_page": self.config.page_id}
        )

    @staticmethod
    def _restore(button, visual: dict[str, Any] | None) -> None:
        if button is None or visual is None or button.is_disposed:
            return
        button.update_visual(**visual)


class PageSwitchActionFactory(ConfiguredActionFactory):
    action_class = PageSwitchAction

    def __init__(self, state_manager: "StateManager | None" = None) -> None:
        self._state_manager = state_manager

    def create(self, config: dict[str, Any]) -> PageSwitchAction:
        return PageSwitchAction(config, self._state_manager)
