"""Wait for a matching hardware event."""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Any, Optional, TYPE_CHECKING

from pydantic import Field, field_validator

from deck_controller.actions.base import ActionConfigModel, ConfiguredAction, ConfiguredActionFactory
from deck_controller.actions.types import ActionContext, ActionResult
from deck_controller.device_events import DEVICE_EVENT, DEVICE_EVENT_NAMES, DeviceEvent, DeviceEventType
from deck_controller.errors import ActionConfigError, ActionTimeoutError

if TYPE_CHECKING:
    from deck_controller.device_events import DeviceEventSource

_WAITING_COLOR = "#444444"
_TRIGGERED_COLOR = "#007700"
_TRIGGERED_RESET_MS = 1000


class DeviceEventConfig(ActionConfigModel):
    event_type: str
    device_serial: Optional[str] = None
    button_index: Optional[int] = Field(default=None, ge=0)
    dial_index: Optional[int] = Field(default=None, ge=0)
    show_indicator: bool = True
    timeout_ms: int = Field(default=0, ge=0)

    @field_validator("event_type")
    @classmethod
    def _known_event(cls, value: str) -> str:
        DeviceEventType(value)
        return value


class DeviceEventAction(ConfiguredAction):
    """Succeeds on the first device event matching the configured filter.

    The button filter only applies to button events and the dial filter only
    to dial events. A ``timeout_ms`` of 0 waits forever.
    """

    action_type = "device_event"
    config_model = DeviceEventConfig
    config_error = "Device event action requires a valid event type"

    def __init__(
        self,
        config,
        event_source: "DeviceEventSource | None" = None,
        action_id: str | None = None,
    ) -> None:
        super().__init__(config, action_id)
        if event_source is None:
            raise ActionConfigError("Device event action requires a device event source")
        self._source = event_source
        self._event_type = DeviceEventType(self.config.event_type)
        self._future: asyncio.Future | None = None
        self._unsubscribe = None
        self._timer: asyncio.TimerHandle | None = None

    def matches(self, event: DeviceEvent) -> bool:
        if event.type != self._event_type:
            return False
        if self.config.device_serial and event.device_serial != self.config.device_serial:
            return False
        if (
            self.config.button_index is not None
            and event.type.is_button_event
            and event.button_index != self.config.button_index
        ):
            return False
        if (
            self.config.dial_index is not None
            and event.type.is_dial_event
            and event.dial_index != self.config.dial_index
        ):
            return False
        return True

    async def execute_action(self, context: ActionContext) -> ActionResult:
        loop = asyncio.get_running_loop()
        self._future = future = loop.create_future()
        button = context.button_state
        original_visual = asdict(button.visual) if button is not None else None

        def _on_event(event: DeviceEvent) -> None:
            if future.done() or not self.matches(event):
                return
            self._cleanup()
            self._show_triggered(context, event)
            future.set_result(
                ActionResult.success(
                    {
                        "event_type": event.type.value,
                        "device_serial": event.device_serial,
                        "timestamp": event.timestamp,
                        "event": event.to_dict(),
                    }
                )
            )

        self._unsubscribe = self._source.on(DEVICE_EVENT, _on_event)
        if self.config.show_indicator and button is not None:
            button.update_visual(
                text=f"Waiting for {DEVICE_EVENT_NAMES[self._event_type]}...",
                color=_WAITING_COLOR,
            )
        if self.config.timeout_ms > 0:
            self._timer = loop.call_later(self.config.timeout_ms / 1000, self._on_timeout, future)

        try:
            result = await future
        finally:
            self._cleanup()
            self._future = None

        if not result.ok and self.config.show_indicator and button is not None and not button.is_disposed:
            button.update_visual(**original_visual)
        return result

    def _on_timeout(self, future: asyncio.Future) -> None:
        self._cleanup()
        if not future.done():
            future.set_result(
                ActionResult.failure(
                    ActionTimeoutError(
                        f"Timed out waiting for {self.config.event_type} event", self.config.timeout_ms
                    )
                )
            )

    def _show_triggered(self, context: ActionContext, event: DeviceEvent) -> None:
        button = context.button_state
        if not self.config.show_indicator or button is None or button.is_disposed:
            return
        button.update_visual(text=f"{DEVICE_EVENT_NAMES[event.type]}!", color=_TRIGGERED_COLOR)
        self._schedule_reset(button, _TRIGGERED_RESET_MS)

    def _cleanup(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def is_cancellable(self) -> bool:
        return self.is_executing()

    async def cancel(self) -> bool:
        if not await super().cancel():
            return False
        self._cleanup()
        future = self._future
        if future is not None and not future.done():
            future.set_result(ActionResult.cancelled("Action cancelled by user"))
        return True


class DeviceEventActionFactory(ConfiguredActionFactory):
    action_class = DeviceEventAction

    def __init__(self, event_source: "DeviceEventSource") -> None:
        self._source = event_source

    def create(self, config: dict[str, Any]) -> DeviceEventAction:
        return DeviceEventAction(config, self._source)
