"""Glue between button presses, the executor and button visuals."""

from __future__ import annotations

import asyncio
from typing import Any

from deck_controller.actions.registry import ActionRegistry
from deck_controller.actions.types import ActionContext
from deck_controller.button_state import ACTIVE_STATE, ButtonState, ButtonStateEvent
from deck_controller.errors import ActionConfigError
from deck_controller.executor import ActionExecutor, ExecutorEvent
from deck_controller.logger import DeckLogger
from deck_controller.state_manager import StateManager, StateManagerEvent

RUNNING_MARKER = "⋯"
FAILED_MARKER = "✗"
CANCELLED_MARKER = "⨯"
FAILED_COLOR = "#FF0000"
CANCELLED_COLOR = "#FFA500"


def _swap_marker(text: str | None, new: str | None) -> str | None:
    """Replace the running marker with new, or drop it when new is None."""
    if text is None:
        return new
    if text == RUNNING_MARKER:
        return new
    suffix = f" {RUNNING_MARKER}"
    if suffix not in text:
        return text
    return text.replace(suffix, f" {new}" if new else "")


def _strip(text: str | None, marker: str) -> str | None:
    if text is None or text == marker:
        return None
    return text.replace(f" {marker}", "")


class StateActionIntegration:
    """Turns PRESSED events into executions and outcomes into visuals.

    Every live button (and every button added later) gets a PRESSED
    listener. A button without an action type is ignored; an unregistered
    type is logged and skipped. Nothing on this path raises into the
    button's event dispatch.
    """

    def __init__(
        self,
        state_manager: StateManager,
        registry: ActionRegistry,
        executor: ActionExecutor,
        auto_trigger_actions: bool = True,
        update_visual_state: bool = True,
        replay_actions_on_page_activation: bool = False,
        restore_delay_ms: int = 2000,
    ) -> None:
        self.state_manager = state_manager
        self.registry = registry
        self.executor = executor
        self.auto_trigger_actions = auto_trigger_actions
        self.update_visual_state = update_visual_state
        self.replay_actions_on_page_activation = replay_actions_on_page_activation
        self.restore_delay_ms = restore_delay_ms
        self.logger = DeckLogger("INTEGRATION")

        self._active_actions: dict[str, list[str]] = {}
        self._button_unsubscribers: dict[str, Any] = {}
        self._cleanup: list[Any] = []
        self._timers: set[asyncio.TimerHandle] = set()
        self._setup_listeners()

    def _setup_listeners(self) -> None:
        if self.auto_trigger_actions:
            self._cleanup.append(self.state_manager.on(StateManagerEvent.BUTTON_ADDED, self._on_button_added))
            self._cleanup.append(
                self.state_manager.on(StateManagerEvent.BUTTON_REMOVED, self._on_button_removed)
            )
            for button in self.state_manager.get_all_buttons():
                self._attach(button)

        if self.replay_actions_on_page_activation:
            self._cleanup.append(
                self.state_manager.on(StateManagerEvent.PAGE_ACTIVATED, self._on_page_activated)
            )

        if self.update_visual_state:
            self._cleanup.extend(
                [
                    self.executor.on(ExecutorEvent.ACTION_STARTED, self._on_started),
                    self.executor.on(ExecutorEvent.ACTION_COMPLETED, self._on_completed),
                    self.executor.on(ExecutorEvent.ACTION_FAILED, self._on_failed),
                    self.executor.on(ExecutorEvent.ACTION_CANCELLED, self._on_cancelled),
                ]
            )

    def _attach(self, button: ButtonState) -> None:
        def _on_pressed(_payload: dict) -> None:
            if self.auto_trigger_actions:
                self.trigger_button_action(button)

        self._button_unsubscribers[button.key] = button.on(ButtonStateEvent.PRESSED, _on_pressed)

    def _on_button_added(self, payload: dict) -> None:
        self._attach(payload["button_state"])

    def _on_button_removed(self, payload: dict) -> None:
        self._button_unsubscribers.pop(f"{payload['device_serial']}:{payload['button_index']}", None)

    def trigger_button_action(self, button: ButtonState) -> str | None:
        """Submit the button's configured action; returns the execution id."""
        action_type = button.config.type
        if not action_type:
            return None
        if not self.registry.has_factory(action_type):
            self.logger.warn(f'No action factory registered for type "{action_type}"')
            return None

        try:
            action = self.registry.create_action(action_type, button.config.action_config())
            context = ActionContext(
                button_state=button,
                data={
                    "custom_state": button.custom_state,
                    "is_pressed": button.is_pressed,
                    "state_manager": self.state_manager,
                },
            )
            handle = self.executor.submit(action, context)
        except (ActionConfigError, RuntimeError) as exc:
            self.logger.error(f"Could not trigger action for button {button.key}: {exc}")
            return None

        self._active_actions.setdefault(button.key, []).append(handle.execution_id)
        return handle.execution_id

    def get_button_executions(self, button: ButtonState) -> list[str]:
        return list(self._active_actions.get(button.key, []))

    async def cancel_button_actions(self, button: ButtonState) -> int:
        count = 0
        for execution_id in self.get_button_executions(button):
            if await self.executor.cancel_execution(execution_id):
                count += 1
        return count

    def _on_page_activated(self, payload: dict) -> None:
        for button in self.state_manager.get_page_buttons(payload["device_serial"], payload["page_id"]):
            if button.config.stateful and button.custom_state == ACTIVE_STATE:
                self.trigger_button_action(button)

    def _untrack(self, button: ButtonState, execution_id: str) -> None:
        ids = self._active_actions.get(button.key)
        if ids and execution_id in ids:
            ids.remove(execution_id)
            if not ids:
                self._active_actions.pop(button.key, None)

    @staticmethod
    def _live_button(payload: dict) -> ButtonState | None:
        button = payload["context"].button_state
        if button is None or button.is_disposed:
            return None
        return button

    def _on_started(self, payload: dict) -> None:
        button = self._live_button(payload)
        if button is None:
            return
        text = button.visual.text
        button.update_visual(text=f"{text} {RUNNING_MARKER}" if text else RUNNING_MARKER)

    def _on_completed(self, payload: dict) -> None:
        button = payload["context"].button_state
        if button is None:
            return
        self._untrack(button, payload["execution_id"])
        if button.is_disposed:
            return
        if button.config.stateful:
            button.update_visual(text=_swap_marker(button.visual.text, None))
        else:
            button.reset()

    def _on_failed(self, payload: dict) -> None:
        self._mark_unsuccessful(payload, FAILED_MARKER, FAILED_COLOR)

    def _on_cancelled(self, payload: dict) -> None:
        self._mark_unsuccessful(payload, CANCELLED_MARKER, CANCELLED_COLOR)

    def _mark_unsuccessful(self, payload: dict, marker: str, color: str) -> None:
        button = payload["context"].button_state
        if button is None:
            return
        self._untrack(button, payload["execution_id"])
        if button.is_disposed:
            return
        button.update_visual(text=_swap_marker(button.visual.text, marker), color=color)

        def _restore() -> None:
            self._timers.discard(handle)
            if button.is_disposed:
                return
            if button.config.stateful and button.custom_state == ACTIVE_STATE:
                button.update_visual(text=_strip(button.visual.text, marker), color=button.config.color)
            else:
                button.reset()

        handle = asyncio.get_running_loop().call_later(self.restore_delay_ms / 1000, _restore)
        self._timers.add(handle)

    def dispose(self) -> None:
        for unsubscribe in self._cleanup:
            unsubscribe()
        self._cleanup.clear()
        for unsubscribe in self._button_unsubscribers.values():
            unsubscribe()
        self._button_unsubscribers.clear()
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        self._active_actions.clear()
