"""Core controller that routes device events into button state and actions."""

from __future__ import annotations

import os
from typing import Any

from deck_controller.actions.registry import ActionRegistry, build_default_registry
from deck_controller.actions.types import ActionOptions
from deck_controller.config import DeckConfig, coerce_config
from deck_controller.device_events import (
    DEVICE_EVENT,
    DeviceDriver,
    DeviceEvent,
    DeviceEventSource,
    DeviceEventType,
    DeviceInfo,
)
from deck_controller.executor import ActionExecutor
from deck_controller.integration import StateActionIntegration
from deck_controller.logger import DeckLogger
from deck_controller.navigation import NavigatingStateManager
from deck_controller.persistence import DEFAULT_STATE_DIR
from deck_controller.render_bridge import ButtonRenderer, StateRenderBridge
from utils.settings_store import get_settings


class DeckController:
    def __init__(
        self,
        config: DeckConfig | dict[str, Any] | None = None,
        event_source: DeviceEventSource | None = None,
        driver: DeviceDriver | None = None,
        settings: dict[str, Any] | None = None,
        renderer: ButtonRenderer | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.logger = DeckLogger("CONTROLLER")
        self.event_source = event_source
        self.driver = driver

        self.state_manager = NavigatingStateManager(coerce_config(config))
        if self.settings.get("persist_state"):
            self.state_manager.enable_persistence(
                state_dir=os.getenv("DECK_STATE_DIR") or self.settings.get("state_dir", DEFAULT_STATE_DIR),
                auto_save_interval_ms=int(self.settings.get("auto_save_interval_ms", 30000)),
            )

        self.registry: ActionRegistry = build_default_registry(self.state_manager, event_source)
        self.executor = ActionExecutor(
            max_concurrent=int(self.settings.get("max_concurrent", 10)),
            keep_history=bool(self.settings.get("keep_history", True)),
            max_history_size=int(self.settings.get("max_history_size", 100)),
            default_action_options=ActionOptions.from_settings(self.settings),
        )
        self.integration = StateActionIntegration(
            self.state_manager,
            self.registry,
            self.executor,
            auto_trigger_actions=bool(self.settings.get("auto_trigger_actions", True)),
            update_visual_state=bool(self.settings.get("update_visual_state", True)),
            replay_actions_on_page_activation=bool(
                self.settings.get("replay_actions_on_page_activation", False)
            ),
            restore_delay_ms=int(self.settings.get("restore_delay_ms", 2000)),
        )
        self.render_bridge = StateRenderBridge(self.state_manager, renderer) if renderer else None
        self._unsubscribe = None

    def start(self) -> None:
        """Subscribe to the device event source and restore saved state."""
        if self.event_source is not None and self._unsubscribe is None:
            self._unsubscribe = self.event_source.on(DEVICE_EVENT, self.handle_device_event)
        persistence = self.state_manager.persistence
        if persistence is not None:
            if self.state_manager.has_state():
                self.state_manager.load_state()
            persistence.start_auto_save()
        self.logger.info(f"Deck controller ready ({len(self.state_manager.get_active_pages())} devices)")

    async def stop(self) -> None:
        cancelled = await self.executor.cancel_all()
        if cancelled:
            self.logger.info(f"Cancelled {cancelled} running actions")
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.state_manager.save_state()

    def handle_device_event(self, event: DeviceEvent) -> None:
        """Receive an event from the device layer and update button state."""
        self.logger.deep(f"Received {event.type.value} from {event.device_serial}")
        if event.type in (DeviceEventType.BUTTON_PRESSED, DeviceEventType.BUTTON_RELEASED):
            if event.button_index is None:
                return
            button = self.state_manager.get_button_state(event.device_serial, event.button_index)
            if button is None:
                self.logger.deep(f"No button {event.button_index} on {event.device_serial}")
                return
            button.set_pressed(event.type == DeviceEventType.BUTTON_PRESSED)
        elif event.type == DeviceEventType.DEVICE_CONNECTED:
            self.logger.info(f"Device connected: {event.device_serial}")
        elif event.type == DeviceEventType.DEVICE_DISCONNECTED:
            self.logger.warn(f"Device disconnected: {event.device_serial}")

    def connected_devices(self) -> list[DeviceInfo]:
        if self.driver is None:
            return []
        return self.driver.list_devices()

    def navigate_back(self, device_serial: str) -> bool:
        return self.state_manager.navigate_back(device_serial)

    def activate_page(self, device_serial: str, page_id: str) -> bool:
        return self.state_manager.activate_page(device_serial, page_id, push_to_stack=True)

    def dispose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.render_bridge is not None:
            self.render_bridge.dispose()
        self.integration.dispose()
        self.executor.dispose()
        self.state_manager.dispose()
