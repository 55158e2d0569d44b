"""Page/state manager: which page is active per device and its live buttons."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from deck_controller.button_state import ButtonState
from deck_controller.config import DeckConfig, PageConfig, coerce_config
from utils.event_bus import EventBus
from utils.settings_store import deep_log


class StateManagerEvent(str, Enum):
    BUTTON_ADDED = "button_added"
    BUTTON_REMOVED = "button_removed"
    PAGE_ACTIVATED = "page_activated"
    STATE_RESET = "state_reset"
    CONFIGURATION_CHANGED = "configuration_changed"


class StateManager:
    """Owns every live ButtonState.

    The live buttons of a device are always exactly the buttons of its
    active page: switching pages disposes the old buttons before the new
    ones are created.
    """

    def __init__(self, config: DeckConfig | dict[str, Any] | None = None) -> None:
        self.config = coerce_config(config)
        self._events = EventBus(name="STATE")
        self._buttons: dict[str, dict[int, ButtonState]] = {}
        self._active_pages: dict[str, str] = {}
        self._initialize_from_config()

    def _initialize_from_config(self) -> None:
        self.reset()
        for serial, device in self.config.devices.items():
            page_id = device.initial_page()
            if page_id is None:
                continue
            self._active_pages[serial] = page_id
            self._materialize_page(serial, page_id, device.pages[page_id])

    def _materialize_page(self, serial: str, page_id: str, page: PageConfig) -> None:
        for index, button_config in page.buttons.items():
            self.add_button(ButtonState(serial, int(index), page_id, config=button_config))

    def _clear(self) -> None:
        for device_buttons in self._buttons.values():
            for button in device_buttons.values():
                button.dispose()
        self._buttons.clear()
        self._active_pages.clear()

    def add_button(self, button_state: ButtonState) -> None:
        device_buttons = self._buttons.setdefault(button_state.device_serial, {})
        existing = device_buttons.get(button_state.button_index)
        if existing is not None and existing is not button_state:
            existing.dispose()
        device_buttons[button_state.button_index] = button_state
        self._events.emit(StateManagerEvent.BUTTON_ADDED, {"button_state": button_state})

    def remove_button(self, device_serial: str, button_index: int) -> bool:
        device_buttons = self._buttons.get(device_serial)
        if not device_buttons or button_index not in device_buttons:
            return False
        button = device_buttons.pop(button_index)
        button.dispose()
        if not device_buttons:
            self._buttons.pop(device_serial, None)
        self._events.emit(
            StateManagerEvent.BUTTON_REMOVED,
            {"device_serial": device_serial, "button_index": button_index},
        )
        return True

    def get_button_state(self, device_serial: str, button_index: int) -> ButtonState | None:
        return self._buttons.get(device_serial, {}).get(button_index)

    def get_device_buttons(self, device_serial: str) -> dict[int, ButtonState]:
        return dict(self._buttons.get(device_serial, {}))

    def get_page_buttons(self, device_serial: str, page_id: str) -> list[ButtonState]:
        return [
            button
            for button in self._buttons.get(device_serial, {}).values()
            if button.page_id == page_id
        ]

    def get_all_buttons(self) -> list[ButtonState]:
        return [button for buttons in self._buttons.values() for button in buttons.values()]

    def get_active_page(self, device_serial: str) -> str | None:
        return self._active_pages.get(device_serial)

    def get_active_pages(self) -> dict[str, str]:
        return dict(self._active_pages)

    def has_page(self, device_serial: str, page_id: str) -> bool:
        device = self.config.devices.get(device_serial)
        return device is not None and page_id in device.pages

    def get_page_ids(self, device_serial: str) -> list[str]:
        device = self.config.devices.get(device_serial)
        return list(device.pages) if device else []

    def set_active_page(self, device_serial: str, page_id: str) -> bool:
        """Switch the device to page_id.

        Returns False (no change) for an unknown page and True without any
        mutation when the page is already active.
        """
        if not self.has_page(device_serial, page_id):
            deep_log(f"[STATE][DEEP] Unknown page {page_id!r} for device {device_serial}")
            return False
        current = self._active_pages.get(device_serial)
        if current == page_id:
            return True

        if current is not None:
            for button in self.get_page_buttons(device_serial, current):
                self.remove_button(device_serial, button.button_index)

        self._active_pages[device_serial] = page_id
        page = self.config.devices[device_serial].pages[page_id]
        self._materialize_page(device_serial, page_id, page)
        self._events.emit(
            StateManagerEvent.PAGE_ACTIVATED,
            {"device_serial": device_serial, "page_id": page_id, "previous_page_id": current},
        )
        return True

    def activate_page(self, device_serial: str, page_id: str, **_options: Any) -> bool:
        return self.set_active_page(device_serial, page_id)

    def reset(self) -> None:
        """Dispose every live button and forget active pages."""
        self._clear()
        self._events.emit(StateManagerEvent.STATE_RESET, {})

    def reset_config(self) -> None:
        """Rebuild default pages from the current config."""
        self._initialize_from_config()

    def update_config(self, new_config: DeckConfig | dict[str, Any]) -> None:
        old_config = self.config
        self.config = coerce_config(new_config)
        self._initialize_from_config()
        self._events.emit(
            StateManagerEvent.CONFIGURATION_CHANGED,
            {"old_config": old_config, "new_config": self.config},
        )

    def on(self, event: str, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self._events.on(event, handler)

    def once(self, event: str, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self._events.once(event, handler)

    def off(self, event: str, handler: Callable[[dict], Any]) -> None:
        self._events.off(event, handler)

    def dispose(self) -> None:
        self.reset()
        self._events.dispose()
