"""State manager with per-device navigation stacks and snapshot hooks."""

from __future__ import annotations

import time
from enum import Enum
from pathlib import Path
from typing import Any

from deck_controller.config import DeckConfig
from deck_controller.persistence import StatePersistence
from deck_controller.state_manager import StateManager
from utils.log_utils import tprint


class NavigationEvent(str, Enum):
    NAVIGATION_UPDATED = "navigation_updated"
    STATE_SAVED = "state_saved"
    STATE_LOADED = "state_loaded"


class NavigatingStateManager(StateManager):
    """StateManager that remembers where each device came from.

    Forward activations push the page being left only when the caller opts
    in with ``push_to_stack``; ``navigate_back`` pops without re-pushing.
    Stacks are unbounded and cleared by ``reset``.
    """

    def __init__(
        self,
        config: DeckConfig | dict[str, Any] | None = None,
        persistence_options: dict[str, Any] | None = None,
    ) -> None:
        self._history: dict[str, list[str]] = {}
        self._navigation_enabled = True
        self._persistence: StatePersistence | None = None
        super().__init__(config)
        if persistence_options is not None:
            self.enable_persistence(**persistence_options)

    @property
    def persistence(self) -> StatePersistence | None:
        return self._persistence

    @property
    def navigation_enabled(self) -> bool:
        return self._navigation_enabled

    def enable_navigation(self) -> None:
        self._navigation_enabled = True

    def disable_navigation(self) -> None:
        self._navigation_enabled = False
        self._history.clear()

    def get_device_navigation_history(self, device_serial: str) -> list[str]:
        return list(self._history.get(device_serial, []))

    def get_navigation_history(self) -> dict[str, list[str]]:
        return {serial: list(stack) for serial, stack in self._history.items()}

    def activate_page(
        self,
        device_serial: str,
        page_id: str,
        push_to_stack: bool = False,
        **_options: Any,
    ) -> bool:
        current = self.get_active_page(device_serial)
        if not self.set_active_page(device_serial, page_id):
            return False

        if self._navigation_enabled and push_to_stack and current and current != page_id:
            stack = self._history.setdefault(device_serial, [])
            stack.append(current)
            self._emit_navigation(device_serial)

        self._auto_save()
        return True

    def navigate_back(self, device_serial: str) -> bool:
        if not self._navigation_enabled:
            return False
        stack = self._history.get(device_serial)
        if not stack:
            return False
        previous = stack.pop()
        self._emit_navigation(device_serial)
        activated = self.set_active_page(device_serial, previous)
        self._auto_save()
        return activated

    def _emit_navigation(self, device_serial: str) -> None:
        self._events.emit(
            NavigationEvent.NAVIGATION_UPDATED,
            {"device_serial": device_serial, "history": self.get_device_navigation_history(device_serial)},
        )

    def enable_persistence(self, **options: Any) -> StatePersistence:
        if self._persistence is not None:
            self._persistence.dispose()
        self._persistence = StatePersistence(self, **options)
        self._persistence.start_auto_save()
        return self._persistence

    def disable_persistence(self) -> None:
        if self._persistence is not None:
            self._persistence.dispose()
            self._persistence = None

    def save_state(self, path: str | Path | None = None) -> bool:
        if self._persistence is None:
            return False
        saved = self._persistence.save_state(path)
        if saved is None:
            return False
        self._events.emit(NavigationEvent.STATE_SAVED, {"path": str(saved), "timestamp": time.time()})
        return True

    def load_state(self, path: str | Path | None = None) -> bool:
        if self._persistence is None:
            return False
        state = self._persistence.load_state(path)
        if not state:
            return False
        self.apply_state(state)
        self._events.emit(
            NavigationEvent.STATE_LOADED,
            {"path": str(self._persistence.resolve_path(path)), "timestamp": time.time()},
        )
        return True

    def has_state(self, path: str | Path | None = None) -> bool:
        if self._persistence is None:
            return False
        return self._persistence.has_state(path)

    def apply_state(self, state: dict[str, Any]) -> None:
        """Restore active pages, then stacks, then per-button state."""
        if self._persistence is None:
            return
        for device_page in state.get("device_pages") or []:
            if device_page.get("is_active"):
                self.set_active_page(device_page["device_serial"], device_page["page_id"])

        history = state.get("navigation_history")
        if isinstance(history, dict):
            self._history = {
                serial: list(stack) for serial, stack in history.items() if isinstance(stack, list)
            }
        self._persistence.apply_state(state)

    def _auto_save(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save_state()
        except OSError as exc:
            tprint(f"[PERSIST][ERROR] Auto-save after navigation failed: {exc}")

    def reset(self) -> None:
        super().reset()
        self._history.clear()

    def dispose(self) -> None:
        self.disable_persistence()
        super().dispose()
