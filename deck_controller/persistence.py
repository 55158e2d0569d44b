"""JSON snapshots of button/page/navigation state."""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Any, Protocol

from deck_controller.button_state import ButtonState
from utils.file_utils import delete_file, load_json, save_json
from utils.log_utils import tprint

SNAPSHOT_VERSION = "1.0.0"
DEFAULT_STATE_DIR = "~/.deck_controller"
DEFAULT_STATE_FILE = "state.json"
DEFAULT_AUTO_SAVE_INTERVAL_MS = 30000

# Colors a button falls back to when its config leaves them unset.
_DEFAULT_COLOR = "#000000"
_DEFAULT_TEXT_COLOR = "#FFFFFF"


class PersistableStateManager(Protocol):
    def get_all_buttons(self) -> list[ButtonState]: ...

    def get_active_pages(self) -> dict[str, str]: ...

    def get_navigation_history(self) -> dict[str, list[str]]: ...


class InvalidSnapshotError(ValueError):
    pass


class StatePersistence:
    """Collects, writes, reads and re-applies state snapshots.

    Only stateful buttons and buttons carrying a custom state are stored,
    together with the visual values that differ from their config. Every
    device's active page is recorded even when none of its buttons are.

    Args:
        state_manager: Source of live buttons, active pages and stacks.
        state_dir: Directory holding the snapshot file.
        state_file: Snapshot file name.
        pretty_print: Indent the JSON output.
        auto_save_interval_ms: Period of background saves; 0 disables.
    """

    def __init__(
        self,
        state_manager: PersistableStateManager,
        state_dir: str | Path = DEFAULT_STATE_DIR,
        state_file: str = DEFAULT_STATE_FILE,
        pretty_print: bool = False,
        auto_save_interval_ms: int = DEFAULT_AUTO_SAVE_INTERVAL_MS,
    ) -> None:
        self._state_manager = state_manager
        self.state_path = Path(state_dir).expanduser() / state_file
        self.pretty_print = pretty_print
        self.auto_save_interval_ms = auto_save_interval_ms
        self._enabled = True
        self._auto_save_task: asyncio.Task | None = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self.stop_auto_save()

    def start_auto_save(self) -> bool:
        """Start periodic saving on the running loop.

        Returns False when auto-save is off, already running or there is
        no running loop yet.
        """
        if not self._enabled or self.auto_save_interval_ms <= 0:
            return False
        if self._auto_save_task is not None and not self._auto_save_task.done():
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        self._auto_save_task = loop.create_task(self._auto_save_loop())
        return True

    def stop_auto_save(self) -> None:
        if self._auto_save_task is not None:
            self._auto_save_task.cancel()
            self._auto_save_task = None

    async def _auto_save_loop(self) -> None:
        interval = self.auto_save_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                self.save_state()
            except OSError as exc:
                tprint(f"[PERSIST][ERROR] Auto-save failed: {exc}")

    def resolve_path(self, path: str | Path | None = None) -> Path:
        return Path(path).expanduser() if path else self.state_path

    def save_state(self, path: str | Path | None = None) -> Path | None:
        if not self._enabled:
            return None
        target = self.resolve_path(path)
        save_json(target, self.collect_state(), pretty=self.pretty_print)
        return target

    def load_state(self, path: str | Path | None = None) -> dict[str, Any] | None:
        """Read a snapshot; None when disabled, missing or unreadable."""
        if not self._enabled:
            return None
        target = self.resolve_path(path)
        if not target.exists():
            return None
        try:
            return load_json(target)
        except (OSError, ValueError) as exc:
            tprint(f"[PERSIST][ERROR] Could not read {target}: {exc}")
            return None

    def has_state(self, path: str | Path | None = None) -> bool:
        return self.resolve_path(path).exists()

    def delete_state(self, path: str | Path | None = None) -> bool:
        return delete_file(self.resolve_path(path))

    def collect_state(self) -> dict[str, Any]:
        active_pages = self._state_manager.get_active_pages()
        grouped: dict[tuple[str, str], list[dict[str, Any]]] = {
            (serial, page_id): [] for serial, page_id in active_pages.items()
        }
        for button in self._state_manager.get_all_buttons():
            if not button.config.stateful and button.custom_state is None:
                continue
            key = (button.device_serial, button.page_id)
            grouped.setdefault(key, []).append(_button_snapshot(button))

        device_pages = [
            {
                "device_serial": serial,
                "page_id": page_id,
                "buttons": buttons,
                "is_active": active_pages.get(serial) == page_id,
            }
            for (serial, page_id), buttons in grouped.items()
        ]
        history = self._state_manager.get_navigation_history()
        return {
            "version": SNAPSHOT_VERSION,
            "timestamp": time.time(),
            "device_pages": device_pages,
            "navigation_history": {serial: list(stack) for serial, stack in history.items()},
        }

    def apply_state(self, state: dict[str, Any]) -> int:
        """Push stored custom states and visual overrides onto live buttons.

        Returns the number of buttons touched; unknown buttons are skipped.
        """
        if not isinstance(state, dict):
            raise InvalidSnapshotError("Invalid state format")
        device_pages = state.get("device_pages")
        if not isinstance(device_pages, list):
            raise InvalidSnapshotError("Invalid state: missing device_pages list")

        live = {
            (button.device_serial, button.button_index): button
            for button in self._state_manager.get_all_buttons()
        }
        applied = 0
        for device_page in device_pages:
            for data in device_page.get("buttons") or []:
                button = live.get((data.get("device_serial"), data.get("button_index")))
                if button is None or button.page_id != data.get("page_id", button.page_id):
                    continue
                if data.get("custom_state") is not None:
                    button.custom_state = data["custom_state"]
                visual = {
                    key: value
                    for key, value in (data.get("visual") or {}).items()
                    if key in {"text", "color", "text_color", "image"}
                }
                if visual:
                    button.update_visual(**visual)
                applied += 1
        return applied

    def dispose(self) -> None:
        self.stop_auto_save()


def _button_snapshot(button: ButtonState) -> dict[str, Any]:
    config = button.config
    visual: dict[str, Any] = {}
    if button.visual.text != config.text:
        visual["text"] = button.visual.text
    if button.visual.color is not None and button.visual.color != (config.color or _DEFAULT_COLOR):
        visual["color"] = button.visual.color
    if button.visual.text_color is not None and button.visual.text_color != (
        config.text_color or _DEFAULT_TEXT_COLOR
    ):
        visual["text_color"] = button.visual.text_color
    if button.visual.image != config.image:
        visual["image"] = button.visual.image
    return {
        "button_index": button.button_index,
        "device_serial": button.device_serial,
        "page_id": button.page_id,
        "custom_state": button.custom_state,
        "is_pressed": button.is_pressed,
        "visual": visual,
    }
