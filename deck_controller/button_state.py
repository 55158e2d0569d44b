"""Per-button state: visual, pressed flag, custom state tag."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

from deck_controller.config import ButtonConfig
from utils.event_bus import EventBus

ACTIVE_STATE = "active"


class ButtonStateEvent(str, Enum):
    VISUAL_CHANGED = "visual_changed"
    PRESSED = "pressed"
    RELEASED = "released"
    STATE_CHANGED = "state_changed"


@dataclass
class ButtonVisual:
    text: str | None = None
    image: str | None = None
    color: str | None = None
    text_color: str | None = None
    font_size: int | None = None

    @classmethod
    def from_config(cls, config: ButtonConfig) -> "ButtonVisual":
        return cls(
            text=config.text,
            image=config.image,
            color=config.color,
            text_color=config.text_color,
            font_size=config.font_size,
        )

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


class ButtonState:
    """Live state of one button on the active page of a device.

    Each instance owns its own event bus; ``dispose`` detaches every
    listener once the page is left.
    """

    def __init__(
        self,
        device_serial: str,
        button_index: int,
        page_id: str,
        config: ButtonConfig | None = None,
        visual: ButtonVisual | None = None,
        custom_state: str | None = None,
    ) -> None:
        self.device_serial = device_serial
        self.button_index = button_index
        self.page_id = page_id
        self.config = config or ButtonConfig()
        self.visual = replace(visual) if visual else ButtonVisual.from_config(self.config)
        self._custom_state = custom_state
        self._is_pressed = False
        self._events = EventBus(name="BUTTON")
        self._disposed = False

    def __repr__(self) -> str:
        return (
            f"ButtonState({self.device_serial!r}, {self.button_index}, page={self.page_id!r}, "
            f"state={self._custom_state!r}, pressed={self._is_pressed})"
        )

    @property
    def key(self) -> str:
        return f"{self.device_serial}:{self.button_index}"

    @property
    def is_pressed(self) -> bool:
        return self._is_pressed

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    @property
    def custom_state(self) -> str | None:
        return self._custom_state

    @custom_state.setter
    def custom_state(self, state: str | None) -> None:
        if self._custom_state == state:
            return
        old_state = self._custom_state
        self._custom_state = state
        self._events.emit(
            ButtonStateEvent.STATE_CHANGED,
            {"old_state": old_state, "new_state": state, "button": self},
        )
        image = self.config.state_images.get(state) if state else None
        if image:
            self.update_visual(image=image)

    def update_visual(self, **changes: Any) -> None:
        old_visual = replace(self.visual)
        self.visual = replace(self.visual, **changes)
        self._events.emit(
            ButtonStateEvent.VISUAL_CHANGED,
            {"old_visual": old_visual, "new_visual": self.visual, "button": self},
        )

    def set_pressed(self, pressed: bool) -> None:
        if self._is_pressed == pressed:
            return
        self._is_pressed = pressed
        if pressed:
            self._events.emit(ButtonStateEvent.PRESSED, {"button": self})
        else:
            self._events.emit(ButtonStateEvent.RELEASED, {"button": self})

        # Stateful buttons flip on release whether or not an action is bound.
        if not pressed and self.config.stateful:
            self.custom_state = None if self._custom_state == ACTIVE_STATE else ACTIVE_STATE

    def reset(self) -> None:
        """Drop pressed/custom state and go back to the configured look."""
        self._is_pressed = False
        self._custom_state = None
        self.visual = ButtonVisual.from_config(self.config)
        self._events.emit(
            ButtonStateEvent.VISUAL_CHANGED,
            {"old_visual": None, "new_visual": self.visual, "button": self},
        )

    def on(self, event: ButtonStateEvent, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self._events.on(event, handler)

    def once(self, event: ButtonStateEvent, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self._events.once(event, handler)

    def off(self, event: ButtonStateEvent, handler: Callable[[dict], Any]) -> None:
        self._events.off(event, handler)

    def has_listeners(self, event: ButtonStateEvent | None = None) -> bool:
        return self._events.has_listeners(event)

    def dispose(self) -> None:
        self._events.dispose()
        self._disposed = True
