"""Forward button visuals to whatever draws them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from deck_controller.button_state import ButtonState, ButtonStateEvent, ButtonVisual
from deck_controller.state_manager import StateManager, StateManagerEvent
from utils.log_utils import log

RGB = tuple[int, int, int]


def hex_to_rgb(color: str | None) -> RGB | None:
    """'#RRGGBB' (or 'RRGGBB') to an (r, g, b) tuple; None when unparseable."""
    if not color:
        return None
    value = color.lstrip("#")
    if len(value) != 6:
        return None
    try:
        return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)
    except ValueError:
        return None


@dataclass
class RenderProps:
    text: str | None = None
    image_path: str | None = None
    background_color: RGB | None = None
    text_color: RGB | None = None
    font_size: int | None = None

    @classmethod
    def from_visual(cls, visual: ButtonVisual) -> "RenderProps":
        return cls(
            text=visual.text or None,
            image_path=visual.image or None,
            background_color=hex_to_rgb(visual.color),
            text_color=hex_to_rgb(visual.text_color),
            font_size=visual.font_size or None,
        )


class ButtonRenderer(Protocol):
    def update_button(self, device_serial: str, button_index: int, props: RenderProps) -> Any: ...

    def set_button_color(self, device_serial: str, button_index: int, rgb: RGB) -> Any: ...


class ConsoleRenderer:
    """Renderer that logs what a real display would show."""

    def __init__(self) -> None:
        self.frames: dict[tuple[str, int], RenderProps] = {}

    def update_button(self, device_serial: str, button_index: int, props: RenderProps) -> None:
        self.frames[(device_serial, button_index)] = props
        color = f" bg={props.background_color}" if props.background_color else ""
        log("RENDER", f"{device_serial}[{button_index}] {props.text or ''!r}{color}")

    def set_button_color(self, device_serial: str, button_index: int, rgb: RGB) -> None:
        log("RENDER", f"{device_serial}[{button_index}] color={rgb}")


class StateRenderBridge:
    """Renders every live button once, then again on each visual change."""

    def __init__(self, state_manager: StateManager, renderer: ButtonRenderer) -> None:
        self.state_manager = state_manager
        self.renderer = renderer
        self._unsubscribers: dict[str, Any] = {}
        self._cleanup = [state_manager.on(StateManagerEvent.BUTTON_ADDED, self._on_button_added)]
        for button in state_manager.get_all_buttons():
            self._track(button)

    def _on_button_added(self, payload: dict) -> None:
        self._track(payload["button_state"])

    def _track(self, button: ButtonState) -> None:
        def _on_visual(_payload: dict) -> None:
            self.render(button)

        self._unsubscribers[button.key] = button.on(ButtonStateEvent.VISUAL_CHANGED, _on_visual)
        self.render(button)

    def render(self, button: ButtonState) -> None:
        props = RenderProps.from_visual(button.visual)
        if props.text is None and props.image_path is None and props.background_color is not None:
            self.renderer.set_button_color(button.device_serial, button.button_index, props.background_color)
            return
        self.renderer.update_button(button.device_serial, button.button_index, props)

    def dispose(self) -> None:
        for unsubscribe in self._cleanup:
            unsubscribe()
        for unsubscribe in self._unsubscribers.values():
            unsubscribe()
        self._unsubscribers.clear()
