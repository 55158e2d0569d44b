"""Device event types and the driver-facing interfaces."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from utils.event_bus import EventBus
from utils.settings_store import deep_log

DEVICE_EVENT = "device_event"


class DeviceEventType(str, Enum):
    DEVICE_CONNECTED = "device_connected"
    DEVICE_DISCONNECTED = "device_disconnected"
    BUTTON_PRESSED = "button_pressed"
    BUTTON_RELEASED = "button_released"
    DIAL_ROTATED = "dial_rotated"
    DIAL_PRESSED = "dial_pressed"
    DIAL_RELEASED = "dial_released"

    @property
    def is_button_event(self) -> bool:
        return self in (DeviceEventType.BUTTON_PRESSED, DeviceEventType.BUTTON_RELEASED)

    @property
    def is_dial_event(self) -> bool:
        return self in (
            DeviceEventType.DIAL_ROTATED,
            DeviceEventType.DIAL_PRESSED,
            DeviceEventType.DIAL_RELEASED,
        )


DEVICE_EVENT_NAMES = {
    DeviceEventType.BUTTON_PRESSED: "Button Press",
    DeviceEventType.BUTTON_RELEASED: "Button Release",
    DeviceEventType.DIAL_PRESSED: "Dial Press",
    DeviceEventType.DIAL_RELEASED: "Dial Release",
    DeviceEventType.DIAL_ROTATED: "Dial Rotation",
    DeviceEventType.DEVICE_CONNECTED: "Device Connected",
    DeviceEventType.DEVICE_DISCONNECTED: "Device Disconnected",
}


@dataclass
class DeviceEvent:
    type: DeviceEventType
    device_serial: str
    timestamp: float = field(default_factory=time.time)
    button_index: int | None = None
    dial_index: int | None = None
    rotation: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type.value,
            "device_serial": self.device_serial,
            "timestamp": self.timestamp,
        }
        for key in ("button_index", "dial_index", "rotation"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass
class DeviceInfo:
    serial: str
    name: str = "Macro Pad"
    button_count: int = 15
    dial_count: int = 0
    connected: bool = True


class DeviceEventSource(Protocol):
    """Anything that publishes DeviceEvent objects under DEVICE_EVENT."""

    def on(self, event: str, handler: Callable[[DeviceEvent], Any]) -> Callable[[], None]: ...

    def off(self, event: str, handler: Callable[[DeviceEvent], Any]) -> None: ...


class DeviceDriver(Protocol):
    def list_devices(self) -> list[DeviceInfo]: ...

    def get_device(self, serial: str) -> DeviceInfo | None: ...


class SimulatedDeck:
    """In-process stand-in for real hardware.

    Implements both DeviceDriver and DeviceEventSource; tests and the
    console entry point drive it with ``press``/``release``/``rotate``.
    """

    def __init__(self, devices: list[DeviceInfo] | None = None) -> None:
        self._devices: dict[str, DeviceInfo] = {d.serial: d for d in devices or []}
        self._events = EventBus(name="DEVICE")

    def on(self, event: str, handler: Callable[[DeviceEvent], Any]) -> Callable[[], None]:
        return self._events.on(event, handler)

    def off(self, event: str, handler: Callable[[DeviceEvent], Any]) -> None:
        self._events.off(event, handler)

    def has_listeners(self, event: str = DEVICE_EVENT) -> bool:
        return self._events.has_listeners(event)

    def list_devices(self) -> list[DeviceInfo]:
        return [device for device in self._devices.values() if device.connected]

    def get_device(self, serial: str) -> DeviceInfo | None:
        return self._devices.get(serial)

    def emit_event(self, event: DeviceEvent) -> None:
        deep_log(f"[DEVICE][DEEP] {event.to_dict()}")
        # Handlers receive the event object itself, not a payload dict.
        self._events.emit(DEVICE_EVENT, event)

    def connect(self, device: DeviceInfo) -> None:
        device.connected = True
        self._devices[device.serial] = device
        self.emit_event(DeviceEvent(DeviceEventType.DEVICE_CONNECTED, device.serial))

    def disconnect(self, serial: str) -> None:
        device = self._devices.get(serial)
        if device is not None:
            device.connected = False
        self.emit_event(DeviceEvent(DeviceEventType.DEVICE_DISCONNECTED, serial))

    def press(self, serial: str, button_index: int) -> None:
        self.emit_event(DeviceEvent(DeviceEventType.BUTTON_PRESSED, serial, button_index=button_index))

    def release(self, serial: str, button_index: int) -> None:
        self.emit_event(DeviceEvent(DeviceEventType.BUTTON_RELEASED, serial, button_index=button_index))

    def tap(self, serial: str, button_index: int) -> None:
        self.press(serial, button_index)
        self.release(serial, button_index)

    def press_dial(self, serial: str, dial_index: int) -> None:
        self.emit_event(DeviceEvent(DeviceEventType.DIAL_PRESSED, serial, dial_index=dial_index))

    def release_dial(self, serial: str, dial_index: int) -> None:
        self.emit_event(DeviceEvent(DeviceEventType.DIAL_RELEASED, serial, dial_index=dial_index))

    def rotate(self, serial: str, dial_index: int, rotation: int) -> None:
        self.emit_event(
            DeviceEvent(DeviceEventType.DIAL_ROTATED, serial, dial_index=dial_index, rotation=rotation)
        )

    def dispose(self) -> None:
        self._events.dispose()
