"""Tests for waiting on device events."""

import asyncio

import pytest

from deck_controller.actions.device_event import DeviceEventAction
from deck_controller.actions.types import ActionContext, ActionStatus
from deck_controller.button_state import ButtonState
from deck_controller.config import ButtonConfig
from deck_controller.device_events import DeviceEvent, DeviceEventType, SimulatedDeck
from deck_controller.errors import ActionConfigError, ActionTimeoutError


class TestDeviceEventAction:
    """Matching, timeouts and cancellation."""

    def test_requires_event_source(self):
        """Building without a source is a configuration error."""
        with pytest.raises(ActionConfigError):
            DeviceEventAction({"event_type": "button_pressed"})

    def test_button_filter_ignores_dial_events(self):
        """The button filter only constrains button events."""
        action = DeviceEventAction(
            {"event_type": "dial_rotated", "button_index": 3, "dial_index": 1}, SimulatedDeck()
        )

        assert action.matches(DeviceEvent(DeviceEventType.DIAL_ROTATED, "DEV1", dial_index=1, rotation=2))
        assert not action.matches(DeviceEvent(DeviceEventType.DIAL_ROTATED, "DEV1", dial_index=2))
        assert not action.matches(DeviceEvent(DeviceEventType.DIAL_PRESSED, "DEV1", dial_index=1))

    def test_serial_filter(self):
        """A configured serial rejects other devices."""
        action = DeviceEventAction({"event_type": "button_pressed", "device_serial": "DEV1"}, SimulatedDeck())

        assert action.matches(DeviceEvent(DeviceEventType.BUTTON_PRESSED, "DEV1", button_index=0))
        assert not action.matches(DeviceEvent(DeviceEventType.BUTTON_PRESSED, "DEV2", button_index=0))

    @pytest.mark.asyncio
    async def test_times_out(self):
        """No matching event within timeout_ms is a timeout failure."""
        deck = SimulatedDeck()
        action = DeviceEventAction({"event_type": "button_pressed", "timeout_ms": 100}, deck)

        result = await asyncio.wait_for(action.execute(ActionContext()), timeout=2)

        assert result.status == ActionStatus.FAILURE
        assert isinstance(result.error, ActionTimeoutError)
        assert "Timed out waiting for" in result.message
        assert not deck.has_listeners()

    @pytest.mark.asyncio
    async def test_first_matching_event_wins(self, until):
        """Only an event passing every filter completes the wait."""
        deck = SimulatedDeck()
        button = ButtonState("DEV1", 0, "main", config=ButtonConfig(text="Wait"))
        action = DeviceEventAction({"event_type": "button_pressed", "button_index": 2}, deck)
        running = asyncio.ensure_future(action.execute(ActionContext(button_state=button)))
        await until(deck.has_listeners)

        assert button.visual.text == "Waiting for Button Press..."
        deck.press("DEV1", 3)
        await asyncio.sleep(0)
        assert not running.done()
        deck.press("DEV1", 2)
        result = await asyncio.wait_for(running, timeout=2)

        assert result.ok
        assert result.data["event_type"] == "button_pressed"
        assert result.data["event"]["button_index"] == 2
        assert button.visual.text == "Button Press!"
        assert button.visual.color == "#007700"

    @pytest.mark.asyncio
    async def test_cancel_restores_button(self, until):
        """Cancelling ends the wait and puts the original visual back."""
        deck = SimulatedDeck()
        button = ButtonState("DEV1", 0, "main", config=ButtonConfig(text="Wait", color="#101010"))
        action = DeviceEventAction({"event_type": "dial_pressed"}, deck)
        running = asyncio.ensure_future(action.execute(ActionContext(button_state=button)))
        await until(deck.has_listeners)

        assert await action.cancel() is True
        result = await asyncio.wait_for(running, timeout=2)

        assert result.status == ActionStatus.CANCELLED
        assert result.reason == "Action cancelled by user"
        assert button.visual.text == "Wait"
        assert button.visual.color == "#101010"
        assert not deck.has_listeners()
