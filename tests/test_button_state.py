"""Tests for ButtonState events and the stateful toggle."""

from unittest.mock import Mock

from deck_controller.button_state import ACTIVE_STATE, ButtonState, ButtonStateEvent, ButtonVisual
from deck_controller.config import ButtonConfig


def make_button(**config) -> ButtonState:
    return ButtonState("DEV1", 0, "main", config=ButtonConfig(**config))


class TestButtonVisual:
    """Visual snapshots."""

    def test_from_config_copies_visual_keys(self):
        """Only the visual keys of the config make it into the visual."""
        visual = ButtonVisual.from_config(ButtonConfig(text="A", color="#111111", type="inline_code"))

        assert visual.to_dict() == {"text": "A", "color": "#111111"}


class TestButtonState:
    """Per-button events."""

    def test_update_visual_emits_old_and_new(self):
        """VISUAL_CHANGED carries both snapshots and the button."""
        button = make_button(text="A")
        handler = Mock()
        button.on(ButtonStateEvent.VISUAL_CHANGED, handler)

        button.update_visual(text="B", color="#FF0000")

        payload = handler.call_args[0][0]
        assert payload["old_visual"].text == "A"
        assert payload["new_visual"].text == "B"
        assert payload["new_visual"].color == "#FF0000"
        assert payload["button"] is button

    def test_pressed_and_released_fire_once_per_edge(self):
        """Repeated set_pressed with the same value is a no-op."""
        button = make_button()
        pressed, released = Mock(), Mock()
        button.on(ButtonStateEvent.PRESSED, pressed)
        button.on(ButtonStateEvent.RELEASED, released)

        button.set_pressed(True)
        button.set_pressed(True)
        button.set_pressed(False)

        assert pressed.call_count == 1
        assert released.call_count == 1
        assert button.is_pressed is False

    def test_stateful_button_toggles_on_release(self):
        """Each release flips a stateful button between None and active."""
        button = make_button(stateful=True)
        changes = []
        button.on(ButtonStateEvent.STATE_CHANGED, lambda p: changes.append((p["old_state"], p["new_state"])))

        button.set_pressed(True)
        assert button.custom_state is None
        button.set_pressed(False)
        assert button.custom_state == ACTIVE_STATE
        button.set_pressed(True)
        button.set_pressed(False)

        assert button.custom_state is None
        assert changes == [(None, ACTIVE_STATE), (ACTIVE_STATE, None)]

    def test_plain_button_does_not_toggle(self):
        """Non-stateful buttons keep their custom state on release."""
        button = make_button()
        button.set_pressed(True)
        button.set_pressed(False)

        assert button.custom_state is None

    def test_state_image_follows_custom_state(self):
        """Setting a state with a configured image swaps the image."""
        button = make_button(image="off.png", state_images={"active": "on.png"})

        button.custom_state = "active"

        assert button.visual.image == "on.png"

    def test_setting_same_state_emits_nothing(self):
        """STATE_CHANGED only fires on an actual change."""
        button = make_button()
        handler = Mock()
        button.on(ButtonStateEvent.STATE_CHANGED, handler)

        button.custom_state = None

        handler.assert_not_called()

    def test_reset_restores_config_visual(self):
        """reset() drops runtime overrides and custom state."""
        button = make_button(text="A", color="#000011")
        button.update_visual(text="X", color="#FF0000")
        button.custom_state = "busy"
        handler = Mock()
        button.on(ButtonStateEvent.VISUAL_CHANGED, handler)

        button.reset()

        assert button.visual.text == "A"
        assert button.visual.color == "#000011"
        assert button.custom_state is None
        assert handler.call_args[0][0]["old_visual"] is None

    def test_dispose_detaches_listeners(self):
        """A disposed button reports so and has no listeners left."""
        button = make_button()
        button.on(ButtonStateEvent.PRESSED, Mock())

        button.dispose()

        assert button.is_disposed
        assert not button.has_listeners()

    def test_key_combines_serial_and_index(self):
        """key identifies the slot across pages."""
        assert ButtonState("ABC", 7, "p").key == "ABC:7"
