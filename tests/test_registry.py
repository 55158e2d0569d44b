"""Tests for ActionRegistry and the default factories."""

import pytest

from deck_controller.actions.registry import ActionRegistry, build_default_registry
from deck_controller.device_events import SimulatedDeck
from deck_controller.errors import (
    DuplicateActionTypeError,
    InvalidActionConfigError,
    UnregisteredActionTypeError,
)
from deck_controller.navigation import NavigatingStateManager

MINIMAL_CONFIGS = {
    "launch_app": {"path": "/usr/bin/true"},
    "execute_script": {"command": "echo"},
    "http_request": {"url": "http://localhost:8080/ping"},
    "inline_code": {"code": "return 1"},
    "page_switch": {"page_id": "main"},
    "device_event": {"event_type": "button_pressed"},
}


@pytest.fixture
def registry(deck_config):
    return build_default_registry(NavigatingStateManager(deck_config), SimulatedDeck())


class TestActionRegistry:
    """Factory bookkeeping."""

    def test_default_registry_has_all_types(self, registry):
        """Every built-in action type is registered."""
        assert sorted(registry.get_types()) == sorted(MINIMAL_CONFIGS)
        assert len(registry.get_factories()) == 6

    def test_device_event_needs_a_source(self):
        """Without an event source the device_event type is absent."""
        registry = build_default_registry()

        assert not registry.has_factory("device_event")
        assert registry.has_factory("inline_code")

    def test_duplicate_registration_is_rejected(self, registry):
        """A second factory for the same type raises."""
        with pytest.raises(DuplicateActionTypeError):
            registry.register(registry.get_factory("inline_code"))

    def test_unregister(self, registry):
        """unregister reports whether a factory was removed."""
        assert registry.unregister("inline_code") is True
        assert registry.unregister("inline_code") is False
        assert registry.get_factory("inline_code") is None

    def test_empty_configs_are_invalid(self, registry):
        """Every type needs at least its identifying field."""
        for action_type in registry.get_types():
            assert registry.validate_config(action_type, {}) is False, action_type

    def test_minimal_configs_are_valid(self, registry):
        """The minimal config of each type validates."""
        for action_type, config in MINIMAL_CONFIGS.items():
            assert registry.validate_config(action_type, config) is True, action_type

    def test_blank_strings_are_invalid(self, registry):
        """Whitespace-only identifiers are rejected."""
        assert registry.validate_config("launch_app", {"path": "   "}) is False
        assert registry.validate_config("inline_code", {"code": ""}) is False

    def test_wrong_types_are_invalid(self, registry):
        """Values are not coerced between types."""
        assert registry.validate_config("execute_script", {"command": "echo", "timeout_ms": "10"}) is False
        assert registry.validate_config("http_request", {"url": "http://x", "method": "FETCH"}) is False
        assert registry.validate_config("device_event", {"event_type": "explode"}) is False

    def test_method_is_case_insensitive(self, registry):
        """HTTP methods are normalized to upper case."""
        action = registry.create_action("http_request", {"url": "http://x", "method": "post"})

        assert action.config.method == "POST"

    def test_unregistered_type_raises(self, registry):
        """Lookups for unknown types raise with the type in the message."""
        with pytest.raises(UnregisteredActionTypeError, match='No factory registered for action type "nope"'):
            registry.validate_config("nope", {})
        with pytest.raises(UnregisteredActionTypeError):
            registry.create_action("nope", {})

    def test_create_rejects_invalid_config(self, registry):
        """create_action validates before building."""
        with pytest.raises(InvalidActionConfigError, match='Invalid configuration for action type "page_switch"'):
            registry.create_action("page_switch", {})

    def test_create_builds_fresh_actions(self, registry):
        """Each call returns a new action of the requested type."""
        first = registry.create_action("inline_code", {"code": "return 1", "text": "ignored"})
        second = registry.create_action("inline_code", {"code": "return 1"})

        assert first.get_type() == "inline_code"
        assert first is not second
        assert first.get_id() != second.get_id()

    def test_custom_factory(self):
        """Any object with get_type/validate/create can be registered."""

        class EchoFactory:
            def get_type(self):
                return "echo"

            def validate(self, config):
                return "message" in config

            def create(self, config):
                return config

        registry = ActionRegistry()
        registry.register(EchoFactory())

        assert registry.create_action("echo", {"message": "hi"}) == {"message": "hi", "type": "echo"}
