"""Tests for the press -> execute -> visual feedback loop."""

import asyncio

import pytest

from deck_controller.actions.registry import build_default_registry
from deck_controller.button_state import ACTIVE_STATE, ButtonState
from deck_controller.config import ButtonConfig
from deck_controller.executor import ActionExecutor
from deck_controller.integration import StateActionIntegration
from deck_controller.navigation import NavigatingStateManager


def build(deck_config, executor=None, **options):
    manager = NavigatingStateManager(deck_config)
    executor = executor or ActionExecutor()
    integration = StateActionIntegration(
        manager, build_default_registry(manager), executor, restore_delay_ms=50, **options
    )
    return manager, executor, integration


def press(button):
    button.set_pressed(True)
    button.set_pressed(False)


class TestStateActionIntegration:
    """Wiring between buttons, executor and visuals."""

    @pytest.mark.asyncio
    async def test_press_runs_action_and_resets(self, deck_config):
        """A press shows the running marker, then resets on success."""
        manager, executor, _ = build(deck_config)
        button = manager.get_button_state("DEV1", 0)

        press(button)
        assert button.visual.text == "Go ⋯"
        assert executor.active_count == 1

        await executor.wait_idle()
        assert button.visual.text == "Go"
        assert executor.get_history()[0].result.ok

    @pytest.mark.asyncio
    async def test_failure_marks_then_restores(self, deck_config):
        """A failed action shows the failure marker until the restore delay."""
        manager, executor, _ = build(deck_config)
        button = manager.get_button_state("DEV1", 1)

        press(button)
        await executor.wait_idle()
        assert button.visual.text == "Bad ✗"
        assert button.visual.color == "#FF0000"

        await asyncio.sleep(0.15)
        assert button.visual.text == "Bad"
        assert button.visual.color is None

    @pytest.mark.asyncio
    async def test_cancelled_action_is_marked(self, deck_config, until):
        """Cancelling a button's executions shows the cancel marker."""
        manager, executor, integration = build(deck_config)
        manager.add_button(
            ButtonState("DEV1", 9, "main", config=ButtonConfig(type="inline_code", code="await sleep(5)"))
        )
        button = manager.get_button_state("DEV1", 9)

        press(button)
        [execution_id] = integration.get_button_executions(button)
        await until(lambda: executor.get_execution(execution_id).action.is_cancellable())
        await asyncio.sleep(0.02)

        assert await integration.cancel_button_actions(button) == 1
        await executor.wait_idle()

        assert button.visual.text == "⨯"
        assert button.visual.color == "#FFA500"
        assert integration.get_button_executions(button) == []

    @pytest.mark.asyncio
    async def test_stateful_button_keeps_state(self, deck_config):
        """Stateful buttons toggle and only lose the marker on success."""
        manager, executor, _ = build(deck_config)
        button = manager.get_button_state("DEV1", 3)

        press(button)
        await executor.wait_idle()

        assert button.custom_state == ACTIVE_STATE
        assert button.visual.text == "Tog"

    @pytest.mark.asyncio
    async def test_unregistered_type_is_skipped(self, deck_config, capsys):
        """Unknown action types are logged, never executed."""
        manager, executor, integration = build(deck_config)
        button = manager.get_button_state("DEV1", 2)

        press(button)

        assert executor.active_count == 0
        assert integration.get_button_executions(button) == []
        assert 'No action factory registered for type "unknown_type"' in capsys.readouterr().err

    def test_button_without_type_is_ignored(self, deck_config):
        """Buttons with no action do nothing when triggered."""
        manager, _, integration = build(deck_config)

        assert integration.trigger_button_action(manager.get_button_state("DEV1", 4)) is None

    @pytest.mark.asyncio
    async def test_over_capacity_press_is_logged(self, deck_config, capsys):
        """Admission failures are logged instead of raised."""
        manager, executor, _ = build(deck_config, executor=ActionExecutor(max_concurrent=1))

        press(manager.get_button_state("DEV1", 0))
        press(manager.get_button_state("DEV1", 3))
        await executor.wait_idle()

        assert "Max concurrent executions (1) reached" in capsys.readouterr().err
        assert len(executor.get_history()) == 1

    @pytest.mark.asyncio
    async def test_buttons_of_new_pages_are_wired(self, deck_config):
        """Buttons materialized by a page switch trigger actions too."""
        manager, executor, _ = build(deck_config)
        manager.activate_page("DEV1", "second")

        press(manager.get_button_state("DEV1", 0))
        await executor.wait_idle()

        assert executor.get_history()[0].result.data["result"] == 2

    @pytest.mark.asyncio
    async def test_auto_trigger_off(self, deck_config):
        """With auto-trigger off presses are ignored but manual triggers work."""
        manager, executor, integration = build(deck_config, auto_trigger_actions=False)
        button = manager.get_button_state("DEV1", 0)

        press(button)
        assert executor.active_count == 0

        assert integration.trigger_button_action(button) is not None
        await executor.wait_idle()

    @pytest.mark.asyncio
    async def test_visual_updates_off(self, deck_config):
        """With visual updates off the button text is left alone."""
        manager, executor, _ = build(deck_config, update_visual_state=False)
        button = manager.get_button_state("DEV1", 0)

        press(button)
        assert button.visual.text == "Go"
        await executor.wait_idle()

    @pytest.mark.asyncio
    async def test_context_carries_button_data(self, deck_config):
        """The execution context exposes the button and the state manager."""
        manager, executor, integration = build(deck_config)
        button = manager.get_button_state("DEV1", 0)

        execution_id = integration.trigger_button_action(button)
        record = executor.get_execution(execution_id)
        await executor.wait_idle()

        assert record.context.button_state is button
        assert record.context.data["state_manager"] is manager
        assert record.context.data["custom_state"] is None

    @pytest.mark.asyncio
    async def test_dispose_detaches(self, deck_config):
        """After dispose presses no longer start executions."""
        manager, executor, integration = build(deck_config)

        integration.dispose()
        press(manager.get_button_state("DEV1", 0))

        assert executor.active_count == 0
