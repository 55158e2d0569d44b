"""Tests for the BaseAction template: guard, timeout race, retries, events."""

import asyncio

import pytest

from deck_controller.actions.base import BaseAction, background_task_count, truncate
from deck_controller.actions.types import (
    ActionContext,
    ActionEvent,
    ActionOptions,
    ActionResult,
    ActionStatus,
)
from deck_controller.errors import ActionTimeoutError


class CountingAction(BaseAction):
    """Fails until it has been called succeed_on times."""

    action_type = "counting"

    def __init__(self, succeed_on=None, raise_error=False):
        super().__init__()
        self.calls = 0
        self.succeed_on = succeed_on
        self.raise_error = raise_error

    async def execute_action(self, context):
        self.calls += 1
        if self.raise_error:
            raise RuntimeError("exploded")
        if self.succeed_on is not None and self.calls >= self.succeed_on:
            return ActionResult.success(self.calls)
        return ActionResult.failure(f"attempt {self.calls} failed")


class BlockingAction(BaseAction):
    action_type = "blocking"

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.finished = False

    async def execute_action(self, context):
        await self.gate.wait()
        self.finished = True
        return ActionResult.success("released")


class OwnTimeoutAction(BaseAction):
    """Reports its own timeout failure on every call."""

    action_type = "own_timeout"

    def __init__(self):
        super().__init__()
        self.calls = 0

    async def execute_action(self, context):
        self.calls += 1
        return ActionResult.failure(ActionTimeoutError(f"device slow on call {self.calls}", 50))


def record_events(action):
    seen = []
    for event in ActionEvent:
        action.on(event, lambda payload, event=event: seen.append((event, payload)))
    return seen


class TestBaseAction:
    """Execution template."""

    @pytest.mark.asyncio
    async def test_success_emits_started_then_completed(self):
        """A successful run emits STARTED and one COMPLETED."""
        action = CountingAction(succeed_on=1)
        events = record_events(action)

        result = await action.execute(ActionContext())

        assert result.ok
        assert [event for event, _ in events] == [ActionEvent.STARTED, ActionEvent.COMPLETED]
        assert events[1][1]["action"] is action
        assert not action.is_executing()

    @pytest.mark.asyncio
    async def test_retry_runs_max_retries_plus_one(self):
        """Two retries mean three invocations, then a final failure."""
        action = CountingAction()
        events = record_events(action)

        result = await action.execute(
            ActionContext(), ActionOptions(retry=True, max_retries=2, retry_delay_ms=1)
        )

        assert result.status == ActionStatus.FAILURE
        assert action.calls == 3
        failed = [payload for event, payload in events if event == ActionEvent.FAILED]
        assert [p["will_retry"] for p in failed] == [True, True, False]
        assert result.message == "attempt 3 failed"

    @pytest.mark.asyncio
    async def test_retry_stops_on_success(self):
        """Retries end as soon as an attempt succeeds."""
        action = CountingAction(succeed_on=2)

        result = await action.execute(ActionContext(), {"retry": True, "max_retries": 5, "retry_delay_ms": 1})

        assert result.ok
        assert result.data == 2

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self):
        """Without retry a failure is final after one call."""
        action = CountingAction()

        await action.execute(ActionContext())

        assert action.calls == 1

    @pytest.mark.asyncio
    async def test_raised_exception_becomes_failure(self):
        """Exceptions from execute_action are converted, not propagated."""
        action = CountingAction(raise_error=True)

        result = await action.execute(ActionContext())

        assert result.status == ActionStatus.FAILURE
        assert isinstance(result.error, RuntimeError)
        assert "exploded" in result.message

    @pytest.mark.asyncio
    async def test_timeout_fails_without_cancelling_work(self):
        """The timeout wins the race but the work keeps running."""
        action = BlockingAction()

        result = await action.execute(ActionContext(), {"timeout_ms": 20, "retry": True, "retry_delay_ms": 1})

        assert result.status == ActionStatus.FAILURE
        assert isinstance(result.error, ActionTimeoutError)
        assert result.message == "Action execution timed out after 20ms"
        assert not action.is_executing()
        assert background_task_count() >= 1

        action.gate.set()
        await asyncio.sleep(0.01)
        assert action.finished

    @pytest.mark.asyncio
    async def test_reported_timeout_is_retried(self):
        """A timeout failure returned by the action itself is retried like any failure."""
        action = OwnTimeoutAction()

        result = await action.execute(
            ActionContext(), ActionOptions(retry=True, max_retries=2, retry_delay_ms=1)
        )

        assert action.calls == 3
        assert isinstance(result.error, ActionTimeoutError)
        assert result.message == "device slow on call 3"

    @pytest.mark.asyncio
    async def test_expired_deadline_does_not_relaunch(self):
        """After the shared deadline passes, retries fail without starting new work."""
        action = BlockingAction()
        events = record_events(action)

        result = await action.execute(
            ActionContext(), {"timeout_ms": 20, "retry": True, "max_retries": 2, "retry_delay_ms": 1}
        )

        failed = [payload for event, payload in events if event == ActionEvent.FAILED]
        assert [p["will_retry"] for p in failed] == [True, True, False]
        assert result.message == "Action execution timed out after 20ms"
        action.gate.set()
        await asyncio.sleep(0.01)

    @pytest.mark.asyncio
    async def test_second_execute_is_rejected(self):
        """Re-entering a running action fails immediately."""
        action = BlockingAction()
        first = asyncio.ensure_future(action.execute(ActionContext()))
        await asyncio.sleep(0)

        second = await action.execute(ActionContext())
        action.gate.set()
        first_result = await first

        assert second.message == "Action is already executing"
        assert first_result.ok

    @pytest.mark.asyncio
    async def test_non_result_return_is_a_failure(self):
        """Returning something other than a result fails the run."""

        class Sloppy(BaseAction):
            async def execute_action(self, context):
                return 42

        result = await Sloppy().execute(ActionContext())

        assert result.status == ActionStatus.FAILURE

    @pytest.mark.asyncio
    async def test_cancel_requires_cancellable_action(self):
        """The base action is not cancellable."""
        action = BlockingAction()
        running = asyncio.ensure_future(action.execute(ActionContext()))
        await asyncio.sleep(0)

        assert await action.cancel() is False
        action.gate.set()
        await running

    @pytest.mark.asyncio
    async def test_report_progress(self):
        """Progress events carry a pending result."""
        action = CountingAction(succeed_on=1)
        events = record_events(action)

        action.report_progress(0.5, "halfway")

        payload = events[0][1]
        assert events[0][0] == ActionEvent.PROGRESS
        assert payload["result"].status == ActionStatus.PENDING
        assert payload["result"].progress == 0.5


class TestActionHelpers:
    """Results, options and truncation."""

    def test_failure_from_string(self):
        """A string error is wrapped in an exception."""
        result = ActionResult.failure("broken")

        assert str(result.error) == "broken"
        assert result.message == "broken"
        assert result.to_dict()["error"] == "broken"

    def test_cancelled_result(self):
        """Cancelled results keep their reason."""
        result = ActionResult.cancelled("user")

        assert result.status == ActionStatus.CANCELLED
        assert result.message == "Action was cancelled"
        assert result.reason == "user"

    def test_options_merge(self):
        """Dict overrides are partial; option objects replace."""
        base = ActionOptions(timeout_ms=100)

        assert base.merged({"retry": True}) == ActionOptions(timeout_ms=100, retry=True)
        assert base.merged(ActionOptions()) == ActionOptions()
        assert base.merged(None) is base

    def test_options_from_settings(self):
        """Settings keys map onto option fields."""
        options = ActionOptions.from_settings({"default_timeout_ms": 500, "default_retry": True})

        assert options.timeout_ms == 500
        assert options.retry is True
        assert options.max_retries == 3

    def test_truncate(self):
        """Long text keeps limit characters plus an ellipsis."""
        assert truncate("abcdef", 3) == "abc..."
        assert truncate("abc", 3) == "abc"
        assert truncate("abcdef", 0) == "abcdef"
