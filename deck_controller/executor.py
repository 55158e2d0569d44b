"""Runs actions with admission control, history and cancellation."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import deque
from collections.abc import Callable, Generator
from dataclasses import dataclass
from enum import Enum
from typing import Any, NamedTuple

from deck_controller.actions.types import (
    Action,
    ActionContext,
    ActionOptions,
    ActionResult,
    ActionStatus,
)
from deck_controller.errors import ConcurrencyLimitExceeded
from deck_controller.logger import DeckLogger
from utils.event_bus import EventBus


class ExecutorEvent(str, Enum):
    ACTION_STARTED = "action_started"
    ACTION_COMPLETED = "action_completed"
    ACTION_FAILED = "action_failed"
    ACTION_CANCELLED = "action_cancelled"


_TERMINAL_EVENTS = {
    ActionStatus.SUCCESS: ExecutorEvent.ACTION_COMPLETED,
    ActionStatus.CANCELLED: ExecutorEvent.ACTION_CANCELLED,
}


@dataclass
class ExecutionRecord:
    id: str
    action: Action
    context: ActionContext
    options: ActionOptions
    start_time: float
    end_time: float | None = None
    result: ActionResult | None = None
    cancelled: bool = False

    @property
    def is_active(self) -> bool:
        return self.result is None

    @property
    def elapsed_ms(self) -> int | None:
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time) * 1000)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "action_id": self.action.get_id(),
            "action_type": self.action.get_type(),
            "start_time": self.start_time,
            "cancelled": self.cancelled,
        }
        if self.end_time is not None:
            payload["end_time"] = self.end_time
            payload["elapsed_ms"] = self.elapsed_ms
        if self.result is not None:
            payload["result"] = self.result.to_dict()
        return payload


class ExecutionOutcome(NamedTuple):
    execution_id: str
    result: ActionResult


class ExecutionHandle:
    """Returned by ``submit``; await it for the result."""

    def __init__(self, execution_id: str, task: asyncio.Task) -> None:
        self.execution_id = execution_id
        self.task = task

    def done(self) -> bool:
        return self.task.done()

    def __await__(self) -> Generator[Any, None, ActionResult]:
        return self.task.__await__()


class ActionExecutor:
    """Admits, runs and archives action executions.

    Over-cap submissions are rejected with ConcurrencyLimitExceeded rather
    than queued. Each execution ends in exactly one terminal event, emitted
    after the record has left the active set.

    Args:
        max_concurrent: Cap on active executions; 0 disables the cap.
        keep_history: Archive finished records.
        max_history_size: Oldest records are evicted first beyond this.
        default_action_options: Baseline options merged under per-call options.
    """

    def __init__(
        self,
        max_concurrent: int = 10,
        keep_history: bool = True,
        max_history_size: int = 100,
        default_action_options: ActionOptions | dict[str, Any] | None = None,
    ) -> None:
        self.max_concurrent = max_concurrent
        self.keep_history = keep_history
        self.max_history_size = max_history_size
        self.default_action_options = ActionOptions().merged(default_action_options)
        self._active: dict[str, ExecutionRecord] = {}
        self._history: deque[ExecutionRecord] = deque(maxlen=max(max_history_size, 0))
        self._events = EventBus(name="EXECUTOR")
        self._tasks: set[asyncio.Task] = set()
        self.logger = DeckLogger("EXECUTOR")

    @property
    def active_count(self) -> int:
        return len(self._active)

    def submit(
        self,
        action: Action,
        context: ActionContext,
        options: ActionOptions | dict[str, Any] | None = None,
    ) -> ExecutionHandle:
        """Admit and schedule an execution on the running loop.

        Raises:
            ConcurrencyLimitExceeded: The cap is reached; nothing was started.
        """
        if self.max_concurrent > 0 and len(self._active) >= self.max_concurrent:
            raise ConcurrencyLimitExceeded(self.max_concurrent)

        loop = asyncio.get_running_loop()
        record = ExecutionRecord(
            id=str(uuid.uuid4()),
            action=action,
            context=context,
            options=self.default_action_options.merged(options),
            start_time=time.time(),
        )
        self._active[record.id] = record
        self.logger.deep(f"Started {action.get_type()} as {record.id}")
        self._events.emit(
            ExecutorEvent.ACTION_STARTED,
            {
                "action": action,
                "context": context,
                "execution_id": record.id,
                "timestamp": record.start_time,
            },
        )

        task = loop.create_task(self._run(record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return ExecutionHandle(record.id, task)

    async def execute(
        self,
        action: Action,
        context: ActionContext,
        options: ActionOptions | dict[str, Any] | None = None,
    ) -> ExecutionOutcome:
        handle = self.submit(action, context, options)
        result = await handle
        return ExecutionOutcome(handle.execution_id, result)

    async def _run(self, record: ExecutionRecord) -> ActionResult:
        try:
            result = await record.action.execute(record.context, record.options)
        except asyncio.CancelledError:
            self._finish(record, ActionResult.cancelled("Execution task was cancelled"))
            raise
        except Exception as exc:
            self.logger.error(f"{record.action.get_type()} ({record.id}) raised {exc!r}")
            result = ActionResult.failure(exc, data=exc)
        self._finish(record, result)
        return result

    def _finish(self, record: ExecutionRecord, result: ActionResult) -> None:
        record.result = result
        record.end_time = time.time()
        if result.status == ActionStatus.CANCELLED:
            record.cancelled = True

        self._active.pop(record.id, None)
        if self.keep_history and self.max_history_size > 0:
            self._history.append(record)

        event = _TERMINAL_EVENTS.get(result.status, ExecutorEvent.ACTION_FAILED)
        self.logger.deep(f"{record.action.get_type()} ({record.id}) -> {result.status.value}")
        self._events.emit(
            event,
            {
                "action": record.action,
                "context": record.context,
                "execution_id": record.id,
                "result": result,
                "timestamp": record.end_time,
            },
        )

    async def cancel_execution(self, execution_id: str) -> bool:
        record = self._active.get(execution_id)
        if record is None or not record.action.is_cancellable():
            return False
        record.cancelled = True
        return await record.action.cancel()

    async def cancel_all(self) -> int:
        count = 0
        for execution_id in list(self._active):
            if await self.cancel_execution(execution_id):
                count += 1
        return count

    def get_execution(self, execution_id: str) -> ExecutionRecord | None:
        record = self._active.get(execution_id)
        if record is not None:
            return record
        for archived in self._history:
            if archived.id == execution_id:
                return archived
        return None

    def get_active_executions(self) -> list[ExecutionRecord]:
        return list(self._active.values())

    def get_history(self, limit: int | None = None) -> list[ExecutionRecord]:
        """Finished records, newest first; limit of None or 0 means all."""
        newest_first = list(reversed(self._history))
        return newest_first[:limit] if limit else newest_first

    def clear_history(self) -> int:
        count = len(self._history)
        self._history.clear()
        return count

    def on(self, event: ExecutorEvent, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self._events.on(event, handler)

    def once(self, event: ExecutorEvent, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self._events.once(event, handler)

    def off(self, event: ExecutorEvent, handler: Callable[[dict], Any]) -> None:
        self._events.off(event, handler)

    async def wait_idle(self) -> None:
        """Wait for every scheduled execution task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def dispose(self) -> None:
        self._events.dispose()
