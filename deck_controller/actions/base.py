"""Template shared by every action: re-entrancy guard, timeout race, retry."""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable
from typing import Annotated, Any, ClassVar, TYPE_CHECKING

from pydantic import AfterValidator, BaseModel, ConfigDict, ValidationError

from deck_controller.actions.types import (
    ActionContext,
    ActionEvent,
    ActionOptions,
    ActionResult,
    ActionStatus,
)
from deck_controller.errors import ActionConfigError, ActionTimeoutError
from utils.event_bus import EventBus
from utils.log_utils import tprint
from utils.settings_store import deep_log

if TYPE_CHECKING:
    from deck_controller.button_state import ButtonState

# Work that lost a timeout race keeps running; hold a reference until it ends.
_background_tasks: set[asyncio.Task] = set()


def _drain_background(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        deep_log(f"[ACTION][DEEP] Background work ended with {exc!r}")


def keep_running(task: asyncio.Task) -> asyncio.Task:
    """Track a task nobody awaits any more so its outcome is still consumed."""
    _background_tasks.add(task)
    task.add_done_callback(_drain_background)
    return task


def background_task_count() -> int:
    return len(_background_tasks)


class BaseAction:
    """Base class for concrete actions.

    Subclasses implement ``execute_action`` and, when they can stop early,
    ``is_cancellable``/``cancel``. ``execute`` wraps it with:

    * a guard that rejects a second concurrent run of the same object;
    * one deadline (``timeout_ms``) shared by every attempt. The losing
      work is left running, not cancelled;
    * optional retries of failed attempts;
    * exactly one terminal event (COMPLETED, FAILED or CANCELLED).
    """

    action_type = "base"

    def __init__(self, action_type: str | None = None, action_id: str | None = None) -> None:
        self._type = action_type or self.action_type
        self._id = action_id or str(uuid.uuid4())
        self._events = EventBus(name="ACTION")
        self._executing = False
        self._cancelled = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self._id!r})"

    async def execute(
        self, context: ActionContext, options: ActionOptions | dict[str, Any] | None = None
    ) -> ActionResult:
        if self._executing:
            return ActionResult.failure("Action is already executing")

        self._executing = True
        self._cancelled = False
        opts = ActionOptions().merged(options)
        self._emit(ActionEvent.STARTED, {"context": context, "options": opts})

        loop = asyncio.get_running_loop()
        deadline = loop.time() + opts.timeout_ms / 1000 if opts.timeout_ms and opts.timeout_ms > 0 else None
        max_attempts = opts.max_retries + 1 if opts.retry else 1
        attempt = 0
        result: ActionResult | None = None
        try:
            while attempt < max_attempts:
                attempt += 1
                result = await self._run_attempt(context, deadline, opts.timeout_ms)
                if result.status in (ActionStatus.SUCCESS, ActionStatus.CANCELLED):
                    break
                if attempt >= max_attempts:
                    break

                self._emit(
                    ActionEvent.FAILED,
                    {
                        "context": context,
                        "error": result.error,
                        "will_retry": True,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                    },
                )
                deep_log(
                    f"[ACTION][DEEP] {self._type} attempt {attempt}/{max_attempts} failed: "
                    f"{result.message}; retrying in {opts.retry_delay_ms}ms"
                )
                await asyncio.sleep(opts.retry_delay_ms / 1000)
                if self._cancelled:
                    result = ActionResult.cancelled("Action cancelled before retry")
                    break
        finally:
            self._executing = False

        if result is None:
            result = ActionResult.failure("Action failed after retries")
        self._emit_terminal(result, context, attempt, max_attempts)
        return result

    async def _run_attempt(
        self, context: ActionContext, deadline: float | None, timeout_ms: int
    ) -> ActionResult:
        loop = asyncio.get_running_loop()
        # One deadline spans all attempts; once it has passed nothing is relaunched.
        if deadline is not None and deadline - loop.time() <= 0:
            return self._timeout_result(timeout_ms)

        task = asyncio.ensure_future(self._guarded_execute(context))
        if deadline is None:
            return await task

        try:
            done, _ = await asyncio.wait({task}, timeout=deadline - loop.time())
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task in done:
            return task.result()
        keep_running(task)
        return self._timeout_result(timeout_ms)

    async def _guarded_execute(self, context: ActionContext) -> ActionResult:
        try:
            result = await self.execute_action(context)
        except Exception as exc:
            tprint(f"[ACTION][ERROR] {self._type} raised {exc!r}")
            return ActionResult.failure(exc)
        if not isinstance(result, ActionResult):
            return ActionResult.failure(f"Action returned {type(result).__name__}, not a result")
        return result

    def _timeout_result(self, timeout_ms: int) -> ActionResult:
        return ActionResult.failure(
            ActionTimeoutError(f"Action execution timed out after {timeout_ms}ms", timeout_ms)
        )

    def _emit_terminal(
        self, result: ActionResult, context: ActionContext, attempt: int, max_attempts: int
    ) -> None:
        if result.status == ActionStatus.SUCCESS:
            self._emit(ActionEvent.COMPLETED, {"context": context, "result": result})
        elif result.status == ActionStatus.CANCELLED:
            self._emit(ActionEvent.CANCELLED, {"context": context, "reason": result.reason})
        else:
            self._emit(
                ActionEvent.FAILED,
                {
                    "context": context,
                    "error": result.error,
                    "will_retry": False,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                },
            )

    async def execute_action(self, context: ActionContext) -> ActionResult:
        raise NotImplementedError

    async def cancel(self) -> bool:
        if not self._executing or self._cancelled or not self.is_cancellable():
            return False
        self._cancelled = True
        return True

    def is_executing(self) -> bool:
        return self._executing

    def is_cancelled(self) -> bool:
        return self._cancelled

    def is_cancellable(self) -> bool:
        return False

    def get_id(self) -> str:
        return self._id

    def get_type(self) -> str:
        return self._type

    def on(self, event: ActionEvent, handler: Callable[[dict], Any]) -> Callable[[], None]:
        return self._events.on(event, handler)

    def off(self, event: ActionEvent, handler: Callable[[dict], Any]) -> None:
        self._events.off(event, handler)

    def report_progress(self, progress: float | None = None, message: str | None = None) -> None:
        self._emit(ActionEvent.PROGRESS, {"result": ActionResult.pending(progress, message)})

    def _emit(self, event: ActionEvent, payload: dict[str, Any]) -> None:
        payload = {"action": self, "timestamp": time.time(), **payload}
        self._events.emit(event, payload)

    @staticmethod
    def _schedule_button(
        button: "ButtonState | None", delay_ms: int, callback: Callable[["ButtonState"], None]
    ) -> asyncio.TimerHandle | None:
        """Run callback(button) after delay_ms unless the button got disposed."""
        if button is None:
            return None

        def _fire() -> None:
            if not button.is_disposed:
                callback(button)

        return asyncio.get_running_loop().call_later(delay_ms / 1000, _fire)

    @classmethod
    def _schedule_reset(cls, button: "ButtonState | None", delay_ms: int) -> asyncio.TimerHandle | None:
        return cls._schedule_button(button, delay_ms, lambda b: b.reset())


def truncate(text: str, limit: int) -> str:
    """Keep the first limit characters, marking a cut with a trailing "...".

    A limit of 0 or less disables truncation.
    """
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + "..."


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_require_text)]


class ActionConfigModel(BaseModel):
    """Base for per-type config models; button keys unrelated to the action are ignored."""

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)


class ConfiguredAction(BaseAction):
    """BaseAction built from a validated, immutable config model."""

    config_model: ClassVar[type[ActionConfigModel]] = ActionConfigModel
    config_error: ClassVar[str] = "Invalid action configuration"

    def __init__(self, config: ActionConfigModel | dict[str, Any], action_id: str | None = None) -> None:
        super().__init__(action_id=action_id)
        self.config = self.parse_config(config)

    @classmethod
    def parse_config(cls, config: ActionConfigModel | dict[str, Any]) -> Any:
        if isinstance(config, cls.config_model):
            return config
        try:
            return cls.config_model.model_validate(config)
        except ValidationError as exc:
            raise ActionConfigError(cls.config_error) from exc


class ConfiguredActionFactory:
    """Factory whose type tag and validation come from the action class."""

    action_class: ClassVar[type[ConfiguredAction]]

    def get_type(self) -> str:
        return self.action_class.action_type

    def validate(self, config: dict[str, Any]) -> bool:
        try:
            self.action_class.config_model.model_validate(config)
        except ValidationError:
            return False
        return True

    def create(self, config: dict[str, Any]) -> ConfiguredAction:
        return self.action_class(config)
