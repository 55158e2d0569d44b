"""Run a short Python snippet bound to a button.

The snippet is compiled as the body of an ``async def`` and executed in the
controller's own process. Blocking ``import`` and exposing only a few helpers
keeps honest snippets tidy; it is not a sandbox, so only configure code you
would run yourself.
"""

from __future__ import annotations

import asyncio
import builtins
import json
import textwrap
from typing import Any

from pydantic import Field

from deck_controller.actions.base import (
    ActionConfigModel,
    ConfiguredAction,
    ConfiguredActionFactory,
    NonBlankStr,
    keep_running,
    truncate,
)
from deck_controller.actions.cancellation import AbortedError, CancelSignal
from deck_controller.actions.types import ActionContext, ActionResult
from deck_controller.errors import ActionExecutionError, ActionTimeoutError

_FUNCTION_NAME = "__inline_code__"
_RESULT_RESET_MS = 3000


class InlineCodeConfig(ActionConfigModel):
    code: NonBlankStr
    args: dict[str, Any] = Field(default_factory=dict)
    timeout_ms: int = Field(default=5000, ge=0)
    show_result: bool = False
    max_result_length: int = Field(default=20, ge=0)
    allow_imports: bool = False


def _blocked_import(name, *args, **kwargs):
    raise ImportError("Imports are not allowed")


def compile_snippet(code: str, allow_imports: bool) -> dict[str, Any]:
    """Compile code into a fresh namespace holding the snippet coroutine function.

    Raises:
        SyntaxError: The snippet does not compile.
    """
    source = f"async def {_FUNCTION_NAME}():\n" + textwrap.indent(textwrap.dedent(code), "    ")
    builtins_ns = dict(vars(builtins))
    if not allow_imports:
        builtins_ns["__import__"] = _blocked_import
    namespace: dict[str, Any] = {"__builtins__": builtins_ns, "__name__": "inline_code"}
    exec(compile(source, "<inline_code>", "exec"), namespace)
    return namespace


def format_result(value: Any) -> str:
    if value is None or isinstance(value, str):
        return str(value)
    if isinstance(value, (dict, list, tuple, bool, int, float)):
        try:
            return json.dumps(value, separators=(",", ":"))
        except (TypeError, ValueError):
            return str(value)
    return str(value)


class InlineCodeAction(ConfiguredAction):
    action_type = "inline_code"
    config_model = InlineCodeConfig
    config_error = "Inline code action requires code"

    def __init__(self, config, action_id: str | None = None) -> None:
        super().__init__(config, action_id)
        self._signal: CancelSignal | None = None

    def _helpers(self, context: ActionContext, signal: CancelSignal) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        button = context.button_state

        def check_signal() -> None:
            signal.check()

        def update_button(**visual: Any) -> None:
            signal.check()
            if button is not None and not button.is_disposed:
                button.update_visual(**visual)

        def call_later(delay_ms: float, callback, *args: Any) -> asyncio.TimerHandle:
            def _run() -> None:
                if not signal.aborted:
                    callback(*args)

            return loop.call_later(delay_ms / 1000, _run)

        return {
            "context": context,
            "button": button,
            "args": dict(self.config.args),
            "signal": signal,
            "check_signal": check_signal,
            "is_cancelled": lambda: signal.aborted,
            "update_button": update_button,
            "sleep": signal.sleep,
            "call_later": call_later,
        }

    async def execute_action(self, context: ActionContext) -> ActionResult:
        self._signal = signal = CancelSignal()
        try:
            return await self._run(context, signal)
        finally:
            self._signal = None

    async def _run(self, context: ActionContext, signal: CancelSignal) -> ActionResult:
        button = context.button_state
        if self.config.show_result:
            self._show(button, "Executing...")

        try:
            namespace = compile_snippet(self.config.code, self.config.allow_imports)
        except SyntaxError as exc:
            return self._failed(button, ActionExecutionError(f"Error compiling code: {exc}", code="syntax"))
        namespace.update(self._helpers(context, signal))

        loop = asyncio.get_running_loop()
        task = loop.create_task(namespace[_FUNCTION_NAME]())
        aborted = loop.create_task(signal.wait())
        timeout = self.config.timeout_ms / 1000 if self.config.timeout_ms else None
        try:
            done, _ = await asyncio.wait({task, aborted}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            signal.abort("cancelled")
            task.cancel()
            raise
        finally:
            aborted.cancel()

        if task not in done:
            # Snippets only stop at their own check points.
            keep_running(task)
            if self.is_cancelled():
                return ActionResult.cancelled("Code execution cancelled by user")
            signal.abort("timeout")
            return self._failed(
                button,
                ActionTimeoutError(
                    f"Execution timed out after {self.config.timeout_ms}ms", self.config.timeout_ms
                ),
            )

        try:
            value = task.result()
        except AbortedError:
            return ActionResult.cancelled("Code execution cancelled by user")
        except Exception as exc:
            if self.is_cancelled():
                return ActionResult.cancelled("Code execution cancelled by user")
            return self._failed(
                button, ActionExecutionError(f"Code execution failed: {exc}", code="runtime")
            )

        if self.is_cancelled():
            return ActionResult.cancelled("Code execution cancelled by user")

        display = truncate(format_result(value), self.config.max_result_length)
        if self.config.show_result:
            self._show(button, display)
            if button is not None and not button.config.stateful:
                self._schedule_reset(button, _RESULT_RESET_MS)
        return ActionResult.success({"result": value, "display": display})

    def _failed(self, button, error: Exception) -> ActionResult:
        if self.config.show_result:
            self._show(button, f"Error: {truncate(str(error), self.config.max_result_length)}")
            if button is not None and not button.config.stateful:
                self._schedule_reset(button, _RESULT_RESET_MS)
        return ActionResult.failure(error)

    @staticmethod
    def _show(button, text: str) -> None:
        if button is not None and not button.is_disposed:
            button.update_visual(text=text)

    def is_cancellable(self) -> bool:
        return self.is_executing()

    async def cancel(self) -> bool:
        if not await super().cancel():
            return False
        if self._signal is not None:
            self._signal.abort("cancelled")
        return True


class InlineCodeActionFactory(ConfiguredActionFactory):
    action_class = InlineCodeAction
