"""Run a command with piped output, optionally mirrored onto the button."""

from __future__ import annotations

import asyncio
import os
from typing import Optional

from pydantic import Field

from deck_controller.actions.base import (
    ActionConfigModel,
    ConfiguredAction,
    ConfiguredActionFactory,
    NonBlankStr,
    truncate,
)
from deck_controller.actions.cancellation import CancelSignal
from deck_controller.actions.types import ActionContext, ActionResult
from deck_controller.errors import ActionExecutionError, ActionTimeoutError
from utils.log_utils import tprint
from utils.system_utils import signal_name

_RESET_DELAY_MS = 2000
_CHUNK_SIZE = 1024


class ExecuteScriptConfig(ActionConfigModel):
    command: NonBlankStr
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: Optional[str] = None
    timeout_ms: int = Field(default=30000, ge=0)
    show: bool = True
    show_output: bool = False
    max_output_length: int = Field(default=100, ge=0)


class ExecuteScriptAction(ConfiguredAction):
    action_type = "execute_script"
    config_model = ExecuteScriptConfig
    config_error = "Execute script action requires a valid command"

    def __init__(self, config, action_id: str | None = None) -> None:
        super().__init__(config, action_id)
        self._process: asyncio.subprocess.Process | None = None
        self._signal = CancelSignal()
        self._output = ""

    def get_output(self) -> str:
        return self._output

    async def execute_action(self, context: ActionContext) -> ActionResult:
        self._signal = signal = CancelSignal()
        self._output = ""
        button = context.button_state
        self._show(context, "Running...")

        try:
            process = await asyncio.create_subprocess_exec(
                self.config.command,
                *self.config.args,
                env={**os.environ, **self.config.env},
                cwd=self.config.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            self._show(context, f"Error: {exc}")
            if self.config.show_output:
                self._schedule_reset(button, _RESET_DELAY_MS)
            return ActionResult.failure(
                ActionExecutionError(f"Failed to start script: {exc}", code="spawn_failed")
            )

        self._process = process
        signal.add_callback(self._kill)
        timer = None
        if self.config.timeout_ms > 0:
            timer = asyncio.get_running_loop().call_later(
                self.config.timeout_ms / 1000, signal.abort, "timeout"
            )

        try:
            stdout, stderr, return_code = await asyncio.gather(
                self._pump(process.stdout, context),
                self._pump(process.stderr, context),
                process.wait(),
            )
        finally:
            if timer is not None:
                timer.cancel()
            signal.remove_callback(self._kill)
            self._process = None

        data = {
            "command": self.config.command,
            "exit_code": return_code,
            "signal": signal_name(-return_code) if return_code < 0 else None,
            "stdout": stdout,
            "stderr": stderr,
            "output": self._output or None,
        }
        if self.is_cancelled():
            return ActionResult.cancelled("Script execution cancelled by user")
        if signal.aborted and signal.reason == "timeout":
            return ActionResult.failure(
                ActionTimeoutError(
                    f"Script timed out after {self.config.timeout_ms}ms", self.config.timeout_ms
                ),
                data=data,
            )

        if return_code == 0:
            self._show(context, f"Success ({return_code})")
            if self.config.show_output:
                self._schedule_reset(button, _RESET_DELAY_MS)
            return ActionResult.success(data)

        self._show(context, f"Failed ({return_code})")
        if self.config.show_output:
            self._schedule_reset(button, _RESET_DELAY_MS)
        suffix = f" (signal: {data['signal']})" if data["signal"] else ""
        return ActionResult.failure(
            ActionExecutionError(
                f"Script exited with code {return_code}{suffix}",
                code="exit_code",
                details={"exit_code": return_code},
            ),
            data=data,
        )

    async def _pump(self, stream: asyncio.StreamReader | None, context: ActionContext) -> str:
        if stream is None:
            return ""
        collected: list[str] = []
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                break
            text = chunk.decode(errors="replace")
            collected.append(text)
            if self.config.show_output:
                self._output = truncate(self._output + text, self.config.max_output_length)
                self._show(context, self._output)
        return "".join(collected)

    def _show(self, context: ActionContext, message: str) -> None:
        button = context.button_state
        if not self.config.show_output or button is None or button.is_disposed:
            return
        button.update_visual(text=truncate(message, self.config.max_output_length))

    def _kill(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            tprint(f"[ACTION][WARN] Script process {process.pid} already exited")

    def is_cancellable(self) -> bool:
        return self.is_executing() and self._process is not None

    async def cancel(self) -> bool:
        if not await super().cancel():
            return False
        self._signal.abort("cancelled")
        return True


class ExecuteScriptActionFactory(ConfiguredActionFactory):
    action_class = ExecuteScriptAction
