"""Launch an application or executable."""

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
)
from deck_controller.actions.types import ActionContext, ActionResult
from deck_controller.errors import ActionExecutionError
from utils.log_utils import tprint
from utils.system_utils import is_macos, signal_name

# Grace period before a fresh process counts as launched.
_SETTLE_SECONDS = 0.1


class LaunchAppConfig(ActionConfigModel):
    path: NonBlankStr
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    wait: bool = False
    show: bool = True
    cwd: Optional[str] = None


class LaunchAppAction(ConfiguredAction):
    action_type = "launch_app"
    config_model = LaunchAppConfig
    config_error = "Launch app action requires a valid application path"

    def __init__(self, config, action_id: str | None = None) -> None:
        super().__init__(config, action_id)
        self._process: asyncio.subprocess.Process | None = None

    def _environment(self) -> dict[str, str]:
        env = {**os.environ, **self.config.env}
        if not self.config.show and is_macos():
            env["LSBackgroundOnly"] = "1"
        return env

    async def execute_action(self, context: ActionContext) -> ActionResult:
        try:
            process = await asyncio.create_subprocess_exec(
                self.config.path,
                *self.config.args,
                env=self._environment(),
                cwd=self.config.cwd,
            )
        except OSError as exc:
            return ActionResult.failure(
                ActionExecutionError(f"Failed to launch application: {exc}", code="spawn_failed")
            )

        self._process = process
        try:
            await asyncio.sleep(_SETTLE_SECONDS)
            if self.is_cancelled():
                self._terminate()
                return ActionResult.cancelled("Launch cancelled by user")

            if not self.config.wait:
                return ActionResult.success(
                    {"path": self.config.path, "launched": True, "pid": process.pid}
                )

            return_code = await process.wait()
            if self.is_cancelled():
                return ActionResult.cancelled("Launch cancelled during execution")
            if return_code != 0:
                signame = signal_name(-return_code) if return_code < 0 else None
                suffix = f" (signal: {signame})" if signame else ""
                return ActionResult.failure(
                    ActionExecutionError(
                        f"Application exited with code {return_code}{suffix}",
                        code="exit_code",
                        details={"exit_code": return_code, "signal": signame},
                    ),
                    data={"path": self.config.path, "exit_code": return_code, "signal": signame},
                )
            return ActionResult.success(
                {"path": self.config.path, "launched": True, "pid": process.pid, "exit_code": 0}
            )
        finally:
            self._process = None

    def _terminate(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            tprint(f"[ACTION][WARN] Process {process.pid} already gone")

    def is_cancellable(self) -> bool:
        return self.is_executing() and self._process is not None and self._process.returncode is None

    async def cancel(self) -> bool:
        if not await super().cancel():
            return False
        self._terminate()
        return True


class LaunchAppActionFactory(ConfiguredActionFactory):
    action_class = LaunchAppAction
