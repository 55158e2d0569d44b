"""Action contract, results and options."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Protocol, TYPE_CHECKING, runtime_checkable

from deck_controller.errors import ActionExecutionError

if TYPE_CHECKING:
    from deck_controller.button_state import ButtonState


class ActionStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    PENDING = "pending"


class ActionEvent(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PROGRESS = "progress"


@dataclass
class ActionResult:
    status: ActionStatus
    message: str | None = None
    data: Any = None
    error: BaseException | None = None
    reason: str | None = None
    progress: float | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.status == ActionStatus.SUCCESS

    @classmethod
    def success(cls, data: Any = None, message: str = "Action completed successfully") -> "ActionResult":
        return cls(ActionStatus.SUCCESS, message=message, data=data)

    @classmethod
    def failure(
        cls, error: BaseException | str, data: Any = None, message: str | None = None
    ) -> "ActionResult":
        if isinstance(error, str):
            error = ActionExecutionError(error)
        return cls(ActionStatus.FAILURE, message=message or str(error), error=error, data=data)

    @classmethod
    def cancelled(cls, reason: str | None = None) -> "ActionResult":
        return cls(ActionStatus.CANCELLED, message="Action was cancelled", reason=reason)

    @classmethod
    def pending(cls, progress: float | None = None, message: str | None = None) -> "ActionResult":
        return cls(ActionStatus.PENDING, message=message or "Action is in progress", progress=progress)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status.value,
            "timestamp": self.timestamp,
        }
        if self.message is not None:
            payload["message"] = self.message
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = str(self.error)
        if self.reason is not None:
            payload["reason"] = self.reason
        if self.progress is not None:
            payload["progress"] = self.progress
        return payload


@dataclass(frozen=True)
class ActionOptions:
    timeout_ms: int = 30000
    retry: bool = False
    max_retries: int = 3
    retry_delay_ms: int = 1000

    def merged(self, overrides: "ActionOptions | dict[str, Any] | None") -> "ActionOptions":
        """Overlay overrides (an options object or a partial dict) on self."""
        if overrides is None:
            return self
        if isinstance(overrides, ActionOptions):
            return overrides
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in overrides.items() if k in known})

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> "ActionOptions":
        defaults = cls()
        return cls(
            timeout_ms=int(settings.get("default_timeout_ms", defaults.timeout_ms)),
            retry=bool(settings.get("default_retry", defaults.retry)),
            max_retries=int(settings.get("default_max_retries", defaults.max_retries)),
            retry_delay_ms=int(settings.get("default_retry_delay_ms", defaults.retry_delay_ms)),
        )


@dataclass
class ActionContext:
    button_state: "ButtonState | None" = None
    data: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Action(Protocol):
    async def execute(
        self, context: ActionContext, options: ActionOptions | None = None
    ) -> ActionResult: ...

    async def cancel(self) -> bool: ...

    def is_executing(self) -> bool: ...

    def is_cancellable(self) -> bool: ...

    def get_id(self) -> str: ...

    def get_type(self) -> str: ...


class ActionFactory(Protocol):
    def get_type(self) -> str: ...

    def validate(self, config: dict[str, Any]) -> bool: ...

    def create(self, config: dict[str, Any]) -> Action: ...
