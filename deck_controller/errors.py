"""Error taxonomy for the deck controller."""

from __future__ import annotations


class ActionConfigError(ValueError):
    """Raised when an action is constructed from an unusable config."""


class InvalidActionConfigError(ActionConfigError):
    def __init__(self, action_type: str) -> None:
        super().__init__(f'Invalid configuration for action type "{action_type}"')
        self.action_type = action_type


class DuplicateActionTypeError(ValueError):
    def __init__(self, action_type: str) -> None:
        super().__init__(f'Factory for action type "{action_type}" is already registered')
        self.action_type = action_type


class UnregisteredActionTypeError(LookupError):
    def __init__(self, action_type: str) -> None:
        super().__init__(f'No factory registered for action type "{action_type}"')
        self.action_type = action_type

    def __str__(self) -> str:
        # LookupError would otherwise repr() the message.
        return str(self.args[0])


class ConcurrencyLimitExceeded(RuntimeError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"Max concurrent executions ({limit}) reached")
        self.limit = limit


class ActionExecutionError(RuntimeError):
    """Error attached to a failure result.

    ``code`` is a short machine-readable tag, e.g. ``exit_code`` or
    ``status_mismatch``; ``details`` carries whatever the action knew.
    """

    def __init__(self, message: str, code: str = "failed", details: dict | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ActionTimeoutError(ActionExecutionError):
    def __init__(self, message: str, timeout_ms: int | float) -> None:
        super().__init__(message, code="timeout", details={"timeout_ms": timeout_ms})
        self.timeout_ms = timeout_ms
