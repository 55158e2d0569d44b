"""HTTP request action backed by aiohttp."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional, Union

import aiohttp
from pydantic import Field, field_validator

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

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}
_BODY_METHODS = {"POST", "PUT", "PATCH"}
_SUCCESS_RESET_MS = 5000
_ERROR_RESET_MS = 3000


class HttpRequestConfig(ActionConfigModel):
    url: NonBlankStr
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[Union[str, dict[str, Any]]] = None
    timeout_ms: int = Field(default=30000, ge=0)
    show_response: bool = False
    max_response_length: int = Field(default=10, ge=0)
    follow_redirects: bool = True
    expect_status: Optional[int] = 200
    expect_pattern: Optional[str] = None
    extract_path: Optional[str] = None

    @field_validator("method", mode="before")
    @classmethod
    def _normalize_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.upper()
            if value not in HTTP_METHODS:
                raise ValueError(f"unsupported HTTP method {value}")
        return value


def extract_json_path(payload: Any, path: str) -> Any:
    """Follow a dot path (``a.b.0.c``) through dicts and lists; None when missing."""
    value = payload
    for key in path.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(key)
        elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return None
    return value


def _display_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


class HttpRequestAction(ConfiguredAction):
    action_type = "http_request"
    config_model = HttpRequestConfig
    config_error = "HTTP request action requires a valid URL"

    def __init__(self, config, action_id: str | None = None) -> None:
        super().__init__(config, action_id)
        self._signal: CancelSignal | None = None

    async def execute_action(self, context: ActionContext) -> ActionResult:
        self._signal = signal = CancelSignal()
        button = context.button_state
        self._show(context, "Loading...")

        request = asyncio.ensure_future(self._send())
        signal.add_callback(request.cancel)
        try:
            status, headers, text = await request
            self._check_response(status, text)
        except asyncio.CancelledError:
            if not signal.aborted:
                raise
            return ActionResult.cancelled("HTTP request cancelled by user")
        except (aiohttp.ClientError, ActionExecutionError, asyncio.TimeoutError, ValueError) as exc:
            error = exc
            if isinstance(exc, asyncio.TimeoutError):
                error = ActionTimeoutError(
                    f"Request timed out after {self.config.timeout_ms}ms", self.config.timeout_ms
                )
            if self.config.show_response:
                self._show(context, f"Error: {truncate(str(error), self.config.max_response_length)}")
                self._schedule_reset(button, _ERROR_RESET_MS)
            return ActionResult.failure(error, message=f"HTTP request failed: {error}")
        finally:
            signal.remove_callback(request.cancel)
            self._signal = None

        display_text = self._display_text(text)
        if self.config.show_response:
            self._show(context, display_text or "Success")
            self._schedule_reset(button, _SUCCESS_RESET_MS)

        return ActionResult.success(
            {
                "url": self.config.url,
                "status": status,
                "headers": headers,
                "response_text": text,
                "display_text": display_text,
            }
        )

    async def _send(self) -> tuple[int, dict[str, str], str]:
        headers = dict(self.config.headers)
        kwargs: dict[str, Any] = {}
        body = self.config.body
        if self.config.method in _BODY_METHODS and body:
            if isinstance(body, str):
                kwargs["data"] = body
            else:
                kwargs["data"] = json.dumps(body)
                if not any(name.lower() == "content-type" for name in headers):
                    headers["Content-Type"] = "application/json"

        timeout = aiohttp.ClientTimeout(total=self.config.timeout_ms / 1000 if self.config.timeout_ms else None)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                self.config.method,
                self.config.url,
                headers=headers,
                allow_redirects=self.config.follow_redirects,
                **kwargs,
            ) as response:
                text = await response.text()
                return response.status, dict(response.headers), text

    def _check_response(self, status: int, text: str) -> None:
        expected = self.config.expect_status
        if expected and status != expected:
            raise ActionExecutionError(
                f"Expected status {expected} but got {status}: {text}",
                code="status_mismatch",
                details={"status": status, "expected": expected},
            )
        pattern = self.config.expect_pattern
        if pattern and pattern not in text:
            raise ActionExecutionError(
                f'Expected pattern "{pattern}" not found in response',
                code="pattern_missing",
            )

    def _display_text(self, text: str) -> str:
        display = text
        if self.config.extract_path and text:
            try:
                value = extract_json_path(json.loads(text), self.config.extract_path)
            except ValueError as exc:
                tprint(f"[ACTION][WARN] Could not extract {self.config.extract_path!r}: {exc}")
            else:
                if value is not None:
                    display = _display_value(value)
        if self.config.show_response:
            display = truncate(display, self.config.max_response_length)
        return display

    def _show(self, context: ActionContext, message: str) -> None:
        button = context.button_state
        if self.config.show_response and button is not None and not button.is_disposed:
            button.update_visual(text=message)

    def is_cancellable(self) -> bool:
        return self.is_executing() and self._signal is not None

    async def cancel(self) -> bool:
        if not await super().cancel():
            return False
        if self._signal is not None:
            self._signal.abort("cancelled")
        return True


class HttpRequestActionFactory(ConfiguredActionFactory):
    action_class = HttpRequestAction
