"""Timestamped, tagged console logging for the deck engine.

Every line reads ``[timestamp][SYSTEM][LEVEL] message``. Callers may write the
level first (``[WARN][STATE] ...``); the tags are normalized so the subsystem
always leads. WARN and ERROR lines go to stderr.
"""

from __future__ import annotations

import builtins
import re
import sys
import time
from typing import Any


DEFAULT_SYSTEM = "DECK"
LEVELS = ("DEEP", "DEBUG", "INFO", "WARN", "ERROR")
_STDERR_LEVELS = {"WARN", "ERROR"}
_TAG = re.compile(r"\s*\[([^\[\]]+)\]")


def _split_tags(message: str) -> tuple[list[str], str]:
    tags: list[str] = []
    pos = 0
    while match := _TAG.match(message, pos):
        tag = match.group(1).strip()
        if not tag:
            break
        tags.append(tag)
        pos = match.end()
    return tags, message[pos:].strip()


def _format_message(message: str) -> tuple[str, str | None]:
    """Return the normalized line and its level, if it has one."""
    tags, body = _split_tags(message)
    if tags and tags[0].upper() in LEVELS:
        # level-first: swap the first two tags
        level: str | None = tags[0].upper()
        system = tags[1] if len(tags) > 1 else DEFAULT_SYSTEM
        rest = tags[2:]
    elif tags:
        system = tags[0]
        level = tags[1].upper() if len(tags) > 1 else None
        rest = tags[2:]
    else:
        system, level, rest = DEFAULT_SYSTEM, None, []

    head = f"[{system}][{level}]" if level else f"[{system}]"
    if rest:
        head += f" [{' '.join(rest)}]"
    return (f"{head} {body}" if body else head), level


def tprint(*args: Any, **kwargs: Any) -> None:
    """Print with a timestamp prefix and normalized tag order."""
    formatted, level = _format_message(" ".join(str(arg) for arg in args))
    if level in _STDERR_LEVELS:
        kwargs.setdefault("file", sys.stderr)
    builtins.print(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}]{formatted}", **kwargs)


def log(system: str, message: str, variant: str | None = None) -> None:
    """Log with explicit system and optional variant."""
    tprint(f"[{system}][{variant}] {message}" if variant else f"[{system}] {message}")


def log_exception(system: str, message: str, exc: BaseException) -> None:
    """Log an ERROR line naming the exception type."""
    tprint(f"[{system}][ERROR] {message}: {type(exc).__name__}: {exc}")
