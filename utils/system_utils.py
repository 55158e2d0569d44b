"""System helpers for environment checks."""

import platform
import signal


def current_os() -> str:
    return platform.system().lower()


def is_macos() -> bool:
    return current_os() == "darwin"


def signal_name(signum: int | None) -> str | None:
    if signum is None:
        return None
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)
