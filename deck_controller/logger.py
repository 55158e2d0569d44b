"""Component logger over the timestamped tprint helpers."""

from utils.log_utils import log
from utils.settings_store import is_deep_logging


class DeckLogger:
    def __init__(self, system: str = "DECK") -> None:
        self.system = system

    def info(self, message: str) -> None:
        log(self.system, message, "INFO")

    def warn(self, message: str) -> None:
        log(self.system, message, "WARN")

    def error(self, message: str) -> None:
        log(self.system, message, "ERROR")

    def deep(self, message: str) -> None:
        if is_deep_logging():
            log(self.system, message, "DEEP")
