"""Entry point: run a deck config against a console-driven simulated deck."""

import asyncio
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from deck_controller.config import load_deck_config
from deck_controller.controller import DeckController
from deck_controller.device_events import DeviceInfo, SimulatedDeck
from deck_controller.render_bridge import ConsoleRenderer
from utils.log_utils import tprint
from utils.settings_store import get_settings, update_settings

HELP = "commands: press S I | release S I | tap S I | back S | page S P | history | help | quit"


def _is_enabled(name: str, default: bool = True) -> bool:
    """Read a boolean-like environment variable (1/0/true/false)."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _load_env_files() -> None:
    """Load .env files from common locations (repo, home)."""
    candidates: list[Path] = []
    cwd = Path.cwd()
    candidates.extend([cwd / "env/.env", cwd / ".env"])

    module_root = Path(__file__).resolve().parent
    candidates.extend([module_root / "env/.env", module_root / ".env"])

    home = Path.home()
    candidates.append(home / ".deck.env")

    for path in candidates:
        if path.exists():
            load_dotenv(dotenv_path=str(path), override=False)


def handle_command(controller: DeckController, deck: SimulatedDeck, line: str) -> bool:
    """Apply one console command; returns False when the loop should stop."""
    parts = line.split()
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]
    try:
        if command in {"quit", "exit"}:
            return False
        if command in {"press", "release", "tap"} and len(args) == 2:
            getattr(deck, command)(args[0], int(args[1]))
        elif command == "back" and len(args) == 1:
            if not controller.navigate_back(args[0]):
                tprint(f"[MAIN][WARN] Nothing to go back to on {args[0]}")
        elif command == "page" and len(args) == 2:
            if not controller.activate_page(args[0], args[1]):
                tprint(f"[MAIN][WARN] No page {args[1]!r} on {args[0]}")
        elif command == "history":
            for record in controller.executor.get_history(10):
                tprint(f"[MAIN] {record.to_dict()}")
        else:
            tprint(f"[MAIN] {HELP}")
    except ValueError:
        tprint(f"[MAIN][WARN] Bad arguments: {line.strip()}")
    return True


async def run_console(controller: DeckController, deck: SimulatedDeck) -> None:
    loop = asyncio.get_running_loop()
    controller.start()
    tprint(f"[MAIN] {HELP}")
    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            if not handle_command(controller, deck, line):
                break
            # Let freshly submitted actions start before the next prompt.
            await asyncio.sleep(0)
    finally:
        await controller.stop()
        controller.dispose()


def bootstrap() -> None:
    """Wire up the controller and start the console deck."""
    _load_env_files()
    if os.getenv("DECK_LOG_LEVEL"):
        update_settings({"log_level": os.environ["DECK_LOG_LEVEL"]})

    config = load_deck_config(os.getenv("DECK_CONFIG_PATH", "config/deck.json"))
    deck = SimulatedDeck(
        [DeviceInfo(serial=serial, name=device.name or serial) for serial, device in config.devices.items()]
    )
    renderer = ConsoleRenderer() if _is_enabled("DECK_RENDER", True) else None
    controller = DeckController(
        config,
        event_source=deck,
        driver=deck,
        settings=get_settings(),
        renderer=renderer,
    )
    try:
        asyncio.run(run_console(controller, deck))
    except KeyboardInterrupt:
        print("[MAIN] Received interrupt. Shutting down...")


if __name__ == "__main__":
    bootstrap()
