"""Safe loading/saving helpers."""

import json
from pathlib import Path


def load_json(path: str | Path) -> dict:
    p = Path(path).expanduser()
    if not p.exists():
        return {}
    return json.loads(p.read_text())


def save_json(path: str | Path, data: dict, pretty: bool = True) -> None:
    p = Path(path).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(json.dumps(data, indent=2 if pretty else None))


def delete_file(path: str | Path) -> bool:
    p = Path(path).expanduser()
    if not p.exists():
        return False
    p.unlink()
    return True
