from __future__ import annotations

import os
from pathlib import Path
from typing import List


def load_env_file(path: str) -> List[str]:
    """Load ``KEY=value`` lines into ``os.environ`` without overriding set keys.

    Returns the keys that were applied. A missing file is not an error.
    """
    loaded: List[str] = []
    if not path:
        return loaded
    file_path = Path(path)
    if not file_path.is_file():
        return loaded
    for raw in file_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key in os.environ:
            continue
        value = _unquote(value.strip())
        os.environ[key] = value
        loaded.append(key)
    return loaded


def env_bool(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def env_int(value: str | None, default: int) -> int:
    try:
        parsed = int((value or "").strip())
    except ValueError:
        return default
    return parsed or default


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value
