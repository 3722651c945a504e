from __future__ import annotations

import shutil
from typing import Dict, Iterable


def look_path(cmd: str) -> str:
    if not cmd:
        raise ValueError("command is empty")
    resolved = shutil.which(cmd)
    if not resolved:
        raise FileNotFoundError(f"command not found: {cmd}")
    return resolved


def look_paths(cmds: Iterable[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for cmd in cmds:
        try:
            out[cmd] = look_path(cmd)
        except FileNotFoundError:
            out[cmd] = ""
    return out
