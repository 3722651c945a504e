from __future__ import annotations

from pathlib import Path


def expand_home(value: str) -> str:
    if not value:
        return value
    if value == "~":
        return str(Path.home())
    if value.startswith("~/"):
        return str(Path.home() / value[2:])
    return value


def expand_url_home(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep:
        return expand_home(url)
    return f"{scheme}{sep}{expand_home(rest)}"
