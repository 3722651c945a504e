from __future__ import annotations

import base64
import secrets
import uuid
from datetime import datetime, timezone


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dt%H%M%Sz")


def new_run_id() -> str:
    enc = base64.b32encode(secrets.token_bytes(10)).decode("ascii").lower().rstrip("=")
    return f"run_{_timestamp()}_{enc}"


def new_workdir_name() -> str:
    return uuid.uuid4().hex
