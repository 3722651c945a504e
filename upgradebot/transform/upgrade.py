from __future__ import annotations

import shlex
from typing import Tuple

from upgradebot.util.cancel import CancelToken
from upgradebot.util.exec import CommandError, ExecOptions, run_command

LATEST = "latest"
SUPPORTED_VERSIONS: Tuple[str, ...] = ("3.6", "3.7", "3.8", "3.9", "4.0", "4.1", LATEST)


class TransformError(RuntimeError):
    pass


def normalize_version(version: str | None) -> str:
    value = (version or "").strip().lower() or LATEST
    if value.startswith("v"):
        value = value[1:].replace("_", ".")
    if value not in SUPPORTED_VERSIONS:
        raise ValueError(f"unsupported target version: {version} (expected one of {', '.join(SUPPORTED_VERSIONS)})")
    return value


class Transformer:
    def upgrade(self, project_dir: str, version: str, token: CancelToken | None = None) -> None:
        raise NotImplementedError


class CommandTransformer(Transformer):
    """Runs an external upgrade command that rewrites ``project_dir`` in place.

    ``{dir}`` and ``{version}`` in the template are substituted shell-quoted.
    """

    def __init__(self, command_template: str, timeout_ms: int = 30 * 60_000) -> None:
        if "{dir}" not in command_template:
            raise ValueError("upgrade command must reference {dir}")
        self._template = command_template
        self._timeout_ms = timeout_ms

    def command_for(self, project_dir: str, version: str) -> str:
        return self._template.format(dir=shlex.quote(project_dir), version=shlex.quote(version))

    def upgrade(self, project_dir: str, version: str, token: CancelToken | None = None) -> None:
        cmd = self.command_for(project_dir, version)
        try:
            run_command(cmd, ExecOptions(dir=project_dir, timeout_ms=self._timeout_ms, signal=token))
        except CommandError as err:
            detail = err.result.stderr.strip() or err.result.stdout.strip() or str(err)
            raise TransformError(f"upgrade failed: {detail}") from err
