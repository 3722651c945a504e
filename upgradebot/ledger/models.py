from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional


class RunStatus(IntEnum):
    """Progress of a run.

    The integer values are what the ledger stores and what ordering compares.
    Renumbering or reordering them breaks records that are already persisted.
    """

    ERROR = -1
    AUTH = 0
    FORK = 1
    CLONE = 2
    BRANCH = 3
    CHECKOUT = 4
    UPGRADE = 5
    ADD = 6
    COMMIT = 7
    PUSH = 8
    STAR = 9
    PULL_REQUEST = 10
    DONE = 11

    @classmethod
    def progression(cls) -> List["RunStatus"]:
        return sorted((s for s in cls if s is not cls.ERROR), key=int)

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass
class RunRecord:
    run_id: str
    owner: str
    repo: str
    branch: str
    version: str
    status: RunStatus = RunStatus.AUTH
    last_status: RunStatus = RunStatus.AUTH

    def to_entity(self) -> Dict[str, Any]:
        return {
            "PartitionKey": self.owner,
            "RowKey": self.run_id,
            "owner": self.owner,
            "repo": self.repo,
            "branch": self.branch,
            "version": self.version,
            "status": int(self.status),
            "lastStatus": int(self.last_status),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "owner": self.owner,
            "repo": self.repo,
            "branch": self.branch,
            "version": self.version,
            "status": int(self.status),
            "statusName": self.status.label,
            "lastStatus": int(self.last_status),
            "lastStatusName": self.last_status.label,
        }


def status_entity(owner: str, run_id: str, status: RunStatus, include_last: bool = True) -> Dict[str, Any]:
    entity: Dict[str, Any] = {
        "PartitionKey": owner,
        "RowKey": run_id,
        "status": int(status),
    }
    if include_last:
        entity["lastStatus"] = int(status)
    return entity


def record_from_entity(entity: Dict[str, Any]) -> RunRecord:
    return RunRecord(
        run_id=str(entity.get("RowKey", "")),
        owner=str(entity.get("owner") or entity.get("PartitionKey", "")),
        repo=str(entity.get("repo", "")),
        branch=str(entity.get("branch", "")),
        version=str(entity.get("version", "")),
        status=_status(entity.get("status")),
        last_status=_status(entity.get("lastStatus")),
    )


def _status(value: Optional[Any]) -> RunStatus:
    if value is None:
        return RunStatus.AUTH
    return RunStatus(int(value))
