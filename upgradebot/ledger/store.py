from __future__ import annotations

from typing import List, Optional

from .models import RunRecord, RunStatus, record_from_entity, status_entity
from .tables import TableStore


class Ledger:
    def __init__(self, tables: TableStore, table_name: str) -> None:
        if not table_name:
            raise ValueError("table_name is empty")
        self._tables = tables
        self._table = table_name

    @property
    def table_name(self) -> str:
        return self._table

    def init(self) -> None:
        self._tables.ensure_table(self._table)

    def start(self, run_id: str, owner: str, repo: str, branch: str, version: str) -> RunRecord:
        record = RunRecord(
            run_id=run_id,
            owner=owner,
            repo=repo,
            branch=branch,
            version=version,
            status=RunStatus.AUTH,
            last_status=RunStatus.AUTH,
        )
        self._tables.upsert_replace(self._table, record.to_entity())
        return record

    def advance(self, owner: str, run_id: str, status: RunStatus) -> None:
        if status is RunStatus.ERROR:
            raise ValueError("use fail() to record an error")
        self._tables.upsert_merge(self._table, status_entity(owner, run_id, status))

    def fail(self, owner: str, run_id: str) -> None:
        # lastStatus is left alone so it keeps the highest step reached.
        self._tables.upsert_merge(self._table, status_entity(owner, run_id, RunStatus.ERROR, include_last=False))

    def get(self, run_id: str) -> Optional[RunRecord]:
        if not run_id:
            return None
        entities = self._tables.query(self._table, {"RowKey": run_id})
        if not entities:
            return None
        return record_from_entity(entities[0])

    def list(self, owner: str | None = None) -> List[RunRecord]:
        where = {"PartitionKey": owner} if owner else None
        return [record_from_entity(e) for e in self._tables.query(self._table, where)]
