from __future__ import annotations

import copy
import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote, unquote

Entity = Dict[str, Any]


class TableStore:
    def ensure_table(self, name: str) -> None:
        raise NotImplementedError

    def upsert_replace(self, table: str, entity: Entity) -> None:
        raise NotImplementedError

    def upsert_merge(self, table: str, entity: Entity) -> None:
        raise NotImplementedError

    def query(self, table: str, where: Optional[Mapping[str, Any]] = None) -> List[Entity]:
        raise NotImplementedError


def _keys(entity: Entity) -> tuple[str, str]:
    partition = str(entity.get("PartitionKey") or "")
    row = str(entity.get("RowKey") or "")
    if not partition or not row:
        raise ValueError("entity requires PartitionKey and RowKey")
    if partition in (".", "..") or row in (".", ".."):
        raise ValueError(f"invalid entity key: {partition!r}/{row!r}")
    return partition, row


def _matches(entity: Entity, where: Optional[Mapping[str, Any]]) -> bool:
    if not where:
        return True
    return all(entity.get(key) == value for key, value in where.items())


def _check_table(name: str) -> None:
    if not name or not name.isalnum():
        raise ValueError(f"invalid table name: {name!r}")


class MemoryTableStore(TableStore):
    def __init__(self) -> None:
        self._tables: Dict[str, Dict[tuple[str, str], Entity]] = {}
        self._lock = threading.RLock()

    def ensure_table(self, name: str) -> None:
        _check_table(name)
        with self._lock:
            self._tables.setdefault(name, {})

    def upsert_replace(self, table: str, entity: Entity) -> None:
        key = _keys(entity)
        with self._lock:
            self._table(table)[key] = copy.deepcopy(entity)

    def upsert_merge(self, table: str, entity: Entity) -> None:
        key = _keys(entity)
        with self._lock:
            rows = self._table(table)
            merged = dict(rows.get(key) or {})
            merged.update(copy.deepcopy(entity))
            rows[key] = merged

    def query(self, table: str, where: Optional[Mapping[str, Any]] = None) -> List[Entity]:
        with self._lock:
            rows = list(self._tables.get(table, {}).values())
        return [copy.deepcopy(row) for row in rows if _matches(row, where)]

    def _table(self, name: str) -> Dict[tuple[str, str], Entity]:
        if name not in self._tables:
            raise KeyError(f"table not found: {name}")
        return self._tables[name]


class FileTableStore(TableStore):
    def __init__(self, data_dir: str) -> None:
        if not str(data_dir).strip():
            raise ValueError("data_dir is empty")
        self._data_dir = Path(data_dir)
        self._lock = threading.RLock()

    def _table_dir(self, table: str) -> Path:
        return self._data_dir / "tables" / table

    def _entity_path(self, table: str, partition: str, row: str) -> Path:
        return self._table_dir(table) / quote(partition, safe="") / f"{quote(row, safe='')}.json"

    def ensure_table(self, name: str) -> None:
        _check_table(name)
        self._table_dir(name).mkdir(parents=True, exist_ok=True)

    def upsert_replace(self, table: str, entity: Entity) -> None:
        partition, row = _keys(entity)
        with self._lock:
            self._write(table, partition, row, dict(entity))

    def upsert_merge(self, table: str, entity: Entity) -> None:
        partition, row = _keys(entity)
        with self._lock:
            path = self._entity_path(table, partition, row)
            merged: Entity = {}
            if path.exists():
                merged = json.loads(path.read_text(encoding="utf-8"))
            merged.update(entity)
            self._write(table, partition, row, merged)

    def query(self, table: str, where: Optional[Mapping[str, Any]] = None) -> List[Entity]:
        table_dir = self._table_dir(table)
        out: List[Entity] = []
        if not table_dir.exists():
            return out
        # Narrow the scan when the filter names a partition or row key.
        partition = (where or {}).get("PartitionKey")
        row = (where or {}).get("RowKey")
        partition_glob = quote(str(partition), safe="") if partition else "*"
        row_glob = f"{quote(str(row), safe='')}.json" if row else "*.json"
        with self._lock:
            for path in sorted(table_dir.glob(f"{partition_glob}/{row_glob}")):
                entity = json.loads(path.read_text(encoding="utf-8"))
                if _matches(entity, where):
                    out.append(entity)
        return out

    def _write(self, table: str, partition: str, row: str, entity: Entity) -> None:
        if not self._table_dir(table).exists():
            raise KeyError(f"table not found: {table}")
        path = self._entity_path(table, partition, row)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(entity, indent=2) + "\n", encoding="utf-8")
        tmp.replace(path)


class SqliteTableStore(TableStore):
    def __init__(self, path: str) -> None:
        path_obj = Path(path)
        path_obj.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(
            str(path_obj),
            check_same_thread=False,
            isolation_level=None,
        )
        self._db.execute("PRAGMA journal_mode=WAL;")
        self._db.execute("PRAGMA synchronous=NORMAL;")
        self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS tables (
                table_name TEXT PRIMARY KEY
            )
            """
        )
        self._db.execute(
            """
            CREATE TABLE IF NOT EXISTS entities (
                table_name    TEXT NOT NULL,
                partition_key TEXT NOT NULL,
                row_key       TEXT NOT NULL,
                data_json     TEXT NOT NULL,
                updated_at    REAL NOT NULL,
                PRIMARY KEY (table_name, partition_key, row_key)
            )
            """
        )
        self._lock = threading.RLock()

    def close(self) -> None:
        with self._lock:
            self._db.close()

    def ensure_table(self, name: str) -> None:
        _check_table(name)
        with self._lock:
            self._db.execute("INSERT OR IGNORE INTO tables (table_name) VALUES (?)", (name,))

    def upsert_replace(self, table: str, entity: Entity) -> None:
        partition, row = _keys(entity)
        with self._lock:
            self._require(table)
            self._put(table, partition, row, dict(entity))

    def upsert_merge(self, table: str, entity: Entity) -> None:
        partition, row = _keys(entity)
        with self._lock:
            self._require(table)
            existing = self._db.execute(
                "SELECT data_json FROM entities WHERE table_name = ? AND partition_key = ? AND row_key = ?",
                (table, partition, row),
            ).fetchone()
            merged: Entity = json.loads(existing[0]) if existing else {}
            merged.update(entity)
            self._put(table, partition, row, merged)

    def query(self, table: str, where: Optional[Mapping[str, Any]] = None) -> List[Entity]:
        sql = "SELECT data_json FROM entities WHERE table_name = ?"
        params: List[Any] = [table]
        if where and "PartitionKey" in where:
            sql += " AND partition_key = ?"
            params.append(str(where["PartitionKey"]))
        if where and "RowKey" in where:
            sql += " AND row_key = ?"
            params.append(str(where["RowKey"]))
        sql += " ORDER BY partition_key, row_key"
        with self._lock:
            rows = self._db.execute(sql, params).fetchall()
        entities = [json.loads(r[0]) for r in rows]
        return [e for e in entities if _matches(e, where)]

    def _require(self, table: str) -> None:
        row = self._db.execute("SELECT 1 FROM tables WHERE table_name = ?", (table,)).fetchone()
        if not row:
            raise KeyError(f"table not found: {table}")

    def _put(self, table: str, partition: str, row: str, entity: Entity) -> None:
        self._db.execute(
            """
            INSERT INTO entities (table_name, partition_key, row_key, data_json, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(table_name, partition_key, row_key) DO UPDATE SET
                data_json = excluded.data_json,
                updated_at = excluded.updated_at
            """,
            (table, partition, row, json.dumps(entity, ensure_ascii=False), time.time()),
        )


def open_table_store(connection_string: str) -> TableStore:
    value = (connection_string or "").strip()
    if not value:
        raise ValueError("connection string is empty")
    if value in ("memory:", "memory://"):
        return MemoryTableStore()
    scheme, sep, rest = value.partition("://")
    if not sep:
        return FileTableStore(value)
    if scheme == "sqlite":
        return SqliteTableStore(_url_path(rest))
    if scheme == "file":
        return FileTableStore(_url_path(rest))
    raise ValueError(f"unsupported ledger connection string scheme: {scheme}")


def _url_path(rest: str) -> str:
    # "sqlite:///abs/path" leaves "/abs/path"; "sqlite://rel/path" leaves "rel/path".
    path = unquote(rest)
    if not path:
        raise ValueError("connection string has no path")
    return path
