from .models import RunRecord, RunStatus, record_from_entity, status_entity
from .store import Ledger
from .tables import (
    FileTableStore,
    MemoryTableStore,
    SqliteTableStore,
    TableStore,
    open_table_store,
)

__all__ = [
    "RunRecord",
    "RunStatus",
    "record_from_entity",
    "status_entity",
    "Ledger",
    "FileTableStore",
    "MemoryTableStore",
    "SqliteTableStore",
    "TableStore",
    "open_table_store",
]
