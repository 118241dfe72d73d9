from footy.store.base import (
    BatchConflictError,
    BatchLimitError,
    DocumentStore,
    StoreError,
    WriteBatch,
    WriteOp,
)

__all__ = [
    "BatchConflictError",
    "BatchLimitError",
    "DocumentStore",
    "StoreError",
    "WriteBatch",
    "WriteOp",
]
