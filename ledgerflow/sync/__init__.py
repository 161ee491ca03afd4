"""Remote merge and background sync."""

from ledgerflow.sync.merge import merge_by_id, merge_remote_snapshot, rows_to_documents
from ledgerflow.sync.queue import FailedSync, RemoteSyncQueue

__all__ = [
    "FailedSync",
    "RemoteSyncQueue",
    "merge_by_id",
    "merge_remote_snapshot",
    "rows_to_documents",
]
