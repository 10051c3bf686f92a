"""
Exceptions raised inside the sync layer.

Only the sync engine catches these; callers of ``SyncEngine.sync_now`` receive
a ``SyncResult`` instead.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for the sync layer."""
    pass


class TransportError(SyncError):
    """A whole phase could not run (no network, remote unavailable, timeout)."""
    pass


class RemoteRecordError(SyncError):
    """The remote store rejected a single record."""

    def __init__(self, message: str, table: Optional[str] = None, record_id: Optional[str] = None):
        super().__init__(message)
        self.table = table
        self.record_id = record_id

    def __str__(self):
        base = super().__str__()
        details = []
        if self.table:
            details.append(f"table: {self.table}")
        if self.record_id:
            details.append(f"id: {self.record_id}")
        return f"{base} ({', '.join(details)})" if details else base


class MalformedRecordError(RemoteRecordError):
    """A local record is missing fields required to build the remote row."""
    pass
