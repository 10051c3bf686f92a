"""
Sync layer: local mirror, remote store adapters, field mapping and the sync engine.
"""

from lifesync.sync.debouncer import SyncDebouncer
from lifesync.sync.engine import SyncEngine
from lifesync.sync.exceptions import MalformedRecordError, RemoteRecordError, SyncError, TransportError
from lifesync.sync.local_mirror import LocalMirror, LocalTable
from lifesync.sync.remote import RemoteStore, RestRemoteStore, SQLRemoteStore, create_remote_store

__all__ = [
    "SyncDebouncer",
    "SyncEngine",
    "SyncError",
    "TransportError",
    "RemoteRecordError",
    "MalformedRecordError",
    "LocalMirror",
    "LocalTable",
    "RemoteStore",
    "RestRemoteStore",
    "SQLRemoteStore",
    "create_remote_store",
]
