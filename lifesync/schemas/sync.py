"""
Sync result schemas returned by the sync engine and the sync coordinator.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional
from enum import Enum


class SyncStatus(str, Enum):
    """Status of the sync coordinator, as shown to the user."""
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class TableSyncReport(BaseModel):
    """What one sync pass did to one table."""
    table: str
    pushed: int = Field(0, description="Records pushed and cleared locally")
    failed: int = Field(0, description="Records rejected by the remote, left pending")
    pulled: int = Field(0, description="Rows fetched from the remote")
    removed: int = Field(0, description="Tombstones applied (records removed locally)")
    skipped: int = Field(0, description="Pulled rows not applied (no id, bad timestamp, or local copy still pending)")
    error: Optional[str] = Field(None, description="Table-level failure, if any")


class SyncResult(BaseModel):
    """Outcome of one full sync pass."""
    success: bool
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    tables: List[TableSyncReport] = Field(default_factory=list)

    def table(self, name: str) -> Optional[TableSyncReport]:
        return next((report for report in self.tables if report.table == name), None)

    @property
    def total_pulled(self) -> int:
        return sum(report.pulled for report in self.tables)

    @property
    def total_pushed(self) -> int:
        return sum(report.pushed for report in self.tables)

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "error": None,
                "started_at": "2024-03-01T12:00:00Z",
                "tables": [
                    {"table": "books", "pushed": 1, "failed": 0, "pulled": 0, "removed": 0, "skipped": 0}
                ]
            }
        }
