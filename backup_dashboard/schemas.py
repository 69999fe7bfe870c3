"""Data models shared by the backup manager, progress channel and audit log.

- Artifact: one backup file held in the object store. Immutable once uploaded.
- ProgressEvent: ephemeral progress broadcast, never persisted.
- AuditEntry: one persisted line of the append-only audit log.
- OperationResult: what a backup / restore / disaster-recovery run returns.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

# Terminal progress values
PROGRESS_COMPLETE = 100.0
PROGRESS_FAILED = -1.0


class OperationKind(str, Enum):
    BACKUP = "backup"
    RESTORE = "restore"
    DISASTER_RECOVERY = "disaster-recovery"

    @property
    def label(self) -> str:
        return {
            OperationKind.BACKUP: "Backup",
            OperationKind.RESTORE: "Restore",
            OperationKind.DISASTER_RECOVERY: "Disaster recovery",
        }[self]


class OperationState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING_EXTERNAL_COMMAND = "running-external-command"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    FAILED = "failed"


class Artifact(BaseModel):
    """Backup artifact stored in the object store."""

    artifact_id: str = Field(..., description="Time-derived artifact identifier")
    size_bytes: int = Field(..., ge=0, description="Stored size in bytes")
    location: str = Field(..., description="Storage location of the artifact")

    model_config = {"frozen": True}


class ProgressEvent(BaseModel):
    """Progress of one in-flight operation."""

    operation_id: str
    operation: OperationKind
    message: str
    percentage: float = Field(..., ge=-1, le=100)

    @property
    def is_terminal(self) -> bool:
        return self.percentage in (PROGRESS_COMPLETE, PROGRESS_FAILED)


class AuditEntry(BaseModel):
    """Single audit log line."""

    timestamp: datetime
    message: str
    escalate: bool = False


class OperationResult(BaseModel):
    """Outcome of a backup, restore or disaster-recovery run."""

    operation_id: str
    operation: OperationKind
    success: bool
    artifact: Optional[Artifact] = None
    database: Optional[str] = None
    error: Optional[str] = None
