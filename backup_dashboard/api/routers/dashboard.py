"""Dashboard overview and audit log endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_audit_log, get_backup_manager, get_schedule
from ..exceptions import StorageUnavailableError
from ..models import DashboardResponse
from backup_dashboard.audit import AuditLog
from backup_dashboard.backup import BackupManager
from backup_dashboard.schemas import AuditEntry
from backup_dashboard._utils import logger

router = APIRouter(tags=["dashboard"])


@router.get("/", response_model=DashboardResponse)
async def dashboard(
    manager: BackupManager = Depends(get_backup_manager),
    audit: AuditLog = Depends(get_audit_log),
    schedule: Optional[str] = Depends(get_schedule)
) -> DashboardResponse:
    """Artifacts, recent audit entries and the auto-backup schedule."""
    logger.info("Fetching backup list from object storage...")
    try:
        backups = await manager.list_backups()
    except Exception as e:
        audit.record(f"Error loading dashboard: {e}", escalate=True)
        raise StorageUnavailableError()

    return DashboardResponse(
        backups=backups,
        logs=audit.recent(),
        auto_backup_schedule=schedule or "Not scheduled",
    )


@router.get("/logs", response_model=List[AuditEntry])
async def recent_logs(
    limit: Optional[int] = Query(None, ge=1),
    audit: AuditLog = Depends(get_audit_log)
) -> List[AuditEntry]:
    """Most recent audit entries, newest first."""
    return audit.recent(limit)
