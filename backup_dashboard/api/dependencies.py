"""Dependency injection for FastAPI."""

from typing import TYPE_CHECKING, Optional

from fastapi import Request

if TYPE_CHECKING:
    from backup_dashboard.audit import AuditLog
    from backup_dashboard.backup import BackupManager
    from backup_dashboard.progress import ProgressChannel
    from .config import Settings


async def get_backup_manager(request: Request) -> "BackupManager":
    """Get BackupManager instance from app state."""
    return request.app.state.manager


async def get_audit_log(request: Request) -> "AuditLog":
    """Get AuditLog instance from app state."""
    return request.app.state.audit


async def get_progress_channel(request: Request) -> "ProgressChannel":
    """Get ProgressChannel instance from app state."""
    return request.app.state.progress


async def get_schedule(request: Request) -> Optional[str]:
    """Get the configured auto-backup cron expression, if any."""
    return getattr(request.app.state, "schedule", None)


def get_settings(request: Request) -> "Settings":
    return request.app.state.settings
