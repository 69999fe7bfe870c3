"""Pydantic models for API requests and responses."""

from typing import List

from pydantic import BaseModel

from backup_dashboard.schemas import AuditEntry


class DashboardResponse(BaseModel):
    backups: List[str]
    logs: List[AuditEntry]
    auto_backup_schedule: str


class MessageResponse(BaseModel):
    message: str
