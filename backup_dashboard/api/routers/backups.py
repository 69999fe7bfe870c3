"""Backup, restore, disaster-recovery, delete and download endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from ..dependencies import get_backup_manager, get_progress_channel
from ..exceptions import (
    BackupNotFoundError,
    InvalidBackupIdError,
    OperationFailedError,
    StorageUnavailableError,
)
from ..models import MessageResponse
from backup_dashboard.backup import BackupManager
from backup_dashboard.backup.utils import validate_artifact_id
from backup_dashboard.exceptions import ArtifactNotFoundError, InvalidArtifactIdError, StorageError
from backup_dashboard.progress import ProgressChannel
from backup_dashboard.schemas import OperationResult

router = APIRouter(prefix="/backups", tags=["backups"])

# Lets an observer subscribe to the run's progress before starting it
OPERATION_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


def _checked_id(artifact_id: str) -> str:
    try:
        return validate_artifact_id(artifact_id)
    except InvalidArtifactIdError:
        raise InvalidBackupIdError(artifact_id)


def _result_or_error(result: OperationResult) -> OperationResult:
    if not result.success:
        raise OperationFailedError(result.operation.label)
    return result


@router.get("", response_model=List[str])
async def list_backups(
    manager: BackupManager = Depends(get_backup_manager)
) -> List[str]:
    """List artifact identifiers, newest first."""
    try:
        return await manager.list_backups()
    except StorageError:
        raise StorageUnavailableError()


@router.post("", response_model=OperationResult)
async def create_backup(
    operation_id: Optional[str] = Query(None, pattern=OPERATION_ID_PATTERN),
    manager: BackupManager = Depends(get_backup_manager),
    progress: ProgressChannel = Depends(get_progress_channel)
) -> OperationResult:
    """Dump the database and upload a new artifact."""
    result = await manager.create_backup(observer=progress, operation_id=operation_id)
    return _result_or_error(result)


@router.post("/{artifact_id}/restore", response_model=OperationResult)
async def restore_backup(
    artifact_id: str,
    operation_id: Optional[str] = Query(None, pattern=OPERATION_ID_PATTERN),
    manager: BackupManager = Depends(get_backup_manager),
    progress: ProgressChannel = Depends(get_progress_channel)
) -> OperationResult:
    """Restore an artifact into the target database."""
    result = await manager.restore_backup(
        _checked_id(artifact_id), observer=progress, operation_id=operation_id
    )
    return _result_or_error(result)


@router.post("/{artifact_id}/disaster-recovery", response_model=OperationResult)
async def disaster_recovery(
    artifact_id: str,
    operation_id: Optional[str] = Query(None, pattern=OPERATION_ID_PATTERN),
    manager: BackupManager = Depends(get_backup_manager),
    progress: ProgressChannel = Depends(get_progress_channel)
) -> OperationResult:
    """Restore an artifact into a new isolated database."""
    result = await manager.recover_to_new_database(
        _checked_id(artifact_id), observer=progress, operation_id=operation_id
    )
    return _result_or_error(result)


@router.delete("/{artifact_id}", response_model=MessageResponse)
async def delete_backup(
    artifact_id: str,
    manager: BackupManager = Depends(get_backup_manager)
) -> MessageResponse:
    """Delete an artifact."""
    artifact_id = _checked_id(artifact_id)
    try:
        await manager.delete_backup(artifact_id)
    except ArtifactNotFoundError:
        raise BackupNotFoundError(artifact_id)
    except StorageError:
        raise OperationFailedError("Delete")

    return MessageResponse(message=f"Backup deleted: {artifact_id}")


@router.get("/{artifact_id}/download")
async def download_backup(
    artifact_id: str,
    manager: BackupManager = Depends(get_backup_manager)
) -> StreamingResponse:
    """Stream an artifact to the client as an attachment."""
    artifact_id = _checked_id(artifact_id)
    try:
        size, chunks = await manager.open_download(artifact_id)
    except ArtifactNotFoundError:
        raise BackupNotFoundError(artifact_id)
    except StorageError:
        raise OperationFailedError("Download")

    return StreamingResponse(
        chunks,
        media_type="application/sql",
        headers={
            "Content-Disposition": f'attachment; filename="{artifact_id}"',
            "Content-Length": str(size),
        },
    )
