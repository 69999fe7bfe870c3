"""Backup, restore and disaster-recovery orchestration for one PostgreSQL database."""

from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple
from uuid import uuid4

from .._utils import logger
from ..audit import AuditLog
from ..config import DashboardConfig
from ..exceptions import (
    ArtifactConflictError,
    ArtifactNotFoundError,
    LocalIOError,
    StorageTransportError,
)
from ..process import PostgresCommands
from ..progress import OperationTracker, ProgressSink
from ..schemas import Artifact, OperationKind, OperationResult, OperationState
from ..storage import BaseObjectStorage, S3ObjectStorage
from .locks import DatabaseLocks
from .utils import (
    generate_artifact_id,
    generate_recovery_database_name,
    scale_progress,
    temp_file_path,
    validate_artifact_id,
)


class BackupManager:
    """Run backup, restore and disaster-recovery state machines.

    Each run moves through starting -> running-external-command /
    transferring -> completed | failed, reports progress to an optional
    observer, records its outcome in the audit log and removes its local temp
    file on every exit path. Errors stop the run at once; nothing is retried.
    """

    def __init__(
        self,
        storage: BaseObjectStorage,
        commands: PostgresCommands,
        audit: AuditLog,
        temp_dir: str = "./temp",
        locks: Optional[DatabaseLocks] = None
    ):
        """Initialize backup manager.

        Args:
            storage: Object store holding the artifacts
            commands: PostgreSQL client commands for the target database
            audit: Audit log receiving every outcome
            temp_dir: Directory for local copies of artifacts
            locks: Per-database locks; a new enabled registry if omitted
        """
        self.storage = storage
        self.commands = commands
        self.audit = audit
        self.temp_dir = Path(temp_dir)
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.locks = locks or DatabaseLocks()

    @classmethod
    def from_config(
        cls,
        config: DashboardConfig,
        audit: AuditLog,
        storage: Optional[BaseObjectStorage] = None
    ) -> "BackupManager":
        return cls(
            storage=storage or S3ObjectStorage(config.storage),
            commands=PostgresCommands(config.database),
            audit=audit,
            temp_dir=config.temp_dir,
            locks=DatabaseLocks(enabled=config.serialize_operations),
        )

    @property
    def database_identity(self) -> str:
        return self.commands.config.identity

    async def create_backup(
        self,
        observer: Optional[ProgressSink] = None,
        operation_id: Optional[str] = None
    ) -> OperationResult:
        """Dump the database and upload it as a new artifact.

        The artifact ID is fixed when the run is triggered, so two backups
        triggered within the same second share it; the later run fails with
        ArtifactConflictError once the first one has uploaded.

        Args:
            observer: Receives progress events; None for silent runs
            operation_id: Progress topic for this run, generated if omitted

        Returns:
            OperationResult with the new Artifact on success
        """
        tracker = OperationTracker(OperationKind.BACKUP, operation_id or uuid4().hex, observer)
        artifact_id = generate_artifact_id()
        temp_path = temp_file_path(self.temp_dir, artifact_id)

        async with self.locks.hold(self.database_identity):
            try:
                tracker.transition(OperationState.STARTING)
                self.audit.record(f"Starting backup process: {artifact_id}")
                tracker.advance("Starting backup...", 0)
                await self._ensure_absent(artifact_id)

                tracker.transition(OperationState.RUNNING_EXTERNAL_COMMAND)
                await self.commands.dump(temp_path)
                size = self._file_size(temp_path)
                self.audit.record(f"Backup file created: {temp_path.name}, uploading to object storage...")

                tracker.transition(OperationState.TRANSFERRING)
                tracker.advance("Uploading backup...", 10)
                await self._upload(artifact_id, temp_path, size, tracker, 10, 100)

                stored_size = await self.storage.head(artifact_id)
                if stored_size != size:
                    raise StorageTransportError(
                        f"Uploaded size mismatch for {artifact_id}: expected {size}, stored {stored_size}"
                    )

                artifact = Artifact(
                    artifact_id=artifact_id,
                    size_bytes=stored_size,
                    location=self.storage.location(artifact_id),
                )
                self.audit.record(f"Backup uploaded: {artifact_id} ({size:,} bytes)")
                tracker.complete("Backup completed")
                return OperationResult(
                    operation_id=tracker.operation_id,
                    operation=tracker.operation,
                    success=True,
                    artifact=artifact,
                )

            except Exception as e:
                return self._fail(tracker, e)

            finally:
                self._remove_temp(temp_path)

    async def restore_backup(
        self,
        artifact_id: str,
        observer: Optional[ProgressSink] = None,
        operation_id: Optional[str] = None
    ) -> OperationResult:
        """Download an artifact and apply it to the target database.

        Args:
            artifact_id: Artifact to restore
            observer: Receives progress events
            operation_id: Progress topic for this run, generated if omitted
        """
        tracker = OperationTracker(OperationKind.RESTORE, operation_id or uuid4().hex, observer)
        temp_path = None

        async with self.locks.hold(self.database_identity):
            try:
                tracker.transition(OperationState.STARTING)
                validate_artifact_id(artifact_id)
                temp_path = temp_file_path(self.temp_dir, artifact_id)
                self.audit.record(f"Starting restore process: {artifact_id}")
                tracker.advance("Starting restore...", 0)

                tracker.transition(OperationState.TRANSFERRING)
                await self._download(artifact_id, temp_path, tracker, "Downloading...", 0, 80)
                self.audit.record(f"Backup file downloaded: {artifact_id}, restoring database...")

                tracker.transition(OperationState.RUNNING_EXTERNAL_COMMAND)
                tracker.advance("Restoring database...", 80)
                await self.commands.restore(temp_path)

                self.audit.record(f"Database restored successfully from: {artifact_id}", escalate=True)
                tracker.complete("Restore completed")
                return OperationResult(
                    operation_id=tracker.operation_id,
                    operation=tracker.operation,
                    success=True,
                    database=self.commands.config.name,
                )

            except Exception as e:
                return self._fail(tracker, e)

            finally:
                if temp_path is not None:
                    self._remove_temp(temp_path)

    async def recover_to_new_database(
        self,
        artifact_id: str,
        observer: Optional[ProgressSink] = None,
        operation_id: Optional[str] = None
    ) -> OperationResult:
        """Restore an artifact into a freshly created, isolated database.

        The isolated database is left in place whatever the outcome.

        Args:
            artifact_id: Artifact to restore
            observer: Receives progress events
            operation_id: Progress topic for this run, generated if omitted
        """
        tracker = OperationTracker(OperationKind.DISASTER_RECOVERY, operation_id or uuid4().hex, observer)
        temp_path = None
        database = None

        async with self.locks.hold(self.database_identity):
            try:
                tracker.transition(OperationState.STARTING)
                validate_artifact_id(artifact_id)
                temp_path = temp_file_path(self.temp_dir, artifact_id)
                database = generate_recovery_database_name()
                self.audit.record(f"Starting disaster recovery with temporary database: {database}")
                tracker.advance("Starting disaster recovery...", 0)

                tracker.transition(OperationState.RUNNING_EXTERNAL_COMMAND)
                await self.commands.create_database(database)
                self.audit.record(f"Temporary database created: {database}")
                tracker.advance("Temporary database created...", 10)

                tracker.transition(OperationState.TRANSFERRING)
                await self._download(artifact_id, temp_path, tracker, "Downloading backup...", 10, 80)
                self.audit.record(f"Backup downloaded: {artifact_id}")

                tracker.transition(OperationState.RUNNING_EXTERNAL_COMMAND)
                tracker.advance("Restoring to temporary database...", 80)
                await self.commands.restore(temp_path, database)

                self.audit.record(f"Temporary database restored: {database}", escalate=True)
                tracker.complete("Disaster recovery completed")
                return OperationResult(
                    operation_id=tracker.operation_id,
                    operation=tracker.operation,
                    success=True,
                    database=database,
                )

            except Exception as e:
                result = self._fail(tracker, e)
                result.database = database
                return result

            finally:
                if temp_path is not None:
                    self._remove_temp(temp_path)

    async def list_backups(self) -> List[str]:
        """Artifact IDs in the store, newest first."""
        keys = await self.storage.list_keys()
        logger.info(f"Found {len(keys)} backups")
        return sorted(keys, reverse=True)

    async def delete_backup(self, artifact_id: str) -> None:
        """Delete an artifact from the store.

        Raises:
            InvalidArtifactIdError: If the ID fails validation
            ArtifactNotFoundError: If no such artifact exists
            StorageTransportError: On any other storage failure
        """
        try:
            validate_artifact_id(artifact_id)
            self.audit.record(f"Deleting backup: {artifact_id}")
            await self.storage.head(artifact_id)
            await self.storage.delete(artifact_id)
        except Exception as e:
            self.audit.record(f"Delete failed: {e}", escalate=True)
            raise

        self.audit.record(f"Backup deleted successfully: {artifact_id}", escalate=True)

    async def open_download(self, artifact_id: str) -> Tuple[int, AsyncIterator[bytes]]:
        """Prepare an artifact for streaming to a caller.

        The artifact is looked up before anything is streamed, so a missing
        artifact fails here rather than mid-response.

        Returns:
            Tuple of (size in bytes, async iterator over the artifact's bytes)
        """
        try:
            validate_artifact_id(artifact_id)
            self.audit.record(f"Downloading backup: {artifact_id}")
            size = await self.storage.head(artifact_id)
        except Exception as e:
            self.audit.record(f"Download failed: {e}", escalate=True)
            raise

        return size, self._stream_artifact(artifact_id)

    async def _stream_artifact(self, artifact_id: str) -> AsyncIterator[bytes]:
        try:
            async with self.storage.get(artifact_id) as stream:
                async for chunk in stream.chunks:
                    yield chunk
        except Exception as e:
            self.audit.record(f"Download failed: {e}", escalate=True)
            raise

        self.audit.record(f"Backup downloaded successfully: {artifact_id}")

    # Private helper methods

    def _fail(self, tracker: OperationTracker, error: Exception) -> OperationResult:
        label = tracker.operation.label
        self.audit.record(f"{label} failed: {error}", escalate=True)
        tracker.fail(f"{label} failed")
        return OperationResult(
            operation_id=tracker.operation_id,
            operation=tracker.operation,
            success=False,
            error=str(error),
        )

    async def _ensure_absent(self, artifact_id: str) -> None:
        try:
            await self.storage.head(artifact_id)
        except ArtifactNotFoundError:
            return
        raise ArtifactConflictError(artifact_id)

    async def _upload(
        self,
        artifact_id: str,
        source: Path,
        size: int,
        tracker: OperationTracker,
        low: float,
        high: float
    ) -> None:
        def on_progress(transferred: int, total: int) -> None:
            tracker.advance("Uploading...", scale_progress(transferred, total, low, high))

        try:
            f = open(source, "rb")
        except OSError as e:
            raise LocalIOError(f"Cannot read dump file {source}: {e}") from e

        with f:
            await self.storage.put(artifact_id, f, size, progress=on_progress)

    async def _download(
        self,
        artifact_id: str,
        destination: Path,
        tracker: OperationTracker,
        message: str,
        low: float,
        high: float
    ) -> int:
        transferred = 0
        async with self.storage.get(artifact_id) as stream:
            try:
                f = open(destination, "wb")
            except OSError as e:
                raise LocalIOError(f"Cannot create temporary file {destination}: {e}") from e

            with f:
                async for chunk in stream.chunks:
                    try:
                        f.write(chunk)
                    except OSError as e:
                        raise LocalIOError(f"Cannot write temporary file {destination}: {e}") from e
                    transferred += len(chunk)
                    tracker.advance(message, scale_progress(transferred, stream.size, low, high))

        return transferred

    def _file_size(self, path: Path) -> int:
        try:
            return path.stat().st_size
        except OSError as e:
            raise LocalIOError(f"Dump file missing after dump: {path}: {e}") from e

    def _remove_temp(self, path: Path) -> None:
        try:
            if path.exists():
                path.unlink()
                self.audit.record(f"Temporary file deleted: {path.name}")
        except OSError as e:
            logger.warning(f"Failed to remove temporary file {path}: {e}")
