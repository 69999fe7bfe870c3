"""Error taxonomy for backup, restore and disaster-recovery runs."""

from typing import Optional, Sequence


class BackupDashboardError(Exception):
    """Base exception for backup-dashboard errors."""
    pass


class InvalidArtifactIdError(BackupDashboardError, ValueError):
    def __init__(self, artifact_id: str):
        self.artifact_id = artifact_id
        super().__init__(f"Invalid artifact identifier: {artifact_id!r}")


class ExternalCommandError(BackupDashboardError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: Sequence[str], exit_code: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr
        program = self.command[0] if self.command else "<empty>"
        detail = stderr.strip() or "no error output"
        super().__init__(f"{program} exited with code {exit_code}: {detail}")


class StorageError(BackupDashboardError):
    """Object storage operation failed."""
    pass


class ArtifactNotFoundError(StorageError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Artifact not found: {key}")


class ArtifactConflictError(StorageError):
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Artifact already exists: {key}")


class StorageTransportError(StorageError):
    """Transport-level failure talking to the object store."""
    pass


class LocalIOError(BackupDashboardError):
    """Reading or writing a local temporary file failed."""
    pass


class NotificationError(BackupDashboardError):
    """Escalation delivery failed. Never fatal to the triggering operation."""
    pass
