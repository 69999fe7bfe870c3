"""Utility functions for backup/restore operations."""

import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

from ..exceptions import InvalidArtifactIdError

ARTIFACT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")


def generate_artifact_id(now: Optional[datetime] = None) -> str:
    """Generate artifact ID with second-resolution UTC timestamp.

    Two backups started within the same second get the same ID.

    Returns:
        Artifact ID in format: backup-YYYY-MM-DDTHH-MM-SSZ.sql
    """
    now = now or datetime.now(timezone.utc)
    return f"backup-{now.strftime('%Y-%m-%dT%H-%M-%SZ')}.sql"


def generate_recovery_database_name() -> str:
    """Name for an isolated disaster-recovery database: recovery_<epoch ms>."""
    return f"recovery_{int(time.time() * 1000)}"


def validate_artifact_id(artifact_id: str) -> str:
    """Check an artifact ID against the allow-list before it reaches a path or command.

    Raises:
        InvalidArtifactIdError: If the ID is not safe to use
    """
    if not isinstance(artifact_id, str) or not ARTIFACT_ID_PATTERN.fullmatch(artifact_id) or ".." in artifact_id:
        raise InvalidArtifactIdError(str(artifact_id))
    return artifact_id


def temp_file_path(temp_dir: Path, artifact_id: str) -> Path:
    """Unique local path for one run's copy of an artifact."""
    return temp_dir / f"{artifact_id}.{uuid4().hex[:12]}.part"


def scale_progress(transferred: int, total: int, low: float, high: float) -> float:
    """Map a raw transfer ratio linearly into the [low, high] range of a phase.

    Args:
        transferred: Bytes transferred so far
        total: Total bytes (0 counts as complete)
        low: Percentage at the start of the phase
        high: Percentage at the end of the phase

    Returns:
        Percentage rounded to two decimals
    """
    ratio = 1.0 if total <= 0 else transferred / total
    ratio = min(max(ratio, 0.0), 1.0)
    return round(low + ratio * (high - low), 2)
