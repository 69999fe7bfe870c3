"""Global pytest configuration and fixtures."""

import tempfile
from pathlib import Path

import pytest

from backup_dashboard.audit import AuditLog
from backup_dashboard.backup import BackupManager, DatabaseLocks
from backup_dashboard.config import DatabaseConfig
from backup_dashboard.process import PostgresCommands
from tests.utils import FakeObjectStorage, FakeRunner, RecordingNotifier, RecordingSink


@pytest.fixture
def workspace():
    """Temporary directory holding the audit log and temp files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_dir(workspace):
    path = workspace / "temp"
    path.mkdir()
    return path


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def audit(workspace, notifier):
    return AuditLog(workspace / "logs" / "backup.log", notifier=notifier)


@pytest.fixture
def storage():
    return FakeObjectStorage(chunk_size=100)


@pytest.fixture
def runner():
    return FakeRunner(dump_data=b"x" * 1000)


@pytest.fixture
def db_config():
    return DatabaseConfig(host="db.internal", port=5432, user="backup", password="s3cret", name="app")


@pytest.fixture
def manager(storage, runner, audit, temp_dir, db_config):
    return BackupManager(
        storage=storage,
        commands=PostgresCommands(db_config, runner=runner),
        audit=audit,
        temp_dir=str(temp_dir),
        locks=DatabaseLocks(enabled=True),
    )


@pytest.fixture
def sink():
    return RecordingSink()
