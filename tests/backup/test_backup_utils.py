"""Tests for backup utility functions and database locks."""

import asyncio
import re
from datetime import datetime, timezone

import pytest

from backup_dashboard.backup.locks import DatabaseLocks
from backup_dashboard.backup.utils import (
    generate_artifact_id,
    generate_recovery_database_name,
    scale_progress,
    temp_file_path,
    validate_artifact_id,
)
from backup_dashboard.exceptions import InvalidArtifactIdError


def test_generate_artifact_id():
    """Test artifact ID generation."""
    now = datetime(2024, 5, 1, 10, 30, 45, 999000, tzinfo=timezone.utc)
    assert generate_artifact_id(now) == "backup-2024-05-01T10-30-45Z.sql"


def test_generate_artifact_id_same_second():
    first = datetime(2024, 5, 1, 10, 30, 45, 1000, tzinfo=timezone.utc)
    second = datetime(2024, 5, 1, 10, 30, 45, 998000, tzinfo=timezone.utc)
    assert generate_artifact_id(first) == generate_artifact_id(second)


def test_generate_artifact_id_default_is_valid():
    artifact_id = generate_artifact_id()
    assert re.match(r"^backup-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}Z\.sql$", artifact_id)
    assert validate_artifact_id(artifact_id) == artifact_id


def test_generate_recovery_database_name():
    name = generate_recovery_database_name()
    assert re.match(r"^recovery_\d{13}$", name)


@pytest.mark.parametrize("artifact_id", [
    "backup-2024-05-01T10-30-45Z.sql",
    "nightly.sql",
    "A",
    "dump_01.sql.gz",
])
def test_validate_accepts(artifact_id):
    assert validate_artifact_id(artifact_id) == artifact_id


@pytest.mark.parametrize("artifact_id", [
    "",
    "../etc/passwd",
    "a/b.sql",
    ".hidden",
    "-rf",
    "backup..sql",
    "name with space.sql",
    "x;rm -rf /",
    "$(whoami).sql",
    "a" * 256,
    "x.sql\n",
    "backup-2024.sql\r\n",
])
def test_validate_rejects(artifact_id):
    with pytest.raises(InvalidArtifactIdError):
        validate_artifact_id(artifact_id)


def test_invalid_id_error_is_value_error():
    with pytest.raises(ValueError):
        validate_artifact_id("../x")


def test_temp_file_path_unique(tmp_path):
    first = temp_file_path(tmp_path, "nightly.sql")
    second = temp_file_path(tmp_path, "nightly.sql")

    assert first != second
    assert first.parent == tmp_path
    assert first.name.startswith("nightly.sql.")
    assert first.suffix == ".part"


@pytest.mark.parametrize("transferred,total,expected", [
    (0, 1000, 10.0),
    (500, 1000, 55.0),
    (1000, 1000, 100.0),
    (2000, 1000, 100.0),
    (0, 0, 100.0),
    (1, 3, 40.0),
])
def test_scale_progress(transferred, total, expected):
    assert scale_progress(transferred, total, 10, 100) == expected


def test_scale_progress_rounds_to_two_decimals():
    assert scale_progress(1, 7, 0, 80) == 11.43


class TestDatabaseLocks:

    @pytest.mark.asyncio
    async def test_serializes_same_identity(self):
        locks = DatabaseLocks()
        events = []

        async def run(name):
            async with locks.hold("db:5432/app"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(run("a"), run("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_identities_overlap(self):
        locks = DatabaseLocks()
        events = []

        async def run(identity):
            async with locks.hold(identity):
                events.append(f"{identity}-start")
                await asyncio.sleep(0.01)
                events.append(f"{identity}-end")

        await asyncio.gather(run("one"), run("two"))

        assert events[:2] == ["one-start", "two-start"]

    @pytest.mark.asyncio
    async def test_disabled_allows_overlap(self):
        locks = DatabaseLocks(enabled=False)
        events = []

        async def run(name):
            async with locks.hold("db:5432/app"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(run("a"), run("b"))

        assert events[:2] == ["a-start", "b-start"]
        assert locks.is_locked("db:5432/app") is False

    @pytest.mark.asyncio
    async def test_released_after_error(self):
        locks = DatabaseLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("db"):
                assert locks.is_locked("db")
                raise RuntimeError("boom")

        assert locks.is_locked("db") is False
