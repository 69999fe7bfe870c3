"""Tests for the audit log."""

from datetime import datetime, timezone

import pytest

from backup_dashboard.audit import AuditLog, format_entry, parse_entry
from backup_dashboard.schemas import AuditEntry
from tests.utils import RecordingNotifier


def test_format_entry():
    entry = AuditEntry(
        timestamp=datetime(2024, 5, 1, 10, 30, 45, 123000, tzinfo=timezone.utc),
        message="Backup uploaded: a.sql (1,000 bytes)",
    )
    assert format_entry(entry) == "[2024-05-01T10:30:45.123Z] Backup uploaded: a.sql (1,000 bytes)"


def test_format_escalated_entry():
    entry = AuditEntry(
        timestamp=datetime(2024, 5, 1, 10, 30, 45, tzinfo=timezone.utc),
        message="Restore failed: boom",
        escalate=True,
    )
    assert format_entry(entry) == "[2024-05-01T10:30:45.000Z] [ESCALATED] Restore failed: boom"


def test_parse_entry():
    entry = parse_entry("[2024-05-01T10:30:45.123Z] [ESCALATED] Delete failed: nope\n")

    assert entry.escalate is True
    assert entry.message == "Delete failed: nope"
    assert entry.timestamp == datetime(2024, 5, 1, 10, 30, 45, 123000, tzinfo=timezone.utc)


@pytest.mark.parametrize("line", ["", "no timestamp here", "[not-a-date] message"])
def test_parse_entry_rejects_garbage(line):
    assert parse_entry(line) is None


def test_record_appends_lines(workspace):
    audit = AuditLog(workspace / "logs" / "backup.log")

    audit.record("first")
    audit.record("second")

    lines = audit.log_file.read_text().splitlines()
    assert len(lines) == 2
    assert lines[0].endswith("] first")
    assert lines[1].endswith("] second")


def test_recent_is_newest_first_and_bounded(workspace):
    audit = AuditLog(workspace / "backup.log", display_limit=3)
    for i in range(5):
        audit.record(f"entry {i}")

    assert [e.message for e in audit.recent()] == ["entry 4", "entry 3", "entry 2"]
    assert [e.message for e in audit.recent(limit=2)] == ["entry 4", "entry 3"]
    assert len(audit.recent(limit=10)) == 3


def test_recent_skips_unparseable_lines(workspace):
    audit = AuditLog(workspace / "backup.log")
    audit.record("good")
    with open(audit.log_file, "a") as f:
        f.write("garbage line\n\n")

    assert [e.message for e in audit.recent()] == ["good"]


def test_recent_without_file(workspace):
    assert AuditLog(workspace / "missing" / "backup.log").recent() == []


def test_write_failure_does_not_raise(workspace):
    audit = AuditLog(workspace / "backup.log")
    audit.log_file.mkdir()

    entry = audit.record("cannot be written")
    assert entry.message == "cannot be written"


def test_escalation_without_event_loop(workspace):
    notifier = RecordingNotifier()
    audit = AuditLog(workspace / "backup.log", notifier=notifier)

    audit.record("Backup failed: boom", escalate=True)

    assert notifier.messages == []
    assert audit.recent()[0].escalate is True


@pytest.mark.asyncio
async def test_escalation_is_delivered_and_recorded(workspace):
    notifier = RecordingNotifier()
    audit = AuditLog(workspace / "backup.log", notifier=notifier)

    audit.record("Restore failed: boom", escalate=True)
    audit.record("not escalated")
    await audit.drain()

    assert len(notifier.messages) == 1
    assert notifier.messages[0].endswith("[ESCALATED] Restore failed: boom")
    assert audit.recent()[0].message == "Email notification sent successfully"
    assert audit.recent()[0].escalate is False


@pytest.mark.asyncio
async def test_failed_escalation_is_recorded_not_raised(workspace):
    audit = AuditLog(workspace / "backup.log", notifier=RecordingNotifier(fail=True))

    audit.record("Delete failed: boom", escalate=True)
    await audit.drain()

    latest = audit.recent()[0]
    assert latest.message == "Email notification failed: smtp unavailable"
    assert latest.escalate is False


@pytest.mark.asyncio
async def test_record_does_not_wait_for_notifier(workspace):
    notifier = RecordingNotifier()
    audit = AuditLog(workspace / "backup.log", notifier=notifier)

    audit.record("Backup failed: boom", escalate=True)

    assert notifier.messages == []
    await audit.drain()
    assert len(notifier.messages) == 1


def test_multiline_message_stays_one_entry(workspace):
    audit = AuditLog(workspace / "backup.log")
    message = (
        "Backup failed: pg_dump exited with code 1: pg_dump: error: connection failed\n"
        "[2020-01-01T00:00:00.000Z] [ESCALATED] injected entry\r\n"
        "DETAIL: C:\\pg\\data"
    )

    audit.record(message)

    assert len(audit.log_file.read_text().splitlines()) == 1
    entries = audit.recent()
    assert len(entries) == 1
    assert entries[0].message == message
    assert entries[0].escalate is False


def test_backslashes_round_trip():
    entry = AuditEntry(
        timestamp=datetime(2024, 5, 1, tzinfo=timezone.utc),
        message="literal \\n is not a newline",
    )
    line = format_entry(entry)

    assert "\n" not in line
    assert parse_entry(line).message == "literal \\n is not a newline"
