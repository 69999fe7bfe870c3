"""Append-only audit log with optional escalation to a notifier."""

import asyncio
import re
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Set, Union

from ._utils import logger
from .notifier import BaseNotifier
from .schemas import AuditEntry

ESCALATED_MARKER = "[ESCALATED]"

LINE_PATTERN = re.compile(
    r"^\[(?P<timestamp>[^\]]+)\] (?P<escalated>\[ESCALATED\] )?(?P<message>.*)\Z"
)

# Each entry stays on one physical line
_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r"}
_ESCAPED_CHAR = re.compile(r"\\(.)")


def escape_message(message: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in message)


def unescape_message(text: str) -> str:
    return _ESCAPED_CHAR.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(0)), text)


def format_entry(entry: AuditEntry) -> str:
    """Render entry as one log line: ``[timestamp] [ESCALATED] message``.

    Line breaks and backslashes in the message are escaped.
    """
    timestamp = entry.timestamp.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    timestamp = timestamp.replace("+00:00", "Z")
    marker = f"{ESCALATED_MARKER} " if entry.escalate else ""
    return f"[{timestamp}] {marker}{escape_message(entry.message)}"


def parse_entry(line: str) -> Optional[AuditEntry]:
    """Parse a log line back into an AuditEntry, or None if it is not one."""
    match = LINE_PATTERN.match(line.rstrip("\r\n"))
    if not match:
        return None
    try:
        timestamp = datetime.fromisoformat(match.group("timestamp").replace("Z", "+00:00"))
    except ValueError:
        return None
    return AuditEntry(
        timestamp=timestamp,
        message=unescape_message(match.group("message")),
        escalate=match.group("escalated") is not None,
    )


class AuditLog:
    """Persisted, timestamped record of what the dashboard did.

    Writing never waits for escalation delivery: notifications run as
    background tasks and their outcome is itself recorded as a plain entry.
    """

    def __init__(
        self,
        log_file: Union[str, Path],
        notifier: Optional[BaseNotifier] = None,
        display_limit: int = 50
    ):
        self.log_file = Path(log_file)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self.notifier = notifier
        self.display_limit = display_limit
        self._pending: Set[asyncio.Task] = set()

    def record(self, message: str, escalate: bool = False) -> AuditEntry:
        """Append one entry and schedule escalation if requested.

        Args:
            message: Text to record
            escalate: Also send message to the notifier

        Returns:
            The recorded entry
        """
        entry = AuditEntry(timestamp=datetime.now(timezone.utc), message=message, escalate=escalate)
        line = format_entry(entry)

        if escalate:
            logger.warning(line)
        else:
            logger.info(line)

        try:
            # One write per line keeps concurrent appends whole
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log {self.log_file}: {e}")

        if escalate and self.notifier is not None:
            self._schedule_escalation(line)

        return entry

    def _schedule_escalation(self, text: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, escalation not delivered: {text}")
            return

        task = loop.create_task(self._deliver(text))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, text: str) -> None:
        try:
            await self.notifier.notify(text)
        except Exception as e:
            self.record(f"Email notification failed: {e}")
        else:
            self.record("Email notification sent successfully")

    async def drain(self) -> None:
        """Wait for in-flight escalations to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def recent(self, limit: Optional[int] = None) -> List[AuditEntry]:
        """Most recent entries, newest first, bounded by display_limit."""
        limit = min(limit or self.display_limit, self.display_limit)
        if not self.log_file.exists():
            return []

        with open(self.log_file, "r", encoding="utf-8") as f:
            tail = deque((line for line in f if line.strip()), maxlen=limit)

        entries = []
        for line in reversed(tail):
            entry = parse_entry(line)
            if entry is None:
                logger.debug(f"Skipping unparseable audit line: {line!r}")
                continue
            entries.append(entry)
        return entries
