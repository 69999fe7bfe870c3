"""Test doubles for backup-dashboard tests."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from backup_dashboard.exceptions import (
    ArtifactNotFoundError,
    ExternalCommandError,
    NotificationError,
    StorageTransportError,
)
from backup_dashboard.notifier import BaseNotifier
from backup_dashboard.process import CommandResult
from backup_dashboard.schemas import ProgressEvent
from backup_dashboard.storage import BaseObjectStorage, ObjectStream


class FakeObjectStorage(BaseObjectStorage):
    """In-memory object store that yields to the event loop on every call."""

    def __init__(self, chunk_size: int = 100):
        self.chunk_size = chunk_size
        self.objects: Dict[str, bytes] = {}
        self.fail_put = False
        self.fail_get_after_chunks: Optional[int] = None

    async def list_keys(self):
        await asyncio.sleep(0)
        return set(self.objects)

    async def head(self, key: str) -> int:
        await asyncio.sleep(0)
        if key not in self.objects:
            raise ArtifactNotFoundError(key)
        return len(self.objects[key])

    async def _chunks(self, data: bytes):
        for index, start in enumerate(range(0, len(data), self.chunk_size)):
            if self.fail_get_after_chunks is not None and index >= self.fail_get_after_chunks:
                raise StorageTransportError("connection reset")
            await asyncio.sleep(0)
            yield data[start:start + self.chunk_size]

    @asynccontextmanager
    async def get(self, key: str):
        size = await self.head(key)
        yield ObjectStream(key=key, size=size, chunks=self._chunks(self.objects[key]))

    async def put(self, key, fileobj, size, progress=None) -> None:
        await asyncio.sleep(0)
        if self.fail_put:
            raise StorageTransportError("upload refused")
        data = b""
        while True:
            chunk = fileobj.read(self.chunk_size)
            if not chunk:
                break
            data += chunk
            if progress is not None:
                progress(len(data), size)
            await asyncio.sleep(0)
        self.objects[key] = data

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        if key not in self.objects:
            raise ArtifactNotFoundError(key)
        del self.objects[key]

    def location(self, key: str) -> str:
        return f"memory://test-bucket/{key}"


class FakeRunner:
    """Stands in for ProcessRunner.

    pg_dump writes ``dump_data`` to its -f path; psql records the contents of
    the file it was asked to apply. Programs listed in ``failures`` exit with
    the given code.
    """

    def __init__(self, dump_data: bytes = b"x" * 1000, failures: Optional[Dict[str, int]] = None):
        self.dump_data = dump_data
        self.failures = failures or {}
        self.calls: List[List[str]] = []
        self.envs: List[Dict[str, str]] = []
        self.restored: List[bytes] = []

    @staticmethod
    def _option(args: Sequence[str], flag: str) -> str:
        return args[list(args).index(flag) + 1]

    async def run(self, args, env=None) -> CommandResult:
        await asyncio.sleep(0)
        self.calls.append(list(args))
        self.envs.append(dict(env or {}))

        program = Path(args[0]).name
        if program in self.failures:
            raise ExternalCommandError(args, self.failures[program], f"{program}: simulated failure")

        if program == "pg_dump":
            Path(self._option(args, "-f")).write_bytes(self.dump_data)
        elif program == "psql":
            self.restored.append(Path(self._option(args, "-f")).read_bytes())

        return CommandResult(returncode=0, stdout="", stderr="")

    def programs(self) -> List[str]:
        return [Path(call[0]).name for call in self.calls]


class RecordingSink:
    """Progress observer that keeps every event."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def publish(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def percentages(self) -> List[float]:
        return [event.percentage for event in self.events]


class RecordingNotifier(BaseNotifier):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[str] = []

    async def notify(self, message: str) -> None:
        await asyncio.sleep(0)
        self.messages.append(message)
        if self.fail:
            raise NotificationError("smtp unavailable")


def assert_progress_contract(percentages: List[float]) -> None:
    """Non-decreasing until exactly one terminal value, which comes last."""
    terminal = [p for p in percentages if p in (100.0, -1.0)]
    assert len(terminal) == 1, percentages
    assert percentages[-1] in (100.0, -1.0)
    body = percentages[:-1]
    assert body == sorted(body), percentages
    if percentages[-1] == 100.0 and body:
        assert body[-1] <= 100.0
