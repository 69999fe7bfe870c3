"""Abstract object storage interface used by the backup manager."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncContextManager, AsyncIterator, BinaryIO, Callable, Optional, Set

# Called with (bytes transferred so far, total bytes)
ProgressCallback = Callable[[int, int], None]


@dataclass
class ObjectStream:
    """An object being streamed out of storage. Size is known before the first chunk."""
    key: str
    size: int
    chunks: AsyncIterator[bytes]


class BaseObjectStorage(ABC):
    """List/head/get/put/delete against a single bucket.

    Every method either succeeds completely or raises a StorageError subclass:
    ArtifactNotFoundError for missing keys, StorageTransportError otherwise.
    """

    @abstractmethod
    async def list_keys(self) -> Set[str]:
        """Return every key in the bucket, in no particular order."""

    @abstractmethod
    async def head(self, key: str) -> int:
        """Return the stored size of key in bytes."""

    @abstractmethod
    def get(self, key: str) -> AsyncContextManager[ObjectStream]:
        """Open key for streaming.

        Usage::

            async with storage.get(key) as stream:
                async for chunk in stream.chunks:
                    ...
        """

    @abstractmethod
    async def put(
        self,
        key: str,
        fileobj: BinaryIO,
        size: int,
        progress: Optional[ProgressCallback] = None
    ) -> None:
        """Upload fileobj as key, reporting cumulative bytes after each chunk."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key."""

    @abstractmethod
    def location(self, key: str) -> str:
        """Human-readable location of key."""
