"""S3-compatible object storage backend (IBM COS, AWS S3, MinIO) using aioboto3."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, BinaryIO, Optional, Set

import aioboto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from .._utils import logger
from ..config import ObjectStorageConfig
from ..exceptions import ArtifactNotFoundError, StorageError, StorageTransportError
from .base import BaseObjectStorage, ObjectStream, ProgressCallback

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}

TRANSPORT_ERRORS = (BotoCoreError, ClientError, S3UploadFailedError)


class S3ObjectStorage(BaseObjectStorage):
    """Object storage backed by a single S3 bucket.

    A client is opened per call so the instance can be shared freely
    between concurrent operations.
    """

    def __init__(self, config: ObjectStorageConfig, session: Optional[aioboto3.Session] = None):
        self.config = config
        self.bucket = config.bucket
        self.chunk_size = config.chunk_size
        self.session = session or aioboto3.Session(
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
        )

    def _client(self):
        return self.session.client("s3", endpoint_url=self.config.endpoint_url)

    def _translate(self, error: Exception, key: Optional[str] = None) -> StorageError:
        if isinstance(error, ClientError):
            code = str(error.response.get("Error", {}).get("Code", ""))
            if key is not None and code in NOT_FOUND_CODES:
                return ArtifactNotFoundError(key)
        return StorageTransportError(f"Object storage request failed: {error}")

    async def list_keys(self) -> Set[str]:
        keys = set()
        try:
            async with self._client() as client:
                paginator = client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=self.bucket):
                    for item in page.get("Contents", []):
                        keys.add(item["Key"])
        except TRANSPORT_ERRORS as e:
            raise self._translate(e) from e

        logger.debug(f"Listed {len(keys)} objects in bucket {self.bucket}")
        return keys

    async def _head(self, client, key: str) -> int:
        try:
            response = await client.head_object(Bucket=self.bucket, Key=key)
        except TRANSPORT_ERRORS as e:
            raise self._translate(e, key) from e
        return int(response["ContentLength"])

    async def head(self, key: str) -> int:
        try:
            async with self._client() as client:
                return await self._head(client, key)
        except StorageError:
            raise
        except TRANSPORT_ERRORS as e:
            raise self._translate(e, key) from e

    async def _iter_body(self, body, key: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in body.iter_chunks(self.chunk_size):
                yield chunk
        except TRANSPORT_ERRORS as e:
            raise self._translate(e, key) from e
        except OSError as e:
            raise StorageTransportError(f"Stream for {key} interrupted: {e}") from e

    @asynccontextmanager
    async def get(self, key: str) -> AsyncIterator[ObjectStream]:
        async with self._client() as client:
            size = await self._head(client, key)
            try:
                response = await client.get_object(Bucket=self.bucket, Key=key)
            except TRANSPORT_ERRORS as e:
                raise self._translate(e, key) from e

            async with response["Body"] as body:
                yield ObjectStream(key=key, size=size, chunks=self._iter_body(body, key))

    async def put(
        self,
        key: str,
        fileobj: BinaryIO,
        size: int,
        progress: Optional[ProgressCallback] = None
    ) -> None:
        transferred = 0

        def on_chunk(bytes_amount: int) -> None:
            nonlocal transferred
            transferred += bytes_amount
            if progress is not None:
                progress(transferred, size)

        try:
            async with self._client() as client:
                await client.upload_fileobj(fileobj, self.bucket, key, Callback=on_chunk)
        except TRANSPORT_ERRORS as e:
            raise self._translate(e) from e

        logger.debug(f"Uploaded {key} ({size:,} bytes) to bucket {self.bucket}")

    async def delete(self, key: str) -> None:
        try:
            async with self._client() as client:
                await client.delete_object(Bucket=self.bucket, Key=key)
        except TRANSPORT_ERRORS as e:
            raise self._translate(e, key) from e

    def location(self, key: str) -> str:
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"s3://{self.bucket}/{key}"
