"""
Google Cloud Storage client (temp storage gateway).

The storage SDK is blocking, so each call runs in a worker thread.
"""
import asyncio
import logging
from datetime import timedelta
from typing import Optional, Tuple

from google.cloud import storage

from core.config import GOOGLE_CLOUD_PROJECT, VIDEO_TEMP_BUCKET
from core.gateways import ByteStream, ProgressCallback

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8 * 1024 * 1024


class TempStorageError(Exception):
    """Raised for malformed URIs or missing objects."""
    pass


def parse_gcs_uri(uri: str) -> Tuple[str, str]:
    """Split gs://bucket/path into (bucket, path)."""
    if not uri.startswith("gs://"):
        raise TempStorageError(f"Not a gs:// URI: {uri}")
    bucket, _, obj = uri[len("gs://"):].partition("/")
    if not bucket or not obj:
        raise TempStorageError(f"Missing bucket/object in {uri}")
    return bucket, obj


class GcsClient:
    """Stages media objects in a temp bucket and issues signed URLs."""

    def __init__(
        self,
        bucket_name: str = VIDEO_TEMP_BUCKET,
        client: Optional[storage.Client] = None,
    ):
        self.bucket_name = bucket_name
        self._client = client

    @property
    def client(self) -> storage.Client:
        # Created lazily so the app can start without credentials
        if self._client is None:
            self._client = storage.Client(project=GOOGLE_CLOUD_PROJECT or None)
        return self._client

    def _blob(self, uri: str) -> storage.Blob:
        bucket, obj = parse_gcs_uri(uri)
        return self.client.bucket(bucket).blob(obj)

    def _uri(self, key: str) -> str:
        return f"gs://{self.bucket_name}/{key.lstrip('/')}"

    async def upload(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        """Upload a small payload held in memory."""
        uri = self._uri(key)
        blob = self._blob(uri)
        await asyncio.to_thread(blob.upload_from_string, content, content_type=content_type)
        return uri

    async def upload_from_stream(
        self,
        key: str,
        stream: ByteStream,
        content_type: str = "video/mp4",
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """Write a byte stream to the bucket chunk by chunk."""
        uri = self._uri(key)
        blob = self._blob(uri)
        blob.chunk_size = CHUNK_SIZE
        writer = await asyncio.to_thread(blob.open, "wb", content_type=content_type)

        sent = 0
        try:
            async for chunk in stream:
                await asyncio.to_thread(writer.write, chunk)
                sent += len(chunk)
                if on_progress:
                    on_progress(sent)
        finally:
            await asyncio.to_thread(writer.close)

        logger.info(f"Uploaded {sent} bytes to {uri}")
        return uri

    async def download(self, uri: str) -> bytes:
        return await asyncio.to_thread(self._blob(uri).download_as_bytes)

    async def download_as_stream(self, uri: str) -> ByteStream:
        reader = await asyncio.to_thread(self._blob(uri).open, "rb")
        try:
            while True:
                chunk = await asyncio.to_thread(reader.read, CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            await asyncio.to_thread(reader.close)

    async def exists(self, uri: str) -> bool:
        blob = self._blob(uri)
        return await asyncio.to_thread(blob.exists, self.client)

    async def get_signed_url(self, uri: str, expires_in_minutes: int = 60) -> str:
        blob = self._blob(uri)
        return await asyncio.to_thread(
            blob.generate_signed_url,
            version="v4",
            expiration=timedelta(minutes=expires_in_minutes),
            method="GET",
        )
