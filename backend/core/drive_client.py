"""
Google Drive v3 REST client (origin storage gateway).
"""
import logging
from typing import Optional, Union

import httpx

from core.config import GOOGLE_DRIVE_ACCESS_TOKEN
from core.gateways import ByteStream, FileMetadata, UploadedFile

logger = logging.getLogger(__name__)

DRIVE_API = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_API = "https://www.googleapis.com/upload/drive/v3"
METADATA_FIELDS = "id,name,size,mimeType,parents,videoMediaMetadata"


class DriveError(Exception):
    """Raised when a Google Drive request fails."""
    pass


class DriveClient:
    """Reads source videos from and writes rendered clips to Google Drive."""

    def __init__(
        self,
        access_token: Optional[str] = GOOGLE_DRIVE_ACCESS_TOKEN,
        client: Optional[httpx.AsyncClient] = None,
        chunk_size: int = 1024 * 1024,
    ):
        self.access_token = access_token
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(60.0, read=300.0))
        self.chunk_size = chunk_size

    def _headers(self) -> dict:
        if not self.access_token:
            raise DriveError("Google Drive access token is not configured")
        return {"Authorization": f"Bearer {self.access_token}"}

    async def get_metadata(self, file_id: str) -> FileMetadata:
        try:
            response = await self.client.get(
                f"{DRIVE_API}/files/{file_id}",
                params={"fields": METADATA_FIELDS, "supportsAllDrives": "true"},
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DriveError(f"Failed to get metadata for {file_id}: {e}") from e

        data = response.json()
        duration_millis = (data.get("videoMediaMetadata") or {}).get("durationMillis")
        return FileMetadata(
            name=data.get("name", file_id),
            size=int(data["size"]) if data.get("size") else None,
            mime_type=data.get("mimeType"),
            duration_seconds=int(duration_millis) / 1000 if duration_millis else None,
            parents=data.get("parents", []),
        )

    async def download_as_stream(self, file_id: str) -> ByteStream:
        """Stream the file content without buffering it."""
        try:
            async with self.client.stream(
                "GET",
                f"{DRIVE_API}/files/{file_id}",
                params={"alt": "media", "supportsAllDrives": "true"},
                headers=self._headers(),
            ) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes(self.chunk_size):
                    yield chunk
        except httpx.HTTPError as e:
            raise DriveError(f"Failed to download {file_id}: {e}") from e

    async def upload_file(
        self,
        name: str,
        content: Union[bytes, ByteStream],
        mime_type: str = "video/mp4",
        parent_folder_id: Optional[str] = None,
    ) -> UploadedFile:
        """Resumable upload: open a session, then send the content in one streamed PUT."""
        metadata = {"name": name, "mimeType": mime_type}
        if parent_folder_id:
            metadata["parents"] = [parent_folder_id]

        try:
            session = await self.client.post(
                f"{DRIVE_UPLOAD_API}/files",
                params={"uploadType": "resumable", "supportsAllDrives": "true"},
                headers={**self._headers(), "X-Upload-Content-Type": mime_type},
                json=metadata,
            )
            session.raise_for_status()
            upload_url = session.headers["Location"]

            response = await self.client.put(
                upload_url,
                content=content,
                headers={"Content-Type": mime_type},
                params={"fields": "id,name,webViewLink"},
            )
            response.raise_for_status()
        except (httpx.HTTPError, KeyError) as e:
            raise DriveError(f"Failed to upload {name}: {e}") from e

        data = response.json()
        logger.info(f"Uploaded {name} to Drive as {data['id']}")
        return UploadedFile(id=data["id"], name=data.get("name", name), web_view_link=data.get("webViewLink"))

    async def close(self) -> None:
        await self.client.aclose()
