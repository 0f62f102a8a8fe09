"""
Resume File Storage

Supabase Storage over its REST API, with a local-disk fallback for development.
Both implement the same three calls used by the upload endpoint and the
background parser: upload, download and delete.
"""
import logging
import os
from typing import Optional
from urllib.parse import urlparse, unquote

import aiofiles
import httpx

from .errors import InvalidReference, StorageError

logger = logging.getLogger(__name__)


class ObjectStorage:
    """Storage boundary for resume files. Paths are relative to the bucket."""

    bucket: str

    async def upload(self, file_path: str, content: bytes, content_type: str) -> str:
        """Store content at file_path and return its public URL."""
        raise NotImplementedError

    async def download(self, file_path: str) -> bytes:
        raise NotImplementedError

    async def delete(self, file_path: str) -> None:
        raise NotImplementedError


class SupabaseStorage(ObjectStorage):
    def __init__(
        self,
        supabase_url: str,
        service_role_key: str,
        bucket: str = "resumes",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.supabase_url = supabase_url.rstrip("/")
        self.service_role_key = service_role_key
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport

    def _headers(self, **extra) -> dict:
        headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
        }
        headers.update(extra)
        return headers

    def public_url(self, file_path: str) -> str:
        return f"{self.supabase_url}/storage/v1/object/public/{self.bucket}/{file_path}"

    async def upload(self, file_path: str, content: bytes, content_type: str) -> str:
        """
        Upload bytes to Supabase Storage with explicit Content-Length header.

        Raises:
            StorageError on upload failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.supabase_url}/storage/v1/object/{self.bucket}/{file_path}",
                    headers=self._headers(**{
                        "Content-Type": content_type,
                        "Content-Length": str(len(content)),
                        "Cache-Control": "3600",
                        "x-upsert": "false",
                    }),
                    content=content,
                )
        except httpx.TimeoutException:
            raise StorageError("Upload timeout - file too large or slow connection")
        except httpx.HTTPError as e:
            raise StorageError(f"Upload failed: {str(e)}")

        if response.status_code not in (200, 201):
            error_detail = response.text[:500] if response.text else "Unknown error"
            raise StorageError(f"Supabase upload failed ({response.status_code}): {error_detail}")

        return self.public_url(file_path)

    async def download(self, file_path: str) -> bytes:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    f"{self.supabase_url}/storage/v1/object/{self.bucket}/{file_path}",
                    headers=self._headers(),
                )
        except httpx.TimeoutException:
            raise StorageError("Download timeout")
        except httpx.HTTPError as e:
            raise StorageError(str(e))

        if response.status_code != 200:
            error_detail = response.text[:200] if response.text else "Unknown error"
            raise StorageError(f"Supabase download failed ({response.status_code}): {error_detail}")

        return response.content

    async def delete(self, file_path: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(
                    "DELETE",
                    f"{self.supabase_url}/storage/v1/object/{self.bucket}",
                    headers=self._headers(**{"Content-Type": "application/json"}),
                    json={"prefixes": [file_path]},
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Delete failed: {str(e)}")

        if response.status_code not in (200, 204):
            raise StorageError(f"Supabase delete failed ({response.status_code})")


class LocalStorage(ObjectStorage):
    """
    Stores resumes on local disk under <root>/<bucket>/.

    URLs look like /uploads/<bucket>/<path>, so resolve_storage_path works the
    same way as for Supabase public URLs.
    """

    def __init__(self, root_dir: str, bucket: str = "resumes", url_prefix: str = "/uploads"):
        self.root_dir = root_dir
        self.bucket = bucket
        self.url_prefix = url_prefix.rstrip("/")

    def _local_path(self, file_path: str) -> str:
        base = os.path.abspath(os.path.join(self.root_dir, self.bucket))
        full_path = os.path.abspath(os.path.join(base, file_path))
        if not full_path.startswith(base + os.sep):
            raise StorageError(f"Path escapes storage root: {file_path}")
        return full_path

    async def upload(self, file_path: str, content: bytes, content_type: str) -> str:
        local_path = self._local_path(file_path)
        os.makedirs(os.path.dirname(local_path), exist_ok=True)
        async with aiofiles.open(local_path, "wb") as f:
            await f.write(content)
        logger.info("Resume saved to local storage: %s", local_path)
        return f"{self.url_prefix}/{self.bucket}/{file_path}"

    async def download(self, file_path: str) -> bytes:
        local_path = self._local_path(file_path)
        if not os.path.exists(local_path):
            raise StorageError(f"Object not found: {file_path}")
        async with aiofiles.open(local_path, "rb") as f:
            return await f.read()

    async def delete(self, file_path: str) -> None:
        local_path = self._local_path(file_path)
        if os.path.exists(local_path):
            os.remove(local_path)


def resolve_storage_path(resume_url: str, bucket: str = "resumes") -> str:
    """
    Turn a stored resume URL into a path inside the bucket.

    Both ``https://x.supabase.co/storage/v1/object/public/resumes/42/a.pdf``
    and ``/uploads/resumes/42/a.pdf`` resolve to ``42/a.pdf``.

    Raises:
        InvalidReference if the URL has no ``/<bucket>/`` segment or nothing after it
    """
    if not resume_url or not isinstance(resume_url, str):
        raise InvalidReference()

    try:
        path = urlparse(resume_url).path
    except ValueError:
        raise InvalidReference()

    parts = path.split(f"/{bucket}/", 1)
    if len(parts) < 2 or not parts[1].strip("/"):
        raise InvalidReference()
    return unquote(parts[1])
