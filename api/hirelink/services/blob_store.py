from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import quote

import httpx

from hirelink.core.config import get_settings
from hirelink.services.errors import RepositoryValidationError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStoreUnavailableError(Exception):
    """Raised when the object store is not configured or rejects an upload."""


class AttachmentTooLargeError(RepositoryValidationError):
    """Raised when an upload exceeds the configured size limit."""


@dataclass(slots=True)
class StoredBlob:
    url: str
    file_name: str
    content_type: str | None
    size: int


def safe_object_name(file_name: str | None) -> str:
    cleaned = _UNSAFE_NAME_CHARS.sub("-", (file_name or "").strip()).strip("-.")
    return cleaned[:120] or "attachment"


class SupabaseBlobStore:
    """Stores chat attachments in a public Supabase Storage bucket."""

    def __init__(
        self,
        supabase_url: str | None,
        service_role_key: str | None,
        bucket: str,
        max_bytes: int,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.supabase_url = supabase_url.rstrip("/") if supabase_url else None
        self.service_role_key = service_role_key
        self.bucket = bucket
        self.max_bytes = max_bytes
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def store(
        self,
        *,
        owner_id: int,
        file_name: str | None,
        content: bytes,
        content_type: str | None,
    ) -> StoredBlob:
        if not content:
            raise RepositoryValidationError("attachment is empty")
        if len(content) > self.max_bytes:
            raise AttachmentTooLargeError(f"attachment exceeds {self.max_bytes} bytes")
        if not self.supabase_url or not self.service_role_key:
            raise BlobStoreUnavailableError("object storage is not configured")

        display_name = (file_name or "").strip() or "attachment"
        object_path = f"{owner_id}/{uuid.uuid4().hex}/{safe_object_name(display_name)}"
        upload_url = f"{self.supabase_url}/storage/v1/object/{self.bucket}/{quote(object_path)}"
        headers = {
            "Authorization": f"Bearer {self.service_role_key}",
            "apikey": self.service_role_key,
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "false",
        }

        try:
            if self._client is not None:
                response = await self._client.post(upload_url, content=content, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(upload_url, content=content, headers=headers)
        except httpx.HTTPError as exc:
            raise BlobStoreUnavailableError("object storage unreachable") from exc

        if response.status_code >= 400:
            logger.warning(
                "attachment upload rejected bucket=%s status=%s body=%s",
                self.bucket,
                response.status_code,
                response.text[:200],
            )
            raise BlobStoreUnavailableError(f"object storage rejected upload ({response.status_code})")

        public_url = f"{self.supabase_url}/storage/v1/object/public/{self.bucket}/{quote(object_path)}"
        logger.info("attachment stored owner_id=%s bucket=%s size=%s", owner_id, self.bucket, len(content))
        return StoredBlob(url=public_url, file_name=display_name, content_type=content_type, size=len(content))


@lru_cache
def get_blob_store() -> SupabaseBlobStore:
    settings = get_settings()
    return SupabaseBlobStore(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        bucket=settings.storage_bucket,
        max_bytes=settings.upload_max_bytes,
        timeout_seconds=settings.upload_timeout_seconds,
    )
