"""
Object storage client for listing images.

Defines the path-keyed storage contract and a Supabase Storage
implementation. The Supabase client is synchronous, so each call runs in
a worker thread.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

from supabase import Client, create_client

from ..config import settings
from ..domain.entities import ImageLocator
from ..logging_config import get_logger
from ..metrics import track_storage_operation

logger = get_logger(__name__)


class StorageError(Exception):
    """Raw failure reported by the object storage service."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.operation = operation
        self.path = path
        self.status_code = status_code
        super().__init__(self.message)


class IObjectStorage(ABC):
    """
    Abstract interface for path-keyed object storage.

    Paths are full object keys, e.g. ``public/roomimages/<owner>/temp/x.jpg``.
    """

    @abstractmethod
    async def put(
        self,
        path: str,
        content: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ImageLocator:
        """Store ``content`` at ``path`` and return its locator."""
        pass

    @abstractmethod
    async def copy(self, source_path: str, dest_path: str) -> None:
        """Copy an object; the source stays in place."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete an object; returns whether storage reported a removal."""
        pass

    @abstractmethod
    async def list(self, prefix: str) -> List[str]:
        """List full object paths under ``prefix``."""
        pass

    @abstractmethod
    async def signed_url(self, path: str, ttl: int) -> str:
        """Time-limited retrieval URL for ``path``."""
        pass


def path_from_locator(value: str, root: Optional[str] = None) -> Optional[str]:
    """
    Reduce a stored locator value to its object path.

    Older records store retrieval URLs instead of paths; the path is the
    part of the URL starting at the storage root folder.

    Args:
        value: Object path or retrieval URL
        root: Storage root folder (defaults to settings)

    Returns:
        Object path, or None when a URL does not contain the root folder
    """
    root = root or settings.STORAGE_ROOT
    if not value.startswith(("http://", "https://")):
        return value.lstrip("/")

    parts = unquote(urlparse(value).path).split("/")
    if root in parts:
        return "/".join(parts[parts.index(root):])

    logger.warning("Locator URL has no storage root", url=value, root=root)
    return None


class SupabaseObjectStorage(IObjectStorage):
    """Object storage backed by a Supabase Storage bucket."""

    def __init__(
        self,
        client: Optional[Client] = None,
        bucket: Optional[str] = None,
        url: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        self.bucket_name = bucket or settings.STORAGE_BUCKET
        self._client = client
        self._url = url or settings.SUPABASE_URL
        self._key = key or settings.SUPABASE_SERVICE_KEY

        if self._client is None and not (self._url and self._key):
            logger.warning("Supabase storage credentials not fully configured")

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self._url and self._key)

    def _bucket(self):
        if self._client is None:
            if not self.is_configured:
                raise StorageError(
                    "Supabase not configured. Set SUPABASE_URL and SUPABASE_SERVICE_KEY"
                )
            logger.info("Initializing Supabase client...")
            self._client = create_client(self._url, self._key)
        return self._client.storage.from_(self.bucket_name)

    async def _call(self, operation: str, path: str, fn, *args: Any) -> Any:
        try:
            result = await asyncio.to_thread(fn, *args)
        except StorageError:
            track_storage_operation(operation, "error")
            raise
        except Exception as e:
            track_storage_operation(operation, "error")
            logger.error(
                "Storage operation failed",
                operation=operation,
                path=path,
                error=str(e),
            )
            raise StorageError(
                str(e),
                operation=operation,
                path=path,
                status_code=_status_code_of(e),
            ) from e
        track_storage_operation(operation, "success")
        return result

    async def put(
        self,
        path: str,
        content: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ImageLocator:
        bucket = self._bucket()
        await self._call(
            "put",
            path,
            bucket.upload,
            path,
            content,
            {"content-type": content_type, "upsert": "false"},
        )
        logger.info("Uploaded object", path=path, size=len(content), **(metadata or {}))
        return ImageLocator(path=path)

    async def copy(self, source_path: str, dest_path: str) -> None:
        bucket = self._bucket()
        await self._call("copy", source_path, bucket.copy, source_path, dest_path)

    async def delete(self, path: str) -> bool:
        bucket = self._bucket()
        removed = await self._call("delete", path, bucket.remove, [path])
        return bool(removed)

    async def list(self, prefix: str) -> List[str]:
        bucket = self._bucket()
        prefix = prefix.rstrip("/")
        entries = await self._call("list", prefix, bucket.list, prefix)
        return [f"{prefix}/{entry['name']}" for entry in entries or []]

    async def signed_url(self, path: str, ttl: int) -> str:
        bucket = self._bucket()
        result = await self._call(
            "signed_url", path, bucket.create_signed_url, path, ttl
        )
        url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise StorageError("No signed URL returned", "signed_url", path)
        return url


def _status_code_of(error: Exception) -> Optional[int]:
    """Best guess at an HTTP status carried by a storage client error."""
    for attr in ("status_code", "status", "statusCode"):
        value = getattr(error, attr, None)
        if value is None and error.args and isinstance(error.args[0], dict):
            value = error.args[0].get(attr)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None
