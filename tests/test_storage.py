"""
Tests for the Supabase object storage adapter.

Covers:
- Locator to path reduction
- Bucket calls for every storage operation
- Error wrapping with status codes
"""

from unittest.mock import MagicMock

import pytest

from listing_core.infrastructure.storage import (
    StorageError,
    SupabaseObjectStorage,
    path_from_locator,
)


@pytest.fixture
def bucket():
    """Create mock storage bucket."""
    return MagicMock()


@pytest.fixture
def supabase_storage(bucket):
    """Create adapter around a mock Supabase client."""
    client = MagicMock()
    client.storage.from_.return_value = bucket
    return SupabaseObjectStorage(client=client, bucket="listing-images")


class TestPathFromLocator:
    """Test locator reduction."""

    def test_plain_path(self):
        """Test paths are returned without a leading slash."""
        assert path_from_locator("/public/roomimages/o/l/a.jpg") == "public/roomimages/o/l/a.jpg"

    def test_signed_url(self):
        """Test URLs are cut at the storage root and lose their query."""
        url = (
            "https://bucket.s3.amazonaws.com/public/roomimages/o/l/a%20b.jpg"
            "?X-Amz-Signature=abc"
        )

        assert path_from_locator(url) == "public/roomimages/o/l/a b.jpg"

    def test_url_without_root(self):
        """Test URLs outside the storage root cannot be reduced."""
        assert path_from_locator("https://cdn.example.com/img/a.jpg") is None


class TestSupabaseObjectStorage:
    """Test bucket calls."""

    @pytest.mark.asyncio
    async def test_put(self, supabase_storage, bucket):
        """Test uploads never overwrite and carry the content type."""
        locator = await supabase_storage.put(
            "public/roomimages/o/temp/a.jpg", b"data", "image/jpeg", {"owner_id": "o"}
        )

        assert locator.path == "public/roomimages/o/temp/a.jpg"
        bucket.upload.assert_called_once_with(
            "public/roomimages/o/temp/a.jpg",
            b"data",
            {"content-type": "image/jpeg", "upsert": "false"},
        )

    @pytest.mark.asyncio
    async def test_copy(self, supabase_storage, bucket):
        """Test copies pass source and destination."""
        await supabase_storage.copy("a/temp/x.jpg", "a/l/x.jpg")

        bucket.copy.assert_called_once_with("a/temp/x.jpg", "a/l/x.jpg")

    @pytest.mark.asyncio
    async def test_delete(self, supabase_storage, bucket):
        """Test delete reports whether anything was removed."""
        bucket.remove.return_value = [{"name": "x.jpg"}]
        assert await supabase_storage.delete("a/x.jpg") is True

        bucket.remove.return_value = []
        assert await supabase_storage.delete("a/x.jpg") is False

    @pytest.mark.asyncio
    async def test_list(self, supabase_storage, bucket):
        """Test listings are returned as full paths."""
        bucket.list.return_value = [{"name": "a.jpg"}, {"name": "b.jpg"}]

        paths = await supabase_storage.list("public/roomimages/o/temp/")

        bucket.list.assert_called_once_with("public/roomimages/o/temp")
        assert paths == ["public/roomimages/o/temp/a.jpg", "public/roomimages/o/temp/b.jpg"]

    @pytest.mark.asyncio
    async def test_signed_url(self, supabase_storage, bucket):
        """Test both signed URL key spellings are accepted."""
        bucket.create_signed_url.return_value = {"signedURL": "https://s/a?token=1"}
        assert await supabase_storage.signed_url("a.jpg", 60) == "https://s/a?token=1"

        bucket.create_signed_url.return_value = {"signedUrl": "https://s/b?token=2"}
        assert await supabase_storage.signed_url("b.jpg", 60) == "https://s/b?token=2"

    @pytest.mark.asyncio
    async def test_client_error_wrapped(self, supabase_storage, bucket):
        """Test client errors become StorageError with the status code."""
        bucket.copy.side_effect = Exception({"statusCode": 404, "message": "Object not found"})

        with pytest.raises(StorageError) as exc_info:
            await supabase_storage.copy("a.jpg", "b.jpg")

        assert exc_info.value.status_code == 404
        assert exc_info.value.operation == "copy"
        assert exc_info.value.path == "a.jpg"

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        """Test calls fail clearly without credentials."""
        storage = SupabaseObjectStorage(url="", key="")
        storage._url = ""
        storage._key = ""

        with pytest.raises(StorageError):
            await storage.delete("a.jpg")
