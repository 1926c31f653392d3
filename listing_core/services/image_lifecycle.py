"""
Image lifecycle coordinator.

Uploads listing images into a temporary namespace, promotes them into the
listing's namespace once the listing exists, and cleans up images that are
no longer referenced. Promotion is a saga: copy, patch the record, then
delete the temporary copies. Storage steps are idempotent and get a fixed
number of attempts; gateway patches are never retried.
"""

import asyncio
import mimetypes
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from ..config import settings
from ..domain.entities import ImageAsset, ImageAssetState, ImageLocator
from ..domain.exceptions import ValidationFailed
from ..domain.models import ImageFile
from ..infrastructure.storage import IObjectStorage, StorageError, path_from_locator
from ..logging_config import get_logger
from ..metrics import image_promotions_total, orphaned_images_total

logger = get_logger(__name__)

LocatorLike = Union[ImageLocator, str]
PatchFn = Callable[[List[ImageLocator]], Awaitable[Any]]


@dataclass
class PromotionResult:
    """Outcome of one promotion saga."""

    locators: List[ImageLocator]
    assets: List[ImageAsset] = field(default_factory=list)
    patched: bool = False

    @property
    def orphan_candidates(self) -> List[ImageAsset]:
        return [asset for asset in self.assets if asset.is_orphan_candidate]


def _as_path(locator: LocatorLike) -> Optional[str]:
    value = locator.path if isinstance(locator, ImageLocator) else locator
    return path_from_locator(value)


def _to_locator(locator: LocatorLike) -> ImageLocator:
    if isinstance(locator, ImageLocator):
        return locator
    return ImageLocator(path=path_from_locator(locator) or locator)


def _extension(image: ImageFile) -> str:
    if "." in image.filename:
        return image.filename.rsplit(".", 1)[-1].lower()
    guessed = mimetypes.guess_extension(image.content_type or "")
    return guessed.lstrip(".") if guessed else "jpg"


class ImageLifecycleCoordinator:
    """
    Coordinates listing images across object storage and the listing record.

    Attributes:
        storage: Object storage client
        step_attempts: Attempts per idempotent storage step
    """

    def __init__(self, storage: IObjectStorage, step_attempts: Optional[int] = None):
        self.storage = storage
        self.step_attempts = step_attempts or settings.STORAGE_STEP_ATTEMPTS

    async def _attempt(self, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.step_attempts),
            retry=retry_if_exception_type(StorageError),
            reraise=True,
        ):
            with attempt:
                return await fn(*args)

    # Validation and paths

    def validate(self, image: ImageFile) -> None:
        """
        Check one image against the size and type limits.

        Raises:
            ValidationFailed: If the file is too large or not an accepted type
        """
        content_type = (image.content_type or "").lower()
        if content_type not in settings.ALLOWED_IMAGE_TYPES:
            raise ValidationFailed(
                "image",
                image.filename,
                f"file type {content_type or 'unknown'} is not supported",
            )
        if image.size > settings.MAX_IMAGE_SIZE_BYTES:
            raise ValidationFailed(
                "image",
                image.filename,
                f"file size {image.size} exceeds {settings.MAX_IMAGE_SIZE_BYTES} bytes",
            )

    def container_prefix(self, owner_id: str, container_id: str) -> str:
        return "/".join(
            (settings.STORAGE_ROOT, settings.IMAGE_PREFIX, owner_id, container_id)
        )

    def build_path(self, owner_id: str, container_id: str, image: ImageFile) -> str:
        """Unique object path for ``image`` inside one container."""
        name = f"{uuid.uuid4()}.{_extension(image)}"
        return f"{self.container_prefix(owner_id, container_id)}/{name}"

    def is_temporary(self, locator: LocatorLike, owner_id: str) -> bool:
        path = _as_path(locator)
        prefix = self.container_prefix(owner_id, settings.TEMP_CONTAINER) + "/"
        return bool(path) and path.startswith(prefix)

    # Upload

    async def upload(
        self,
        images: Sequence[ImageFile],
        owner_id: str,
        container_id: Optional[str] = None,
    ) -> List[ImageLocator]:
        """
        Validate and upload images concurrently.

        Every file is validated before anything is uploaded. If any upload
        fails, the uploads that succeeded are removed again and the first
        failure is raised.

        Args:
            images: Files to store, in display order
            owner_id: Owner of the images
            container_id: Target container, the temporary one by default

        Returns:
            Locators in the same order as ``images``
        """
        if not images:
            return []

        for image in images:
            self.validate(image)

        container_id = container_id or settings.TEMP_CONTAINER
        results = await asyncio.gather(
            *(self._put(image, owner_id, container_id) for image in images),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            stored = [r for r in results if isinstance(r, ImageLocator)]
            logger.error(
                "Image upload failed",
                owner_id=owner_id,
                container=container_id,
                failed=len(failures),
                stored=len(stored),
            )
            await self.delete_all(stored)
            raise failures[0]

        logger.info(
            "Images uploaded",
            owner_id=owner_id,
            container=container_id,
            count=len(results),
        )
        return list(results)

    async def _put(
        self, image: ImageFile, owner_id: str, container_id: str
    ) -> ImageLocator:
        path = self.build_path(owner_id, container_id, image)
        return await self._attempt(
            self.storage.put,
            path,
            image.content,
            image.content_type,
            {"owner_id": owner_id, "original_name": image.filename},
        )

    # Promotion saga

    async def promote(
        self,
        locators: Sequence[LocatorLike],
        owner_id: str,
        listing_id: str,
        patch: PatchFn,
    ) -> PromotionResult:
        """
        Move temporary images into the listing's namespace.

        Each temporary image is copied first. If any locator changed, the
        listing is patched with the new locators; only then are the
        temporary copies deleted. A failed patch reverts to the temporary
        locators and removes the promoted copies. Nothing here raises for
        storage or patch failures: the listing stays usable and leftovers
        are logged and counted.

        Args:
            locators: Locators stored on the new listing
            owner_id: Owner of the images
            listing_id: Listing the images belong to
            patch: Coroutine persisting a new locator list on the listing

        Returns:
            Final locators and the per-image asset states
        """
        assets = [
            ImageAsset(
                locator=_to_locator(locator),
                state=ImageAssetState.UPLOADED_TEMP
                if self.is_temporary(locator, owner_id)
                else ImageAssetState.REFERENCED,
            )
            for locator in locators
        ]
        result = PromotionResult(locators=[a.locator for a in assets], assets=assets)
        pending = [a for a in assets if a.state == ImageAssetState.UPLOADED_TEMP]
        if not pending:
            return result

        await asyncio.gather(*(self._copy(a, owner_id, listing_id) for a in pending))

        promoted = [a for a in assets if a.state == ImageAssetState.PROMOTED]
        if not promoted:
            image_promotions_total.labels(status="failed").inc()
            return result

        new_locators = [a.locator for a in assets]
        try:
            await patch(new_locators)
        except Exception as e:
            logger.warning(
                "Image patch failed, keeping temporary locators",
                listing_id=listing_id,
                error=str(e),
            )
            await self._revert(promoted)
            image_promotions_total.labels(status="reverted").inc()
            result.locators = [a.locator for a in assets]
            return result

        result.patched = True
        result.locators = new_locators
        for asset in assets:
            if asset.state == ImageAssetState.PROMOTED:
                asset.state = ImageAssetState.REFERENCED

        await asyncio.gather(*(self._drop_source(a) for a in promoted))

        status = "success" if len(promoted) == len(pending) else "partial"
        image_promotions_total.labels(status=status).inc()
        logger.info(
            "Images promoted",
            listing_id=listing_id,
            promoted=len(promoted),
            pending=len(pending),
            orphan_candidates=len(result.orphan_candidates),
        )
        return result

    async def _copy(self, asset: ImageAsset, owner_id: str, listing_id: str) -> None:
        source = asset.locator
        dest = f"{self.container_prefix(owner_id, listing_id)}/{source.file_name}"
        try:
            await self._attempt(self.storage.copy, source.path, dest)
        except StorageError as e:
            asset.errors.append(e.message)
            orphaned_images_total.labels(namespace="temp").inc()
            logger.warning(
                "Image copy failed, keeping temporary locator",
                source=source.path,
                dest=dest,
                error=e.message,
            )
            return
        asset.source = source
        asset.locator = ImageLocator(path=dest)
        asset.state = ImageAssetState.PROMOTED

    async def _revert(self, promoted: List[ImageAsset]) -> None:
        for asset in promoted:
            copy_path = asset.locator.path
            asset.locator = asset.source
            asset.source = None
            asset.state = ImageAssetState.UPLOADED_TEMP
            if not await self._delete_quietly(copy_path, namespace="listing"):
                asset.errors.append(f"promoted copy left at {copy_path}")

    async def _drop_source(self, asset: ImageAsset) -> None:
        if not await self._delete_quietly(asset.source.path, namespace="temp"):
            asset.errors.append(f"temporary copy left at {asset.source.path}")

    # Update and cleanup

    async def replace(
        self,
        current: Sequence[LocatorLike],
        kept: Sequence[LocatorLike],
        images: Sequence[ImageFile],
        owner_id: str,
        listing_id: str,
    ) -> List[ImageLocator]:
        """
        Final image set for an update.

        Kept locators must belong to the listing; others are dropped. New
        files go straight into the listing's namespace and follow the kept
        ones.

        Returns:
            Kept locators followed by the new uploads
        """
        current_paths = {_as_path(locator) for locator in current}
        final: List[ImageLocator] = []
        for locator in kept:
            path = _as_path(locator)
            if path not in current_paths:
                logger.warning(
                    "Ignoring kept image not on listing",
                    listing_id=listing_id,
                    locator=str(locator),
                )
                continue
            final.append(_to_locator(locator))

        final.extend(await self.upload(images, owner_id, listing_id))
        return final

    async def delete_removed(
        self, current: Sequence[LocatorLike], final: Sequence[LocatorLike]
    ) -> List[str]:
        """
        Delete every current image absent from ``final``.

        Returns:
            Paths that were targeted for deletion
        """
        keep = {_as_path(locator) for locator in final}
        removed = [locator for locator in current if _as_path(locator) not in keep]
        if removed:
            await self.delete_all(removed)
        return [p for p in (_as_path(locator) for locator in removed) if p]

    async def delete_all(self, locators: Sequence[LocatorLike]) -> int:
        """
        Best-effort deletion of several images.

        Returns:
            Number of images storage reported as removed
        """
        paths = []
        for locator in locators:
            path = _as_path(locator)
            if path is None:
                logger.warning("Skipping undeletable locator", locator=str(locator))
                continue
            paths.append(path)

        outcomes = await asyncio.gather(
            *(self._delete_quietly(path, namespace="listing") for path in paths)
        )
        return sum(1 for ok in outcomes if ok)

    async def _delete_quietly(self, path: str, namespace: str) -> bool:
        try:
            removed = await self._attempt(self.storage.delete, path)
        except StorageError as e:
            orphaned_images_total.labels(namespace=namespace).inc()
            logger.warning("Image delete failed", path=path, error=e.message)
            return False
        if not removed:
            orphaned_images_total.labels(namespace=namespace).inc()
            logger.warning("Image delete removed nothing", path=path)
            return False
        return True

    async def sweep_temporary(self, owner_id: str) -> List[str]:
        """
        Delete everything left in an owner's temporary container.

        Returns:
            Paths found in the temporary container
        """
        prefix = self.container_prefix(owner_id, settings.TEMP_CONTAINER)
        paths = await self.storage.list(prefix)
        if paths:
            deleted = await self.delete_all(paths)
            logger.info(
                "Swept temporary images",
                owner_id=owner_id,
                found=len(paths),
                deleted=deleted,
            )
        return paths

    async def signed_url(
        self, locator: LocatorLike, ttl: Optional[int] = None
    ) -> ImageLocator:
        """Locator carrying a time-limited retrieval URL."""
        path = _as_path(locator)
        if path is None:
            raise StorageError("Locator has no storage path", "signed_url", str(locator))
        url = await self.storage.signed_url(path, ttl or settings.SIGNED_URL_TTL)
        return ImageLocator(path=path, url=url)
