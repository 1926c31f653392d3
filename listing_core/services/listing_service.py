"""
Listing service layer.

Orchestrates listing operations across the query engine, the image
lifecycle coordinator and the favorite manager. Every public coroutine
surfaces failures as normalized ``ListingCoreException`` errors.
"""

import asyncio
from typing import List, Optional, Union

from ..domain.entities import ImageLocator
from ..domain.exceptions import Unauthorized
from ..domain.models import (
    DisplayListing,
    ListingFilter,
    ListingFormRecord,
    ListingInput,
    ListingPage,
    ListingRecord,
)
from ..identity import SessionContext
from ..infrastructure.gateway import GraphQLGateway, IDataGateway
from ..infrastructure.storage import (
    IObjectStorage,
    SupabaseObjectStorage,
    path_from_locator,
)
from ..logging_config import get_logger
from .error_normalizer import normalized
from .favorites import FavoriteManager
from .image_lifecycle import ImageLifecycleCoordinator
from .query_engine import ListingQueryEngine
from .schema_transformer import (
    from_remote,
    to_create_input,
    to_draft_input,
    to_update_input,
)

logger = get_logger(__name__)

SEARCH_LIMIT = 50
FEATURED_LIMIT = 6
RELATED_LIMIT = 4


class ListingService:
    """
    Listing service over a data gateway and object storage.

    Attributes:
        engine: Query engine issuing gateway operations
        images: Image lifecycle coordinator
        favorites: Favorite manager for the acting user
    """

    def __init__(self, gateway: IDataGateway, storage: IObjectStorage):
        """
        Initialize listing service.

        Args:
            gateway: Remote data gateway
            storage: Object storage holding listing images
        """
        self.engine = ListingQueryEngine(gateway)
        self.images = ImageLifecycleCoordinator(storage)
        self.favorites = FavoriteManager(self.engine)

    @classmethod
    def from_settings(cls, auth_token: Optional[str] = None) -> "ListingService":
        """Build a service wired to the configured GraphQL and Supabase clients."""
        return cls(GraphQLGateway(auth_token=auth_token), SupabaseObjectStorage())

    async def close(self) -> None:
        await self.engine.gateway.close()

    async def _owned(
        self, session: SessionContext, listing_id: str, action: str
    ) -> ListingRecord:
        user_id = session.require_user()
        record = await self.engine.get_listing(listing_id)
        if record.owner_id != user_id:
            logger.warning(
                "Ownership check failed",
                user_id=user_id,
                listing_id=listing_id,
                action=action,
            )
            raise Unauthorized(user_id, listing_id, action)
        return record

    # Queries

    @normalized("listings.list")
    async def get_listings(
        self, criteria: Optional[ListingFilter] = None
    ) -> ListingPage[DisplayListing]:
        """
        Fetch one page of available listings.

        Args:
            criteria: Filter, sort and cursor; defaults to the first page

        Returns:
            Page of display listings with the continuation token
        """
        page = await self.engine.list_listings(criteria or ListingFilter())
        return ListingPage[DisplayListing](
            items=[from_remote(record) for record in page.items],
            next_token=page.next_token,
            limit=page.limit,
            total=page.total,
        )

    @normalized("listings.get")
    async def get_listing(self, listing_id: str) -> DisplayListing:
        return from_remote(await self.engine.get_listing(listing_id))

    @normalized("listings.search")
    async def search_listings(self, query: str) -> List[DisplayListing]:
        page = await self.get_listings(
            ListingFilter(search_query=query, limit=SEARCH_LIMIT)
        )
        return page.items

    @normalized("listings.featured")
    async def get_featured_listings(self) -> List[DisplayListing]:
        page = await self.get_listings(ListingFilter(limit=FEATURED_LIMIT))
        return page.items

    @normalized("listings.related")
    async def get_related_listings(self, listing_id: str) -> List[DisplayListing]:
        """Listings in the same city with the same room type, excluding this one."""
        current = await self.engine.get_listing(listing_id)
        page = await self.get_listings(
            ListingFilter(
                city=current.city,
                room_type=current.room_type,
                limit=RELATED_LIMIT,
            )
        )
        return [listing for listing in page.items if listing.id != listing_id]

    @normalized("listings.mine")
    async def get_my_listings(self, session: SessionContext) -> List[DisplayListing]:
        """All listings of the acting user, drafts included."""
        owner_id = session.require_user()
        records = await self.engine.list_by_owner(owner_id)
        return [from_remote(record) for record in records]

    # Mutations

    @normalized("listings.create", mutation=True)
    async def create_listing(
        self, session: SessionContext, draft: ListingFormRecord
    ) -> DisplayListing:
        """
        Create a listing from a draft, uploading and promoting its images.

        Images are uploaded to the owner's temporary container first, the
        listing is created with those locators, and the images are then
        promoted into the listing's own container. Promotion failures never
        fail the create.

        Args:
            session: Acting user, stored as owner
            draft: Draft record from the UI

        Returns:
            The created listing

        Raises:
            AuthenticationRequired: If there is no current user
            ValidationFailed: If an image violates the size or type limits
            RemoteOperationFailed: If an upload or the create fails
        """
        owner_id = session.require_user()
        temp_locators = await self.images.upload(draft.images, owner_id)

        try:
            record = await self.engine.create_listing(
                to_create_input(draft, owner_id, temp_locators)
            )
        except Exception:
            await self.images.delete_all(temp_locators)
            raise

        logger.info(
            "Listing created",
            listing_id=record.id,
            owner_id=owner_id,
            images=len(temp_locators),
        )

        if not temp_locators:
            return from_remote(record)

        patched: List[ListingRecord] = []

        async def patch(locators: List[ImageLocator]) -> None:
            update = to_update_input(
                record.id,
                ListingFormRecord(main_image_index=record.main_image_index),
                locators,
            )
            patched.append(await self.engine.update_listing(update))

        await self.images.promote(temp_locators, owner_id, record.id, patch)
        return from_remote(patched[0] if patched else record)

    @normalized("listings.save_draft", mutation=True)
    async def save_draft(
        self, session: SessionContext, partial: ListingFormRecord
    ) -> DisplayListing:
        """Persist an incomplete draft as an unavailable, inactive listing."""
        owner_id = session.require_user()
        record = await self.engine.create_listing(
            to_draft_input(partial, owner_id), draft=True
        )
        logger.info("Draft saved", listing_id=record.id, owner_id=owner_id)
        return from_remote(record)

    @normalized("listings.update", mutation=True)
    async def update_listing(
        self, session: SessionContext, listing_id: str, partial: ListingFormRecord
    ) -> DisplayListing:
        """
        Apply the explicitly set fields of ``partial`` to a listing.

        When ``existing_images`` is set or new files are attached, the final
        image set is the kept locators followed by the new uploads, and
        images dropped from the listing are deleted after the update
        succeeds. If the update fails, the new uploads are deleted again.

        Raises:
            AuthenticationRequired: If there is no current user
            Unauthorized: If the acting user does not own the listing
            NotFound: If the listing does not exist
        """
        current = await self._owned(session, listing_id, "update")
        owner_id = current.owner_id

        images_changed = partial.is_set("existing_images") or bool(partial.images)
        locators: Optional[List[ImageLocator]] = None
        uploaded: List[ImageLocator] = []

        if images_changed:
            kept = (
                partial.existing_images
                if partial.is_set("existing_images")
                else current.images
            )
            locators = await self.images.replace(
                current.images, kept, partial.images, owner_id, listing_id
            )
            current_paths = {path_from_locator(value) for value in current.images}
            uploaded = [loc for loc in locators if loc.path not in current_paths]
        elif partial.is_set("main_image_index"):
            locators = [ImageLocator(path=value) for value in current.images]

        try:
            record = await self.engine.update_listing(
                to_update_input(listing_id, partial, locators)
            )
        except Exception:
            if uploaded:
                await self.images.delete_all(uploaded)
            raise

        if images_changed:
            removed = await self.images.delete_removed(current.images, locators)
            logger.info(
                "Listing images updated",
                listing_id=listing_id,
                uploaded=len(uploaded),
                removed=len(removed),
            )

        return from_remote(record)

    @normalized("listings.delete", mutation=True)
    async def delete_listing(self, session: SessionContext, listing_id: str) -> str:
        """
        Delete a listing and its images.

        Image deletion is best-effort; the record is deleted regardless.

        Returns:
            ID of the deleted listing
        """
        current = await self._owned(session, listing_id, "delete")
        deleted = await self.images.delete_all(current.images)
        result = await self.engine.delete_listing(listing_id)
        logger.info(
            "Listing deleted",
            listing_id=listing_id,
            images=len(current.images),
            images_deleted=deleted,
        )
        return result

    @normalized("listings.toggle_status", mutation=True)
    async def toggle_listing_status(
        self, session: SessionContext, listing_id: str
    ) -> DisplayListing:
        """Flip the availability flag of an owned listing."""
        current = await self._owned(session, listing_id, "update")
        record = await self.engine.update_listing(
            ListingInput(id=listing_id, is_available=not current.is_available)
        )
        return from_remote(record)

    # Images

    @normalized("listings.image_urls")
    async def get_image_urls(
        self, listing: Union[DisplayListing, ListingRecord]
    ) -> List[ImageLocator]:
        """Locators with retrieval URLs for every image, in display order."""
        return list(
            await asyncio.gather(
                *(self.images.signed_url(value) for value in listing.images)
            )
        )

    @normalized("listings.sweep_temporary")
    async def sweep_temporary_images(self, session: SessionContext) -> List[str]:
        """Delete images left in the acting user's temporary container."""
        return await self.images.sweep_temporary(session.require_user())
