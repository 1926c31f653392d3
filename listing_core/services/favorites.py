"""
Favorite relationship manager.

Keeps at most one favorite per (user, listing) pair. The gateway has no
conditional upsert, so toggling is a check followed by a create or delete.
Two concurrent toggles by the same user can interleave: both may see the
same state and both create, or both delete. ``toggle_favorite`` removes
every duplicate it finds for the pair, which repairs the double-create
case on the next removal.
"""

from typing import Any, Dict, List

from ..domain.exceptions import NotFound
from ..domain.models import Favorite
from ..identity import SessionContext
from ..logging_config import get_logger
from ..metrics import favorite_toggles_total
from .error_normalizer import normalized
from .query_engine import ListingQueryEngine

logger = get_logger(__name__)


def pair_predicate(user_id: str, listing_id: str) -> Dict[str, Any]:
    return {"userId": {"eq": user_id}, "listingId": {"eq": listing_id}}


class FavoriteManager:
    """Favorite operations for the acting user."""

    def __init__(self, engine: ListingQueryEngine):
        self.engine = engine

    async def _find(self, user_id: str, listing_id: str) -> List[Favorite]:
        return await self.engine.list_favorites(pair_predicate(user_id, listing_id))

    @normalized("favorites.is_favorite")
    async def is_favorite(self, session: SessionContext, listing_id: str) -> bool:
        """Whether the acting user has favorited the listing; False for guests."""
        if not session.is_authenticated:
            return False
        return bool(await self._find(session.user_id, listing_id))

    @normalized("favorites.toggle")
    async def toggle_favorite(self, session: SessionContext, listing_id: str) -> bool:
        """
        Create the favorite if missing, otherwise delete it.

        Args:
            session: Acting user
            listing_id: Listing to toggle

        Returns:
            True if the listing is a favorite afterwards

        Raises:
            AuthenticationRequired: If there is no current user
        """
        user_id = session.require_user()
        existing = await self._find(user_id, listing_id)

        if not existing:
            await self.engine.create_favorite(user_id, listing_id)
            favorite_toggles_total.labels(action="added").inc()
            logger.info("Favorite added", user_id=user_id, listing_id=listing_id)
            return True

        for favorite in existing:
            await self.engine.delete_favorite(favorite.id)
        favorite_toggles_total.labels(action="removed").inc()
        logger.info(
            "Favorite removed",
            user_id=user_id,
            listing_id=listing_id,
            removed=len(existing),
        )
        return False

    @normalized("favorites.add")
    async def add_favorite(self, session: SessionContext, listing_id: str) -> Favorite:
        """Favorite a listing; returns the existing favorite if there is one."""
        user_id = session.require_user()
        existing = await self._find(user_id, listing_id)
        if existing:
            return existing[0]
        favorite = await self.engine.create_favorite(user_id, listing_id)
        logger.info("Favorite added", user_id=user_id, listing_id=listing_id)
        return favorite

    @normalized("favorites.remove")
    async def remove_favorite(self, session: SessionContext, favorite_id: str) -> None:
        """
        Delete one of the acting user's favorites.

        Raises:
            NotFound: If the favorite does not exist or belongs to someone else
        """
        user_id = session.require_user()
        matches = await self.engine.list_favorites(
            {"id": {"eq": favorite_id}, "userId": {"eq": user_id}}
        )
        if not matches:
            raise NotFound("Favorite", favorite_id)
        await self.engine.delete_favorite(favorite_id)
        logger.info("Favorite removed", user_id=user_id, favorite_id=favorite_id)

    @normalized("favorites.list")
    async def get_favorites(self, session: SessionContext) -> List[Favorite]:
        user_id = session.require_user()
        return await self.engine.list_favorites({"userId": {"eq": user_id}})
