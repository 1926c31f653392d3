"""
Filter/sort query engine.

Builds gateway predicates from a ``ListingFilter``, applies the filters and
ordering the gateway predicate grammar cannot express, and issues every
named listing and favorite operation against the data gateway.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_snake

from ..config import settings
from ..domain.entities import GenderPreference, RoomType, SortDirection
from ..domain.exceptions import NotFound
from ..domain.models import (
    Favorite,
    ListingFilter,
    ListingInput,
    ListingPage,
    ListingRecord,
)
from ..infrastructure import operations as ops
from ..infrastructure.gateway import GatewayError, IDataGateway
from ..logging_config import get_logger

logger = get_logger(__name__)

# Fields scanned by free-text search
SEARCH_FIELDS = ("title", "description", "location", "city")

# Error type reported for gateway payloads that do not fit the record models
INVALID_RESPONSE = "InvalidResponse"

M = TypeVar("M", bound=BaseModel)


def build_predicate(criteria: ListingFilter) -> Dict[str, Any]:
    """
    Build the gateway predicate for a filter.

    Only available, active listings are ever matched. Gender matches the
    requested value or the ``any`` sentinel.

    Args:
        criteria: Search criteria

    Returns:
        Predicate object for ``ListRoomListings``
    """
    predicate: Dict[str, Any] = {
        "isAvailable": {"eq": True},
        "isActive": {"eq": True},
    }

    if criteria.city:
        predicate["city"] = {"eq": criteria.city}

    if criteria.room_type:
        predicate["roomType"] = {"eq": RoomType.encode(criteria.room_type)}

    if criteria.min_price is not None or criteria.max_price is not None:
        price: Dict[str, float] = {}
        if criteria.min_price is not None:
            price["ge"] = criteria.min_price
        if criteria.max_price is not None:
            price["le"] = criteria.max_price
        predicate["price"] = price

    if criteria.gender:
        predicate["or"] = [
            {"genderPreference": {"eq": GenderPreference.encode(criteria.gender)}},
            {"genderPreference": {"eq": GenderPreference.ANY.value}},
        ]

    if criteria.religion:
        predicate["religionPreference"] = {"eq": criteria.religion}

    if criteria.is_pet_friendly:
        predicate["petsAllowed"] = {"eq": True}

    if criteria.available_from:
        predicate["availableFrom"] = {"ge": criteria.available_from.isoformat()}

    return predicate


def matches_amenities(record: ListingRecord, amenities: Sequence[str]) -> bool:
    """True when any requested amenity is present, ignoring case."""
    if not amenities:
        return True
    present = {amenity.lower() for amenity in record.amenities or []}
    return any(amenity.lower() in present for amenity in amenities)


def matches_query(record: ListingRecord, query: Optional[str]) -> bool:
    """Case-insensitive substring match on any searchable field."""
    if not query:
        return True
    needle = query.lower()
    for name in SEARCH_FIELDS:
        value = getattr(record, name, None)
        if value and needle in value.lower():
            return True
    return False


def apply_residual_filters(
    records: Sequence[ListingRecord], criteria: ListingFilter
) -> List[ListingRecord]:
    """Apply amenity and free-text filters to a fetched batch."""
    return [
        record
        for record in records
        if matches_amenities(record, criteria.amenities)
        and matches_query(record, criteria.search_query)
    ]


def _sort_value(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def sort_records(
    records: Sequence[Any],
    order_by: Optional[str],
    direction: SortDirection = SortDirection.ASC,
) -> List[Any]:
    """
    Stable sort by one field.

    Strings compare case-insensitively. Records missing the field keep
    their relative order after all others. ``order_by`` may be camelCase
    or snake_case.
    """
    if not order_by:
        return list(records)

    attr = to_snake(order_by)
    present = [r for r in records if getattr(r, attr, None) is not None]
    missing = [r for r in records if getattr(r, attr, None) is None]

    present.sort(
        key=lambda r: _sort_value(getattr(r, attr)),
        reverse=direction == SortDirection.DESC,
    )
    return present + missing


class ListingQueryEngine:
    """
    Query engine over the remote data gateway.

    Every method issues exactly one named operation. An error batch in the
    gateway envelope is raised as ``GatewayError``; normalizing it is left
    to the caller.
    """

    def __init__(self, gateway: IDataGateway, default_limit: Optional[int] = None):
        self.gateway = gateway
        self.default_limit = default_limit or settings.DEFAULT_PAGE_SIZE

    async def _run(
        self, operation: ops.GatewayOperation, variables: Dict[str, Any]
    ) -> Any:
        result = await self.gateway.execute(operation.name, variables)
        if result.errors:
            first = result.errors[0]
            raise GatewayError(
                first.get("message") or f"{operation.name} failed",
                operation=operation.name,
                errors=result.errors,
            )
        return (result.data or {}).get(operation.root_field)

    @staticmethod
    def _parse(model: Type[M], payload: Any, operation: ops.GatewayOperation) -> M:
        """Validate one gateway item; a malformed item fails as a remote error."""
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            field = ".".join(str(part) for part in first.get("loc", ()))
            message = f"Malformed {model.__name__} in response: {field}"
            if first.get("msg"):
                message = f"{message} ({first['msg']})"
            logger.error(
                "Gateway returned malformed data",
                operation=operation.name,
                model=model.__name__,
                field=field,
            )
            raise GatewayError(
                message,
                operation=operation.name,
                errors=[{"message": message, "errorType": INVALID_RESPONSE}],
            ) from e

    def _parse_items(
        self, model: Type[M], payload: Dict[str, Any], operation: ops.GatewayOperation
    ) -> List[M]:
        return [self._parse(model, item, operation) for item in payload.get("items") or []]

    async def list_listings(self, criteria: ListingFilter) -> ListingPage[ListingRecord]:
        """
        Fetch one batch of listings matching ``criteria``.

        The gateway returns at most ``limit`` items and a continuation
        token; residual filters may shrink the batch further.
        """
        limit = criteria.limit or self.default_limit
        variables: Dict[str, Any] = {
            "filter": build_predicate(criteria),
            "limit": limit,
        }
        if criteria.next_token:
            variables["nextToken"] = criteria.next_token

        payload = await self._run(ops.LIST_LISTINGS, variables) or {}
        fetched = self._parse_items(ListingRecord, payload, ops.LIST_LISTINGS)

        records = apply_residual_filters(fetched, criteria)
        records = sort_records(records, criteria.order_by, criteria.order_dir)

        logger.info(
            "Listings fetched",
            fetched=len(fetched),
            returned=len(records),
            has_next_token=payload.get("nextToken") is not None,
        )

        return ListingPage[ListingRecord](
            items=records,
            next_token=payload.get("nextToken"),
            limit=limit,
            total=len(records),
        )

    async def get_listing(self, listing_id: str) -> ListingRecord:
        """
        Fetch one listing.

        Raises:
            NotFound: If the gateway has no listing with this ID
        """
        payload = await self._run(ops.GET_LISTING, {"id": listing_id})
        if not payload:
            raise NotFound("Listing", listing_id)
        return self._parse(ListingRecord, payload, ops.GET_LISTING)

    async def list_by_owner(
        self, owner_id: str, limit: Optional[int] = None
    ) -> List[ListingRecord]:
        """Fetch the listings of one owner, newest first."""
        payload = await self._run(
            ops.LIST_LISTINGS_BY_OWNER,
            {
                "ownerId": owner_id,
                "sortDirection": "DESC",
                "limit": limit or settings.OWNER_LISTINGS_LIMIT,
            },
        ) or {}
        return self._parse_items(ListingRecord, payload, ops.LIST_LISTINGS_BY_OWNER)

    async def create_listing(
        self, listing_input: ListingInput, draft: bool = False
    ) -> ListingRecord:
        operation = ops.CREATE_DRAFT_LISTING if draft else ops.CREATE_LISTING
        payload = await self._run(operation, {"input": listing_input.to_variables()})
        if not payload:
            raise GatewayError("Create returned no listing", operation=operation.name)
        return self._parse(ListingRecord, payload, operation)

    async def update_listing(self, listing_input: ListingInput) -> ListingRecord:
        payload = await self._run(
            ops.UPDATE_LISTING, {"input": listing_input.to_variables()}
        )
        if not payload:
            raise NotFound("Listing", listing_input.id)
        return self._parse(ListingRecord, payload, ops.UPDATE_LISTING)

    async def delete_listing(self, listing_id: str) -> str:
        payload = await self._run(ops.DELETE_LISTING, {"input": {"id": listing_id}})
        if not payload:
            raise NotFound("Listing", listing_id)
        return payload.get("id", listing_id)

    async def list_favorites(
        self, predicate: Dict[str, Any], limit: Optional[int] = None
    ) -> List[Favorite]:
        payload = await self._run(
            ops.LIST_FAVORITES,
            {"filter": predicate, "limit": limit or settings.FAVORITES_LIMIT},
        ) or {}
        return self._parse_items(Favorite, payload, ops.LIST_FAVORITES)

    async def create_favorite(self, user_id: str, listing_id: str) -> Favorite:
        payload = await self._run(
            ops.CREATE_FAVORITE,
            {
                "input": {
                    "userId": user_id,
                    "listingId": listing_id,
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                }
            },
        )
        if not payload:
            raise GatewayError(
                "Create returned no favorite", operation=ops.CREATE_FAVORITE.name
            )
        return self._parse(Favorite, payload, ops.CREATE_FAVORITE)

    async def delete_favorite(self, favorite_id: str) -> str:
        payload = await self._run(ops.DELETE_FAVORITE, {"input": {"id": favorite_id}})
        if not payload:
            raise NotFound("Favorite", favorite_id)
        return payload.get("id", favorite_id)
