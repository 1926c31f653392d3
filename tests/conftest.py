"""
Test configuration and fixtures.

Provides in-memory implementations of the data gateway and object storage
so service tests run without network access.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from listing_core.identity import SessionContext
from listing_core.infrastructure.gateway import GatewayResult, IDataGateway
from listing_core.infrastructure.operations import OPERATIONS
from listing_core.infrastructure.storage import IObjectStorage, StorageError
from listing_core.domain.entities import ImageLocator
from listing_core.domain.models import ImageFile, ListingFormRecord
from listing_core.services.favorites import FavoriteManager
from listing_core.services.image_lifecycle import ImageLifecycleCoordinator
from listing_core.services.listing_service import ListingService
from listing_core.services.query_engine import ListingQueryEngine

OWNER_ID = "owner-1"
OTHER_ID = "user-2"


def _compare(value: Any, condition: Dict[str, Any]) -> bool:
    for op, expected in condition.items():
        if op == "eq" and value != expected:
            return False
        if op == "ne" and value == expected:
            return False
        if op == "ge" and (value is None or value < expected):
            return False
        if op == "le" and (value is None or value > expected):
            return False
    return True


def matches(record: Dict[str, Any], predicate: Optional[Dict[str, Any]]) -> bool:
    """Evaluate a gateway filter predicate against a camelCase record."""
    for key, condition in (predicate or {}).items():
        if key == "or":
            if not any(matches(record, sub) for sub in condition):
                return False
        elif key == "and":
            if not all(matches(record, sub) for sub in condition):
                return False
        elif not _compare(record.get(key), condition):
            return False
    return True


class InMemoryGateway(IDataGateway):
    """
    Data gateway keeping listings and favorites in dictionaries.

    ``fail_with`` maps an operation name to an error batch returned for
    every call of that operation. ``yield_control`` makes each call hand
    control back to the event loop once, so concurrent callers interleave.
    """

    def __init__(self):
        self.listings: Dict[str, Dict[str, Any]] = {}
        self.favorites: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_with: Dict[str, List[Dict[str, Any]]] = {}
        self.yield_control = False
        self._counter = 0

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def _timestamp(self) -> str:
        return f"2024-01-01T00:00:{self._counter:02d}Z"

    def add_listing(self, **fields: Any) -> Dict[str, Any]:
        """Seed a listing; ``fields`` are camelCase."""
        record = {
            "id": self._next_id("listing"),
            "ownerId": OWNER_ID,
            "title": "Room",
            "price": 500,
            "isAvailable": True,
            "isActive": True,
            "images": [],
            "mainImageIndex": 0,
            "amenities": [],
        }
        record["createdAt"] = self._timestamp()
        record.update(fields)
        self.listings[record["id"]] = record
        return record

    def calls_of(self, operation: str) -> List[Dict[str, Any]]:
        return [variables for name, variables in self.calls if name == operation]

    async def execute(self, operation: str, variables: Dict[str, Any]) -> GatewayResult:
        assert operation in OPERATIONS, f"unknown operation {operation}"
        self.calls.append((operation, variables))
        if self.yield_control:
            await asyncio.sleep(0)

        if operation in self.fail_with:
            return GatewayResult(errors=self.fail_with[operation])

        root = OPERATIONS[operation].root_field
        handler = getattr(self, f"_{root}")
        return GatewayResult(data={root: handler(variables)})

    def _createRoomListing(self, variables):
        record = dict(variables["input"])
        record["id"] = self._next_id("listing")
        record["createdAt"] = self._timestamp()
        self.listings[record["id"]] = record
        return dict(record)

    def _updateRoomListing(self, variables):
        changes = variables["input"]
        record = self.listings.get(changes["id"])
        if record is None:
            return None
        record.update(changes)
        return dict(record)

    def _deleteRoomListing(self, variables):
        record = self.listings.pop(variables["input"]["id"], None)
        return {"id": record["id"]} if record else None

    def _getRoomListing(self, variables):
        record = self.listings.get(variables["id"])
        return dict(record) if record else None

    def _page(self, records, variables):
        offset = int(variables.get("nextToken") or 0)
        limit = variables.get("limit") or 100
        items = records[offset:offset + limit]
        more = offset + limit < len(records)
        return {
            "items": [dict(r) for r in items],
            "nextToken": str(offset + limit) if more else None,
        }

    def _listRoomListings(self, variables):
        records = [
            r for r in self.listings.values() if matches(r, variables.get("filter"))
        ]
        return self._page(records, variables)

    def _getListingsByOwner(self, variables):
        records = [
            r for r in self.listings.values() if r.get("ownerId") == variables["ownerId"]
        ]
        records.sort(key=lambda r: r.get("createdAt") or "", reverse=True)
        return self._page(records, variables)

    def _listFavorites(self, variables):
        records = [
            r for r in self.favorites.values() if matches(r, variables.get("filter"))
        ]
        return self._page(records, variables)

    def _createFavorite(self, variables):
        record = dict(variables["input"])
        record["id"] = self._next_id("favorite")
        self.favorites[record["id"]] = record
        return dict(record)

    def _deleteFavorite(self, variables):
        record = self.favorites.pop(variables["input"]["id"], None)
        return {"id": record["id"]} if record else None


class InMemoryStorage(IObjectStorage):
    """
    Object storage keeping objects in a dictionary.

    ``failures`` maps an operation name to how many of its next calls fail;
    ``fail_paths`` makes every operation on those paths fail.
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, int] = {}
        self.fail_paths: set = set()

    def _check(self, operation: str, path: str) -> None:
        self.calls.append((operation, path))
        if path in self.fail_paths:
            raise StorageError("injected failure", operation, path, 500)
        remaining = self.failures.get(operation, 0)
        if remaining:
            self.failures[operation] = remaining - 1
            raise StorageError("injected failure", operation, path, 500)

    def calls_of(self, operation: str) -> List[str]:
        return [path for name, path in self.calls if name == operation]

    async def put(self, path, content, content_type, metadata=None):
        self._check("put", path)
        if path in self.objects:
            raise StorageError("The resource already exists", "put", path, 409)
        self.objects[path] = content
        return ImageLocator(path=path)

    async def copy(self, source_path, dest_path):
        self._check("copy", source_path)
        if source_path not in self.objects:
            raise StorageError("Object not found", "copy", source_path, 404)
        self.objects[dest_path] = self.objects[source_path]

    async def delete(self, path):
        self._check("delete", path)
        return self.objects.pop(path, None) is not None

    async def list(self, prefix):
        self._check("list", prefix)
        prefix = prefix.rstrip("/") + "/"
        return sorted(p for p in self.objects if p.startswith(prefix))

    async def signed_url(self, path, ttl):
        self._check("signed_url", path)
        return f"https://storage.test/{path}?token=signed&expires={ttl}"


@pytest.fixture
def gateway():
    """Create in-memory data gateway."""
    return InMemoryGateway()


@pytest.fixture
def storage():
    """Create in-memory object storage."""
    return InMemoryStorage()


@pytest.fixture
def engine(gateway):
    """Create query engine over the in-memory gateway."""
    return ListingQueryEngine(gateway)


@pytest.fixture
def coordinator(storage):
    """Create image lifecycle coordinator over in-memory storage."""
    return ImageLifecycleCoordinator(storage, step_attempts=2)


@pytest.fixture
def favorites(engine):
    """Create favorite manager."""
    return FavoriteManager(engine)


@pytest.fixture
def service(gateway, storage):
    """Create listing service over in-memory backends."""
    return ListingService(gateway, storage)


@pytest.fixture
def owner_session():
    """Session of the listing owner."""
    return SessionContext(user_id=OWNER_ID, email="owner@example.com")


@pytest.fixture
def other_session():
    """Session of a user who owns nothing."""
    return SessionContext(user_id=OTHER_ID, email="other@example.com")


def make_image(name: str = "photo.jpg", content_type: str = "image/jpeg", size: int = 16):
    """Create an image file with ``size`` bytes of content."""
    return ImageFile(filename=name, content_type=content_type, content=b"x" * size)


@pytest.fixture
def image_factory():
    """Factory for image files."""
    return make_image


@pytest.fixture
def sample_draft():
    """Create a complete add-listing draft."""
    return ListingFormRecord(
        title="Cozy room near UNIMAS",
        description="Quiet master bedroom with attached bathroom",
        price=650,
        room_type="master-bedroom",
        property_type="condo",
        address="12 Jalan Simpang Tiga",
        city="Kuching",
        state="Sarawak",
        postal_code="93350",
        neighborhood="Tabuan Jaya",
        landmarks=["Vivacity Megamall"],
        latitude=1.52,
        longitude=110.36,
        furnished="fully",
        bedrooms=1,
        bathrooms=1,
        square_feet=180,
        floor_level="3",
        amenities=["WiFi", "Air Conditioning"],
        security_features=["CCTV", "WiFi"],
        kitchen_facilities=["Microwave"],
        additional_facilities=["Gym"],
        available_from=date(2024, 3, 1),
        minimum_stay=6,
        deposit=1300,
        advance_payment=650,
        utilities_included=["water"],
        gender_preference="female",
        religion_preference="any",
        smoking_allowed=False,
        pets_allowed=True,
        visitors_allowed=True,
        notice_period=30,
        main_image_index=1,
        additional_notes="No loud music after 11pm",
    )
