"""
Tests for the filter/sort query engine.

Covers:
- Predicate construction
- Residual amenity and free-text filters
- Stable client-side sorting
- Gateway operations and error envelopes
"""

from datetime import date

import pytest
from pydantic import ValidationError

from listing_core.domain.entities import SortDirection
from listing_core.domain.exceptions import NotFound
from listing_core.domain.models import ListingFilter, ListingInput, ListingRecord
from listing_core.infrastructure.gateway import GatewayError
from listing_core.services.query_engine import (
    apply_residual_filters,
    build_predicate,
    sort_records,
)


def _record(**fields):
    fields.setdefault("id", "listing")
    fields.setdefault("ownerId", "owner-1")
    return ListingRecord.model_validate(fields)


class TestBuildPredicate:
    """Test gateway predicate construction."""

    def test_base_predicate(self):
        """Test only available, active listings are matched."""
        assert build_predicate(ListingFilter()) == {
            "isAvailable": {"eq": True},
            "isActive": {"eq": True},
        }

    def test_full_predicate(self):
        """Test every server-side criterion is translated."""
        predicate = build_predicate(
            ListingFilter(
                city="Kuching",
                room_type="single-room",
                min_price=300,
                max_price=800,
                religion="muslim",
                is_pet_friendly=True,
                available_from=date(2024, 6, 1),
            )
        )

        assert predicate["city"] == {"eq": "Kuching"}
        assert predicate["roomType"] == {"eq": "single_room"}
        assert predicate["price"] == {"ge": 300, "le": 800}
        assert predicate["religionPreference"] == {"eq": "muslim"}
        assert predicate["petsAllowed"] == {"eq": True}
        assert predicate["availableFrom"] == {"ge": "2024-06-01"}

    def test_price_bounds_independent(self):
        """Test a single price bound yields a single comparison."""
        assert build_predicate(ListingFilter(min_price=200))["price"] == {"ge": 200}
        assert build_predicate(ListingFilter(max_price=900))["price"] == {"le": 900}

    def test_gender_includes_any(self):
        """Test a gender filter also matches listings open to anyone."""
        predicate = build_predicate(ListingFilter(gender="female"))

        assert predicate["or"] == [
            {"genderPreference": {"eq": "female"}},
            {"genderPreference": {"eq": "any"}},
        ]

    def test_pet_friendly_false_is_ignored(self):
        """Test an unset pet filter adds no constraint."""
        assert "petsAllowed" not in build_predicate(ListingFilter(is_pet_friendly=False))


class TestResidualFilters:
    """Test client-side filters."""

    def test_any_amenity_case_insensitive(self):
        """Test a record matches when any requested amenity is present."""
        records = [
            _record(id="a", amenities=["WiFi", "Parking"]),
            _record(id="b", amenities=["Gym"]),
            _record(id="c"),
        ]

        result = apply_residual_filters(
            records, ListingFilter(amenities=["wifi", "pool"])
        )

        assert [r.id for r in result] == ["a"]

    def test_free_text_over_searchable_fields(self):
        """Test the query matches title, description, location or city."""
        records = [
            _record(id="a", title="Sunny Room"),
            _record(id="b", description="near the SUNNY park"),
            _record(id="c", location="Sunnyvale"),
            _record(id="d", city="Miri"),
        ]

        result = apply_residual_filters(records, ListingFilter(search_query="sunny"))

        assert [r.id for r in result] == ["a", "b", "c"]

    def test_no_residual_criteria_keeps_all(self):
        """Test an empty filter keeps every record."""
        records = [_record(id="a"), _record(id="b")]

        assert apply_residual_filters(records, ListingFilter()) == records


class TestSortRecords:
    """Test stable sorting."""

    def test_price_ascending_and_descending(self):
        """Test numeric order in both directions."""
        records = [_record(id=i, price=p) for i, p in (("a", 500), ("b", 300), ("c", 800))]

        asc = sort_records(records, "price", SortDirection.ASC)
        desc = sort_records(records, "price", SortDirection.DESC)

        assert [r.price for r in asc] == [300, 500, 800]
        assert [r.price for r in desc] == [800, 500, 300]

    def test_ties_keep_input_order(self):
        """Test equal keys keep their relative order in both directions."""
        records = [_record(id=i, price=500) for i in ("a", "b", "c")]

        assert [r.id for r in sort_records(records, "price", SortDirection.ASC)] == [
            "a",
            "b",
            "c",
        ]
        assert [r.id for r in sort_records(records, "price", SortDirection.DESC)] == [
            "a",
            "b",
            "c",
        ]

    def test_missing_values_last(self):
        """Test records without the field sort after all others."""
        records = [_record(id="a"), _record(id="b", price=400), _record(id="c", price=100)]

        result = sort_records(records, "price", SortDirection.DESC)

        assert [r.id for r in result] == ["b", "c", "a"]

    def test_strings_case_insensitive_camel_case_key(self):
        """Test string keys ignore case and camelCase keys resolve."""
        records = [
            _record(id="a", createdAt="2024-02-01"),
            _record(id="b", createdAt="2024-01-01"),
        ]
        titled = [_record(id="x", title="beta"), _record(id="y", title="Alpha")]

        assert [r.id for r in sort_records(records, "createdAt")] == ["b", "a"]
        assert [r.id for r in sort_records(titled, "title")] == ["y", "x"]

    def test_no_key_keeps_order(self):
        """Test no sort key returns the input order."""
        records = [_record(id="b"), _record(id="a")]

        assert sort_records(records, None) == records


class TestListingQueryEngine:
    """Test gateway-backed operations."""

    @pytest.mark.asyncio
    async def test_list_listings_filters_and_pages(self, engine, gateway):
        """Test server predicate, residual filter and continuation token."""
        gateway.add_listing(city="Kuching", amenities=["WiFi"], price=400)
        gateway.add_listing(city="Kuching", amenities=["Gym"], price=300)
        gateway.add_listing(city="Kuching", isActive=False)
        gateway.add_listing(city="Miri", amenities=["WiFi"])
        gateway.add_listing(city="Kuching", amenities=["wifi"], price=200)

        page = await engine.list_listings(
            ListingFilter(city="Kuching", amenities=["WiFi"], order_by="price", limit=2)
        )

        assert [r.price for r in page.items] == [400]
        assert page.total == 1
        assert page.limit == 2
        assert page.has_more is True

        second = await engine.list_listings(
            ListingFilter(
                city="Kuching", amenities=["WiFi"], limit=2, next_token=page.next_token
            )
        )

        assert [r.price for r in second.items] == [200]
        assert second.has_more is False

    @pytest.mark.asyncio
    async def test_gender_filter_semantics(self, engine, gateway):
        """Test results are exactly the listings for that gender or anyone."""
        gateway.add_listing(id="f", genderPreference="female")
        gateway.add_listing(id="m", genderPreference="male")
        gateway.add_listing(id="any", genderPreference="any")

        page = await engine.list_listings(ListingFilter(gender="female"))

        assert sorted(r.id for r in page.items) == ["any", "f"]

    @pytest.mark.asyncio
    async def test_default_limit(self, engine, gateway):
        """Test the configured page size is used without a limit."""
        await engine.list_listings(ListingFilter())

        assert gateway.calls_of("ListRoomListings")[0]["limit"] == 10

    @pytest.mark.asyncio
    async def test_get_listing_missing(self, engine):
        """Test a missing listing raises NotFound."""
        with pytest.raises(NotFound):
            await engine.get_listing("nope")

    @pytest.mark.asyncio
    async def test_error_envelope_raises(self, engine, gateway):
        """Test an error batch surfaces as GatewayError with the first message."""
        gateway.fail_with["GetRoomListing"] = [
            {"message": "Not Authorized to access getRoomListing", "errorType": "Unauthorized"},
            {"message": "second"},
        ]

        with pytest.raises(GatewayError) as exc_info:
            await engine.get_listing("listing-1")

        assert exc_info.value.message == "Not Authorized to access getRoomListing"
        assert exc_info.value.first_error["errorType"] == "Unauthorized"
        assert len(exc_info.value.errors) == 2

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_gateway_error(self, engine, gateway):
        """Test a payload the record model rejects is reported as an invalid response."""
        seeded = gateway.add_listing(bedrooms="many")

        with pytest.raises(GatewayError) as exc_info:
            await engine.get_listing(seeded["id"])

        assert exc_info.value.operation == "GetRoomListing"
        assert exc_info.value.first_error["errorType"] == "InvalidResponse"
        assert "bedrooms" in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ValidationError)

    @pytest.mark.asyncio
    async def test_create_and_update(self, engine, gateway):
        """Test create and partial update round trip through the gateway."""
        created = await engine.create_listing(
            ListingInput(owner_id="owner-1", title="Room", price=450)
        )
        updated = await engine.update_listing(ListingInput(id=created.id, price=500))

        assert created.owner_id == "owner-1"
        assert updated.price == 500
        assert updated.title == "Room"
        assert gateway.calls_of("UpdateRoomListing")[0]["input"] == {
            "id": created.id,
            "price": 500.0,
        }

    @pytest.mark.asyncio
    async def test_create_draft_uses_draft_operation(self, engine, gateway):
        """Test draft creates use the draft field selection."""
        await engine.create_listing(ListingInput(owner_id="owner-1"), draft=True)

        assert gateway.calls_of("CreateDraftListing")
        assert not gateway.calls_of("CreateRoomListing")

    @pytest.mark.asyncio
    async def test_list_by_owner_newest_first(self, engine, gateway):
        """Test owner listings come back newest first."""
        first = gateway.add_listing(ownerId="owner-1")
        gateway.add_listing(ownerId="someone-else")
        second = gateway.add_listing(ownerId="owner-1")

        records = await engine.list_by_owner("owner-1")

        assert [r.id for r in records] == [second["id"], first["id"]]

    @pytest.mark.asyncio
    async def test_delete_listing(self, engine, gateway):
        """Test delete returns the deleted ID and missing IDs raise NotFound."""
        seeded = gateway.add_listing()

        assert await engine.delete_listing(seeded["id"]) == seeded["id"]
        with pytest.raises(NotFound):
            await engine.delete_listing(seeded["id"])

    @pytest.mark.asyncio
    async def test_favorite_operations(self, engine, gateway):
        """Test favorite create, list and delete."""
        favorite = await engine.create_favorite("user-2", "listing-9")

        found = await engine.list_favorites({"userId": {"eq": "user-2"}})
        assert [f.id for f in found] == [favorite.id]
        assert found[0].listing_id == "listing-9"

        assert await engine.delete_favorite(favorite.id) == favorite.id
        assert await engine.list_favorites({"userId": {"eq": "user-2"}}) == []
