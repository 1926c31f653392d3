"""
Schema transformer between draft, remote and display listings.

All functions here are pure: no I/O, no clock reads unless ``today`` is
omitted, and no exceptions for well-formed input. Enumerated fields go
through the ``FormTokenEnum`` encode/decode pair of their domain.
"""

from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, Union

from ..config import settings
from ..domain.entities import (
    Furnishing,
    FormTokenEnum,
    GenderPreference,
    ImageLocator,
    PropertyType,
    RoomType,
)
from ..domain.models import (
    DisplayListing,
    ListingFormRecord,
    ListingInput,
    ListingRecord,
)

LocatorLike = Union[ImageLocator, str]

DRAFT_TITLE = "Draft Listing"

# Draft fields copied verbatim, keyed by draft name -> remote name
DIRECT_FIELDS: Dict[str, str] = {
    "title": "title",
    "description": "description",
    "price": "price",
    "address": "address",
    "city": "city",
    "state": "state",
    "postal_code": "postal_code",
    "neighborhood": "location",
    "latitude": "latitude",
    "longitude": "longitude",
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "square_feet": "square_feet",
    "floor_level": "floor_level",
    "religion_preference": "religion_preference",
    "age_preference": "age_preference",
    "smoking_allowed": "smoking_allowed",
    "pets_allowed": "pets_allowed",
    "visitors_allowed": "visitors_allowed",
    "deposit": "security_deposit",
    "advance_payment": "advance_payment",
    "minimum_stay": "minimum_stay",
    "notice_period": "notice_period",
    "utilities_included": "utilities_included",
    "landmarks": "nearby_facilities",
}

ENUM_FIELDS: Dict[str, Type[FormTokenEnum]] = {
    "room_type": RoomType,
    "property_type": PropertyType,
    "furnished": Furnishing,
    "gender_preference": GenderPreference,
}

AMENITY_GROUPS = (
    "amenities",
    "security_features",
    "kitchen_facilities",
    "additional_facilities",
)


def locator_value(locator: LocatorLike) -> str:
    """Stored form of a locator."""
    return locator.path if isinstance(locator, ImageLocator) else locator


def merge_amenities(draft: ListingFormRecord) -> List[str]:
    """Flatten the four UI amenity groups, keeping first-seen order."""
    merged: List[str] = []
    for group in AMENITY_GROUPS:
        for amenity in getattr(draft, group):
            if amenity not in merged:
                merged.append(amenity)
    return merged


def clamp_main_image_index(index: Optional[int], image_count: int) -> int:
    """Keep ``index`` inside ``[0, image_count)``, falling back to 0."""
    if index is None or image_count == 0 or not 0 <= index < image_count:
        return 0
    return index


def _encode(enum_cls: Type[FormTokenEnum], token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return enum_cls.encode(token)


def _encode_gender(token: Optional[str]) -> str:
    return GenderPreference.encode(token) if token else GenderPreference.ANY.value


def _rules(notes: Optional[str]) -> List[str]:
    return [notes] if notes else []


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_create_input(
    draft: ListingFormRecord,
    owner_id: str,
    image_locators: Sequence[LocatorLike] = (),
    *,
    draft_mode: bool = False,
    today: Optional[date] = None,
) -> ListingInput:
    """
    Build the remote create input for a draft.

    Args:
        draft: Draft record from the UI
        owner_id: Acting user, stored as the listing owner
        image_locators: Uploaded image locators in display order
        draft_mode: Create as a draft (not available, not active)
        today: Date used when the draft has no availability date

    Returns:
        Create input holding only non-empty fields
    """
    images = [locator_value(locator) for locator in image_locators]

    fields: Dict[str, Any] = {
        "owner_id": owner_id,
        "title": draft.title,
        "description": draft.description,
        "price": draft.price,
        "currency": settings.DEFAULT_CURRENCY,
        "room_type": _encode(RoomType, draft.room_type),
        "property_type": _encode(PropertyType, draft.property_type),
        "furnished": _encode(Furnishing, draft.furnished),
        "state": draft.state or settings.DEFAULT_STATE,
        "available_from": _iso(draft.available_from or today or date.today()),
        "available_to": _iso(draft.available_to),
        "is_available": not draft_mode,
        "is_active": not draft_mode,
        "gender_preference": _encode_gender(draft.gender_preference),
        "images": images,
        "main_image_index": clamp_main_image_index(draft.main_image_index, len(images)),
        "amenities": merge_amenities(draft),
        "additional_rules": _rules(draft.additional_notes),
    }
    for draft_name, remote_name in DIRECT_FIELDS.items():
        if draft_name not in ("title", "description", "price", "state"):
            fields[remote_name] = getattr(draft, draft_name)

    if fields["notice_period"] is None:
        fields["notice_period"] = settings.DEFAULT_NOTICE_PERIOD

    return ListingInput(**{k: v for k, v in fields.items() if v is not None})


def to_draft_input(
    partial: ListingFormRecord,
    owner_id: str,
    *,
    today: Optional[date] = None,
) -> ListingInput:
    """
    Build a create input for a draft save.

    Drafts are never available or active and carry no images; a missing
    title or room type gets a placeholder.
    """
    filled = partial.model_copy(
        update={
            "title": partial.title or DRAFT_TITLE,
            "room_type": partial.room_type or RoomType.SINGLE_ROOM.value,
        }
    )
    return to_create_input(filled, owner_id, (), draft_mode=True, today=today)


def to_update_input(
    listing_id: str,
    partial: ListingFormRecord,
    image_locators: Optional[Sequence[LocatorLike]] = None,
) -> ListingInput:
    """
    Build the remote update input from explicitly set draft fields.

    Fields the caller did not pass are left out entirely, so the remote
    record keeps its current value for them.

    Args:
        listing_id: Listing to update
        partial: Draft holding the changed fields
        image_locators: Final image set, when images change

    Returns:
        Update input with ``id`` and the changed fields only
    """
    fields: Dict[str, Any] = {"id": listing_id}

    for draft_name, remote_name in DIRECT_FIELDS.items():
        if partial.is_set(draft_name):
            fields[remote_name] = getattr(partial, draft_name)

    for name in ("available_from", "available_to"):
        if partial.is_set(name):
            fields[name] = _iso(getattr(partial, name))

    for name, enum_cls in ENUM_FIELDS.items():
        if partial.is_set(name):
            if enum_cls is GenderPreference:
                fields[name] = _encode_gender(partial.gender_preference)
            else:
                fields[name] = _encode(enum_cls, getattr(partial, name))

    if any(partial.is_set(group) for group in AMENITY_GROUPS):
        fields["amenities"] = merge_amenities(partial)

    if partial.is_set("additional_notes"):
        fields["additional_rules"] = _rules(partial.additional_notes)

    if image_locators is not None:
        images = [locator_value(locator) for locator in image_locators]
        index = partial.main_image_index if partial.is_set("main_image_index") else 0
        fields["images"] = images
        fields["main_image_index"] = clamp_main_image_index(index, len(images))

    return ListingInput(**fields)


def from_remote(record: Union[ListingRecord, Mapping[str, Any]]) -> DisplayListing:
    """
    Map a remote listing to its display shape.

    ``furnished`` collapses the furnishing level to a boolean that is true
    only for fully furnished listings; ``furnishing`` keeps the token.
    """
    if not isinstance(record, ListingRecord):
        record = ListingRecord.model_validate(record)

    images = list(record.images or [])
    return DisplayListing(
        id=record.id,
        owner_id=record.owner_id,
        title=record.title or "",
        description=record.description,
        price=record.price or 0,
        currency=record.currency,
        room_type=record.room_type,
        property_type=record.property_type,
        furnishing=record.furnished,
        furnished=record.furnished == Furnishing.FULLY_FURNISHED.value,
        address=record.address,
        city=record.city,
        state=record.state,
        location=record.location,
        postal_code=record.postal_code,
        latitude=record.latitude,
        longitude=record.longitude,
        bedrooms=record.bedrooms,
        bathrooms=record.bathrooms,
        square_feet=record.square_feet,
        floor_level=record.floor_level,
        available_from=record.available_from,
        available_to=record.available_to,
        is_available=bool(record.is_available),
        is_active=bool(record.is_active),
        gender_preference=record.gender_preference,
        religion_preference=record.religion_preference,
        age_preference=record.age_preference,
        smoking_allowed=bool(record.smoking_allowed),
        pet_friendly=bool(record.pets_allowed),
        visitors_allowed=bool(record.visitors_allowed),
        images=images,
        main_image_index=clamp_main_image_index(record.main_image_index, len(images)),
        amenities=list(record.amenities or []),
        nearby_facilities=list(record.nearby_facilities or []),
        utilities_included=list(record.utilities_included or []),
        additional_rules=list(record.additional_rules or []),
        security_deposit=record.security_deposit,
        advance_payment=record.advance_payment,
        minimum_stay=record.minimum_stay,
        notice_period=record.notice_period,
        view_count=record.view_count or 0,
        favorite_count=record.favorite_count or 0,
        created_at=record.created_at,
        updated_at=record.updated_at,
        owner=record.owner,
    )


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _decode(enum_cls: Type[FormTokenEnum], token: Optional[str]) -> str:
    return enum_cls.decode(token) or ""


def to_form_record(listing: DisplayListing) -> ListingFormRecord:
    """
    Populate an edit form from a display listing.

    Canonical tokens are decoded to their UI spellings. The stored image
    locators become ``existing_images``.
    """
    return ListingFormRecord(
        title=listing.title,
        description=listing.description or "",
        price=listing.price,
        room_type=_decode(RoomType, listing.room_type),
        property_type=_decode(PropertyType, listing.property_type),
        address=listing.address or "",
        city=listing.city or "",
        state=listing.state,
        postal_code=listing.postal_code,
        neighborhood=listing.location or "",
        landmarks=list(listing.nearby_facilities),
        latitude=listing.latitude,
        longitude=listing.longitude,
        furnished=_decode(Furnishing, listing.furnishing),
        bedrooms=listing.bedrooms,
        bathrooms=listing.bathrooms,
        square_feet=listing.square_feet,
        floor_level=listing.floor_level,
        amenities=list(listing.amenities),
        available_from=_parse_date(listing.available_from),
        available_to=_parse_date(listing.available_to),
        minimum_stay=listing.minimum_stay,
        deposit=listing.security_deposit,
        advance_payment=listing.advance_payment,
        utilities_included=list(listing.utilities_included),
        gender_preference=_decode(GenderPreference, listing.gender_preference) or "any",
        religion_preference=listing.religion_preference,
        age_preference=listing.age_preference,
        smoking_allowed=listing.smoking_allowed,
        pets_allowed=listing.pet_friendly,
        visitors_allowed=listing.visitors_allowed,
        notice_period=listing.notice_period,
        existing_images=list(listing.images),
        main_image_index=listing.main_image_index,
        additional_notes="\n".join(listing.additional_rules),
    )
