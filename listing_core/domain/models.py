"""Pydantic models for draft, remote, display and query records."""

from datetime import date
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from .entities import SortDirection

T = TypeVar("T")


def _default_for_null(model: type, value: Any, info: ValidationInfo) -> Any:
    """Gateway records send null for empty lists, unset indexes and blank strings."""
    if value is None:
        return model.model_fields[info.field_name].get_default(call_default_factory=True)
    return value


class RemoteModel(BaseModel):
    """Base for records exchanged with the gateway in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_variables(self) -> Dict[str, Any]:
        """Gateway variables holding only the fields that were set."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class ImageFile(BaseModel):
    """Raw image handle attached to a draft."""

    filename: str = "image"
    content_type: str = ""
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)


class UtilityDeposits(BaseModel):
    """Per-utility deposits shown on the rental terms step."""

    electricity: float = 0
    water: float = 0
    internet: float = 0


class ListingFormRecord(BaseModel):
    """
    UI-facing draft of a listing.

    Field defaults mirror an empty add-listing form. For partial updates,
    only fields passed explicitly (``model_fields_set``) are applied.
    """

    # Basic information
    title: str = ""
    description: str = ""
    price: float = Field(default=0, ge=0)
    room_type: str = ""
    property_type: str = ""

    # Location details
    address: str = ""
    city: str = ""
    state: Optional[str] = None
    postal_code: Optional[str] = None
    neighborhood: str = ""
    landmarks: List[str] = Field(default_factory=list)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Property details
    furnished: str = ""
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[float] = None
    floor_level: Optional[str] = None

    # Amenities and features
    amenities: List[str] = Field(default_factory=list)
    security_features: List[str] = Field(default_factory=list)
    parking: Optional[str] = None
    kitchen_facilities: List[str] = Field(default_factory=list)
    additional_facilities: List[str] = Field(default_factory=list)

    # Rental terms
    available_from: Optional[date] = None
    available_to: Optional[date] = None
    minimum_stay: Optional[int] = None
    deposit: Optional[float] = None
    advance_payment: Optional[float] = None
    utility_deposits: UtilityDeposits = Field(default_factory=UtilityDeposits)
    utilities_included: List[str] = Field(default_factory=list)
    gender_preference: str = "any"
    religion_preference: Optional[str] = None
    age_preference: Optional[str] = None
    smoking_allowed: bool = False
    pets_allowed: bool = False
    visitors_allowed: bool = True
    notice_period: Optional[int] = None

    # Photos
    images: List[ImageFile] = Field(default_factory=list)
    existing_images: List[str] = Field(default_factory=list)
    main_image_index: int = 0

    # Contact and availability
    contact_methods: List[str] = Field(default_factory=list)
    viewing_availability: List[str] = Field(default_factory=list)
    response_time: Optional[str] = None
    additional_notes: str = ""

    def is_set(self, name: str) -> bool:
        """Whether ``name`` was passed explicitly."""
        return name in self.model_fields_set


class OwnerSummary(RemoteModel):
    """Owner sub-record embedded in a listing."""

    first_name: str = ""
    last_name: str = ""
    phone: str = ""

    @field_validator("first_name", "last_name", "phone", mode="before")
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_for_null(cls, value, info)


class ListingInput(RemoteModel):
    """Create or update input for a listing; unset fields are not sent."""

    id: Optional[str] = None
    owner_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    room_type: Optional[str] = None
    property_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    location: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    furnished: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[float] = None
    floor_level: Optional[str] = None
    available_from: Optional[str] = None
    available_to: Optional[str] = None
    is_available: Optional[bool] = None
    is_active: Optional[bool] = None
    gender_preference: Optional[str] = None
    religion_preference: Optional[str] = None
    age_preference: Optional[str] = None
    smoking_allowed: Optional[bool] = None
    pets_allowed: Optional[bool] = None
    visitors_allowed: Optional[bool] = None
    images: Optional[List[str]] = None
    main_image_index: Optional[int] = None
    amenities: Optional[List[str]] = None
    nearby_facilities: Optional[List[str]] = None
    utilities_included: Optional[List[str]] = None
    additional_rules: Optional[List[str]] = None
    security_deposit: Optional[float] = None
    advance_payment: Optional[float] = None
    minimum_stay: Optional[int] = None
    notice_period: Optional[int] = None


class ListingRecord(ListingInput):
    """Canonical listing as returned by the gateway."""

    id: str = ""
    owner_id: str = ""
    images: List[str] = Field(default_factory=list)
    main_image_index: int = 0
    amenities: List[str] = Field(default_factory=list)
    nearby_facilities: List[str] = Field(default_factory=list)
    utilities_included: List[str] = Field(default_factory=list)
    additional_rules: List[str] = Field(default_factory=list)
    view_count: Optional[int] = None
    favorite_count: Optional[int] = None
    inquiry_count: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    owner: Optional[OwnerSummary] = None

    @field_validator(
        "id",
        "owner_id",
        "images",
        "main_image_index",
        "amenities",
        "nearby_facilities",
        "utilities_included",
        "additional_rules",
        mode="before",
    )
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_for_null(cls, value, info)


class DisplayListing(BaseModel):
    """Listing shaped for presentation, in snake_case."""

    id: str
    owner_id: str
    title: str = ""
    description: Optional[str] = None
    price: float = 0
    currency: Optional[str] = None
    room_type: Optional[str] = None
    property_type: Optional[str] = None
    furnishing: Optional[str] = None
    furnished: bool = False
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    location: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[float] = None
    floor_level: Optional[str] = None
    available_from: Optional[str] = None
    available_to: Optional[str] = None
    is_available: bool = False
    is_active: bool = False
    gender_preference: Optional[str] = None
    religion_preference: Optional[str] = None
    age_preference: Optional[str] = None
    smoking_allowed: bool = False
    pet_friendly: bool = False
    visitors_allowed: bool = False
    images: List[str] = Field(default_factory=list)
    main_image_index: int = 0
    amenities: List[str] = Field(default_factory=list)
    nearby_facilities: List[str] = Field(default_factory=list)
    utilities_included: List[str] = Field(default_factory=list)
    additional_rules: List[str] = Field(default_factory=list)
    security_deposit: Optional[float] = None
    advance_payment: Optional[float] = None
    minimum_stay: Optional[int] = None
    notice_period: Optional[int] = None
    view_count: int = 0
    favorite_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    owner: Optional[OwnerSummary] = None

    @property
    def main_image(self) -> Optional[str]:
        if not self.images:
            return None
        return self.images[self.main_image_index]


class ListingSummary(RemoteModel):
    """Listing fields embedded in a favorite."""

    id: str
    title: Optional[str] = None
    price: Optional[float] = None
    city: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    main_image_index: int = 0
    is_available: Optional[bool] = None

    @field_validator("images", "main_image_index", mode="before")
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        return _default_for_null(cls, value, info)


class Favorite(RemoteModel):
    """A user's favorite relationship to a listing."""

    id: str
    user_id: str
    listing_id: str
    created_at: Optional[str] = None
    listing: Optional[ListingSummary] = None


class ListingFilter(BaseModel):
    """Optional search criteria; a pure value object."""

    model_config = ConfigDict(frozen=True)

    city: Optional[str] = None
    room_type: Optional[str] = None
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)
    gender: Optional[str] = None
    religion: Optional[str] = None
    is_pet_friendly: bool = False
    amenities: List[str] = Field(default_factory=list)
    search_query: Optional[str] = None
    available_from: Optional[date] = None
    order_by: Optional[str] = None
    order_dir: SortDirection = SortDirection.ASC
    limit: Optional[int] = Field(default=None, ge=1)
    next_token: Optional[str] = None


class ListingPage(BaseModel, Generic[T]):
    """
    One fetched batch of listings.

    ``total`` is the size of this batch after residual filtering, not the
    size of the full result set, which the gateway does not report.
    """

    items: List[T] = Field(default_factory=list)
    next_token: Optional[str] = None
    limit: int
    total: int = 0

    @property
    def has_more(self) -> bool:
        return self.next_token is not None
