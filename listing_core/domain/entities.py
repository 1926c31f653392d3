"""
Domain entities for rental listings.

Enumerated domains, image asset value objects and lifecycle states.
These entities are framework-agnostic and contain only business logic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class FormTokenEnum(str, Enum):
    """
    Enumerated domain with one canonical token and one UI spelling per member.

    ``encode`` maps a UI spelling to the canonical token and ``decode`` maps
    back. Tokens outside the domain pass through both directions unchanged.
    """

    @property
    def form_token(self) -> str:
        """UI spelling of this member."""
        return self.value.replace("_", "-")

    @classmethod
    def _from_alias(cls, token: str) -> Optional["FormTokenEnum"]:
        """Resolve extra UI spellings that do not follow the default rule."""
        return None

    @classmethod
    def parse(cls, token: Optional[str]) -> Optional["FormTokenEnum"]:
        """
        Resolve a UI or canonical token to a member.

        Args:
            token: Token as typed by the UI or stored remotely

        Returns:
            Matching member, or None when the token is outside the domain
        """
        if token is None:
            return None
        for member in cls:
            if token == member.value or token == member.form_token:
                return member
        return cls._from_alias(token)

    @classmethod
    def encode(cls, token: Optional[str]) -> Optional[str]:
        """UI spelling to canonical token; unknown tokens pass through."""
        member = cls.parse(token)
        return member.value if member is not None else token

    @classmethod
    def decode(cls, token: Optional[str]) -> Optional[str]:
        """Canonical token to UI spelling; unknown tokens pass through."""
        member = cls.parse(token)
        return member.form_token if member is not None else token


class RoomType(FormTokenEnum):
    """Kinds of rentable space."""

    SINGLE_ROOM = "single_room"
    MASTER_BEDROOM = "master_bedroom"
    MIDDLE_ROOM = "middle_room"
    SMALL_ROOM = "small_room"
    STUDIO_UNIT = "studio_unit"
    ENTIRE_HOUSE = "entire_house"


class PropertyType(FormTokenEnum):
    """Kinds of building a listing belongs to."""

    APARTMENT = "apartment"
    HOUSE = "house"
    CONDOMINIUM = "condominium"
    TOWNHOUSE = "townhouse"

    @classmethod
    def _from_alias(cls, token: str) -> Optional["PropertyType"]:
        if token == "condo":
            return cls.CONDOMINIUM
        return None


class Furnishing(FormTokenEnum):
    """Furnishing level of a listing."""

    FULLY_FURNISHED = "fully_furnished"
    PARTIALLY_FURNISHED = "partially_furnished"
    UNFURNISHED = "unfurnished"

    @classmethod
    def _from_alias(cls, token: str) -> Optional["Furnishing"]:
        # Short spellings used by the add-listing wizard
        return {
            "fully": cls.FULLY_FURNISHED,
            "partially": cls.PARTIALLY_FURNISHED,
        }.get(token)


class GenderPreference(FormTokenEnum):
    """Tenant gender preference; ANY is the match-everyone sentinel."""

    MALE = "male"
    FEMALE = "female"
    ANY = "any"

    @classmethod
    def _from_alias(cls, token: str) -> Optional["GenderPreference"]:
        if token == "no-preference":
            return cls.ANY
        return None


class SortDirection(str, Enum):
    """Sort direction for client-side ordering."""

    ASC = "asc"
    DESC = "desc"


class ImageAssetState(str, Enum):
    """Lifecycle states of a stored listing image."""

    UPLOADED_TEMP = "uploaded_temp"
    PROMOTED = "promoted"
    REFERENCED = "referenced"
    DELETED = "deleted"


@dataclass(frozen=True)
class ImageLocator:
    """
    Value object addressing a stored image.

    ``path`` is the storage key; ``url`` is an optional time-limited
    retrieval URL issued alongside it.
    """

    path: str
    url: Optional[str] = None

    @property
    def file_name(self) -> str:
        """Last path segment, without query parameters."""
        return self.path.rsplit("/", 1)[-1].split("?", 1)[0]


@dataclass
class ImageAsset:
    """An image locator tracked through the promotion saga."""

    locator: ImageLocator
    state: ImageAssetState = ImageAssetState.UPLOADED_TEMP
    source: Optional[ImageLocator] = None
    errors: list = field(default_factory=list)

    @property
    def is_orphan_candidate(self) -> bool:
        """True when a temporary copy may remain in storage."""
        return self.state == ImageAssetState.UPLOADED_TEMP or bool(self.errors)
