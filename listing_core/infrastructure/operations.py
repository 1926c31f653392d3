"""
Named gateway operations.

Each operation carries its GraphQL document and the root field under which
the gateway returns its payload. Field selections match ``ListingRecord``
and ``Favorite`` so results parse without renaming.
"""

from dataclasses import dataclass
from typing import Dict

LISTING_FIELDS = """
      id
      ownerId
      title
      description
      price
      currency
      roomType
      address
      city
      state
      location
      postalCode
      latitude
      longitude
      propertyType
      furnished
      bathrooms
      bedrooms
      squareFeet
      floorLevel
      availableFrom
      availableTo
      isAvailable
      isActive
      genderPreference
      smokingAllowed
      petsAllowed
      visitorsAllowed
      religionPreference
      agePreference
      images
      mainImageIndex
      amenities
      nearbyFacilities
      utilitiesIncluded
      additionalRules
      securityDeposit
      advancePayment
      minimumStay
      noticePeriod
      viewCount
      favoriteCount
      inquiryCount
      createdAt
      updatedAt
"""

OWNER_FIELDS = """
      owner {
        firstName
        lastName
        phone
      }
"""

DRAFT_LISTING_FIELDS = """
      id
      ownerId
      title
      description
      price
      currency
      roomType
      address
      city
      state
      isAvailable
      isActive
      createdAt
      updatedAt
"""

FAVORITE_FIELDS = """
      id
      userId
      listingId
      createdAt
"""


@dataclass(frozen=True)
class GatewayOperation:
    """A named operation and where its payload sits in the response."""

    name: str
    document: str
    root_field: str
    is_mutation: bool = False


CREATE_LISTING = GatewayOperation(
    name="CreateRoomListing",
    root_field="createRoomListing",
    is_mutation=True,
    document=f"""
  mutation CreateRoomListing($input: CreateRoomListingInput!) {{
    createRoomListing(input: $input) {{{LISTING_FIELDS}    }}
  }}
""",
)

CREATE_DRAFT_LISTING = GatewayOperation(
    name="CreateDraftListing",
    root_field="createRoomListing",
    is_mutation=True,
    document=f"""
  mutation CreateDraftListing($input: CreateRoomListingInput!) {{
    createRoomListing(input: $input) {{{DRAFT_LISTING_FIELDS}    }}
  }}
""",
)

UPDATE_LISTING = GatewayOperation(
    name="UpdateRoomListing",
    root_field="updateRoomListing",
    is_mutation=True,
    document=f"""
  mutation UpdateRoomListing($input: UpdateRoomListingInput!) {{
    updateRoomListing(input: $input) {{{LISTING_FIELDS}    }}
  }}
""",
)

DELETE_LISTING = GatewayOperation(
    name="DeleteRoomListing",
    root_field="deleteRoomListing",
    is_mutation=True,
    document="""
  mutation DeleteRoomListing($input: DeleteRoomListingInput!) {
    deleteRoomListing(input: $input) {
      id
    }
  }
""",
)

GET_LISTING = GatewayOperation(
    name="GetRoomListing",
    root_field="getRoomListing",
    document=f"""
  query GetRoomListing($id: ID!) {{
    getRoomListing(id: $id) {{{LISTING_FIELDS}{OWNER_FIELDS}    }}
  }}
""",
)

LIST_LISTINGS = GatewayOperation(
    name="ListRoomListings",
    root_field="listRoomListings",
    document=f"""
  query ListRoomListings(
    $filter: ModelRoomListingFilterInput
    $limit: Int
    $nextToken: String
  ) {{
    listRoomListings(filter: $filter, limit: $limit, nextToken: $nextToken) {{
      items {{{LISTING_FIELDS}      }}
      nextToken
    }}
  }}
""",
)

LIST_LISTINGS_BY_OWNER = GatewayOperation(
    name="GetListingsByOwner",
    root_field="getListingsByOwner",
    document=f"""
  query GetListingsByOwner(
    $ownerId: ID!
    $sortDirection: ModelSortDirection
    $filter: ModelRoomListingFilterInput
    $limit: Int
    $nextToken: String
  ) {{
    getListingsByOwner(
      ownerId: $ownerId
      sortDirection: $sortDirection
      filter: $filter
      limit: $limit
      nextToken: $nextToken
    ) {{
      items {{{LISTING_FIELDS}      }}
      nextToken
    }}
  }}
""",
)

LIST_FAVORITES = GatewayOperation(
    name="ListFavorites",
    root_field="listFavorites",
    document=f"""
  query ListFavorites($filter: ModelFavoriteFilterInput, $limit: Int, $nextToken: String) {{
    listFavorites(filter: $filter, limit: $limit, nextToken: $nextToken) {{
      items {{{FAVORITE_FIELDS}
        listing {{
          id
          title
          price
          city
          images
          mainImageIndex
          isAvailable
        }}
      }}
      nextToken
    }}
  }}
""",
)

CREATE_FAVORITE = GatewayOperation(
    name="CreateFavorite",
    root_field="createFavorite",
    is_mutation=True,
    document=f"""
  mutation CreateFavorite($input: CreateFavoriteInput!) {{
    createFavorite(input: $input) {{{FAVORITE_FIELDS}    }}
  }}
""",
)

DELETE_FAVORITE = GatewayOperation(
    name="DeleteFavorite",
    root_field="deleteFavorite",
    is_mutation=True,
    document="""
  mutation DeleteFavorite($input: DeleteFavoriteInput!) {
    deleteFavorite(input: $input) {
      id
    }
  }
""",
)

OPERATIONS: Dict[str, GatewayOperation] = {
    op.name: op
    for op in (
        CREATE_LISTING,
        CREATE_DRAFT_LISTING,
        UPDATE_LISTING,
        DELETE_LISTING,
        GET_LISTING,
        LIST_LISTINGS,
        LIST_LISTINGS_BY_OWNER,
        LIST_FAVORITES,
        CREATE_FAVORITE,
        DELETE_FAVORITE,
    )
}
