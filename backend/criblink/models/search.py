from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Literal
from enum import Enum


class CallerRole(str, Enum):
    GUEST = "guest"
    CLIENT = "client"
    AGENT = "agent"
    AGENCY_ADMIN = "agency_admin"
    ADMIN = "admin"


class SortOption(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    DATE_LISTED_ASC = "date_listed_asc"
    DATE_LISTED_DESC = "date_listed_desc"
    VIEW_COUNT_ASC = "view_count_asc"
    VIEW_COUNT_DESC = "view_count_desc"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SortOption"]:
        """Map a raw sortBy value to an option, None when unrecognised"""
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class PurchaseCategory(str, Enum):
    RENT = "Rent"
    SALE = "Sale"


class PricePeriod(str, Enum):
    YEARLY = "yearly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    NIGHTLY = "nightly"


class Caller(BaseModel):
    """Identity of the requester as resolved by the upstream auth layer"""
    role: CallerRole = CallerRole.GUEST
    user_id: Optional[int] = None
    agency_id: Optional[int] = None

    @field_validator('role', mode='before')
    @classmethod
    def unknown_role_is_guest(cls, v):
        if v is None:
            return CallerRole.GUEST
        try:
            return CallerRole(str(v).lower())
        except ValueError:
            return CallerRole.GUEST


class ListingSearchRequest(BaseModel):
    """Query parameters of a listings search.

    Values are kept as the raw strings received on the query string; blank
    values are normalised to None so that "supplied" means non-empty.
    """
    model_config = ConfigDict(populate_by_name=True)

    # Free text
    search: Optional[str] = None

    # Explicit filters
    purchase_category: Optional[str] = None
    min_price: Optional[str] = None
    max_price: Optional[str] = None
    location: Optional[str] = None
    state: Optional[str] = None
    property_type: Optional[str] = None
    bedrooms: Optional[str] = None
    bathrooms: Optional[str] = None
    living_rooms: Optional[str] = None
    kitchens: Optional[str] = None
    land_size: Optional[str] = None
    zoning_type: Optional[str] = None
    title_type: Optional[str] = None
    agency_id: Optional[str] = None
    agent_id: Optional[str] = None
    status: Optional[str] = None
    sort_by: Optional[str] = Field(None, alias="sortBy")
    context: Optional[str] = None

    # Pagination
    page: Optional[str] = None
    limit: Optional[str] = None

    @field_validator('*', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class NumericFilter(BaseModel):
    """A comparison against an integer column, e.g. bedrooms > 3"""
    model_config = ConfigDict(frozen=True)

    operator: Literal["=", ">", ">=", "<", "<="] = "="
    value: int


class PriceRange(BaseModel):
    """Price bounds found in free text; value is a lone figure used as a ceiling"""
    min: Optional[float] = None
    max: Optional[float] = None
    value: Optional[float] = None
    period: Optional[PricePeriod] = None


class ExtractedSignals(BaseModel):
    """Everything the extractors found in the normalized search text.

    Each field is independent; None (or an empty list) means no signal.
    """
    price_range: Optional[PriceRange] = None
    bedrooms: Optional[NumericFilter] = None
    bathrooms: Optional[NumericFilter] = None
    living_rooms: Optional[NumericFilter] = None
    kitchens: Optional[NumericFilter] = None
    land_size_sqm: Optional[float] = None
    amenity_terms: List[str] = []
    detected_city: Optional[str] = None
    detected_state: Optional[str] = None
    detected_purchase_category: Optional[PurchaseCategory] = None
    detected_property_type: Optional[str] = None
    sort_hint: Optional[SortOption] = None
