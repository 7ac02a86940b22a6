# Pydantic models for API contracts

from .listing import ListingRow, ListingsPage, ErrorResponse
from .search import (
    # Enums
    CallerRole, SortOption, PurchaseCategory, PricePeriod,

    # Request models
    Caller, ListingSearchRequest,

    # Signal models
    NumericFilter, PriceRange, ExtractedSignals
)

__all__ = [
    # Listing models
    "ListingRow", "ListingsPage", "ErrorResponse",

    # Search enums
    "CallerRole", "SortOption", "PurchaseCategory", "PricePeriod",

    # Request models
    "Caller", "ListingSearchRequest",

    # Signal models
    "NumericFilter", "PriceRange", "ExtractedSignals"
]
