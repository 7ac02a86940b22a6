from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Any
from datetime import datetime


class ListingRow(BaseModel):
    """One search result: listing and detail columns plus computed ordering values.

    Columns not declared here are carried through untouched.
    """
    model_config = ConfigDict(extra="allow")

    property_id: Any = None
    title: Optional[str] = None
    location: Optional[str] = None
    state: Optional[str] = None
    price: Optional[float] = None
    status: Optional[str] = None
    property_type: Optional[str] = None
    purchase_category: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    agent_id: Optional[int] = None
    agency_id: Optional[int] = None
    is_featured: Optional[bool] = None
    date_listed: Optional[datetime] = None
    effective_priority: int = 0
    rank: Optional[float] = None
    gallery_images: List[str] = []


class ListingsPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    listings: List[ListingRow]
    total: int
    total_pages: int = Field(..., alias="totalPages")
    current_page: int = Field(..., alias="currentPage")


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
