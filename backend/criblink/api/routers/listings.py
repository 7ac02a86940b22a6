from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from typing import Optional
from criblink.core.database import QueryExecutor, get_query_executor
from criblink.models.listing import ListingsPage
from criblink.models.search import Caller, ListingSearchRequest
from criblink.modules.search.service import ListingSearchError, ListingSearchService
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def get_search_service(executor: QueryExecutor = Depends(get_query_executor)) -> ListingSearchService:
    return ListingSearchService(executor)


def get_current_caller(request: Request) -> Caller:
    """Caller identity as left on request.state.user by the auth middleware"""
    user = getattr(request.state, "user", None)
    if user is None:
        return Caller()
    if not isinstance(user, dict):
        user = {key: getattr(user, key, None) for key in ("role", "user_id", "agency_id")}
    try:
        return Caller(role=user.get("role"), user_id=user.get("user_id"), agency_id=user.get("agency_id"))
    except ValueError as e:
        logger.warning(f"Treating malformed caller identity as guest: {e}")
        return Caller()


@router.get("/", response_model=ListingsPage)
async def get_all_listings(
    search: Optional[str] = Query(None, description="Free-text search, e.g. '3 bedroom flat in Lekki under 50m'"),
    purchase_category: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None),
    max_price: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    property_type: Optional[str] = Query(None),
    bedrooms: Optional[str] = Query(None, description="Count or comparison, e.g. '3', '>2', 'at least 2'"),
    bathrooms: Optional[str] = Query(None),
    living_rooms: Optional[str] = Query(None),
    kitchens: Optional[str] = Query(None),
    land_size: Optional[str] = Query(None, description="Minimum land size in square meters"),
    zoning_type: Optional[str] = Query(None),
    title_type: Optional[str] = Query(None),
    agency_id: Optional[str] = Query(None),
    agent_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="Listing status, 'featured' or 'all'"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    context: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    caller: Caller = Depends(get_current_caller),
    search_service: ListingSearchService = Depends(get_search_service)
):
    """
    Search and filter listings.

    Explicit filters always win over anything inferred from the free-text
    ``search`` string. Visibility depends on the caller's role.
    """
    request = ListingSearchRequest(
        search=search,
        purchase_category=purchase_category,
        min_price=min_price,
        max_price=max_price,
        location=location,
        state=state,
        property_type=property_type,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        living_rooms=living_rooms,
        kitchens=kitchens,
        land_size=land_size,
        zoning_type=zoning_type,
        title_type=title_type,
        agency_id=agency_id,
        agent_id=agent_id,
        status=status,
        sort_by=sort_by,
        context=context,
        page=page,
        limit=limit,
    )

    try:
        return await search_service.search(request, caller)
    except ListingSearchError as e:
        logger.error(f"Error fetching listings: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error fetching listings", "details": str(e)}
        )
