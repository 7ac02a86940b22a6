"""
Condition compiler for the listings search.

Turns explicit request filters, the signals extracted from free text and the
caller identity into a CompiledQueryPlan. Precedence is resolved in one place
(``merge_filters``): for every logical field an explicit value wins and the
inferred value is only used when the caller did not supply one.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from criblink.models.search import (
    Caller, CallerRole, ExtractedSignals, ListingSearchRequest, NumericFilter,
    PriceRange, PricePeriod, SortOption
)
from criblink.modules.search.config import SearchConfig
from criblink.modules.search.extractors import NUMBER_WORDS, land_size_to_sqm, parse_number_input
from criblink.modules.search.normalizer import QueryNormalizer
from criblink.modules.search.query_builder import (
    CompiledQueryPlan, Param, SqlFragment, FEATURED_NOW, any_of, fragment
)
from criblink.modules.search.ranking import RelevanceRanker, choose_order_strategy, order_by_for

logger = logging.getLogger(__name__)

EXPLICIT = "explicit"
INFERRED = "inferred"

PUBLIC_STATUSES = ["available", "sold", "under offer"]
RENTAL_CATEGORIES = ["Rent", "Lease", "Short Let", "Long Let"]
SELF_CONTAIN_TYPES = ["Apartment", "Self-Contain"]
ALL_STATUSES = ("all", "all statuses")

ROOM_FIELDS = ("bedrooms", "bathrooms", "living_rooms", "kitchens")

# Stored prices converted to a monthly figure; one-time prices never match
MONTHLY_PRICE_SQL = (
    "(CASE pl.price_period"
    " WHEN 'yearly' THEN pl.price / 12.0"
    " WHEN 'monthly' THEN pl.price"
    " WHEN 'weekly' THEN pl.price * 4.333"
    " WHEN 'nightly' THEN pl.price * 30.417"
    " ELSE NULL END)"
)

MONTHLY_FACTORS = {
    PricePeriod.YEARLY: 1 / 12.0,
    PricePeriod.MONTHLY: 1.0,
    PricePeriod.WEEKLY: 4.333,
    PricePeriod.NIGHTLY: 30.417,
}

_DECIMAL_RE = re.compile(r"^\d+(?:\.\d+)?$")


@dataclass(frozen=True)
class Resolved:
    """A field value and whether the caller supplied it or it was inferred"""
    value: Any
    source: str

    @property
    def explicit(self) -> bool:
        return self.source == EXPLICIT


def merge_filters(explicit: Dict[str, Any], inferred: Dict[str, Any]) -> Dict[str, Resolved]:
    """Resolve every field: explicit wins, inferred only fills in when explicit is absent"""
    resolved = {}
    for key in list(explicit) + [k for k in inferred if k not in explicit]:
        if explicit.get(key) is not None:
            resolved[key] = Resolved(explicit[key], EXPLICIT)
        elif inferred.get(key) is not None:
            resolved[key] = Resolved(inferred[key], INFERRED)
    return resolved


def parse_amount(raw: Optional[str]) -> Optional[float]:
    """Parse an explicit price or size such as "50000000" or "1,500.5"."""
    if raw is None:
        return None
    text = str(raw).replace(",", "").strip()
    if not _DECIMAL_RE.match(text):
        return None
    value = float(text)
    return int(value) if value.is_integer() else value


def parse_id(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def to_monthly(amount: float, period: PricePeriod) -> float:
    return amount * MONTHLY_FACTORS.get(period, 1.0)


class ConditionCompiler:
    """Builds the predicate lists, ranking and ordering for one search request"""

    def __init__(
        self,
        config: SearchConfig,
        ranker: Optional[RelevanceRanker] = None,
        normalizer: Optional[QueryNormalizer] = None
    ):
        self.config = config
        self.ranker = ranker or RelevanceRanker()
        self.normalizer = normalizer or QueryNormalizer(config)
        self._structural_terms = config.structural_terms
        self._noise_property_types = {t.lower() for t in config.noise_property_types}

    def compile(
        self,
        request: ListingSearchRequest,
        signals: Optional[ExtractedSignals],
        caller: Optional[Caller],
        search_text: str = "",
        page: int = 1,
        limit: int = 10
    ) -> CompiledQueryPlan:
        """Compile a request into a query plan.

        ``search_text`` is the normalized free text; when it is empty the
        search-derived branch (OR-group and rank) is skipped entirely.
        """
        caller = caller or Caller()
        signals = signals if search_text and signals else ExtractedSignals()

        explicit = self.explicit_filters(request)
        resolved = merge_filters(explicit, self.inferred_filters(signals))

        plan = CompiledQueryPlan(page=page, limit=limit)
        plan.strict.extend(self._visibility(request, caller))
        plan.strict.extend(self._ownership(request, caller))
        plan.strict.extend(self._property_and_rooms(resolved))
        plan.strict.extend(self._price(resolved, explicit_purchase="purchase_category" in explicit))
        plan.strict.extend(self._land_and_details(request, resolved))
        plan.strict.extend(self._explicit_places(resolved))

        if search_text:
            self._add_search_branch(plan, resolved, signals, search_text)

        sort = resolved.get("sort")
        plan.order_strategy = choose_order_strategy(plan.rank is not None, sort.value if sort else None)
        plan.order_by = order_by_for(plan.order_strategy)

        logger.debug(
            f"Compiled listings plan: {len(plan.strict)} strict predicates, "
            f"{len(plan.search_group)} search terms, order={plan.order_strategy}"
        )
        return plan

    # Merge inputs

    def explicit_filters(self, request: ListingSearchRequest) -> Dict[str, Any]:
        """Caller-supplied filters, parsed; values that cannot be parsed are dropped"""
        explicit: Dict[str, Any] = {}

        if request.purchase_category:
            explicit["purchase_category"] = request.purchase_category

        min_price = self._parsed("min_price", request.min_price, parse_amount)
        max_price = self._parsed("max_price", request.max_price, parse_amount)
        if min_price is not None or max_price is not None:
            explicit["price"] = PriceRange(min=min_price, max=max_price)

        if request.location:
            explicit["location"] = request.location
        if request.state:
            explicit["state"] = request.state
        if request.property_type:
            explicit["property_type"] = request.property_type

        for field in ROOM_FIELDS:
            parsed = self._parsed(field, getattr(request, field), parse_number_input)
            if parsed is not None:
                explicit[field] = parsed

        land_size = self._parsed("land_size", request.land_size, self._parse_land_size)
        if land_size is not None:
            explicit["land_size"] = land_size

        sort = SortOption.parse(request.sort_by)
        if sort is not None:
            explicit["sort"] = sort
        elif request.sort_by:
            logger.debug(f"Ignoring unrecognised sortBy {request.sort_by!r}")

        return explicit

    def inferred_filters(self, signals: ExtractedSignals) -> Dict[str, Any]:
        """Filters implied by the free text, keyed like ``explicit_filters``"""
        inferred: Dict[str, Any] = {
            "purchase_category": signals.detected_purchase_category,
            "price": signals.price_range,
            "location": signals.detected_city,
            "state": signals.detected_state,
            "property_type": signals.detected_property_type,
            "land_size": signals.land_size_sqm,
            "sort": signals.sort_hint,
        }
        for field in ROOM_FIELDS:
            inferred[field] = getattr(signals, field)
        return inferred

    @staticmethod
    def _parse_land_size(raw: str) -> Optional[float]:
        amount = parse_amount(raw)
        return amount if amount is not None else land_size_to_sqm(raw)

    @staticmethod
    def _parsed(name: str, raw: Optional[str], parser):
        if raw is None:
            return None
        value = parser(raw)
        if value is None:
            logger.debug(f"Dropping unparseable {name} filter {raw!r}")
        return value

    # Strict predicates

    def _visibility(self, request: ListingSearchRequest, caller: Caller) -> List[SqlFragment]:
        """Role-based status visibility, overridden by an explicit status"""
        conditions = []
        status = request.status
        if status and status.lower() not in ALL_STATUSES:
            if status.lower() == "featured":
                conditions.append(fragment(f"({FEATURED_NOW})"))
            else:
                conditions.append(fragment("pl.status ILIKE ?", status))
        elif caller.role == CallerRole.AGENT:
            if caller.user_id is not None:
                conditions.append(fragment("(pl.status ILIKE ANY(?) OR pl.agent_id = ?)",
                                           PUBLIC_STATUSES, caller.user_id))
            else:
                conditions.append(fragment("pl.status ILIKE ANY(?)", PUBLIC_STATUSES))
        elif caller.role == CallerRole.AGENCY_ADMIN:
            if caller.agency_id is not None:
                conditions.append(fragment("(pl.agency_id = ? OR pl.status ILIKE ANY(?))",
                                           caller.agency_id, PUBLIC_STATUSES))
            else:
                conditions.append(fragment("pl.status ILIKE ANY(?)", PUBLIC_STATUSES))
        elif caller.role != CallerRole.ADMIN:
            conditions.append(fragment("pl.status ILIKE ?", "available"))

        # The home page shows featured listings in their own section
        if request.context == "home" and not status and not request.search:
            conditions.append(fragment(f"NOT ({FEATURED_NOW})"))

        return conditions

    def _ownership(self, request: ListingSearchRequest, caller: Caller) -> List[SqlFragment]:
        conditions = []
        if caller.role != CallerRole.AGENCY_ADMIN:
            agency_id = self._parsed("agency_id", request.agency_id, parse_id)
            if agency_id is not None:
                conditions.append(fragment("pl.agency_id = ?", agency_id))
        agent_id = self._parsed("agent_id", request.agent_id, parse_id)
        if agent_id is not None:
            conditions.append(fragment("pl.agent_id = ?", agent_id))
        return conditions

    def _property_and_rooms(self, resolved: Dict[str, Resolved]) -> List[SqlFragment]:
        conditions = []
        property_type = resolved.get("property_type")
        type_name = str(property_type.value).lower() if property_type else ""
        bedrooms = resolved.get("bedrooms")

        # Business rule: a one-bedroom apartment also covers self-contains
        joint = (
            type_name == "apartment" and bedrooms is not None
            and bedrooms.value.operator == "=" and bedrooms.value.value == 1
        )
        if joint:
            conditions.append(fragment("pl.property_type ILIKE ANY(?)", SELF_CONTAIN_TYPES))
            conditions.append(fragment("pl.bedrooms = ?", 1))
        elif property_type is not None:
            type_condition = self._property_type_condition(property_type)
            if type_condition is not None:
                conditions.append(type_condition)

        if type_name == "land":
            return conditions

        for field in ROOM_FIELDS:
            if joint and field == "bedrooms":
                continue
            room = resolved.get(field)
            if room is not None:
                conditions.append(self._numeric_condition(field, room.value))
        return conditions

    def _property_type_condition(self, property_type: Resolved) -> Optional[SqlFragment]:
        if property_type.explicit:
            return fragment("pl.property_type ILIKE ?", f"%{property_type.value}%")

        canonical = property_type.value
        if canonical.lower() in self._noise_property_types:
            return None
        terms = [canonical] + [s for s in self.config.synonyms_for(canonical) if s.lower() != canonical.lower()]
        return any_of([fragment("pl.property_type ILIKE ?", f"%{term}%") for term in terms])

    @staticmethod
    def _numeric_condition(column: str, numeric: NumericFilter) -> SqlFragment:
        return fragment(f"pl.{column} {numeric.operator} ?", numeric.value)

    def _price(self, resolved: Dict[str, Resolved], explicit_purchase: bool) -> List[SqlFragment]:
        conditions = []
        purchase = resolved.get("purchase_category")
        if purchase is not None and purchase.explicit and str(purchase.value).lower() != "all":
            conditions.append(fragment("pl.purchase_category ILIKE ?", purchase.value))

        price = resolved.get("price")
        if price is None:
            return conditions

        price_range: PriceRange = price.value
        ceiling = price_range.max if price_range.max is not None else price_range.value

        if not price.explicit and price_range.period is not None:
            period = price_range.period
            if price_range.min is not None:
                conditions.append(fragment(f"{MONTHLY_PRICE_SQL} >= ?", to_monthly(price_range.min, period)))
            if ceiling is not None:
                conditions.append(fragment(f"{MONTHLY_PRICE_SQL} <= ?", to_monthly(ceiling, period)))
            if not explicit_purchase:
                conditions.append(fragment("pl.purchase_category ILIKE ANY(?)", RENTAL_CATEGORIES))
            return conditions

        if price_range.min is not None:
            conditions.append(fragment("pl.price >= ?", price_range.min))
        if ceiling is not None:
            conditions.append(fragment("pl.price <= ?", ceiling))
        return conditions

    def _land_and_details(self, request: ListingSearchRequest, resolved: Dict[str, Resolved]) -> List[SqlFragment]:
        conditions = []
        land_size = resolved.get("land_size")
        if land_size is not None:
            if land_size.explicit:
                conditions.append(fragment("pd.land_size >= ?", land_size.value))
            else:
                conditions.append(fragment("COALESCE(pd.land_size, 0) >= ?", land_size.value))

        if request.zoning_type:
            conditions.append(fragment("pd.zoning_type ILIKE ?", f"%{request.zoning_type}%"))
        if request.title_type:
            conditions.append(fragment("pd.title_type ILIKE ?", f"%{request.title_type}%"))
        return conditions

    @staticmethod
    def _explicit_places(resolved: Dict[str, Resolved]) -> List[SqlFragment]:
        conditions = []
        location = resolved.get("location")
        if location is not None and location.explicit:
            conditions.append(fragment("pl.location ILIKE ?", f"%{location.value}%"))
        state = resolved.get("state")
        if state is not None and state.explicit:
            conditions.append(fragment("pl.state ILIKE ?", state.value))
        return conditions

    # Search-derived OR-group and rank

    def _add_search_branch(
        self,
        plan: CompiledQueryPlan,
        resolved: Dict[str, Resolved],
        signals: ExtractedSignals,
        search_text: str
    ):
        tokens = self.normalizer.fulltext_tokens(search_text)
        if not tokens or self._only_structural(tokens):
            # Numbers and room words alone: keep the strict numeric filters only
            return

        group: List[SqlFragment] = []
        for amenity in signals.amenity_terms:
            group.append(fragment("COALESCE(pd.amenities, '') ILIKE ?", f"%{amenity}%"))

        city_pattern = Param(f"%{signals.detected_city}%") if signals.detected_city else None
        location = resolved.get("location")
        if city_pattern is not None and not location.explicit:
            group.append(SqlFragment("pl.location ILIKE ?", (city_pattern,)))

        state = resolved.get("state")
        if signals.detected_state and not state.explicit:
            group.append(fragment("pl.state ILIKE ?", f"%{signals.detected_state}%"))

        purchase = resolved.get("purchase_category")
        if signals.detected_purchase_category and not purchase.explicit:
            group.append(fragment("pl.purchase_category ILIKE ?", signals.detected_purchase_category.value))

        ts_query = Param(" | ".join(tokens))
        similarity_text = Param(search_text)
        group.append(self.ranker.fulltext_condition(ts_query, similarity_text))
        group.append(self.ranker.partial_match_condition(Param(f"%{search_text}%")))

        plan.search_group = group
        plan.rank = self.ranker.rank_expression(ts_query, similarity_text, city_pattern)

    def _only_structural(self, tokens: List[str]) -> bool:
        return all(
            token.isdigit() or token in NUMBER_WORDS or token in self._structural_terms
            for token in tokens
        )
