from typing import List, Optional
from criblink.models.search import SortOption
from criblink.modules.search.query_builder import (
    Param, SqlFragment, EFFECTIVE_PRIORITY, FEATURED_NOW
)

# Columns compared by trigram similarity against the normalized search text
SIMILARITY_COLUMNS = ("pl.title", "pl.location", "pl.state", "pd.description")

# Columns scanned by the partial ILIKE fallback
PARTIAL_MATCH_COLUMNS = ("pl.title", "pd.description", "pl.location", "pl.state", "pl.property_type")

FEATURED_FIRST = f"CASE WHEN {FEATURED_NOW} THEN 0 ELSE 1 END"


class OrderStrategy:
    RANK = "rank"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    DATE_ASC = "date_listed_asc"
    VIEW_COUNT_DESC = "view_count_desc"
    VIEW_COUNT_ASC = "view_count_asc"
    DEFAULT = "default"


class RelevanceRanker:
    """Full-text and trigram relevance for free-text searches.

    The rank is ts_rank + the best of the four column similarities, plus a
    flat bonus when the listing location contains the detected city. The
    similarity threshold and the city bonus are tuning parameters.
    """

    def __init__(self, similarity_threshold: float = 0.25, city_bonus: float = 2.0):
        self.similarity_threshold = similarity_threshold
        self.city_bonus = city_bonus

    def fulltext_condition(self, ts_query: Param, similarity_text: Param) -> SqlFragment:
        """search_vector match OR any column similar enough to the search text"""
        threshold = Param(self.similarity_threshold)
        clauses = ["pl.search_vector @@ to_tsquery('english', ?)"]
        params = [ts_query]
        for column in SIMILARITY_COLUMNS:
            clauses.append(f"similarity({column}, ?) > ?")
            params.extend([similarity_text, threshold])
        return SqlFragment("(" + " OR ".join(clauses) + ")", tuple(params))

    def partial_match_condition(self, pattern: Param) -> SqlFragment:
        """Substring match of the whole search text on the descriptive columns"""
        clauses = [f"{column} ILIKE ?" for column in PARTIAL_MATCH_COLUMNS]
        return SqlFragment("(" + " OR ".join(clauses) + ")", tuple([pattern] * len(clauses)))

    def rank_expression(
        self,
        ts_query: Param,
        similarity_text: Param,
        city_pattern: Optional[Param] = None
    ) -> SqlFragment:
        """Rank score; shares its parameters with the search conditions"""
        similarities = ", ".join(f"similarity({column}, ?)" for column in SIMILARITY_COLUMNS)
        sql = f"(ts_rank(pl.search_vector, to_tsquery('english', ?), 1) + GREATEST({similarities})"
        params = [ts_query] + [similarity_text] * len(SIMILARITY_COLUMNS)

        if city_pattern is not None:
            sql += " + (CASE WHEN pl.location ILIKE ? THEN CAST(? AS FLOAT) ELSE 0 END)"
            params.extend([city_pattern, Param(self.city_bonus)])

        return SqlFragment(sql + ")", tuple(params))


def choose_order_strategy(has_rank: bool, sort: Optional[SortOption]) -> str:
    """First applicable ordering: rank, price, date ascending, view count, default"""
    if has_rank:
        return OrderStrategy.RANK
    if sort == SortOption.PRICE_ASC:
        return OrderStrategy.PRICE_ASC
    if sort == SortOption.PRICE_DESC:
        return OrderStrategy.PRICE_DESC
    if sort == SortOption.DATE_LISTED_ASC:
        return OrderStrategy.DATE_ASC
    if sort == SortOption.VIEW_COUNT_DESC:
        return OrderStrategy.VIEW_COUNT_DESC
    if sort == SortOption.VIEW_COUNT_ASC:
        return OrderStrategy.VIEW_COUNT_ASC
    return OrderStrategy.DEFAULT


def order_by_for(strategy: str) -> List[str]:
    """ORDER BY items for a strategy"""
    default = [FEATURED_FIRST, f"{EFFECTIVE_PRIORITY} DESC", "pl.date_listed DESC"]

    if strategy == OrderStrategy.RANK:
        return ["rank DESC"] + default
    if strategy == OrderStrategy.PRICE_ASC:
        return [FEATURED_FIRST, "pl.price ASC"]
    if strategy == OrderStrategy.PRICE_DESC:
        return [FEATURED_FIRST, "pl.price DESC"]
    if strategy == OrderStrategy.DATE_ASC:
        return [FEATURED_FIRST, f"{EFFECTIVE_PRIORITY} DESC", "pl.date_listed ASC"]
    if strategy == OrderStrategy.VIEW_COUNT_DESC:
        return ["pl.view_count DESC NULLS LAST"] + default
    if strategy == OrderStrategy.VIEW_COUNT_ASC:
        return ["pl.view_count ASC NULLS FIRST"] + default
    return default
