import asyncio
import logging
import math
from typing import Optional, Tuple
from criblink.core.config import Settings, settings as default_settings
from criblink.core.database import QueryExecutor
from criblink.models.listing import ListingRow, ListingsPage
from criblink.models.search import Caller, ListingSearchRequest
from criblink.modules.listings.gallery import GalleryAttacher, GalleryImageService
from criblink.modules.search.compiler import ConditionCompiler
from criblink.modules.search.config import SearchConfig, get_search_config
from criblink.modules.search.extractors import SignalExtractor
from criblink.modules.search.normalizer import QueryNormalizer
from criblink.modules.search.query_builder import render_count, render_select
from criblink.modules.search.ranking import RelevanceRanker

logger = logging.getLogger(__name__)


class ListingSearchError(Exception):
    """Raised when the listings or count query fails"""
    pass


def parse_positive_int(raw: Optional[str], default: int) -> int:
    """Positive integer from a query-string value, the default otherwise"""
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def resolve_pagination(page: Optional[str], limit: Optional[str], config: Settings) -> Tuple[int, int]:
    page_num = parse_positive_int(page, 1)
    limit_num = parse_positive_int(limit, config.DEFAULT_PAGE_SIZE)
    return page_num, min(limit_num, config.MAX_PAGE_SIZE)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class ListingSearchService:
    """Runs a listings search: normalize, extract, compile, query, paginate"""

    def __init__(
        self,
        executor: QueryExecutor,
        gallery: Optional[GalleryAttacher] = None,
        search_config: Optional[SearchConfig] = None,
        config: Optional[Settings] = None
    ):
        self.executor = executor
        self.settings = config or default_settings
        self.search_config = search_config or get_search_config(self.settings.SEARCH_CONFIG_DIR)
        self.gallery = gallery or GalleryImageService(executor)

        self.normalizer = QueryNormalizer(self.search_config)
        self.extractor = SignalExtractor(
            self.search_config,
            standalone_price_threshold=self.settings.STANDALONE_PRICE_THRESHOLD
        )
        self.compiler = ConditionCompiler(
            self.search_config,
            ranker=RelevanceRanker(
                similarity_threshold=self.settings.SIMILARITY_THRESHOLD,
                city_bonus=self.settings.CITY_MATCH_BONUS
            ),
            normalizer=self.normalizer
        )

    async def search(self, request: ListingSearchRequest, caller: Optional[Caller] = None) -> ListingsPage:
        """Search listings visible to the caller"""
        search_text = self.normalizer.normalize(request.search or "")
        signals = self.extractor.extract(search_text) if search_text else None
        page, limit = resolve_pagination(request.page, request.limit, self.settings)

        plan = self.compiler.compile(request, signals, caller, search_text=search_text, page=page, limit=limit)
        select_sql, select_params = render_select(plan)
        count_sql, count_params = render_count(plan)

        try:
            rows, count_rows = await asyncio.gather(
                self.executor.fetch_all(select_sql, select_params),
                self.executor.fetch_all(count_sql, count_params),
            )
            rows = await self.gallery.attach(rows)

            total = int(count_rows[0]["count"]) if count_rows else 0
            result = ListingsPage(
                listings=[ListingRow(**row) for row in rows],
                total=total,
                total_pages=total_pages(total, limit),
                current_page=page,
            )
        except Exception as e:
            logger.error(f"Listings search failed: {e}")
            raise ListingSearchError(str(e)) from e

        logger.info(
            f"Listings search {search_text!r} returned {len(rows)} of {total} "
            f"(page {page}, order {plan.order_strategy})"
        )
        return result
