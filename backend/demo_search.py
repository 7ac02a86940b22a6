"""
Demonstration of free-text listing search parsing and query compilation.
"""

from criblink.models.search import Caller, CallerRole, ListingSearchRequest
from criblink.modules.search.compiler import ConditionCompiler
from criblink.modules.search.config import get_search_config
from criblink.modules.search.extractors import SignalExtractor
from criblink.modules.search.normalizer import QueryNormalizer
from criblink.modules.search.query_builder import render_select

def demo_search_parsing():
    """Show what the search pipeline infers from typical queries"""
    config = get_search_config()
    normalizer = QueryNormalizer(config)
    extractor = SignalExtractor(config)
    compiler = ConditionCompiler(config, normalizer=normalizer)

    print("🏠 CribLink Listings Search - Free-text Parsing Demo")
    print("=" * 60)

    test_queries = [
        "3 bedroom flat in Lekki under 50000000",
        "cheapest self-con in ph",
        "2 bedroom apartment for rent 1.5m per year",
        "land in abj between 5m and 20m",
        "luxury duplex with swimming pool in Ikoyi",
        "2 living room",
        "plot of 2 acres for sale",
    ]

    for query in test_queries:
        print(f"\n📝 Query: \"{query}\"")
        print("-" * 40)

        normalized = normalizer.normalize(query)
        signals = extractor.extract(normalized)
        print(f"🔤 Normalized: {normalized!r}")

        print("🔍 Extracted signals:")
        for name, value in signals.model_dump(exclude_none=True).items():
            if value not in ([], None):
                print(f"  • {name}: {value}")

        plan = compiler.compile(
            ListingSearchRequest(search=query), signals, Caller(role=CallerRole.CLIENT), search_text=normalized
        )
        print(f"📋 Plan: {len(plan.strict)} strict predicates, {len(plan.search_group)} search terms, "
              f"order by {plan.order_strategy}")
        for predicate in plan.strict:
            print(f"  • {predicate.sql}  {predicate.values}")

    print("\n🧾 Rendered SQL for the first query:")
    normalized = normalizer.normalize(test_queries[0])
    plan = compiler.compile(
        ListingSearchRequest(search=test_queries[0]), extractor.extract(normalized), Caller(), search_text=normalized
    )
    sql, params = render_select(plan)
    print(sql)
    print(params)

if __name__ == "__main__":
    demo_search_parsing()
