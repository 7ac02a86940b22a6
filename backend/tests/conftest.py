import pytest
from typing import Any, Dict, List
from criblink.core.config import Settings
from criblink.modules.search.config import SearchConfig

# Small fixed lookup tables so tests do not depend on the bundled JSON files
TEST_SEARCH_CONFIG = {
    "abbreviations": {
        "lekki ph1": "lekki phase 1",
        "self-con": "self contain",
        "selfcon": "self contain",
        "tolet": "rent",
        "abj": "abuja",
        "lag": "lagos",
        "apt": "apartment",
        "ph": "port harcourt",
        "vi": "victoria island",
    },
    "stopwords": ["a", "an", "the", "near", "in", "of", "with", "i", "want", "show", "me"],
    "noiseWords": ["nice", "beautiful", "cheap", "cheapest", "luxury", "newest", "oldest", "for"],
    "amenities": {"swimming pool": "pool", "pool": "pool", "parking": "parking", "gym": "gym", "bq": "boys quarter"},
    "propertySynonyms": {
        "self contain": "Self-Contain",
        "mini flat": "Mini Flat",
        "flat": "Apartment",
        "flats": "Apartment",
        "apartment": "Apartment",
        "duplex": "Duplex",
        "land": "Land",
        "plot": "Land",
        "house": "House",
    },
    "noisePropertyTypes": ["House"],
    "bedTerms": ["bedrooms", "bedroom", "beds", "bed", "rooms", "room"],
    "bathTerms": ["bathrooms", "bathroom", "baths", "bath", "toilets", "toilet"],
    "livingRoomTerms": ["living rooms", "living room", "parlour"],
    "kitchenTerms": ["kitchens", "kitchen"],
    "sortQualifiers": {
        "cheapest": "price_asc",
        "cheap": "price_asc",
        "luxury": "price_desc",
        "newest": "date_listed_desc",
        "oldest": "date_listed_asc",
        "most viewed": "view_count_desc",
    },
    "periodSynonyms": {
        "yearly": ["per year", "per annum", "yearly", "a year"],
        "monthly": ["per month", "monthly", "a month"],
        "weekly": ["per week", "weekly"],
        "nightly": ["per night", "nightly"],
    },
    "cityToState": {
        "Lekki": "Lagos",
        "Ikoyi": "Lagos",
        "Victoria Island": "Lagos",
        "Maitama": "Abuja",
        "Port Harcourt": "Rivers",
    },
    "states": ["Lagos", "Abuja", "Rivers", "Oyo"],
}


@pytest.fixture
def search_config() -> SearchConfig:
    """Search config built from the fixed test tables"""
    return SearchConfig.model_validate(TEST_SEARCH_CONFIG)


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment"""
    return Settings(
        SIMILARITY_THRESHOLD=0.25,
        CITY_MATCH_BONUS=2.0,
        STANDALONE_PRICE_THRESHOLD=10000,
        DEFAULT_PAGE_SIZE=10,
        MAX_PAGE_SIZE=100,
    )


class FakeExecutor:
    """QueryExecutor double that records statements and answers from canned rows"""

    def __init__(self, rows: List[Dict[str, Any]] = None, total: int = None, images: List[Dict[str, Any]] = None):
        self.rows = rows or []
        self.total = len(self.rows) if total is None else total
        self.images = images or []
        self.calls = []

    async def fetch_all(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        self.calls.append((sql, dict(params)))
        if sql.startswith("SELECT COUNT(*)"):
            return [{"count": self.total}]
        if "FROM property_images" in sql:
            return list(self.images)
        return [dict(row) for row in self.rows]

    def statements(self, kind: str):
        """Recorded (sql, params) pairs: kind is 'select', 'count' or 'gallery'"""
        def matches(sql):
            if kind == "count":
                return sql.startswith("SELECT COUNT(*)")
            if kind == "gallery":
                return "FROM property_images" in sql
            return not sql.startswith("SELECT COUNT(*)") and "FROM property_images" not in sql
        return [call for call in self.calls if matches(call[0])]


@pytest.fixture
def make_executor():
    """Factory for FakeExecutor doubles"""
    return FakeExecutor
