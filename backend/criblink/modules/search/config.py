"""
Static search configuration.

The synonym/noise-word table and the Nigerian location table are loaded once
from JSON into an immutable SearchConfig which is handed to the normalizer,
the extractors and the compiler. Tests build their own SearchConfig instead
of relying on the bundled files.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from criblink.models.search import SortOption, PricePeriod

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
SYNONYMS_FILE = "search_synonyms.json"
LOCATIONS_FILE = "nigeria_locations.json"


class SearchConfig(BaseModel):
    """Lookup tables used to interpret free-text searches"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    abbreviations: Dict[str, str] = {}
    stopwords: Tuple[str, ...] = ()
    noise_words: Tuple[str, ...] = Field((), alias="noiseWords")
    amenities: Dict[str, str] = {}
    property_synonyms: Dict[str, str] = Field({}, alias="propertySynonyms")
    noise_property_types: Tuple[str, ...] = Field((), alias="noisePropertyTypes")
    bed_terms: Tuple[str, ...] = Field((), alias="bedTerms")
    bath_terms: Tuple[str, ...] = Field((), alias="bathTerms")
    living_room_terms: Tuple[str, ...] = Field((), alias="livingRoomTerms")
    kitchen_terms: Tuple[str, ...] = Field((), alias="kitchenTerms")
    sort_qualifiers: Dict[str, SortOption] = Field({}, alias="sortQualifiers")
    period_synonyms: Dict[PricePeriod, List[str]] = Field({}, alias="periodSynonyms")
    city_to_state: Dict[str, str] = Field({}, alias="cityToState")
    states: Tuple[str, ...] = ()

    def synonyms_for(self, canonical_type: str) -> List[str]:
        """All free-text synonyms that map to a canonical property type"""
        return [syn for syn, canonical in self.property_synonyms.items() if canonical == canonical_type]

    @property
    def structural_terms(self) -> frozenset:
        """Single words that only describe room counts (bed, bath, living, ...)"""
        words = set()
        for term in (*self.bed_terms, *self.bath_terms, *self.living_room_terms, *self.kitchen_terms):
            words.update(part for part in term.lower().replace("-", " ").split() if part)
        return frozenset(words)


def load_search_config(directory: Optional[Path] = None) -> SearchConfig:
    """Read the synonym and location tables from a directory of JSON files"""
    directory = Path(directory) if directory else DATA_DIR

    with open(directory / SYNONYMS_FILE, encoding="utf-8") as fh:
        synonyms = json.load(fh)
    with open(directory / LOCATIONS_FILE, encoding="utf-8") as fh:
        locations = json.load(fh)

    config = SearchConfig.model_validate({**synonyms, **locations})
    logger.info(
        f"Loaded search config from {directory}: {len(config.property_synonyms)} property synonyms, "
        f"{len(config.city_to_state)} cities, {len(config.states)} states"
    )
    return config


@lru_cache(maxsize=None)
def get_search_config(directory: Optional[str] = None) -> SearchConfig:
    """Process-wide search config, loaded on first use"""
    return load_search_config(Path(directory) if directory else None)
