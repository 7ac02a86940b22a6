"""
Signal extraction for free-text listing searches.

Each extractor scans the normalized search text for one kind of hint (price,
room counts, land size, amenities, location, purchase intent, property type,
sort intent) and returns None or an empty list when nothing matches. The
extractors share no state; several of them may match the same words.
"""

import logging
import re
from typing import Callable, List, Optional, Tuple, TypeVar

from criblink.models.search import (
    ExtractedSignals, NumericFilter, PriceRange, PricePeriod, PurchaseCategory, SortOption
)
from criblink.modules.search.config import SearchConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

SQM_PER_ACRE = 4046.8564224
SQM_PER_HECTARE = 10000.0

PRICE_MULTIPLIERS = {
    "k": 1_000, "thousand": 1_000,
    "m": 1_000_000, "mil": 1_000_000, "million": 1_000_000,
    "b": 1_000_000_000, "billion": 1_000_000_000,
}

LAND_UNITS = ("square meters", "square metres", "square meter", "square metre",
              "hectares", "hectare", "acres", "acre", "sqm", "m2", "ha")

_LAND_SIZE_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(sqm|square\s*met(?:er|re)s?|m2|acres?|hectares?|ha)\b",
    re.IGNORECASE,
)

_PURCHASE_RE = re.compile(r"\b(for\s+)?((to\s+)?let|lease|rent(al)?|sale|buy)\b", re.IGNORECASE)

# Comparison phrases in front of a room count; longest phrases first
_OPERATOR_PHRASES = [
    (r">=", ">="), (r"<=", "<="),
    (r"at\s+least", ">="), (r"minimum", ">="),
    (r"at\s+most", "<="), (r"maximum", "<="),
    (r"more\s+than", ">"), (r"greater\s+than", ">"), (r"over", ">"), (r"above", ">"), (r">", ">"),
    (r"less\s+than", "<"), (r"under", "<"), (r"below", "<"), (r"<", "<"),
]

_NUMBER_INPUT_RE = re.compile(
    rf"^(?P<op>{'|'.join(p for p, _ in _OPERATOR_PHRASES)}|=)?\s*(?P<num>\d+|{'|'.join(NUMBER_WORDS)})(?P<plus>\+)?$"
)


def _alternation(terms) -> str:
    """Regex alternation of literal terms, longest first, spaces matching any whitespace"""
    ordered = sorted({t.lower() for t in terms if t}, key=len, reverse=True)
    return "|".join(re.escape(t).replace(r"\ ", r"\s+") for t in ordered)


def _operator_for(phrase: Optional[str]) -> str:
    if not phrase:
        return "="
    for pattern, operator in _OPERATOR_PHRASES:
        if re.fullmatch(pattern, phrase.strip()):
            return operator
    return "="


def _to_int(raw: str) -> Optional[int]:
    raw = raw.lower()
    if raw in NUMBER_WORDS:
        return NUMBER_WORDS[raw]
    try:
        return int(raw)
    except ValueError:
        return None


def parse_number_input(raw) -> Optional[NumericFilter]:
    """Parse an explicit room-count filter such as "3", "three", ">5" or "at least 2"."""
    if raw is None:
        return None
    text = " ".join(str(raw).strip().lower().split())
    match = _NUMBER_INPUT_RE.match(text)
    if not match:
        return None

    value = _to_int(match.group("num"))
    if value is None:
        return None

    operator = ">=" if match.group("plus") else _operator_for(match.group("op"))
    return NumericFilter(operator=operator, value=value)


def land_size_to_sqm(text) -> Optional[float]:
    """Convert the first "<number> <unit>" land expression in text to square meters"""
    if not text:
        return None
    match = _LAND_SIZE_RE.search(str(text))
    if not match:
        return None

    value = float(match.group(1))
    unit = match.group(2).lower()
    if unit.startswith("acre"):
        return value * SQM_PER_ACRE
    if unit.startswith("hectare") or unit == "ha":
        return value * SQM_PER_HECTARE
    return value


def parse_price(amount: str, multiplier: Optional[str] = None) -> Optional[int]:
    """Turn "50" + "m" into 50000000"""
    try:
        value = float(amount.replace(",", ""))
    except ValueError:
        return None
    if multiplier:
        value *= PRICE_MULTIPLIERS.get(multiplier.lower(), 1)
    return round(value)


class SignalExtractor:
    """Extracts structured search signals from normalized free text"""

    def __init__(self, config: SearchConfig, standalone_price_threshold: int = 10000):
        self.config = config
        self.standalone_price_threshold = standalone_price_threshold
        self._initialize_patterns()

    def _initialize_patterns(self):
        """Compile the config-driven regular expressions once per extractor"""
        config = self.config
        numbers = rf"\d+|{'|'.join(NUMBER_WORDS)}"
        operators = "|".join(p for p, _ in _OPERATOR_PHRASES)

        def room_pattern(terms) -> Optional[re.Pattern]:
            if not terms:
                return None
            return re.compile(
                rf"(?:(?<!\w)(?P<op>{operators})\s*)?(?<![\w.])(?P<num>{numbers})(?P<plus>\+)?\s*(?:{_alternation(terms)})\b"
            )

        self.room_patterns = {
            "bedrooms": room_pattern(config.bed_terms),
            "bathrooms": room_pattern(config.bath_terms),
            "living_rooms": room_pattern(config.living_room_terms),
            "kitchens": room_pattern(config.kitchen_terms),
        }

        # A number directly followed by a room or land unit is never a price
        units = _alternation((*config.bed_terms, *config.bath_terms, *config.living_room_terms,
                              *config.kitchen_terms, *LAND_UNITS))
        not_a_unit = rf"(?!\+?\s*(?:{units})\b)" if units else ""
        multipliers = "|".join(sorted(PRICE_MULTIPLIERS, key=len, reverse=True))

        def amount(name: str) -> str:
            return (rf"(?P<{name}_cur>₦|ngn)?\s?(?P<{name}>\d+(?:\.\d+)?)"
                    rf"(?:\s?(?P<{name}_mult>{multipliers}))?\b{not_a_unit}(?P<{name}_naira>\s?naira)?")

        self.price_patterns = [
            (re.compile(rf"\bbetween\s+{amount('lo')}\s+(?:and|to)\s+{amount('hi')}"), "range"),
            (re.compile(rf"(?<![\w.]){amount('lo')}\s*(?:-|\bto\b)\s*{amount('hi')}"), "loose_range"),
            (re.compile(rf"\b(?:at\s*least|minimum|min)\s+{amount('v')}"), "min"),
            (re.compile(rf"\b(?:at\s*most|maximum|max|up\s+to)\s+{amount('v')}"), "max"),
            (re.compile(rf"(?:\b(?:less\s+than|under|below|cheaper\s+than)\s+|<=?\s*){amount('v')}"), "max"),
            (re.compile(rf"(?:\b(?:more\s+than|over|above|greater\s+than)\s+|>=?\s*){amount('v')}"), "min"),
        ]
        self.standalone_price_pattern = re.compile(rf"(?<![\w.]){amount('v')}")

        self.period_patterns = [
            (PricePeriod(period), re.compile(rf"\b(?:{_alternation(words)})\b"))
            for period, words in config.period_synonyms.items() if words
        ]
        self.amenity_patterns = [
            (re.compile(rf"\b{re.escape(keyword.lower())}\b"), canonical)
            for keyword, canonical in config.amenities.items()
        ]
        self.city_patterns = [
            (re.compile(rf"\b{re.escape(city.lower())}\b"), city, state)
            for city, state in config.city_to_state.items()
        ]
        self.state_patterns = [
            (re.compile(rf"\b{re.escape(state.lower())}\b"), state) for state in config.states
        ]
        self.sort_patterns = [
            (re.compile(rf"\b{re.escape(phrase.lower())}\b"), sort)
            for phrase, sort in config.sort_qualifiers.items()
        ]

    def extract(self, text: str) -> ExtractedSignals:
        """Run every extractor; a failing extractor counts as "no signal"."""
        if not text:
            return ExtractedSignals()

        rooms = self._safely("rooms", self.extract_room_counts, text) or {}
        city, state = self._safely("location", self.extract_location, text) or (None, None)

        return ExtractedSignals(
            price_range=self._safely("price", self.extract_price_range, text),
            bedrooms=rooms.get("bedrooms"),
            bathrooms=rooms.get("bathrooms"),
            living_rooms=rooms.get("living_rooms"),
            kitchens=rooms.get("kitchens"),
            land_size_sqm=self._safely("land_size", self.extract_land_size, text),
            amenity_terms=self._safely("amenities", self.extract_amenities, text) or [],
            detected_city=city,
            detected_state=state,
            detected_purchase_category=self._safely("purchase", self.extract_purchase_category, text),
            detected_property_type=self._safely("property_type", self.extract_property_type, text),
            sort_hint=self._safely("sort", self.extract_sort_hint, text),
        )

    def _safely(self, name: str, extractor: Callable[[str], T], text: str) -> Optional[T]:
        try:
            return extractor(text)
        except Exception as e:
            logger.warning(f"{name} extractor failed on {text!r}: {e}")
            return None

    def extract_price_range(self, text: str) -> Optional[PriceRange]:
        """Price bounds: between/under/over phrases, ranges, or a lone large figure"""
        clean = re.sub(r"(?<=\d),(?=\d)", "", text.lower())
        period = self.extract_price_period(clean)

        for pattern, kind in self.price_patterns:
            match = pattern.search(clean)
            if not match:
                continue

            if kind in ("range", "loose_range"):
                if kind == "loose_range" and not (self._looks_like_price(match, "lo") or
                                                  self._looks_like_price(match, "hi")):
                    continue
                low = parse_price(match.group("lo"), match.group("lo_mult"))
                high = parse_price(match.group("hi"), match.group("hi_mult"))
                return PriceRange(min=low, max=high, period=period)

            value = parse_price(match.group("v"), match.group("v_mult"))
            if kind == "min":
                return PriceRange(min=value, period=period)
            return PriceRange(max=value, period=period)

        for match in self.standalone_price_pattern.finditer(clean):
            if self._looks_like_price(match, "v"):
                return PriceRange(value=parse_price(match.group("v"), match.group("v_mult")), period=period)

        return None

    def _looks_like_price(self, match: re.Match, name: str) -> bool:
        if match.group(f"{name}_mult") or match.group(f"{name}_naira") or match.group(f"{name}_cur"):
            return True
        value = parse_price(match.group(name))
        return value is not None and value >= self.standalone_price_threshold

    def extract_price_period(self, text: str) -> Optional[PricePeriod]:
        for period, pattern in self.period_patterns:
            if pattern.search(text):
                return period
        return None

    def extract_room_counts(self, text: str) -> dict:
        """Bedroom/bathroom/living-room/kitchen counts with their comparison operator"""
        counts = {}
        for column, pattern in self.room_patterns.items():
            if pattern is None:
                continue
            match = pattern.search(text)
            if not match:
                continue
            value = _to_int(match.group("num"))
            if value is None:
                continue
            operator = ">=" if match.group("plus") else _operator_for(match.group("op"))
            counts[column] = NumericFilter(operator=operator, value=value)
        return counts

    def extract_land_size(self, text: str) -> Optional[float]:
        return land_size_to_sqm(text)

    def extract_amenities(self, text: str) -> List[str]:
        """Canonical amenities in the order they first appear in the text"""
        hits = []
        for pattern, canonical in self.amenity_patterns:
            match = pattern.search(text)
            if match:
                hits.append((match.start(), canonical))

        found = []
        for _, canonical in sorted(hits, key=lambda hit: hit[0]):
            if canonical not in found:
                found.append(canonical)
        return found

    def extract_location(self, text: str) -> Tuple[Optional[str], Optional[str]]:
        """(city, state); a known city implies its state and beats a bare state name"""
        for pattern, city, state in self.city_patterns:
            if pattern.search(text):
                return city, state
        for pattern, state in self.state_patterns:
            if pattern.search(text):
                return None, state
        return None, None

    def extract_purchase_category(self, text: str) -> Optional[PurchaseCategory]:
        match = _PURCHASE_RE.search(text)
        if not match:
            return None
        term = " ".join(match.group(2).lower().split())
        if "let" in term or "rent" in term or "lease" in term:
            return PurchaseCategory.RENT
        if "sale" in term or "buy" in term:
            return PurchaseCategory.SALE
        return None

    def extract_property_type(self, text: str) -> Optional[str]:
        """Canonical property type of the first configured synonym found"""
        lower = text.lower()
        for synonym, canonical in self.config.property_synonyms.items():
            syn = synonym.lower()
            if " " in syn or "-" in syn:
                if syn in lower:
                    return canonical
            elif re.search(rf"\b{re.escape(syn)}\b", lower):
                return canonical
        return None

    def extract_sort_hint(self, text: str) -> Optional[SortOption]:
        for pattern, sort in self.sort_patterns:
            if pattern.search(text):
                return sort
        return None
