import re
from typing import List

from criblink.modules.search.config import SearchConfig

# Characters that to_tsquery treats as operators or syntax
_TSQUERY_UNSAFE = re.compile(r"[\W_]+", re.UNICODE)


class QueryNormalizer:
    """Cleans free-text searches before signal extraction.

    ``normalize`` lowercases, drops stopwords, collapses whitespace and
    expands local abbreviations ("ph" -> "port harcourt"). It is idempotent:
    stopwords are removed before expansion and no expansion yields a stopword
    or another abbreviation.
    """

    def __init__(self, config: SearchConfig):
        self.config = config
        self._stopwords = frozenset(w.lower() for w in config.stopwords)
        self._noise_words = frozenset(w.lower() for w in config.noise_words)

        # Longest keys first so "lekki ph1" wins over "ph"
        self._abbreviations = [
            (re.compile(rf"\b{re.escape(abbr.lower())}\b"), full.lower())
            for abbr, full in sorted(config.abbreviations.items(), key=lambda kv: len(kv[0]), reverse=True)
        ]

    def normalize(self, raw: str) -> str:
        if not raw:
            return ""

        tokens = [t for t in raw.lower().split() if t not in self._stopwords]
        text = " ".join(tokens)

        for pattern, full in self._abbreviations:
            text = pattern.sub(full, text)

        return " ".join(text.split())

    def fulltext_tokens(self, normalized: str) -> List[str]:
        """Tokens left for full-text search once noise words are stripped.

        Punctuation is dropped so every token is a plain lexeme that can be
        joined into a to_tsquery expression.
        """
        tokens = []
        for word in normalized.split():
            if word in self._noise_words:
                continue
            for piece in _TSQUERY_UNSAFE.split(word):
                if piece and piece not in self._noise_words:
                    tokens.append(piece)
        return tokens
