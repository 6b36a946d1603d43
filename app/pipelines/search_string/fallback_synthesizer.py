"""Fallback Query Synthesizer.

Deterministic, model-free Boolean query builder used when the language model
is not configured or fails. Biased toward over-inclusion: every term that
survives the (deliberately tiny) stopword filter ends up in the query.

Flow: tokenize → de-duplicate → drop stopwords → detect language →
      short input: one OR-group | longer input: five ordered buckets → closing clause
"""

import logging
import re

from app.errors import InsufficientContent
from app.orchestrator.schemas import Language, QueryType
from app.utils.search_terms import (
    CLOSING_TERMS,
    DEFAULT_LANGUAGE,
    EXPERIENCE_PATTERNS,
    JOB_TITLE_SUBSTRINGS,
    LANGUAGE_MARKERS,
    LOCATION_PATTERNS,
    LOCATION_SUBSTRINGS,
    SKILL_SUBSTRINGS,
    STOPWORDS,
)

logger = logging.getLogger(__name__)

SHORT_INPUT_MAX_TOKENS = 10

BUCKET_ORDER = ("job_title", "skill", "location", "experience", "general")

_SPLIT_RE = re.compile(r"[\s,.;:!?()\[\]{}<>\"“”„|/\\*=]+")
_LOCATION_RE = re.compile("|".join(LOCATION_PATTERNS), re.IGNORECASE)
_EXPERIENCE_RE = re.compile("|".join(EXPERIENCE_PATTERNS), re.IGNORECASE)
_EDGE_CHARS = "'`´’‘-–—_"


def tokenize(text: str) -> list[str]:
    """Split on whitespace/punctuation; empty tokens are discarded."""
    parts = (p.strip(_EDGE_CHARS) for p in _SPLIT_RE.split(text))
    return [p for p in parts if p]


def unique(tokens: list[str]) -> list[str]:
    """Case-insensitive de-duplication; the first spelling seen wins."""
    seen: dict[str, str] = {}
    for token in tokens:
        seen.setdefault(token.lower(), token)
    return list(seen.values())


def detect_language(tokens: list[str]) -> Language:
    lowered = {t.lower() for t in tokens}
    for language, markers in LANGUAGE_MARKERS.items():
        if lowered & markers:
            return language
    return DEFAULT_LANGUAGE


def remove_stopwords(tokens: list[str]) -> list[str]:
    stopwords = frozenset().union(*STOPWORDS.values())
    return [t for t in tokens if t.lower() not in stopwords]


def classify(token: str) -> str:
    """Assign a token to exactly one bucket, first match wins."""
    lowered = token.lower()
    if _is_capitalized(token) or _contains_any(lowered, JOB_TITLE_SUBSTRINGS):
        return "job_title"
    if _contains_any(lowered, SKILL_SUBSTRINGS):
        return "skill"
    if _contains_any(lowered, LOCATION_SUBSTRINGS) or _LOCATION_RE.search(lowered):
        return "location"
    if _EXPERIENCE_RE.search(lowered):
        return "experience"
    return "general"


def _is_capitalized(token: str) -> bool:
    # Acronyms (SAP, AWS) fall through to the pattern buckets
    return token[:1].isupper() and not token.isupper()


def _contains_any(token: str, substrings: tuple[str, ...]) -> bool:
    return any(s in token for s in substrings)


def quote(term: str) -> str:
    return '"' + term.replace('"', "") + '"'


def or_group(terms: list[str] | tuple[str, ...]) -> str:
    return "(" + " OR ".join(quote(t) for t in terms) + ")"


class FallbackSynthesizer:
    """Turns a text blob into a Boolean query without any external call."""

    def synthesize(self, text: str, query_type: QueryType) -> str:
        raw_tokens = tokenize(text)
        language = detect_language(raw_tokens)
        terms = remove_stopwords(unique(raw_tokens))
        if not terms:
            raise InsufficientContent("no usable terms after stopword removal")

        if len(terms) <= SHORT_INPUT_MAX_TOKENS:
            body = or_group(terms)
        else:
            body = self._bucketed_body(terms)

        closing = or_group(CLOSING_TERMS[(query_type, language)])
        query = f"{body} AND {closing}"
        logger.info(
            "Fallback synthesized | type=%s | lang=%s | terms=%d | chars=%d",
            query_type.value, language.value, len(terms), len(query),
        )
        return query

    def bucketize(self, terms: list[str]) -> dict[str, list[str]]:
        buckets: dict[str, list[str]] = {name: [] for name in BUCKET_ORDER}
        for term in terms:
            buckets[classify(term)].append(term)
        return buckets

    def _bucketed_body(self, terms: list[str]) -> str:
        buckets = self.bucketize(terms)
        groups = [or_group(buckets[name]) for name in BUCKET_ORDER if buckets[name]]
        if not groups:
            return or_group(terms)
        return " AND ".join(groups)


fallback_synthesizer = FallbackSynthesizer()
