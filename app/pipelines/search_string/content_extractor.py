"""Content Extractor.

Reduces a source descriptor (text / website / document) to one clean text blob:
whitespace runs collapsed to a single space, leading and trailing space trimmed.

Website strategy (first one that yields enough text wins):
  1. Job/content selectors — class/id substrings from extraction_patterns.json
  2. Structure — headings, then paragraphs, then list items
  3. Full body text
"""

import json
import logging
import re
from functools import lru_cache
from pathlib import Path

from bs4 import BeautifulSoup, Tag

from app.config import settings
from app.errors import ExtractionError, InsufficientContent, SearchStringError, SourceUnavailable
from app.integrations.web_page import WebPageClient, normalize_url
from app.orchestrator.schemas import DocumentSource, ExtractedRecord, TextSource, WebsiteSource
from app.services.cache import CacheService, cache_service

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS_PATH = Path(__file__).parent.parent.parent / "prompts" / "extraction_patterns.json"

_WS_RE = re.compile(r"\s+")


@lru_cache(maxsize=4)
def load_extraction_patterns(path: str = "") -> dict:
    """Load selector/structure configuration; ``path`` overrides the bundled file."""
    source = Path(path) if path else DEFAULT_PATTERNS_PATH
    patterns = json.loads(source.read_text(encoding="utf-8"))
    patterns["selector_patterns"] = [p.lower() for p in patterns.get("selector_patterns", [])]
    return patterns


def normalize_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def non_whitespace_length(text: str) -> int:
    return len(_WS_RE.sub("", text))


class HtmlContentExtractor:
    """Pulls job/content-relevant text out of one HTML document."""

    def __init__(self, patterns: dict | None = None):
        self.patterns = patterns or load_extraction_patterns(settings.extraction_patterns_file)

    def extract(self, html: str) -> str:
        try:
            soup = BeautifulSoup(html, "html.parser")
            for tag in soup.find_all(self.patterns.get("drop_tags", [])):
                tag.extract()

            text = self._from_selectors(soup)
            strategy = "selectors"
            if not text:
                text = self._from_structure(soup)
                strategy = "structure"
            if len(text) < settings.structural_min_chars:
                root = soup.body or soup
                text = normalize_whitespace(root.get_text(" "))
                strategy = "body"
        except Exception as e:
            logger.warning("HTML extraction failed | %s", str(e)[:200])
            raise ExtractionError(f"{type(e).__name__}: {str(e)[:200]}", cause=e) from e

        logger.info("HTML extracted | strategy=%s | chars=%d", strategy, len(text))
        return text

    def _from_selectors(self, soup: BeautifulSoup) -> str:
        selectors = self.patterns.get("selector_patterns", [])
        chosen: list[Tag] = []
        chunks: list[str] = []
        for pattern in selectors:
            for element in soup.find_all(lambda tag: _matches(tag, pattern)):
                if _overlaps(element, chosen):
                    continue
                text = normalize_whitespace(element.get_text(" "))
                if len(text) > settings.selector_min_chars:
                    chosen.append(element)
                    chunks.append(text)
        return " ".join(chunks)

    def _from_structure(self, soup: BeautifulSoup) -> str:
        marker = self.patterns.get("list_item_marker", "• ")
        parts: list[str] = []
        for tag_names, prefix in (
            (self.patterns.get("heading_tags", []), ""),
            (self.patterns.get("paragraph_tags", []), ""),
            (self.patterns.get("list_item_tags", []), marker),
        ):
            for element in soup.find_all(tag_names):
                text = normalize_whitespace(element.get_text(" "))
                if text:
                    parts.append(f"{prefix}{text}")
        return " ".join(parts)


def _matches(tag: Tag, pattern: str) -> bool:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    haystack = " ".join([*classes, tag.get("id") or ""]).lower()
    return pattern in haystack


def _overlaps(element: Tag, chosen: list[Tag]) -> bool:
    """True when element is, contains, or sits inside an already collected element."""
    for other in chosen:
        if other is element:
            return True
        if any(parent is other for parent in element.parents):
            return True
        if any(parent is element for parent in other.parents):
            return True
    return False


class ContentExtractor:
    """Dispatches a source descriptor to the matching extraction path."""

    def __init__(
        self,
        web_client: WebPageClient | None = None,
        html_extractor: HtmlContentExtractor | None = None,
        cache: CacheService | None = None,
    ):
        self.web_client = web_client or WebPageClient()
        self.html_extractor = html_extractor or HtmlContentExtractor()
        self.cache = cache or cache_service

    async def extract(self, source: ExtractedRecord) -> str:
        """Return clean text or raise a SearchStringError subclass."""
        if isinstance(source, TextSource):
            text = normalize_whitespace(source.text)
        elif isinstance(source, DocumentSource):
            if source.text is None:
                raise SourceUnavailable(f"document {source.reference} not found")
            text = normalize_whitespace(source.text)
        elif isinstance(source, WebsiteSource):
            text = await self._extract_website(source.url)
        else:
            raise ExtractionError(f"unknown source kind: {type(source).__name__}")

        if non_whitespace_length(text) < settings.min_content_chars:
            raise InsufficientContent(f"{non_whitespace_length(text)} characters extracted")
        return text

    async def _extract_website(self, url: str) -> str:
        url = normalize_url(url)
        key = self.cache.make_key(url)
        cached = await self.cache.get(key)
        if cached:
            return cached

        html = await self.web_client.fetch(url)
        try:
            text = self.html_extractor.extract(html)
        except SearchStringError:
            raise
        except Exception as e:
            raise ExtractionError(str(e)[:200], cause=e) from e

        if non_whitespace_length(text) >= settings.min_content_chars:
            await self.cache.set(key, text)
        return text
