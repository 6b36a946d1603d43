"""Tests for content extraction — HTML strategies, page fetch, source dispatch."""

import httpx
import pytest

from app.errors import ExtractionError, FetchError, InsufficientContent, SourceUnavailable
from app.integrations.web_page import WebPageClient, normalize_url
from app.orchestrator.schemas import DocumentSource, TextSource, WebsiteSource
from app.pipelines.search_string.content_extractor import (
    ContentExtractor,
    HtmlContentExtractor,
    load_extraction_patterns,
    non_whitespace_length,
    normalize_whitespace,
)


@pytest.fixture
def html_extractor():
    return HtmlContentExtractor()


@pytest.fixture
def extractor(cache):
    return ContentExtractor(cache=cache)


# ═══════════════ HTML strategies ═══════════════


class TestHtmlContentExtractor:
    def test_selector_strategy_keeps_description_only(self, html_extractor, job_page_html):
        text = html_extractor.extract(job_page_html)
        assert text.startswith("Senior Java Developer")
        assert "Spring Boot and PostgreSQL" in text
        assert "Docker and Kubernetes" in text
        assert "Alle Jobs" not in text
        assert "Impressum" not in text

    def test_scripts_and_styles_dropped(self, html_extractor, job_page_html):
        text = html_extractor.extract(job_page_html)
        assert "tracking" not in text
        assert "color: red" not in text

    def test_structure_strategy_order(self, html_extractor, structured_page_html):
        text = html_extractor.extract(structured_page_html)
        # headings, then paragraphs, then list items
        assert text.startswith("Example Logistics Services Example Logistics GmbH is a mid-sized freight forwarder")
        assert text.index("Services") < text.index("We run road and rail freight")
        assert text.index("We run road and rail freight") < text.index("• Full truck load transport")
        assert text.index("• Full truck load transport") < text.index("• Warehousing and contract logistics")
        assert text == normalize_whitespace(text)
        assert "ignored" not in text

    def test_body_fallback_for_thin_pages(self, html_extractor, tiny_page_html):
        text = html_extractor.extract(tiny_page_html)
        assert text == "Coming soon Stay tuned for our new website launch."

    def test_nested_matches_not_duplicated(self, html_extractor):
        description = "Backend engineer for payment services, Python and PostgreSQL, hybrid in Munich. " * 3
        html = f"""<html><body>
            <section class="job-details">
              <div class="requirements">{description}</div>
            </section>
        </body></html>"""
        text = html_extractor.extract(html)
        assert text.count("payment services") == 3

    def test_custom_patterns(self):
        extractor = HtmlContentExtractor(patterns={
            "selector_patterns": ["offer-body"],
            "heading_tags": ["h1"],
            "paragraph_tags": ["p"],
            "list_item_tags": ["li"],
            "list_item_marker": "- ",
            "drop_tags": ["script"],
        })
        body = "Account executive for the DACH region, SaaS sales, Salesforce, quota carrying. " * 3
        html = f'<html><body><p>noise</p><div id="offer-body">{body}</div></body></html>'
        text = extractor.extract(html)
        assert "noise" not in text
        assert text.startswith("Account executive")

    def test_broken_markup_wrapped(self, html_extractor, monkeypatch):
        def explode(self, soup):
            raise AttributeError("boom")

        monkeypatch.setattr(HtmlContentExtractor, "_from_selectors", explode)
        with pytest.raises(ExtractionError) as exc:
            html_extractor.extract("<html><body><p>x</p></body></html>")
        assert "AttributeError" in exc.value.detail


class TestHelpers:
    def test_normalize_whitespace(self):
        assert normalize_whitespace("  a\n\n b\t c  ") == "a b c"

    def test_non_whitespace_length(self):
        assert non_whitespace_length(" a b\nc ") == 3

    def test_bundled_patterns(self):
        patterns = load_extraction_patterns()
        assert "job-description" in patterns["selector_patterns"]
        assert patterns["list_item_marker"] == "• "

    def test_normalize_url_adds_scheme(self):
        assert normalize_url("example.com/jobs") == "https://example.com/jobs"

    def test_normalize_url_rejects_other_schemes(self):
        with pytest.raises(FetchError):
            normalize_url("ftp://example.com/file")


# ═══════════════ Page fetch ═══════════════


class TestWebPageClient:
    @pytest.mark.asyncio
    async def test_fetch_success(self, httpx_mock, job_page_html):
        httpx_mock.add_response(url="https://jobs.example.com/1", html=job_page_html)
        html = await WebPageClient().fetch("https://jobs.example.com/1")
        assert "job-description" in html

    @pytest.mark.asyncio
    async def test_sends_user_agent(self, httpx_mock, job_page_html):
        httpx_mock.add_response(html=job_page_html)
        await WebPageClient(user_agent="TestAgent/1.0").fetch("https://jobs.example.com/1")
        request = httpx_mock.get_request()
        assert request.headers["user-agent"] == "TestAgent/1.0"

    @pytest.mark.asyncio
    async def test_http_error_status(self, httpx_mock):
        httpx_mock.add_response(status_code=404)
        with pytest.raises(FetchError) as exc:
            await WebPageClient().fetch("https://jobs.example.com/gone")
        assert exc.value.detail == "HTTP 404"

    @pytest.mark.asyncio
    async def test_non_html_rejected(self, httpx_mock):
        httpx_mock.add_response(json={"jobs": []})
        with pytest.raises(FetchError) as exc:
            await WebPageClient().fetch("https://jobs.example.com/api")
        assert "content type" in exc.value.detail

    @pytest.mark.asyncio
    async def test_timeout(self, httpx_mock):
        httpx_mock.add_exception(httpx.ReadTimeout("timeout"))
        with pytest.raises(FetchError) as exc:
            await WebPageClient(timeout=1).fetch("https://slow.example.com")
        assert "timed out" in exc.value.detail


# ═══════════════ Source dispatch ═══════════════


class TestContentExtractor:
    @pytest.mark.asyncio
    async def test_text_passthrough(self, extractor):
        text = await extractor.extract(TextSource(text="  Senior Java\n\nDeveloper\tBerlin 5 years  "))
        assert text == "Senior Java Developer Berlin 5 years"

    @pytest.mark.asyncio
    async def test_text_too_short(self, extractor):
        with pytest.raises(InsufficientContent):
            await extractor.extract(TextSource(text="Java    dev"))

    @pytest.mark.asyncio
    async def test_document_text(self, extractor):
        source = DocumentSource(reference="a" * 32, text="Steuerfachangestellte\nin Hamburg\n\ngesucht\n")
        assert await extractor.extract(source) == "Steuerfachangestellte in Hamburg gesucht"

    @pytest.mark.asyncio
    async def test_document_missing(self, extractor):
        with pytest.raises(SourceUnavailable):
            await extractor.extract(DocumentSource(reference="a" * 32, text=None))

    @pytest.mark.asyncio
    async def test_website(self, extractor, httpx_mock, job_page_html):
        httpx_mock.add_response(html=job_page_html)
        text = await extractor.extract(WebsiteSource(url="jobs.example.com/java"))
        assert "Spring Boot" in text

    @pytest.mark.asyncio
    async def test_website_served_from_cache(self, extractor, httpx_mock, job_page_html):
        httpx_mock.add_response(html=job_page_html)
        first = await extractor.extract(WebsiteSource(url="https://jobs.example.com/java"))
        second = await extractor.extract(WebsiteSource(url="https://jobs.example.com/java"))
        assert first == second
        assert len(httpx_mock.get_requests()) == 1

    @pytest.mark.asyncio
    async def test_failed_fetch_not_cached(self, extractor, cache, httpx_mock):
        httpx_mock.add_response(status_code=503)
        with pytest.raises(FetchError):
            await extractor.extract(WebsiteSource(url="https://jobs.example.com/down"))
        assert await cache.get(cache.make_key("https://jobs.example.com/down")) is None

    @pytest.mark.asyncio
    async def test_website_with_empty_body(self, extractor, httpx_mock):
        httpx_mock.add_response(html="<html><body><script>app()</script></body></html>")
        with pytest.raises(InsufficientContent):
            await extractor.extract(WebsiteSource(url="https://spa.example.com"))
