"""Shared test fixtures and configuration."""

import os
import tempfile

import pytest

# No real API keys, no shared data directory
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ.setdefault("DOCUMENTS_DIR", tempfile.mkdtemp(prefix="searchgen-docs-"))
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from app.integrations.documents import DocumentStore  # noqa: E402
from app.orchestrator.router import GenerationOrchestrator  # noqa: E402
from app.pipelines.search_string import SearchStringPipeline  # noqa: E402
from app.pipelines.search_string.content_extractor import ContentExtractor  # noqa: E402
from app.services.cache import CacheService  # noqa: E402
from app.services.realtime import RealtimeNotifier  # noqa: E402
from app.services.request_store import InMemoryRequestStore  # noqa: E402


class RecordingNotifier(RealtimeNotifier):
    """In-process notifier that keeps every published record."""

    def __init__(self):
        super().__init__()
        self.published = []

    async def publish(self, request):
        self.published.append(request)
        await super().publish(request)


@pytest.fixture
def cache():
    """Fresh page cache without Redis."""
    return CacheService()


@pytest.fixture
def documents(tmp_path):
    return DocumentStore(tmp_path / "documents")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def pipeline(cache):
    return SearchStringPipeline(extractor=ContentExtractor(cache=cache))


@pytest.fixture
def orchestrator(pipeline, documents, notifier):
    return GenerationOrchestrator(
        store=InMemoryRequestStore(),
        pipeline=pipeline,
        documents=documents,
        notifier=notifier,
    )


@pytest.fixture
def job_page_html():
    """Job ad with a description container plus navigation noise."""
    return """<!DOCTYPE html>
<html>
<head>
  <title>Senior Java Developer (m/w/d) - Example GmbH</title>
  <style>.nav { color: red; }</style>
  <script>window.tracking = "should never appear";</script>
</head>
<body>
  <nav class="main-nav"><a href="/">Home</a> <a href="/jobs">Alle Jobs</a> <a href="/kontakt">Kontakt</a></nav>
  <div class="job-description">
    <h1>Senior Java Developer</h1>
    <p>We are looking for an experienced Java developer to join our platform team in Berlin.
       You will design and build backend services with Spring Boot and PostgreSQL.</p>
    <ul>
      <li>5 years of experience with Java and Spring</li>
      <li>Solid knowledge of Docker and Kubernetes</li>
      <li>Fluent English, German is a plus</li>
    </ul>
  </div>
  <footer>Impressum | Datenschutz | Cookie settings</footer>
</body>
</html>"""


@pytest.fixture
def structured_page_html():
    """Company page without any known content containers."""
    return """<html>
<body>
  <main>
    <p>Example Logistics GmbH is a mid-sized freight forwarder based in Hamburg with 250 employees.</p>
    <h1>Example Logistics</h1>
    <p>We run road and rail freight across Germany, Austria and Switzerland for retail customers.</p>
    <h2>Services</h2>
    <ul>
      <li>Full truck load transport</li>
      <li>Warehousing and contract logistics</li>
    </ul>
    <script>var ignored = true;</script>
  </main>
</body>
</html>"""


@pytest.fixture
def tiny_page_html():
    return "<html><body><div>Coming soon</div><p>Stay tuned for our new website launch.</p></body></html>"
