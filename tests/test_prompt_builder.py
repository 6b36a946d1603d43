"""Tests for prompt construction and the pipeline's LLM/fallback switch."""

import logging
from unittest.mock import AsyncMock, patch

import pytest

from app.errors import GenerationTransportError
from app.orchestrator.schemas import GenerationMethod, QueryType
from app.pipelines.search_string import SearchStringPipeline
from app.pipelines.search_string.prompt_builder import TRUNCATION_NOTE, PromptBuilder

JOB_TEXT = "Senior Java Developer Berlin 5 years Spring Boot"


class TestPromptBuilder:
    def test_text_embedded_verbatim(self):
        prompt = PromptBuilder().build(QueryType.RECRUITING, JOB_TEXT)
        assert JOB_TEXT in prompt
        assert "{text}" not in prompt

    def test_template_per_query_type(self):
        builder = PromptBuilder()
        recruiting = builder.build(QueryType.RECRUITING, JOB_TEXT)
        leads = builder.build(QueryType.LEAD_GENERATION, JOB_TEXT)
        assert recruiting != leads
        assert "candidate" in recruiting
        assert "compan" in leads.lower()

    def test_text_with_braces(self):
        prompt = PromptBuilder().build(QueryType.RECRUITING, "C# {generics} and .NET")
        assert "C# {generics} and .NET" in prompt

    def test_truncation(self):
        prompt = PromptBuilder(max_chars=50).build(QueryType.RECRUITING, "x" * 200)
        assert "x" * 50 + TRUNCATION_NOTE in prompt
        assert "x" * 51 not in prompt

    def test_truncation_logged_as_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="app.pipelines.search_string.prompt_builder"):
            PromptBuilder(max_chars=50).build(QueryType.RECRUITING, "x" * 200)
        assert any(
            r.levelno == logging.WARNING and "truncated" in r.getMessage() for r in caplog.records
        )

    def test_short_text_not_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="app.pipelines.search_string.prompt_builder"):
            PromptBuilder().build(QueryType.RECRUITING, JOB_TEXT)
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


class TestPipelineGenerate:
    @pytest.mark.asyncio
    async def test_llm_reply_used(self):
        with patch("app.pipelines.search_string.generate_text",
                   new_callable=AsyncMock, return_value='("Java" OR "Spring") AND ("Resume" OR "CV")') as mock:
            result = await SearchStringPipeline().generate(QueryType.RECRUITING, JOB_TEXT)
        assert result.method == GenerationMethod.LLM
        assert result.query == '("Java" OR "Spring") AND ("Resume" OR "CV")'
        assert JOB_TEXT in mock.call_args.args[0]

    @pytest.mark.asyncio
    async def test_fallback_on_transport_error(self):
        with patch("app.pipelines.search_string.generate_text",
                   new_callable=AsyncMock, side_effect=GenerationTransportError("HTTP 529")):
            result = await SearchStringPipeline().generate(QueryType.RECRUITING, JOB_TEXT)
        assert result.method == GenerationMethod.FALLBACK
        assert result.query.endswith('AND ("Resume" OR "CV")')

    @pytest.mark.asyncio
    async def test_fallback_when_not_configured(self):
        result = await SearchStringPipeline().generate(QueryType.LEAD_GENERATION, "Logistics companies near Hamburg")
        assert result.method == GenerationMethod.FALLBACK
        assert result.query.endswith('AND ("Company" OR "Business")')
