"""Search-string pipeline.

Flow: Content Extractor → Prompt Builder → LLM
                                         ↘ (not configured / any error) Fallback Synthesizer

Extraction errors propagate to the caller; model errors never do.
"""

import logging
import time

from app.orchestrator.schemas import ExtractedRecord, GeneratedQuery, GenerationMethod, QueryType
from app.pipelines.search_string.content_extractor import ContentExtractor
from app.pipelines.search_string.fallback_synthesizer import FallbackSynthesizer, fallback_synthesizer
from app.pipelines.search_string.prompt_builder import PromptBuilder
from app.services.llm_client import generate_text

logger = logging.getLogger(__name__)


class SearchStringPipeline:
    """Extraction plus generation for one request; holds no per-request state."""

    def __init__(
        self,
        extractor: ContentExtractor | None = None,
        prompt_builder: PromptBuilder | None = None,
        synthesizer: FallbackSynthesizer | None = None,
    ):
        self.extractor = extractor or ContentExtractor()
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.synthesizer = synthesizer or fallback_synthesizer

    async def extract(self, source: ExtractedRecord) -> str:
        return await self.extractor.extract(source)

    async def generate(self, query_type: QueryType, text: str) -> GeneratedQuery:
        start = time.monotonic()
        try:
            prompt = self.prompt_builder.build(query_type, text)
            query = await generate_text(prompt)
            logger.info(
                "Generation OK | method=llm | type=%s | %dms",
                query_type.value, int((time.monotonic() - start) * 1000),
            )
            return GeneratedQuery(query=query, method=GenerationMethod.LLM)
        except Exception as e:
            logger.warning("LLM generation unavailable, using fallback | %s", str(e)[:200])

        query = self.synthesizer.synthesize(text, query_type)
        return GeneratedQuery(query=query, method=GenerationMethod.FALLBACK)
