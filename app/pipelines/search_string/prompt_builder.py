"""Prompt Builder — one template per query type, extracted text embedded verbatim."""

import logging

from app.config import settings
from app.orchestrator.schemas import QueryType
from app.services.llm_client import load_prompt

logger = logging.getLogger(__name__)

TEMPLATE_NAMES = {
    QueryType.RECRUITING: "recruiting",
    QueryType.LEAD_GENERATION: "lead_generation",
}

TRUNCATION_NOTE = "\n[content truncated]"


class PromptBuilder:
    def __init__(self, max_chars: int | None = None):
        self.max_chars = max_chars or settings.max_prompt_chars
        self._templates: dict[QueryType, str] = {}

    def template(self, query_type: QueryType) -> str:
        if query_type not in self._templates:
            self._templates[query_type] = load_prompt(TEMPLATE_NAMES[query_type])
        return self._templates[query_type]

    def build(self, query_type: QueryType, text: str) -> str:
        if len(text) > self.max_chars:
            logger.warning("Prompt text truncated | %d → %d chars", len(text), self.max_chars)
            text = text[:self.max_chars] + TRUNCATION_NOTE
        return self.template(query_type).replace("{text}", text)
