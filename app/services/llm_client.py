"""Async Anthropic API wrapper with retry, logging, and reply cleanup."""

import asyncio
import logging
import re
import time
from pathlib import Path

import anthropic
import httpx

from app.config import settings
from app.errors import GenerationTransportError

logger = logging.getLogger(__name__)

# Singleton client — initialized lazily
_client: anthropic.AsyncAnthropic | None = None

SYSTEM_PROMPT = (
    "You write Boolean search strings for sourcing tools. "
    "Reply with the search string only."
)


def _get_client() -> anthropic.AsyncAnthropic:
    global _client
    if _client is None:
        _client = anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=httpx.Timeout(settings.llm_timeout_seconds, connect=10.0),
        )
    return _client


def load_prompt(name: str) -> str:
    """Load a prompt template from app/prompts/{name}.txt."""
    prompt_path = Path(__file__).parent.parent / "prompts" / f"{name}.txt"
    return prompt_path.read_text(encoding="utf-8")


async def generate_text(
    prompt: str,
    system: str = SYSTEM_PROMPT,
    max_tokens: int | None = None,
) -> str:
    """Call the configured Claude model and return the cleaned reply.

    Raises GenerationTransportError when the model is not configured,
    unreachable, times out, or replies with nothing usable.
    """
    if not settings.llm_enabled:
        raise GenerationTransportError("language model not configured")

    try:
        text = await _call_model(
            settings.claude_model, system, prompt, max_tokens or settings.llm_max_tokens,
        )
    except GenerationTransportError:
        raise
    except (anthropic.APIError, TimeoutError) as e:
        raise GenerationTransportError(str(e)[:200], cause=e) from e

    cleaned = clean_query_text(text)
    if not cleaned:
        raise GenerationTransportError("empty model reply")
    return cleaned


async def _call_model(
    model: str,
    system: str,
    user_message: str,
    max_tokens: int,
) -> str:
    """Call a Claude model with retry logic and logging."""
    client = _get_client()
    last_error = None

    max_attempts = settings.llm_max_retries + 1

    hard_timeout = settings.llm_timeout_seconds

    for attempt in range(1, max_attempts + 1):
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    temperature=settings.llm_temperature,
                    system=system,
                    messages=[{"role": "user", "content": user_message}],
                ),
                timeout=hard_timeout,
            )
            elapsed_ms = int((time.monotonic() - start) * 1000)
            text = response.content[0].text if response.content else ""
            usage = response.usage
            logger.info(
                "LLM OK | model=%s | tokens_in=%d tokens_out=%d | %dms",
                model, usage.input_tokens, usage.output_tokens, elapsed_ms,
            )
            return text

        except asyncio.TimeoutError:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "LLM timeout | model=%s | %dms (hard limit %ds) — no retry",
                model, elapsed_ms, hard_timeout,
            )
            raise GenerationTransportError(f"LLM timeout after {elapsed_ms}ms")

        except anthropic.APIStatusError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "LLM error | model=%s | status=%d | attempt=%d/%d | %dms | %s",
                model, e.status_code, attempt, max_attempts,
                elapsed_ms, str(e)[:200],
            )
            last_error = e
            if e.status_code in (429, 500, 502, 503, 529) and attempt < max_attempts:
                continue
            raise

        except (anthropic.APITimeoutError, anthropic.APIConnectionError) as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                "LLM connection error | model=%s | attempt=%d/%d | %dms",
                model, attempt, max_attempts, elapsed_ms,
            )
            last_error = e
            if attempt < max_attempts:
                continue
            raise

    raise last_error or GenerationTransportError("LLM call failed after all retries")


_FENCE_RE = re.compile(r"```(?:[a-zA-Z]+)?\s*([\s\S]*?)\s*```")
_LABEL_RE = re.compile(r"^(?:boolean\s+)?(?:search\s+)?(?:string|query)\s*:\s*", re.IGNORECASE)


def clean_query_text(text: str) -> str:
    """Strip the wrapping a model sometimes adds around a bare query.

    Handles code fences, a leading "Search string:" label and backticks.
    Quotes are kept — they belong to the Boolean syntax.
    """
    if not text:
        return ""
    fence = _FENCE_RE.search(text)
    if fence:
        text = fence.group(1)
    text = text.strip().strip("`").strip()
    text = _LABEL_RE.sub("", text)
    return " ".join(text.split())
