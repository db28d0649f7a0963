from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import BoundedSemaphore, Lock

import tiktoken
from openai import OpenAI

from ..core.config import Settings

logger = logging.getLogger(__name__)

_llm_semaphore: BoundedSemaphore | None = None
_semaphore_lock = Lock()

try:
    # The encoding file is fetched on first use and can fail offline
    _TOKENIZER = tiktoken.get_encoding("cl100k_base")
except Exception:
    _TOKENIZER = None


def _get_semaphore(max_concurrency: int) -> BoundedSemaphore:
    """
    Lazy-initialised global semaphore for limiting concurrent LLM calls.

    The first caller fixes the size for the lifetime of the process.
    """
    global _llm_semaphore
    with _semaphore_lock:
        if _llm_semaphore is None:
            _llm_semaphore = BoundedSemaphore(max(1, max_concurrency))
        return _llm_semaphore


@contextmanager
def limit_llm_concurrency(max_concurrency: int = 4):
    """
    Simple context manager to bound concurrent calls to the LLM provider.

    Usage:

        with limit_llm_concurrency(settings.LLM_MAX_CONCURRENCY):
            client.chat.completions.create(...)

    Use inside the thread that actually performs the HTTP request; pipeline
    stages run in worker threads and all share this one semaphore.
    """
    sem = _get_semaphore(max_concurrency)
    sem.acquire()
    try:
        yield
    finally:
        sem.release()


def build_llm_client(settings: Settings) -> OpenAI:
    """
    Factory for the OpenAI-compatible client used by the classifier.

    - If OPENROUTER_API_KEY is set, route requests via OpenRouter.
    - Otherwise, fall back to the standard OpenAI API using OPENAI_API_KEY.
    """
    if settings.OPENROUTER_API_KEY:
        return OpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=settings.OPENROUTER_API_KEY.strip(),
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
            default_headers={
                "HTTP-Referer": settings.FRONTEND_ORIGIN or "http://localhost:3000",
                "X-Title": "Company DB",
            },
        )

    if settings.OPENAI_API_KEY:
        return OpenAI(
            api_key=settings.OPENAI_API_KEY.strip(),
            timeout=settings.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )

    raise RuntimeError(
        "No LLM API key configured. Set either OPENAI_API_KEY or OPENROUTER_API_KEY."
    )


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """
    Clip ``text`` to roughly ``max_tokens`` tokens.

    Falls back to a 4-characters-per-token estimate when no tokenizer is
    available.
    """
    if not text or max_tokens <= 0:
        return text
    if _TOKENIZER is None:
        limit = max_tokens * 4
        return text if len(text) <= limit else text[:limit]

    tokens = _TOKENIZER.encode(text)
    if len(tokens) <= max_tokens:
        return text
    logger.info(
        "Truncating note text from %d to %d tokens",
        len(tokens),
        max_tokens,
    )
    return _TOKENIZER.decode(tokens[:max_tokens])
