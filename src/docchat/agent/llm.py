"""LLM initialisation — single place to swap providers.

Any OpenAI-compatible chat completion endpoint that supports tool
calling works:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **Other compatible endpoints** (Groq, vLLM, …) — set ``LLM_BASE_URL``
   and the matching key.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from docchat.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def get_llm(config: Settings = default_settings) -> ChatOpenAI:
    """Return the configured chat model.

    Every request is bounded by ``config.llm_timeout_seconds``; the client
    retries ``config.llm_max_retries`` times before the error surfaces.
    """
    kwargs: dict = {
        "model": config.llm_model_name,
        "temperature": config.llm_temperature,
        "timeout": config.llm_timeout_seconds,
        "max_retries": config.llm_max_retries,
    }

    if config.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", config.llm_base_url)
        kwargs["base_url"] = config.llm_base_url
        # Self-hosted servers often need no key; the client requires a non-empty value.
        kwargs["api_key"] = config.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = config.openai_api_key

    return ChatOpenAI(**kwargs)
