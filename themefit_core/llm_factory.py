"""
Build an LLM client from an LLMConfig.

    llm = setup_llm()                                   # THEMEFIT_LLM_* variables
    llm = setup_llm(LLMConfig(provider="groq/llama3-70b-8192"))
    result = await llm.ainvoke(prompt)                  # {"text": "..."}
"""

import logging
from typing import Callable, Dict, Optional

from .llm import (
    AnthropicClient,
    GeminiClient,
    HTTPLLMClient,
    OpenAICompatibleClient,
    SimpleOllama,
)
from .llm_config import LLMConfig

logger = logging.getLogger(__name__)

__all__ = [
    "setup_llm",
    "create_llm_client",
    "OpenAICompatibleClient",
    "AnthropicClient",
    "GeminiClient",
]


def _ollama(cfg: LLMConfig) -> HTTPLLMClient:
    return SimpleOllama(
        base_url=cfg.base_url,
        model=cfg.model_name,
        num_ctx=cfg.extra_params.get("num_ctx", 8192),
        num_predict=cfg.max_tokens,
        temperature=cfg.temperature,
        top_p=cfg.top_p,
        timeout=cfg.timeout,
    )


def _chat_completions(cfg: LLMConfig) -> HTTPLLMClient:
    return OpenAICompatibleClient(
        api_key=cfg.resolved_api_token,
        base_url=cfg.base_url,
        model=cfg.model_name,
        temperature=cfg.temperature,
        max_tokens=cfg.max_tokens,
        timeout=cfg.timeout,
        system_prompt=cfg.extra_params.get("system_prompt"),
    )


def _anthropic(cfg: LLMConfig) -> HTTPLLMClient:
    return AnthropicClient(
        api_key=cfg.resolved_api_token,
        model=cfg.model_name,
        temperature=cfg.temperature,
        max_tokens=cfg.max_tokens,
        timeout=cfg.timeout,
        base_url=cfg.base_url,
    )


def _gemini(cfg: LLMConfig) -> HTTPLLMClient:
    return GeminiClient(
        api_key=cfg.resolved_api_token,
        model=cfg.model_name,
        temperature=cfg.temperature,
        max_tokens=cfg.max_tokens,
        timeout=cfg.timeout,
        base_url=cfg.base_url,
    )


BUILDERS: Dict[str, Callable[[LLMConfig], HTTPLLMClient]] = {
    "ollama": _ollama,
    "openai": _chat_completions,
    "groq": _chat_completions,
    "deepseek": _chat_completions,
    "anthropic": _anthropic,
    "gemini": _gemini,
    "google": _gemini,
}


def create_llm_client(llm_config: LLMConfig) -> HTTPLLMClient:
    """Cloud providers fail fast (ValueError) when no API key resolves."""
    builder = BUILDERS.get(llm_config.provider_name)
    if builder is None:
        raise ValueError(f"Unknown provider: {llm_config.provider_name}")
    llm_config.validate()
    logger.debug(f"LLM client: {llm_config.provider_name}/{llm_config.model_name}")
    return builder(llm_config)


def setup_llm(llm_config: Optional[LLMConfig] = None) -> HTTPLLMClient:
    return create_llm_client(llm_config or LLMConfig.from_env())
