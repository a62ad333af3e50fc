#!/usr/bin/env python3
"""
LLMConfig - which backend answers selector inference prompts

Provider strings are "provider/model":
    ollama/qwen2.5:7b                   (default, local, no key)
    openai/gpt-4o-mini
    anthropic/claude-3-haiku-20240307
    gemini/gemini-2.0-flash
    groq/llama3-70b-8192
    deepseek/deepseek-chat

Usage:
    llm_config = LLMConfig(provider="openai/gpt-4o-mini")          # key from OPENAI_API_KEY
    llm_config = LLMConfig(provider="groq", api_token="env:MY_GROQ")  # key from a custom variable
    llm_config = LLMConfig.from_env()                                 # THEMEFIT_LLM_* variables
"""

import os
from dataclasses import asdict, dataclass, field
from typing import Optional, Dict, Any, NamedTuple


class ProviderInfo(NamedTuple):
    env_var: Optional[str]
    base_url: str
    default_model: str


PROVIDERS: Dict[str, ProviderInfo] = {
    "ollama": ProviderInfo(None, "http://localhost:11434", "qwen2.5:7b"),
    "openai": ProviderInfo("OPENAI_API_KEY", "https://api.openai.com/v1", "gpt-4o-mini"),
    "anthropic": ProviderInfo("ANTHROPIC_API_KEY", "https://api.anthropic.com", "claude-3-haiku-20240307"),
    "gemini": ProviderInfo("GEMINI_API_KEY", "https://generativelanguage.googleapis.com/v1beta", "gemini-2.0-flash"),
    "google": ProviderInfo("GEMINI_API_KEY", "https://generativelanguage.googleapis.com/v1beta", "gemini-2.0-flash"),
    "groq": ProviderInfo("GROQ_API_KEY", "https://api.groq.com/openai/v1", "llama3-70b-8192"),
    "deepseek": ProviderInfo("DEEPSEEK_API_KEY", "https://api.deepseek.com/v1", "deepseek-chat"),
}

PROVIDER_ENV_VARS = {name: info.env_var for name, info in PROVIDERS.items()}
PROVIDER_BASE_URLS = {name: info.base_url for name, info in PROVIDERS.items()}
DEFAULT_MODELS = {name: info.default_model for name, info in PROVIDERS.items()}

DEFAULT_PROVIDER = "ollama/qwen2.5:7b"


@dataclass
class LLMConfig:
    """
    Parameters:
        provider: "provider/model"; a bare provider name picks its default model
        api_token: Explicit key, "env:VAR_NAME", or None for the provider's usual variable
        base_url: Endpoint override (self-hosted gateways, proxies)
        temperature: Kept low, adapters should be reproducible
        max_tokens: Upper bound for the JSON answer
        timeout: Per request, in seconds
        extra_params: Provider specific knobs (e.g. num_ctx for Ollama)
    """
    provider: str = DEFAULT_PROVIDER
    api_token: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout: int = 60
    top_p: float = 0.9
    extra_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        name, _, model = self.provider.partition("/")
        self._provider_name = name.strip().lower()
        info = PROVIDERS.get(self._provider_name)
        self._model_name = model or (info.default_model if info else "")
        if self.base_url is None:
            self.base_url = info.base_url if info else PROVIDERS["ollama"].base_url
        self._resolved_token = self._resolve_api_token(info)

    def _resolve_api_token(self, info: Optional[ProviderInfo]) -> Optional[str]:
        if self.api_token is None:
            return os.getenv(info.env_var) if info and info.env_var else None
        if self.api_token.startswith("env:"):
            return os.getenv(self.api_token[4:].strip())
        return self.api_token

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def resolved_api_token(self) -> Optional[str]:
        return self._resolved_token

    @property
    def is_local(self) -> bool:
        return self._provider_name == "ollama"

    @property
    def requires_api_key(self) -> bool:
        return not self.is_local

    def validate(self) -> bool:
        if self.requires_api_key and not self._resolved_token:
            source = PROVIDER_ENV_VARS.get(self._provider_name) or "api_token=\"env:VAR\""
            raise ValueError(f"API token required for {self._provider_name} (pass api_token or set {source})")
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Loggable view; the token itself is never included."""
        data = {k: v for k, v in asdict(self).items() if k not in ("api_token", "extra_params")}
        data.update(
            provider_name=self._provider_name,
            model_name=self._model_name,
            has_api_token=self._resolved_token is not None,
            is_local=self.is_local,
        )
        return data

    @classmethod
    def from_env(cls, prefix: str = "THEMEFIT") -> "LLMConfig":
        """
        Reads {prefix}_LLM_PROVIDER, {prefix}_LLM_API_TOKEN, {prefix}_LLM_BASE_URL,
        {prefix}_TEMPERATURE, {prefix}_NUM_PREDICT and {prefix}_LLM_TIMEOUT.
        """
        def env(name, default=None):
            return os.getenv(f"{prefix}_{name}", default)

        return cls(
            provider=env("LLM_PROVIDER", DEFAULT_PROVIDER),
            api_token=env("LLM_API_TOKEN"),
            base_url=env("LLM_BASE_URL"),
            temperature=float(env("TEMPERATURE", "0.3")),
            max_tokens=int(env("NUM_PREDICT", "2000")),
            timeout=int(env("LLM_TIMEOUT", "60")),
        )


def _preset(provider: str, **overrides: Any):
    return staticmethod(lambda: LLMConfig(provider=provider, **overrides))


class LLMPresets:
    """Known-good backends for selector inference, e.g. LLMPresets.openai_fast()"""

    local_fast = _preset("ollama/qwen2.5:3b", temperature=0.2, max_tokens=1024)
    local_balanced = _preset(DEFAULT_PROVIDER)
    openai_fast = _preset("openai/gpt-4o-mini", temperature=0.2)
    anthropic_fast = _preset("anthropic/claude-3-haiku-20240307", temperature=0.2)
    gemini_fast = _preset("gemini/gemini-2.0-flash", temperature=0.2)
