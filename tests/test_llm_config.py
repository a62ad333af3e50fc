import os
from unittest.mock import patch

import pytest

from themefit_core.llm import (
    AnthropicClient,
    GeminiClient,
    OpenAICompatibleClient,
    SimpleOllama,
)
from themefit_core.llm_config import (
    DEFAULT_MODELS,
    PROVIDER_BASE_URLS,
    PROVIDER_ENV_VARS,
    LLMConfig,
    LLMPresets,
)
from themefit_core.llm_factory import create_llm_client, setup_llm


class TestProviderStrings:

    def test_defaults_to_local_ollama(self):
        cfg = LLMConfig()
        assert (cfg.provider_name, cfg.model_name) == ("ollama", "qwen2.5:7b")
        assert cfg.is_local and not cfg.requires_api_key

    @pytest.mark.parametrize("provider,name,model", [
        ("openai/gpt-4o-mini", "openai", "gpt-4o-mini"),
        ("ollama/qwen2.5:14b", "ollama", "qwen2.5:14b"),
        ("Groq/llama3-70b-8192", "groq", "llama3-70b-8192"),
    ])
    def test_split(self, provider, name, model):
        cfg = LLMConfig(provider=provider, api_token="k")
        assert cfg.provider_name == name
        assert cfg.model_name == model

    def test_bare_provider_gets_its_default_model(self):
        assert LLMConfig(provider="deepseek").model_name == DEFAULT_MODELS["deepseek"]

    def test_each_provider_has_a_base_url(self):
        for provider, url in PROVIDER_BASE_URLS.items():
            assert LLMConfig(provider=f"{provider}/m").base_url == url

    def test_presets(self):
        assert LLMPresets.local_fast().provider_name == "ollama"
        assert "mini" in LLMPresets.openai_fast().model_name
        assert "haiku" in LLMPresets.anthropic_fast().model_name
        assert LLMPresets.gemini_fast().provider_name == "gemini"


class TestTokens:

    def test_explicit(self):
        assert LLMConfig(provider="openai/gpt-4o", api_token="sk-1").resolved_api_token == "sk-1"

    def test_env_reference(self):
        with patch.dict(os.environ, {"SHOP_GROQ": "from-env"}):
            cfg = LLMConfig(provider="groq/llama3-70b-8192", api_token="env:SHOP_GROQ")
        assert cfg.resolved_api_token == "from-env"

    def test_provider_variable(self):
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "auto"}):
            assert LLMConfig(provider="anthropic").resolved_api_token == "auto"

    def test_cloud_without_key_is_invalid(self):
        assert PROVIDER_ENV_VARS["ollama"] is None
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="API token required"):
                LLMConfig(provider="openai/gpt-4o").validate()

    def test_to_dict_hides_the_token(self):
        d = LLMConfig(provider="openai/gpt-4o-mini", api_token="sk-secret").to_dict()
        assert d["has_api_token"] is True
        assert d["model_name"] == "gpt-4o-mini"
        assert "sk-secret" not in str(d)

    def test_from_env(self):
        env = {
            "THEMEFIT_LLM_PROVIDER": "groq/llama3-8b-8192",
            "GROQ_API_KEY": "gk",
            "THEMEFIT_TEMPERATURE": "0.1",
            "THEMEFIT_LLM_TIMEOUT": "15",
        }
        with patch.dict(os.environ, env):
            cfg = LLMConfig.from_env()
        assert cfg.model_name == "llama3-8b-8192"
        assert (cfg.temperature, cfg.timeout) == (0.1, 15)
        assert cfg.resolved_api_token == "gk"


class TestFactory:

    def test_ollama(self):
        llm = setup_llm(LLMConfig(provider="ollama/test-model"))
        assert isinstance(llm, SimpleOllama)
        assert llm.model == "test-model"
        assert llm.json_mode is True

    @pytest.mark.parametrize("provider", ["openai/gpt-4o-mini", "groq/llama3-70b-8192", "deepseek/deepseek-chat"])
    def test_chat_completion_providers(self, provider):
        llm = create_llm_client(LLMConfig(provider=provider, api_token="tok"))
        assert isinstance(llm, OpenAICompatibleClient)
        assert llm.base_url == PROVIDER_BASE_URLS[provider.split("/")[0]]

    def test_anthropic_and_gemini(self):
        anthropic = create_llm_client(LLMConfig(provider="anthropic", api_token="k"))
        gemini = create_llm_client(LLMConfig(provider="google/gemini-2.0-flash", api_token="k"))
        assert isinstance(anthropic, AnthropicClient)
        assert isinstance(gemini, GeminiClient)
        assert gemini.model == "gemini-2.0-flash"

    def test_missing_key_fails_before_any_request(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError):
                create_llm_client(LLMConfig(provider="openai/gpt-4o"))

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            create_llm_client(LLMConfig(provider="mystery/model"))

    def test_setup_llm_reads_environment(self):
        with patch.dict(os.environ, {"THEMEFIT_LLM_PROVIDER": "ollama/from-env"}):
            assert setup_llm().model == "from-env"


class TestRequests:

    def test_ollama_asks_for_json(self):
        llm = SimpleOllama("http://localhost:11434/", "m", 4096, 512, 0.2, 0.9)
        url, headers, body = llm.build_request("hi")
        assert url == "http://localhost:11434/api/generate"
        assert body["format"] == "json"
        assert body["stream"] is False
        assert body["options"]["num_ctx"] == 4096
        assert llm.extract_text({"response": "{}"}) == "{}"

    def test_chat_completions(self):
        llm = OpenAICompatibleClient("tok", system_prompt="be terse")
        url, headers, body = llm.build_request("hi")
        assert url.endswith("/chat/completions")
        assert headers["Authorization"] == "Bearer tok"
        assert [m["role"] for m in body["messages"]] == ["system", "user"]
        assert body["response_format"] == {"type": "json_object"}
        assert llm.extract_text({"choices": [{"message": {"content": "{\"a\": 1}"}}]}) == "{\"a\": 1}"
        assert llm.extract_text({}) == ""

    def test_anthropic_joins_text_blocks(self):
        llm = AnthropicClient("k")
        url, headers, _ = llm.build_request("hi")
        assert url == "https://api.anthropic.com/v1/messages"
        assert headers["x-api-key"] == "k"
        data = {"content": [{"type": "text", "text": "{\"a\""}, {"type": "text", "text": ": 1}"}]}
        assert llm.extract_text(data) == "{\"a\": 1}"

    def test_gemini(self):
        llm = GeminiClient("k", model="gemini-x")
        url, _, body = llm.build_request("hi")
        assert "/models/gemini-x:generateContent?key=k" in url
        assert body["generationConfig"]["responseMimeType"] == "application/json"
        assert llm.extract_text({"candidates": []}) == ""
        assert llm.extract_text({"candidates": [{"content": {"parts": [{"text": "{}"}]}}]}) == "{}"
