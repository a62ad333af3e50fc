#!/usr/bin/env python3
"""
Async LLM clients used by selector inference.

Every client exposes `await client.ainvoke(prompt) -> {"text": ...}`; the text
is expected to hold a JSON object.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import aiohttp

from .errors import InferenceError

logger = logging.getLogger(__name__)


class HTTPLLMClient:
    """One POST per prompt; subclasses describe the request and where the answer lives."""

    label = "LLM"

    def __init__(self, model: str, timeout: int = 60, json_mode: bool = True):
        self.model = model
        self.timeout = timeout
        self.json_mode = json_mode

    def build_request(self, prompt: str) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        raise NotImplementedError

    def extract_text(self, data: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def ainvoke(self, prompt: str) -> Dict[str, str]:
        url, headers, body = self.build_request(prompt)
        timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout_obj) as session:
            async with session.post(url, headers=headers, json=body) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise InferenceError(f"{self.label} error {resp.status}: {error_text}")
                data = await resp.json()
        if not isinstance(data, dict):
            return {"text": str(data)}
        return {"text": self.extract_text(data) or ""}


class SimpleOllama(HTTPLLMClient):
    """Local Ollama /api/generate, non-streaming"""

    label = "Ollama"

    def __init__(self, base_url: str, model: str, num_ctx: int, num_predict: int,
                 temperature: float, top_p: float, timeout: int = 300, json_mode: bool = True):
        super().__init__(model, timeout, json_mode)
        self.base_url = base_url.rstrip('/')
        self.options = {
            "num_ctx": num_ctx,
            "num_predict": num_predict,
            "temperature": temperature,
            "top_p": top_p,
        }

    def build_request(self, prompt: str):
        body: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": self.options,
        }
        if self.json_mode:
            body["format"] = "json"
        return f"{self.base_url}/api/generate", {}, body

    def extract_text(self, data):
        return data.get("response", "")


class OpenAICompatibleClient(HTTPLLMClient):
    """Chat completions; OpenAI, Groq and DeepSeek all speak it."""

    label = "Chat completions"

    def __init__(self, api_key: str, base_url: str = "https://api.openai.com/v1",
                 model: str = "gpt-4o-mini", temperature: float = 0.3, max_tokens: int = 2000,
                 timeout: int = 60, json_mode: bool = True, system_prompt: Optional[str] = None):
        super().__init__(model, timeout, json_mode)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    def build_request(self, prompt: str):
        messages = [{"role": "user", "content": prompt}]
        if self.system_prompt:
            messages.insert(0, {"role": "system", "content": self.system_prompt})
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.json_mode:
            body["response_format"] = {"type": "json_object"}
        headers = {"Authorization": f"Bearer {self.api_key}"}
        return f"{self.base_url}/chat/completions", headers, body

    def extract_text(self, data):
        choices = data.get("choices") or [{}]
        return choices[0].get("message", {}).get("content", "")


class AnthropicClient(HTTPLLMClient):
    """Anthropic messages API"""

    label = "Anthropic API"
    api_version = "2023-06-01"

    def __init__(self, api_key: str, model: str = "claude-3-haiku-20240307",
                 temperature: float = 0.3, max_tokens: int = 2000, timeout: int = 60,
                 base_url: str = "https://api.anthropic.com"):
        super().__init__(model, timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_request(self, prompt: str):
        headers = {"x-api-key": self.api_key, "anthropic-version": self.api_version}
        body = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        return f"{self.base_url}/v1/messages", headers, body

    def extract_text(self, data):
        blocks = data.get("content") or []
        return "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")


class GeminiClient(HTTPLLMClient):
    """Gemini generateContent with a JSON response mime type"""

    label = "Gemini API"

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash", temperature: float = 0.3,
                 max_tokens: int = 2000, timeout: int = 60,
                 base_url: str = "https://generativelanguage.googleapis.com/v1beta"):
        super().__init__(model, timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_request(self, prompt: str):
        url = f"{self.base_url}/models/{self.model}:generateContent?key={self.api_key}"
        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
                "responseMimeType": "application/json",
            },
        }
        return url, {}, body

    def extract_text(self, data):
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts") or []
        return parts[0].get("text", "") if parts else ""
