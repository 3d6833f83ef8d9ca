"""
Text-generation backends behind the oracle.

Every provider returns ``(text, usage)``; ``text`` is ``None`` when the backend produced
nothing usable, and ``usage["reason"]`` says why. Transport failures raise httpx errors.
"""
from abc import ABC, abstractmethod
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx

from mcq_engine.core.resilience import BreakerRegistry, retry_with_backoff
from mcq_engine.core.settings import settings


def _estimate_tokens(text: str) -> int:
    # Rough chars/4 estimate; providers disagree on usage reporting.
    return max(1, len((text or "").strip()) // 4)


class BaseLLMProvider(ABC):
    provider_name: str

    @abstractmethod
    async def generate(self, prompt: str) -> tuple[str | None, dict]:
        raise NotImplementedError


class _HttpLLMProvider(BaseLLMProvider):
    api_key_setting: str | None = None

    def __init__(self, model_name: str, role: str | None = None, breakers: BreakerRegistry | None = None):
        self.model_name = model_name
        self.role = role or "mcq_engine"
        self.breakers = breakers or BreakerRegistry()

    def _meta(self, **extra) -> dict:
        return {"provider": self.provider_name, "model": self.model_name, "role": self.role, **extra}

    @abstractmethod
    def _request(self, prompt: str) -> tuple[str, dict, dict]:
        """Return ``(url, json_body, headers)`` for one completion call."""

    @abstractmethod
    def _extract_text(self, body: dict) -> str | None:
        """Pull the completion text out of the provider's JSON reply."""

    async def _post(self, prompt: str) -> tuple[str | None, dict]:
        url, payload, headers = self._request(prompt)
        async with httpx.AsyncClient(timeout=settings.oracle_timeout_seconds) as client:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            try:
                body = response.json()
            except ValueError:
                return None, self._meta(reason="invalid_json_body", status_code=response.status_code)
        if not isinstance(body, dict):
            return None, self._meta(reason="unexpected_body")
        text = (self._extract_text(body) or "").strip()
        if not text:
            return None, self._meta(reason="empty_completion")
        return text, self._meta(
            prompt_tokens_estimate=_estimate_tokens(prompt),
            completion_tokens_estimate=_estimate_tokens(text),
        )

    async def generate(self, prompt: str) -> tuple[str | None, dict]:
        if self.api_key_setting and not getattr(settings, self.api_key_setting):
            return None, self._meta(reason="missing_api_key")
        breaker = self.breakers.for_provider(self.provider_name, self.model_name, self.role)
        if not breaker.allow():
            return None, self._meta(reason="circuit_open")

        try:
            result = await retry_with_backoff(lambda: self._post(prompt))
        except Exception:
            breaker.failed()
            raise
        breaker.succeeded()
        return result


class OpenAILLMProvider(_HttpLLMProvider):
    """OpenAI-compatible ``/chat/completions`` endpoint."""

    provider_name = "openai"
    api_key_setting = "openai_api_key"

    def _request(self, prompt: str) -> tuple[str, dict, dict]:
        payload = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": settings.llm_temperature,
            "max_tokens": settings.llm_max_output_tokens,
            "response_format": {"type": "json_object"},
        }
        url = f"{settings.openai_base_url.rstrip('/')}/chat/completions"
        return url, payload, {"Authorization": f"Bearer {settings.openai_api_key}"}

    def _extract_text(self, body: dict) -> str | None:
        choices = body.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")


class GeminiLLMProvider(_HttpLLMProvider):
    provider_name = "gemini"
    api_key_setting = "gemini_api_key"

    @staticmethod
    def _strip_key_param(raw_url: str) -> str:
        # The key travels in a header; never leave it in a URL that may be logged.
        parsed = urlparse(raw_url)
        if not parsed.query:
            return raw_url
        kept = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k.lower() != "key"]
        return urlunparse(parsed._replace(query=urlencode(kept)))

    def _request(self, prompt: str) -> tuple[str, dict, dict]:
        url = settings.gemini_api_url.strip() or (
            f"https://generativelanguage.googleapis.com/v1beta/models/{self.model_name}:generateContent"
        )
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": settings.llm_temperature,
                "maxOutputTokens": settings.llm_max_output_tokens,
                "responseMimeType": "application/json",
            },
        }
        return self._strip_key_param(url), payload, {"x-goog-api-key": settings.gemini_api_key}

    def _extract_text(self, body: dict) -> str | None:
        candidates = body.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "\n".join(p.get("text", "") for p in parts if isinstance(p, dict))


class OllamaLLMProvider(_HttpLLMProvider):
    provider_name = "ollama"

    def _request(self, prompt: str) -> tuple[str, dict, dict]:
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": settings.llm_temperature},
        }
        return f"{settings.ollama_base_url.rstrip('/')}/api/generate", payload, {}

    def _extract_text(self, body: dict) -> str | None:
        return body.get("response")


class NullLLMProvider(BaseLLMProvider):
    """Used when no provider is configured; every exchange comes back empty."""

    provider_name = "none"

    async def generate(self, prompt: str) -> tuple[str | None, dict]:
        return None, {"provider": self.provider_name, "reason": "no_provider_configured"}


_PROVIDERS = {
    "openai": (OpenAILLMProvider, "llm_model"),
    "gemini": (GeminiLLMProvider, "gemini_model"),
    "ollama": (OllamaLLMProvider, "ollama_model"),
}


def get_llm_provider(role: str | None = None, breakers: BreakerRegistry | None = None) -> BaseLLMProvider:
    entry = _PROVIDERS.get((settings.llm_provider or "").strip().lower())
    if entry is None:
        return NullLLMProvider()
    provider_cls, model_setting = entry
    return provider_cls(model_name=getattr(settings, model_setting), role=role, breakers=breakers)
