import os
from typing import Any, Optional

from openai import OpenAI

from adapters.base import BaseLLM
from adapters.utils import (
    create_session_with_pooling,
    post_json,
    require_key,
    translate_openai_errors,
)
from errors import ProviderResponseError, ProviderUnavailableError

DEFAULT_TEMPERATURE = 0.0
DEFAULT_LLM_TIMEOUT = 60.0


class OpenAILLM(BaseLLM):
    """OpenAI chat-completion provider."""

    provider = "openai"

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = None,
        timeout: float = DEFAULT_LLM_TIMEOUT,
        max_retries: int = 0,
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        api_key = kwargs.pop("api_key", None) or os.environ.get("OPENAI_API_KEY")
        base_url = kwargs.pop("base_url", None)
        if not api_key:
            raise ProviderUnavailableError(
                "OPENAI_API_KEY is not configured", provider=self.provider
            )

        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=min(max_retries, 1),
        )
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _get_completion_params(
        self, messages: list[dict[str, str]], **kwargs: Any
    ) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": kwargs.get("temperature", self.temperature),
            "max_tokens": kwargs.get("max_tokens", self.max_tokens),
        }

    def _complete(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        with translate_openai_errors(self.provider):
            response = self.client.chat.completions.create(
                **self._get_completion_params(messages, **kwargs)
            )
        if not response.choices:
            raise ProviderResponseError(
                "openai returned no choices", provider=self.provider
            )
        return response.choices[0].message.content or ""

    def generate(self, prompt: str, **kwargs: Any) -> str:
        return self._complete([{"role": "user", "content": prompt}], **kwargs)

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        return self._complete(messages, **kwargs)


class OllamaLLM(BaseLLM):
    """Ollama local LLM provider with connection pooling."""

    provider = "ollama"

    def __init__(
        self,
        model: str = "llama3.2:3b",
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: Optional[int] = None,
        base_url: str = "http://localhost:11434",
        timeout: float = DEFAULT_LLM_TIMEOUT,
        max_retries: int = 0,
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = float(timeout)
        self.session = create_session_with_pooling(max_retries=max_retries)

    def _build_payload(self, **kwargs: Any) -> dict[str, Any]:
        options: dict[str, Any] = {
            "temperature": kwargs.get("temperature", self.temperature)
        }
        max_tokens = kwargs.get("max_tokens", self.max_tokens)
        if max_tokens:
            options["num_predict"] = max_tokens
        return {"model": self.model, "stream": False, "options": options}

    def generate(self, prompt: str, **kwargs: Any) -> str:
        payload = self._build_payload(**kwargs)
        payload["prompt"] = prompt

        data = post_json(
            self.session,
            f"{self.base_url}/api/generate",
            payload,
            provider=self.provider,
            timeout=self.timeout,
        )
        return str(require_key(data, "response", self.provider))

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        payload = self._build_payload(**kwargs)
        payload["messages"] = messages

        data = post_json(
            self.session,
            f"{self.base_url}/api/chat",
            payload,
            provider=self.provider,
            timeout=self.timeout,
        )
        message = require_key(data, "message", self.provider)
        if not isinstance(message, dict) or "content" not in message:
            raise ProviderResponseError(
                "ollama chat response has no message content", provider=self.provider
            )
        return str(message["content"])
