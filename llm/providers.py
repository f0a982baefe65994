"""LLM provider implementations."""

from __future__ import annotations

import importlib
import os
import time
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol, cast

from codegen_core.schemas import LLMProviderConfig

from .base import BaseLLMProvider, LLMResponse
from .retry import RetryPolicy


class _ChatCompletions(Protocol):
    def create(self, **kwargs: Any) -> object: ...


class _Chat(Protocol):
    completions: _ChatCompletions


class _OpenAIClient(Protocol):
    chat: _Chat

    def close(self) -> None: ...


def _load_openai_client(
    api_key: str | None,
    base_url: str | None,
    timeout_seconds: int,
) -> _OpenAIClient:
    try:
        module = importlib.import_module("openai")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dependency at runtime
        raise ImportError("openai is required to use OpenAIProvider") from exc
    openai_client = getattr(module, "OpenAI", None)
    if openai_client is None:
        raise ImportError("openai.OpenAI client is unavailable")
    return cast(
        _OpenAIClient,
        openai_client(api_key=api_key, base_url=base_url, timeout=timeout_seconds),
    )


def _extract_usage(raw_usage: object) -> dict[str, int]:
    if raw_usage is None:
        return {}
    model_dump = getattr(raw_usage, "model_dump", None)
    if callable(model_dump):
        raw_usage = model_dump()
    if not isinstance(raw_usage, Mapping):
        return {}
    usage: dict[str, int] = {}
    for key, value in cast(Mapping[str, object], raw_usage).items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            usage[key] = int(value)
    return usage


def _extract_text(response: object) -> str:
    if response is None:
        return ""
    choices = cast(Sequence[object] | None, getattr(response, "choices", None))
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None) if message is not None else None
    return str(content) if content is not None else ""


def _api_key_from_env(provider_type: str) -> str | None:
    if provider_type == "deepseek":
        return os.getenv("DEEPSEEK_API_KEY") or os.getenv("OPENAI_API_KEY")
    return os.getenv("OPENAI_API_KEY")


class OpenAIProvider(BaseLLMProvider):
    """OpenAI-compatible chat completion provider (OpenAI, DeepSeek, GLM).

    A per-call ``api_key`` gets its own client, closed once the request
    finishes, so one provider instance can serve a request-supplied
    credential. The default client is built lazily from the configured key
    or the environment.
    """

    provider_type: str
    _default_api_key: str | None
    _default_client: _OpenAIClient | None
    _base_url: str | None
    _timeout_seconds: int
    _retry_policy: RetryPolicy | None

    def __init__(
        self,
        provider_id: str,
        model_name: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: int = 60,
        retry_policy: RetryPolicy | None = None,
        provider_type: str = "openai",
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> None:
        super().__init__(
            provider_id=provider_id,
            model_name=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        self.provider_type = provider_type
        self._default_api_key = api_key or _api_key_from_env(provider_type)
        self._default_client = None
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds
        self._retry_policy = retry_policy

    def _default(self) -> _OpenAIClient:
        if self._default_client is None:
            self._default_client = _load_openai_client(
                self._default_api_key, self._base_url, self._timeout_seconds
            )
        return self._default_client

    def generate(  # pyright: ignore[reportImplicitOverride]
        self,
        prompt: str,
        temperature: float,
        max_tokens: int | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        request: dict[str, object] = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if max_tokens is not None:
            request["max_tokens"] = max_tokens

        if not api_key:
            return self._request(self._default(), request)
        client = _load_openai_client(api_key, self._base_url, self._timeout_seconds)
        try:
            return self._request(client, request)
        finally:
            client.close()

    def _request(self, client: _OpenAIClient, request: dict[str, object]) -> LLMResponse:
        def _call() -> object:
            return client.chat.completions.create(**request)

        start = time.perf_counter()
        if self._retry_policy is None:
            response = _call()
        else:
            response = self._retry_policy.execute(_call)
        latency_ms = (time.perf_counter() - start) * 1000

        return LLMResponse(
            text=_extract_text(response),
            usage=_extract_usage(getattr(response, "usage", None)),
            latency_ms=latency_ms,
            model_id=str(getattr(response, "model", None) or self.model_name),
        )

    def get_provider_info(self) -> dict[str, object]:  # pyright: ignore[reportImplicitOverride]
        return {
            "provider_id": self.provider_id,
            "provider_type": self.provider_type,
            "model_name": self.model_name,
            "base_url": self._base_url,
            "timeout_seconds": self._timeout_seconds,
            "temperature": self.temperature,
        }


DEMO_SOLUTION = (
    "Here is a small function with a built-in check:\n\n"
    "```javascript\n"
    "function add(a, b) {\n"
    "  return a + b;\n"
    "}\n"
    "console.log('add(2, 2) =', add(2, 2));\n"
    "```"
)

DEMO_JUDGMENT = "Yes. The logs show the self-test printed the expected value."


class FakeProvider(BaseLLMProvider):
    """Deterministic offline provider: always writes the same snippet and approves it."""

    call_count: int

    def __init__(self, provider_id: str, model_name: str = "fake-model") -> None:
        super().__init__(provider_id=provider_id, model_name=model_name)
        self.call_count = 0

    def generate(  # pyright: ignore[reportImplicitOverride]
        self,
        prompt: str,
        temperature: float,
        max_tokens: int | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        self.call_count += 1
        text = DEMO_JUDGMENT if prompt.startswith("Here is the code:") else DEMO_SOLUTION
        usage = {
            "prompt_tokens": len(prompt.split()),
            "completion_tokens": len(text.split()),
            "total_tokens": len(prompt.split()) + len(text.split()),
        }
        return LLMResponse(
            text=text,
            usage=usage,
            latency_ms=0.0,
            model_id=self.model_name,
        )

    def get_provider_info(self) -> dict[str, object]:  # pyright: ignore[reportImplicitOverride]
        return {
            "provider_id": self.provider_id,
            "provider_type": "fake",
            "model_name": self.model_name,
        }


class ScriptedProvider(BaseLLMProvider):
    """Replays queued responses in order and records every prompt it receives.

    A queued ``Exception`` instance is raised instead of returned, which
    exercises the failure-to-text conversion in ``complete``.
    """

    prompts: list[str]
    api_keys: list[str | None]

    def __init__(
        self,
        responses: Iterable[str | Exception],
        provider_id: str = "scripted",
        model_name: str = "scripted-model",
    ) -> None:
        super().__init__(provider_id=provider_id, model_name=model_name)
        self._responses: deque[str | Exception] = deque(responses)
        self.prompts = []
        self.api_keys = []

    def generate(  # pyright: ignore[reportImplicitOverride]
        self,
        prompt: str,
        temperature: float,
        max_tokens: int | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        self.prompts.append(prompt)
        self.api_keys.append(api_key)
        if not self._responses:
            raise RuntimeError("ScriptedProvider ran out of responses")
        item = self._responses.popleft()
        if isinstance(item, Exception):
            raise item
        return LLMResponse(
            text=item,
            usage={},
            latency_ms=0.0,
            model_id=self.model_name,
        )

    def get_provider_info(self) -> dict[str, object]:  # pyright: ignore[reportImplicitOverride]
        return {
            "provider_id": self.provider_id,
            "provider_type": "scripted",
            "model_name": self.model_name,
            "remaining": len(self._responses),
        }


def create_provider(
    config: LLMProviderConfig,
    retry_policy: RetryPolicy | None = None,
) -> BaseLLMProvider:
    provider_type = config.provider_type.lower()
    if provider_type in {"openai", "deepseek", "glm"}:
        policy = retry_policy or RetryPolicy(max_retries=config.max_retries)
        return OpenAIProvider(
            provider_id=config.provider_id,
            model_name=config.model_name,
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
            retry_policy=policy,
            provider_type=provider_type,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
    if provider_type == "fake":
        return FakeProvider(provider_id=config.provider_id, model_name=config.model_name)
    raise ValueError(f"Unsupported provider type: {config.provider_type}")
