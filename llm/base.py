"""Base LLM provider interfaces and response schema."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)

FAILURE_PREFIX = "Failed to fetch data:"


def describe_failure(exc: BaseException) -> str:
    """Turn a model-service exception into the text recorded for the attempt.

    HTTP status errors read ``Failed to fetch data: 401 Unauthorized``;
    anything else falls back to the exception class and message.
    """
    response = getattr(exc, "response", None)
    status_code = getattr(exc, "status_code", None) or getattr(response, "status_code", None)
    if status_code is not None:
        reason = getattr(response, "reason_phrase", None) or str(exc)
        return f"{FAILURE_PREFIX} {status_code} {reason}".rstrip()
    return f"{FAILURE_PREFIX} {exc.__class__.__name__}: {exc}"


@dataclass(frozen=True)
class LLMResponse:
    text: str
    usage: dict[str, int]
    latency_ms: float
    model_id: str


def _empty_metrics() -> dict[str, float | int]:
    return {
        "calls": 0,
        "total_latency_ms": 0.0,
        "total_input_tokens": 0,
        "total_output_tokens": 0,
        "errors": 0,
    }


class BaseLLMProvider(ABC):
    """Abstract interface for LLM providers."""

    provider_id: str
    model_name: str
    temperature: float
    max_tokens: int | None

    def __init__(
        self,
        provider_id: str,
        model_name: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._metrics = _empty_metrics()

    @abstractmethod
    def generate(
        self,
        prompt: str,
        temperature: float,
        max_tokens: int | None = None,
        api_key: str | None = None,
    ) -> LLMResponse:
        """Generate a completion for the prompt."""

    @abstractmethod
    def get_provider_info(self) -> dict[str, object]:
        """Return metadata about the provider/model."""

    def complete(self, prompt: str, api_key: str | None = None) -> str:
        """Return the completion text, or a failure description if the call failed.

        Never raises for service-side failures: the description becomes the
        attempt's generated content.
        """
        self._metrics["calls"] += 1
        try:
            response = self.generate(
                prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                api_key=api_key,
            )
        except Exception as exc:  # noqa: BLE001 - service failures become content
            self._metrics["errors"] += 1
            description = describe_failure(exc)
            logger.error(f"{self.provider_id}: {description}")
            return description
        self._metrics["total_latency_ms"] += response.latency_ms
        self._metrics["total_input_tokens"] += response.usage.get("prompt_tokens", 0)
        self._metrics["total_output_tokens"] += response.usage.get("completion_tokens", 0)
        return response.text

    def get_metrics(self) -> dict[str, object]:
        """Get current metrics."""
        metrics: dict[str, object] = dict(self._metrics)
        calls = int(self._metrics["calls"])
        if calls > 0:
            metrics["avg_latency_ms"] = float(self._metrics["total_latency_ms"]) / calls
        else:
            metrics["avg_latency_ms"] = 0.0
        return metrics

    def reset_metrics(self) -> None:
        """Reset metrics."""
        self._metrics = _empty_metrics()
