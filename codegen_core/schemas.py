from __future__ import annotations

from collections.abc import Mapping
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .transcript import render_transcript


TBaseSchema = TypeVar("TBaseSchema", bound="BaseSchema")

SessionStatus = Literal["running", "passed", "exhausted"]


class BaseSchema(BaseModel):
    def to_json(self) -> str:
        return self.model_dump_json()

    def to_dict(self) -> dict[str, object]:
        return self.model_dump()

    @classmethod
    def from_json(cls: type[TBaseSchema], data: str) -> TBaseSchema:
        return cls.model_validate_json(data)

    @classmethod
    def from_dict(cls: type[TBaseSchema], data: Mapping[str, object]) -> TBaseSchema:
        return cls.model_validate(data)


class Attempt(BaseSchema):
    """One generate/execute/judge cycle. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)
    raw_model_output: str
    extracted_code: str
    execution_log: str
    judgment_text: str
    passed: bool
    timed_out: bool = False
    runtime_ms: float | None = None


class Session(BaseSchema):
    """Bounded sequence of attempts for a single request.

    Sessions never mutate: every transition returns a new ``Session``.
    """

    model_config = ConfigDict(frozen=True)

    user_prompt: str
    api_key: str | None = Field(default=None, exclude=True, repr=False)
    max_attempts: int = Field(ge=1)
    attempts: tuple[Attempt, ...] = ()
    final_result: str | None = None

    @classmethod
    def start(cls, user_prompt: str, api_key: str | None, max_attempts: int) -> "Session":
        return cls(user_prompt=user_prompt, api_key=api_key, max_attempts=max_attempts)

    @property
    def passed(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].passed

    @property
    def is_finished(self) -> bool:
        return self.passed or len(self.attempts) >= self.max_attempts

    @property
    def status(self) -> SessionStatus:
        if self.passed:
            return "passed"
        if self.is_finished:
            return "exhausted"
        return "running"

    @property
    def next_index(self) -> int:
        return len(self.attempts) + 1

    @property
    def last_attempt(self) -> Attempt | None:
        return self.attempts[-1] if self.attempts else None

    def with_attempt(self, attempt: Attempt) -> "Session":
        if self.is_finished:
            raise ValueError(
                f"Session already {self.status}; cannot record attempt {attempt.index}"
            )
        if attempt.index != self.next_index:
            raise ValueError(
                f"Expected attempt {self.next_index}, got attempt {attempt.index}"
            )
        return self.model_copy(update={"attempts": self.attempts + (attempt,)})

    def finalize(self, include_transcript: bool = False) -> "Session":
        """Fill ``final_result``: passing code, or the transcript of every attempt."""
        if not self.is_finished:
            raise ValueError("Cannot finalize a session that is still running")
        transcript = render_transcript(self.attempts)
        last = self.attempts[-1]
        if not last.passed:
            result = transcript
        elif include_transcript:
            result = last.extracted_code + "\n\n" + transcript
        else:
            result = last.extracted_code
        return self.model_copy(update={"final_result": result})


class LLMProviderConfig(BaseSchema):
    model_config = ConfigDict(protected_namespaces=())

    provider_id: str = "default"
    provider_type: str = "openai"
    base_url: str | None = None
    model_name: str = "gpt-3.5-turbo"
    api_key: str | None = Field(default=None, repr=False)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int | None = None
    max_retries: int = Field(default=2, ge=0)
    timeout_seconds: int = Field(default=60, gt=0)
