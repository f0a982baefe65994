"""Inbound request boundary: ``{apiKey, prompt}`` in, ``{code}`` out."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import AliasChoices, Field, ValidationError

from codegen_core.loop import AttemptCallback, GenerationLoop, SandboxHost
from codegen_core.schemas import BaseSchema, Session
from llm.base import BaseLLMProvider
from llm.providers import create_provider
from sandbox.executor import SandboxRunner

from .config import ServiceConfig

logger = logging.getLogger(__name__)


class GenerateRequest(BaseSchema):
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("apiKey", "api_key"),
        repr=False,
    )
    prompt: str = Field(min_length=1, validation_alias=AliasChoices("prompt", "userPrompt"))


class GenerateResponse(BaseSchema):
    code: str


def build_loop(
    config: ServiceConfig,
    provider: BaseLLMProvider | None = None,
    sandbox: SandboxHost | None = None,
    on_attempt: AttemptCallback | None = None,
) -> GenerationLoop:
    provider = provider or create_provider(config.llm)
    sandbox = sandbox or SandboxRunner(
        node_binary=config.node_binary,
        timeout_ms=config.sandbox_timeout_ms,
        memory_limit_mb=config.sandbox_memory_limit_mb,
    )
    return GenerationLoop(
        client=provider,
        sandbox=sandbox,
        max_attempts=config.max_attempts,
        timeout_ms=config.sandbox_timeout_ms,
        include_transcript=config.include_transcript,
        on_attempt=on_attempt,
    )


def run_session(
    request: GenerateRequest,
    config: ServiceConfig,
    provider: BaseLLMProvider | None = None,
    sandbox: SandboxHost | None = None,
    on_attempt: AttemptCallback | None = None,
) -> Session:
    loop = build_loop(config, provider=provider, sandbox=sandbox, on_attempt=on_attempt)
    return loop.run(request.prompt, request.api_key)


def handle_generate(
    payload: Mapping[str, object],
    config: ServiceConfig,
    provider: BaseLLMProvider | None = None,
    sandbox: SandboxHost | None = None,
) -> dict[str, object]:
    """Answer one generate request.

    Generation failures are reported in ``code`` (the transcript), never as
    an exception. Only a malformed request raises ``ValueError``.
    """
    try:
        request = GenerateRequest.from_dict(payload)
    except ValidationError as e:
        raise ValueError(f"Invalid generate request: {e}") from e

    session = run_session(request, config, provider=provider, sandbox=sandbox)
    if session.status != "passed":
        logger.warning(f"No passing candidate after {len(session.attempts)} attempt(s)")
    return GenerateResponse(code=session.final_result or "").to_dict()
