from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from llm.prompts import PromptBuilder
from sandbox.executor import DEFAULT_TIMEOUT_MS, SandboxResult

from .extraction import CodeExtractor
from .judge import Judge, ModelClient
from .schemas import Attempt, Session

logger = logging.getLogger(__name__)


class SandboxHost(Protocol):
    def run(self, code: str, timeout_ms: int | None = None) -> SandboxResult:
        ...


class Phase(str, Enum):
    BUILDING_PROMPT = "building_prompt"
    GENERATING = "generating"
    EXTRACTING = "extracting"
    EXECUTING = "executing"
    JUDGING = "judging"
    PASSED = "passed"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


AttemptCallback = Callable[[Attempt, Session], None]


def next_prompt(session: Session, prompts: PromptBuilder) -> str:
    """Prompt for the next attempt, built only from the most recent attempt."""
    last = session.last_attempt
    if last is None:
        return prompts.build_initial_prompt(session.user_prompt)
    return prompts.build_retry_prompt(
        last.extracted_code,
        last.execution_log,
        session.user_prompt,
        last.judgment_text,
    )


class GenerationLoop:
    """Drive generate -> execute -> judge -> retry for one request.

    Attempts run strictly one after another; a pass stops the loop before
    the next attempt is started.
    """

    def __init__(
        self,
        client: ModelClient,
        sandbox: SandboxHost,
        max_attempts: int = 2,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        prompts: PromptBuilder | None = None,
        extractor: CodeExtractor | None = None,
        judge: Judge | None = None,
        include_transcript: bool = False,
        on_attempt: AttemptCallback | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client: ModelClient = client
        self.sandbox: SandboxHost = sandbox
        self.max_attempts: int = max_attempts
        self.timeout_ms: int = timeout_ms
        self.prompts: PromptBuilder = prompts or PromptBuilder()
        self.extractor: CodeExtractor = extractor or CodeExtractor()
        self.judge: Judge = judge or Judge(client, self.prompts)
        self.include_transcript: bool = include_transcript
        self.on_attempt: AttemptCallback | None = on_attempt

    def run(self, user_prompt: str, api_key: str | None = None) -> Session:
        session = Session.start(user_prompt, api_key, self.max_attempts)
        while not session.is_finished:
            attempt = self.run_attempt(session)
            session = session.with_attempt(attempt)
            if self.on_attempt is not None:
                self.on_attempt(attempt, session)
            if attempt.passed:
                self._enter(attempt.index, Phase.PASSED)
            elif session.is_finished:
                self._enter(attempt.index, Phase.EXHAUSTED)
            else:
                self._enter(attempt.index, Phase.RETRYING)
        session = session.finalize(include_transcript=self.include_transcript)
        logger.info(
            f"Session {session.status} after {len(session.attempts)}/{session.max_attempts} attempt(s)"
        )
        return session

    def run_attempt(self, session: Session) -> Attempt:
        index = session.next_index

        self._enter(index, Phase.BUILDING_PROMPT)
        prompt = next_prompt(session, self.prompts)

        self._enter(index, Phase.GENERATING)
        raw_output = self.client.complete(prompt, session.api_key)

        self._enter(index, Phase.EXTRACTING)
        code = self.extractor.extract_candidate(raw_output)
        if not code:
            logger.warning(f"Attempt {index}: no runnable code found in model output")

        self._enter(index, Phase.EXECUTING)
        result = self.sandbox.run(code, self.timeout_ms)

        self._enter(index, Phase.JUDGING)
        judgment = self.judge.judge(code, result.log, session.user_prompt, session.api_key)
        passed = self.judge.is_passing(judgment)

        return Attempt(
            index=index,
            raw_model_output=raw_output,
            extracted_code=code,
            execution_log=result.log,
            judgment_text=judgment,
            passed=passed,
            timed_out=result.timed_out,
            runtime_ms=result.runtime_ms,
        )

    def _enter(self, index: int, phase: Phase) -> None:
        logger.debug(f"Attempt {index}/{self.max_attempts}: {phase.value}")
