"""Diagnostic transcript returned when no attempt passes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import Attempt

TRANSCRIPT_HEADER = "Unable to generate properly working code. Debugging details:"
JUDGE_QUESTION = "Based on the following logs, does this code look like it ran properly?"


def render_attempt(attempt: "Attempt") -> str:
    number = attempt.index
    return (
        f"Model response {number}:\n{attempt.raw_model_output}"
        f"\n\nConsole logs from test run {number}:\n{attempt.execution_log}"
        f"\n\nModel evaluation of logs {number}: "
        f"\n\n{JUDGE_QUESTION}\n\n{attempt.judgment_text}"
    )


def render_transcript(attempts: Sequence["Attempt"]) -> str:
    blocks = [TRANSCRIPT_HEADER]
    blocks.extend(render_attempt(attempt) for attempt in attempts)
    return "\n\n".join(blocks)
