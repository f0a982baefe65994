from __future__ import annotations

import pytest

from codegen_core.loop import GenerationLoop, next_prompt
from codegen_core.schemas import Attempt, Session
from codegen_core.transcript import TRANSCRIPT_HEADER
from llm.prompts import PromptBuilder
from llm.providers import ScriptedProvider
from sandbox.executor import SandboxResult


class RecordingSandbox:
    """Stand-in sandbox returning canned logs in order."""

    def __init__(self, logs: list[str] | None = None, timed_out: bool = False) -> None:
        self.logs = list(logs or [])
        self.timed_out = timed_out
        self.calls: list[tuple[str, int | None]] = []

    def run(self, code: str, timeout_ms: int | None = None) -> SandboxResult:
        self.calls.append((code, timeout_ms))
        log = self.logs.pop(0) if self.logs else ""
        return SandboxResult(log=log, failed=self.timed_out, timed_out=self.timed_out)


def _fenced(body: str) -> str:
    return f"Here you go:\n```javascript\n{body}\n```"


def test_pass_on_first_attempt_short_circuits() -> None:
    provider = ScriptedProvider([_fenced("console.log(2 + 2)"), "Yes, it printed 4 as expected."])
    sandbox = RecordingSandbox(logs=["4"])
    loop = GenerationLoop(provider, sandbox, max_attempts=2, timeout_ms=1234)

    session = loop.run("print 2 + 2", api_key="sk-test")

    assert session.status == "passed"
    assert len(session.attempts) == 1
    assert session.final_result == "console.log(2 + 2)"
    assert len(provider.prompts) == 2
    assert sandbox.calls == [("console.log(2 + 2)", 1234)]
    assert provider.api_keys == ["sk-test", "sk-test"]


def test_retry_prompt_is_built_from_the_failed_attempt() -> None:
    provider = ScriptedProvider(
        [
            _fenced("console.log(add(2, 2))"),
            "No, add is not defined.",
            _fenced("const add = (a, b) => a + b;\nconsole.log(add(2, 2))"),
            "Yes.",
        ]
    )
    sandbox = RecordingSandbox(logs=["ReferenceError: add is not defined", "4"])
    loop = GenerationLoop(provider, sandbox, max_attempts=2)

    session = loop.run("add two numbers")

    expected = PromptBuilder().build_retry_prompt(
        "console.log(add(2, 2))",
        "ReferenceError: add is not defined",
        "add two numbers",
        "No, add is not defined.",
    )
    assert provider.prompts[2] == expected
    assert session.status == "passed"
    assert session.final_result == "const add = (a, b) => a + b;\nconsole.log(add(2, 2))"


def test_exhaustion_produces_transcript_with_every_attempt_in_order() -> None:
    provider = ScriptedProvider(
        [
            _fenced("console.log('one')"),
            "No, it crashed.",
            _fenced("console.log('two')"),
            "No, still wrong.",
        ]
    )
    sandbox = RecordingSandbox(logs=["one", ""])
    loop = GenerationLoop(provider, sandbox, max_attempts=2)

    session = loop.run("print three")

    assert session.status == "exhausted"
    result = session.final_result
    assert result is not None
    assert result.startswith(TRANSCRIPT_HEADER)
    assert result.count("Model response ") == 2
    assert result.count("Console logs from test run ") == 2
    assert result.count("Model evaluation of logs ") == 2
    assert "Model response 3" not in result
    assert result.index("No, it crashed.") < result.index("Model response 2:")
    assert result.index(_fenced("console.log('one')")) < result.index(_fenced("console.log('two')"))
    assert result.rstrip().endswith("No, still wrong.")


def test_model_failure_becomes_attempt_content() -> None:
    provider = ScriptedProvider([RuntimeError("service unavailable"), "No, nothing ran."])
    sandbox = RecordingSandbox(logs=["SyntaxError: Unexpected identifier"])
    loop = GenerationLoop(provider, sandbox, max_attempts=1)

    session = loop.run("print one")

    (attempt,) = session.attempts
    assert attempt.raw_model_output == "Failed to fetch data: RuntimeError: service unavailable"
    assert attempt.extracted_code == attempt.raw_model_output
    assert session.status == "exhausted"
    assert "Failed to fetch data" in (session.final_result or "")


def test_malformed_fence_runs_empty_candidate() -> None:
    provider = ScriptedProvider(["```javascript\nconsole.log(1)", "No output at all."])
    sandbox = RecordingSandbox(logs=[""])
    loop = GenerationLoop(provider, sandbox, max_attempts=1)

    session = loop.run("print one")

    assert sandbox.calls[0][0] == ""
    assert session.attempts[0].execution_log == ""
    assert session.status == "exhausted"


def test_timeout_is_recorded_on_the_attempt() -> None:
    provider = ScriptedProvider([_fenced("while (true) {}"), "No, it timed out."])
    sandbox = RecordingSandbox(logs=["Evaluation timed out after 10 ms"], timed_out=True)
    loop = GenerationLoop(provider, sandbox, max_attempts=1, timeout_ms=10)

    session = loop.run("loop forever")

    assert session.attempts[0].timed_out is True
    assert session.attempts[0].execution_log == "Evaluation timed out after 10 ms"


def test_on_attempt_callback_sees_every_attempt() -> None:
    provider = ScriptedProvider([_fenced("1"), "No.", _fenced("2"), "No.", _fenced("3"), "Yes."])
    sandbox = RecordingSandbox()
    seen: list[tuple[int, int]] = []

    def _record(attempt: Attempt, session: Session) -> None:
        seen.append((attempt.index, len(session.attempts)))

    loop = GenerationLoop(provider, sandbox, max_attempts=3, on_attempt=_record)
    session = loop.run("count")

    assert seen == [(1, 1), (2, 2), (3, 3)]
    assert session.final_result == "3"


def test_include_transcript_appends_details_to_passing_code() -> None:
    provider = ScriptedProvider([_fenced("console.log('ok')"), "Yes."])
    loop = GenerationLoop(provider, RecordingSandbox(logs=["ok"]), include_transcript=True)

    session = loop.run("say ok")

    assert session.final_result is not None
    assert session.final_result.startswith("console.log('ok')\n\n" + TRANSCRIPT_HEADER)


def test_next_prompt_only_depends_on_last_attempt() -> None:
    prompts = PromptBuilder()
    first = Attempt(
        index=1,
        raw_model_output="r1",
        extracted_code="c1",
        execution_log="l1",
        judgment_text="No 1",
        passed=False,
    )
    session = Session.start("intent", None, max_attempts=3).with_attempt(first)

    assert next_prompt(Session.start("intent", None, 3), prompts) == prompts.build_initial_prompt("intent")
    assert next_prompt(session, prompts) == prompts.build_retry_prompt("c1", "l1", "intent", "No 1")


def test_max_attempts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        GenerationLoop(ScriptedProvider([]), RecordingSandbox(), max_attempts=0)
