import pytest
from pydantic import ValidationError

from codegen_core.schemas import Attempt, LLMProviderConfig, Session
from codegen_core.transcript import TRANSCRIPT_HEADER


def _attempt(index: int, passed: bool, code: str = "console.log(1)") -> Attempt:
    return Attempt(
        index=index,
        raw_model_output=f"raw {index}",
        extracted_code=code,
        execution_log=f"log {index}",
        judgment_text="Yes" if passed else "No",
        passed=passed,
    )


def test_attempt_round_trips_through_json() -> None:
    attempt = _attempt(1, passed=True)

    restored = Attempt.from_json(attempt.to_json())

    assert restored == attempt


def test_attempt_is_immutable() -> None:
    attempt = _attempt(1, passed=False)

    with pytest.raises(ValidationError):
        attempt.passed = True  # type: ignore[misc]


def test_attempt_index_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        _attempt(0, passed=False)


def test_with_attempt_returns_new_session() -> None:
    session = Session.start("print one", "sk-test", max_attempts=2)

    updated = session.with_attempt(_attempt(1, passed=False))

    assert session.attempts == ()
    assert len(updated.attempts) == 1
    assert updated.status == "running"
    assert updated.next_index == 2


def test_session_stops_accepting_attempts_after_a_pass() -> None:
    session = Session.start("print one", None, max_attempts=3).with_attempt(_attempt(1, passed=True))

    assert session.status == "passed"
    with pytest.raises(ValueError):
        session.with_attempt(_attempt(2, passed=False))


def test_session_never_exceeds_max_attempts() -> None:
    session = Session.start("print one", None, max_attempts=1).with_attempt(_attempt(1, passed=False))

    assert session.status == "exhausted"
    with pytest.raises(ValueError):
        session.with_attempt(_attempt(2, passed=False))


def test_attempts_must_arrive_in_order() -> None:
    session = Session.start("print one", None, max_attempts=3)

    with pytest.raises(ValueError, match="Expected attempt 1"):
        session.with_attempt(_attempt(2, passed=False))


def test_finalize_passing_session_returns_code() -> None:
    session = (
        Session.start("print one", None, max_attempts=2)
        .with_attempt(_attempt(1, passed=True, code="console.log('ok')"))
        .finalize()
    )

    assert session.final_result == "console.log('ok')"


def test_finalize_passing_session_can_append_transcript() -> None:
    session = (
        Session.start("print one", None, max_attempts=2)
        .with_attempt(_attempt(1, passed=True, code="console.log('ok')"))
        .finalize(include_transcript=True)
    )

    assert session.final_result is not None
    assert session.final_result.startswith("console.log('ok')\n\n" + TRANSCRIPT_HEADER)


def test_finalize_exhausted_session_returns_transcript() -> None:
    session = (
        Session.start("print one", None, max_attempts=2)
        .with_attempt(_attempt(1, passed=False))
        .with_attempt(_attempt(2, passed=False))
        .finalize()
    )

    assert session.final_result is not None
    assert session.final_result.startswith(TRANSCRIPT_HEADER)
    assert "raw 1" in session.final_result
    assert "raw 2" in session.final_result


def test_finalize_running_session_is_rejected() -> None:
    with pytest.raises(ValueError):
        Session.start("print one", None, max_attempts=2).finalize()


def test_api_key_is_not_serialized() -> None:
    session = Session.start("print one", "sk-secret", max_attempts=1)

    assert "sk-secret" not in session.to_json()
    assert "sk-secret" not in repr(session)
    assert session.api_key == "sk-secret"


def test_session_carries_only_its_request_state() -> None:
    session = Session.start("print one", None, max_attempts=1)

    assert set(session.to_dict()) == {"user_prompt", "max_attempts", "attempts", "final_result"}


def test_llm_provider_config_defaults() -> None:
    config = LLMProviderConfig()

    assert config.model_name == "gpt-3.5-turbo"
    assert config.temperature == 0.7
    assert config.max_tokens is None
