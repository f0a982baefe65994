"""Prompt templates for generating, judging and correcting candidates."""

from __future__ import annotations

NO_LOG_PLACEHOLDER = "[no console log output was produced]"


def _log_or_placeholder(log: str) -> str:
    return log if log else NO_LOG_PLACEHOLDER


class PromptBuilder:
    """Builds every prompt sent to the model during a session.

    All methods are pure: the same arguments always give the same text.
    """

    language_name: str

    def __init__(self, language_name: str = "JavaScript") -> None:
        self.language_name = language_name

    def _instruction(self) -> str:
        return (
            f"Furthermore, could you make sure that this is actually done in {self.language_name} instead, "
            "with a simple test in the code itself using console.log statements?"
        )

    def build_initial_prompt(self, user_prompt: str) -> str:
        return f"{user_prompt} {self._instruction()}"

    def build_retry_prompt(
        self,
        code: str,
        log: str,
        user_prompt: str,
        judgment_text: str,
    ) -> str:
        return "\n\n".join(
            [
                f"There is a problem with this code:\n{code}",
                f"Note that it should be doing exactly what the user wanted, which was '{user_prompt}'. "
                "Based on the following logs, the code didn't look like it ran properly: "
                f"Console logs:\n{_log_or_placeholder(log)}",
                f'It was explained to me that "{judgment_text}". '
                "Could you write a corrected version of this code?",
            ]
        )

    def build_judge_prompt(self, code: str, log: str, user_prompt: str) -> str:
        return "\n\n".join(
            [
                f"Here is the code: {code}",
                f"Note that it should be doing exactly what the user wanted, which was '{user_prompt}'. "
                "Based on the following logs, does this code look like it ran properly? "
                f"Console logs:\n{_log_or_placeholder(log)}\n[end of logs]",
                "IMPORTANT: Please include the word yes, or no, in your response for clarity, "
                "and explain why.",
            ]
        )
