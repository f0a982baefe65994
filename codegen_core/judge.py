"""Ask the model whether a candidate's captured output satisfies the request."""

from __future__ import annotations

from typing import Protocol

from llm.prompts import PromptBuilder


class ModelClient(Protocol):
    def complete(self, prompt: str, api_key: str | None = None) -> str:
        ...


def is_passing(judgment_text: str) -> bool:
    """True iff the verdict contains "yes" anywhere, case-insensitively.

    Deliberately crude: there is no negation handling, so "yes, but it
    failed" counts as a pass and a verdict without "yes" counts as a fail.
    """
    return "yes" in judgment_text.lower()


class Judge:
    client: ModelClient
    prompts: PromptBuilder

    def __init__(self, client: ModelClient, prompts: PromptBuilder | None = None) -> None:
        self.client = client
        self.prompts = prompts or PromptBuilder()

    def judge(self, code: str, log: str, user_prompt: str, api_key: str | None = None) -> str:
        prompt = self.prompts.build_judge_prompt(code, log, user_prompt)
        return self.client.complete(prompt, api_key)

    is_passing = staticmethod(is_passing)
