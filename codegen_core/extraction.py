"""Pull a runnable snippet out of a model's free-text answer."""

from __future__ import annotations

import re

CLOSING_FENCE = "```"


class CodeExtractor:
    """Locate the first fenced block tagged with the target language.

    Marker matching is case-insensitive for both the detection and the
    extraction step, so ```JavaScript and ```javascript behave the same.
    """

    language: str
    _opening: re.Pattern[str]

    def __init__(self, language: str = "javascript") -> None:
        self.language = language
        self._opening = re.compile(re.escape(CLOSING_FENCE + language), re.IGNORECASE)

    def needs_extraction(self, text: str) -> bool:
        return self._opening.search(text) is not None

    def extract(self, text: str) -> str:
        """Return the trimmed body of the fenced block, or "" when malformed."""
        match = self._opening.search(text)
        if match is None:
            return ""
        end = text.find(CLOSING_FENCE, match.end())
        if end == -1:
            return ""
        return text[match.end():end].strip()

    def extract_candidate(self, text: str) -> str:
        # Clean code without a fence is used exactly as returned.
        if self.needs_extraction(text):
            return self.extract(text)
        return text
