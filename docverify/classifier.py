"""Expectation inference for extracted snippets."""

from __future__ import annotations

from typing import Iterable

from .logging import get_logger
from .models import Expectation, Ignore, MustFail, MustProduceOutput, MustTypecheck, Snippet

EXPECT_ERROR = "expect-error"
EXPECT_OUTPUT = "expect-output"
SKIP = "skip"


class ExpectationClassifier:
    """Maps a snippet to exactly one expectation.

    An explicit directive always wins; otherwise snippets tagged with the
    target language (or one of its aliases) must type-check and everything
    else is ignored. Unknown directive keywords never fail the run: the
    snippet is ignored and a warning is attached to the expectation.
    """

    def __init__(self, target_tag: str, aliases: Iterable[str] = ()) -> None:
        self.target_tag = target_tag
        self._tags = {target_tag.lower(), *(alias.lower() for alias in aliases)}
        self.logger = get_logger("classifier")

    def matches_target(self, language: str) -> bool:
        return language.lower() in self._tags

    def classify(self, snippet: Snippet) -> Expectation:
        directive = snippet.directive
        if directive is not None:
            if directive.keyword == EXPECT_ERROR:
                tokens = directive.argument.split()
                return MustFail(category=tokens[0] if tokens else None)
            if directive.keyword == EXPECT_OUTPUT:
                return MustProduceOutput(expected=directive.argument.strip())
            if directive.keyword == SKIP:
                return Ignore(reason="skip directive")
            warning = (
                f"{snippet.source}:{directive.line}: unrecognized directive "
                f"'@{directive.keyword}'; snippet ignored"
            )
            self.logger.warning(warning)
            return Ignore(reason=f"unrecognized directive '@{directive.keyword}'", warning=warning)

        if not self.matches_target(snippet.language):
            label = snippet.language or "(none)"
            return Ignore(reason=f"language {label} is not {self.target_tag}")

        return MustTypecheck()


__all__ = ["EXPECT_ERROR", "EXPECT_OUTPUT", "SKIP", "ExpectationClassifier"]
