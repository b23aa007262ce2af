"""Kind-aware comparison of expected and actual snippet outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import DEFAULT_MAX_REASON_LENGTH
from .models import (
    ExecutionResult,
    Expectation,
    Ignore,
    MustFail,
    MustProduceOutput,
    MustTypecheck,
    Snippet,
    Verdict,
    VerdictStatus,
)

_PREVIEW_LENGTH = 40


@dataclass(frozen=True)
class Outcome:
    """Status and optional reason produced by the comparator."""

    status: VerdictStatus
    reason: Optional[str] = None


class OutcomeComparator:
    """Decides PASS/FAIL/SKIPPED for an expectation and an execution result."""

    def __init__(self, max_reason_length: int = DEFAULT_MAX_REASON_LENGTH) -> None:
        self.max_reason_length = max_reason_length

    def judge(
        self,
        snippet: Snippet,
        expectation: Expectation,
        result: Optional[ExecutionResult],
    ) -> Verdict:
        outcome = self.compare(expectation, result)
        return Verdict(
            snippet=snippet,
            expectation=expectation,
            status=outcome.status,
            reason=outcome.reason,
            result=result,
        )

    def compare(self, expectation: Expectation, result: Optional[ExecutionResult]) -> Outcome:
        if isinstance(expectation, Ignore):
            return Outcome(VerdictStatus.SKIPPED, expectation.reason)
        if result is None:
            raise ValueError(f"{expectation.kind} requires an execution result")
        if result.timed_out:
            return Outcome(VerdictStatus.FAIL, f"timed out after {result.duration * 1000:.0f} ms")

        if isinstance(expectation, MustTypecheck):
            if result.succeeded:
                return Outcome(VerdictStatus.PASS)
            return Outcome(VerdictStatus.FAIL, self._failure_reason("toolchain rejected the snippet", result))

        if isinstance(expectation, MustFail):
            if result.succeeded:
                return Outcome(VerdictStatus.FAIL, "expected the toolchain to fail but it succeeded")
            category = expectation.category
            if category is None or category in result.diagnostics:
                return Outcome(VerdictStatus.PASS)
            return Outcome(
                VerdictStatus.FAIL,
                self._failure_reason(f"diagnostics do not mention '{category}'", result),
            )

        if isinstance(expectation, MustProduceOutput):
            if not result.succeeded:
                return Outcome(VerdictStatus.FAIL, self._failure_reason("toolchain rejected the snippet", result))
            actual = result.stdout.rstrip()
            if actual == expectation.expected:
                return Outcome(VerdictStatus.PASS)
            return Outcome(VerdictStatus.FAIL, self._truncate(describe_difference(expectation.expected, actual)))

        raise TypeError(f"Unsupported expectation type: {type(expectation).__name__}")

    def _failure_reason(self, summary: str, result: ExecutionResult) -> str:
        detail = result.diagnostics
        exit_label = "killed" if result.exit_code is None else str(result.exit_code)
        message = f"{summary} (exit {exit_label})"
        if detail:
            message = f"{message}: {detail}"
        return self._truncate(message)

    def _truncate(self, text: str) -> str:
        cleaned = text.strip()
        if len(cleaned) <= self.max_reason_length:
            return cleaned
        return cleaned[: self.max_reason_length].rstrip() + "…"


def describe_difference(expected: str, actual: str) -> str:
    """Return a one-line summary naming the first position where the texts differ."""
    index = 0
    limit = min(len(expected), len(actual))
    while index < limit and expected[index] == actual[index]:
        index += 1
    line = actual.count("\n", 0, index) + 1
    column = index - (actual.rfind("\n", 0, index) + 1) + 1
    return (
        f"output differs at offset {index} (line {line}, column {column}): "
        f"expected {_preview(expected, index)} but got {_preview(actual, index)}"
    )


def _preview(text: str, index: int) -> str:
    if index >= len(text):
        return "<end of output>"
    fragment = text[index : index + _PREVIEW_LENGTH]
    if index + _PREVIEW_LENGTH < len(text):
        fragment += "…"
    return repr(fragment)


__all__ = ["Outcome", "OutcomeComparator", "describe_difference"]
