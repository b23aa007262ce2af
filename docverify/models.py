"""Core data models shared across docverify components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union


@dataclass(frozen=True)
class Heading:
    """An ATX heading found outside fenced blocks."""

    level: int
    title: str
    line: int
    anchor: str


@dataclass(frozen=True)
class DocumentSource:
    """A documentation page loaded for extraction."""

    path: str
    text: str
    headings: Tuple[Heading, ...] = ()


@dataclass(frozen=True)
class Directive:
    """Comment-form marker that overrides expectation inference."""

    keyword: str
    argument: str
    line: int

    def render(self) -> str:
        if self.argument:
            return f"@{self.keyword} {self.argument}"
        return f"@{self.keyword}"


@dataclass(frozen=True)
class Snippet:
    """A single fenced code block with positional and directive metadata."""

    source: str
    ordinal: int
    code: str
    language: str
    line: int
    heading_path: Tuple[str, ...] = ()
    anchor: Optional[str] = None
    info: Tuple[str, ...] = ()
    directive: Optional[Directive] = None

    @property
    def location(self) -> str:
        return f"{self.source}:{self.line}"

    @property
    def sort_key(self) -> Tuple[str, int]:
        return (self.source, self.ordinal)


@dataclass(frozen=True)
class MustTypecheck:
    """The snippet must be accepted by the toolchain."""

    kind: ClassVar[str] = "must-typecheck"

    def describe(self) -> str:
        return self.kind


@dataclass(frozen=True)
class MustFail:
    """The snippet must be rejected, optionally with a diagnostic category."""

    category: Optional[str] = None
    kind: ClassVar[str] = "must-fail"

    def describe(self) -> str:
        if self.category:
            return f"{self.kind} ({self.category})"
        return self.kind


@dataclass(frozen=True)
class MustProduceOutput:
    """The snippet must run successfully and print exactly ``expected``."""

    expected: str
    kind: ClassVar[str] = "must-produce-output"

    def describe(self) -> str:
        return f"{self.kind} ({self.expected!r})"


@dataclass(frozen=True)
class Ignore:
    """The snippet is decorative or explicitly skipped."""

    reason: str
    warning: Optional[str] = None
    kind: ClassVar[str] = "ignore"

    def describe(self) -> str:
        return f"{self.kind} ({self.reason})"


Expectation = Union[MustTypecheck, MustFail, MustProduceOutput, Ignore]


@dataclass(frozen=True)
class ExecutionResult:
    """Captured outcome of a single toolchain invocation."""

    exit_code: Optional[int]
    stdout: str
    stderr: str
    duration: float
    timed_out: bool = False
    pid: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out

    @property
    def diagnostics(self) -> str:
        """Combined diagnostic text; some toolchains report errors on stdout."""
        parts = [part for part in (self.stderr.strip(), self.stdout.strip()) if part]
        return "\n".join(parts)


class VerdictStatus(str, Enum):
    """Terminal classification of a snippet."""

    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Verdict:
    """Final classification recorded for a snippet."""

    snippet: Snippet
    expectation: Expectation
    status: VerdictStatus
    reason: Optional[str] = None
    result: Optional[ExecutionResult] = None


@dataclass(frozen=True)
class Report:
    """Ordered verdicts and summary for one run."""

    verdicts: Tuple[Verdict, ...]
    complete: bool = True
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def count(self, status: VerdictStatus) -> int:
        return sum(1 for verdict in self.verdicts if verdict.status is status)

    @property
    def passed(self) -> int:
        return self.count(VerdictStatus.PASS)

    @property
    def failed(self) -> int:
        return self.count(VerdictStatus.FAIL)

    @property
    def skipped(self) -> int:
        return self.count(VerdictStatus.SKIPPED)

    @property
    def total(self) -> int:
        return len(self.verdicts)

    @property
    def succeeded(self) -> bool:
        return self.complete and self.failed == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1
