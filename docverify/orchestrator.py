"""Pipeline orchestration for the check and list flows."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Protocol, Sequence, TextIO

from .classifier import ExpectationClassifier
from .comparator import OutcomeComparator
from .config import VerifyConfig
from .extractor import SnippetExtractor, StructuralExtractionError
from .logging import get_logger
from .models import (
    DocumentSource,
    ExecutionResult,
    Expectation,
    Ignore,
    Report,
    Snippet,
    Verdict,
    VerdictStatus,
)
from .report import ReportAggregator, ReportRenderer, create_renderer
from .scheduler import CancellationToken, VerificationScheduler
from .sources import SourceLoader
from .toolchain import ToolchainRunner


class SnippetRunner(Protocol):
    """Anything able to execute a snippet and capture its outcome."""

    def check_available(self) -> None:
        """Raise ToolchainLaunchError when the toolchain cannot be used."""

    def run(self, snippet: Snippet) -> ExecutionResult:
        """Execute the snippet once."""


@dataclass(frozen=True)
class PlannedSnippet:
    """A snippet paired with its expectation, ready for dispatch."""

    snippet: Snippet
    expectation: Expectation

    @property
    def runnable(self) -> bool:
        return not isinstance(self.expectation, Ignore)


@dataclass
class VerificationPlan:
    """Every extracted snippet plus the warnings raised while planning."""

    sources: List[DocumentSource]
    snippets: List[PlannedSnippet]
    warnings: List[str]

    @property
    def runnable(self) -> List[PlannedSnippet]:
        return [planned for planned in self.snippets if planned.runnable]


@dataclass
class RunOutcome:
    """Result of a verification run."""

    report: Report
    exit_code: int


class Orchestrator:
    """Coordinates extraction, classification, execution and reporting."""

    def __init__(
        self,
        config: VerifyConfig,
        *,
        loader: SourceLoader | None = None,
        extractor: SnippetExtractor | None = None,
        classifier: ExpectationClassifier | None = None,
        runner: SnippetRunner | None = None,
        comparator: OutcomeComparator | None = None,
        renderer: ReportRenderer | None = None,
        token: CancellationToken | None = None,
    ) -> None:
        self.config = config
        self.loader = loader or SourceLoader(
            extensions=config.sources.extensions,
            exclude_paths=config.sources.exclude_paths,
        )
        self.extractor = extractor or SnippetExtractor()
        self._classifier = classifier
        self._runner = runner
        self.comparator = comparator or OutcomeComparator(config.report.max_reason_length)
        self._renderer = renderer
        self.token = token or CancellationToken()
        self.logger = get_logger("orchestrator")

    @property
    def classifier(self) -> ExpectationClassifier:
        if self._classifier is None:
            self._classifier = ExpectationClassifier(
                self.config.require_target_tag(), aliases=self.config.tag_aliases
            )
        return self._classifier

    @property
    def runner(self) -> SnippetRunner:
        if self._runner is None:
            self._runner = ToolchainRunner(
                self.config.require_toolchain(),
                timeout_ms=self.config.timeout_ms,
                file_suffix=self.config.toolchain.file_suffix,
                env=self.config.toolchain.env,
            )
        return self._runner

    @property
    def renderer(self) -> ReportRenderer:
        if self._renderer is None:
            self._renderer = create_renderer(
                self.config.report.format,
                timings=self.config.report.timings,
                templates_dir=self.config.report.templates_dir,
            )
        return self._renderer

    def plan(self, paths: Iterable[str | Path]) -> VerificationPlan:
        """Load sources, extract every snippet and classify it."""
        classifier = self.classifier
        sources = self.loader.load_all(paths)
        planned: List[PlannedSnippet] = []
        warnings: List[str] = []
        for source in sources:
            for snippet in self._extract(source, warnings):
                expectation = classifier.classify(snippet)
                if isinstance(expectation, Ignore) and expectation.warning:
                    warnings.append(expectation.warning)
                planned.append(PlannedSnippet(snippet=snippet, expectation=expectation))
        self.logger.info(
            "Planned %d snippet(s) from %d source(s); %d to run",
            len(planned),
            len(sources),
            sum(1 for item in planned if item.runnable),
        )
        return VerificationPlan(sources=sources, snippets=planned, warnings=warnings)

    def run(
        self,
        paths: Sequence[str | Path],
        *,
        stream: TextIO | None = None,
    ) -> RunOutcome:
        """Verify every snippet under ``paths`` and publish the report."""
        plan = self.plan(paths)
        if plan.runnable:
            self.runner.check_available()

        aggregator = ReportAggregator()
        for warning in plan.warnings:
            aggregator.warn(warning)
        for planned in plan.snippets:
            if not planned.runnable:
                aggregator.add(self.comparator.judge(planned.snippet, planned.expectation, None))

        scheduler: VerificationScheduler[PlannedSnippet, ExecutionResult] = VerificationScheduler(
            self.config.effective_concurrency, self.token
        )

        def _record(planned: PlannedSnippet, result: ExecutionResult) -> None:
            verdict = self.comparator.judge(planned.snippet, planned.expectation, result)
            if verdict.status is VerdictStatus.FAIL:
                self.logger.debug("%s failed: %s", planned.snippet.location, verdict.reason)
            aggregator.add(verdict)

        schedule = scheduler.run(plan.runnable, lambda planned: self.runner.run(planned.snippet), _record)
        if not schedule.complete:
            aggregator.mark_incomplete()
            for planned in schedule.not_started:
                aggregator.add(
                    Verdict(
                        snippet=planned.snippet,
                        expectation=planned.expectation,
                        status=VerdictStatus.SKIPPED,
                        reason="not run (cancelled)",
                    )
                )

        report = aggregator.publish(self.renderer, output=self.config.report.output, stream=stream)
        self.logger.info(
            "Verification finished: %d passed, %d failed, %d skipped",
            report.passed,
            report.failed,
            report.skipped,
        )
        return RunOutcome(report=report, exit_code=report.exit_code)

    def _extract(self, source: DocumentSource, warnings: List[str]) -> List[Snippet]:
        snippets: List[Snippet] = []
        try:
            for snippet in self.extractor.extract(source):
                snippets.append(snippet)
        except StructuralExtractionError as exc:
            message = f"{exc}; remaining snippets in {source.path} skipped"
            self.logger.warning(message)
            warnings.append(message)
        return snippets


__all__ = [
    "Orchestrator",
    "PlannedSnippet",
    "RunOutcome",
    "SnippetRunner",
    "VerificationPlan",
]
