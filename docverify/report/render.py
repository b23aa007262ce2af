"""Text and machine-readable report renderers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from jinja2 import Environment, FileSystemLoader

from ..models import ExecutionResult, Expectation, Report, Verdict, VerdictStatus

TEXT_TEMPLATE = "report.txt.j2"

_STATUS_LABELS = {
    VerdictStatus.PASS: "PASS",
    VerdictStatus.FAIL: "FAIL",
    VerdictStatus.SKIPPED: "SKIP",
}


class ReportRenderer(Protocol):
    """Protocol implemented by report renderers."""

    def render(self, report: Report) -> str:
        """Return the rendered report."""


def summary_counts(report: Report) -> Dict[str, int]:
    return {
        "passed": report.passed,
        "failed": report.failed,
        "skipped": report.skipped,
        "total": report.total,
    }


def status_label(report: Report) -> str:
    label = "PASS" if report.failed == 0 else "FAIL"
    if not report.complete:
        label += " (incomplete)"
    return label


class TextReportRenderer:
    """Renders a human-readable report through a Jinja template."""

    def __init__(self, *, timings: bool = True, templates_dir: Path | None = None) -> None:
        self.timings = timings
        self._env = self._create_env(templates_dir)

    def render(self, report: Report) -> str:
        template = self._env.get_template(TEXT_TEMPLATE)
        title = "docverify report" if report.complete else "docverify report (INCOMPLETE)"
        rendered = template.render(
            title=title,
            rows=[self._row(verdict) for verdict in report.verdicts],
            summary=summary_counts(report),
            status=status_label(report),
            warnings=list(report.warnings),
        )
        return rendered.rstrip("\n") + "\n"

    def _row(self, verdict: Verdict) -> Dict[str, object]:
        snippet = verdict.snippet
        parts = [f"{_STATUS_LABELS[verdict.status]:<4}", snippet.location]
        if snippet.heading_path:
            parts.append(f"({' > '.join(snippet.heading_path)})")
        parts.append(verdict.expectation.kind)
        if self.timings and verdict.result is not None:
            parts.append(f"[{verdict.result.duration * 1000:.0f} ms]")
        details: List[str] = []
        if verdict.reason and verdict.status is not VerdictStatus.PASS:
            details.extend(line for line in verdict.reason.splitlines() if line.strip())
        return {"line": "  ".join(parts), "details": details}

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        loader = FileSystemLoader(directories)
        return Environment(loader=loader, autoescape=False, trim_blocks=True, lstrip_blocks=True)


class JsonReportRenderer:
    """Renders the machine-readable report."""

    def __init__(self, *, timings: bool = True) -> None:
        self.timings = timings

    def render(self, report: Report) -> str:
        return json.dumps(self.to_payload(report), indent=2, sort_keys=True) + "\n"

    def to_payload(self, report: Report) -> Dict[str, object]:
        return {
            "status": "pass" if report.failed == 0 else "fail",
            "complete": report.complete,
            "exit_code": report.exit_code,
            "summary": summary_counts(report),
            "verdicts": [self._verdict(verdict) for verdict in report.verdicts],
            "warnings": list(report.warnings),
        }

    def _verdict(self, verdict: Verdict) -> Dict[str, object]:
        snippet = verdict.snippet
        return {
            "source": snippet.source,
            "ordinal": snippet.ordinal,
            "line": snippet.line,
            "language": snippet.language,
            "headings": list(snippet.heading_path),
            "anchor": snippet.anchor,
            "directive": snippet.directive.render() if snippet.directive else None,
            "expectation": expectation_payload(verdict.expectation),
            "status": verdict.status.value,
            "reason": verdict.reason,
            "result": self._result(verdict.result),
        }

    def _result(self, result: Optional[ExecutionResult]) -> Optional[Dict[str, object]]:
        if result is None:
            return None
        payload: Dict[str, object] = {
            "exit_code": result.exit_code,
            "timed_out": result.timed_out,
            "stdout": result.stdout,
            "stderr": result.stderr,
        }
        if self.timings:
            payload["duration_ms"] = round(result.duration * 1000, 3)
        return payload


def expectation_payload(expectation: Expectation) -> Dict[str, object]:
    payload: Dict[str, object] = {"kind": expectation.kind}
    for key, value in vars(expectation).items():
        payload[key] = value
    return payload


def create_renderer(
    report_format: str,
    *,
    timings: bool = True,
    templates_dir: Path | None = None,
) -> ReportRenderer:
    if report_format == "json":
        return JsonReportRenderer(timings=timings)
    if report_format == "text":
        return TextReportRenderer(timings=timings, templates_dir=templates_dir)
    raise ValueError(f"Unknown report format: {report_format}")


__all__ = [
    "JsonReportRenderer",
    "ReportRenderer",
    "TextReportRenderer",
    "create_renderer",
    "expectation_payload",
]
