"""Collection of verdicts into the final report."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional, TextIO

from ..logging import get_logger
from ..models import Report, Verdict
from .render import ReportRenderer


class ReportAggregator:
    """Sole owner of the verdicts of a run.

    Verdicts may arrive in any order; ``build`` sorts them by source path and
    ordinal so scheduling never changes the rendered report.
    """

    def __init__(self) -> None:
        self._verdicts: List[Verdict] = []
        self._warnings: List[str] = []
        self._seen: set[tuple[str, int]] = set()
        self._complete = True
        self._published = False
        self.logger = get_logger("report")

    def add(self, verdict: Verdict) -> None:
        key = verdict.snippet.sort_key
        if key in self._seen:
            raise ValueError(f"Duplicate verdict for {key[0]}#{key[1]}")
        self._seen.add(key)
        self._verdicts.append(verdict)

    def warn(self, message: str) -> None:
        self._warnings.append(message)

    def mark_incomplete(self) -> None:
        self._complete = False

    def build(self) -> Report:
        ordered = sorted(self._verdicts, key=lambda verdict: verdict.snippet.sort_key)
        return Report(
            verdicts=tuple(ordered),
            complete=self._complete,
            warnings=tuple(self._warnings),
        )

    def publish(
        self,
        renderer: ReportRenderer,
        *,
        output: Optional[Path] = None,
        stream: TextIO | None = None,
    ) -> Report:
        """Render the report and write it exactly once."""
        if self._published:
            raise RuntimeError("Report has already been published for this run")
        report = self.build()
        rendered = renderer.render(report)
        if output is not None:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(rendered, encoding="utf-8")
            self.logger.info("Report written to %s", output)
        else:
            target = stream or sys.stdout
            target.write(rendered)
            target.flush()
        self._published = True
        return report


__all__ = ["ReportAggregator"]
