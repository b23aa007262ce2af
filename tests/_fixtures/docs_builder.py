"""Helper utilities for constructing temporary documentation trees in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Mapping

from docverify.models import DocumentSource
from docverify.sources import SourceLoader


class DocsBuilder:
    """Utility for writing documentation pages into a throwaway directory."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "docs"
        self.root.mkdir()
        self._loader = SourceLoader()

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries below the docs root."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def source(self, relative: str) -> DocumentSource:
        """Load a single page as a DocumentSource."""
        return self._loader.load(self.root / relative)

    def path(self) -> Path:
        """Return the docs root path."""
        return self.root


__all__ = ["DocsBuilder"]
