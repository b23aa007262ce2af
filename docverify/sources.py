"""Documentation source discovery and loading."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

from .logging import get_logger
from .markdown import iter_headings, normalise_newlines
from .models import DocumentSource

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".next",
}


class SourceDiscoveryError(RuntimeError):
    """Raised when no documentation sources can be found."""


@dataclass
class IgnoreRule:
    """A gitignore-style exclusion pattern."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            if self.directory_only and rel_path.startswith(f"{self.pattern}/"):
                return True
            return False

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_ignore_rule(pattern: str) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return None

    negate = pattern.startswith("!")
    if negate:
        pattern = pattern[1:]

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _display_path(path: Path) -> str:
    try:
        return path.relative_to(Path.cwd()).as_posix()
    except ValueError:
        return path.as_posix()


class SourceLoader:
    """Resolves command-line paths into loaded documentation sources."""

    def __init__(
        self,
        extensions: Sequence[str] = (".md", ".mdx"),
        exclude_paths: Sequence[str] = (),
    ) -> None:
        self.extensions = tuple(ext.lower() for ext in extensions)
        self.rules = [rule for rule in map(build_ignore_rule, exclude_paths) if rule is not None]
        self.logger = get_logger("sources")

    def discover(self, paths: Iterable[str | Path]) -> List[Path]:
        """Return source files for ``paths``, sorted and de-duplicated.

        Files named explicitly are always included; directories are walked
        recursively and filtered by extension and exclusion rules.
        """
        paths = list(paths)
        found: dict[Path, None] = {}
        for raw in paths:
            path = Path(raw).expanduser()
            if path.is_file():
                found[path.resolve()] = None
            elif path.is_dir():
                for candidate in self._walk(path.resolve()):
                    found[candidate] = None
            else:
                self.logger.warning("Documentation path not found: %s", raw)

        if not found:
            joined = ", ".join(str(path) for path in paths) or "(none)"
            raise SourceDiscoveryError(f"No documentation sources found under {joined}")
        return sorted(found, key=lambda item: _display_path(item))

    def load(self, path: Path) -> DocumentSource:
        text = normalise_newlines(path.read_text(encoding="utf-8"))
        return DocumentSource(
            path=_display_path(path),
            text=text,
            headings=tuple(iter_headings(text)),
        )

    def load_all(self, paths: Iterable[str | Path]) -> List[DocumentSource]:
        sources = [self.load(path) for path in self.discover(paths)]
        self.logger.debug("Loaded %d documentation sources", len(sources))
        return sources

    def _walk(self, root: Path) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

            kept_dirs = []
            for name in sorted(dirnames):
                if name in _EXCLUDED_DIRS:
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if _should_ignore(rel_path, True, self.rules):
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if Path(filename).suffix.lower() not in self.extensions:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, self.rules):
                    continue
                yield current_dir / filename


__all__ = ["IgnoreRule", "SourceDiscoveryError", "SourceLoader", "build_ignore_rule"]
