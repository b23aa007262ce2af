"""Line-level Markdown helpers shared by source loading and extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from .models import Heading

_FENCE_OPEN = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")
_HEADING = re.compile(r"^ {0,3}(?P<marks>#{1,6})(?:[ \t]+(?P<title>.*?))?[ \t]*$")
_CLOSING_HASHES = re.compile(r"(?:^|[ \t]+)#+$")
_MDX_META = re.compile(r"\{[^}]*\}$")


@dataclass(frozen=True)
class Fence:
    """An opening fence line."""

    char: str
    length: int
    indent: int
    info: str

    def closes(self, line: str) -> bool:
        stripped = line.lstrip(" ")
        if len(line) - len(stripped) > 3:
            return False
        run = len(stripped) - len(stripped.lstrip(self.char))
        if run < self.length:
            return False
        return not stripped[run:].strip()

    def dedent(self, line: str) -> str:
        removable = len(line) - len(line.lstrip(" "))
        return line[min(removable, self.indent):]


def normalise_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def match_fence(line: str) -> Optional[Fence]:
    """Return the fence opened by ``line`` or None."""
    match = _FENCE_OPEN.match(line)
    if not match:
        return None
    fence = match.group("fence")
    info = match.group("info").strip()
    # Backtick fences cannot carry backticks in their info string.
    if fence[0] == "`" and "`" in info:
        return None
    return Fence(char=fence[0], length=len(fence), indent=len(match.group("indent")), info=info)


def split_info(info: str) -> Tuple[str, Tuple[str, ...]]:
    """Split a fence info string into the language tag and remaining tokens."""
    tokens = info.split()
    if not tokens:
        return "", ()
    language = _MDX_META.sub("", tokens[0])
    return language, tuple(tokens[1:])


def parse_heading(line: str) -> Optional[Tuple[int, str]]:
    match = _HEADING.match(line)
    if not match:
        return None
    title = match.group("title") or ""
    title = _CLOSING_HASHES.sub("", title).strip()
    return len(match.group("marks")), title


def iter_headings(text: str) -> Iterator[Heading]:
    """Yield ATX headings that are not inside fenced blocks."""
    open_fence: Optional[Fence] = None
    for number, line in enumerate(normalise_newlines(text).split("\n"), start=1):
        if open_fence is not None:
            if open_fence.closes(line):
                open_fence = None
            continue
        fence = match_fence(line)
        if fence is not None:
            open_fence = fence
            continue
        parsed = parse_heading(line)
        if parsed is None:
            continue
        level, title = parsed
        yield Heading(level=level, title=title, line=number, anchor=slugify(title))


def heading_path(stack: List[Heading]) -> Tuple[str, ...]:
    return tuple(heading.title for heading in stack)


def slugify(title: str) -> str:
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


__all__ = [
    "Fence",
    "heading_path",
    "iter_headings",
    "match_fence",
    "normalise_newlines",
    "parse_heading",
    "slugify",
    "split_info",
]
