"""Fenced code block extraction from documentation sources."""

from __future__ import annotations

import re
from typing import Dict, Iterator, List, Optional

from .logging import get_logger
from .markdown import Fence, heading_path, match_fence, split_info
from .models import Directive, DocumentSource, Heading, Snippet

_COMMENT_OPENERS = ("//", "#", "--", ";", "/*", "(*", "<!--")
_COMMENT_CLOSERS = ("*/", "*)", "-->")
_DIRECTIVE = re.compile(r"^@(?P<keyword>[A-Za-z][\w-]*)(?P<rest>.*)$")


class StructuralExtractionError(ValueError):
    """Raised when a source contains an opening fence that is never closed."""

    def __init__(self, source: str, line: int) -> None:
        super().__init__(f"{source}:{line}: unterminated fenced code block")
        self.source = source
        self.line = line


def parse_directive(code: str, *, first_line: int) -> Optional[Directive]:
    """Return the first comment-form ``@keyword`` marker in ``code``.

    ``first_line`` is the document line number of the first code line.
    """
    for offset, raw in enumerate(code.split("\n")):
        body = _comment_body(raw.strip())
        if body is None:
            continue
        match = _DIRECTIVE.match(body)
        if not match:
            continue
        rest = match.group("rest").strip()
        if rest.startswith(":"):
            rest = rest[1:].strip()
        return Directive(keyword=match.group("keyword"), argument=rest, line=first_line + offset)
    return None


def _comment_body(line: str) -> Optional[str]:
    for opener in _COMMENT_OPENERS:
        if line.startswith(opener):
            body = line[len(opener):].strip()
            for closer in _COMMENT_CLOSERS:
                if body.endswith(closer):
                    body = body[: -len(closer)].rstrip()
            return body
    return None


class SnippetSequence:
    """Lazy, restartable view over the snippets of one source."""

    def __init__(self, extractor: "SnippetExtractor", source: DocumentSource) -> None:
        self._extractor = extractor
        self.source = source

    def __iter__(self) -> Iterator[Snippet]:
        return self._extractor.iter_snippets(self.source)


class SnippetExtractor:
    """Scans documentation text line by line and yields fenced snippets."""

    def __init__(self) -> None:
        self.logger = get_logger("extractor")

    def extract(self, source: DocumentSource) -> SnippetSequence:
        return SnippetSequence(self, source)

    def iter_snippets(self, source: DocumentSource) -> Iterator[Snippet]:
        headings_by_line: Dict[int, Heading] = {heading.line: heading for heading in source.headings}
        stack: List[Heading] = []
        lines = source.text.split("\n")
        ordinal = 0
        open_fence: Optional[Fence] = None
        open_line = 0
        body: List[str] = []

        for number, line in enumerate(lines, start=1):
            if open_fence is not None:
                if not open_fence.closes(line):
                    body.append(open_fence.dedent(line))
                    continue
                snippet = self._build_snippet(source, ordinal, open_fence, open_line, body, stack)
                open_fence = None
                if snippet is None:
                    continue
                ordinal += 1
                yield snippet
                continue

            heading = headings_by_line.get(number)
            if heading is not None:
                while stack and stack[-1].level >= heading.level:
                    stack.pop()
                stack.append(heading)
                continue

            fence = match_fence(line)
            if fence is not None:
                open_fence = fence
                open_line = number
                body = []

        if open_fence is not None:
            raise StructuralExtractionError(source.path, open_line)

    def _build_snippet(
        self,
        source: DocumentSource,
        ordinal: int,
        fence: Fence,
        line: int,
        body: List[str],
        stack: List[Heading],
    ) -> Optional[Snippet]:
        lines = list(body)
        while lines and not lines[-1].strip():
            lines.pop()
        code = "\n".join(lines)
        if not code.strip():
            self.logger.warning("%s:%d: dropping empty code block", source.path, line)
            return None
        language, info = split_info(fence.info)
        return Snippet(
            source=source.path,
            ordinal=ordinal,
            code=code,
            language=language,
            line=line,
            heading_path=heading_path(stack),
            anchor=stack[-1].anchor if stack else None,
            info=info,
            directive=parse_directive(code, first_line=line + 1),
        )


__all__ = [
    "SnippetExtractor",
    "SnippetSequence",
    "StructuralExtractionError",
    "parse_directive",
]
