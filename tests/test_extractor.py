"""Tests for fenced snippet extraction."""

from __future__ import annotations

import logging

import pytest

from docverify.extractor import SnippetExtractor, StructuralExtractionError, parse_directive
from docverify.markdown import iter_headings
from docverify.models import Directive, DocumentSource


def _source(text: str, path: str = "docs/page.md") -> DocumentSource:
    return DocumentSource(path=path, text=text, headings=tuple(iter_headings(text)))


def test_extracts_one_snippet_per_block_in_order(docs_builder) -> None:
    docs_builder.write(
        {
            "mutation.md": """
            # Mutation

            ```res
            let foo = ref(5)
            ```

            ## Usage

            ```res example
            foo := 6
            ```

            ```js
            console.log(1)
            ```
            """
        }
    )

    snippets = list(SnippetExtractor().extract(docs_builder.source("mutation.md")))

    assert [snippet.ordinal for snippet in snippets] == [0, 1, 2]
    assert [snippet.code for snippet in snippets] == ["let foo = ref(5)", "foo := 6", "console.log(1)"]
    assert [snippet.language for snippet in snippets] == ["res", "res", "js"]
    assert snippets[1].info == ("example",)
    assert [snippet.line for snippet in snippets] == [3, 9, 13]


def test_sequence_is_restartable() -> None:
    sequence = SnippetExtractor().extract(_source("```res\na\n```\n\n```res\nb\n```\n"))

    first = list(sequence)
    second = list(sequence)

    assert first == second
    assert len(first) == 2


def test_heading_path_tracks_open_levels() -> None:
    text = (
        "# Types\n"
        "## Records\n"
        "### Fields\n"
        "```res\nlet a = 1\n```\n"
        "## Variants\n"
        "```res\nlet b = 2\n```\n"
        "# Other\n"
        "```res\nlet c = 3\n```\n"
    )

    snippets = list(SnippetExtractor().extract(_source(text)))

    assert [snippet.heading_path for snippet in snippets] == [
        ("Types", "Records", "Fields"),
        ("Types", "Variants"),
        ("Other",),
    ]
    assert snippets[0].anchor == "fields"


def test_headings_inside_code_do_not_change_path() -> None:
    text = "# Shell\n```sh\n# comment\necho hi\n```\n```sh\nls\n```\n"

    snippets = list(SnippetExtractor().extract(_source(text)))

    assert [snippet.heading_path for snippet in snippets] == [("Shell",), ("Shell",)]
    assert snippets[0].code == "# comment\necho hi"


def test_code_is_normalised_and_trailing_blank_lines_trimmed() -> None:
    text = "```res\n\nlet a = 1\n\n  let b = 2\n\n\n```\n"

    snippet = next(iter(SnippetExtractor().extract(_source(text))))

    assert snippet.code == "\nlet a = 1\n\n  let b = 2"


def test_indented_fence_strips_matching_indentation() -> None:
    text = "- item\n\n  ```res\n  let a = 1\n    nested\n  ```\n"

    snippet = next(iter(SnippetExtractor().extract(_source(text))))

    assert snippet.code == "let a = 1\n  nested"


def test_longer_fences_can_contain_shorter_ones() -> None:
    text = "````md\n```res\nlet a = 1\n```\n````\n"

    snippets = list(SnippetExtractor().extract(_source(text)))

    assert len(snippets) == 1
    assert snippets[0].language == "md"
    assert snippets[0].code == "```res\nlet a = 1\n```"


def test_empty_blocks_are_dropped_with_warning(caplog) -> None:
    text = "```res\n   \n```\n```res\nlet a = 1\n```\n"

    with caplog.at_level(logging.WARNING, logger="docverify"):
        snippets = list(SnippetExtractor().extract(_source(text)))

    assert [snippet.ordinal for snippet in snippets] == [0]
    assert snippets[0].code == "let a = 1"
    assert "dropping empty code block" in caplog.text


def test_unterminated_fence_raises_after_preceding_snippets() -> None:
    text = "```res\nlet a = 1\n```\n\n```res\nlet b = 2\n"
    yielded = []

    with pytest.raises(StructuralExtractionError) as excinfo:
        for snippet in SnippetExtractor().extract(_source(text)):
            yielded.append(snippet)

    assert [snippet.code for snippet in yielded] == ["let a = 1"]
    assert excinfo.value.line == 5
    assert "docs/page.md:5" in str(excinfo.value)


def test_directive_is_attached_to_snippet() -> None:
    text = "```res\n// @expect-output: 6\nJs.log(6)\n```\n"

    snippet = next(iter(SnippetExtractor().extract(_source(text))))

    assert snippet.directive == Directive(keyword="expect-output", argument="6", line=2)


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("// @expect-error", Directive("expect-error", "", 1)),
        ("/* @expect-error TypeError */", Directive("expect-error", "TypeError", 1)),
        ("let a = 1\n# @skip", Directive("skip", "", 2)),
        ("(* @expect-output: hello world *)", Directive("expect-output", "hello world", 1)),
        ("<!-- @skip -->", Directive("skip", "", 1)),
        ("-- @future-thing: x", Directive("future-thing", "x", 1)),
    ],
)
def test_parse_directive_comment_forms(code: str, expected: Directive) -> None:
    assert parse_directive(code, first_line=1) == expected


def test_parse_directive_ignores_non_comment_markers() -> None:
    assert parse_directive('let s = "@skip"\n// regular comment', first_line=1) is None
