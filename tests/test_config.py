"""Tests for docverify.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from docverify.config import (
    ConfigError,
    ReportConfig,
    ToolchainConfig,
    VerifyConfig,
    apply_environment,
    apply_overrides,
    default_concurrency,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, VerifyConfig)
    assert config.root == tmp_path.resolve()
    assert config.target_tag is None
    assert config.timeout_ms == 5000
    assert config.concurrency == default_concurrency()
    assert config.report == ReportConfig()
    assert config.toolchain == ToolchainConfig()
    assert config.sources.extensions == [".md", ".mdx"]


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".docverify.yml"
    config_file.write_text(
        """
target_tag: res
tag_aliases: [rescript]
timeout_ms: 2500
concurrency: 3
toolchain:
  command: ["bsc", "-only-parse", "{file}"]
  file_suffix: ".res"
  parallel: false
  env:
    NODE_ENV: test
report:
  format: json
  output: reports/snippets.json
  max_reason_length: 120
  timings: false
sources:
  extensions: [md, ".MDX"]
  exclude_paths:
    - "drafts/"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.target_tag == "res"
    assert config.tag_aliases == ["rescript"]
    assert config.timeout_ms == 2500
    assert config.concurrency == 3
    assert config.effective_concurrency == 1
    assert config.toolchain.command == ["bsc", "-only-parse", "{file}"]
    assert config.toolchain.file_suffix == ".res"
    assert config.toolchain.env == {"NODE_ENV": "test"}
    assert config.report.format == "json"
    assert config.report.output == tmp_path.resolve() / "reports" / "snippets.json"
    assert config.report.max_reason_length == 120
    assert config.report.timings is False
    assert config.sources.extensions == [".md", ".mdx"]
    assert config.sources.exclude_paths == ["drafts/"]


def test_string_toolchain_command_is_shell_split(tmp_path: Path) -> None:
    (tmp_path / ".docverify.yml").write_text(
        "toolchain:\n  command: \"node --eval 'x' {file}\"\n", encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert config.toolchain.command == ["node", "--eval", "x", "{file}"]


@pytest.mark.parametrize(
    "content",
    [
        "timeout_ms: 0\n",
        "concurrency: many\n",
        "report:\n  format: html\n",
        "- just\n- a list\n",
        "target_tag: [unclosed\n",
    ],
)
def test_invalid_configuration_raises(tmp_path: Path, content: str) -> None:
    (tmp_path / ".docverify.yml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_environment_overrides_file(tmp_path: Path) -> None:
    config = VerifyConfig(root=tmp_path, target_tag="res", toolchain=ToolchainConfig(command=["bsc"]))

    updated = apply_environment(
        config,
        {"DOCVERIFY_TARGET_TAG": "rescript", "DOCVERIFY_TOOLCHAIN": "npx rescript {file}"},
    )

    assert updated.target_tag == "rescript"
    assert updated.toolchain.command == ["npx", "rescript", "{file}"]
    assert config.toolchain.command == ["bsc"]


def test_explicit_overrides_win(tmp_path: Path) -> None:
    config = VerifyConfig(root=tmp_path, target_tag="res", tag_aliases=["rescript"])

    updated = apply_overrides(
        config,
        target_tag="ml",
        tag_aliases=["rescript", "reason"],
        toolchain=["ocaml", "{file}"],
        timeout_ms=100,
        concurrency=2,
        report_format="JSON",
        timings=False,
    )

    assert updated.target_tag == "ml"
    assert updated.tag_aliases == ["rescript", "reason"]
    assert updated.toolchain.command == ["ocaml", "{file}"]
    assert updated.timeout_ms == 100
    assert updated.concurrency == 2
    assert updated.report.format == "json"
    assert updated.report.timings is False
    assert config.tag_aliases == ["rescript"]


def test_requirements_raise_config_error(tmp_path: Path) -> None:
    config = VerifyConfig(root=tmp_path)

    with pytest.raises(ConfigError):
        config.require_target_tag()
    with pytest.raises(ConfigError):
        config.require_toolchain()
    with pytest.raises(ConfigError):
        apply_overrides(config, concurrency=0)
