"""Configuration loading for docverify (.docverify.yml)."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

CONFIG_FILENAME = ".docverify.yml"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_EXTENSIONS = (".md", ".mdx")
DEFAULT_MAX_REASON_LENGTH = 400
REPORT_FORMATS = ("text", "json")

ENV_TARGET_TAG = "DOCVERIFY_TARGET_TAG"
ENV_TOOLCHAIN = "DOCVERIFY_TOOLCHAIN"


class ConfigError(RuntimeError):
    """Raised when the configuration is missing, unparsable or invalid."""


def default_concurrency() -> int:
    return os.cpu_count() or 1


@dataclass
class ToolchainConfig:
    """How the external compiler/interpreter is invoked."""

    command: List[str] = field(default_factory=list)
    file_suffix: str = ""
    parallel: bool = True
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class ReportConfig:
    """Report rendering and destination."""

    format: str = "text"
    output: Optional[Path] = None
    max_reason_length: int = DEFAULT_MAX_REASON_LENGTH
    timings: bool = True
    templates_dir: Optional[Path] = None


@dataclass
class SourcesConfig:
    """Documentation discovery filters."""

    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_paths: List[str] = field(default_factory=list)


@dataclass
class VerifyConfig:
    """Represents the settings defined in .docverify.yml plus overrides."""

    root: Path
    target_tag: Optional[str] = None
    tag_aliases: List[str] = field(default_factory=list)
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    concurrency: int = field(default_factory=default_concurrency)
    toolchain: ToolchainConfig = field(default_factory=ToolchainConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)

    @property
    def effective_concurrency(self) -> int:
        if not self.toolchain.parallel:
            return 1
        return self.concurrency

    def require_target_tag(self) -> str:
        if not self.target_tag:
            raise ConfigError(
                "target_tag is required; set it in .docverify.yml or pass --tag."
            )
        return self.target_tag

    def require_toolchain(self) -> List[str]:
        if not self.toolchain.command:
            raise ConfigError(
                "toolchain.command is required; set it in .docverify.yml or pass --toolchain."
            )
        return list(self.toolchain.command)


def load_config(config_path: Path) -> VerifyConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return VerifyConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = VerifyConfig(root=root)
    config.target_tag = _as_str(data.get("target_tag"))
    config.tag_aliases = _as_str_list(data.get("tag_aliases"))
    if "timeout_ms" in data:
        config.timeout_ms = _require_positive_int(data.get("timeout_ms"), "timeout_ms")
    if "concurrency" in data:
        config.concurrency = _require_positive_int(data.get("concurrency"), "concurrency")

    toolchain_data = _as_dict(data.get("toolchain"))
    if toolchain_data:
        config.toolchain = ToolchainConfig(
            command=_as_command(toolchain_data.get("command")),
            file_suffix=_as_str(toolchain_data.get("file_suffix")) or "",
            parallel=_as_bool(toolchain_data.get("parallel"), default=True),
            env={str(key): str(value) for key, value in _as_dict(toolchain_data.get("env")).items()},
        )

    report_data = _as_dict(data.get("report"))
    if report_data:
        output = _as_str(report_data.get("output"))
        templates_dir = _as_str(report_data.get("templates_dir"))
        config.report = ReportConfig(
            format=_require_format(_as_str(report_data.get("format")) or "text"),
            output=(root / output) if output else None,
            max_reason_length=(
                _require_positive_int(report_data.get("max_reason_length"), "report.max_reason_length")
                if "max_reason_length" in report_data
                else DEFAULT_MAX_REASON_LENGTH
            ),
            timings=_as_bool(report_data.get("timings"), default=True),
            templates_dir=(root / templates_dir) if templates_dir else None,
        )

    sources_data = _as_dict(data.get("sources"))
    if sources_data:
        extensions = _as_str_list(sources_data.get("extensions"))
        config.sources = SourcesConfig(
            extensions=[_normalise_extension(ext) for ext in extensions] or list(DEFAULT_EXTENSIONS),
            exclude_paths=_as_str_list(sources_data.get("exclude_paths")),
        )

    return config


def apply_environment(config: VerifyConfig, environ: Mapping[str, str] | None = None) -> VerifyConfig:
    """Return a copy of ``config`` with DOCVERIFY_* environment overrides applied."""
    env = os.environ if environ is None else environ
    updated = replace(config, toolchain=replace(config.toolchain))
    tag = env.get(ENV_TARGET_TAG)
    if tag:
        updated.target_tag = tag
    toolchain = env.get(ENV_TOOLCHAIN)
    if toolchain:
        updated.toolchain.command = _as_command(toolchain)
    return updated


def apply_overrides(
    config: VerifyConfig,
    *,
    target_tag: Optional[str] = None,
    tag_aliases: Optional[Sequence[str]] = None,
    toolchain: Optional[str | Sequence[str]] = None,
    timeout_ms: Optional[int] = None,
    concurrency: Optional[int] = None,
    report_format: Optional[str] = None,
    output: Optional[Path] = None,
    timings: Optional[bool] = None,
) -> VerifyConfig:
    """Return a copy of ``config`` with explicit (CLI or request) overrides applied."""
    updated = replace(
        config,
        toolchain=replace(config.toolchain),
        report=replace(config.report),
        tag_aliases=list(config.tag_aliases),
    )
    if target_tag:
        updated.target_tag = target_tag
    if tag_aliases:
        updated.tag_aliases.extend(alias for alias in tag_aliases if alias not in updated.tag_aliases)
    if toolchain:
        updated.toolchain.command = _as_command(toolchain)
    if timeout_ms is not None:
        updated.timeout_ms = _require_positive_int(timeout_ms, "timeout_ms")
    if concurrency is not None:
        updated.concurrency = _require_positive_int(concurrency, "concurrency")
    if report_format is not None:
        updated.report.format = _require_format(report_format)
    if output is not None:
        updated.report.output = output
    if timings is not None:
        updated.report.timings = timings
    return updated


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _require_positive_int(value: Any, name: str) -> int:
    number = _as_int(value)
    if number is None or number <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    return number


def _require_format(value: str) -> str:
    lowered = value.strip().lower()
    if lowered not in REPORT_FORMATS:
        choices = ", ".join(REPORT_FORMATS)
        raise ConfigError(f"report format must be one of {choices}, got {value!r}")
    return lowered


def _normalise_extension(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith(".") else f".{value}"


def _as_command(value: Any) -> List[str]:
    if isinstance(value, str):
        try:
            return shlex.split(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid toolchain command {value!r}: {exc}") from exc
    return _as_str_list(value)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return default


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "ReportConfig",
    "SourcesConfig",
    "ToolchainConfig",
    "VerifyConfig",
    "apply_environment",
    "apply_overrides",
    "load_config",
]
