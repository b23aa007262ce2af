"""CLI entrypoints for docverify commands."""

from __future__ import annotations

import argparse
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import (
    REPORT_FORMATS,
    ConfigError,
    VerifyConfig,
    apply_environment,
    apply_overrides,
    load_config,
)
from .logging import configure_logging
from .orchestrator import Orchestrator, VerificationPlan
from .scheduler import CancellationToken
from .sources import SourceDiscoveryError
from .toolchain import ToolchainLaunchError

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_ERROR = 2


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_source_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "paths",
        nargs="*",
        default=["."],
        help="Documentation files or directories to scan (defaults to current directory).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .docverify.yml (defaults to the current directory).",
    )
    parser.add_argument(
        "--tag",
        dest="target_tag",
        help="Language tag of snippets that must be verified (for example `res`).",
    )
    parser.add_argument(
        "--alias",
        dest="aliases",
        action="append",
        default=[],
        help="Additional language tag treated like the target tag (repeatable).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docverify",
        description="Verify that code snippets in documentation compile, fail, or print what the prose claims.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check",
        help="Run every classified snippet through the toolchain and report verdicts.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    _add_source_options(check_parser)
    check_parser.add_argument(
        "--toolchain",
        help="Toolchain command line; `{file}` is replaced by the snippet path, otherwise code is piped to stdin.",
    )
    check_parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Per-snippet timeout in milliseconds (default 5000).",
    )
    check_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum concurrent toolchain invocations (default: host parallelism).",
    )
    check_parser.add_argument(
        "--format",
        dest="report_format",
        choices=REPORT_FORMATS,
        default=None,
        help="Report format.",
    )
    check_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the report to this file instead of standard output.",
    )
    check_parser.add_argument(
        "--no-timings",
        action="store_true",
        help="Omit durations so reports are byte-identical across runs.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="Extract and classify snippets without running the toolchain.",
    )
    _add_verbose_option(list_parser, suppress_default=True)
    _add_source_options(list_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Expose verification over HTTP.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docverify commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "serve":
        from .service import run_service

        try:
            run_service(host=args.host, port=args.port)
        except RuntimeError as exc:
            parser.exit(EXIT_ERROR, f"docverify serve failed: {exc}\n")
        return

    token = CancellationToken()
    try:
        config = _resolve_config(args)
        orchestrator = Orchestrator(config, token=token)
        if args.command == "list":
            plan = orchestrator.plan(args.paths)
            _print_plan(plan)
            parser.exit(EXIT_OK)
        with _terminate_on_sigterm(token):
            outcome = orchestrator.run(args.paths)
    except (ConfigError, SourceDiscoveryError, ToolchainLaunchError) as exc:
        parser.exit(EXIT_ERROR, f"docverify: {exc}\n")
    except OSError as exc:
        parser.exit(EXIT_ERROR, f"docverify: {exc}\n")
    parser.exit(outcome.exit_code)


def _resolve_config(args: argparse.Namespace) -> VerifyConfig:
    config_path: Path | None = args.config
    if config_path is not None and not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    config = load_config(config_path or Path.cwd())
    config = apply_environment(config)
    config = apply_overrides(
        config,
        target_tag=args.target_tag,
        tag_aliases=args.aliases,
        toolchain=getattr(args, "toolchain", None),
        timeout_ms=getattr(args, "timeout_ms", None),
        concurrency=getattr(args, "concurrency", None),
        report_format=getattr(args, "report_format", None),
        output=getattr(args, "output", None),
        timings=False if getattr(args, "no_timings", False) else None,
    )
    config.require_target_tag()
    return config


def _print_plan(plan: VerificationPlan) -> None:
    for planned in plan.snippets:
        snippet = planned.snippet
        headings = " > ".join(snippet.heading_path)
        language = snippet.language or "-"
        line = f"{snippet.location}  #{snippet.ordinal}  {language}  {planned.expectation.describe()}"
        if headings:
            line += f"  ({headings})"
        print(line)
    runnable = len(plan.runnable)
    print(f"{len(plan.snippets)} snippet(s), {runnable} to verify, {len(plan.snippets) - runnable} ignored")


@contextmanager
def _terminate_on_sigterm(token: CancellationToken) -> Iterator[None]:
    def _handler(signum: int, frame: object) -> None:
        token.cancel("terminated by signal")

    try:
        previous = signal.signal(signal.SIGTERM, _handler)
    except ValueError:  # not on the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


if __name__ == "__main__":
    main(sys.argv[1:])
