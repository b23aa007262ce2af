"""Tests for the out-of-process toolchain runner."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from docverify.models import ExecutionResult, Snippet
from docverify.toolchain import ToolchainLaunchError, ToolchainRequest, ToolchainRunner


def _snippet(code: str) -> Snippet:
    return Snippet(source="docs/page.md", ordinal=0, code=code, language="python", line=1)


def test_runner_constructs_request() -> None:
    captured = {}

    def fake_executor(request: ToolchainRequest) -> ExecutionResult:
        captured["command"] = list(request.command)
        captured["code"] = request.code
        captured["timeout"] = request.timeout
        captured["file_suffix"] = request.file_suffix
        captured["env"] = request.env
        captured["label"] = request.label
        return ExecutionResult(exit_code=0, stdout="", stderr="", duration=0.0)

    runner = ToolchainRunner(
        ["bsc", "{file}"],
        timeout_ms=1500,
        file_suffix=".res",
        env={"FORCE_COLOR": "0"},
        executor=fake_executor,
    )
    result = runner.run(_snippet("let a = 1"))

    assert result.succeeded
    assert captured == {
        "command": ["bsc", "{file}"],
        "code": "let a = 1\n",
        "timeout": 1.5,
        "file_suffix": ".res",
        "env": {"FORCE_COLOR": "0"},
        "label": "docs/page.md:1",
    }


def test_runner_writes_snippet_file_and_captures_streams() -> None:
    runner = ToolchainRunner([sys.executable, "{file}"], file_suffix=".py")

    result = runner.run(_snippet("import sys\nprint('out')\nprint('err', file=sys.stderr)\nsys.exit(3)"))

    assert result.exit_code == 3
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"
    assert not result.timed_out
    assert not result.succeeded


def test_runner_pipes_code_to_stdin_without_placeholder() -> None:
    runner = ToolchainRunner([sys.executable, "-"])

    result = runner.run(_snippet("print(6)"))

    assert result.succeeded
    assert result.stdout.strip() == "6"


def test_runner_uses_unique_scratch_directory_removed_afterwards() -> None:
    runner = ToolchainRunner([sys.executable, "{file}"], file_suffix=".py")
    code = "import os\nopen('state.txt', 'w').write('x')\nprint(os.getcwd())"

    first = runner.run(_snippet(code))
    second = runner.run(_snippet(code))

    first_dir = Path(first.stdout.strip())
    second_dir = Path(second.stdout.strip())
    assert first_dir != second_dir
    assert not first_dir.exists()
    assert not second_dir.exists()


def test_runner_passes_extra_environment() -> None:
    runner = ToolchainRunner([sys.executable, "{file}"], env={"DOCVERIFY_PROBE": "42"})

    result = runner.run(_snippet("import os\nprint(os.environ['DOCVERIFY_PROBE'])"))

    assert result.stdout.strip() == "42"


def test_runner_timeout_kills_process() -> None:
    runner = ToolchainRunner([sys.executable, "{file}"], timeout_ms=300)

    result = runner.run(_snippet("import time\ntime.sleep(30)"))

    assert result.timed_out
    assert result.exit_code is None
    assert not result.succeeded
    assert result.duration < 10
    assert result.pid is not None
    with pytest.raises(ProcessLookupError):
        os.kill(result.pid, 0)


def test_missing_toolchain_raises_launch_error(tmp_path: Path) -> None:
    runner = ToolchainRunner([str(tmp_path / "no-such-compiler"), "{file}"])

    with pytest.raises(ToolchainLaunchError):
        runner.check_available()
    with pytest.raises(ToolchainLaunchError):
        runner.run(_snippet("let a = 1"))


def test_check_available_accepts_interpreter() -> None:
    ToolchainRunner([sys.executable, "{file}"]).check_available()


def test_empty_command_is_rejected() -> None:
    with pytest.raises(ValueError):
        ToolchainRunner([])
