"""Out-of-process toolchain invocation for snippets."""

from __future__ import annotations

import os
import shutil
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Sequence

from ..logging import get_logger
from ..models import ExecutionResult, Snippet

FILE_PLACEHOLDER = "{file}"
DIR_PLACEHOLDER = "{dir}"
_SNIPPET_STEM = "snippet"

logger = get_logger("toolchain")


class ToolchainLaunchError(RuntimeError):
    """Raised when the toolchain executable cannot be started."""


@dataclass
class ToolchainRequest:
    """Represents a single snippet invocation."""

    command: Sequence[str]
    code: str
    timeout: float
    file_suffix: str = ""
    env: Dict[str, str] = field(default_factory=dict)
    label: str = ""


class ToolchainRunner:
    """Runs snippet code through the configured compiler or interpreter.

    Every invocation gets its own scratch directory and its own process
    group. A run that exceeds the timeout is killed together with anything
    it spawned before the result is returned.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        timeout_ms: int = 5000,
        file_suffix: str = "",
        env: Mapping[str, str] | None = None,
        executor: Callable[[ToolchainRequest], ExecutionResult] | None = None,
    ) -> None:
        if not command:
            raise ValueError("toolchain command must not be empty")
        self.command = list(command)
        if os.sep in self.command[0] and not os.path.isabs(self.command[0]):
            # Invocations run inside a scratch directory.
            self.command[0] = os.path.abspath(self.command[0])
        self.timeout_ms = timeout_ms
        self.file_suffix = file_suffix
        self.env = dict(env or {})
        self._executor = executor or self._subprocess_executor

    def check_available(self) -> None:
        """Fail fast when the toolchain executable cannot be resolved."""
        executable = self.command[0]
        if shutil.which(executable) is None:
            raise ToolchainLaunchError(f"Toolchain executable not found or not executable: {executable}")

    def run(self, snippet: Snippet) -> ExecutionResult:
        request = ToolchainRequest(
            command=self.command,
            code=snippet.code + "\n",
            timeout=self.timeout_ms / 1000.0,
            file_suffix=self.file_suffix,
            env=self.env,
            label=snippet.location,
        )
        result = self._executor(request)
        logger.debug(
            "%s finished with exit=%s timed_out=%s in %.3fs",
            snippet.location,
            result.exit_code,
            result.timed_out,
            result.duration,
        )
        return result

    @staticmethod
    def _subprocess_executor(request: ToolchainRequest) -> ExecutionResult:
        with tempfile.TemporaryDirectory(prefix="docverify-") as scratch:
            scratch_dir = Path(scratch)
            snippet_path = scratch_dir / f"{_SNIPPET_STEM}{request.file_suffix}"
            args = [
                part.replace(FILE_PLACEHOLDER, str(snippet_path)).replace(DIR_PLACEHOLDER, str(scratch_dir))
                for part in request.command
            ]
            use_stdin = not any(FILE_PLACEHOLDER in part for part in request.command)
            if not use_stdin:
                snippet_path.write_text(request.code, encoding="utf-8")

            env = os.environ.copy()
            env.update(request.env)

            started = time.monotonic()
            try:
                process = subprocess.Popen(
                    args,
                    cwd=scratch_dir,
                    env=env,
                    stdin=subprocess.PIPE if use_stdin else subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    start_new_session=os.name == "posix",
                )
            except (FileNotFoundError, PermissionError) as exc:
                raise ToolchainLaunchError(f"Unable to launch toolchain '{args[0]}': {exc}") from exc

            timed_out = False
            try:
                stdout, stderr = process.communicate(
                    input=request.code.encode("utf-8") if use_stdin else None,
                    timeout=request.timeout,
                )
            except subprocess.TimeoutExpired:
                timed_out = True
                logger.warning("%s timed out after %.0f ms; terminating", request.label, request.timeout * 1000)
                _terminate(process)
                stdout, stderr = process.communicate()
            except BaseException:
                _terminate(process)
                process.communicate()
                raise
            duration = time.monotonic() - started

        return ExecutionResult(
            exit_code=None if timed_out else process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            duration=duration,
            timed_out=timed_out,
            pid=process.pid,
        )


def _terminate(process: subprocess.Popen) -> None:
    if os.name == "posix":
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    else:  # pragma: no cover - windows has no process groups here
        process.kill()


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace").replace("\r\n", "\n")


__all__ = [
    "DIR_PLACEHOLDER",
    "FILE_PLACEHOLDER",
    "ToolchainLaunchError",
    "ToolchainRequest",
    "ToolchainRunner",
]
