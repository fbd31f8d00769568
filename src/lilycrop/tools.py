"""
Run external programs and report what happened.

Every stage of the pipeline (lilypond, pdftk, pdftops, ps2eps, epstopdf) goes
through ToolRunner.run, which never raises for a failing program. It returns
a ToolResult and the caller decides, usually via raise_for_status.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
import subprocess
from typing import TYPE_CHECKING, List, Optional, Sequence

from .utils import ToolInvocationError

if TYPE_CHECKING:  # pragma: no cover
    from .manifest import ManifestRecorder


MISSING_EXECUTABLE = 127


def format_command(argv: Sequence[object]) -> str:
    return subprocess.list2cmdline([str(part) for part in argv])


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external command."""

    argv: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command_line(self) -> str:
        return format_command(self.argv)

    def diagnostic(self) -> str:
        """Short human-readable reason for a failure."""

        reason = self.stderr.strip() or self.stdout.strip() or "no output"
        # Keep the tail; tools print the real error last.
        lines = reason.splitlines()[-5:]
        return f"'{self.command_line}' exited with {self.returncode}: " + " | ".join(lines)

    def raise_for_status(self, stage: str, path: Path) -> "ToolResult":
        if not self.ok:
            raise ToolInvocationError(stage, path, self.diagnostic())
        return self


class ToolRunner:
    """Thin subprocess wrapper. Tests substitute a fake with the same `run`."""

    def run(
        self,
        argv: Sequence[str],
        cwd: Path,
        stdin_path: Optional[Path] = None,
        stdout_path: Optional[Path] = None,
    ) -> ToolResult:
        """
        Run `argv` in `cwd` and wait for it to exit.

        When `stdout_path` is given the program's stdout is streamed into that
        file (ps2eps writes its result that way) and ToolResult.stdout is empty.
        """

        args = [str(part) for part in argv]
        with ExitStack() as stack:
            stdin = (
                stack.enter_context(open(stdin_path, "rb"))
                if stdin_path is not None
                else subprocess.DEVNULL
            )
            stdout = (
                stack.enter_context(open(stdout_path, "wb"))
                if stdout_path is not None
                else subprocess.PIPE
            )
            try:
                completed = subprocess.run(
                    args,
                    cwd=str(cwd),
                    stdin=stdin,
                    stdout=stdout,
                    stderr=subprocess.PIPE,
                    check=False,
                )
            except FileNotFoundError:
                return ToolResult(
                    argv=args,
                    returncode=MISSING_EXECUTABLE,
                    stderr=f"executable not found: {args[0]}",
                )
            except OSError as exc:
                return ToolResult(argv=args, returncode=MISSING_EXECUTABLE, stderr=str(exc))

        captured = completed.stdout if stdout_path is None else b""
        return ToolResult(
            argv=args,
            returncode=completed.returncode,
            stdout=(captured or b"").decode("utf-8", errors="replace"),
            stderr=(completed.stderr or b"").decode("utf-8", errors="replace"),
        )


def run_stage(
    runner: ToolRunner,
    argv: Sequence[object],
    cwd: Path,
    stage: str,
    path: Path,
    recorder: Optional[ManifestRecorder] = None,
    stdin_path: Optional[Path] = None,
    stdout_path: Optional[Path] = None,
) -> ToolResult:
    """Run one pipeline stage and raise ToolInvocationError if it failed."""

    if recorder is not None:
        recorder.log(f"Running: {format_command(argv)}", level="debug")
    result = runner.run(argv, cwd=cwd, stdin_path=stdin_path, stdout_path=stdout_path)
    if not result.ok and recorder is not None:
        recorder.add_action(
            stage, "error", path=str(path), command=result.command_line, returncode=result.returncode
        )
    return result.raise_for_status(stage, path)
