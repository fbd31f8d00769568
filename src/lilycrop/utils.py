"""
Shared utility helpers.

This module keeps the error types and the small filesystem helpers in one
place so the pipeline modules can stay focused on sequencing external tools.
"""

from __future__ import annotations

from pathlib import Path


EXIT_OK = 0
EXIT_FAILURE = 2
EXIT_USAGE = 85


class UserError(Exception):
    """Raised for user-facing problems that should show a clear message."""

    exit_code = EXIT_FAILURE


class UsageError(UserError):
    """The command line was wrong: no input, bad option, or missing file."""

    exit_code = EXIT_USAGE


class ToolInvocationError(UserError):
    """
    An external tool failed or produced output we could not understand.

    `stage` names the pipeline step and `path` the file being worked on, so
    the message tells the user where the run stopped.
    """

    def __init__(self, stage: str, path: Path | str, detail: str) -> None:
        self.stage = stage
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"{stage} failed for {path}: {detail}")


class ConsistencyError(UserError):
    """The burst produced a different number of pages than were counted."""

    def __init__(self, path: Path | str, expected: int, found: int) -> None:
        self.path = Path(path)
        self.expected = expected
        self.found = found
        super().__init__(
            f"Burst of {path} produced {found} page file(s), expected {expected}."
        )


def normalize_path(value: str) -> Path:
    """
    Convert user input to a Path.

    We do not resolve() here because we want to preserve relative paths in
    notices and error messages.
    """

    return Path(value).expanduser()


def ensure_file_exists(path: Path, label: str) -> Path:
    """Validate that a path exists and is a file."""

    if not path.exists():
        raise UserError(f"{label} not found: {path}")
    if not path.is_file():
        raise UserError(f"{label} is not a file: {path}")
    return path


def ensure_source_file(path: Path) -> Path:
    """Validate the notation input: an existing file named `*.ly`."""

    if path.suffix != ".ly":
        raise UsageError(f"Invalid filename '{path}' (expected a .ly file)")
    if not path.is_file():
        raise UsageError(f"Invalid filename '{path}'")
    return path


def remove_file(path: Path) -> None:
    """Delete a file; a missing file is not an error."""

    path.unlink(missing_ok=True)


def crop_stem(path: Path) -> str:
    """`sonata-2.pdf` -> `sonata-2-crop`."""

    return f"{path.stem}-crop"


def page_artifact_name(base: str, ordinal: int) -> str:
    """Deterministic per-page name: `{base}-{ordinal}.pdf` (1-based)."""

    if ordinal < 1:
        raise ValueError(f"Page ordinals are 1-based, got {ordinal}.")
    return f"{base}-{ordinal}.pdf"
