"""
Count the pages of the compiled document.
"""

from __future__ import annotations

from pathlib import Path
import re
from typing import Optional

import fitz  # PyMuPDF

from .config import ToolConfig
from .manifest import ManifestRecorder
from .tools import ToolRunner, run_stage
from .utils import ToolInvocationError


STAGE = "count pages"

_NUMBER_OF_PAGES = re.compile(r"^NumberOfPages:\s*(\S+)\s*$", re.MULTILINE)


def parse_page_count(dump_data: str, document: Path) -> int:
    """Pull `NumberOfPages: N` out of `pdftk dump_data` text."""

    match = _NUMBER_OF_PAGES.search(dump_data)
    if match is None:
        raise ToolInvocationError(STAGE, document, "no NumberOfPages field in pdftk output")
    raw = match.group(1)
    if not raw.isdigit():
        raise ToolInvocationError(STAGE, document, f"NumberOfPages is not a number: {raw!r}")
    count = int(raw)
    if count < 1:
        raise ToolInvocationError(STAGE, document, "document has no pages")
    return count


def _count_with_pymupdf(document: Path) -> int:
    try:
        with fitz.open(document) as doc:
            count = doc.page_count
    except Exception as exc:  # PyMuPDF raises its own error types on bad files
        raise ToolInvocationError(STAGE, document, str(exc)) from exc
    if count < 1:
        raise ToolInvocationError(STAGE, document, "document has no pages")
    return count


def count_pages(
    document: Path,
    tools: ToolConfig,
    runner: ToolRunner,
    recorder: Optional[ManifestRecorder] = None,
) -> int:
    """Return the page count of `document` using the configured backend."""

    if tools.page_backend == "pymupdf":
        count = _count_with_pymupdf(document)
    else:
        result = run_stage(
            runner,
            [tools.pdftk, document.name, "dump_data", "output"],
            cwd=document.parent,
            stage=STAGE,
            path=document,
            recorder=recorder,
        )
        count = parse_page_count(result.stdout, document)

    if recorder is not None:
        recorder.add_action(
            "count_pages", "ok", document=str(document), pages=count, backend=tools.page_backend
        )
    return count
