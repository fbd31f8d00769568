"""
Split a multi-page PDF into one PDF per page.

Why this module exists:
- The burst tool picks its own file names (pg_0001.pdf, ...). We rename them
  to `{base}-{n}.pdf` and the order of that renaming is what ties cropped
  file n to visual page n, so it lives in one small, testable place.
"""

from __future__ import annotations

from pathlib import Path
import re
import shutil
import tempfile
from typing import List, Optional

import fitz  # PyMuPDF

from .config import ToolConfig
from .manifest import ManifestRecorder
from .tools import ToolRunner, run_stage
from .utils import ConsistencyError, ToolInvocationError, page_artifact_name


STAGE = "burst"
BURST_AUX_FILE = "doc_data.txt"

_BURST_NAME = re.compile(r"^pg_(\d+)\.pdf$")


def _burst_with_pdftk(
    document: Path,
    scratch: Path,
    tools: ToolConfig,
    runner: ToolRunner,
    recorder: Optional[ManifestRecorder],
) -> None:
    # pdftk writes pg_%04d.pdf and doc_data.txt into its working directory.
    run_stage(
        runner,
        [tools.pdftk, str(document.resolve()), "burst"],
        cwd=scratch,
        stage=STAGE,
        path=document,
        recorder=recorder,
    )


def _burst_with_pymupdf(document: Path, scratch: Path) -> None:
    try:
        with fitz.open(document) as doc:
            for index in range(doc.page_count):
                with fitz.open() as page_doc:
                    page_doc.insert_pdf(doc, from_page=index, to_page=index)
                    page_doc.save(scratch / f"pg_{index + 1:04d}.pdf")
    except Exception as exc:  # PyMuPDF raises its own error types on bad files
        raise ToolInvocationError(STAGE, document, str(exc)) from exc


def collect_burst_files(scratch: Path) -> List[Path]:
    """
    Return burst outputs in page order.

    Sorting is by the numeric suffix, not the name, so pg_10000 follows
    pg_9999 even though it sorts before it as a string.
    """

    found = []
    for path in scratch.iterdir():
        match = _BURST_NAME.match(path.name)
        if match and path.is_file():
            found.append((int(match.group(1)), path))
    found.sort(key=lambda item: item[0])
    return [path for _, path in found]


def split_pages(
    document: Path,
    expected_count: int,
    tools: ToolConfig,
    runner: ToolRunner,
    recorder: Optional[ManifestRecorder] = None,
) -> List[Path]:
    """
    Burst `document` and return `{base}-1.pdf` ... `{base}-N.pdf` in page order.

    The pages land next to `document`. Raises ConsistencyError when the burst
    does not produce exactly `expected_count` pages.
    """

    base = document.stem
    out_dir = document.parent
    scratch = Path(tempfile.mkdtemp(prefix=f".{base}-burst-", dir=out_dir))

    if tools.page_backend == "pymupdf":
        _burst_with_pymupdf(document, scratch)
    else:
        _burst_with_pdftk(document, scratch, tools, runner, recorder)

    burst_files = collect_burst_files(scratch)
    if recorder is not None:
        recorder.add_action(
            "burst", "ok", document=str(document), pages=len(burst_files), scratch=str(scratch)
        )
    if len(burst_files) != expected_count:
        raise ConsistencyError(document, expected_count, len(burst_files))

    pages: List[Path] = []
    for ordinal, burst_file in enumerate(burst_files, start=1):
        target = out_dir / page_artifact_name(base, ordinal)
        burst_file.replace(target)
        pages.append(target)
        if recorder is not None:
            recorder.add_action("rename_page", "ok", source=burst_file.name, output=str(target))

    aux_file = scratch / BURST_AUX_FILE
    if aux_file.exists():
        aux_file.unlink()
        if recorder is not None:
            recorder.add_action("remove_intermediate", "removed", path=BURST_AUX_FILE)
    shutil.rmtree(scratch)

    return pages
