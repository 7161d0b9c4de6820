"""
Print pipeline: turns one admitted job into physical output, page by page.

Per job: open the local PDF, build the page setup once, then let the sink pull
sheets through a page-feed callback. Each callback renders exactly one page,
draws it scaled to fit and releases the raster before returning, so at most
one rendered page is held in memory.

Failures never escape print_job(): they are logged and returned in the
PrintResult so the caller can report them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from PIL import Image

from remote_print.printing.models import PrintJob
from remote_print.printing.render import DEFAULT_DPI, compose_sheet, open_document, rasterize_page
from remote_print.printing.sinks import PageSetup, PrintSink

logger = logging.getLogger(__name__)


@dataclass
class PrintResult:
    job_id: int
    pages_printed: int = 0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def match_paper_size(requested: str, supported: Iterable[str]) -> Optional[str]:
    """Exact-name match against the device's sizes; None selects the device default."""
    if not requested:
        return None
    for name in supported:
        if name == requested:
            return name
    return None


def build_page_setup(job: PrintJob, printer_name: str, supported_paper_sizes: Iterable[str]) -> PageSetup:
    paper = match_paper_size(job.paper_size, supported_paper_sizes)
    if job.paper_size and paper is None:
        logger.debug("Paper size %r not offered by the printer; using device default", job.paper_size)
    return PageSetup(
        printer_name=printer_name,
        document_name=job.file,
        copies=job.effective_copies,
        duplex=job.duplex_mode,
        landscape=job.landscape,
        monochrome=job.monochrome,
        paper_size=paper,
    )


class PageFeeder:
    """
    Page-feed callback for one document.

    `cursor` is the zero-based index of the next page to render; it starts at
    the job's first page and stops at the document length or the job's last
    page, whichever comes first.
    """

    def __init__(self, doc, job: PrintJob, dpi: int = DEFAULT_DPI) -> None:
        self.doc = doc
        self.page_count: int = doc.page_count
        self.end_page = job.end_page
        self.cursor = job.first_page_index
        self.dpi = dpi
        self.grayscale = job.monochrome
        self.pages_rendered = 0

    def has_more(self) -> bool:
        return self.cursor < self.page_count and self.cursor < self.end_page

    def __call__(self, printable_size: Tuple[int, int]) -> Tuple[Optional[Image.Image], bool]:
        if not self.has_more():
            return None, False

        page = rasterize_page(self.doc, self.cursor, dpi=self.dpi, grayscale=self.grayscale)
        try:
            sheet = compose_sheet(page, printable_size)
        finally:
            page.close()
        logger.debug("Rendered page %d/%d", self.cursor + 1, self.page_count)

        self.cursor += 1
        self.pages_rendered += 1
        return sheet, self.has_more()


class PrintPipeline:
    def __init__(self, sink: PrintSink, printer_name: str = "", dpi: int = DEFAULT_DPI) -> None:
        self.sink = sink
        self.printer_name = printer_name
        self.dpi = dpi

    def print_job(self, job: PrintJob, path: Union[str, os.PathLike]) -> PrintResult:
        """
        Print `job` from the local document at `path`.
        Returns a PrintResult; `error` holds whatever stopped the job.
        """
        result = PrintResult(job_id=job.job_id)
        logger.info(f"Starting to print file: {job.file}")
        try:
            doc = open_document(Path(path))
        except Exception as e:
            logger.error(f"Error opening file {job.file}: {e}")
            result.error = e
            return result

        feeder = PageFeeder(doc, job, dpi=self.dpi)
        try:
            setup = build_page_setup(job, self.printer_name, self.sink.supported_paper_sizes())
            self.sink.print_document(setup, feeder)
            logger.info(
                "Printed file: %s (%d page(s) x %d copies)", job.file, feeder.pages_rendered, setup.copies
            )
        except Exception as e:
            logger.exception(f"Error printing file {job.file}: {e}")
            result.error = e
        finally:
            result.pages_printed = feeder.pages_rendered
            doc.close()
        return result


__all__ = ["PageFeeder", "PrintPipeline", "PrintResult", "build_page_setup", "match_paper_size"]
