"""
Print device adapters.

A sink accepts a PageSetup and a page-feed callback and drives the physical
print: it asks the feed for one sheet at a time, passing the printable area in
device pixels, until the feed reports there are no more pages. The feed returns
the composed sheet image (or None when it has nothing to draw) and a
continuation flag. Exceptions raised by the feed abort the document and
propagate to the caller.

Supported devices:
- "windows": the Windows print spooler via GDI (pywin32)
- "usb" / "network" / "serial": ESC/POS devices via python-escpos
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from PIL import Image, ImageChops

from remote_print.core.config import WorkerConfig
from remote_print.core.errors import PrinterError
from remote_print.printing.models import Duplex

logger = logging.getLogger(__name__)

# feed(printable_size) -> (sheet or None, has_more_pages)
PageFeed = Callable[[Tuple[int, int]], Tuple[Optional[Image.Image], bool]]


@dataclass(frozen=True)
class PageSetup:
    printer_name: str
    document_name: str
    copies: int = 1
    duplex: Duplex = Duplex.SIMPLEX
    landscape: bool = False
    monochrome: bool = False
    # None means the device default
    paper_size: Optional[str] = None
    margins: Tuple[int, int, int, int] = (0, 0, 0, 0)


class PrintSink(ABC):
    @abstractmethod
    def supported_paper_sizes(self) -> List[str]:
        """Names of the paper sizes the device reports; empty when unknown."""

    @abstractmethod
    def print_document(self, setup: PageSetup, feed: PageFeed) -> None:
        """Pull sheets from `feed` until it reports no more pages. Raises PrinterError on device failures."""


class WindowsSpoolerSink(PrintSink):
    """
    Print through the Windows spooler with a GDI device context.

    The DEVMODE carries copies, duplex, orientation, color and paper size so the
    driver performs copies and duplexing itself.
    """

    def __init__(self, printer_name: str = "") -> None:
        self.printer_name = printer_name

    def _resolve_printer(self) -> str:
        import win32print

        return self.printer_name or win32print.GetDefaultPrinter()

    def _paper_table(self, name: str) -> Dict[str, int]:
        import win32con
        import win32print

        handle = win32print.OpenPrinter(name)
        try:
            port = win32print.GetPrinter(handle, 2)["pPortName"]
        finally:
            win32print.ClosePrinter(handle)
        names = win32print.DeviceCapabilities(name, port, win32con.DC_PAPERNAMES)
        ids = win32print.DeviceCapabilities(name, port, win32con.DC_PAPERS)
        return {str(n).strip("\x00").strip(): int(i) for n, i in zip(names or [], ids or [])}

    def supported_paper_sizes(self) -> List[str]:
        try:
            return list(self._paper_table(self._resolve_printer()))
        except Exception as e:
            logger.debug(f"Paper size discovery failed: {e}")
            return []

    def _devmode(self, name: str, setup: PageSetup):
        import win32con
        import win32print

        handle = win32print.OpenPrinter(name)
        try:
            devmode = win32print.GetPrinter(handle, 2)["pDevMode"]
        finally:
            win32print.ClosePrinter(handle)

        devmode.Copies = setup.copies
        devmode.Duplex = {
            Duplex.HORIZONTAL: win32con.DMDUP_HORIZONTAL,
            Duplex.VERTICAL: win32con.DMDUP_VERTICAL,
        }.get(setup.duplex, win32con.DMDUP_SIMPLEX)
        devmode.Orientation = win32con.DMORIENT_LANDSCAPE if setup.landscape else win32con.DMORIENT_PORTRAIT
        devmode.Color = win32con.DMCOLOR_MONOCHROME if setup.monochrome else win32con.DMCOLOR_COLOR
        fields = win32con.DM_COPIES | win32con.DM_DUPLEX | win32con.DM_ORIENTATION | win32con.DM_COLOR
        if setup.paper_size:
            paper_id = self._paper_table(name).get(setup.paper_size)
            if paper_id is not None:
                devmode.PaperSize = paper_id
                fields |= win32con.DM_PAPERSIZE
        devmode.Fields |= fields
        return devmode

    def print_document(self, setup: PageSetup, feed: PageFeed) -> None:
        try:
            import win32con
            import win32gui
            import win32ui
            from PIL import ImageWin
        except ImportError as e:
            raise PrinterError(f"Windows printing requires pywin32: {e}") from e

        name = setup.printer_name or self._resolve_printer()
        try:
            devmode = self._devmode(name, setup)
            dc = win32ui.CreateDCFromHandle(win32gui.CreateDC("WINSPOOL", name, devmode))
        except Exception as e:
            raise PrinterError(f"Cannot open printer {name!r}: {e}") from e

        try:
            printable = (dc.GetDeviceCaps(win32con.HORZRES), dc.GetDeviceCaps(win32con.VERTRES))
            dc.StartDoc(setup.document_name)
            try:
                more = True
                while more:
                    sheet, more = feed(printable)
                    if sheet is None:
                        continue
                    dc.StartPage()
                    ImageWin.Dib(sheet).draw(dc.GetHandleOutput(), (0, 0, printable[0], printable[1]))
                    dc.EndPage()
                    sheet.close()
            except BaseException:
                dc.AbortDoc()
                raise
            dc.EndDoc()
        finally:
            dc.DeleteDC()


def _trim_bottom(sheet: Image.Image) -> Image.Image:
    """Crop trailing white rows of a grayscale sheet so receipt paper is not wasted."""
    bbox = ImageChops.invert(sheet).getbbox()
    if not bbox:
        return sheet
    return sheet.crop((0, 0, sheet.width, bbox[3]))


class EscposSink(PrintSink):
    """
    Print sheets as raster images on an ESC/POS receipt printer.

    Receipt printers have a fixed width and no paper sizes or duplexing; the
    printable area is `receipt_width` wide and as tall as an A-series page of
    that width. Every sheet is cut off the roll on its own and copies are
    uncollated: each sheet is printed `copies` times before the next one is
    rendered, so only one sheet is held in memory.
    """

    def __init__(self, connect: Callable[[], Any], receipt_width: int = 512) -> None:
        self._connect = connect
        self.receipt_width = receipt_width

    @property
    def printable_size(self) -> Tuple[int, int]:
        return self.receipt_width, int(self.receipt_width * 297 / 210)

    def supported_paper_sizes(self) -> List[str]:
        return []

    def print_document(self, setup: PageSetup, feed: PageFeed) -> None:
        width, height = self.printable_size
        # Landscape sheets are composed wide and rotated so the long edge runs along the roll
        size = (height, width) if setup.landscape else (width, height)
        try:
            p = self._connect()
        except Exception as e:
            raise PrinterError(f"Cannot connect to ESC/POS printer: {e}") from e
        try:
            more = True
            while more:
                sheet, more = feed(size)
                if sheet is None:
                    continue
                if setup.landscape:
                    rotated = sheet.rotate(90, expand=True)
                    sheet.close()
                    sheet = rotated
                gray = sheet.convert("L")
                sheet.close()
                trimmed = _trim_bottom(gray)
                try:
                    for _ in range(setup.copies):
                        p.image(trimmed)
                        p.cut()
                    logger.info(
                        "Printed sheet on ESC/POS printer (%dx%d) x%d", trimmed.width, trimmed.height, setup.copies
                    )
                finally:
                    trimmed.close()
                    if trimmed is not gray:
                        gray.close()
        finally:
            try:
                p.close()
            except Exception:
                pass


def _connect_escpos(config: WorkerConfig):
    """
    Create and return an ESC/POS printer instance based on the provided config.
    Supports USB, Network, and Serial with optional 'printer_profile'.
    """
    profile = config.printer_profile or None
    ptype = config.printer_type

    if ptype == "usb":
        from escpos.printer import Usb

        vendor = int(str(config.usb_vendor_id), 16)
        product = int(str(config.usb_product_id), 16)
        if profile:
            return Usb(vendor, product, profile=profile)
        return Usb(vendor, product)
    if ptype == "network":
        from escpos.printer import Network

        if profile:
            return Network(config.network_ip, config.network_port, profile=profile)
        return Network(config.network_ip, config.network_port)
    if ptype == "serial":
        from escpos.printer import Serial

        if profile:
            return Serial(config.serial_port, baudrate=config.serial_baudrate, profile=profile)
        return Serial(config.serial_port, baudrate=config.serial_baudrate)
    raise PrinterError(f"Unsupported ESC/POS printer type: {ptype}")


def connect_sink(config: WorkerConfig) -> PrintSink:
    """
    Build the print sink for `config.printer_type`.

    Raises:
        PrinterError for unknown printer types.
    """
    ptype = config.printer_type
    if ptype == "windows":
        return WindowsSpoolerSink(config.printer_name)
    if ptype in ("usb", "network", "serial"):
        return EscposSink(lambda: _connect_escpos(config), receipt_width=config.receipt_width)
    raise PrinterError(f"Unsupported printer type: {ptype}")


__all__ = [
    "EscposSink",
    "PageFeed",
    "PageSetup",
    "PrintSink",
    "WindowsSpoolerSink",
    "connect_sink",
]
