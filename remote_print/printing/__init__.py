"""
Printing subsystem for the remote print worker.

This package groups printing-related functionality:

- models: job descriptors and wire messages
- queue: bounded job queue between admission and printing
- render: PDF rasterization and scale-to-fit composition with PyMuPDF/Pillow
- sinks: print device adapters (Windows spooler, ESC/POS)
- pipeline: page-by-page printing of one job
- registry: in-memory job lifecycle registry
- worker: orchestration of the monitor and consumer threads (import it directly)
"""

from .models import *
from .pipeline import *
from .queue import *
from .registry import *
from .render import *
from .sinks import *
