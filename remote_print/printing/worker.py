"""
Worker orchestration for the remote print worker.

This module owns:
- The two long-running threads: the connection monitor and the queue consumer
- The per-job print step: verify the document is local (re-fetching it if it
  disappeared), print it, report exactly one terminal status event, then pause
  before the next job so the device is not hammered
- Graceful shutdown: stop reconnecting, close admission, drain the queue, then
  close the connection

It is deliberately Flask-agnostic; the status endpoints only read from it.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional

from remote_print.core.config import WorkerConfig
from remote_print.core.errors import FetchError
from remote_print.core.logging import job_context
from remote_print.printing.models import PrintJob
from remote_print.printing.pipeline import PrintPipeline, PrintResult
from remote_print.printing.queue import JobQueue
from remote_print.printing.registry import FAILED, PRINTED, PRINTING, JobRegistry
from remote_print.printing.sinks import PrintSink, connect_sink
from remote_print.remote.artifacts import ArtifactFetcher
from remote_print.remote.connection import ConnectionManager, TransportFactory, WebSocketTransport

logger = logging.getLogger(__name__)


class PrintWorker:
    def __init__(
        self,
        config: WorkerConfig,
        *,
        sink: Optional[PrintSink] = None,
        fetcher: Optional[ArtifactFetcher] = None,
        transport_factory: TransportFactory = WebSocketTransport,
    ) -> None:
        self.config = config
        self.registry = JobRegistry(max_jobs=config.jobs_max)
        self.queue: JobQueue[PrintJob] = JobQueue(config.queue_capacity)
        self.fetcher = fetcher or ArtifactFetcher.from_config(config)
        self.pipeline = PrintPipeline(sink or connect_sink(config), printer_name=config.printer_name, dpi=config.render_dpi)
        self.connection = ConnectionManager.from_config(
            config, self.fetcher, self.queue, registry=self.registry, transport_factory=transport_factory
        )
        self.pacing_seconds = config.job_pacing_seconds
        self._stop = threading.Event()
        self._monitor_thread: Optional[threading.Thread] = None
        self._consumer_thread: Optional[threading.Thread] = None

    # -- per job -----------------------------------------------------------

    def process_job(self, job: PrintJob) -> PrintResult:
        """
        Print one dequeued job and report its outcome. Never raises.
        """
        with job_context(job.job_id):
            logger.info("Processing print job %s (%s)", job.job_id, job.file)
            self.registry.update(job.job_id, status=PRINTING)
            try:
                path = self.fetcher.ensure_local(job.file)
            except FetchError as e:
                logger.error(f"File for job {job.job_id} is missing and could not be downloaded again: {e}")
                result = PrintResult(job_id=job.job_id, error=e)
            else:
                result = self.pipeline.print_job(job, path)

            if result.ok:
                self.registry.update(job.job_id, status=PRINTED, pages=result.pages_printed)
                self.connection.reporter.completed(job.job_id)
            else:
                self.registry.update(job.job_id, status=FAILED, pages=result.pages_printed, error=str(result.error))
                self.connection.reporter.failed(job.job_id)
            return result

    def consume(self) -> None:
        """
        Print queued jobs in FIFO order until the queue is closed and drained.
        """
        logger.info("Starting to process print queue")
        for job in self.queue.pop_all():
            try:
                self.process_job(job)
            except Exception as e:
                # process_job reports its own failures; this only guards the loop
                logger.exception(f"Unexpected error while processing job {job.job_id}: {e}")
            if self.pacing_seconds > 0:
                time.sleep(self.pacing_seconds)
        logger.info("Print queue drained")

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """
        Start the connection monitor and queue consumer threads (idempotent).
        """
        if self.alive:
            return
        self._stop.clear()
        self._monitor_thread = threading.Thread(
            target=self.connection.monitor, args=(self._stop,), daemon=True, name="connection-monitor"
        )
        self._consumer_thread = threading.Thread(target=self.consume, daemon=True, name="print-consumer")
        self._monitor_thread.start()
        self._consumer_thread.start()
        logger.info("Print worker started for %s", self.config.endpoint)

    def stop(self) -> None:
        """Request shutdown; queued jobs still drain."""
        if not self._stop.is_set():
            logger.info("Shutdown requested")
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for both threads to finish, then close the connection.
        Returns False if a thread is still running after `timeout`.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for t in (self._monitor_thread, self._consumer_thread):
            if t is None:
                continue
            t.join(None if deadline is None else max(0.0, deadline - time.monotonic()))
            if t.is_alive():
                return False
        self.connection.close()
        return True

    def run(self) -> None:
        """
        Run until stop() is called (or Ctrl+C), then drain and shut down.
        """
        self.start()
        try:
            while not self._stop.wait(0.5):
                pass
        except KeyboardInterrupt:
            self.stop()
        self.join()
        logger.info("Print worker stopped")

    @property
    def alive(self) -> bool:
        return any(t is not None and t.is_alive() for t in (self._monitor_thread, self._consumer_thread))

    def status(self) -> Dict[str, Any]:
        """
        Return basic worker/queue/connection status.
        """
        return {
            "connection": self.connection.state.value,
            "monitor_alive": bool(self._monitor_thread and self._monitor_thread.is_alive()),
            "consumer_alive": bool(self._consumer_thread and self._consumer_thread.is_alive()),
            "stopping": self.stopping,
            "queue_size": self.queue.qsize(),
            "queue_capacity": self.queue.capacity,
            "queue_closed": self.queue.closed,
            "jobs": self.registry.counts(),
        }


__all__ = ["PrintWorker"]
