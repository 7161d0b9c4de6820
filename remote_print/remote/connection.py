"""
Connection manager: the worker's single point of contact with the job source.

Owns the duplex connection and its state, decodes inbound job batches, admits
jobs onto the job queue after their documents are available locally, and sends
status events. A monitoring loop polls the connection state on a fixed
interval and reconnects whenever it is not open; there is no backoff and no
retry limit, and missed close events are tolerated because the state is
re-checked on every tick.

Inbound messages are handled on the transport's receive thread. Admission
blocks that thread while the job queue is full, which in turn holds back
acknowledgements and further batches until the printer catches up.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from typing import Any, Callable, List, Optional, Sequence

import websocket

from remote_print.core.config import WorkerConfig
from remote_print.core.errors import FetchError, ParseError, QueueClosedError
from remote_print.core.logging import job_context
from remote_print.printing.models import PrintJob, parse_message
from remote_print.printing.queue import JobQueue
from remote_print.printing.registry import ABANDONED, FETCH_FAILED, PRINTING, QUEUED, JobRegistry
from remote_print.remote.artifacts import ArtifactFetcher
from remote_print.remote.status import StatusReporter

logger = logging.getLogger(__name__)

_LOG_PREVIEW = 500


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class WebSocketTransport:
    """
    websocket-client connection whose receive loop runs on a daemon thread,
    so connect() returns immediately.
    """

    def __init__(
        self,
        url: str,
        *,
        on_open: Callable[[], None],
        on_message: Callable[[str], None],
        on_close: Callable[[], None],
        on_error: Callable[[Any], None],
    ) -> None:
        self.url = url
        self._on_close = on_close
        self._app = websocket.WebSocketApp(
            url,
            on_open=lambda ws: on_open(),
            on_message=lambda ws, message: on_message(message),
            on_close=lambda ws, status_code, reason: on_close(),
            on_error=lambda ws, error: on_error(error),
        )
        self._thread: Optional[threading.Thread] = None

    def connect(self) -> None:
        self._thread = threading.Thread(target=self._run, daemon=True, name="job-source-connection")
        self._thread.start()

    def _run(self) -> None:
        try:
            self._app.run_forever(ping_interval=30, ping_timeout=10)
        except Exception as e:
            logger.error(f"Connection loop for {self.url} stopped: {e}")
        finally:
            # run_forever does not call on_close when the handshake itself fails
            self._on_close()

    def send(self, text: str) -> None:
        self._app.send(text)

    def close(self) -> None:
        self._app.close()


TransportFactory = Callable[..., Any]


class ConnectionManager:
    def __init__(
        self,
        endpoint: str,
        fetcher: ArtifactFetcher,
        queue: JobQueue,
        *,
        registry: Optional[JobRegistry] = None,
        transport_factory: TransportFactory = WebSocketTransport,
        reconnect_interval: float = 4.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self.endpoint = endpoint
        self.fetcher = fetcher
        self.queue = queue
        self.registry = registry or JobRegistry()
        self.reporter = StatusReporter(self.send)
        self.reconnect_interval = reconnect_interval
        self.connect_timeout = connect_timeout
        self._transport_factory = transport_factory
        self._transport: Any = None
        self._state = ConnectionState.CLOSED
        self._connecting_since = 0.0
        # Shared by reconnects and sends; never held while waiting on the job queue
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls,
        config: WorkerConfig,
        fetcher: ArtifactFetcher,
        queue: JobQueue,
        *,
        registry: Optional[JobRegistry] = None,
        transport_factory: TransportFactory = WebSocketTransport,
    ) -> "ConnectionManager":
        return cls(
            config.endpoint,
            fetcher,
            queue,
            registry=registry,
            transport_factory=transport_factory,
            reconnect_interval=config.reconnect_interval_seconds,
            connect_timeout=config.connect_timeout_seconds,
        )

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    # -- lifecycle ---------------------------------------------------------

    def connect(self) -> None:
        """
        Open a fresh connection unless one is already open or still connecting.
        A connection attempt that has not completed within `connect_timeout` is replaced.
        """
        with self._lock:
            if self._state is ConnectionState.OPEN:
                return
            if self._state is ConnectionState.CONNECTING:
                if time.monotonic() - self._connecting_since < self.connect_timeout:
                    return
                logger.warning("Connection attempt to %s timed out; retrying", self.endpoint)

            self._discard_transport()
            logger.info("Connecting to job source at %s", self.endpoint)
            self._state = ConnectionState.CONNECTING
            self._connecting_since = time.monotonic()
            try:
                transport = self._transport_factory(
                    self.endpoint,
                    on_open=lambda: self._on_open(transport),
                    on_message=lambda message: self._on_message(transport, message),
                    on_close=lambda: self._on_close(transport),
                    on_error=lambda error: self._on_error(transport, error),
                )
                self._transport = transport
                transport.connect()
            except Exception as e:
                logger.error(f"Cannot connect to {self.endpoint}: {e}")
                self._state = ConnectionState.CLOSED

    def _discard_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            transport.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing stale connection: {e}")

    def close(self) -> None:
        with self._lock:
            self._discard_transport()
            self._state = ConnectionState.CLOSED
        logger.info("Connection to %s closed", self.endpoint)

    def monitor(self, stop: threading.Event) -> None:
        """
        Keep the connection alive until `stop` is set, then close the job queue for admission.
        """
        logger.info("Monitoring connection to %s every %.1fs", self.endpoint, self.reconnect_interval)
        try:
            while not stop.is_set():
                if self.state is not ConnectionState.OPEN:
                    if self._transport is not None:
                        logger.error("Connection to job source lost. Reconnecting...")
                    self.connect()
                stop.wait(self.reconnect_interval)
        finally:
            self.queue.close_for_admission()
            logger.info("Connection monitor stopped")

    # -- transport callbacks -----------------------------------------------

    def _on_open(self, transport: Any) -> None:
        with self._lock:
            if transport is not self._transport:
                return
            self._state = ConnectionState.OPEN
        logger.info("Connection established to %s", self.endpoint)

    def _on_close(self, transport: Any) -> None:
        with self._lock:
            if transport is not self._transport or self._state is ConnectionState.CLOSED:
                return
            self._state = ConnectionState.CLOSED
        logger.info("Connection to %s closed by peer", self.endpoint)

    def _on_error(self, transport: Any, error: Any) -> None:
        with self._lock:
            if transport is not self._transport:
                return
            self._state = ConnectionState.CLOSED
        logger.error(f"Connection error: {error}")

    def _on_message(self, transport: Any, message: Any) -> None:
        if transport is not self._transport:
            return
        try:
            self.handle_message(message)
        except Exception as e:
            logger.exception(f"Error processing message: {e}")

    # -- inbound -----------------------------------------------------------

    def handle_message(self, raw: Any) -> List[int]:
        """
        Decode one inbound message and admit its jobs. Returns the admitted job ids.
        Malformed messages are logged and dropped; non-job message types are ignored.
        """
        logger.info("Received message from job source: %s", str(raw)[:_LOG_PREVIEW])
        try:
            message = parse_message(raw)
        except ParseError as e:
            logger.error(f"Error deserializing message: {e}")
            return []
        if not message.is_new_jobs:
            logger.debug("Ignoring message of type %r", message.type)
            return []

        logger.info(f"Received {len(message.jobs)} new job(s)")
        admitted = self.admit_batch(message.jobs)
        self.reporter.received(admitted)
        return admitted

    def admit_batch(self, jobs: Sequence[PrintJob]) -> List[int]:
        """
        Admit jobs in order: make the document local, then push onto the queue
        (blocking while it is full). Jobs whose download fails are reported as
        failed and skipped. Returns the ids actually queued.
        """
        admitted: List[int] = []
        for index, job in enumerate(jobs):
            with job_context(job.job_id):
                current = self.registry.get(job.job_id)
                if current and current["status"] in (QUEUED, PRINTING) and current["file"] == job.file:
                    logger.warning("Job %s is already pending; ignoring duplicate", job.job_id)
                    continue

                try:
                    self.fetcher.ensure_local(job.file)
                except FetchError as e:
                    logger.error(f"Cannot fetch document for job {job.job_id}: {e}")
                    self.registry.record(job, FETCH_FAILED, error=str(e))
                    self.reporter.failed(job.job_id)
                    continue

                self.registry.record(job, QUEUED)
                try:
                    self.queue.push(job)
                except QueueClosedError:
                    for rest in jobs[index:]:
                        self.registry.record(rest, ABANDONED)
                    logger.warning(
                        "Admission closed; abandoning %d job(s): %s",
                        len(jobs) - index,
                        ", ".join(str(j.job_id) for j in jobs[index:]),
                    )
                    break
                admitted.append(job.job_id)
                logger.info(f"Added job {job.job_id} to print queue")
        return admitted

    # -- outbound ----------------------------------------------------------

    def send(self, text: str) -> bool:
        """
        Send one text frame if the connection is open. Best-effort: returns False
        instead of raising when the frame could not be sent.
        """
        with self._lock:
            transport = self._transport
            if transport is None or self._state is not ConnectionState.OPEN:
                return False
            try:
                transport.send(text)
            except Exception as e:
                logger.warning(f"Send failed: {e}")
                return False
        return True


__all__ = ["ConnectionManager", "ConnectionState", "WebSocketTransport"]
