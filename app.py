#!/usr/bin/env python3
"""
Remote print worker - keeps a connection to the job source open, downloads
job documents and prints them on the configured printer.
"""

import argparse
import logging
import signal
import sys

from remote_print import create_app, serve_in_background
from remote_print.core.config import load_worker_config
from remote_print.core.errors import RemotePrintError
from remote_print.core.logging import configure_logging
from remote_print.printing.worker import PrintWorker


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Remote print worker")
    parser.add_argument("--config", help="Path to config.json (default: $REMOTEPRINT_CONFIG_PATH or XDG config dir)")
    parser.add_argument("--health-port", type=int, help="Serve /healthz and /jobs on this port")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    configure_logging(logging.DEBUG if args.debug else logging.INFO)
    logger = logging.getLogger("remote_print.app")

    try:
        config = load_worker_config(args.config, health_port=args.health_port)
        worker = PrintWorker(config)
    except RemotePrintError as e:
        logger.error(f"Cannot start print worker: {e}")
        return 1

    server = None
    if config.health_port:
        server = serve_in_background(create_app(worker), config.health_host, config.health_port)

    def _on_signal(signum, frame):
        logger.info("Received signal %s", signum)
        worker.stop()

    signal.signal(signal.SIGTERM, _on_signal)

    logger.info("Starting remote print worker for %s (printer: %s)", config.endpoint, config.printer_name or "default")
    logger.info("Press Ctrl+C to stop")
    try:
        worker.run()
    finally:
        if server is not None:
            server.shutdown()
    logger.info("Remote print worker shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
