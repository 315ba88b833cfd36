"""
Standalone worker process.

Run as ``python -m skylight.worker.server --sockfile PATH``. The agent
configuration is read from the ``SKYLIGHT_WORKER_CONFIG`` environment
variable (JSON). Traces arrive over a Unix socket and are batched by an
embedded collector loop running inside this process, so a misbehaving
reporter can never take the host application down.
"""

import argparse
import os
import socketserver
import sys
import threading
from pathlib import Path
from typing import Optional

from skylight.common.logger import error, info, start_logging, warning
from skylight.config import Config
from skylight.constants import WORKER_CONFIG_ENV
from skylight.data.trace import TraceData
from skylight.exceptions import ConfigError, ProtocolError
from skylight.worker import ipc
from skylight.worker.embedded import EmbeddedWorker


PARENT_POLL_INTERVAL = 1.0


class WorkerRequestHandler(socketserver.BaseRequestHandler):
    """Handles one host connection until it closes."""

    def handle(self):
        server: "WorkerServer" = self.server
        while True:
            try:
                message = ipc.read_frame(self.request)
            except ProtocolError as e:
                warning(f"Dropping host connection: {e.message}")
                return
            except OSError:
                return
            if message is None:
                return

            kind = message["type"]
            if kind == ipc.TRACE:
                try:
                    trace = TraceData.model_validate(message.get("trace"))
                except ValueError as e:
                    warning(f"Discarding malformed trace: {e}")
                    continue
                server.worker.submit(trace)
            elif kind == ipc.FLUSH:
                server.worker.flush()
                ipc.write_frame(self.request, {"type": ipc.ACK})
            elif kind == ipc.SHUTDOWN:
                ipc.write_frame(self.request, {"type": ipc.ACK})
                server.request_shutdown()
                return
            else:
                warning(f"Ignoring unknown message type: {kind!r}")


class WorkerServer(socketserver.ThreadingMixIn, socketserver.UnixStreamServer):
    daemon_threads = True

    def __init__(self, sockfile: str, worker: EmbeddedWorker):
        self.sockfile = sockfile
        self.worker = worker
        self._shutdown_requested = threading.Event()
        Path(sockfile).unlink(missing_ok=True)
        super().__init__(sockfile, WorkerRequestHandler)

    def request_shutdown(self):
        if self._shutdown_requested.is_set():
            return
        self._shutdown_requested.set()
        # shutdown() blocks until serve_forever returns, so it cannot run on a handler thread
        threading.Thread(target=self.shutdown, daemon=True).start()

    def watch_parent(self, parent_pid: int):
        while not self._shutdown_requested.wait(PARENT_POLL_INTERVAL):
            if os.getppid() != parent_pid:
                info("Host process exited; shutting down standalone worker")
                self.request_shutdown()
                return

    def server_close(self):
        super().server_close()
        Path(self.sockfile).unlink(missing_ok=True)


def load_config(raw: Optional[str]) -> Config:
    if not raw:
        return Config.from_env()
    try:
        return Config.model_validate_json(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid worker configuration: {e}")


def serve(config: Config, sockfile: str, parent_pid: Optional[int] = None):
    worker = EmbeddedWorker(config)
    server = WorkerServer(sockfile, worker)
    worker.spawn()

    if parent_pid is not None:
        threading.Thread(
            target=server.watch_parent, args=(parent_pid,), daemon=True
        ).start()

    info(f"Standalone worker listening on {sockfile}")
    try:
        server.serve_forever(poll_interval=0.1)
    finally:
        server.server_close()
        worker.stop()
        info("Standalone worker exited")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Skylight standalone worker")
    parser.add_argument("--sockfile", required=True, help="Unix socket to listen on")
    parser.add_argument(
        "--parent-pid",
        type=int,
        default=None,
        help="Exit when this process is no longer our parent",
    )
    args = parser.parse_args(argv)

    try:
        config = load_config(os.environ.get(WORKER_CONFIG_ENV))
    except ConfigError as e:
        print(e.message, file=sys.stderr)
        return 1

    start_logging(path=config.log, level=config.log_level)
    try:
        serve(config, args.sockfile, parent_pid=args.parent_pid)
    except OSError as e:
        error(f"Standalone worker failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
