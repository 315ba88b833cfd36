"""
Standalone strategy: the collector loop runs in a separate process reached
over a Unix socket. The host only frames traces onto the socket; a crash or
hang on the worker side costs buffered traces, never the host.
"""

import os
import socket
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Union

from skylight.common.logger import debug, info, warning
from skylight.config import Config
from skylight.constants import SOCKFILE_NAME, WORKER_CONFIG_ENV
from skylight.data.trace import TraceData
from skylight.exceptions import ChannelFailure, ProtocolError, TraceError
from skylight.trace import Trace
from skylight.worker import ipc
from skylight.worker.collector import seal
from skylight.worker.interface import Worker

CONNECT_POLL_INTERVAL = 0.05


class StandaloneWorker(Worker):
    def __init__(self, config: Config, sockfile: Optional[str] = None):
        self.config = config
        self.sockfile = sockfile or str(
            Path(config.agent.sockfile_path) / SOCKFILE_NAME.format(pid=os.getpid())
        )
        self.dropped = 0

        self._process: Optional[subprocess.Popen] = None
        self._sock: Optional[socket.socket] = None
        self._lock = threading.Lock()
        self._stopped = False
        self._last_spawn: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def spawn(self) -> None:
        with self._lock:
            if self._stopped or self.running:
                return
            try:
                self._spawn_process()
                self._connect()
            except ChannelFailure as e:
                warning(f"Standalone worker unavailable: {e.message}")

    def submit(self, trace: Union[Trace, TraceData]) -> bool:
        try:
            data = seal(trace)
        except TraceError as e:
            warning(f"Rejected trace submission: {e.message}")
            return False

        if not self.config.source_locations:
            data = data.without_source_locations()

        message = {"type": ipc.TRACE, "trace": data.model_dump()}
        with self._lock:
            if self._stopped:
                self.dropped += 1
                return False
            try:
                self._ensure_channel()
                ipc.write_frame(self._sock, message)
            except (ChannelFailure, OSError, ProtocolError) as e:
                self._drop_channel(e)
                self.dropped += 1
                return False
        return True

    def flush(self) -> None:
        with self._lock:
            if self._stopped or self._sock is None:
                return
            try:
                self._request(ipc.FLUSH, timeout=self._request_timeout())
            except (ChannelFailure, OSError, ProtocolError) as e:
                self._drop_channel(e)

    def stop(self) -> None:
        with self._lock:
            if self._stopped:
                return
            self._stopped = True

            acknowledged = False
            if self._sock is not None:
                try:
                    self._request(ipc.SHUTDOWN, timeout=self.config.agent.connect_timeout)
                    acknowledged = True
                except (ChannelFailure, OSError, ProtocolError) as e:
                    debug(f"Standalone worker did not acknowledge shutdown: {e}")
                self._close_socket()

            self._terminate_process(graceful=acknowledged)
        info("Standalone worker stopped")

    def _request_timeout(self) -> float:
        return self.config.report.timeout + self.config.agent.connect_timeout

    def _request(self, kind: str, timeout: float):
        self._sock.settimeout(timeout)
        try:
            ipc.write_frame(self._sock, {"type": kind})
            reply = ipc.read_frame(self._sock)
        finally:
            if self._sock is not None:
                self._sock.settimeout(self.config.agent.connect_timeout)
        if reply is None or reply.get("type") != ipc.ACK:
            raise ChannelFailure(f"No acknowledgement for {kind}")

    def _ensure_channel(self):
        if self._sock is not None:
            return
        if not self.running:
            if not self._may_respawn():
                raise ChannelFailure("Standalone worker is down")
            self._spawn_process()
        self._connect()

    def _may_respawn(self) -> bool:
        if self._last_spawn is None:
            return True
        return time.monotonic() - self._last_spawn >= self.config.agent.respawn_interval

    def _spawn_process(self):
        Path(self.sockfile).parent.mkdir(parents=True, exist_ok=True)
        env = dict(os.environ)
        env[WORKER_CONFIG_ENV] = self.config.model_dump_json()
        command = [
            sys.executable,
            "-m",
            "skylight.worker.server",
            "--sockfile",
            self.sockfile,
            "--parent-pid",
            str(os.getpid()),
        ]
        self._last_spawn = time.monotonic()
        try:
            self._process = subprocess.Popen(command, env=env, stdin=subprocess.DEVNULL)
        except OSError as e:
            self._process = None
            raise ChannelFailure(f"Could not start standalone worker: {e}")
        info(f"Spawned standalone worker pid={self._process.pid}")

    def _connect(self):
        deadline = time.monotonic() + self.config.agent.connect_timeout
        last_error: Optional[Exception] = None
        while time.monotonic() < deadline:
            if self._process is not None and self._process.poll() is not None:
                raise ChannelFailure(
                    f"Standalone worker exited with code {self._process.returncode}"
                )
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            # Also bounds sends to a worker that has stopped reading
            sock.settimeout(self.config.agent.connect_timeout)
            try:
                sock.connect(self.sockfile)
            except OSError as e:
                sock.close()
                last_error = e
                time.sleep(CONNECT_POLL_INTERVAL)
                continue
            self._sock = sock
            debug(f"Connected to standalone worker at {self.sockfile}")
            return
        raise ChannelFailure(f"Could not connect to {self.sockfile}: {last_error}")

    def _drop_channel(self, reason: Exception):
        warning(f"Lost standalone worker channel: {reason}")
        self._close_socket()

    def _close_socket(self):
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None

    def _terminate_process(self, graceful: bool):
        process = self._process
        if process is None:
            return
        self._process = None
        if graceful:
            try:
                process.wait(timeout=self._request_timeout())
                return
            except subprocess.TimeoutExpired:
                warning("Standalone worker did not exit after shutdown; terminating")
        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=self.config.agent.connect_timeout)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
