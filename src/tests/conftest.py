import inspect
import json
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import urlparse

import pytest
import requests

from skylight.common.clock import ManualClock
from skylight.config import Config
from skylight.data.batch import decode_batch

LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


@pytest.fixture(autouse=True)
def block_http_requests(monkeypatch):
    """Block any HTTP requests to hosts other than the local test collector."""

    def get_error_info():
        frame = inspect.currentframe()
        caller_frame = frame.f_back.f_back
        return inspect.getframeinfo(caller_frame)

    def is_external_url(url):
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            return False
        return urlparse(url).hostname not in LOCAL_HOSTS

    original_request = requests.Session.request

    def blocked_request(self, method, url, *args, **kwargs):
        if not is_external_url(url):
            return original_request(self, method, url, *args, **kwargs)
        caller = get_error_info()
        raise RuntimeError(
            f"Blocked requests.{method.upper()} to {url}\n"
            f"Called from: {caller.filename}:{caller.lineno} in {caller.function}\n"
            f"Please mock this request in your test."
        )

    monkeypatch.setattr(requests.Session, "request", blocked_request)


class ReportServer:
    """A local stand-in for the remote collector that decodes every report."""

    def __init__(self):
        self.requests = []
        self.reports = []
        self.status_codes = []
        self.delay = 0.0
        self._condition = threading.Condition()

        server = self

        class ReportHandler(BaseHTTPRequestHandler):
            def do_POST(self):
                length = int(self.headers.get("Content-Length", 0))
                body = self.rfile.read(length)
                deflated = self.headers.get("Content-Encoding") == "deflate"
                status = server.status_codes.pop(0) if server.status_codes else 200

                with server._condition:
                    server.requests.append(dict(self.headers))
                    if status == 200:
                        server.reports.append(decode_batch(body, deflated=deflated))
                    server._condition.notify_all()

                if server.delay:
                    time.sleep(server.delay)

                self.send_response(status)
                self.send_header("Content-type", "application/json")
                self.end_headers()
                self.wfile.write(json.dumps({"status": status}).encode())

            def log_message(self, format, *args):
                pass

        self.httpd = HTTPServer(("127.0.0.1", 0), ReportHandler)
        self.port = self.httpd.server_address[1]
        self._thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    def start(self):
        self._thread.start()

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()
        self._thread.join(timeout=1)

    def wait(self, count: int = 1, timeout: float = 10.0) -> bool:
        """Block until ``count`` requests have been received."""
        with self._condition:
            return self._condition.wait_for(
                lambda: len(self.requests) >= count, timeout=timeout
            )


@pytest.fixture
def report_server():
    server = ReportServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def config(tmp_path):
    return Config.build(
        authentication="lulz",
        log="-",
        log_level="debug",
        agent={
            "strategy": "embedded",
            "interval": 1,
            "sockfile_path": str(tmp_path),
        },
        report={
            "host": "127.0.0.1",
            "port": 9,
            "ssl": False,
            "deflate": False,
            "timeout": 2,
            "retries": 0,
        },
    )


@pytest.fixture
def clock():
    return ManualClock(start=1000.0, wall_start=1_700_000_000)
