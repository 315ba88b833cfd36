from requests import exceptions
from http.server import BaseHTTPRequestHandler, HTTPServer
import json
import pytest
import threading

from skylight.utils.requests import RetrySession


@pytest.fixture
def http_server_fixture():
    class CustomHandler(BaseHTTPRequestHandler):
        call_count = 0

        def respond(self, code):
            self.send_response(code)
            self.send_header("Content-type", "application/json")
            self.end_headers()
            response = {
                "status": "success" if code == 200 else "error",
                "call": CustomHandler.call_count,
                "code": code,
            }
            self.wfile.write(json.dumps(response).encode())

        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            self.rfile.read(length)
            CustomHandler.call_count += 1
            if self.path == "/report_success":
                codes = {1: 503, 2: 502}
                self.respond(codes.get(CustomHandler.call_count, 200))
            elif self.path == "/report_error":
                self.respond(503)
            elif self.path == "/report_400":
                self.respond(400)
            else:
                self.send_response(404)
                self.end_headers()
                self.wfile.write(b"Not Found")

        def log_message(self, format, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), CustomHandler)
    server.handler = CustomHandler

    CustomHandler.call_count = 0

    server_thread = threading.Thread(target=server.serve_forever, daemon=True)
    server_thread.start()

    yield server

    # Cleanup
    server.shutdown()
    server.server_close()
    server_thread.join(timeout=1)


def url(server, path):
    return f"http://127.0.0.1:{server.server_address[1]}{path}"


def test_requests_backoff(http_server_fixture):
    session = RetrySession(retries=3, backoff_factor=0)
    response = session.post(url(http_server_fixture, "/report_success"), data=b"{}")
    assert response.status_code == 200, f"Expected 200, got {response.status_code}"

    data = response.json()
    assert data["status"] == "success"
    assert data["call"] == 3
    assert data["code"] == 200


def test_requests_backoff_limit(http_server_fixture):
    session = RetrySession(retries=2, backoff_factor=0)
    with pytest.raises(exceptions.RetryError):
        session.post(url(http_server_fixture, "/report_error"), data=b"{}")
    assert http_server_fixture.handler.call_count == 3


def test_requests_no_retry_on_client_error(http_server_fixture):
    session = RetrySession(retries=3, backoff_factor=0)
    response = session.post(url(http_server_fixture, "/report_400"), data=b"{}")
    assert response.status_code == 400, f"Expected 400, got {response.status_code}"

    # Only transient statuses are retried
    data = response.json()
    assert data["call"] == 1
