from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from bridgekit.rpc.http import (
    MAX_REQUEST_CONTENT_LENGTH,
    HTTPStatusError,
    HttpConn,
    RequestRejected,
    new_vhost_handler,
    validate_request,
)
from bridgekit.rpc.message import JsonRpcMessage


class _EchoHandler(BaseHTTPRequestHandler):
    def do_POST(self):
        length = int(self.headers["Content-Length"])
        body = self.rfile.read(length)
        self.server.requests.append((self.path, self.headers.get("Content-Type"), body))
        if self.path == "/fail":
            status, payload = 500, b"broken"
        else:
            status, payload = 200, body
        self.send_response(status)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, *args):
        pass


@pytest.fixture
def server():
    srv = ThreadingHTTPServer(("127.0.0.1", 0), _EchoHandler)
    srv.requests = []
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.shutdown()
    srv.server_close()


def _url(srv, path="/"):
    host, port = srv.server_address[:2]
    return f"http://{host}:{port}{path}"


def test_do_request_posts_json(server):
    conn = HttpConn(_url(server))
    msg = JsonRpcMessage(version="2.0", id="1", method="eth_blockNumber")
    body = conn.do_request(msg, 5)
    assert json.loads(body) == {"jsonrpc": "2.0", "id": 1, "method": "eth_blockNumber"}
    assert server.requests[0][1] == "application/json"


def test_do_request_batch(server):
    conn = HttpConn(_url(server), timeout=5)
    msg = JsonRpcMessage(version="2.0", id="1", method="eth_chainId")
    decoded = json.loads(conn.do_request([msg, msg]))
    assert len(decoded) == 2
    assert decoded[0]["method"] == "eth_chainId"


def test_do_request_error_status(server):
    conn = HttpConn(_url(server, "/fail"), timeout=5)
    with pytest.raises(HTTPStatusError) as info:
        conn.do_request(JsonRpcMessage(version="2.0", id="1", method="x_y"))
    assert info.value.status == 500
    assert "broken" in str(info.value)


def test_conn_basics():
    conn = HttpConn("http://localhost:8545")
    assert conn.remote_addr() == "http://localhost:8545"
    with pytest.raises(RuntimeError):
        conn.write_json({})
    assert not conn.closed().is_set()
    conn.close()
    conn.close()
    assert conn.closed().is_set()


def test_conn_rejects_bad_url():
    with pytest.raises(ValueError):
        HttpConn("not a url")


@pytest.mark.parametrize("method", ["PUT", "DELETE"])
def test_validate_rejects_method(method):
    with pytest.raises(RequestRejected) as info:
        validate_request(method, 10, "application/json")
    assert info.value.status == 405
    assert str(info.value) == "method not allowed"


def test_validate_rejects_large_body():
    with pytest.raises(RequestRejected) as info:
        validate_request("POST", MAX_REQUEST_CONTENT_LENGTH + 1, "application/json")
    assert info.value.status == 413
    assert str(info.value).startswith("content length too large")


@pytest.mark.parametrize(
    "method,content_type",
    [
        ("OPTIONS", None),
        ("POST", "application/json"),
        ("POST", "application/json; charset=utf-8"),
        ("POST", "Application/JSON-RPC"),
        ("POST", "application/jsonrequest"),
    ],
)
def test_validate_accepts(method, content_type):
    assert validate_request(method, 10, content_type) is None


@pytest.mark.parametrize("content_type", ["text/plain", "", None])
def test_validate_rejects_content_type(content_type):
    with pytest.raises(RequestRejected) as info:
        validate_request("POST", 10, content_type)
    assert info.value.status == 415
    assert str(info.value) == "invalid content type, only application/json is supported"


def _app(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"ok"]


def _serve(handler, host):
    seen = []

    def start_response(status, headers):
        seen.append(status)

    environ = {"HTTP_HOST": host} if host is not None else {}
    body = b"".join(handler(environ, start_response))
    return seen[0], body


@pytest.mark.parametrize(
    "host",
    [None, "", "127.0.0.1:8545", "127.0.0.1", "[::1]:8545", "example.com:8545", "example.com"],
)
def test_vhost_allows(host):
    handler = new_vhost_handler(["Example.com"], _app)
    assert _serve(handler, host) == ("200 OK", b"ok")


def test_vhost_forbids_unknown_host():
    handler = new_vhost_handler(["example.com"], _app)
    status, body = _serve(handler, "other.example.com:8545")
    assert status == "403 Forbidden"
    assert body == b"invalid host specified\n"


def test_vhost_wildcard():
    handler = new_vhost_handler(["*"], _app)
    assert _serve(handler, "anything.example.com") == ("200 OK", b"ok")