"""JSON-RPC over HTTP: the client connection and request checks for servers."""

from __future__ import annotations

import ipaddress
import json
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Iterable

MAX_REQUEST_CONTENT_LENGTH = 1024 * 1024 * 5
CONTENT_TYPE = "application/json"
ACCEPTED_CONTENT_TYPES = (CONTENT_TYPE, "application/json-rpc", "application/jsonrequest")


@dataclass(frozen=True)
class HTTPTimeouts:
    """Timeouts of an HTTP RPC server, in seconds."""

    read_timeout: float = 30.0
    write_timeout: float = 30.0
    idle_timeout: float = 120.0


DEFAULT_HTTP_TIMEOUTS = HTTPTimeouts()


class HTTPStatusError(OSError):
    """The server answered with a status outside 2xx."""

    def __init__(self, status: int, reason: str, body: str) -> None:
        super().__init__(f"{status} {reason} {body}")
        self.status = status
        self.reason = reason
        self.body = body


class RequestRejected(Exception):
    """An incoming request fails validation; ``status`` is the HTTP status to answer."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


def _default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return to_json()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _encode_json(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_default).encode("utf-8")


class HttpConn:
    """A connection that posts each JSON-RPC message to an HTTP endpoint."""

    def __init__(self, endpoint: str, timeout: float | None = None) -> None:
        urllib.request.Request(endpoint)  # rejects malformed URLs early
        self.endpoint = endpoint
        self.timeout = timeout
        self._closed = threading.Event()

    def write_json(self, value: Any) -> None:
        raise RuntimeError("write_json called on HttpConn")

    def remote_addr(self) -> str:
        return self.endpoint

    def close(self) -> None:
        self._closed.set()

    def closed(self) -> threading.Event:
        """Return an event that is set once the connection is closed."""
        return self._closed

    def do_request(self, message: Any, timeout: float | None = None) -> bytes:
        """POST ``message`` as JSON and return the response body.

        Raises HTTPStatusError for a non-2xx answer.
        """
        body = _encode_json(message)
        request = urllib.request.Request(
            self.endpoint,
            data=body,
            headers={"Content-Type": CONTENT_TYPE, "Accept": CONTENT_TYPE},
            method="POST",
        )
        if timeout is None:
            timeout = self.timeout
        try:
            with urllib.request.urlopen(request, timeout=timeout) as response:
                return response.read()
        except urllib.error.HTTPError as exc:
            try:
                text = exc.read().decode("utf-8", errors="replace")
            except OSError:
                text = ""
            raise HTTPStatusError(exc.code, str(exc.reason), text) from None


def _media_type(value: str | None) -> str:
    if not value:
        return ""
    return value.split(";", 1)[0].strip().lower()


def validate_request(method: str, content_length: int | None, content_type: str | None) -> None:
    """Check an incoming RPC request; raises RequestRejected if it is unacceptable."""
    method = method.upper()
    if method in ("PUT", "DELETE"):
        raise RequestRejected(405, "method not allowed")
    if content_length is not None and content_length > MAX_REQUEST_CONTENT_LENGTH:
        raise RequestRejected(
            413, f"content length too large ({content_length}>{MAX_REQUEST_CONTENT_LENGTH})"
        )
    if method == "OPTIONS":
        return
    if _media_type(content_type) in ACCEPTED_CONTENT_TYPES:
        return
    raise RequestRejected(415, f"invalid content type, only {CONTENT_TYPE} is supported")


def _split_host(host: str) -> str:
    """Strip the port from ``host``; return it unchanged if there is none or it is malformed."""
    if host.startswith("["):
        end = host.find("]")
        if end != -1 and host[end + 1:end + 2] == ":" and ":" not in host[end + 2:]:
            return host[1:end]
        return host
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class VirtualHostHandler:
    """WSGI middleware that only serves requests whose Host header is allowed.

    IP addresses and requests without a Host header always pass; this guards
    against DNS rebinding.
    """

    def __init__(self, vhosts: Iterable[str], app: Callable) -> None:
        self.vhosts = frozenset(vhosts)
        self.app = app

    def __call__(self, environ: dict, start_response: Callable):
        raw_host = environ.get("HTTP_HOST", "")
        if not raw_host:
            return self.app(environ, start_response)
        host = _split_host(raw_host)
        if _is_ip(host) or "*" in self.vhosts or host in self.vhosts:
            return self.app(environ, start_response)
        body = b"invalid host specified\n"
        start_response(
            "403 Forbidden",
            [
                ("Content-Type", "text/plain; charset=utf-8"),
                ("X-Content-Type-Options", "nosniff"),
                ("Content-Length", str(len(body))),
            ],
        )
        return [body]


def new_vhost_handler(vhosts: Iterable[str], app: Callable) -> VirtualHostHandler:
    """Wrap ``app`` so that only the given host names (case-insensitive) are served."""
    return VirtualHostHandler((host.lower() for host in vhosts), app)