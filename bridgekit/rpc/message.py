"""JSON-RPC 2.0 messages and a stream codec that reads and writes them."""

from __future__ import annotations

import codecs
import json
import threading
from dataclasses import dataclass
from typing import Any, Iterable

from bridgekit.rpc.errors import DEFAULT_ERROR_CODE, InvalidParamsError, RpcError

VERSION = "2.0"
SERVICE_METHOD_SEPARATOR = "_"
SUBSCRIBE_METHOD_SUFFIX = "_subscribe"
UNSUBSCRIBE_METHOD_SUFFIX = "_unsubscribe"
NOTIFICATION_METHOD_SUFFIX = "_subscription"
NULL = "null"

_JSON_WHITESPACE = " \t\n\r"
_NUMBER_START = "-0123456789"
_READ_SIZE = 4096


def _text(raw: str | bytes | bytearray) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    return raw


def _default(obj: Any) -> Any:
    if isinstance(obj, (JsonRpcMessage, JsonError)):
        return obj.to_dict()
    to_json = getattr(obj, "to_json", None)
    if callable(to_json):
        return to_json()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_default)


def _raw(data: dict, key: str) -> str | None:
    if key not in data:
        return None
    return _compact(data[key])


class JsonError(RpcError):
    """The error object of a JSON-RPC response."""

    def __init__(self, code: int = DEFAULT_ERROR_CODE, message: str = "", data: Any = None) -> None:
        super().__init__(message, code)
        self.data = data

    def __str__(self) -> str:
        if not self.message:
            return f"json-rpc error {self.code}"
        return self.message

    def __repr__(self) -> str:
        return f"JsonError(code={self.code!r}, message={self.message!r}, data={self.data!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JsonError):
            return NotImplemented
        return (self.code, self.message, self.data) == (other.code, other.message, other.data)

    def __hash__(self) -> int:
        return hash((self.code, self.message))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JsonError:
        code = data.get("code")
        message = data.get("message")
        return cls(
            code=code if isinstance(code, int) and not isinstance(code, bool) else 0,
            message=message if isinstance(message, str) else "",
            data=data.get("data"),
        )


@dataclass
class JsonRpcMessage:
    """A request, notification, response or error response.

    ``id``, ``params`` and ``result`` hold raw JSON text, exactly as received.
    """

    version: str = ""
    id: str | None = None
    method: str = ""
    params: str | None = None
    error: JsonError | None = None
    result: str | None = None

    def is_notification(self) -> bool:
        return self.id is None and self.method != ""

    def is_call(self) -> bool:
        return self.has_valid_id() and self.method != ""

    def is_response(self) -> bool:
        return (
            self.has_valid_id()
            and self.method == ""
            and self.params is None
            and (self.result is not None or self.error is not None)
        )

    def has_valid_id(self) -> bool:
        return bool(self.id) and self.id[0] not in "{["

    def is_subscribe(self) -> bool:
        return self.method.endswith(SUBSCRIBE_METHOD_SUFFIX)

    def is_unsubscribe(self) -> bool:
        return self.method.endswith(UNSUBSCRIBE_METHOD_SUFFIX)

    def namespace(self) -> str:
        return self.method.split(SERVICE_METHOD_SEPARATOR, 1)[0]

    def error_response(self, err: BaseException) -> JsonRpcMessage:
        response = error_message(err)
        response.id = self.id
        return response

    def response(self, result: Any) -> JsonRpcMessage:
        try:
            encoded = _compact(result)
        except (TypeError, ValueError) as exc:
            return self.error_response(exc)
        return JsonRpcMessage(version=VERSION, id=self.id, result=encoded)

    def to_dict(self) -> dict[str, Any]:
        """Return the message as JSON-ready data, leaving out empty fields."""
        out: dict[str, Any] = {}
        if self.version:
            out["jsonrpc"] = self.version
        if self.id:
            out["id"] = json.loads(self.id)
        if self.method:
            out["method"] = self.method
        if self.params:
            out["params"] = json.loads(self.params)
        if self.error is not None:
            out["error"] = self.error.to_dict()
        if self.result:
            out["result"] = json.loads(self.result)
        return out

    @classmethod
    def from_dict(cls, data: Any) -> JsonRpcMessage:
        """Build a message from decoded JSON; anything unsuitable is left empty."""
        if not isinstance(data, dict):
            return cls()
        version = data.get("jsonrpc")
        method = data.get("method")
        error = data.get("error")
        return cls(
            version=version if isinstance(version, str) else "",
            id=_raw(data, "id"),
            method=method if isinstance(method, str) else "",
            params=_raw(data, "params"),
            error=JsonError.from_dict(error) if isinstance(error, dict) else None,
            result=_raw(data, "result"),
        )

    def dumps(self) -> str:
        return _compact(self.to_dict())

    def __str__(self) -> str:
        return self.dumps()


def error_message(err: BaseException) -> JsonRpcMessage:
    """Build an error response with a null id for ``err``."""
    code_of = getattr(err, "error_code", None)
    code = code_of() if callable(code_of) else DEFAULT_ERROR_CODE
    return JsonRpcMessage(version=VERSION, id=NULL, error=JsonError(code, str(err)))


def is_batch(raw: str | bytes | bytearray) -> bool:
    """Tell whether the first non-whitespace character is '['."""
    for char in _text(raw):
        if char in _JSON_WHITESPACE:
            continue
        return char == "["
    return False


def parse_message(raw: str | bytes | bytearray) -> tuple[list[JsonRpcMessage], bool]:
    """Parse a single message or a batch; returns the messages and whether it was a batch."""
    text = _text(raw)
    batch = is_batch(text)
    try:
        value = json.loads(text)
    except ValueError:
        return ([], True) if batch else ([JsonRpcMessage()], False)
    if batch:
        return [JsonRpcMessage.from_dict(item) for item in value], True
    return [JsonRpcMessage.from_dict(value)], False


def parse_positional_arguments(
    raw_args: str | bytes | bytearray | None, optional_flags: Iterable[bool]
) -> list[Any]:
    """Decode a params array; ``optional_flags`` tells which arguments may be left out.

    Missing optional arguments come back as None.
    """
    flags = list(optional_flags)
    text = _text(raw_args).strip() if raw_args is not None else ""
    args: list[Any] = []
    if text:
        try:
            value = json.loads(text)
        except ValueError as exc:
            raise InvalidParamsError(str(exc)) from None
        if isinstance(value, list):
            if len(value) > len(flags):
                raise InvalidParamsError(f"too many arguments, want at most {len(flags)}")
            args = value
        elif value is not None:
            raise InvalidParamsError("non-array args")
    for position, optional in enumerate(flags[len(args):], start=len(args)):
        if not optional:
            raise InvalidParamsError(f"missing value for required argument {position}")
        args.append(None)
    return args


def parse_subscription_name(raw_args: str | bytes | bytearray | None) -> str:
    """Return the subscription name, the first element of a params array."""
    text = _text(raw_args).lstrip(_JSON_WHITESPACE) if raw_args is not None else ""
    if not text.startswith("["):
        raise InvalidParamsError("non-array args")
    try:
        name, _ = json.JSONDecoder().raw_decode(text[1:].lstrip(_JSON_WHITESPACE))
    except ValueError:
        name = None
    if not isinstance(name, str):
        raise InvalidParamsError("expected subscription name as first argument")
    return name


class JsonCodec:
    """Reads and writes JSON-RPC messages on a binary stream.

    The stream needs ``read`` (or ``read1``), ``write`` and ``close``; a
    ``remote_addr`` attribute or method, if present, names the peer.
    """

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        remote = getattr(conn, "remote_addr", None)
        self._remote = (remote() if callable(remote) else remote) or ""
        self._read = getattr(conn, "read1", None) or conn.read
        self._text_decoder = codecs.getincrementaldecoder("utf-8")()
        self._json = json.JSONDecoder()
        self._buffer = ""
        self._eof = False
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = threading.Event()

    def remote_addr(self) -> str:
        return self._remote

    def read_batch(self) -> tuple[list[JsonRpcMessage], bool]:
        """Read the next JSON value from the stream.

        Raises EOFError at the end of the stream and json.JSONDecodeError on bad input.
        """
        return parse_message(self._next_value())

    def write_json(self, value: Any) -> None:
        data = (_compact(value) + "\n").encode("utf-8")
        with self._write_lock:
            self._conn.write(data)
            flush = getattr(self._conn, "flush", None)
            if callable(flush):
                flush()

    def close(self) -> None:
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()
        self._conn.close()

    def closed(self) -> threading.Event:
        """Return an event that is set once the codec is closed."""
        return self._closed

    def _fill(self) -> None:
        chunk = self._read(_READ_SIZE)
        if not chunk:
            self._eof = True
            self._buffer += self._text_decoder.decode(b"", final=True)
        elif isinstance(chunk, str):
            self._buffer += chunk
        else:
            self._buffer += self._text_decoder.decode(chunk)

    def _next_value(self) -> str:
        while True:
            text = self._buffer.lstrip(_JSON_WHITESPACE)
            self._buffer = text
            if not text:
                if self._eof:
                    raise EOFError("end of JSON stream")
                self._fill()
                continue
            try:
                _, end = self._json.raw_decode(text)
            except json.JSONDecodeError as exc:
                # A line break after the failure point means the bad token is complete.
                if self._eof or "\n" in text[exc.pos:]:
                    self._buffer = ""
                    raise
                self._fill()
                continue
            if end == len(text) and not self._eof and text[0] in _NUMBER_START:
                self._fill()
                continue
            self._buffer = text[end:]
            return text[:end]