"""Dispatch of incoming JSON-RPC messages on one connection."""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from bridgekit.rpc.errors import (
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    SubscriptionNotFoundError,
)
from bridgekit.rpc.message import (
    NOTIFICATION_METHOD_SUFFIX,
    JsonRpcMessage,
    error_message,
    parse_positional_arguments,
    parse_subscription_name,
)
from bridgekit.rpc.service import Callback, ServiceRegistry
from bridgekit.rpc.subscription import (
    NOTIFIER_KEY,
    NotificationsUnsupportedError,
    Notifier,
    Subscription,
    UnknownSubscriptionError,
    random_id_generator,
)

log = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(eq=False)
class RequestOp:
    """An outgoing request waiting for its responses.

    ``ids`` holds the raw JSON ids of the request messages; responses are
    put on ``resp``. ``sub`` is set for subscription requests.
    """

    ids: list[str] = field(default_factory=list)
    err: BaseException | None = None
    sub: Any = None
    resp: queue.Queue = field(default_factory=queue.Queue)

    def wait(self, timeout: float | None = None) -> JsonRpcMessage | None:
        """Return the next response.

        Raises TimeoutError when ``timeout`` passes first, and the recorded
        error if the request was cancelled; returns None when the request
        ended without a response of its own.
        """
        try:
            item = self.resp.get(timeout=timeout)
        except queue.Empty:
            raise TimeoutError("request timed out") from None
        if item is _CLOSED:
            # Stay closed for any later waiter.
            self.resp.put(_CLOSED)
            if self.err is not None:
                raise self.err
            return None
        return item

    def _close(self) -> None:
        self.resp.put(_CLOSED)


@dataclass
class _CallProc:
    ctx: dict[str, Any]
    notifiers: list[Notifier] = field(default_factory=list)


class Handler:
    """Handles the JSON-RPC messages of one connection.

    Calls run on background threads; responses and notifications are sent
    with ``conn.write_json``.
    """

    def __init__(
        self,
        conn: Any,
        idgen: Callable[[], str] | None = None,
        registry: ServiceRegistry | None = None,
        allow_subscribe: bool = True,
    ) -> None:
        self.conn = conn
        self.idgen = idgen or random_id_generator()
        self.registry = registry if registry is not None else ServiceRegistry()
        self.allow_subscribe = allow_subscribe
        self._lock = threading.RLock()
        self._resp_wait: dict[str, RequestOp] = {}
        self._client_subs: dict[str, Any] = {}
        self._sub_lock = threading.Lock()
        self._server_subs: dict[str, Subscription] = {}
        self._calls_lock = threading.Lock()
        self._calls: set[threading.Thread] = set()
        self._root_cancelled = threading.Event()
        self._unsubscribe_cb = Callback(self._unsubscribe)

    def handle_batch(self, msgs: Sequence[JsonRpcMessage]) -> None:
        """Handle a batch; answers to its calls are written as one list."""
        if not msgs:
            self._start_call_proc(
                lambda cp: self._write(error_message(InvalidRequestError("empty batch")))
            )
            return
        calls = [msg for msg in msgs if not self._handle_immediate(msg)]
        if not calls:
            return

        def process(cp: _CallProc) -> None:
            answers = [
                answer
                for answer in (self._handle_call_msg(cp, msg) for msg in calls)
                if answer is not None
            ]
            self._add_subscriptions(cp.notifiers)
            if answers:
                self._write(answers)
            self._activate(cp.notifiers)

        self._start_call_proc(process)

    def handle_msg(self, msg: JsonRpcMessage) -> None:
        """Handle a single message."""
        if self._handle_immediate(msg):
            return

        def process(cp: _CallProc) -> None:
            answer = self._handle_call_msg(cp, msg)
            self._add_subscriptions(cp.notifiers)
            if answer is not None:
                self._write(answer)
            self._activate(cp.notifiers)

        self._start_call_proc(process)

    def close(self, err: BaseException | None = None, inflight: RequestOp | None = None) -> None:
        """Cancel requests other than ``inflight`` and wait for running calls to finish."""
        self.cancel_all_requests(err, inflight)
        current = threading.current_thread()
        while True:
            with self._calls_lock:
                running = [t for t in self._calls if t is not current]
            if not running:
                break
            for thread in running:
                thread.join()
            with self._calls_lock:
                self._calls.difference_update(running)
        self._root_cancelled.set()
        self._cancel_server_subscriptions(err)

    def add_request_op(self, op: RequestOp | None) -> None:
        """Register a request so that its responses reach it."""
        if op is None:
            return
        with self._lock:
            for request_id in op.ids:
                self._resp_wait[request_id] = op

    def remove_request_op(self, op: RequestOp | None) -> None:
        """Stop waiting for the responses of ``op``."""
        if op is None:
            return
        with self._lock:
            for request_id in op.ids:
                self._resp_wait.pop(request_id, None)

    def cancel_all_requests(self, err: BaseException | None, inflight: RequestOp | None = None) -> None:
        """End pending requests with ``err`` (all but ``inflight``) and quit client subscriptions."""
        done = {id(inflight)} if inflight is not None else set()
        with self._lock:
            ops = list(self._resp_wait.values())
            self._resp_wait.clear()
            subs = list(self._client_subs.values())
            self._client_subs.clear()
        for op in ops:
            if id(op) not in done:
                op.err = err
                op._close()
                done.add(id(op))
        for sub in subs:
            sub.quit_with_error(False, err)

    def _write(self, value: Any) -> None:
        try:
            self.conn.write_json(value)
        except Exception as exc:
            log.debug("Failed to write RPC message: %s", exc)

    @staticmethod
    def _activate(notifiers: Iterable[Notifier]) -> None:
        for notifier in notifiers:
            try:
                notifier.activate()
            except Exception as exc:
                log.debug("Failed to send buffered notifications: %s", exc)

    def _start_call_proc(self, fn: Callable[[_CallProc], None]) -> None:
        def run() -> None:
            proc = _CallProc({"handler": self, "cancelled": self._root_cancelled})
            try:
                fn(proc)
            except Exception:
                log.exception("RPC call processing failed")
            finally:
                with self._calls_lock:
                    self._calls.discard(threading.current_thread())

        thread = threading.Thread(target=run, name="rpc-call", daemon=True)
        with self._calls_lock:
            self._calls.add(thread)
        thread.start()

    def _handle_immediate(self, msg: JsonRpcMessage) -> bool:
        start = time.monotonic()
        if msg.is_notification():
            if msg.method.endswith(NOTIFICATION_METHOD_SUFFIX):
                self._handle_subscription_result(msg)
                return True
            return False
        if msg.is_response():
            self._handle_response(msg)
            log.debug("Handled RPC response reqid=%s t=%.6fs", _id_for_log(msg.id), time.monotonic() - start)
            return True
        return False

    def _handle_subscription_result(self, msg: JsonRpcMessage) -> None:
        try:
            params = json.loads(msg.params or "")
        except ValueError:
            params = None
        sub_id = params.get("subscription", "") if isinstance(params, dict) else None
        if not isinstance(sub_id, str):
            log.debug("Dropping invalid subscription message")
            return
        result = None
        if "result" in params:
            result = json.dumps(params["result"], separators=(",", ":"), ensure_ascii=False)
        with self._lock:
            sub = self._client_subs.get(sub_id)
        if sub is not None:
            sub.deliver(result)

    def _handle_response(self, msg: JsonRpcMessage) -> None:
        with self._lock:
            op = self._resp_wait.pop(msg.id, None)
        if op is None:
            log.debug("Unsolicited RPC response reqid=%s", _id_for_log(msg.id))
            return
        if op.sub is None:
            op.resp.put(msg)
            return
        try:
            if msg.error is not None:
                op.err = msg.error
                return
            try:
                sub_id = json.loads(msg.result or "")
            except ValueError as exc:
                op.err = exc
                return
            if not isinstance(sub_id, str):
                op.err = ValueError("subscription id must be a string")
                return
            op.sub.subid = sub_id
            threading.Thread(target=op.sub.start, name="rpc-subscription", daemon=True).start()
            with self._lock:
                self._client_subs[sub_id] = op.sub
        finally:
            op._close()

    def _handle_call_msg(self, cp: _CallProc, msg: JsonRpcMessage) -> JsonRpcMessage | None:
        start = time.monotonic()
        if msg.is_notification():
            self._handle_call(cp, msg)
            log.debug("Served %s t=%.6fs", msg.method, time.monotonic() - start)
            return None
        if msg.is_call():
            response = self._handle_call(cp, msg)
            elapsed = time.monotonic() - start
            if response.error is not None:
                log.warning(
                    "Served %s reqid=%s t=%.6fs err=%s",
                    msg.method, _id_for_log(msg.id), elapsed, response.error.message,
                )
            else:
                log.debug("Served %s reqid=%s t=%.6fs", msg.method, _id_for_log(msg.id), elapsed)
            return response
        if msg.has_valid_id():
            return msg.error_response(InvalidRequestError("invalid request"))
        return error_message(InvalidRequestError("invalid request"))

    def _handle_call(self, cp: _CallProc, msg: JsonRpcMessage) -> JsonRpcMessage:
        if msg.is_subscribe():
            return self._handle_subscribe(cp, msg)
        if msg.is_unsubscribe():
            callb = self._unsubscribe_cb
        else:
            callb = self.registry.callback(msg.method)
        if callb is None:
            return msg.error_response(MethodNotFoundError(msg.method))
        try:
            args = parse_positional_arguments(msg.params, callb.optional_flags)
        except InvalidParamsError as exc:
            return msg.error_response(exc)
        return self._run_method(cp.ctx, msg, callb, args)

    def _handle_subscribe(self, cp: _CallProc, msg: JsonRpcMessage) -> JsonRpcMessage:
        if not self.allow_subscribe:
            return msg.error_response(NotificationsUnsupportedError())
        try:
            name = parse_subscription_name(msg.params)
        except InvalidParamsError as exc:
            return msg.error_response(exc)
        namespace = msg.namespace()
        callb = self.registry.subscription(namespace, name)
        if callb is None:
            return msg.error_response(SubscriptionNotFoundError(namespace, name))
        try:
            args = parse_positional_arguments(msg.params, [False, *callb.optional_flags])[1:]
        except InvalidParamsError as exc:
            return msg.error_response(exc)
        notifier = Notifier(self.conn, namespace, self.idgen)
        cp.notifiers.append(notifier)
        ctx = {**cp.ctx, NOTIFIER_KEY: notifier}
        return self._run_method(ctx, msg, callb, args)

    @staticmethod
    def _run_method(ctx: Any, msg: JsonRpcMessage, callb: Callback, args: Sequence[Any]) -> JsonRpcMessage:
        try:
            result = callb.call(ctx, msg.method, args)
        except Exception as exc:
            return msg.error_response(exc)
        return msg.response(result)

    def _add_subscriptions(self, notifiers: Iterable[Notifier]) -> None:
        with self._sub_lock:
            for notifier in notifiers:
                sub = notifier.take_subscription()
                if sub is not None:
                    self._server_subs[sub.id] = sub

    def _cancel_server_subscriptions(self, err: BaseException | None) -> None:
        with self._sub_lock:
            for sub in self._server_subs.values():
                sub.close(err)
            self._server_subs.clear()

    def _unsubscribe(self, ctx, sub_id):
        if not isinstance(sub_id, str):
            raise InvalidParamsError("subscription id must be a string")
        with self._sub_lock:
            sub = self._server_subs.pop(sub_id, None)
        if sub is None:
            raise UnknownSubscriptionError()
        sub.close()
        return True


def _id_for_log(raw_id: str | None) -> str:
    if raw_id is None:
        return ""
    try:
        value = json.loads(raw_id)
    except ValueError:
        return raw_id
    return value if isinstance(value, str) else raw_id