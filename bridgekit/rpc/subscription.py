"""Server-side subscriptions and the notifier that feeds them."""

from __future__ import annotations

import json
import os
import random
import threading
import time
from typing import Any, Callable, Mapping

from bridgekit.rpc.errors import RpcError
from bridgekit.rpc.message import NOTIFICATION_METHOD_SUFFIX, VERSION, JsonRpcMessage

NOTIFIER_KEY = "notifier"

_ID_BYTES = 16


class NotificationsUnsupportedError(RpcError):
    """The connection cannot carry notifications."""

    def __init__(self, message: str = "notifications not supported") -> None:
        super().__init__(message)


class UnknownSubscriptionError(RpcError):
    """No subscription exists with the given identifier."""

    def __init__(self, message: str = "subscription not found") -> None:
        super().__init__(message)


def encode_id(data: bytes) -> str:
    """Encode bytes as an RPC quantity: 0x-prefixed hex without leading zeros."""
    digits = bytes(data).hex().lstrip("0") or "0"
    return "0x" + digits


def random_id_generator() -> Callable[[], str]:
    """Return a thread-safe function that produces random subscription IDs."""
    try:
        seed = int.from_bytes(os.urandom(8), "big")
    except NotImplementedError:
        seed = time.time_ns()
    rng = random.Random(seed)
    lock = threading.Lock()

    def generate() -> str:
        with lock:
            return encode_id(rng.getrandbits(_ID_BYTES * 8).to_bytes(_ID_BYTES, "big"))

    return generate


_global_gen = random_id_generator()


def new_id() -> str:
    """Return a new random subscription ID."""
    return _global_gen()


def notifier_from_context(ctx: Any) -> Notifier | None:
    """Return the notifier stored in a call context, if any."""
    if isinstance(ctx, Mapping):
        notifier = ctx.get(NOTIFIER_KEY)
        if isinstance(notifier, Notifier):
            return notifier
    return None


class Subscription:
    """A subscription created by a notifier; ``closed`` is set when it ends."""

    def __init__(self, sub_id: str, namespace: str) -> None:
        self.id = sub_id
        self.namespace = namespace
        self.error: BaseException | None = None
        self.closed = threading.Event()

    def close(self, error: BaseException | None = None) -> None:
        """End the subscription, recording why if it ended with an error."""
        if not self.closed.is_set():
            self.error = error
            self.closed.set()

    def to_json(self) -> str:
        """A subscription is encoded as its ID."""
        return self.id

    def __repr__(self) -> str:
        return f"Subscription(id={self.id!r}, namespace={self.namespace!r})"


class Notifier:
    """Sends subscription notifications over one connection.

    ``writer`` needs a ``write_json(value)`` method. Notifications are held
    back until :meth:`activate` is called, after the client has received the
    subscription ID.
    """

    def __init__(
        self,
        writer: Any,
        namespace: str,
        idgen: Callable[[], str] | None = None,
    ) -> None:
        self.writer = writer
        self.namespace = namespace
        self._idgen = idgen or new_id
        self._lock = threading.Lock()
        self._sub: Subscription | None = None
        self._buffer: list[str] = []
        self._call_returned = False
        self._activated = False

    def create_subscription(self) -> Subscription:
        """Create the one subscription of this notifier."""
        with self._lock:
            if self._sub is not None:
                raise RuntimeError("can't create multiple subscriptions with Notifier")
            if self._call_returned:
                raise RuntimeError("can't create subscription after subscribe call has returned")
            self._sub = Subscription(self._idgen(), self.namespace)
            return self._sub

    def notify(self, sub_id: str, data: Any) -> None:
        """Send ``data`` to the client, or buffer it until activation."""
        encoded = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        with self._lock:
            if self._sub is None:
                raise RuntimeError("can't Notify before subscription is created")
            if self._sub.id != sub_id:
                raise RuntimeError("Notify with wrong ID")
            if self._activated:
                self._send(self._sub, encoded)
            else:
                self._buffer.append(encoded)

    def take_subscription(self) -> Subscription | None:
        """Return the subscription, if any; none can be created afterwards."""
        with self._lock:
            self._call_returned = True
            return self._sub

    def activate(self) -> None:
        """Send the buffered notifications and deliver later ones at once."""
        with self._lock:
            while self._buffer:
                self._send(self._sub, self._buffer[0])
                self._buffer.pop(0)
            self._activated = True

    def _send(self, sub: Subscription, data: str) -> None:
        params = '{"subscription":%s,"result":%s}' % (json.dumps(sub.id), data)
        self.writer.write_json(
            JsonRpcMessage(
                version=VERSION,
                method=self.namespace + NOTIFICATION_METHOD_SUFFIX,
                params=params,
            )
        )