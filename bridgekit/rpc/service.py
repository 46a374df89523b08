"""Registry of objects whose public methods are served over JSON-RPC."""

from __future__ import annotations

import logging
import threading
import types
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from bridgekit.rpc.errors import RpcError
from bridgekit.rpc.message import SERVICE_METHOD_SEPARATOR
from bridgekit.rpc.subscription import Subscription

log = logging.getLogger(__name__)

CONTEXT_PARAMETER = "ctx"

_CO_VARARGS = 0x04
_CO_VARKEYWORDS = 0x08


def _is_subscription_annotation(annotation: Any) -> bool:
    if annotation is Subscription:
        return True
    if isinstance(annotation, str):
        text = annotation.strip()
        return text == "Subscription" or text.endswith(".Subscription")
    return False


def _describe(fn: Callable[..., Any]) -> tuple[list[tuple[str, bool]], Any]:
    """Return the positional parameters (name, has default) and the return annotation of ``fn``."""
    bound = isinstance(fn, types.MethodType)
    func = fn.__func__ if bound else fn
    if not isinstance(func, types.FunctionType):
        raise TypeError(f"cannot inspect {fn!r}")
    code = func.__code__
    if code.co_flags & (_CO_VARARGS | _CO_VARKEYWORDS):
        raise TypeError(f"{fn!r} takes variadic arguments")
    names = code.co_varnames[: code.co_argcount]
    kwonly = code.co_varnames[code.co_argcount : code.co_argcount + code.co_kwonlyargcount]
    kwdefaults = func.__kwdefaults__ or {}
    for name in kwonly:
        if name not in kwdefaults:
            raise TypeError(f"{fn!r} has a required keyword-only argument {name!r}")
    defaults = func.__defaults__ or ()
    first_default = len(names) - len(defaults)
    params = [(name, position >= first_default) for position, name in enumerate(names)]
    if bound:
        params = params[1:]
    return params, func.__annotations__.get("return")


class Callback:
    """A function or bound method that can answer an RPC call.

    A first parameter named ``ctx`` receives the call context and is not part
    of the RPC arguments. Parameters with defaults may be left out by the
    caller. A method taking ``ctx`` and annotated to return
    :class:`Subscription` serves subscriptions.
    """

    def __init__(self, fn: Callable[..., Any]) -> None:
        params, return_annotation = _describe(fn)
        self.fn = fn
        self.has_ctx = bool(params) and params[0][0] == CONTEXT_PARAMETER
        if self.has_ctx:
            params = params[1:]
        self.arg_names: tuple[str, ...] = tuple(name for name, _ in params)
        self.optional_flags: tuple[bool, ...] = tuple(optional for _, optional in params)
        self.is_subscribe = self.has_ctx and _is_subscription_annotation(return_annotation)

    def call(self, ctx: Any, method: str, args: Sequence[Any]) -> Any:
        """Invoke the function; RPC errors pass through, anything else is reported as a crash."""
        full_args = [ctx, *args] if self.has_ctx else list(args)
        try:
            return self.fn(*full_args)
        except RpcError:
            raise
        except Exception as exc:
            log.exception("RPC method %s crashed", method)
            raise RpcError("method handler crashed") from exc

    def __repr__(self) -> str:
        return f"Callback({self.fn!r})"


@dataclass
class _Service:
    name: str
    callbacks: dict[str, Callback] = field(default_factory=dict)
    subscriptions: dict[str, Callback] = field(default_factory=dict)


def format_name(name: str) -> str:
    """Lower-case the first character of ``name``."""
    return name[:1].lower() + name[1:]


def _static_lookup(receiver: Any, name: str) -> Any:
    """Find ``name`` on ``receiver`` without triggering descriptors."""
    own = getattr(receiver, "__dict__", None)
    if not isinstance(receiver, type) and isinstance(own, dict) and name in own:
        return own[name]
    mro = receiver.__mro__ if isinstance(receiver, type) else type(receiver).__mro__
    for klass in mro:
        namespace = vars(klass)
        if name in namespace:
            return namespace[name]
    raise AttributeError(name)


def suitable_callbacks(receiver: Any) -> dict[str, Callback]:
    """Return a callback for every public method of ``receiver`` that can serve RPC calls."""
    callbacks: dict[str, Callback] = {}
    for name in dir(receiver):
        if name.startswith("_"):
            continue
        try:
            static = _static_lookup(receiver, name)
        except AttributeError:
            continue
        if not isinstance(static, (types.FunctionType, staticmethod, classmethod)):
            continue
        try:
            callbacks[format_name(name)] = Callback(getattr(receiver, name))
        except TypeError:
            continue
    return callbacks


class ServiceRegistry:
    """Services by name, each with its call and subscription callbacks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, _Service] = {}

    def register_name(self, name: str, receiver: Any) -> None:
        """Expose the public methods of ``receiver`` under the namespace ``name``."""
        if not name:
            raise ValueError(f"no service name for type {type(receiver).__name__}")
        callbacks = suitable_callbacks(receiver)
        if not callbacks:
            raise ValueError(
                f"service {type(receiver).__name__} doesn't have any suitable methods/subscriptions to expose"
            )
        with self._lock:
            service = self._services.setdefault(name, _Service(name))
            for method, cb in callbacks.items():
                target = service.subscriptions if cb.is_subscribe else service.callbacks
                target[method] = cb

    def callback(self, method: str) -> Callback | None:
        """Return the callback for a full method name such as ``eth_getBalance``."""
        parts = method.split(SERVICE_METHOD_SEPARATOR, 1)
        if len(parts) != 2:
            return None
        with self._lock:
            service = self._services.get(parts[0])
            return None if service is None else service.callbacks.get(parts[1])

    def subscription(self, service: str, name: str) -> Callback | None:
        """Return the subscription callback ``name`` of ``service``."""
        with self._lock:
            found = self._services.get(service)
            return None if found is None else found.subscriptions.get(name)

    def services(self) -> Mapping[str, _Service]:
        with self._lock:
            return dict(self._services)