"""JSON-RPC errors that carry a protocol error code."""

from __future__ import annotations

import json

DEFAULT_ERROR_CODE = -32000


class RpcError(Exception):
    """An error with a JSON-RPC error code."""

    code = DEFAULT_ERROR_CODE

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def error_code(self) -> int:
        return self.code

    def __str__(self) -> str:
        return self.message


class MethodNotFoundError(RpcError):
    code = -32601

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"the method {method} does not exist/is not available")


class SubscriptionNotFoundError(RpcError):
    code = -32601

    def __init__(self, namespace: str, subscription: str) -> None:
        self.namespace = namespace
        self.subscription = subscription
        quoted = json.dumps(subscription, ensure_ascii=False)
        super().__init__(f"no {quoted} subscription in {namespace} namespace")


class ParseError(RpcError):
    """Invalid JSON was received."""

    code = -32700


class InvalidRequestError(RpcError):
    """The received message is not a valid request."""

    code = -32600


class InvalidMessageError(RpcError):
    """The received message is invalid."""

    code = -32700


class InvalidParamsError(RpcError):
    """The parameters could not be decoded or have the wrong count."""

    code = -32602