"""Client for the bridge service: fee checks, token registration and transactions."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, ClassVar, Iterable, Mapping

from bridgekit.chains import ChainSDK

_Converter = Callable[[Any], Any]


class BridgeError(RuntimeError):
    """Raised when the bridge service cannot be reached or answers badly."""


class CheckFeeStatus(IntEnum):
    SKIP = -2  # not our transaction
    NOT_PAID = -1  # not paid, or paid too little
    MISSING = 0  # transaction not received yet
    PAID = 1  # paid enough
    PAID_LIMIT = 2  # paid, but gas must be estimated


def _status(value: Any) -> CheckFeeStatus | int:
    try:
        return CheckFeeStatus(int(value))
    except ValueError:
        return int(value)


def _field(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if name.lower() == lowered:
            return value
    return None


def _decode_into(obj, data: Any):
    if not isinstance(data, dict):
        raise BridgeError(f"expected a JSON object, got {type(data).__name__}")
    for attr, key, convert in obj._FIELDS:
        value = _field(data, key)
        if value is not None:
            setattr(obj, attr, convert(value))
    return obj


def _decoder(cls) -> _Converter:
    return lambda data: _decode_into(cls(), data)


def _list_of(convert: _Converter) -> _Converter:
    return lambda items: [None if item is None else convert(item) for item in items]


def _encode(value: Any) -> Any:
    if hasattr(value, "_FIELDS"):
        omit = getattr(value, "_OMIT_EMPTY", frozenset())
        out = {}
        for attr, key, _ in value._FIELDS:
            item = getattr(value, attr)
            if key in omit and not item:
                continue
            out[key] = _encode(item)
        return out
    if isinstance(value, list):
        return [_encode(item) for item in value]
    if isinstance(value, IntEnum):
        return int(value)
    return value


@dataclass
class CheckFeeRequest:
    chain_id: int = 0
    tx_id: str = ""
    poly_hash: str = ""
    paid: float = 0.0
    min: float = 0.0
    paid_gas: float = 0.0
    status: CheckFeeStatus | int = CheckFeeStatus.MISSING

    _FIELDS: ClassVar = (
        ("chain_id", "ChainId", int),
        ("tx_id", "TxId", str),
        ("poly_hash", "PolyHash", str),
        ("paid", "Paid", float),
        ("min", "Min", float),
        ("paid_gas", "PaidGas", float),
        ("status", "Status", _status),
    )

    def passed(self) -> bool:
        return self.status == CheckFeeStatus.PAID

    def skip(self) -> bool:
        return self.status == CheckFeeStatus.SKIP

    def missing(self) -> bool:
        return self.status == CheckFeeStatus.MISSING

    def paid_limit(self) -> bool:
        return self.status == CheckFeeStatus.PAID_LIMIT


@dataclass
class GetFeeRequest:
    src_chain_id: int = 0
    dst_chain_id: int = 0
    swap_token_hash: str = ""
    hash: str = ""

    _FIELDS: ClassVar = (
        ("src_chain_id", "SrcChainId", int),
        ("dst_chain_id", "DstChainId", int),
        ("swap_token_hash", "SwapTokenHash", str),
        ("hash", "Hash", str),
    )


@dataclass
class GetFeeResponse:
    src_chain_id: int = 0
    dst_chain_id: int = 0
    swap_token_hash: str = ""
    token_amount: str = ""
    usdt_amount: str = ""
    token_amount_with_precision: str = ""
    balance: str = ""
    balance_with_precision: str = ""

    _FIELDS: ClassVar = (
        ("src_chain_id", "SrcChainId", int),
        ("dst_chain_id", "DstChainId", int),
        ("swap_token_hash", "SwapTokenHash", str),
        ("token_amount", "TokenAmount", str),
        ("usdt_amount", "UsdtAmount", str),
        ("token_amount_with_precision", "TokenAmountWithPrecision", str),
        ("balance", "Balance", str),
        ("balance_with_precision", "BalanceWithPrecision", str),
    )


@dataclass
class TokenBasic:
    price: str = ""
    precision: int = 0

    _FIELDS: ClassVar = (
        ("price", "Price", str),
        ("precision", "Precision", int),
    )


@dataclass
class TokenRequest:
    chain_id: int = 0
    hash: str = ""
    name: str = ""
    token_basic_name: str = ""
    token_basic: TokenBasic | None = None

    _FIELDS: ClassVar = (
        ("chain_id", "ChainId", int),
        ("hash", "Hash", str),
        ("name", "Name", str),
        ("token_basic_name", "TokenBasicName", str),
        ("token_basic", "TokenBasic", _decoder(TokenBasic)),
    )
    _OMIT_EMPTY: ClassVar = frozenset({"Name", "TokenBasicName", "TokenBasic"})


@dataclass
class CheckTxRequest:
    hash: str = ""

    _FIELDS: ClassVar = (("hash", "Hash", str),)


@dataclass
class TxToken:
    hash: str = ""
    chain_id: int = 0
    name: str = ""
    token_basic_name: str = ""

    _FIELDS: ClassVar = (
        ("hash", "Hash", str),
        ("chain_id", "ChainId", int),
        ("name", "Name", str),
        ("token_basic_name", "TokenBasicName", str),
    )


@dataclass
class TxState:
    hash: str = ""
    chain_id: int = 0
    blocks: int = 0
    need_blocks: int = 0
    time: int = 0

    _FIELDS: ClassVar = (
        ("hash", "Hash", str),
        ("chain_id", "ChainId", int),
        ("blocks", "Blocks", int),
        ("need_blocks", "NeedBlocks", int),
        ("time", "Time", int),
    )


@dataclass
class CheckTxResponse:
    hash: str = ""
    src_chain_id: int = 0
    dst_chain_id: int = 0
    block_height: int = 0
    time: int = 0
    user: str = ""
    fee_amount: str = ""
    transfer_amount: str = ""
    dst_user: str = ""
    token: TxToken | None = None
    transaction_state: list[TxState | None] = field(default_factory=list)

    _FIELDS: ClassVar = (
        ("hash", "Hash", str),
        ("src_chain_id", "SrcChainId", int),
        ("dst_chain_id", "DstChainId", int),
        ("block_height", "BlockHeight", int),
        ("time", "Time", int),
        ("user", "User", str),
        ("fee_amount", "FeeAmount", str),
        ("transfer_amount", "TransferAmount", str),
        ("dst_user", "DstUser", str),
        ("token", "Token", _decoder(TxToken)),
        ("transaction_state", "TransactionState", _list_of(_decoder(TxState))),
    )


@dataclass
class TxBody:
    chain_id: int = 0
    tx_hash: str = ""

    _FIELDS: ClassVar = (
        ("chain_id", "Chainid", int),
        ("tx_hash", "Txhash", str),
    )


@dataclass
class TxResponse:
    source: TxBody | None = None
    poly: TxBody | None = None
    target: TxBody | None = None

    _FIELDS: ClassVar = (
        ("source", "Fchaintx", _decoder(TxBody)),
        ("poly", "Mchaintx", _decoder(TxBody)),
        ("target", "Tchaintx", _decoder(TxBody)),
    )


def _request_json(url: str, payload: Any = None, *, post: bool, timeout: float) -> Any:
    data = None
    headers = {"Accept": "application/json"}
    if post:
        data = json.dumps(payload).encode("utf-8")
        headers["Content-Type"] = "application/json"
    request = urllib.request.Request(url, data=data, headers=headers, method="POST" if post else "GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as exc:
        raise BridgeError(f"{url}: HTTP {exc.code} {exc.reason}") from exc
    except OSError as exc:
        raise BridgeError(f"{url}: {exc}") from exc
    try:
        return json.loads(body)
    except ValueError as exc:
        raise BridgeError(f"{url}: invalid JSON response") from exc


class Client:
    """A bridge service endpoint."""

    def __init__(self, url: str, timeout: float = 30.0) -> None:
        self._address = url
        self.explorer = ""
        self.timeout = timeout

    def set_explorer(self, url: str) -> None:
        self.explorer = url

    def address(self) -> str:
        return self._address

    def get_latest_height(self) -> int:
        return 1

    def _post(self, path: str, payload: Any) -> Any:
        return _request_json(self._address + path, payload, post=True, timeout=self.timeout)

    def check_fee(self, requests: dict[str, CheckFeeRequest | None]) -> dict[str, CheckFeeRequest | None]:
        """Ask the service about fees; updates ``requests`` with its answers and returns it."""
        payload = {key: None if req is None else _encode(req) for key, req in requests.items()}
        answer = self._post("/newcheckfee", payload)
        if answer is None:
            return requests
        if not isinstance(answer, dict):
            raise BridgeError("expected a JSON object from /newcheckfee")
        for key, value in answer.items():
            requests[key] = None if value is None else _decode_into(CheckFeeRequest(), value)
        return requests

    def get_fee(self, request: GetFeeRequest) -> GetFeeResponse:
        return _decode_into(GetFeeResponse(), self._post("/getfee", _encode(request)))

    def token(self, request: TokenRequest) -> TokenRequest:
        """Register a token; fills ``request`` with the service's answer and returns it."""
        answer = self._post("/token/", _encode(request))
        if answer is not None:
            _decode_into(request, answer)
        return request

    def check_tx(self, request: CheckTxRequest) -> CheckTxResponse:
        return _decode_into(CheckTxResponse(), self._post("/transactionofhash", _encode(request)))

    def fetch_tx(self, request: CheckTxRequest) -> TxResponse:
        url = self.explorer + "/getcrosstx?txhash=" + request.hash
        return _decode_into(TxResponse(), _request_json(url, post=False, timeout=self.timeout))


class SDK(ChainSDK):
    """A set of bridge clients with node selection."""

    def __init__(self, chain_id: int, clients: Iterable[Client], interval: float, max_gap: int) -> None:
        self._clients = list(clients)
        super().__init__(chain_id, self._clients, interval, max_gap)

    def node(self) -> Client:
        return self._clients[self.index()]

    def select(self) -> Client:
        return self._clients[super().select()]

    def key(self) -> str:
        return f"Bridge-Client{super().key()}"


def new_sdk(chain_id: int, urls: Iterable[str], interval: float, max_gap: int) -> SDK:
    """Create bridge clients for ``urls`` and start selecting among them."""
    sdk = SDK(chain_id, [Client(url) for url in urls], interval, max_gap)
    sdk.init()
    return sdk