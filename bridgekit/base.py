"""Shared constants and per-chain settings for the bridge."""

from __future__ import annotations

from enum import IntEnum

from bridgekit.networks import Network, chain_id, eth_chains

PRICE_PRECISION = 100000000
FEE_PRECISION = 100000000

MARKET_COINMARKETCAP = "coinmarketcap"
MARKET_BINANCE = "binance"
MARKET_HUOBI = "huobi"
MARKET_SELF = "self"


class State(IntEnum):
    """Progress of a cross-chain transaction."""

    FINISHED = 0
    PENDING = 1
    SOURCE_DONE = 2
    SOURCE_CONFIRMED = 3
    POLY_CONFIRMED = 4
    DESTINATION_DONE = 5
    WAIT = 100
    SKIP = 101


_STATE_NAMES = {
    State.FINISHED: "Finished",
    State.PENDING: "Pending",
    State.SOURCE_DONE: "SrcDone",
    State.SOURCE_CONFIRMED: "SrcConfirmed",
    State.POLY_CONFIRMED: "PolyConfirmed",
    State.DESTINATION_DONE: "DestDone",
    State.WAIT: "WAIT",
    State.SKIP: "SKIP",
}

_CHAIN_NAMES = (
    ("POLY", "Poly"),
    ("ETH", "Ethereum"),
    ("RINKEBY", "Ethereum-Rinkeby"),
    ("ONT", "Ontology"),
    ("NEO", "Neo"),
    ("BSC", "Bsc"),
    ("HECO", "Heco"),
    ("O3", "O3"),
    ("OK", "OK"),
    ("MATIC", "Polygon"),
    ("HEIMDALL", "Heimdall"),
    ("NEO3", "NEO3"),
    ("SWITCHEO", "Switcheo"),
    ("PLT", "Palette"),
    ("ARBITRUM", "Arbitrum"),
    ("ZILLIQA", "Zilliqa"),
    ("XDAI", "Xdai"),
    ("OPTIMISM", "Optimism"),
    ("FANTOM", "Fantom"),
    ("METIS", "Metis"),
    ("AVA", "Avalanche"),
    ("BOBA", "Boba"),
    ("PIXIE", "Pixie"),
    ("OASIS", "Oasis"),
    ("HSC", "Hsc"),
    ("HARMONY", "Harmony"),
    ("BYTOM", "Bytom"),
    ("BCSPALETTE", "BCS Palette"),
    ("KCC", "KCC"),
    ("STARCOIN", "Starcoin"),
    ("ONTEVM", "ONTEVM"),
    ("MILKO", "Milkomeda"),
    ("CUBE", "Cube"),
    ("KAVA", "Kava"),
    ("ZKSYNC", "zkSync"),
    ("CELO", "Celo"),
    ("CLOVER", "CLV P-Chain"),
    ("CONFLUX", "Conflux"),
)

_BLOCKS_TO_SKIP = (
    (("MATIC",), 120),
    (("ETH",), 8),
    (("BSC", "HECO", "HSC", "BYTOM", "KCC"), 20),
    (("O3",), 8),
    (("PLT", "BCSPALETTE"), 5),
    (("ONT",), 0),
    (("PIXIE",), 2),
    (("STARCOIN",), 70),
)
_DEFAULT_BLOCKS_TO_SKIP = 1

_BLOCKS_TO_WAIT = (
    (("ETH",), 12),
    (("BSC", "HECO", "HSC", "BYTOM", "KCC"), 21),
    (("ONT", "NEO", "NEO3", "OK", "SWITCHEO"), 1),
    (("HARMONY",), 2),
    (("PLT", "BCSPALETTE"), 4),
    (("O3",), 12),
    (("MATIC",), 128),
    (("PIXIE",), 3),
    (("STARCOIN",), 72),
)
_DEFAULT_BLOCKS_TO_WAIT = 100000000


def _matches(name: str, value: int, network: Network | str | None) -> bool:
    try:
        return chain_id(name, network) == value
    except KeyError:
        return False


def _lookup(table, default: int, value: int, network: Network | str | None) -> int:
    for names, result in table:
        if any(_matches(name, value, network) for name in names):
            return result
    return default


def get_state_name(state: int) -> str:
    """Return the display name of a transaction state."""
    try:
        return _STATE_NAMES[State(state)]
    except ValueError:
        return f"Unknown({state})"


def get_chain_name(chain_id: int, network: Network | str | None = None) -> str:
    """Return the display name of a chain identifier on ``network``."""
    for name, display in _CHAIN_NAMES:
        if _matches(name, chain_id, network):
            return display
    return f"Unknown({chain_id})"


def blocks_to_skip(chain_id: int, network: Network | str | None = None) -> int:
    """Return how many blocks to stay behind the chain head when scanning."""
    return _lookup(_BLOCKS_TO_SKIP, _DEFAULT_BLOCKS_TO_SKIP, chain_id, network)


def blocks_to_wait(chain_id: int, network: Network | str | None = None) -> int:
    """Return how many confirmations a transaction needs on the chain."""
    return _lookup(_BLOCKS_TO_WAIT, _DEFAULT_BLOCKS_TO_WAIT, chain_id, network)


def same_as_eth(chain_id: int, network: Network | str | None = None) -> bool:
    """Tell whether the chain is Ethereum-compatible on ``network``."""
    return chain_id in eth_chains(network)