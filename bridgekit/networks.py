"""Chain identifiers for each deployment network of the bridge."""

from __future__ import annotations

import os
from enum import Enum
from types import MappingProxyType
from typing import Mapping

ENV_VARIABLE = "BRIDGEKIT_NETWORK"


class Network(Enum):
    """A deployment environment with its own set of chain identifiers."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    DEVNET = "devnet"

    @property
    def env(self) -> str:
        return self.value


_MAINNET_IDS = {
    "POLY": 0,
    "BTC": 1,
    "ETH": 2,
    "ONT": 3,
    "NEO": 4,
    "SWITCHEO": 5,
    "BSC": 6,
    "HECO": 7,
    "PLT": 8,
    "O3": 10,
    "OK": 12,
    "NEO3": 14,
    "HEIMDALL": 15,
    "MATIC": 17,
    "ZILLIQA": 18,
    "ARBITRUM": 19,
    "XDAI": 20,
    "AVA": 21,
    "FANTOM": 22,
    "OPTIMISM": 23,
    "METIS": 24,
    "BOBA": 25,
    "OASIS": 26,
    "HARMONY": 27,
    "HSC": 28,
    "BYTOM": 29,
    "KCC": 30,
    "STARCOIN": 31,
    "KAVA": 32,
    "MILKO": 34,
    "CUBE": 35,
    "ZKSYNC": 100940,
    "CELO": 36,
    "CLOVER": 37,
    "CONFLUX": 38,
    # Identifiers not valid on this network.
    "RINKEBY": 1000000,
    "PIXIE": 2000000,
    "BCSPALETTE": 1001001,
    "ONTEVM": 1001333,
    "FLOW": 1000444,
}

_TESTNET_IDS = {
    "POLY": 0,
    "BTC": 1,
    "ETH": 2,
    "ONT": 3,
    "NEO": 5,
    "HECO": 7,
    "BSC": 79,
    "O3": 82,
    "NEO3": 88,
    "PLT": 107,
    "ZILLIQA": 111,
    "OK": 200,
    "HEIMDALL": 201,
    "MATIC": 202,
    "ARBITRUM": 205,
    "XDAI": 206,
    "OPTIMISM": 210,
    "FANTOM": 208,
    "AVA": 209,
    "METIS": 300,
    "PIXIE": 316,
    "BOBA": 400,
    "RINKEBY": 402,
    "OASIS": 500,
    "HSC": 603,
    "BYTOM": 701,
    "HARMONY": 800,
    "KCC": 900,
    "ONTEVM": 333,
    "MILKO": 810,
    "FLOW": 910,
    "KAVA": 920,
    "CUBE": 930,
    "ZKSYNC": 940,
    "CELO": 960,
    "CLOVER": 970,
    "CONFLUX": 980,
    "SWITCHEO": 1000,
    "BCSPALETTE": 1001,
    "STARCOIN": 318,
}

_DEVNET_IDS = {
    "POLY": 0,
    "BTC": 1,
    "ETH": 2,
    "ONT": 3,
    "NEO": 4,
    "BSC": 6,
    "HECO": 7,
    "O3": 80,
    "NEO3": 88,
    "OK": 90,
    "MATIC": 13,
    "METIS": 300,
    "PIXIE": 316,
    "RINKEBY": 402,
    "HSC": 603,
    "BYTOM": 701,
    "KCC": 900,
    "ONTEVM": 5555,
    "FLOW": 444,
    "KAVA": 920,
    "CUBE": 930,
    "SWITCHEO": 1000,
    "HARMONY": 801,
    "BCSPALETTE": 1001,
    "STARCOIN": 318,
    "ZKSYNC": 940,
    "CELO": 960,
    "CLOVER": 970,
    "CONFLUX": 980,
}

_IDS: Mapping[Network, Mapping[str, int]] = MappingProxyType(
    {
        Network.MAINNET: MappingProxyType(_MAINNET_IDS),
        Network.TESTNET: MappingProxyType(_TESTNET_IDS),
        Network.DEVNET: MappingProxyType(_DEVNET_IDS),
    }
)

_CHAINS = {
    Network.MAINNET: (
        "POLY", "ETH", "BSC", "HECO", "OK", "ONT", "NEO", "NEO3", "HEIMDALL", "MATIC",
        "SWITCHEO", "O3", "PLT", "ARBITRUM", "XDAI", "OPTIMISM", "FANTOM", "AVA",
        "METIS", "BOBA", "PIXIE", "OASIS", "HSC", "HARMONY", "BYTOM", "BCSPALETTE",
        "STARCOIN", "ONTEVM", "KCC", "MILKO", "CUBE", "KAVA", "FLOW", "ZKSYNC",
        "CELO", "CLOVER", "CONFLUX",
    ),
    Network.TESTNET: (
        "POLY", "ETH", "BSC", "HECO", "OK", "ONT", "NEO", "NEO3", "HEIMDALL", "MATIC",
        "SWITCHEO", "O3", "PLT", "ARBITRUM", "XDAI", "OPTIMISM", "FANTOM", "AVA",
        "METIS", "RINKEBY", "BOBA", "PIXIE", "OASIS", "HSC", "HARMONY", "BYTOM",
        "BCSPALETTE", "STARCOIN", "ONTEVM", "KCC", "MILKO", "CUBE", "KAVA", "FLOW",
        "ZKSYNC", "CELO", "CLOVER", "CONFLUX",
    ),
    Network.DEVNET: (
        "POLY", "ETH", "ONT", "NEO", "BSC", "HECO", "O3", "OK", "MATIC", "METIS",
        "RINKEBY", "PIXIE", "HSC", "HARMONY", "BYTOM", "STARCOIN", "ONTEVM", "CUBE",
        "KAVA", "FLOW", "ZKSYNC", "CELO", "CLOVER", "CONFLUX",
    ),
}

_ETH_CHAINS = {
    Network.MAINNET: (
        "ETH", "BSC", "HECO", "OK", "MATIC", "O3", "PLT", "ARBITRUM", "XDAI", "OPTIMISM",
        "FANTOM", "AVA", "METIS", "BOBA", "PIXIE", "OASIS", "HSC", "HARMONY", "BYTOM",
        "BCSPALETTE", "KCC", "ONTEVM", "MILKO", "CUBE", "KAVA", "ZKSYNC", "CELO",
        "CLOVER", "CONFLUX",
    ),
    Network.TESTNET: (
        "ETH", "BSC", "HECO", "OK", "MATIC", "O3", "PLT", "ARBITRUM", "XDAI", "OPTIMISM",
        "FANTOM", "AVA", "METIS", "RINKEBY", "BOBA", "PIXIE", "OASIS", "HSC", "HARMONY",
        "HARMONY", "BYTOM", "BCSPALETTE", "KCC", "ONTEVM", "MILKO", "CUBE", "KAVA",
        "ZKSYNC", "CELO", "CLOVER", "CONFLUX",
    ),
    Network.DEVNET: (
        "ETH", "BSC", "HECO", "OK", "MATIC", "O3", "METIS", "RINKEBY", "PIXIE", "HSC",
        "HARMONY", "BYTOM", "KCC", "ONTEVM", "CUBE", "KAVA", "ZKSYNC", "CELO", "CLOVER",
        "CONFLUX",
    ),
}


def current_network() -> Network:
    """Return the network selected by the BRIDGEKIT_NETWORK variable (mainnet by default)."""
    value = os.environ.get(ENV_VARIABLE, Network.MAINNET.value).strip().lower()
    try:
        return Network(value)
    except ValueError:
        raise ValueError(f"unknown network {value!r} in {ENV_VARIABLE}") from None


def _resolve(network: Network | str | None) -> Network:
    if network is None:
        return current_network()
    if isinstance(network, Network):
        return network
    return Network(str(network).lower())


def chain_id(name: str, network: Network | str | None = None) -> int:
    """Return the identifier of the chain called ``name`` on ``network``."""
    net = _resolve(network)
    try:
        return _IDS[net][name.upper()]
    except KeyError:
        raise KeyError(f"chain {name!r} is not defined on {net.value}") from None


def chains(network: Network | str | None = None) -> tuple[int, ...]:
    """Return the identifiers of the chains served on ``network``."""
    net = _resolve(network)
    return tuple(_IDS[net][name] for name in _CHAINS[net])


def eth_chains(network: Network | str | None = None) -> tuple[int, ...]:
    """Return the identifiers of the Ethereum-compatible chains on ``network``."""
    net = _resolve(network)
    return tuple(_IDS[net][name] for name in _ETH_CHAINS[net])