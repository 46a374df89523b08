import pytest

from bridgekit.networks import (
    ENV_VARIABLE,
    Network,
    chain_id,
    chains,
    current_network,
    eth_chains,
)


def test_mainnet_ids_from_table():
    assert chain_id("ETH", Network.MAINNET) == 2
    assert chain_id("ZKSYNC", Network.MAINNET) == 100940
    assert chain_id("RINKEBY", Network.MAINNET) == 1000000


def test_testnet_and_devnet_ids():
    assert chain_id("BSC", Network.TESTNET) == 79
    assert chain_id("ONTEVM", Network.DEVNET) == 5555


def test_name_is_case_insensitive():
    assert chain_id("eth", Network.TESTNET) == chain_id("ETH", Network.TESTNET)


def test_network_given_as_string():
    assert chain_id("MATIC", "testnet") == chain_id("MATIC", Network.TESTNET)


def test_unknown_chain_raises():
    with pytest.raises(KeyError):
        chain_id("NOPE", Network.MAINNET)


def test_devnet_lacks_palette():
    with pytest.raises(KeyError):
        chain_id("PLT", Network.DEVNET)


@pytest.mark.parametrize("network", list(Network))
def test_poly_is_first_chain_and_not_eth(network):
    ids = chains(network)
    assert ids[0] == chain_id("POLY", network)
    assert chain_id("POLY", network) not in eth_chains(network)


@pytest.mark.parametrize("network", list(Network))
def test_eth_is_eth_chain(network):
    assert eth_chains(network)[0] == chain_id("ETH", network)


@pytest.mark.parametrize("network", [Network.MAINNET, Network.DEVNET])
def test_chain_ids_unique(network):
    ids = chains(network)
    assert len(set(ids)) == len(ids)


def test_current_network_default(monkeypatch):
    monkeypatch.delenv(ENV_VARIABLE, raising=False)
    assert current_network() is Network.MAINNET


def test_current_network_from_env(monkeypatch):
    monkeypatch.setenv(ENV_VARIABLE, "TestNet")
    assert current_network() is Network.TESTNET
    assert chain_id("BSC") == chain_id("BSC", Network.TESTNET)


def test_current_network_invalid(monkeypatch):
    monkeypatch.setenv(ENV_VARIABLE, "moon")
    with pytest.raises(ValueError):
        current_network()


def test_env_name_of_current_network(monkeypatch):
    monkeypatch.setenv(ENV_VARIABLE, "devnet")
    assert current_network().env == "devnet"