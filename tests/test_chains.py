import threading
import time

import pytest

from bridgekit.chains import (
    ChainSDK,
    ChainUnavailableError,
    Options,
    new,
    new_chain_sdk,
)


class FakeNode:
    def __init__(self, url, current=0, failing=False, step=0):
        self.url = url
        self.current = current
        self.failing = failing
        self.step = step

    def get_latest_height(self):
        if self.failing:
            raise ConnectionError("down")
        value = self.current
        self.current += self.step
        return value

    def address(self):
        return self.url


def test_options_key_joins_nodes():
    assert Options(2, ["a", "b"], 1.0, 0).key() == "SDK:2:a:b"


def test_sdk_key_uses_node_addresses():
    sdk = ChainSDK(7, [FakeNode("n1"), FakeNode("n2")], 1.0, 0)
    assert sdk.key() == "SDK:7:n1:n2"
    assert sdk.key() == Options(7, ["n1", "n2"]).key()


def test_init_selects_highest_node():
    nodes = [FakeNode("a", 5), FakeNode("b", 9), FakeNode("c", 7)]
    with new_chain_sdk(1, nodes, 60, 0) as sdk:
        assert sdk.height() == 9
        assert sdk.index() == 1
        assert sdk.node() is nodes[1]
        assert sdk.available() is True


def test_init_raises_when_all_nodes_down():
    nodes = [FakeNode("a", failing=True), FakeNode("b", failing=True)]
    with pytest.raises(ChainUnavailableError, match="chain 3"):
        new_chain_sdk(3, nodes, 60, 0)


def test_refresh_with_all_nodes_down_falls_back_to_first():
    nodes = [FakeNode("a", failing=True), FakeNode("b", failing=True)]
    sdk = ChainSDK(4, nodes, 60, 0)
    sdk.refresh()
    assert sdk.available() is False
    assert sdk.node() is nodes[0]
    assert sdk.height() == 0


def test_refresh_skips_failing_node():
    nodes = [FakeNode("a", failing=True), FakeNode("b", 4)]
    sdk = ChainSDK(4, nodes, 60, 0)
    sdk.refresh()
    assert sdk.node() is nodes[1]
    assert sdk.height() == 4


def test_select_passes_over_lagging_nodes():
    nodes = [FakeNode("a", 100), FakeNode("b", 10), FakeNode("c", 100)]
    sdk = ChainSDK(1, nodes, 60, 5)
    sdk.refresh()
    picks = {sdk.select() for _ in range(6)}
    assert picks == {0, 2}


def test_select_rotates_over_healthy_nodes():
    nodes = [FakeNode("a", 5), FakeNode("b", 5)]
    sdk = ChainSDK(1, nodes, 60, 0)
    sdk.refresh()
    assert [sdk.select() for _ in range(4)] == [1, 0, 1, 0]


def test_select_without_nodes_raises():
    sdk = ChainSDK(1, [], 60, 0)
    with pytest.raises(ChainUnavailableError):
        sdk.select()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        ChainSDK(1, [FakeNode("a", 1)], 0, 0)


def test_new_builds_nodes_with_factory():
    created = []

    def factory(url):
        node = FakeNode(url, 3)
        created.append(node)
        return node

    with new(5, ["x", "y"], 60, 0, factory) as sdk:
        assert [node.url for node in created] == ["x", "y"]
        assert sdk.key() == "SDK:5:x:y"
        assert sdk.node() is created[0]


def test_wait_till_height_reaches_target():
    node = FakeNode("a", 10, step=1)
    with new_chain_sdk(1, [node], 60, 0) as sdk:
        height, reached = sdk.wait_till_height(13, 0.001)
    assert reached is True
    assert height == 13


def test_wait_till_height_stops_when_event_set():
    node = FakeNode("a", 1)
    stop = threading.Event()
    stop.set()
    with new_chain_sdk(1, [node], 60, 0) as sdk:
        assert sdk.wait_till_height(100, 0.001, stop) == (1, False)


def test_wait_till_height_survives_errors():
    node = FakeNode("a", 1)
    with new_chain_sdk(1, [node], 60, 0) as sdk:
        node.failing = True

        def recover():
            time.sleep(0.05)
            node.current = 20
            node.failing = False

        worker = threading.Thread(target=recover)
        worker.start()
        height, reached = sdk.wait_till_height(20, 0.005)
        worker.join()
    assert reached is True
    assert height == 20


def test_monitor_refreshes_and_close_stops_it():
    node = FakeNode("a", 5)
    sdk = new_chain_sdk(1, [node], 0.01, 0)
    try:
        node.current = 50
        deadline = time.monotonic() + 2
        while sdk.height() != 50 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert sdk.height() == 50
    finally:
        sdk.close()
    node.current = 70
    time.sleep(0.05)
    assert sdk.height() == 50