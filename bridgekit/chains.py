"""Selection of the healthiest node among several endpoints of one chain."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol, Sequence

log = logging.getLogger(__name__)

_UINT64_MASK = (1 << 64) - 1


class Node(Protocol):
    """An endpoint that can report the latest block height of its chain."""

    def get_latest_height(self) -> int: ...

    def address(self) -> str: ...


class ChainUnavailableError(RuntimeError):
    """Raised when none of the nodes of a chain answers."""


@dataclass
class Options:
    """Settings from which a chain SDK is built."""

    chain_id: int
    nodes: list[str] = field(default_factory=list)
    interval: float = 1.0
    max_gap: int = 0

    def key(self) -> str:
        return f"SDK:{self.chain_id}:{':'.join(self.nodes)}"


class ChainSDK:
    """Tracks a set of nodes and keeps the one with the highest block selected.

    ``interval`` is in seconds. Nodes that lag more than ``max_gap`` blocks
    behind the best node are passed over by :meth:`select`.
    """

    def __init__(self, chain_id: int, nodes: Sequence[Node], interval: float, max_gap: int) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.chain_id = chain_id
        self.interval = interval
        self.max_gap = max_gap
        self._nodes: list[Node] = list(nodes)
        self._state = [False] * len(self._nodes)
        self._sdk: Node | None = None
        self._index = 0
        self._cursor = 0
        self._status = 0
        self._height = 0
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._monitor: threading.Thread | None = None

    def key(self) -> str:
        addresses = ":".join(node.address() for node in self._nodes)
        return f"SDK:{self.chain_id}:{addresses}"

    def height(self) -> int:
        with self._lock:
            return self._height

    def wait_till_height(
        self,
        height: int,
        interval: float | None = None,
        stop: threading.Event | None = None,
    ) -> tuple[int, bool]:
        """Poll the selected node until it reaches ``height``.

        Returns the last height seen and whether the target was reached;
        setting ``stop`` ends the wait early.
        """
        if not interval:
            interval = self.interval
        while True:
            current = 0
            try:
                current = self.node().get_latest_height()
            except Exception as exc:
                log.error("Failed to get chain latest height chain=%s err=%s", self.chain_id, exc)
            else:
                if current >= height:
                    return current, True
            if stop is not None:
                if stop.wait(interval):
                    return current, False
            else:
                time.sleep(interval)

    def refresh(self) -> None:
        """Ping every node and select the one with the highest block."""
        best_height = 0
        best: Node | None = None
        best_index = 0
        heights = [0] * len(self._nodes)
        for i, node in enumerate(self._nodes):
            try:
                current = node.get_latest_height()
            except Exception as exc:
                log.error("Ping node error url=%s err=%s", node.address(), exc)
                continue
            heights[i] = current
            if current > best_height:
                best_height, best, best_index = current, node, i
        status = 1
        if best is None:
            status = 0
            log.warning("Temp unavailability for all nodes chain=%s", self.chain_id)
            if self._nodes:
                best = self._nodes[0]
        # The lag threshold wraps around like an unsigned 64-bit subtraction.
        threshold = (best_height - self.max_gap) & _UINT64_MASK
        with self._lock:
            self._sdk = best
            self._status = status
            self._height = best_height
            self._index = best_index
            self._state = [h >= threshold for h in heights]

    def available(self) -> bool:
        with self._lock:
            return self._status > 0

    def index(self) -> int:
        with self._lock:
            return self._index

    def select(self):
        """Return the index of the next node, in turn, that is not lagging behind."""
        with self._lock:
            count = len(self._nodes)
            if count == 0:
                raise ChainUnavailableError(f"no nodes configured for chain {self.chain_id}")
            start = self._cursor % count
            self._cursor += 1
            candidate = self._cursor % count
            while candidate != start:
                if self._state[candidate]:
                    break
                self._cursor += 1
                candidate = self._cursor % count
            self._cursor = candidate
            return candidate

    def node(self):
        with self._lock:
            return self._sdk

    def init(self) -> None:
        """Select the first node and start watching the nodes in the background."""
        log.info("Initializing chain sdk chainID=%s", self.chain_id)
        self.refresh()
        if not self.available():
            raise ChainUnavailableError(f"All the nodes are unavailable for chain {self.chain_id}")
        self._start_monitor()

    def close(self) -> None:
        """Stop the background monitor."""
        self._stop.set()
        monitor = self._monitor
        if monitor is not None and monitor is not threading.current_thread():
            monitor.join()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _start_monitor(self) -> None:
        if self._monitor is not None and self._monitor.is_alive():
            return
        self._stop.clear()
        self._monitor = threading.Thread(
            target=self._run_monitor, name=f"chain-{self.chain_id}-monitor", daemon=True
        )
        self._monitor.start()

    def _run_monitor(self) -> None:
        while not self._stop.wait(self.interval):
            self.refresh()


def new(
    chain_id: int,
    urls: Iterable[str],
    interval: float,
    max_gap: int,
    factory: Callable[[str], Node],
) -> ChainSDK:
    """Build nodes from ``urls`` with ``factory`` and start a chain SDK on them."""
    return new_chain_sdk(chain_id, [factory(url) for url in urls], interval, max_gap)


def new_chain_sdk(chain_id: int, nodes: Sequence[Node], interval: float, max_gap: int) -> ChainSDK:
    """Create a chain SDK, select its first node and start monitoring."""
    sdk = ChainSDK(chain_id, nodes, interval, max_gap)
    sdk.init()
    return sdk