"""Flow-control algorithm interface and its tunable profile."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from dilithium.memory import Pool


@dataclass
class TxProfile:
    """The tunables requested by a flow-control algorithm."""

    max_segment_size: int = 64000
    retx_batch_ms: int = 2
    send_keepalive: bool = True
    connection_timeout: int = 15000
    max_tree_size: int = 64 * 1024
    reads_queue_size: int = 1024
    pool_buffer_size: int = 64 * 1024
    rx_portal_pacing_threshold: float = 0.5
    close_check_ms: int = 500

    def new_pool(self, id: str, ii: Any) -> Pool:
        """Create a buffer pool sized for this profile."""
        return Pool(id, self.pool_buffer_size, ii)


def default_tx_profile() -> TxProfile:
    """Return a fresh profile holding the default tunables."""
    return TxProfile()


class TxAlgorithm(ABC):
    """A pluggable flow-control strategy used by a transmitter."""

    @abstractmethod
    def tx(self, size: int) -> None:
        """Block until there is room on the wire for ``size`` bytes."""

    @abstractmethod
    def success(self, size: int) -> None:
        """Release room on the wire after ``size`` bytes were acknowledged."""

    @abstractmethod
    def duplicate_ack(self) -> None:
        """Note that the receiver saw a duplicate transmission."""

    @abstractmethod
    def retransmission(self, size: int) -> None:
        """Note that ``size`` bytes were sent again after a timeout."""

    @abstractmethod
    def probe_rtt(self) -> bool:
        """Return True once each time a round-trip probe is due."""

    @abstractmethod
    def update_rtt(self, rtt_ms: int) -> None:
        """Feed a measured round-trip time into the algorithm."""

    @abstractmethod
    def retx_ms(self) -> int:
        """Return the current retransmission timeout in milliseconds."""

    @abstractmethod
    def rx_portal_size(self) -> int:
        """Return the last observed size of the receiver's buffer."""

    @abstractmethod
    def update_rx_portal_size(self, size: int) -> None:
        """Record the observed size of the receiver's buffer."""

    @abstractmethod
    def rx_portal_pacing(self, old_size: int, new_size: int) -> bool:
        """Decide whether a receiver size change warrants a keepalive."""

    @abstractmethod
    def profile(self) -> TxProfile:
        """Return the tunables this algorithm asks for."""