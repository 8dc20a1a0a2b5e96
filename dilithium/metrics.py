"""An instrument that samples connection counters over time."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

log = logging.getLogger(__name__)

SERIES_NAMES = (
    "tx_bytes",
    "tx_msgs",
    "retx_bytes",
    "retx_msgs",
    "rx_bytes",
    "rx_msgs",
    "tx_ack_bytes",
    "tx_ack_msgs",
    "rx_ack_bytes",
    "rx_ack_msgs",
    "tx_keepalive_bytes",
    "tx_keepalive_msgs",
    "rx_keepalive_bytes",
    "rx_keepalive_msgs",
    "tx_portal_capacity",
    "tx_portal_sz",
    "tx_portal_rx_sz",
    "retx_ms",
    "retx_scale",
    "dup_acks",
    "rx_portal_sz",
    "dup_rx_bytes",
    "dup_rx_msgs",
    "allocations",
    "errors",
)

# Gauges hold their last value across snapshots; everything else is a counter
# that is reset each time it is sampled.
GAUGES = frozenset(
    {
        "tx_portal_capacity",
        "tx_portal_sz",
        "tx_portal_rx_sz",
        "retx_ms",
        "retx_scale",
        "rx_portal_sz",
    }
)


@dataclass(frozen=True)
class Sample:
    """One timestamped value of a series."""

    ts: datetime
    v: int


@dataclass
class MetricsInstrumentConfig:
    """Settings for a :class:`MetricsInstrument`."""

    path: str = ""
    snapshot_ms: int = 1000
    enabled: bool = False


class MetricsInstrumentInstance:
    """Per-connection counters, sampled periodically into series."""

    def __init__(self, id: str, config: MetricsInstrumentConfig) -> None:
        self.id = id
        self.config = config
        self.is_closed = False
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._current = {name: 0 for name in SERIES_NAMES}
        self._series: dict[str, list[Sample]] = {name: [] for name in SERIES_NAMES}

    def _add(self, **amounts: int) -> None:
        if not self.config.enabled:
            return
        with self._lock:
            for name, amount in amounts.items():
                self._current[name] += amount

    def _store(self, name: str, value: int) -> None:
        if not self.config.enabled:
            return
        with self._lock:
            self._current[name] = value

    def _start(self) -> None:
        self._thread = threading.Thread(
            target=self._snapshotter, name=f"metrics-{self.id}", daemon=True
        )
        self._thread.start()

    def _snapshotter(self) -> None:
        log.info("started")
        interval = self.config.snapshot_ms / 1000.0
        try:
            while True:
                stopped = self._stop.wait(interval)
                if self.config.enabled:
                    self.snapshot()
                if stopped:
                    self.snapshot()
                    return
        finally:
            log.info("exited")

    def _close(self) -> None:
        if not self.is_closed:
            self.is_closed = True
            self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    # connection

    def closed(self, adapter: Any) -> None:
        log.info("closing snapshotter")
        self._close()

    # wire

    def wire_message_tx(self, wm: Any) -> None:
        self._add(tx_bytes=wm.buf.used, tx_msgs=1)

    def wire_message_retx(self, wm: Any) -> None:
        self._add(retx_bytes=wm.buf.used, retx_msgs=1)

    def wire_message_rx(self, wm: Any) -> None:
        self._add(rx_bytes=wm.buf.used, rx_msgs=1)

    def read_error(self, err: BaseException) -> None:
        if self.config.enabled:
            log.error("read error (%s)", err)
        self._add(errors=1)

    def write_error(self, err: BaseException) -> None:
        if self.config.enabled:
            log.error("write error (%s)", err)
        self._add(errors=1)

    def unexpected_message_type(self, mt: int) -> None:
        if self.config.enabled:
            log.error("unexpected message type (%d)", int(mt))
        self._add(errors=1)

    # control

    def tx_ack(self, wm: Any) -> None:
        self._add(tx_ack_bytes=wm.buf.used, tx_ack_msgs=1)

    def rx_ack(self, wm: Any) -> None:
        self._add(rx_ack_bytes=wm.buf.size, rx_ack_msgs=1)

    def tx_keepalive(self, wm: Any) -> None:
        self._add(tx_keepalive_bytes=wm.buf.size, tx_keepalive_msgs=1)

    def rx_keepalive(self, wm: Any) -> None:
        self._add(rx_keepalive_bytes=wm.buf.size, rx_keepalive_msgs=1)

    # tx portal

    def tx_portal_capacity_changed(self, capacity: int) -> None:
        self._store("tx_portal_capacity", capacity)

    def tx_portal_sz_changed(self, sz: int) -> None:
        self._store("tx_portal_sz", sz)

    def tx_portal_rx_sz_changed(self, sz: int) -> None:
        self._store("tx_portal_rx_sz", sz)

    def new_retx_ms(self, retx_ms: int) -> None:
        self._store("retx_ms", retx_ms)

    def new_retx_scale(self, retx_scale: float) -> None:
        self._store("retx_scale", int(retx_scale * 1000.0))

    def duplicate_ack(self, ack: int) -> None:
        self._add(dup_acks=1)

    # rx portal

    def rx_portal_sz_changed(self, sz: int) -> None:
        self._store("rx_portal_sz", sz)

    def duplicate_rx(self, wm: Any) -> None:
        self._add(dup_rx_bytes=wm.buf.size, dup_rx_msgs=1)

    # allocation

    def allocate(self, id: str) -> None:
        self._add(allocations=1)

    # lifecycle

    def shutdown(self) -> None:
        self._close()

    def snapshot(self) -> None:
        """Append the current value of every series, resetting the counters."""
        now = datetime.now()
        with self._lock:
            for name in SERIES_NAMES:
                self._series[name].append(Sample(now, self._current[name]))
                if name not in GAUGES:
                    self._current[name] = 0

    def series(self) -> dict[str, list[Sample]]:
        """Return a copy of every recorded series, keyed by name."""
        with self._lock:
            return {name: list(samples) for name, samples in self._series.items()}


@dataclass
class MetricsInstrument:
    """Creates sampling instances and keeps track of them."""

    config: MetricsInstrumentConfig = field(default_factory=MetricsInstrumentConfig)
    instances: list[MetricsInstrumentInstance] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> MetricsInstrument:
        """Build an instrument from a mapping with path, snapshot_ms and enabled keys."""
        settings = MetricsInstrumentConfig()
        for key, value in (config or {}).items():
            if key == "path":
                if not isinstance(value, str):
                    raise ValueError(f"'path' must be a string, not {value!r}")
                settings.path = value
            elif key == "snapshot_ms":
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValueError(f"'snapshot_ms' must be an integer, not {value!r}")
                settings.snapshot_ms = value
            elif key == "enabled":
                if not isinstance(value, bool):
                    raise ValueError(f"'enabled' must be a boolean, not {value!r}")
                settings.enabled = value
        log.info("%s", settings)
        return cls(config=settings)

    def new_instance(self, id: str) -> MetricsInstrumentInstance:
        """Create an instance and start its snapshotter."""
        with self._lock:
            ii = MetricsInstrumentInstance(id, self.config)
            ii._start()
            self.instances.append(ii)
            return ii

    def clean(self) -> None:
        """Forget every instance that has been closed."""
        with self._lock:
            for ii in self.instances:
                if ii.is_closed:
                    log.info("removed metrics instance [%s]", ii.id)
            self.instances = [ii for ii in self.instances if not ii.is_closed]