"""An instrument that records nothing."""

from __future__ import annotations

from typing import Any


def _ignored(*_event: Any) -> None:
    """Drop an instrumentation event without recording it."""
    return None


class NilInstrumentInstance:
    """Instrument instance that drops every event it is given."""

    __slots__ = ()

    def closed(self, adapter: Any) -> None:
        return _ignored(adapter)

    def wire_message_tx(self, wm: Any) -> None:
        return _ignored(wm)

    def wire_message_retx(self, wm: Any) -> None:
        return _ignored(wm)

    def wire_message_rx(self, wm: Any) -> None:
        return _ignored(wm)

    def read_error(self, err: BaseException) -> None:
        return _ignored(err)

    def write_error(self, err: BaseException) -> None:
        return _ignored(err)

    def unexpected_message_type(self, mt: int) -> None:
        return _ignored(mt)

    def tx_ack(self, wm: Any) -> None:
        return _ignored(wm)

    def rx_ack(self, wm: Any) -> None:
        return _ignored(wm)

    def tx_keepalive(self, wm: Any) -> None:
        return _ignored(wm)

    def rx_keepalive(self, wm: Any) -> None:
        return _ignored(wm)

    def tx_portal_capacity_changed(self, capacity: int) -> None:
        return _ignored(capacity)

    def tx_portal_sz_changed(self, sz: int) -> None:
        return _ignored(sz)

    def tx_portal_rx_sz_changed(self, sz: int) -> None:
        return _ignored(sz)

    def new_retx_ms(self, retx_ms: int) -> None:
        return _ignored(retx_ms)

    def new_retx_scale(self, retx_scale: float) -> None:
        return _ignored(retx_scale)

    def duplicate_ack(self, ack: int) -> None:
        return _ignored(ack)

    def rx_portal_sz_changed(self, sz: int) -> None:
        return _ignored(sz)

    def duplicate_rx(self, wm: Any) -> None:
        return _ignored(wm)

    def allocate(self, id: str) -> None:
        return _ignored(id)

    def shutdown(self) -> None:
        return _ignored()


class NilInstrument:
    """Instrument producing :class:`NilInstrumentInstance` objects."""

    def new_instance(self, id: str) -> NilInstrumentInstance:
        return NilInstrumentInstance()