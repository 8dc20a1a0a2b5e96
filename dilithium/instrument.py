"""Selection of an instrument implementation by name."""

from __future__ import annotations

from typing import Any, Mapping

from dilithium.metrics import MetricsInstrument
from dilithium.nilinstrument import NilInstrument


def new_instrument(
    name: str, config: Mapping[str, Any] | None = None
) -> MetricsInstrument | NilInstrument:
    """Create the instrument called ``name``, configured from ``config``."""
    if name == "metrics":
        return MetricsInstrument.from_config(config)
    if name == "nil":
        return NilInstrument()
    raise ValueError(f"unknown instrument '{name}'")