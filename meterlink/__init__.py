"""
meterlink: LoRaWAN meter uplink ingestion and time-series engine.

Turns heterogeneous network-server webhook documents (ChirpStack, The
Things Network, generic bridges) into normalized uplinks, stores them
idempotently, and derives daily consumption series and device summaries.

CHANGELOG:
- 2026-10-14: Initial creation

TODO:
- None
"""

__version__ = "0.1.0"
