"""Configuration store package for declared and recorded gateway state.

This package provides:
- GatewayStore: declared config, recorded state and computed outputs of one gateway
- DriftReport/DriftItem: Drift detection between declared and recorded state
- compute_fingerprint: Stable hash of a resolved configuration
"""

from .store import (
    GatewayStore,
    DriftReport,
    DriftItem,
    compute_fingerprint,
    FINGERPRINT_KEY,
)

__all__ = [
    "GatewayStore",
    "DriftReport",
    "DriftItem",
    "compute_fingerprint",
    "FINGERPRINT_KEY",
]
