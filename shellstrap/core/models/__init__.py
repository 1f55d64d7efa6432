"""
Domain models — value types for the bootstrapper.

All models are re-exported here for convenient access:

    from shellstrap.core.models import Receipt, Marker, LineLiteral, BootstrapConfig
"""

from shellstrap.core.models.config import BootstrapConfig, PinnedVersions
from shellstrap.core.models.receipt import Receipt
from shellstrap.core.models.regions import LineLiteral, Marker, Region
from shellstrap.core.models.state import (
    CacheLinkState,
    LinkResult,
    MutationOutcome,
    RunDecision,
)

__all__ = [
    # config.py
    "BootstrapConfig",
    # state.py
    "CacheLinkState",
    # regions.py
    "LineLiteral",
    "LinkResult",
    "Marker",
    "MutationOutcome",
    "PinnedVersions",
    # receipt.py
    "Receipt",
    "Region",
    "RunDecision",
]
