"""
pipetakeoff - quantity takeoff for piping networks.

Computes installed length per component (decomposing tees and crosses into
run and branch), aggregates lengths and part counts into pivots keyed by
billable id and line, and keeps billable ids stable across re-runs.

Usage:
    from pipetakeoff import TakeoffRunner, load_network_yaml

    provider = load_network_yaml("network.yaml")
    result = TakeoffRunner(provider).run()
    for row in result.lengths.to_rows():
        print(row)
"""

from .aggregation import (
    BLANK_COLUMN,
    TOTAL_COLUMN,
    AggregationEngine,
    AggregationKey,
    DetailRow,
    Exclusion,
    ExclusionLog,
    PipeEntry,
    PipeIndex,
    Pivot,
    natural_sort_key,
)
from .components import (
    Component,
    ComponentKind,
    Contribution,
    Port,
    PropertyBag,
    classify,
)
from .config import TakeoffConfig
from .connectivity import ConnectivityResolver, Neighbor
from .contributions import BranchBreakdown, InstallLengthCalculator
from .grouping import ConnectivityGrouper, TraversalLimitError, UnionFind
from .identifiers import (
    AllocationOverflowError,
    IdentifierAllocator,
    IdentifierState,
    IdentifierStore,
)
from .keys import WorkCategory, build_identity_key, category_for
from .network_loader import load_network, load_network_yaml
from .provider import Connection, InMemoryPropertyProvider, PortRef, PropertyProvider
from .takeoff import TakeoffResult, TakeoffRunner

__all__ = [
    # Data model
    "Component",
    "ComponentKind",
    "Contribution",
    "Port",
    "PropertyBag",
    "classify",
    # Provider
    "PropertyProvider",
    "InMemoryPropertyProvider",
    "Connection",
    "PortRef",
    "load_network",
    "load_network_yaml",
    # Calculation
    "ConnectivityResolver",
    "Neighbor",
    "InstallLengthCalculator",
    "BranchBreakdown",
    # Grouping
    "UnionFind",
    "ConnectivityGrouper",
    "TraversalLimitError",
    # Keys and identifiers
    "WorkCategory",
    "build_identity_key",
    "category_for",
    "IdentifierState",
    "IdentifierAllocator",
    "IdentifierStore",
    "AllocationOverflowError",
    # Aggregation
    "AggregationKey",
    "AggregationEngine",
    "Pivot",
    "PipeIndex",
    "PipeEntry",
    "Exclusion",
    "ExclusionLog",
    "DetailRow",
    "natural_sort_key",
    "BLANK_COLUMN",
    "TOTAL_COLUMN",
    # Runs
    "TakeoffConfig",
    "TakeoffRunner",
    "TakeoffResult",
]
