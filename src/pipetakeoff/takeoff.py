"""
Takeoff Runner

One full scan over a provider:

1. enumerate components (natural id order)
2. build identity keys and allocate billable ids
3. index pipes for target resolution
4. compute contributions and aggregate lengths, count discrete parts
5. group connectivity islands

An AllocationOverflowError stops the batch: components without an id are
not aggregated and the error is kept on the result. A TraversalLimitError
from grouping propagates to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .aggregation import AggregationEngine, DetailRow, ExclusionLog, Pivot, natural_sort_key
from .components import Component, ComponentKind
from .config import TakeoffConfig
from .connectivity import ConnectivityResolver
from .contributions import BranchBreakdown, InstallLengthCalculator
from .grouping import ConnectivityGrouper
from .identifiers import AllocationOverflowError, IdentifierAllocator
from .keys import WorkCategory, build_identity_key, category_for
from .provider import PropertyProvider


@dataclass
class TakeoffResult:
    """
    Everything a report needs from one scan.

    Attributes:
        lengths: Length pivot (meters)
        counts: Part-count pivot (pieces)
        details: One row per aggregated (or dropped) contribution
        exclusions: Unrouted contributions with reason codes
        groups: Component id -> connectivity group label
        billable_ids: Component id -> formatted billable id
        keys: Component id -> identity key
        breakdowns: Tee/cross id -> run/branch breakdown
        aborted_by: Allocation overflow that stopped the batch, if any
    """
    lengths: Pivot
    counts: Pivot
    exclusions: ExclusionLog
    details: list[DetailRow] = field(default_factory=list)
    groups: dict[str, str] = field(default_factory=dict)
    billable_ids: dict[str, str] = field(default_factory=dict)
    keys: dict[str, str] = field(default_factory=dict)
    breakdowns: dict[str, BranchBreakdown] = field(default_factory=dict)
    aborted_by: AllocationOverflowError | None = None

    @property
    def completed(self) -> bool:
        return self.aborted_by is None


class TakeoffRunner:
    """
    Run a quantity takeoff over a provider.

    Usage:
        provider = load_network_yaml("network.yaml")
        allocator = IdentifierAllocator(IdentifierStore.load("ids.yaml"))
        result = TakeoffRunner(provider, allocator=allocator).run()
        IdentifierStore.save("ids.yaml", allocator.state)
    """

    def __init__(
        self,
        provider: PropertyProvider,
        config: TakeoffConfig | None = None,
        allocator: IdentifierAllocator | None = None,
        logger: logging.Logger | None = None,
    ):
        self.provider = provider
        self.config = config if config is not None else TakeoffConfig()
        self.log = logger or logging.getLogger(__name__)
        self.allocator = allocator if allocator is not None else IdentifierAllocator(logger=self.log)
        self.resolver = ConnectivityResolver(
            provider, position_epsilon=self.config.position_epsilon, logger=self.log
        )
        self.calculator = InstallLengthCalculator(
            provider,
            resolver=self.resolver,
            connector_classes=self.config.connector_classes,
            logger=self.log,
        )
        self.grouper = ConnectivityGrouper(
            provider, max_traversal_nodes=self.config.max_traversal_nodes, logger=self.log
        )

    def _load_components(self, component_ids: Iterable[str]) -> list[Component]:
        components = []
        for cid in sorted(dict.fromkeys(component_ids), key=natural_sort_key):
            try:
                components.append(self.provider.get_component(cid))
            except Exception as exc:
                self.log.warning("Skipping unreadable component %s: %s", cid, exc)
        return components

    def run(self, component_ids: Iterable[str] | None = None) -> TakeoffResult:
        """
        Scan the given components (all components when None).

        Raises:
            TraversalLimitError: If connectivity grouping exceeds its cap
        """
        self.resolver.clear_cache()
        connector_classes = self.config.connector_classes
        components = self._load_components(
            self.provider.component_ids() if component_ids is None else component_ids
        )

        engine = AggregationEngine(
            unit_to_meter=self.config.unit_to_meter,
            blank_column=self.config.blank_column,
            total_column=self.config.total_column,
            excluded_columns=self.config.excluded_columns,
            logger=self.log,
        )
        result = TakeoffResult(engine.lengths, engine.counts, engine.exclusions)

        # Keys
        kinds = {c.id: c.kind(connector_classes) for c in components}
        for c in components:
            port_diameters = None
            if kinds[c.id] in (ComponentKind.TEE, ComponentKind.CROSS):
                breakdown = self.calculator.breakdown(c.id)
                if breakdown is not None:
                    result.breakdowns[c.id] = breakdown
                    port_diameters = breakdown.port_diameters
            result.keys[c.id] = build_identity_key(c, kinds[c.id], port_diameters)

        distinct_keys = set(result.keys.values())
        self.allocator.total_target_count = len(distinct_keys)
        if self.config.prune_stale_ids:
            removed = self.allocator.retain(distinct_keys)
            if removed:
                self.log.info("Pruned %d stale identifiers", len(removed))

        # Billable ids
        numbers: dict[str, int] = {}
        for c in components:
            try:
                numbers[c.id] = self.allocator.get_or_create_id(result.keys[c.id])
            except AllocationOverflowError as exc:
                self.log.error("Stopping takeoff at %s: %s", c.id, exc)
                result.aborted_by = exc
                break
        for cid, number in numbers.items():
            result.billable_ids[cid] = self.allocator.format_id(number)

        allocated = [c for c in components if c.id in numbers]
        categories = {c.id: category_for(c, kinds[c.id]) for c in allocated}

        # Pipes first, so fittings can be routed to them
        for c in allocated:
            if categories[c.id] is WorkCategory.PIPE:
                engine.register_pipe(
                    c,
                    result.billable_ids[c.id],
                    numbers[c.id],
                    nominal_diameter=self.calculator.own_nominal_diameter(c),
                )

        for c in allocated:
            category = categories[c.id]
            contributions = self.calculator.compute_contributions(c.id)
            result.details.extend(
                engine.add_contributions(c, category, result.billable_ids[c.id], contributions)
            )
            if category is not WorkCategory.PIPE:
                engine.add_part_count(c, category, result.billable_ids[c.id])

        result.groups = self.grouper.group_components(c.id for c in components)

        self.log.info(
            "Takeoff: %d components, %d length rows, %d count rows, %d exclusions",
            len(allocated), len(result.lengths), len(result.counts), len(result.exclusions),
        )
        return result

