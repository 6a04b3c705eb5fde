"""
Install Length Contributions

Computes, for one component, how much installed length it contributes to
which line. Lengths are in model units; conversion happens at aggregation.

================================================================================
ATTRIBUTION RULES
================================================================================

Pipe:
    Distance S1-S2 (named ports, else the first two) to the pipe's own line.

Inline two-port fitting (valve, flange, coupling, instrument, orifice
plate, olet, elbow):
    Distance between its two ports. Elbows use the path through the bend
    vertex (S1 -> vertex -> S2) when the vertex is known, never the chord.

    "Two-port rule" for the target line:
    - the fitting has its own line tag  -> 100% to it
    - neighbors on both sides resolve to different tags -> 50% / 50%
    - only one side resolves (or both agree) -> 100% to that tag
    - nothing resolves -> 100% to "" (kept, flagged downstream)

Reducer:
    100% to the larger-diameter side (ties -> first port). Never split.

Connector (gasket acting as connector, one product class only):
    Thickness S1-S2, then the two-port rule.

Tee / Cross:
    Run = the two ports whose directions from the port centroid are most
    nearly opposite. Each remaining port is a branch whose length is its
    distance to the run segment (clamped projection). Run length follows
    the two-port rule with the larger run diameter; each branch goes to its
    own neighbor's line.

    When the geometric decomposition is inapplicable, the run is chosen by
    neighbor diameter (two largest) and then by port order (ports 0 and 1).
    Tee and Cross use the same fallback order.

    A branch whose neighbor is a manhole / access opening contributes no
    length; its diameter is still reported in the breakdown.
================================================================================
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from .components import (
    DEFAULT_CONNECTOR_CLASSES,
    POSITION_PROPS,
    SELF_ND_PROPS,
    SIZE_PROPS,
    Component,
    ComponentKind,
    Contribution,
    Port,
)
from .connectivity import ConnectivityResolver, Neighbor
from .geometry import ZERO_LENGTH, distance, distance_to_segment, most_opposite_pair, path_length
from .provider import PropertyProvider
from .sizes import guess_run_branch_nds, leading_nd

BreakdownMethod = Literal["geometric", "diameter", "positional"]


def _first(*values):
    """First value that is not None."""
    for v in values:
        if v is not None:
            return v
    return None


def end_ports(ports: list[Port]) -> tuple[Port, Port] | None:
    """The S1/S2 ports when both are named, else the first two ports."""
    s1 = next((p for p in ports if p.has_name("S1")), None)
    s2 = next((p for p in ports if p.has_name("S2")), None)
    if s1 is not None and s2 is not None:
        return (s1, s2)
    if len(ports) >= 2:
        return (ports[0], ports[1])
    return None


# =============================================================================
# BRANCH BREAKDOWN
# =============================================================================


@dataclass
class BranchBreakdown:
    """
    Run/branch decomposition of a tee or cross.

    Port indices refer to the component's port list. Branch lists are
    parallel; for a cross they are ordered so that the first branch has the
    larger (or equal) diameter.
    """
    is_cross: bool
    method: BreakdownMethod
    run_ports: tuple[int, int]
    run_length: float
    run_tags: tuple[str, str]
    run_diameter: float | None
    branch_ports: list[int] = field(default_factory=list)
    branch_lengths: list[float] = field(default_factory=list)
    branch_tags: list[str] = field(default_factory=list)
    branch_diameters: list[float | None] = field(default_factory=list)
    manhole_branches: list[bool] = field(default_factory=list)

    @property
    def port_diameters(self) -> list[float | None]:
        """Run diameter followed by each branch diameter."""
        return [self.run_diameter, *self.branch_diameters]


# =============================================================================
# CALCULATOR
# =============================================================================


class InstallLengthCalculator:
    """
    Per-component install length calculator.

    compute_contributions() never raises: any failure is logged at debug
    level and yields an empty list, since leaving a component out of a
    takeoff is better than a corrupt row.

    Usage:
        calc = InstallLengthCalculator(provider)
        for c in calc.compute_contributions("T-1"):
            print(c.line_tag, c.length_model_units, c.target_nominal_diameter)
    """

    def __init__(
        self,
        provider: PropertyProvider,
        resolver: ConnectivityResolver | None = None,
        connector_classes: Iterable[str] = DEFAULT_CONNECTOR_CLASSES,
        logger: logging.Logger | None = None,
    ):
        self.provider = provider
        self.log = logger or logging.getLogger(__name__)
        self.resolver = resolver if resolver is not None else ConnectivityResolver(provider, logger=self.log)
        self.connector_classes = tuple(connector_classes)

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def compute_contributions(self, component_id: str) -> list[Contribution]:
        """Install length contributions of one component (model units)."""
        try:
            component = self.provider.get_component(component_id)
            return [c for c in self._compute(component) if c.length_model_units > ZERO_LENGTH]
        except Exception:
            self.log.debug("Contribution failed for %s", component_id, exc_info=True)
            return []

    def breakdown(self, component_id: str) -> BranchBreakdown | None:
        """Run/branch decomposition of a tee or cross, else None."""
        try:
            component = self.provider.get_component(component_id)
            kind = component.kind(self.connector_classes)
            if kind not in (ComponentKind.TEE, ComponentKind.CROSS) or len(component.ports) < 3:
                return None
            return self._branch_breakdown(component, kind)
        except Exception:
            self.log.debug("Breakdown failed for %s", component_id, exc_info=True)
            return None

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _compute(self, component: Component) -> list[Contribution]:
        kind = component.kind(self.connector_classes)
        ports = component.ports

        if kind in (ComponentKind.SUPPORT, ComponentKind.FASTENER):
            return []

        if kind is ComponentKind.PIPE:
            ends = end_ports(ports)
            if ends is None:
                return []
            length = distance(ends[0].position, ends[1].position)
            return [Contribution(component.line_tag, length, self.own_nominal_diameter(component))]

        if kind in (ComponentKind.TEE, ComponentKind.CROSS) and len(ports) >= 3:
            return self._branching_contributions(component, kind)

        if kind is ComponentKind.REDUCER and len(ports) >= 2:
            return self._reducer_contribution(component)

        if kind is ComponentKind.CONNECTOR:
            ends = end_ports(ports)
            if ends is None:
                return []
            thickness = distance(ends[0].position, ends[1].position)
            return self._two_port_rule(component, thickness, ends[0], ends[1])

        if len(ports) >= 2:
            p0, p1 = ports[0], ports[1]
            length = distance(p0.position, p1.position)
            if kind is ComponentKind.ELBOW:
                vertex = self._vertex(component)
                if vertex is not None:
                    length = path_length([p0.position, vertex, p1.position])
            return self._two_port_rule(component, length, p0, p1)

        return []

    # -------------------------------------------------------------------------
    # Component attributes
    # -------------------------------------------------------------------------

    def own_nominal_diameter(self, component: Component) -> float | None:
        """Own ND property, else the leading number of the size attribute."""
        nd = component.properties.get_float(*SELF_ND_PROPS)
        if nd is not None and nd > 0:
            return nd
        nd = leading_nd(component.properties.get_string(*SIZE_PROPS))
        return nd if nd is not None and nd > 0 else None

    def _vertex(self, component: Component) -> tuple[float, float, float] | None:
        coords = [component.properties.get_float(*names) for names in POSITION_PROPS]
        if any(c is None for c in coords):
            return None
        return (coords[0], coords[1], coords[2])

    def _neighbor(self, component: Component, port: Port) -> Neighbor:
        return self.resolver.resolve_neighbor(component.id, port)

    # -------------------------------------------------------------------------
    # Two-port and reducer rules
    # -------------------------------------------------------------------------

    def _two_port_rule(
        self, component: Component, length: float, p0: Port, p1: Port
    ) -> list[Contribution]:
        if length <= ZERO_LENGTH:
            return []

        n0 = self._neighbor(component, p0)
        n1 = self._neighbor(component, p1)

        self_tag = component.line_tag
        if self_tag:
            nd = _first(n0.diameter, n1.diameter, self.own_nominal_diameter(component))
            return [Contribution(self_tag, length, nd)]

        return self._split_between(
            length, n0.line_tag, n1.line_tag, n0.diameter, n1.diameter,
            fallback_nd=self.own_nominal_diameter(component),
        )

    @staticmethod
    def _split_between(
        length: float,
        tag_a: str,
        tag_b: str,
        nd_a: float | None,
        nd_b: float | None,
        fallback_nd: float | None = None,
    ) -> list[Contribution]:
        """Split length 50/50 between two different tags, else 100% to one."""
        if tag_a and tag_b and tag_a != tag_b:
            half = length * 0.5
            return [
                Contribution(tag_a, half, _first(nd_a, fallback_nd)),
                Contribution(tag_b, half, _first(nd_b, fallback_nd)),
            ]
        if tag_a:
            return [Contribution(tag_a, length, _first(nd_a, nd_b, fallback_nd))]
        if tag_b:
            return [Contribution(tag_b, length, _first(nd_b, nd_a, fallback_nd))]
        return [Contribution("", length, _first(nd_a, nd_b, fallback_nd))]

    def _reducer_contribution(self, component: Component) -> list[Contribution]:
        p0, p1 = component.ports[0], component.ports[1]
        length = distance(p0.position, p1.position)
        if length <= ZERO_LENGTH:
            return []

        n0 = self._neighbor(component, p0)
        n1 = self._neighbor(component, p1)
        self_tag = component.line_tag

        if n0.diameter is not None and n1.diameter is not None:
            large = n0 if n0.diameter >= n1.diameter else n1
            return [Contribution(large.line_tag or self_tag, length, large.diameter)]

        tag = n0.line_tag or n1.line_tag or self_tag
        nd = _first(n0.diameter, n1.diameter, self.own_nominal_diameter(component))
        return [Contribution(tag, length, nd)]

    # -------------------------------------------------------------------------
    # Tee / Cross
    # -------------------------------------------------------------------------

    def _branching_contributions(self, component: Component, kind: ComponentKind) -> list[Contribution]:
        b = self._branch_breakdown(component, kind)
        self_tag = component.line_tag

        if self_tag:
            result = [Contribution(self_tag, b.run_length, b.run_diameter)]
        else:
            result = self._split_between(
                b.run_length, b.run_tags[0], b.run_tags[1], b.run_diameter, b.run_diameter
            )

        for length, tag, nd in zip(b.branch_lengths, b.branch_tags, b.branch_diameters):
            if length > ZERO_LENGTH:
                result.append(Contribution(tag, length, nd))
        return result

    def _branch_breakdown(self, component: Component, kind: ComponentKind) -> BranchBreakdown:
        ports = component.ports
        is_cross = kind is ComponentKind.CROSS or len(ports) >= 4
        considered = list(range(min(4, len(ports)) if is_cross else 3))
        neighbors = {i: self._neighbor(component, ports[i]) for i in considered}

        method: BreakdownMethod
        pair = most_opposite_pair([ports[i].position for i in considered])
        if pair is not None:
            method = "geometric"
            run = (considered[pair[0]], considered[pair[1]])
        else:
            known = [i for i in considered if neighbors[i].diameter is not None]
            if len(known) >= 2:
                method = "diameter"
                # Stable sort keeps port order among equal diameters
                ordered = sorted(
                    considered,
                    key=lambda i: -(neighbors[i].diameter if neighbors[i].diameter is not None else -1.0),
                )
                run = (min(ordered[0], ordered[1]), max(ordered[0], ordered[1]))
            else:
                method = "positional"
                run = (considered[0], considered[1])

        branches = [i for i in considered if i not in run]
        a, b = ports[run[0]].position, ports[run[1]].position
        run_length = distance(a, b)

        size_run, size_branch = guess_run_branch_nds(component.properties.get_string(*SIZE_PROPS))

        run_nds = [d for d in (neighbors[run[0]].diameter, neighbors[run[1]].diameter) if d is not None]
        run_nd = max(run_nds) if run_nds else _first(size_run, self.own_nominal_diameter(component))

        self_tag = component.line_tag
        rows = []
        for i in branches:
            n = neighbors[i]
            manhole = self.resolver.neighbor_is_manhole(n)
            length = 0.0 if manhole else distance_to_segment(ports[i].position, a, b)
            nd = _first(n.diameter, size_branch, self.own_nominal_diameter(component))
            rows.append((i, length, n.line_tag or self_tag, nd, manhole))

        if is_cross:
            rows.sort(key=lambda r: -(r[3] if r[3] is not None else -1.0))

        return BranchBreakdown(
            is_cross=is_cross,
            method=method,
            run_ports=run,
            run_length=run_length,
            run_tags=(neighbors[run[0]].line_tag, neighbors[run[1]].line_tag),
            run_diameter=run_nd,
            branch_ports=[r[0] for r in rows],
            branch_lengths=[r[1] for r in rows],
            branch_tags=[r[2] for r in rows],
            branch_diameters=[r[3] for r in rows],
            manhole_branches=[r[4] for r in rows],
        )
