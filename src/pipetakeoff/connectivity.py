"""
Connectivity Resolver

For a port of a component, find the component on the other side of its
physical connection and read that neighbor's line tag and nominal diameter.

Port matching rule for a connection record:
1. the end must belong to the querying component
2. it must be the queried port: same name (case-insensitive) when both
   carry names, otherwise a position within position_epsilon

No record, or a neighbor whose properties cannot be read, yields an empty
Neighbor. That is an expected outcome, not a failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .components import LINE_TAG_PROPS, MANHOLE_PROPS, NEIGHBOR_ND_PROPS, Port
from .geometry import distance
from .provider import Connection, PortRef, PropertyProvider

# Model units (mm drawings: one hundredth of a millimeter)
DEFAULT_POSITION_EPSILON = 0.01


@dataclass(frozen=True)
class Neighbor:
    """
    What lies across a port's connection.

    Attributes:
        line_tag: Neighbor's line tag ("" when unknown)
        diameter: Neighbor's nominal diameter (None when unknown)
        component_id: Neighbor's id (None when there is no neighbor)
    """
    line_tag: str = ""
    diameter: float | None = None
    component_id: str | None = None

    @property
    def resolved(self) -> bool:
        return self.component_id is not None


NO_NEIGHBOR = Neighbor()


def ports_match(a: Port, b: Port, epsilon: float = DEFAULT_POSITION_EPSILON) -> bool:
    """Same port: equal names when both are named, else coincident positions."""
    if a.name and b.name:
        return a.name.strip().lower() == b.name.strip().lower()
    return distance(a.position, b.position) < epsilon


class ConnectivityResolver:
    """
    Resolve neighbors across connections, with a per-run cache.

    Args:
        provider: Source of connection records and neighbor properties
        position_epsilon: Distance below which two port positions coincide
        logger: Injected logger (defaults to this module's logger)
    """

    def __init__(
        self,
        provider: PropertyProvider,
        position_epsilon: float = DEFAULT_POSITION_EPSILON,
        logger: logging.Logger | None = None,
    ):
        self.provider = provider
        self.position_epsilon = position_epsilon
        self.log = logger or logging.getLogger(__name__)
        self._cache: dict[tuple[str, tuple[float, float, float], str | None], Neighbor] = {}

    def find_connected_port(self, component_id: str, port: Port) -> PortRef | None:
        """
        The (component, port) on the other side of the given port's
        connection, or None.
        """
        try:
            connections = self.provider.get_connections(component_id)
        except Exception as exc:
            self.log.debug("Connection lookup failed for %s: %s", component_id, exc)
            return None

        for connection in connections:
            other = self._other_end(connection, component_id, port)
            if other is not None:
                return other
        return None

    def _other_end(self, connection: Connection, component_id: str, port: Port) -> PortRef | None:
        first, second = connection.ends()
        first_is_self = first.component_id == component_id and ports_match(
            first.port, port, self.position_epsilon
        )
        second_is_self = second.component_id == component_id and ports_match(
            second.port, port, self.position_epsilon
        )
        if first_is_self and not second_is_self:
            return second
        if second_is_self and not first_is_self:
            return first
        if first_is_self and second_is_self:
            # Self-connection on one component; take the nearer end as self
            d1 = distance(first.port.position, port.position)
            d2 = distance(second.port.position, port.position)
            return second if d1 <= d2 else first
        return None

    def resolve_neighbor(self, component_id: str, port: Port) -> Neighbor:
        """
        Neighbor line tag and nominal diameter across the given port.

        Returns:
            Neighbor; NO_NEIGHBOR when nothing is connected or the neighbor
            cannot be read
        """
        cache_key = (component_id, port.position, port.name)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        neighbor = NO_NEIGHBOR
        other = self.find_connected_port(component_id, port)
        if other is not None:
            try:
                props = self.provider.get_properties(other.component_id)
            except Exception as exc:
                self.log.debug("Neighbor %s of %s unreadable: %s", other.component_id, component_id, exc)
            else:
                diameter = props.get_float(*NEIGHBOR_ND_PROPS)
                neighbor = Neighbor(
                    line_tag=props.get_string(*LINE_TAG_PROPS),
                    diameter=diameter if diameter is not None and diameter > 0 else None,
                    component_id=other.component_id,
                )

        self._cache[cache_key] = neighbor
        return neighbor

    def neighbor_is_manhole(self, neighbor: Neighbor) -> bool:
        """True if the neighbor is flagged as a manhole / access opening."""
        if not neighbor.resolved:
            return False
        try:
            props = self.provider.get_properties(neighbor.component_id)
            if props.get_flag(*MANHOLE_PROPS):
                return True
            names = (
                self.provider.get_type_name(neighbor.component_id),
                self.provider.get_class_name(neighbor.component_id),
            )
        except Exception as exc:
            self.log.debug("Manhole check failed for %s: %s", neighbor.component_id, exc)
            return False
        return any("manhole" in (n or "").lower() for n in names)

    def clear_cache(self) -> None:
        self._cache.clear()
