"""
Property Provider Interface

The takeoff engine never talks to a CAD host directly. Everything it needs
comes through the PropertyProvider abstraction:

- component enumeration and type/class names
- a case-insensitive property bag per component
- the ordered port list per component
- connection records (which port of which component joins which other port)
- connectivity bundles (components sharing one physical grouping, used to
  pull fasteners into the same island as the parts they join)

One method per capability. A host adapter implements this interface once;
InMemoryPropertyProvider implements it over plain Component objects and is
what the YAML network loader and the tests use.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from .components import Component, Port, PropertyBag

# =============================================================================
# CONNECTION RECORDS
# =============================================================================


@dataclass(frozen=True)
class PortRef:
    """A specific port of a specific component."""
    component_id: str
    port: Port


@dataclass(frozen=True)
class Connection:
    """
    A physical connection between two component ports.

    Connections are undirected; either end may be the querying component.
    """
    first: PortRef
    second: PortRef

    def ends(self) -> tuple[PortRef, PortRef]:
        return (self.first, self.second)

    def other(self, component_id: str) -> PortRef | None:
        """The end that does not belong to component_id, if exactly one does."""
        if self.first.component_id == component_id and self.second.component_id != component_id:
            return self.second
        if self.second.component_id == component_id and self.first.component_id != component_id:
            return self.first
        return None


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================


class PropertyProvider(ABC):
    """
    Read-only snapshot of a piping model.

    Implementations must return empty results (never raise) for unknown
    properties. Unknown component ids may raise KeyError; callers treat that
    as "cannot be resolved".
    """

    @abstractmethod
    def component_ids(self) -> list[str]:
        """All component identifiers in scan order."""

    @abstractmethod
    def get_type_name(self, component_id: str) -> str:
        """Entity type name ("Pipe", "Tee", ...)."""

    @abstractmethod
    def get_class_name(self, component_id: str) -> str:
        """Product class name ("P3dConnector", ...) or ""."""

    @abstractmethod
    def get_properties(self, component_id: str) -> PropertyBag:
        """Case-insensitive property bag."""

    @abstractmethod
    def get_ports(self, component_id: str) -> list[Port]:
        """Ordered port list (may be empty)."""

    @abstractmethod
    def get_connections(self, component_id: str) -> list[Connection]:
        """Connection records that involve the component."""

    @abstractmethod
    def get_connectivity_bundle(self, component_id: str) -> list[str]:
        """Other components sharing a physical grouping with this one."""

    def get_component(self, component_id: str) -> Component:
        """Assemble a Component view of one id."""
        return Component(
            id=component_id,
            type_name=self.get_type_name(component_id),
            class_name=self.get_class_name(component_id),
            ports=list(self.get_ports(component_id)),
            properties=self.get_properties(component_id),
        )


# =============================================================================
# IN-MEMORY PROVIDER
# =============================================================================


class InMemoryPropertyProvider(PropertyProvider):
    """
    PropertyProvider over a dict of Component objects.

    Usage:
        provider = InMemoryPropertyProvider()
        provider.add(Component("P1", "Pipe", ports=[...], properties={...}))
        provider.add(Component("V1", "Valve", ports=[...]))
        provider.connect("P1", "S2", "V1", "S1")
        provider.add_bundle(["V1", "G1"])
    """

    def __init__(self, components: Iterable[Component] = ()):
        self._components: dict[str, Component] = {}
        self._connections: dict[str, list[Connection]] = {}
        self._bundles: dict[str, set[str]] = {}
        for component in components:
            self.add(component)

    def add(self, component: Component) -> Component:
        """Add a component; raises ValueError on a duplicate id."""
        if component.id in self._components:
            raise ValueError(f"Duplicate component id '{component.id}'")
        self._components[component.id] = component
        self._connections.setdefault(component.id, [])
        return component

    def _resolve_port(self, component_id: str, port: str | int | Port) -> Port:
        component = self._components.get(component_id)
        if component is None:
            raise ValueError(f"Component '{component_id}' not found")
        if isinstance(port, Port):
            return port
        if isinstance(port, int):
            if not 0 <= port < len(component.ports):
                raise ValueError(f"Port index {port} out of range on '{component_id}'")
            return component.ports[port]
        found = component.get_port(port)
        if found is None:
            names = [p.name for p in component.ports]
            raise ValueError(f"Port '{port}' not found on '{component_id}'. Available: {names}")
        return found

    def connect(
        self,
        a_id: str,
        a_port: str | int | Port,
        b_id: str,
        b_port: str | int | Port,
    ) -> Connection:
        """
        Record a connection between two ports (by name, index or Port).

        Returns:
            The stored Connection

        Raises:
            ValueError: If a component or port does not exist
        """
        connection = Connection(
            PortRef(a_id, self._resolve_port(a_id, a_port)),
            PortRef(b_id, self._resolve_port(b_id, b_port)),
        )
        self._connections[a_id].append(connection)
        if b_id != a_id:
            self._connections[b_id].append(connection)
        return connection

    def add_bundle(self, component_ids: Iterable[str]) -> None:
        """Declare that the given components share one physical grouping."""
        members = set(component_ids)
        for cid in members:
            if cid not in self._components:
                raise ValueError(f"Component '{cid}' not found")
        for cid in members:
            self._bundles.setdefault(cid, set()).update(members - {cid})

    def component_ids(self) -> list[str]:
        return list(self._components)

    def get_component(self, component_id: str) -> Component:
        return self._components[component_id]

    def get_type_name(self, component_id: str) -> str:
        return self._components[component_id].type_name

    def get_class_name(self, component_id: str) -> str:
        return self._components[component_id].class_name

    def get_properties(self, component_id: str) -> PropertyBag:
        component = self._components.get(component_id)
        return component.properties if component is not None else PropertyBag()

    def get_ports(self, component_id: str) -> list[Port]:
        component = self._components.get(component_id)
        return list(component.ports) if component is not None else []

    def get_connections(self, component_id: str) -> list[Connection]:
        return list(self._connections.get(component_id, []))

    def get_connectivity_bundle(self, component_id: str) -> list[str]:
        return sorted(self._bundles.get(component_id, ()))
