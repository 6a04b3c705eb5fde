"""
Piping Components, Ports and Property Bags

This module defines the read-only data model the takeoff engine works on.

================================================================================
COMPONENT MODEL
================================================================================

A component is an opaque identifier plus:
- a type name (Pipe, Valve, Flange, Tee, Cross, Reducer, Elbow, Connector, ...)
- an optional product class name (e.g. "P3dConnector")
- an ordered list of ports (3-D connection points, optionally named S1, S2...)
- a property bag with case-insensitive keys

The engine never mutates a component. Everything it derives (contributions,
keys, identifiers) lives in separate objects.

Classification into a ComponentKind is done by case-insensitive substring
matching on the type name and class name, because port ordering and naming
are unreliable across data sources while type names are stable.
================================================================================
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum


# =============================================================================
# PROPERTY NAME ALIASES
# =============================================================================

# Candidate property names, first non-empty wins
LINE_TAG_PROPS = ("LineNumberTag", "LineTag", "LineNumber")
MATERIAL_CODE_PROPS = ("MaterialCode", "MAT_CODE")
ITEM_CODE_PROPS = ("ItemCode", "ITEM_CODE")
DESCRIPTION_PROPS = ("PartFamilyLongDesc", "LONG_DESC", "ShortDescription")
SIZE_PROPS = ("Size", "NominalSize", "PartSize", "NPS")
INSTALL_TYPE_PROPS = ("InstallType", "Installation", "INSTALLATION")
ANGLE_PROPS = ("Angle", "PathAngle")
SELF_ND_PROPS = ("ND1", "NominalDiameter", "NominalDia")
NEIGHBOR_ND_PROPS = ("NominalDiameter", "NominalDia", "ND", "ND1", "NOM_DIA", "NPD")
QUANTITY_KEY_PROPS = ("QuantityID", "QTY_ID")
MANHOLE_PROPS = ("Manhole", "AccessOpening", "IsManhole")

# Vertex point of an elbow (center of the bend)
POSITION_PROPS = (("Position X", "PositionX"), ("Position Y", "PositionY"), ("Position Z", "PositionZ"))

_TRUE_STRINGS = {"1", "true", "yes", "y", "on", "x"}


# =============================================================================
# PROPERTY BAG
# =============================================================================


class PropertyBag(Mapping):
    """
    Case-insensitive, read-only property mapping.

    Absent keys read as empty through get_string()/get_float(); plain
    indexing still raises KeyError like any Mapping.

    Example:
        props = PropertyBag({"LineNumberTag": "L-100", "Size": "150"})
        props.get_string("linenumbertag")   # "L-100"
        props.get_float("Size")              # 150.0
        props.get_string("Missing")          # ""
    """

    def __init__(self, values: Mapping[str, object] | None = None):
        self._values: dict[str, object] = {}
        self._names: dict[str, str] = {}
        for name, value in (values or {}).items():
            self._values[name.lower()] = value
            self._names[name.lower()] = name

    def __getitem__(self, name: str) -> object:
        return self._values[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names.values())

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __repr__(self) -> str:
        return f"PropertyBag({dict(self.items())!r})"

    def get_string(self, *candidates: str) -> str:
        """Return the first non-empty candidate value as a stripped string."""
        for name in candidates:
            value = self._values.get(name.lower())
            if value is None:
                continue
            text = str(value).strip()
            if text:
                return text
        return ""

    def get_float(self, *candidates: str) -> float | None:
        """Return the first candidate that parses as a float, else None."""
        for name in candidates:
            value = self._values.get(name.lower())
            if value is None or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                return float(value)
            try:
                return float(str(value).strip())
            except ValueError:
                continue
        return None

    def get_flag(self, *candidates: str) -> bool:
        """Return True if any candidate holds a truthy flag value."""
        for name in candidates:
            value = self._values.get(name.lower())
            if isinstance(value, bool):
                if value:
                    return True
            elif value is not None and str(value).strip().lower() in _TRUE_STRINGS:
                return True
        return False


# =============================================================================
# PORT AND COMPONENT
# =============================================================================


def _to_point(value: Iterable[float]) -> tuple[float, float, float]:
    x, y, z = value
    return (float(x), float(y), float(z))


@dataclass(frozen=True)
class Port:
    """
    A connection point on a component.

    Attributes:
        position: 3-D position in model units
        name: Optional port name (e.g. "S1", "S2"); None when unnamed
    """
    position: tuple[float, float, float]
    name: str | None = None

    def __post_init__(self):
        # Accept lists/arrays from YAML or numpy
        object.__setattr__(self, "position", _to_point(self.position))

    def has_name(self, name: str) -> bool:
        """Case-insensitive port name comparison."""
        return bool(self.name) and self.name.strip().lower() == name.strip().lower()


class ComponentKind(Enum):
    """Geometric class of a component, as far as length takeoff cares."""
    PIPE = "pipe"
    TEE = "tee"
    CROSS = "cross"
    REDUCER = "reducer"
    ELBOW = "elbow"
    CONNECTOR = "connector"
    FASTENER = "fastener"
    SUPPORT = "support"
    INLINE = "inline"


DEFAULT_CONNECTOR_CLASSES = ("P3dConnector",)


def classify(
    type_name: str,
    class_name: str = "",
    connector_classes: Iterable[str] = DEFAULT_CONNECTOR_CLASSES,
) -> ComponentKind:
    """
    Classify a component from its type name and product class name.

    The order of the checks matters: a "ReducingTee" is a tee, and the
    connector product class wins over the generic fastener words so that
    exactly one product class is measured as a connector.
    """
    t = (type_name or "").strip().lower()
    c = (class_name or "").strip().lower()
    both = f"{c}|{t}"

    if "support" in both:
        return ComponentKind.SUPPORT
    if t == "pipe" or c == "pipe":
        return ComponentKind.PIPE
    if any(c == cc.strip().lower() for cc in connector_classes if cc.strip()):
        return ComponentKind.CONNECTOR
    if "cross" in both:
        return ComponentKind.CROSS
    if "tee" in both or "branch" in c:
        return ComponentKind.TEE
    if "reducer" in both:
        return ComponentKind.REDUCER
    if "elbow" in both or "bend" in both:
        return ComponentKind.ELBOW
    if "gasket" in both or "bolt" in both or "fastener" in both:
        return ComponentKind.FASTENER
    return ComponentKind.INLINE


@dataclass
class Component:
    """
    A piping component as seen by the takeoff engine.

    Attributes:
        id: Opaque component identifier (handle, GUID, row id...)
        type_name: Entity type ("Pipe", "Valve", "Tee", ...)
        ports: Ordered connection points
        properties: Case-insensitive property bag
        class_name: Product class name, used to tell connectors apart
    """
    id: str
    type_name: str
    ports: list[Port] = field(default_factory=list)
    properties: PropertyBag = field(default_factory=PropertyBag)
    class_name: str = ""

    def __post_init__(self):
        if not isinstance(self.properties, PropertyBag):
            self.properties = PropertyBag(self.properties)
        self.ports = [p if isinstance(p, Port) else Port(**p) for p in self.ports]

    @property
    def line_tag(self) -> str:
        return self.properties.get_string(*LINE_TAG_PROPS)

    def kind(self, connector_classes: Iterable[str] = DEFAULT_CONNECTOR_CLASSES) -> ComponentKind:
        return classify(self.type_name, self.class_name, connector_classes)

    def get_port(self, name: str) -> Port | None:
        """Get a port by case-insensitive name, or None."""
        for port in self.ports:
            if port.has_name(name):
                return port
        return None


# =============================================================================
# CONTRIBUTION
# =============================================================================


@dataclass(frozen=True)
class Contribution:
    """
    One installed-length contribution of a component to a target line.

    Attributes:
        line_tag: Target line identifier ("" when unroutable)
        length_model_units: Length in drawing/model units (converted later)
        target_nominal_diameter: Nominal diameter of the target pipe, if known
    """
    line_tag: str
    length_model_units: float
    target_nominal_diameter: float | None = None

    def __post_init__(self):
        object.__setattr__(self, "line_tag", (self.line_tag or "").strip())

