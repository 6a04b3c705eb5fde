"""
Identity keys and work categories.

An identity key names the billable unit a component belongs to: every
component with the same key shares one billable identifier. Keys are plain
"|"-separated strings so they persist as-is in the identifier store.

Key formats:
    PIPE|material|install|size
    ELBOW|desc|install|size|angle
    TEE|desc|install|RUNxBRANCH
    JOINT|desc|install|size          (flange, reducer, coupling)
    ASSET|item|install               (anything else with an item code)
    ASSET|desc|install|size          (no item code)
    ASSET|type|install|size          (no item code, no description)

A stored override property (QuantityID / QTY_ID) wins over all of them.
"""

from __future__ import annotations

from enum import IntEnum

from .components import (
    ANGLE_PROPS,
    DESCRIPTION_PROPS,
    INSTALL_TYPE_PROPS,
    ITEM_CODE_PROPS,
    MATERIAL_CODE_PROPS,
    QUANTITY_KEY_PROPS,
    SIZE_PROPS,
    Component,
    ComponentKind,
)
from .sizes import format_number, normalize_size

KEY_SEPARATOR = "|"
JOINT_WORDS = ("flange", "reducer", "coupling")


class WorkCategory(IntEnum):
    """Report row categories, in report order."""
    PIPE = 1
    REDUCER = 2
    TEE = 3
    CROSS = 4
    ELBOW = 5
    FLANGE = 6
    VALVE = 7
    COUPLING = 8
    INSTRUMENT = 9
    GASKET = 10
    BOLT = 11
    OTHER = 12

    @property
    def label(self) -> str:
        return self.name


_CATEGORY_WORDS = (
    (WorkCategory.FLANGE, ("flange",)),
    (WorkCategory.VALVE, ("valve",)),
    (WorkCategory.COUPLING, ("coupling", "union", "socket")),
    (WorkCategory.INSTRUMENT, ("instrument", "orifice", "gauge", "meter", "olet")),
    (WorkCategory.GASKET, ("gasket", "connector")),
    (WorkCategory.BOLT, ("bolt", "fastener", "stud")),
)

_KIND_CATEGORY = {
    ComponentKind.PIPE: WorkCategory.PIPE,
    ComponentKind.REDUCER: WorkCategory.REDUCER,
    ComponentKind.TEE: WorkCategory.TEE,
    ComponentKind.CROSS: WorkCategory.CROSS,
    ComponentKind.ELBOW: WorkCategory.ELBOW,
    ComponentKind.CONNECTOR: WorkCategory.GASKET,
}


def category_for(component: Component, kind: ComponentKind | None = None) -> WorkCategory:
    """Work category of a component, from its kind and then its type name."""
    kind = kind or component.kind()
    if kind in _KIND_CATEGORY:
        return _KIND_CATEGORY[kind]

    names = f"{component.class_name}|{component.type_name}".lower()
    for category, words in _CATEGORY_WORDS:
        if any(w in names for w in words):
            return category
    return WorkCategory.OTHER


def category_from_label(label: str) -> WorkCategory:
    """Parse a category label; unknown labels sort as OTHER."""
    try:
        return WorkCategory[label.strip().upper()]
    except KeyError:
        return WorkCategory.OTHER


def _join(*parts: str) -> str:
    return KEY_SEPARATOR.join(parts)


def _run_branch_label(
    component: Component,
    port_diameters: list[float | None] | None,
) -> str:
    """RUNxBRANCH for a tee: port diameters first, then the size string."""
    if port_diameters and len(port_diameters) >= 2:
        run, branch = port_diameters[0], port_diameters[1]
        if run is not None and branch is not None:
            return f"{format_number(run)}x{format_number(branch)}"

    raw = component.properties.get_string(*SIZE_PROPS).replace(" ", "")
    parts = raw.lower().split("x")
    if len(parts) >= 2:
        return f"{normalize_size(parts[0])}x{normalize_size(parts[1])}"
    return f"{normalize_size(raw)}x"


def build_identity_key(
    component: Component,
    kind: ComponentKind | None = None,
    port_diameters: list[float | None] | None = None,
) -> str:
    """
    Identity key of a component.

    Args:
        component: The component
        kind: Its kind, when already classified
        port_diameters: For tees, [run, branch, ...] diameters from the
            branch breakdown; the size string is used when absent

    Returns:
        The key string (never empty)
    """
    props = component.properties
    override = props.get_string(*QUANTITY_KEY_PROPS)
    if override:
        return override

    kind = kind or component.kind()
    install = props.get_string(*INSTALL_TYPE_PROPS)
    size = normalize_size(props.get_string(*SIZE_PROPS))
    desc = props.get_string(*DESCRIPTION_PROPS)

    if kind is ComponentKind.PIPE:
        return _join("PIPE", props.get_string(*MATERIAL_CODE_PROPS), install, size)

    if kind is ComponentKind.ELBOW:
        angle = normalize_size(props.get_string(*ANGLE_PROPS))
        return _join("ELBOW", desc, install, size, angle)

    if kind in (ComponentKind.TEE, ComponentKind.CROSS):
        return _join(kind.name, desc, install, _run_branch_label(component, port_diameters))

    type_lower = component.type_name.lower()
    if kind is ComponentKind.REDUCER or any(w in type_lower for w in JOINT_WORDS):
        return _join("JOINT", desc, install, size)

    item = props.get_string(*ITEM_CODE_PROPS)
    if item:
        return _join("ASSET", item, install)
    if desc:
        return _join("ASSET", desc, install, size)
    return _join("ASSET", component.type_name, install, size)
