"""
YAML network loader.

Reads a piping network description into an InMemoryPropertyProvider:

    components:
      - id: P-1
        type: Pipe
        ports:
          - {name: S1, position: [0, 0, 0]}
          - {name: S2, position: [3000, 0, 0]}
        properties:
          LineNumberTag: L-100
          MaterialCode: STPG370
          Size: 150
      - id: V-1
        type: Valve
        ports: [[3000, 0, 0], [3300, 0, 0]]     # unnamed ports
    connections:
      - [P-1, S2, V-1, 0]                       # component, port, component, port
      - {from: V-1, from_port: 1, to: P-2, to_port: S1}
    bundles:
      - [V-1, G-1, B-1]

Ports are referenced by name or by index. Any structural problem raises
ValueError naming the offending entry.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .components import Component, Port
from .provider import InMemoryPropertyProvider


def _parse_port(raw: Any, where: str) -> Port:
    if isinstance(raw, dict):
        if "position" not in raw:
            raise ValueError(f"{where}: port needs a position")
        position, name = raw["position"], raw.get("name")
    else:
        position, name = raw, None
    if not isinstance(position, (list, tuple)) or len(position) != 3:
        raise ValueError(f"{where}: port position must be [x, y, z], got {position!r}")
    try:
        return Port(position, str(name) if name is not None else None)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{where}: bad port position {position!r}") from e


def _parse_component(raw: Any, index: int) -> Component:
    where = f"components[{index}]"
    if not isinstance(raw, dict):
        raise ValueError(f"{where}: expected a mapping")
    if "id" not in raw or "type" not in raw:
        raise ValueError(f"{where}: 'id' and 'type' are required")

    properties = raw.get("properties") or {}
    if not isinstance(properties, dict):
        raise ValueError(f"{where}: properties must be a mapping")

    ports = [_parse_port(p, f"{where}.ports[{i}]") for i, p in enumerate(raw.get("ports") or [])]
    return Component(
        id=str(raw["id"]),
        type_name=str(raw["type"]),
        class_name=str(raw.get("class") or ""),
        ports=ports,
        properties={str(k): v for k, v in properties.items()},
    )


def _port_ref(value: Any) -> str | int:
    return value if isinstance(value, int) else str(value)


def _parse_connection(raw: Any, index: int) -> tuple[str, str | int, str, str | int]:
    where = f"connections[{index}]"
    if isinstance(raw, dict):
        try:
            return (str(raw["from"]), _port_ref(raw["from_port"]), str(raw["to"]), _port_ref(raw["to_port"]))
        except KeyError as e:
            raise ValueError(f"{where}: missing {e.args[0]!r}") from e
    if isinstance(raw, (list, tuple)) and len(raw) == 4:
        return (str(raw[0]), _port_ref(raw[1]), str(raw[2]), _port_ref(raw[3]))
    raise ValueError(f"{where}: expected [a, a_port, b, b_port] or a from/to mapping")


def load_network(data: dict[str, Any]) -> InMemoryPropertyProvider:
    """Build a provider from an already parsed network mapping."""
    if not isinstance(data, dict):
        raise ValueError("Network description must be a mapping")

    provider = InMemoryPropertyProvider()
    for i, raw in enumerate(data.get("components") or []):
        provider.add(_parse_component(raw, i))

    for i, raw in enumerate(data.get("connections") or []):
        a_id, a_port, b_id, b_port = _parse_connection(raw, i)
        try:
            provider.connect(a_id, a_port, b_id, b_port)
        except ValueError as e:
            raise ValueError(f"connections[{i}]: {e}") from e

    for i, raw in enumerate(data.get("bundles") or []):
        if not isinstance(raw, (list, tuple)):
            raise ValueError(f"bundles[{i}]: expected a list of component ids")
        try:
            provider.add_bundle(str(cid) for cid in raw)
        except ValueError as e:
            raise ValueError(f"bundles[{i}]: {e}") from e

    return provider


def load_network_yaml(yaml_path: str | Path) -> InMemoryPropertyProvider:
    """Load a network description from a YAML file."""
    with open(yaml_path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed network file {yaml_path}: {e}") from e
    return load_network(data or {})
