"""
Component builders and the shared NETWORK used across the test modules.

NETWORK is a small plant section:

    P-1 ==[V-1]== P-2 ==[T-1]== P-3          line L-100, ND 150
                         |
                        P-4                  line L-200, ND 100

plus a separate flange/gasket/bolt island on line L-300 with no pipe, so
its lengths end up on a fallback row or in the exclusion log.
"""

from pipetakeoff.components import Component, Port
from pipetakeoff.provider import InMemoryPropertyProvider


def pipe_props(tag="L-1", nd=150.0, material="STPG370", install="WELD", **extra):
    props = {"LineNumberTag": tag, "MaterialCode": material, "InstallType": install}
    if nd is not None:
        props["NominalDiameter"] = nd
        props["Size"] = nd
    props.update(extra)
    return props


def make_pipe(cid, a, b, tag="L-1", nd=150.0, **extra) -> Component:
    """Pipe with named S1/S2 ports."""
    return Component(
        cid,
        "Pipe",
        ports=[Port(a, "S1"), Port(b, "S2")],
        properties=pipe_props(tag, nd, **extra),
    )


def make_fitting(cid, type_name, positions, class_name="", **props) -> Component:
    """Fitting with unnamed ports at the given positions."""
    return Component(
        cid,
        type_name,
        ports=[Port(p) for p in positions],
        properties=props,
        class_name=class_name,
    )


def provider_with(*components) -> InMemoryPropertyProvider:
    return InMemoryPropertyProvider(components)


NETWORK = {
    "components": [
        {
            "id": "P-1", "type": "Pipe",
            "ports": [{"name": "S1", "position": [0, 0, 0]}, {"name": "S2", "position": [3000, 0, 0]}],
            "properties": pipe_props("L-100", 150.0),
        },
        {
            "id": "V-1", "type": "GateValve",
            "ports": [[3000, 0, 0], [3300, 0, 0]],
            "properties": {"ItemCode": "GV-150", "InstallType": "WELD", "Size": "150"},
        },
        {
            "id": "P-2", "type": "Pipe",
            "ports": [{"name": "S1", "position": [3300, 0, 0]}, {"name": "S2", "position": [5000, 0, 0]}],
            "properties": pipe_props("L-100", 150.0),
        },
        {
            "id": "T-1", "type": "Tee",
            "ports": [[5000, 0, 0], [5300, 0, 0], [5150, 150, 0]],
            "properties": {"PartFamilyLongDesc": "TEE 150x100", "InstallType": "WELD", "Size": "150x100"},
        },
        {
            "id": "P-3", "type": "Pipe",
            "ports": [{"name": "S1", "position": [5300, 0, 0]}, {"name": "S2", "position": [8000, 0, 0]}],
            "properties": pipe_props("L-100", 150.0),
        },
        {
            "id": "P-4", "type": "Pipe",
            "ports": [{"name": "S1", "position": [5150, 150, 0]}, {"name": "S2", "position": [5150, 2150, 0]}],
            "properties": pipe_props("L-200", 100.0),
        },
        {
            "id": "F-1", "type": "Flange",
            "ports": [[0, 5000, 0], [0, 5100, 0]],
            "properties": {
                "LineNumberTag": "L-300", "MaterialCode": "SUS304", "InstallType": "WELD",
                "Size": "80", "PartFamilyLongDesc": "WN FLANGE",
            },
        },
        {
            "id": "G-1", "type": "Gasket", "class": "P3dConnector",
            "ports": [{"name": "S1", "position": [0, 5100, 0]}, {"name": "S2", "position": [0, 5103, 0]}],
            "properties": {"ItemCode": "GK-80"},
        },
        {
            "id": "B-1", "type": "BoltSet",
            "properties": {"ItemCode": "BS-80"},
        },
    ],
    "connections": [
        ["P-1", "S2", "V-1", 0],
        ["V-1", 1, "P-2", "S1"],
        ["P-2", "S2", "T-1", 0],
        {"from": "T-1", "from_port": 1, "to": "P-3", "to_port": "S1"},
        {"from": "T-1", "from_port": 2, "to": "P-4", "to_port": "S1"},
    ],
    "bundles": [["F-1", "G-1", "B-1"]],
}
