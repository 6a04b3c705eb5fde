"""
Takeoff configuration.

Settings for one takeoff run, loadable from YAML:

    unit_to_meter: 0.001          # model units -> meters (mm drawings)
    position_epsilon: 0.01        # port coincidence distance, model units
    connector_classes: [P3dConnector]
    excluded_columns: ["N/A", "-"]
    blank_column: "(blank)"
    total_column: "TOTAL"
    max_traversal_nodes: 100000
    id_store: ids.yaml            # relative to the config file
    prune_stale_ids: false
"""

import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .aggregation import BLANK_COLUMN, DEFAULT_UNIT_TO_METER, TOTAL_COLUMN
from .components import DEFAULT_CONNECTOR_CLASSES
from .connectivity import DEFAULT_POSITION_EPSILON
from .grouping import DEFAULT_MAX_TRAVERSAL_NODES


@dataclass
class TakeoffConfig:
    """
    Settings for a takeoff run.

    Attributes:
        unit_to_meter: Factor converting model units to meters
        position_epsilon: Distance below which two port positions coincide
        connector_classes: Product classes measured as connectors
        excluded_columns: Line tags reported under the blank column
        blank_column: Label of the catch-all column
        total_column: Label of the row total column
        max_traversal_nodes: Cap on the connectivity traversal
        id_store: Path of the identifier store YAML, if any
        prune_stale_ids: Drop stored keys not seen in this run
    """

    unit_to_meter: float = DEFAULT_UNIT_TO_METER
    position_epsilon: float = DEFAULT_POSITION_EPSILON
    connector_classes: list[str] = field(default_factory=lambda: list(DEFAULT_CONNECTOR_CLASSES))
    excluded_columns: list[str] = field(default_factory=list)
    blank_column: str = BLANK_COLUMN
    total_column: str = TOTAL_COLUMN
    max_traversal_nodes: int = DEFAULT_MAX_TRAVERSAL_NODES
    id_store: str | None = None
    prune_stale_ids: bool = False

    def __post_init__(self):
        self.unit_to_meter = float(self.unit_to_meter)
        self.position_epsilon = float(self.position_epsilon)
        self.max_traversal_nodes = int(self.max_traversal_nodes)

        # A single string from YAML is one entry, not a list of characters
        if isinstance(self.connector_classes, str):
            self.connector_classes = [self.connector_classes]
        if isinstance(self.excluded_columns, str):
            self.excluded_columns = [self.excluded_columns]
        self.connector_classes = [str(c).strip() for c in self.connector_classes if str(c).strip()]
        self.excluded_columns = [str(c).strip() for c in self.excluded_columns]

        if self.unit_to_meter <= 0:
            raise ValueError(f"unit_to_meter must be positive, got {self.unit_to_meter}")
        if self.position_epsilon <= 0:
            raise ValueError(f"position_epsilon must be positive, got {self.position_epsilon}")
        if self.max_traversal_nodes < 1:
            raise ValueError(f"max_traversal_nodes must be at least 1, got {self.max_traversal_nodes}")
        if self.blank_column == self.total_column:
            raise ValueError(f"blank_column and total_column must differ ('{self.blank_column}')")

        if not self.connector_classes:
            warnings.warn(
                "No connector classes configured; gaskets will be counted but never measured",
                UserWarning,
                stacklevel=2,
            )
        if self.blank_column in self.excluded_columns:
            warnings.warn(
                f"Excluded column '{self.blank_column}' is the blank column itself",
                UserWarning,
                stacklevel=2,
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TakeoffConfig":
        """Build from a mapping; unknown keys raise ValueError."""
        data = dict(data or {})
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "TakeoffConfig":
        """
        Load a configuration from a YAML file.

        A relative id_store is resolved against the config file's directory.
        """
        yaml_path = Path(yaml_path)
        with open(yaml_path) as f:
            data = yaml.safe_load(f)
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"Config {yaml_path} must be a mapping")
        config = cls.from_dict(data)
        if config.id_store and not Path(config.id_store).is_absolute():
            config.id_store = str(yaml_path.parent / config.id_store)
        return config

    def to_yaml(self, yaml_path: str | Path) -> None:
        """Save the configuration to a YAML file."""
        with open(yaml_path, "w") as f:
            yaml.dump(self._to_dict(), f, default_flow_style=False, sort_keys=False)

    def _to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        if result["id_store"] is None:
            del result["id_store"]
        return result
