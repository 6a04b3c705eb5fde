"""
Aggregation Engine

Folds per-component contributions into two pivot tables:

    lengths  (billable id, category, "m")   x  line column  -> meters
    counts   (billable id, category, "pcs") x  line column  -> pieces

================================================================================
ROUTING
================================================================================

Pipe contributions land on the pipe's own row. Fitting contributions are
routed to a target pipe row through the PipeIndex: pipes carrying the
contribution's line tag and, when known, its nominal diameter. Several
candidates are broken deterministically by material code, then billable id,
then component id.

When no target pipe is found the contribution is recorded in the
ExclusionLog with a reason code. If the component has a material code a
synthetic row FALLBACK|material|nd|install still receives the length and the
exclusion is marked fallback=True; otherwise the length is dropped.

Reason codes:
    MissingPipeKey(LineTag)      contribution has no line tag
    MissingPipeKey(InstallType)  the only pipes on the line lack an install type
    MissingND                    diameter unknown and the line has several sizes
    NoTargetPipe                 no pipe with that line tag / diameter

================================================================================
ORDERING
================================================================================

Rows: work category order, then natural order of billable id, then unit.
Columns: observed line tags in natural order, then the blank column, then
the total column. Natural order compares digit runs by value, so
"STW 500" comes before "STW 1000".
================================================================================
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .components import INSTALL_TYPE_PROPS, MATERIAL_CODE_PROPS, Component, Contribution
from .keys import WorkCategory, category_from_label
from .sizes import SIZE_TOLERANCE, format_number

BLANK_COLUMN = "(blank)"
TOTAL_COLUMN = "TOTAL"
LENGTH_UNIT = "m"
COUNT_UNIT = "pcs"
DEFAULT_UNIT_TO_METER = 0.001

MISSING_LINE_TAG = "MissingPipeKey(LineTag)"
MISSING_INSTALL_TYPE = "MissingPipeKey(InstallType)"
MISSING_ND = "MissingND"
NO_TARGET_PIPE = "NoTargetPipe"

_DIGITS = re.compile(r"(\d+)")


def natural_sort_key(text: object) -> tuple:
    """
    Sort key comparing digit runs by magnitude.

    Examples:
        >>> sorted(["STW 1000", "STW 500"], key=natural_sort_key)
        ['STW 500', 'STW 1000']
    """
    s = str(text)
    parts = _DIGITS.split(s.lower())
    # Even positions are text, odd positions are digit runs. The raw string
    # only breaks ties between equal part tuples.
    return tuple(int(p) if i % 2 else p for i, p in enumerate(parts)), s


# =============================================================================
# PIVOT
# =============================================================================


@dataclass(frozen=True)
class AggregationKey:
    """Row key of a pivot: one billable unit in one category and unit."""
    billable_id: str
    category: str
    unit: str

    def sort_key(self) -> tuple:
        return (
            category_from_label(self.category),
            natural_sort_key(self.billable_id),
            self.unit,
        )


class Pivot:
    """
    Accumulating pivot table: row key -> column -> running sum.

    The row total is accumulated alongside the cells, so it can be checked
    against the sum of the columns.

    Usage:
        pivot = Pivot()
        key = AggregationKey("03", "PIPE", "m")
        pivot.add(key, "L-100", 1.5)
        pivot.add(key, "", 0.5)          # -> blank column
        pivot.row_total(key)             # 2.0
    """

    def __init__(
        self,
        blank_column: str = BLANK_COLUMN,
        total_column: str = TOTAL_COLUMN,
        excluded_columns: Iterable[str] = (),
    ):
        self.blank_column = blank_column
        self.total_column = total_column
        self.excluded_columns = {c.strip() for c in excluded_columns}
        self._cells: dict[AggregationKey, dict[str, float]] = {}
        self._totals: dict[AggregationKey, float] = {}
        self._observed: set[str] = set()

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def column_for(self, line_tag: str | None) -> str:
        """Column of a line tag; empty or excluded tags map to the blank column."""
        tag = (line_tag or "").strip()
        if not tag or tag in self.excluded_columns:
            return self.blank_column
        return tag

    def add(self, key: AggregationKey, column: str | None, value: float) -> str:
        """Accumulate value into (key, column). Returns the resolved column."""
        col = self.column_for(column)
        row = self._cells.setdefault(key, {})
        row[col] = row.get(col, 0.0) + value
        self._totals[key] = self._totals.get(key, 0.0) + value
        if col != self.blank_column:
            self._observed.add(col)
        return col

    def add_count(self, key: AggregationKey, column: str | None, count: int = 1) -> str:
        """Count-only variant of add() for discrete parts."""
        return self.add(key, column, count)

    def keys(self) -> list[AggregationKey]:
        """Row keys in report order."""
        return sorted(self._cells, key=AggregationKey.sort_key)

    def columns(self) -> list[str]:
        """Observed columns in natural order, then blank, then total."""
        return [*sorted(self._observed, key=natural_sort_key), self.blank_column, self.total_column]

    def value(self, key: AggregationKey, column: str) -> float:
        if column == self.total_column:
            return self.row_total(key)
        return self._cells.get(key, {}).get(column, 0.0)

    def row_total(self, key: AggregationKey) -> float:
        return self._totals.get(key, 0.0)

    def column_total(self, column: str) -> float:
        return sum(self.value(k, column) for k in self._cells)

    def to_rows(self) -> list[dict[str, object]]:
        """Report rows: id, category, unit, then one entry per column."""
        rows = []
        for key in self.keys():
            row: dict[str, object] = {
                "id": key.billable_id,
                "category": key.category,
                "unit": key.unit,
            }
            for column in self.columns():
                row[column] = self.value(key, column)
            rows.append(row)
        return rows


# =============================================================================
# EXCLUSIONS
# =============================================================================


@dataclass(frozen=True)
class Exclusion:
    """A contribution that could not be routed to a pipe row."""
    component_id: str
    reason: str
    line_tag: str = ""
    length_model_units: float = 0.0
    nominal_diameter: float | None = None
    fallback_key: str | None = None

    @property
    def fallback(self) -> bool:
        return self.fallback_key is not None


class ExclusionLog:
    """Audit trail of unrouted contributions."""

    def __init__(self, logger: logging.Logger | None = None):
        self.log = logger or logging.getLogger(__name__)
        self._entries: list[Exclusion] = []

    def __iter__(self) -> Iterator[Exclusion]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, exclusion: Exclusion) -> Exclusion:
        self._entries.append(exclusion)
        if exclusion.fallback:
            self.log.info(
                "%s: %s, aggregated under %s",
                exclusion.component_id, exclusion.reason, exclusion.fallback_key,
            )
        else:
            self.log.warning(
                "%s: %s, %.3f model units dropped",
                exclusion.component_id, exclusion.reason, exclusion.length_model_units,
            )
        return exclusion

    def by_reason(self) -> Counter:
        return Counter(e.reason for e in self._entries)

    def for_component(self, component_id: str) -> list[Exclusion]:
        return [e for e in self._entries if e.component_id == component_id]


# =============================================================================
# PIPE INDEX
# =============================================================================


@dataclass(frozen=True)
class PipeEntry:
    """A pipe that fitting contributions can be routed to."""
    component_id: str
    line_tag: str
    nominal_diameter: float | None
    material_code: str
    install_type: str
    billable_id: str
    billable_number: int = 0

    def tie_break_key(self) -> tuple:
        return (self.material_code, self.billable_number, natural_sort_key(self.component_id))


class PipeIndex:
    """Pipes by line tag, for target-pipe resolution."""

    def __init__(self):
        self._by_tag: dict[str, list[PipeEntry]] = {}

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_tag.values())

    def register(self, entry: PipeEntry) -> None:
        if not entry.line_tag:
            return
        self._by_tag.setdefault(entry.line_tag, []).append(entry)

    def candidates(self, line_tag: str) -> list[PipeEntry]:
        return list(self._by_tag.get(line_tag, ()))

    def resolve(self, line_tag: str, nominal_diameter: float | None) -> tuple[PipeEntry | None, str | None]:
        """
        Target pipe for a line tag and diameter.

        Returns:
            (entry, None) on success, (None, reason code) otherwise
        """
        if not line_tag:
            return (None, MISSING_LINE_TAG)

        candidates = self.candidates(line_tag)
        if not candidates:
            return (None, NO_TARGET_PIPE)

        if nominal_diameter is not None:
            candidates = [
                c for c in candidates
                if c.nominal_diameter is not None
                and abs(c.nominal_diameter - nominal_diameter) < SIZE_TOLERANCE
            ]
            if not candidates:
                return (None, NO_TARGET_PIPE)
        elif len({c.nominal_diameter for c in candidates}) > 1:
            return (None, MISSING_ND)

        complete = [c for c in candidates if c.install_type]
        if not complete:
            return (None, MISSING_INSTALL_TYPE)

        return (min(complete, key=PipeEntry.tie_break_key), None)


# =============================================================================
# ENGINE
# =============================================================================


@dataclass(frozen=True)
class DetailRow:
    """
    One contribution as it was aggregated.

    row_id is the billable id (or fallback key) of the row that received the
    length, None when it was dropped.
    """
    component_id: str
    contribution: Contribution
    row_id: str | None
    column: str


def fallback_key(component: Component, nominal_diameter: float | None) -> str | None:
    """FALLBACK|material|nd|install, or None without a material code."""
    material = component.properties.get_string(*MATERIAL_CODE_PROPS)
    if not material:
        return None
    nd = format_number(nominal_diameter) if nominal_diameter is not None else ""
    install = component.properties.get_string(*INSTALL_TYPE_PROPS)
    return f"FALLBACK|{material}|{nd}|{install}"


class AggregationEngine:
    """
    Length and count aggregation for one takeoff run.

    Usage:
        engine = AggregationEngine(unit_to_meter=0.001)
        engine.register_pipe(pipe, "01", 1, nominal_diameter=150.0)
        engine.add_contributions(pipe, WorkCategory.PIPE, "01", contributions)
        engine.add_part_count(valve, WorkCategory.VALVE, "04")
    """

    def __init__(
        self,
        unit_to_meter: float = DEFAULT_UNIT_TO_METER,
        blank_column: str = BLANK_COLUMN,
        total_column: str = TOTAL_COLUMN,
        excluded_columns: Iterable[str] = (),
        logger: logging.Logger | None = None,
    ):
        self.unit_to_meter = unit_to_meter
        self.log = logger or logging.getLogger(__name__)
        self.lengths = Pivot(blank_column, total_column, excluded_columns)
        self.counts = Pivot(blank_column, total_column, excluded_columns)
        self.pipes = PipeIndex()
        self.exclusions = ExclusionLog(self.log)

    def register_pipe(
        self,
        component: Component,
        billable_id: str,
        billable_number: int = 0,
        nominal_diameter: float | None = None,
    ) -> PipeEntry:
        entry = PipeEntry(
            component_id=component.id,
            line_tag=component.line_tag,
            nominal_diameter=nominal_diameter,
            material_code=component.properties.get_string(*MATERIAL_CODE_PROPS),
            install_type=component.properties.get_string(*INSTALL_TYPE_PROPS),
            billable_id=billable_id,
            billable_number=billable_number,
        )
        self.pipes.register(entry)
        return entry

    def add_contributions(
        self,
        component: Component,
        category: WorkCategory,
        billable_id: str,
        contributions: Iterable[Contribution],
    ) -> list[DetailRow]:
        """
        Aggregate the length contributions of one component.

        Pipe lengths go to the pipe's own row; fitting lengths are routed to
        their target pipe row, or to a fallback row, or dropped.
        """
        rows = []
        for c in contributions:
            meters = c.length_model_units * self.unit_to_meter

            if category is WorkCategory.PIPE:
                key = AggregationKey(billable_id, WorkCategory.PIPE.label, LENGTH_UNIT)
                column = self.lengths.add(key, c.line_tag, meters)
                rows.append(DetailRow(component.id, c, billable_id, column))
                continue

            target, reason = self.pipes.resolve(c.line_tag, c.target_nominal_diameter)
            if target is not None:
                key = AggregationKey(target.billable_id, WorkCategory.PIPE.label, LENGTH_UNIT)
                column = self.lengths.add(key, c.line_tag, meters)
                rows.append(DetailRow(component.id, c, target.billable_id, column))
                continue

            fb = fallback_key(component, c.target_nominal_diameter)
            self.exclusions.record(Exclusion(
                component_id=component.id,
                reason=reason,
                line_tag=c.line_tag,
                length_model_units=c.length_model_units,
                nominal_diameter=c.target_nominal_diameter,
                fallback_key=fb,
            ))
            if fb is not None:
                key = AggregationKey(fb, WorkCategory.PIPE.label, LENGTH_UNIT)
                column = self.lengths.add(key, c.line_tag, meters)
                rows.append(DetailRow(component.id, c, fb, column))
            else:
                rows.append(DetailRow(component.id, c, None, self.lengths.column_for(c.line_tag)))
        return rows

    def add_part_count(
        self,
        component: Component,
        category: WorkCategory,
        billable_id: str,
        count: int = 1,
    ) -> str:
        """Count one discrete part under its own billable id. Returns the column."""
        key = AggregationKey(billable_id, category.label, COUNT_UNIT)
        return self.counts.add_count(key, component.line_tag, count)
