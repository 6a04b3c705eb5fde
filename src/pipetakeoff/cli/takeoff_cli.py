"""
CLI for pipetakeoff.

Commands:
- run: Run a takeoff over a YAML network and print the pivots
- groups: Print the connectivity group label of every component
- clear-ids: Reset a stored identifier map

Usage:
    pipetakeoff run network.yaml --ids ids.yaml
    pipetakeoff run network.yaml --config takeoff.yaml --format yaml
    pipetakeoff groups network.yaml
    pipetakeoff clear-ids ids.yaml --yes
"""

import logging
from pathlib import Path

import click
import yaml

from ..aggregation import Pivot
from ..config import TakeoffConfig
from ..grouping import ConnectivityGrouper, TraversalLimitError
from ..identifiers import IdentifierAllocator, IdentifierState, IdentifierStore
from ..network_loader import load_network_yaml
from ..takeoff import TakeoffResult, TakeoffRunner


def _load_config(config_path: Path | None) -> TakeoffConfig:
    if config_path is None:
        return TakeoffConfig()
    try:
        return TakeoffConfig.from_yaml(config_path)
    except (OSError, ValueError, TypeError) as e:
        click.echo(f"Error loading config: {e}", err=True)
        raise SystemExit(1) from None


def _load_network(network_file: Path):
    try:
        return load_network_yaml(network_file)
    except (OSError, ValueError) as e:
        click.echo(f"Error loading network: {e}", err=True)
        raise SystemExit(1) from None


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", count=True, help="Log more (-v info, -vv debug).")
def cli(verbose: int):
    """pipetakeoff - piping quantity takeoff."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@click.argument("network_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Takeoff configuration YAML.",
)
@click.option(
    "--ids", "ids_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Identifier store YAML (overrides id_store from the config).",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["table", "yaml"]),
    default="table",
    help="Output format (default: table).",
)
@click.option("--details", is_flag=True, help="Also print one row per contribution.")
def run(
    network_file: Path,
    config_path: Path | None,
    ids_path: Path | None,
    output_format: str,
    details: bool,
):
    """
    Run a quantity takeoff over NETWORK_FILE.

    Identifiers are loaded from the store before the run and saved after
    it, so billable ids stay stable between runs.
    """
    config = _load_config(config_path)
    provider = _load_network(network_file)

    store_path = ids_path or (Path(config.id_store) if config.id_store else None)
    try:
        state = IdentifierStore.load(store_path) if store_path else IdentifierState()
    except ValueError as e:
        click.echo(f"Error loading identifiers: {e}", err=True)
        raise SystemExit(1) from None

    allocator = IdentifierAllocator(state)
    try:
        result = TakeoffRunner(provider, config=config, allocator=allocator).run()
    except TraversalLimitError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None

    if output_format == "yaml":
        click.echo(yaml.dump(_result_to_dict(result, details), default_flow_style=False, sort_keys=False))
    else:
        _echo_result(result, details)

    if result.aborted_by is not None:
        click.echo(f"\nTakeoff stopped: {result.aborted_by}", err=True)
        raise SystemExit(2)

    if store_path:
        IdentifierStore.save(store_path, allocator.state)
        click.echo(f"\nIdentifiers saved to: {store_path}")


@cli.command()
@click.argument("network_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Takeoff configuration YAML.",
)
def groups(network_file: Path, config_path: Path | None):
    """Print the connectivity group label of every component."""
    config = _load_config(config_path)
    provider = _load_network(network_file)

    grouper = ConnectivityGrouper(provider, max_traversal_nodes=config.max_traversal_nodes)
    try:
        labels = grouper.group_components(provider.component_ids())
    except TraversalLimitError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from None

    by_label: dict[str, list[str]] = {}
    for cid, label in labels.items():
        by_label.setdefault(label, []).append(cid)
    for label in sorted(by_label):
        click.echo(f"{label}: {', '.join(by_label[label])}")


@cli.command("clear-ids")
@click.argument("ids_path", type=click.Path(path_type=Path))
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def clear_ids(ids_path: Path, yes: bool):
    """Reset the identifier store at IDS_PATH; numbering restarts at 1."""
    try:
        state = IdentifierStore.load(ids_path)
    except ValueError as e:
        click.echo(f"Error loading identifiers: {e}", err=True)
        raise SystemExit(1) from None

    if not yes and not click.confirm(f"Clear {len(state.map)} identifiers in {ids_path}?"):
        click.echo("Aborted.")
        return

    allocator = IdentifierAllocator(state)
    allocator.clear_all()
    IdentifierStore.save(ids_path, allocator.state)
    click.echo(f"Cleared identifiers in: {ids_path}")


# =============================================================================
# OUTPUT
# =============================================================================


def _format_value(value: float) -> str:
    if value == 0:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.3f}"


def _echo_pivot(title: str, pivot: Pivot) -> None:
    click.echo(f"\n{title}")
    click.echo("-" * 50)
    if not len(pivot):
        click.echo("(no rows)")
        return

    columns = pivot.columns()
    header = ["ID", "CATEGORY", "UNIT", *columns]
    table = [header]
    for key in pivot.keys():
        table.append([
            key.billable_id,
            key.category,
            key.unit,
            *(_format_value(pivot.value(key, c)) for c in columns),
        ])

    widths = [max(len(str(row[i])) for row in table) for i in range(len(header))]
    for row in table:
        click.echo("  ".join(str(cell).ljust(w) for cell, w in zip(row, widths)).rstrip())


def _echo_result(result: TakeoffResult, details: bool) -> None:
    _echo_pivot("Install length", result.lengths)
    _echo_pivot("Part count", result.counts)

    if result.exclusions:
        click.echo(f"\nExclusions: {len(result.exclusions)}")
        for reason, count in sorted(result.exclusions.by_reason().items()):
            click.echo(f"  - {reason}: {count}")

    if details:
        click.echo("\nDetails:")
        for row in result.details:
            c = row.contribution
            nd = "" if c.target_nominal_diameter is None else f"{c.target_nominal_diameter:g}"
            click.echo(
                f"  {row.component_id}: {c.length_model_units:.3f} -> "
                f"{row.row_id or '-'} [{row.column}] ND {nd}"
            )


def _result_to_dict(result: TakeoffResult, details: bool) -> dict:
    data = {
        "lengths": result.lengths.to_rows(),
        "counts": result.counts.to_rows(),
        "exclusions": [
            {
                "component": e.component_id,
                "reason": e.reason,
                "line_tag": e.line_tag,
                "length": e.length_model_units,
                "fallback": e.fallback_key,
            }
            for e in result.exclusions
        ],
        "groups": dict(result.groups),
        "ids": dict(result.billable_ids),
    }
    if details:
        data["details"] = [
            {
                "component": row.component_id,
                "line_tag": row.contribution.line_tag,
                "length": row.contribution.length_model_units,
                "nd": row.contribution.target_nominal_diameter,
                "row": row.row_id,
                "column": row.column,
            }
            for row in result.details
        ]
    return data
