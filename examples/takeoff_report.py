#!/usr/bin/env python3
"""
Takeoff Report Example

Runs a quantity takeoff over examples/data/network.yaml:
- install length per billable id and line
- part counts for fittings, valves, gaskets and bolts
- exclusions with their reason codes
- connectivity groups

Billable ids are kept in the id_store named by examples/data/takeoff.yaml,
so running the script twice prints the same numbers.
"""

import logging
from pathlib import Path

from pipetakeoff import (
    IdentifierAllocator,
    IdentifierStore,
    TakeoffConfig,
    TakeoffRunner,
    load_network_yaml,
)


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    data_dir = Path(__file__).parent / "data"
    print("Takeoff Report Example")
    print("=" * 50)

    config = TakeoffConfig.from_yaml(data_dir / "takeoff.yaml")
    ids_path = Path(config.id_store)
    provider = load_network_yaml(data_dir / "network.yaml")
    allocator = IdentifierAllocator(IdentifierStore.load(ids_path))

    result = TakeoffRunner(provider, config=config, allocator=allocator).run()

    print("\nInstall length (m):")
    columns = result.lengths.columns()
    for key in result.lengths.keys():
        cells = ", ".join(
            f"{c}={result.lengths.value(key, c):.3f}" for c in columns if result.lengths.value(key, c)
        )
        print(f"  {key.billable_id:<28} {cells}")

    print("\nPart count:")
    for key in result.counts.keys():
        print(f"  {key.billable_id:<4} {key.category:<10} {result.counts.row_total(key):g} {key.unit}")

    print(f"\nExclusions: {len(result.exclusions)}")
    for e in result.exclusions:
        where = e.fallback_key or "dropped"
        print(f"  {e.component_id}: {e.reason} ({where})")

    print("\nGroups:")
    for cid, label in sorted(result.groups.items(), key=lambda item: item[1]):
        print(f"  {label}: {cid}")

    if not result.completed:
        print(f"\nTakeoff stopped: {result.aborted_by}")
        return

    IdentifierStore.save(ids_path, allocator.state)
    print(f"\nIdentifiers saved to: {ids_path}")


if __name__ == "__main__":
    main()
