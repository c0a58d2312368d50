"""inspect_plan.py — explore a processing plan without generating scripts.

Run with:
    python examples/inspect_plan.py --config examples/silo.yaml

Prints the processors of each dataset in dependency order and the formats
each one reads and writes. Nothing is written to disk.
"""

import argparse

import pandas as pd

from climproc.config import ProcessingConfig
from climproc.datasets import ClimateDataset
from climproc.errors import PlanError
from climproc.sorter import build_producer_map, sort_by_dependencies


def main(config_path: str) -> None:
    cfg = ProcessingConfig.from_yaml(config_path)

    for spec in cfg.datasets:
        dataset = ClimateDataset.from_spec(spec, cfg)
        processors = dataset.get_processors()

        # ------------------------------------------------------------------
        # 1. Who produces what
        # ------------------------------------------------------------------
        print("=" * 60)
        print(f"PRODUCERS: {dataset.name}")
        print("=" * 60)
        try:
            producers = build_producer_map(processors)
        except PlanError as exc:
            print(f"  {exc}")
            print()
            continue
        print(
            pd.DataFrame(
                [{"format": str(fmt), "processor": repr(p)} for fmt, p in producers.items()]
            ).to_string(index=False)
        )
        print()

        # ------------------------------------------------------------------
        # 2. Processing order
        # ------------------------------------------------------------------
        print("=" * 60)
        print(f"ORDER: {dataset.name}")
        print("=" * 60)
        try:
            ordered = sort_by_dependencies(processors)
        except PlanError as exc:
            print(f"  {exc}")
            print()
            continue
        for position, processor in enumerate(ordered, start=1):
            deps = ", ".join(sorted(str(d) for d in processor.dependencies)) or "-"
            print(f"  {position:>2}. {processor!r:<45} <- {deps}")
        print()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--config", required=True, help="Path to YAML config file")
    args = parser.parse_args()
    main(args.config)
