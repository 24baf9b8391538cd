"""
Command line entry point.

Usage example:
  python -m degsea run config.yaml deseq2_results.csv --output-dir results/
"""

import argparse
import logging
import sys

from .config import PipelineConfig
from .errors import ConfigurationError
from .pipeline import EnrichmentPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="degsea",
        description="Rank DE results and run GSEA per gene-set collection",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the full pipeline for one DE table")
    run.add_argument("config", help="YAML configuration file")
    run.add_argument("de_table", help="DE results (CSV, TSV or Excel)")
    run.add_argument("--output-dir", default=None, help="Override config output_dir")
    run.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = PipelineConfig.from_yaml(args.config)
        result = EnrichmentPipeline(config).run(args.de_table, output_dir=args.output_dir)
    except (ConfigurationError, FileNotFoundError) as e:
        logging.error(str(e))
        return 2

    for name, run in result.batch.runs.items():
        n_sig = len(result.significant.get(name, ()))
        logging.info(f"{name}: {run.status}, {len(run.results)} tested, {n_sig} significant")
    for name, path in result.outputs.items():
        logging.info(f"Wrote {name}: {path}")

    return 0 if result.status == 'ok' else 1


if __name__ == "__main__":
    sys.exit(main())
