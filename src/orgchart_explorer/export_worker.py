#!/usr/bin/env python3
"""
Org chart export worker - load departments and write them to CSV.

Loads root pages 1..N (round-robin across the configured endpoints), expands
the requested departments, then exports either the visible tree or every
loaded node.

Usage:
    orgchart-export --pages 2 --expand 42 --expand 57 --title "Departments"
    orgchart-export --pages 1 --root-id 42 --all-loaded --output-dir exports/

Configuration comes from ORGCHART_* environment variables (see config.py).
"""

import argparse
import asyncio
import logging
import sys

from .config import ServerConfig, setup_logging
from .explorer import OrgChartExplorer
from .models import OrgChartError
from .tree import CsvExporter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export the department tree to CSV")
    parser.add_argument("--pages", type=int, default=1, help="Number of root pages to load")
    parser.add_argument("--expand", action="append", default=[], metavar="ID",
                        help="Department to expand before export (repeatable, applied in order)")
    parser.add_argument("--root-id", help="Export only this department and its subtree")
    parser.add_argument("--all-loaded", action="store_true",
                        help="Include every loaded node, not only the visible ones")
    parser.add_argument("--title", default="departments", help="Base name of the CSV file")
    parser.add_argument("--output-dir", help="Directory for the CSV file (default: ORGCHART_EXPORT_DIR)")
    return parser


async def run(args: argparse.Namespace, explorer: OrgChartExplorer, output_dir: str) -> str:
    """Load, expand and export; returns the written file path."""
    for page in range(1, args.pages + 1):
        nodes = await explorer.load_root_page(page)
        logger.info(f"Loaded root page {page}: {len(nodes)} node(s)")

    for node_id in args.expand:
        state = await explorer.expand(node_id)
        logger.info(f"Expanded {node_id}: {state.value}")

    headers, rows = explorer.export_rows(args.root_id, visible_only=not args.all_loaded)
    path = CsvExporter(output_dir).write(args.title, headers, rows)
    return str(path)


async def main(argv: list[str] | None = None) -> int:
    """Main worker entry point."""
    args = build_parser().parse_args(argv)
    if args.pages < 0:
        logger.error("--pages must be >= 0")
        return 2

    config = ServerConfig()
    setup_logging(config.log_level)

    try:
        api_config = config.get_api_config()
    except OrgChartError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    async with OrgChartExplorer.from_config(api_config) as explorer:
        try:
            path = await run(args, explorer, args.output_dir or config.export_dir)
        except OrgChartError as e:
            logger.error(f"Export failed: {e}")
            return 1

    logger.info(f"Export written to {path}")
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.warning("Export interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    cli()
