#!/usr/bin/env python3
"""
Command-line interface for the stacked waterfall layout.

Reads a long-format CSV (one row per stage x subcategory), computes the
layout and prints it as JSON. Optionally saves a PNG through the reference
matplotlib renderer.

    waterfall-layout data.csv --stage-column stage --pivot-column segment \
        --measure-column amount --start-stage Start --after-start-negative
"""

import argparse
import dataclasses
import json
import logging
import sys

import pandas as pd

from .config_loader import layout_config_from_dict, load_config, surface_from_dict
from .fields import LayoutFailure
from .layout import build_layout
from .pivoting import rows_from_long_frame

# Setup logging
logger = logging.getLogger(__name__)

EXIT_LAYOUT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute a stacked waterfall layout from a long-format CSV"
    )
    parser.add_argument('data', nargs='?', help='Long-format CSV file')
    parser.add_argument('--config', help='YAML configuration (waterfall/surface sections)')
    parser.add_argument('--stage-column', default='stage', help='Stage label column')
    parser.add_argument('--pivot-column', default='pivot', help='Subcategory column')
    parser.add_argument('--measure-column', default='value', help='Numeric measure column')
    parser.add_argument('--sort-column', help='Column to order stages by')
    parser.add_argument('--negative-stages', help='Comma-separated stage labels that subtract')
    parser.add_argument('--start-stage', help='Label of the start stage')
    parser.add_argument('--after-start-negative', action='store_true',
                        help='Treat stages after the start stage as negative')
    parser.add_argument('--width', type=float, help='Surface width')
    parser.add_argument('--height', type=float, help='Surface height')
    parser.add_argument('--plot', help='Save a PNG of the layout to this path')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--version', action='store_true',
                        help='Show version information')
    return parser


def main(argv=None):
    """
    CLI entry point. Returns 0 on success, 2 when the layout cannot be built.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.version:
        from . import __version__
        print(f"waterfall_layout version: {__version__}")
        return 0
    if not args.data:
        parser.print_help()
        return 1

    config = load_config(args.config) if args.config else {}
    layout_config = layout_config_from_dict(config)
    overrides = {}
    if args.negative_stages:
        overrides['negative_stage_labels'] = tuple(
            s.strip() for s in args.negative_stages.split(',') if s.strip()
        )
    if args.start_stage:
        overrides['start_stage_label'] = args.start_stage
    if args.after_start_negative:
        overrides['treat_after_start_as_negative'] = True
    if args.sort_column:
        overrides['sort_field_override'] = args.sort_column
    layout_config = dataclasses.replace(layout_config, **overrides)
    surface = surface_from_dict(config, width=args.width, height=args.height)

    df = pd.read_csv(args.data)
    # the sort field only applies when the CSV carries it
    sort_column = layout_config.sort_field_override
    if sort_column and sort_column not in df.columns:
        logger.warning(f"Sort field '{sort_column}' not in {args.data}, keeping CSV order")
        sort_column = None
    rows, meta = rows_from_long_frame(
        df,
        stage_column=args.stage_column,
        pivot_column=args.pivot_column,
        measure_column=args.measure_column,
        sort_column=sort_column,
    )

    result = build_layout(rows, meta, layout_config, surface)
    if isinstance(result, LayoutFailure):
        print(json.dumps(result.to_dict(), indent=2))
        return EXIT_LAYOUT_FAILURE

    print(json.dumps(result.to_dict(), indent=2))

    if args.plot:
        import matplotlib
        matplotlib.use("Agg")
        from .viz_waterfall import plot_stacked_waterfall

        fig, _ = plot_stacked_waterfall(result)
        fig.savefig(args.plot, dpi=150, bbox_inches='tight')
        logger.info(f"Saved plot to {args.plot}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
