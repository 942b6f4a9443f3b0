#!/usr/bin/env python
"""
run_segmentation.py

Runnable script for segmenting survey responses from CSV data.

Usage:
    python -m youth_segmentation.run_segmentation --csv responses.csv [--output outputs/]

Writes:
    - assignments.csv   one row per clustered response, with its cluster
    - summary.json      k, method, per-k scores, quality report, timing
"""

import argparse
import logging
import os
import sys

import pandas as pd

from .config import SegmentationConfig
from .exceptions import SegmentationError
from .pipeline import SegmentationPipeline
from .utils import ensure_dir, write_json


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Segment youth survey responses from CSV data'
    )
    parser.add_argument(
        '--csv',
        type=str,
        required=True,
        help='Path to input CSV file'
    )
    parser.add_argument(
        '--output',
        type=str,
        default='outputs',
        help='Output directory for results (default: outputs)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for k-means++ initialization'
    )
    parser.add_argument(
        '--n-jobs',
        type=int,
        default=None,
        help='Parallel workers for the k search (default: 1)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log per-k trial details'
    )
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    if not os.path.exists(args.csv):
        print(f"Error: CSV file not found: {args.csv}")
        return 1

    print(f"Loading data from {args.csv}...")
    df = pd.read_csv(args.csv)
    print(f"Loaded {len(df)} rows")

    cfg = SegmentationConfig()
    if args.seed is not None:
        cfg.random_seed = args.seed
    if args.n_jobs is not None:
        cfg.n_jobs = args.n_jobs

    pipeline = SegmentationPipeline(cfg)

    try:
        result = pipeline.run_dataframe(df, context={"source": os.path.basename(args.csv)})
    except SegmentationError as exc:
        print(f"Segmentation failed ({type(exc).__name__}): {exc}")
        return 2

    ensure_dir(args.output)
    assignments = result.assignments_frame()
    assignments.to_csv(os.path.join(args.output, "assignments.csv"), index=False)

    summary = result.to_record()
    summary["quality_report"] = result.quality_report.to_dict()
    write_json(os.path.join(args.output, "summary.json"), summary)

    print(f"\nSegmentation complete: k={result.k} ({result.k_selection.method})")
    print(f"Silhouette score: {result.silhouette_score:.4f}")
    print(f"Results saved to: {args.output}")
    print(f"\nCluster sizes: {result.run.cluster_sizes}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
