"""
GTFS Preparation Orchestrator

Single entry point for consolidating a PTV GTFS distribution.
Coordinates extraction, concurrent scanning, merging and output.

Usage:
    python -m src.prepare gtfs.zip
    python -m src.prepare gtfs.zip --output-dir ./out --no-bundle
"""

import argparse
import logging
import os
import shutil
import sys
from datetime import datetime
from typing import Dict, List, Optional

from src.config.config_main import prepare_config, logging_config

from .errors import PrepareError
from .extract import extract_distribution
from .merge import consume
from .scanner import RecordChannel, start_producers
from .writer import bundle_output, write_tables

logging.basicConfig(
    level=logging_config.level,
    format=logging_config.format
)
logger = logging.getLogger(__name__)


WORKDIR_MARKER = '.ptv-prepare'


def _is_within(path: str, parent: str) -> bool:
    path = os.path.realpath(path)
    parent = os.path.realpath(parent)
    return path == parent or path.startswith(parent + os.sep)


def _check_layout(input_path: str, extract_dir: str, output_dir: str):
    """Refuse directory layouts where clearing or writing would hit the input or each other."""
    for label, directory in (('extraction', extract_dir), ('output', output_dir)):
        if _is_within(input_path, directory):
            raise PrepareError(f"Input archive lies inside the {label} directory", path=input_path)

    if _is_within(extract_dir, output_dir) or _is_within(output_dir, extract_dir):
        raise PrepareError(
            f"Extraction and output directories must not overlap ({extract_dir}, {output_dir})",
            path=output_dir,
        )

    bundle_path = f"{os.path.realpath(output_dir)}.zip"
    if os.path.realpath(input_path) == bundle_path:
        raise PrepareError("Input archive would be overwritten by the output bundle", path=input_path)


def _prepare_directory(path: str):
    """
    Provide an empty working directory tagged with WORKDIR_MARKER.

    A directory left by an earlier run (it carries the marker) is cleared.
    A non-empty directory without the marker is never touched.
    """
    try:
        if os.path.lexists(path):
            if not os.path.isdir(path):
                raise PrepareError("Working directory path is not a directory", path=path)
            if os.listdir(path):
                if not os.path.exists(os.path.join(path, WORKDIR_MARKER)):
                    raise PrepareError(
                        "Refusing to clear a non-empty directory this tool did not create",
                        path=path,
                    )
                logger.warning(f"Removing stale working directory {path}")
                shutil.rmtree(path)

        os.makedirs(path, exist_ok=True)
        with open(os.path.join(path, WORKDIR_MARKER), 'w'):
            pass
    except OSError as e:
        raise PrepareError(f"Unable to prepare working directory: {e}", path=path) from e


def _remove_transient(paths: List[str]):
    for path in paths:
        logger.info(f"Removing transient directory {path}")
        shutil.rmtree(path, ignore_errors=True)


def run_pipeline(
    input_path: str,
    extract_dir: Optional[str] = None,
    output_dir: Optional[str] = None,
    inner_pattern: Optional[str] = None,
    max_workers: Optional[int] = None,
    channel_capacity: Optional[int] = None,
    bundle: Optional[bool] = None,
    keep_workdirs: Optional[bool] = None
) -> Dict:
    """
    Execute the complete preparation pipeline.

    Args:
        input_path: Root GTFS distribution archive
        extract_dir: Transient extraction directory (default from env)
        output_dir: Directory for the consolidated tables (default from env)
        inner_pattern: fnmatch pattern of archives to unpack recursively
        max_workers: Number of concurrent file producers
        channel_capacity: Records buffered between producers and the merge
        bundle: Compress the output directory into <output_dir>.zip
        keep_workdirs: Keep transient directories after a successful run

    Returns:
        Statistics dictionary

    Raises:
        PrepareError: Any extraction, scan, parse or write failure. Working
            directories are left in place for inspection.
    """
    extract_dir = extract_dir or prepare_config.extract_dir
    output_dir = output_dir or prepare_config.output_dir
    inner_pattern = inner_pattern or prepare_config.inner_archive_pattern
    max_workers = max_workers or prepare_config.max_workers
    if channel_capacity is None:
        channel_capacity = prepare_config.channel_capacity
    if bundle is None:
        bundle = prepare_config.bundle_output
    if keep_workdirs is None:
        keep_workdirs = prepare_config.keep_workdirs

    print(f"\n{'#'*70}")
    print(f"# PTV GTFS PREPARATION PIPELINE")
    print(f"# Input: {input_path}")
    print(f"# Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"{'#'*70}\n")

    overall_start = datetime.now()

    try:
        _check_layout(input_path, extract_dir, output_dir)
        _prepare_directory(extract_dir)
        _prepare_directory(output_dir)

        # Step 1: Extract the distribution and all inner archives
        inner_archives = extract_distribution(input_path, extract_dir, inner_pattern)

        # Step 2: Scan, produce and merge
        channel = RecordChannel(channel_capacity)
        pool = start_producers(extract_dir, channel, max_workers)
        try:
            context = consume(channel)
        finally:
            pool.stop()

        # Step 3: Write consolidated tables
        written = write_tables(context.tables, output_dir)
        bundle_path = bundle_output(output_dir, exclude=(WORKDIR_MARKER,)) if bundle else None

    except PrepareError as e:
        print(f"\n{'!'*70}")
        print(f"! PIPELINE FAILED")
        print(f"! Error: {e}")
        print(f"! Working directories left in place for inspection")
        print(f"{'!'*70}\n")
        raise

    if not keep_workdirs:
        transient = [extract_dir]
        if bundle_path:
            transient.append(output_dir)
        _remove_transient(transient)

    overall_duration = (datetime.now() - overall_start).total_seconds()
    summary = context.summary()

    print(f"\n{'='*70}")
    print("CONSOLIDATED OUTPUT")
    print(f"{'='*70}")
    for name, counts in summary.items():
        print(f"  ✓ {name}: {counts['rows']} rows ({counts['duplicates']} duplicates dropped)")
    print(f"{'='*70}")
    print(f"  {len(pool.files)} entity files from {inner_archives} inner archives")
    print(f"  Output: {bundle_path or output_dir}")
    print(f"  Total duration: {overall_duration:.2f} seconds")
    print(f"{'='*70}\n")

    return {
        'tables': summary,
        'files_ingested': len(pool.files),
        'inner_archives': inner_archives,
        'records_received': context.records_received,
        'output_files': [] if (bundle_path and not keep_workdirs) else written,
        'bundle_path': bundle_path,
        'duration_seconds': overall_duration,
    }


def main(argv: Optional[List[str]] = None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='prepare-ptv-data',
        description='Consolidate a PTV GTFS distribution into one table per entity type',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Consolidate into ./gtfs_out.zip
  python -m src.prepare gtfs.zip

  # Keep the output directory unbundled
  python -m src.prepare gtfs.zip --output-dir ./out --no-bundle

  # Keep the extracted tree for inspection
  python -m src.prepare gtfs.zip --keep-workdirs
        """
    )

    parser.add_argument(
        'input',
        help='Path to the root GTFS distribution .zip'
    )

    parser.add_argument(
        '--extract-dir',
        default=None,
        help='Transient extraction directory; must be empty or left by an earlier run (default: PREPARE_EXTRACT_DIR)'
    )

    parser.add_argument(
        '--output-dir',
        default=None,
        help='Output directory; must be empty or left by an earlier run (default: PREPARE_OUTPUT_DIR)'
    )

    parser.add_argument(
        '--inner-archive',
        default=None,
        help='Pattern of inner archives to unpack recursively (default: PREPARE_INNER_ARCHIVE)'
    )

    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help='Number of concurrent file readers (default: PREPARE_MAX_WORKERS)'
    )

    parser.add_argument(
        '--channel-capacity',
        type=int,
        default=None,
        help='Records buffered ahead of the merge, 0 for unbounded (default: PREPARE_CHANNEL_CAPACITY)'
    )

    parser.add_argument(
        '--no-bundle',
        action='store_true',
        help='Do not compress the output directory'
    )

    parser.add_argument(
        '--keep-workdirs',
        action='store_true',
        help='Keep transient directories after a successful run'
    )

    args = parser.parse_args(argv)

    if not os.path.isfile(args.input):
        print(f"Input archive not found: {args.input}", file=sys.stderr)
        sys.exit(1)

    try:
        run_pipeline(
            args.input,
            extract_dir=args.extract_dir,
            output_dir=args.output_dir,
            inner_pattern=args.inner_archive,
            max_workers=args.workers,
            channel_capacity=args.channel_capacity,
            bundle=False if args.no_bundle else None,
            keep_workdirs=True if args.keep_workdirs else None
        )
    except PrepareError as e:
        logger.error(f"Preparation failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
