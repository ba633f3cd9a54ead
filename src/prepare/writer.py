"""
Output Writer

Serializes consolidated tables to one CSV file per entity type and
optionally bundles the output directory into a single zip next to it.
"""

import csv
import logging
import os
import zipfile
from typing import Dict, Iterable, List

from tqdm import tqdm

from .errors import WriteError
from .merge import Table
from .schema import TXT_SUFFIX

logger = logging.getLogger(__name__)


def write_table(table: Table, path: str):
    try:
        with open(path, 'w', newline='', encoding='utf-8') as handle:
            writer = csv.writer(handle, lineterminator='\n')
            writer.writerows(table.rows)
    except (OSError, csv.Error) as e:
        raise WriteError(f"Unable to write {table.name} table: {e}", path=path) from e


def write_tables(tables: Dict[str, Table], output_dir: str) -> List[str]:
    """
    Write every table to output_dir as <entity_type>.txt.

    Args:
        tables: Entity type -> consolidated Table
        output_dir: Directory to write into (created if missing)

    Returns:
        Paths of the written files

    Raises:
        WriteError: Directory or file could not be created or written
    """
    try:
        os.makedirs(output_dir, exist_ok=True)
    except OSError as e:
        raise WriteError(f"Unable to create output directory: {e}", path=output_dir) from e

    written = []
    for name, table in tqdm(tables.items(), desc="Writing tables", unit="table"):
        path = os.path.join(output_dir, f"{name}{TXT_SUFFIX}")
        write_table(table, path)
        logger.debug(f"Wrote {len(table)} {name} rows to {path}")
        written.append(path)

    logger.info(f"Wrote {len(written)} tables to {output_dir}")
    return written


def bundle_output(output_dir: str, exclude: Iterable[str] = ()) -> str:
    """
    Compress output_dir into <output_dir>.zip alongside it.

    Archive entries are stored relative to output_dir. Files whose base name
    is in exclude are left out.

    Returns:
        Path of the created archive
    """
    output_dir = os.path.normpath(output_dir)
    archive_path = f"{output_dir}.zip"
    skipped = set(exclude)

    try:
        with zipfile.ZipFile(archive_path, 'w', zipfile.ZIP_DEFLATED) as archive:
            for dirpath, dirnames, filenames in os.walk(output_dir):
                dirnames.sort()
                for name in sorted(filenames):
                    if name in skipped:
                        continue
                    path = os.path.join(dirpath, name)
                    archive.write(path, os.path.relpath(path, output_dir))
    except OSError as e:
        raise WriteError(f"Unable to bundle output: {e}", path=archive_path) from e

    logger.info(f"Bundled {output_dir} into {archive_path}")
    return archive_path
