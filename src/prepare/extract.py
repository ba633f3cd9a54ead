"""
Archive Extraction

Unpacks a GTFS distribution zip and, recursively, every inner archive found
inside it whose name matches the inner-archive pattern. Each inner archive is
unpacked into a sibling directory named after itself without the suffix:

    gtfs_in/1/google_transit.zip  ->  gtfs_in/1/google_transit/

Entry names are checked against the destination before anything is written,
so a crafted archive cannot place files outside it (zip-slip).
"""

import logging
import os
import shutil
import zipfile
import zlib
from fnmatch import fnmatchcase
from typing import List, Set

from tqdm import tqdm

from .errors import ArchiveError, PathTraversalError, raise_scan_error

logger = logging.getLogger(__name__)


def _resolve_member_path(dest_root: str, member_name: str) -> str:
    target = os.path.realpath(os.path.join(dest_root, member_name))
    if target != dest_root and not target.startswith(dest_root + os.sep):
        raise PathTraversalError(
            f"Archive entry '{member_name}' resolves outside the extraction directory",
            path=target,
        )
    return target


def extract_archive(archive_path: str, dest_dir: str) -> List[str]:
    """
    Unpack every entry of a zip archive into a directory.

    Args:
        archive_path: Path to the zip archive
        dest_dir: Destination directory (created if missing)

    Returns:
        List of extracted file and directory paths

    Raises:
        PathTraversalError: An entry would land outside dest_dir. Raised
            before any entry is written.
        ArchiveError: The archive is unreadable or corrupt, or an entry
            could not be written.
    """
    try:
        os.makedirs(dest_dir, exist_ok=True)
    except OSError as e:
        raise ArchiveError(f"Unable to create extraction directory: {e}", path=dest_dir) from e
    dest_root = os.path.realpath(dest_dir)

    try:
        with zipfile.ZipFile(archive_path) as archive:
            members = archive.infolist()
            targets = [_resolve_member_path(dest_root, m.filename) for m in members]

            extracted = []
            for member, target in tqdm(
                list(zip(members, targets)),
                desc=f"Extracting {os.path.basename(archive_path)}",
                unit="entry",
                leave=False,
            ):
                if member.is_dir():
                    os.makedirs(target, exist_ok=True)
                else:
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    with archive.open(member) as source, open(target, 'wb') as out:
                        shutil.copyfileobj(source, out)
                extracted.append(target)
    except PathTraversalError:
        raise
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise ArchiveError(f"Unable to read archive: {e}", path=archive_path) from e
    except (zlib.error, EOFError) as e:
        raise ArchiveError(f"Corrupt compressed entry: {e}", path=archive_path) from e
    except NotImplementedError as e:
        raise ArchiveError(f"Unsupported compression: {e}", path=archive_path) from e
    except RuntimeError as e:
        # zipfile raises RuntimeError for encrypted entries
        raise ArchiveError(f"Unable to decrypt entry: {e}", path=archive_path) from e
    except OSError as e:
        raise ArchiveError(f"Unable to extract archive: {e}", path=archive_path) from e

    return extracted


def inner_archive_dir(path: str) -> str:
    """Sibling directory an inner archive is unpacked into."""
    stem, ext = os.path.splitext(path)
    if not ext:
        return f"{path}_extracted"
    return stem


def _find_inner_archives(root_dir: str, inner_pattern: str) -> List[str]:
    found = []
    for dirpath, _, filenames in os.walk(root_dir, onerror=raise_scan_error):
        for name in sorted(filenames):
            if fnmatchcase(name, inner_pattern):
                found.append(os.path.join(dirpath, name))
    return found


def extract_nested(root_dir: str, inner_pattern: str) -> int:
    """
    Recursively unpack inner archives below a directory.

    Every file whose base name matches inner_pattern is extracted into its
    sibling directory, which is then searched for further inner archives.
    There is no depth limit; recursion ends when no unvisited archive is left.

    Args:
        root_dir: Directory to search
        inner_pattern: fnmatch pattern for inner archive names

    Returns:
        Number of inner archives extracted
    """
    pending = [root_dir]
    seen: Set[str] = set()

    while pending:
        search_dir = pending.pop()
        for archive_path in _find_inner_archives(search_dir, inner_pattern):
            real_path = os.path.realpath(archive_path)
            if real_path in seen:
                continue
            seen.add(real_path)

            output_dir = inner_archive_dir(archive_path)
            logger.info(f"Found inner archive {archive_path}")
            extract_archive(archive_path, output_dir)
            logger.info(f"Extracted {archive_path} to {output_dir}")
            pending.append(output_dir)

    return len(seen)


def extract_distribution(archive_path: str, dest_dir: str, inner_pattern: str) -> int:
    """
    Extract a GTFS distribution and all nested inner archives.

    Args:
        archive_path: Root input archive
        dest_dir: Extraction directory
        inner_pattern: fnmatch pattern for inner archive names

    Returns:
        Number of inner archives extracted
    """
    logger.info(f"Extracting {archive_path}...")
    extract_archive(archive_path, dest_dir)
    logger.info(f"Extracted {archive_path}. Walking for inner archives...")
    return extract_nested(dest_dir, inner_pattern)
