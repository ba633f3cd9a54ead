"""
Tree Scanning and Record Production

Walks an extracted distribution and fans out one producer per recognized
entity file. Producers stream rows into a shared RecordChannel that is
drained by the single merge consumer.

Components:
- iter_entity_files: tree walk yielding recognized entity files
- produce_records: reads one delimited file and emits its rows
- RecordChannel: bounded hand-off between producers and the consumer
- ProducerPool: scanner thread + worker pool with a completion barrier
"""

import csv
import logging
import os
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

from .errors import ParseError, PrepareError, ScanError, raise_scan_error
from .schema import entity_type_for, get_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    """One data row of an entity file, tagged with its origin."""

    path: str
    entity_type: str
    fields: Tuple[str, ...]


# ============================================================================
# TREE SCANNER
# ============================================================================

def iter_entity_files(root_dir: str) -> Iterator[Tuple[str, str]]:
    """
    Walk a directory tree and yield recognized entity files.

    Args:
        root_dir: Root of the extracted tree

    Yields:
        (path, entity_type) for every file whose base name is an entity file

    Raises:
        ScanError: Any directory in the tree could not be read
    """
    if not os.path.isdir(root_dir):
        raise ScanError("Extraction directory does not exist", path=root_dir)

    for dirpath, dirnames, filenames in os.walk(root_dir, onerror=raise_scan_error):
        dirnames.sort()
        for name in sorted(filenames):
            entity_type = entity_type_for(name)
            if entity_type is not None:
                yield os.path.join(dirpath, name), entity_type


# ============================================================================
# RECORD PRODUCER
# ============================================================================

def produce_records(
    path: str,
    entity_type: str,
    emit: Callable[[Record], None],
    cancelled: Optional[threading.Event] = None
) -> int:
    """
    Stream the data rows of one entity file.

    The first row is taken as the file's header and dropped. Every later row
    must have the same number of fields as that header.

    Args:
        path: Entity file to read
        entity_type: Type tag for emitted records
        emit: Callback receiving each Record, in file order
        cancelled: Optional event; reading stops once it is set

    Returns:
        Number of records emitted

    Raises:
        ScanError: The file could not be opened or read
        ParseError: A row is malformed or the file is not valid UTF-8
    """
    count = 0
    line = 0
    try:
        with open(path, newline='', encoding='utf-8-sig') as handle:
            reader = csv.reader(handle, strict=True)
            header = next(reader, None)
            if header is None:
                logger.warning(f"{path} is empty, skipping")
                return 0
            width = len(header)
            key_width = max(get_schema(entity_type).key_columns) + 1
            if width < key_width:
                raise ParseError(
                    f"Header has {width} fields, {entity_type} needs at least {key_width}",
                    path=path,
                )

            for fields in reader:
                line = reader.line_num
                if cancelled is not None and cancelled.is_set():
                    break
                if not fields:
                    continue
                if len(fields) != width:
                    raise ParseError(
                        f"Line {line}: expected {width} fields, found {len(fields)}",
                        path=path,
                    )
                emit(Record(path, entity_type, tuple(fields)))
                count += 1
    except csv.Error as e:
        raise ParseError(f"Line {line + 1}: {e}", path=path) from e
    except UnicodeDecodeError as e:
        raise ParseError(f"Invalid encoding: {e}", path=path) from e
    except OSError as e:
        raise ScanError(f"Unable to open: {e.strerror or e}", path=path) from e

    logger.debug(f"Read {count} {entity_type} records from {path}")
    return count


# ============================================================================
# CHANNEL
# ============================================================================

_CLOSED = object()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


class RecordChannel:
    """
    Hand-off between producers and the merge consumer.

    capacity bounds the number of records waiting to be merged; producers
    block on put while the channel is full. 0 means unbounded and 1 is the
    closest to an unbuffered hand-off.

    Iterating yields records until the channel is closed. If a failure was
    reported, the remaining records are drained and discarded, and the first
    failure is raised once the channel closes.
    """

    def __init__(self, capacity: int = 0):
        self.capacity = capacity
        self.drained = False
        self._queue = queue.Queue(maxsize=max(capacity, 0))

    def put(self, record: Record):
        self._queue.put(record)

    def fail(self, error: BaseException):
        self._queue.put(_Failure(error))

    def close(self):
        self._queue.put(_CLOSED)

    def drain(self):
        """Discard everything up to the close marker."""
        while not self.drained:
            if self._queue.get() is _CLOSED:
                self.drained = True

    def __iter__(self) -> Iterator[Record]:
        failure = None
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                self.drained = True
                break
            if isinstance(item, _Failure):
                if failure is None:
                    failure = item.error
                continue
            if failure is None:
                yield item

        if failure is not None:
            raise failure


# ============================================================================
# PRODUCER POOL
# ============================================================================

class ProducerPool:
    """
    Scanner thread dispatching one producer per entity file.

    Producers are submitted while the tree is still being walked. The channel
    is closed once the walk has finished and every producer has returned. The
    first error from the walk or any producer stops further dispatch, tells
    running producers to stop, and is delivered to the consumer through the
    channel.
    """

    def __init__(self, root_dir: str, channel: RecordChannel, max_workers: int = 8):
        self.root_dir = root_dir
        self.channel = channel
        self.max_workers = max(1, max_workers)
        self.files: List[str] = []
        self.cancelled = threading.Event()
        self._thread = threading.Thread(target=self._dispatch, name='gtfs-scanner', daemon=True)

    def start(self) -> 'ProducerPool':
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None):
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def stop(self):
        """
        Shut the pool down after the consumer has finished or given up.

        If the channel has not been read to its close marker, running
        producers are cancelled and the channel is drained so none stays
        blocked on put.
        """
        if not self.channel.drained:
            self.cancelled.set()
            self.channel.drain()
        self.join()

    def _report(self, error: BaseException):
        self.cancelled.set()
        self.channel.fail(error)

    def _produce(self, path: str, entity_type: str):
        try:
            produce_records(path, entity_type, self.channel.put, self.cancelled)
        except Exception as e:
            logger.error(f"Producer failed for {path}: {e}")
            self._report(e)

    def _dispatch(self):
        try:
            with ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix='gtfs-producer'
            ) as executor:
                futures = []
                try:
                    for path, entity_type in iter_entity_files(self.root_dir):
                        if self.cancelled.is_set():
                            break
                        logger.debug(f"Dispatching {entity_type} producer for {path}")
                        self.files.append(path)
                        futures.append(executor.submit(self._produce, path, entity_type))
                except PrepareError as e:
                    logger.error(f"Scan failed: {e}")
                    self._report(e)

                if self.cancelled.is_set():
                    for future in futures:
                        future.cancel()
        except Exception as e:
            self._report(e)
        finally:
            self.channel.close()


def start_producers(root_dir: str, channel: RecordChannel, max_workers: int = 8) -> ProducerPool:
    """Start scanning root_dir and producing records into channel."""
    return ProducerPool(root_dir, channel, max_workers).start()
