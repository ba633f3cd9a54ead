"""
Merge Consumer

Single consumer that folds records from every producer into one table per
entity type. The first record seen for a primary key is kept and later
records with the same key are dropped, whatever their content. Arrival order
depends on producer scheduling, so which duplicate wins is not stable across
runs.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tqdm import tqdm

from .schema import ENTITY_TYPES, EntitySchema
from .scanner import Record

logger = logging.getLogger(__name__)


class Table:
    """Consolidated rows of one entity type, headed by its fixed header."""

    def __init__(self, schema: EntitySchema):
        self.schema = schema
        self._rows: List[Tuple[str, ...]] = [schema.header]
        self._keys: Set[Tuple[str, ...]] = set()
        self.duplicates = 0

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def rows(self) -> List[Tuple[str, ...]]:
        """Header followed by retained rows, in arrival order."""
        return list(self._rows)

    def keys(self) -> Set[Tuple[str, ...]]:
        return set(self._keys)

    def add(self, fields: Tuple[str, ...]) -> bool:
        """
        Append a row unless its primary key is already present.

        Returns:
            True if the row was appended, False if it was a duplicate
        """
        key = self.schema.primary_key(fields)
        if key in self._keys:
            self.duplicates += 1
            return False
        self._keys.add(key)
        self._rows.append(tuple(fields))
        return True

    def __len__(self):
        return len(self._rows) - 1

    def __repr__(self):
        return f"<Table(name='{self.name}', rows={len(self)}, duplicates={self.duplicates})>"


class MergeContext:
    """Per-run owner of every consolidated table."""

    def __init__(self, schemas: Optional[Iterable[EntitySchema]] = None):
        if schemas is None:
            schemas = ENTITY_TYPES.values()
        self.tables: Dict[str, Table] = {schema.name: Table(schema) for schema in schemas}
        self.records_received = 0

    def merge(self, record: Record) -> bool:
        self.records_received += 1
        return self.tables[record.entity_type].add(record.fields)

    def summary(self) -> Dict[str, Dict[str, int]]:
        return {
            name: {'rows': len(table), 'duplicates': table.duplicates}
            for name, table in self.tables.items()
        }


def consume(records: Iterable[Record], context: Optional[MergeContext] = None) -> MergeContext:
    """
    Merge every record from a channel into a context.

    Args:
        records: RecordChannel (or any iterable of records) to drain
        context: Context to merge into; a fresh one is created if omitted

    Returns:
        The populated MergeContext

    Raises:
        PrepareError: Re-raised from the channel when a producer failed
    """
    if context is None:
        context = MergeContext()

    logger.info("Merging records")
    for record in tqdm(records, desc="Merging records", unit="row"):
        context.merge(record)

    dropped = sum(table.duplicates for table in context.tables.values())
    logger.info(
        f"Merge complete: {context.records_received} records received, "
        f"{dropped} duplicates dropped"
    )
    return context
