"""
PTV GTFS Preparation Module

Consolidates a nested PTV GTFS distribution into a single deduplicated set
of tables, one per entity type, ready for bulk loading.

Entry Point:
    python -m src.prepare <input.zip>

Components:
    - schema: Recognized entity types, fixed headers and key columns
    - extract: Recursive archive extraction with zip-slip checks
    - scanner: Tree walk and concurrent record producers
    - merge: First-write-wins merge consumer
    - writer: Table serialization and output bundling
    - orchestrator: Main entry point coordinating all steps
"""

from .errors import (
    PrepareError, ArchiveError, PathTraversalError, ScanError, ParseError, WriteError
)
from .schema import ENTITY_TYPES, EntitySchema
from .merge import MergeContext, Table
from .orchestrator import run_pipeline

__all__ = [
    'PrepareError', 'ArchiveError', 'PathTraversalError', 'ScanError', 'ParseError', 'WriteError',
    'ENTITY_TYPES', 'EntitySchema', 'MergeContext', 'Table', 'run_pipeline',
]
