"""
GTFS Entity Schema Module

Defines the closed set of GTFS entity types recognized by the pipeline, the
fixed header written for each consolidated table, and the columns that make
up each type's primary key.

Entity Coverage:
    - agency, calendar, calendar_dates, routes
    - stops, stop_times, trips, shapes
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple


TXT_SUFFIX = '.txt'


@dataclass(frozen=True)
class EntitySchema:
    """Fixed column layout of one GTFS entity type."""

    name: str
    header: Tuple[str, ...]
    key_columns: Tuple[int, ...] = (0,)

    @property
    def file_name(self) -> str:
        return f"{self.name}{TXT_SUFFIX}"

    def primary_key(self, fields: Sequence[str]) -> Tuple[str, ...]:
        """
        Extract the primary key of a row.

        Args:
            fields: Row values in source column order

        Returns:
            Tuple of the key column values
        """
        return tuple(fields[i] for i in self.key_columns)

    def __repr__(self):
        return f"<EntitySchema(name='{self.name}', columns={len(self.header)}, key={self.key_columns})>"


# ============================================================================
# RECOGNIZED ENTITY TYPES
# ============================================================================

ENTITY_TYPES: Dict[str, EntitySchema] = {
    schema.name: schema for schema in (
        EntitySchema(
            'agency',
            ('agency_id', 'agency_name', 'agency_url', 'agency_timezone', 'agency_lang'),
        ),
        EntitySchema(
            'calendar',
            ('service_id', 'monday', 'tuesday', 'wednesday', 'thursday', 'friday',
             'saturday', 'sunday', 'start_date', 'end_date'),
        ),
        # A service has one exception row per date
        EntitySchema(
            'calendar_dates',
            ('service_id', 'date', 'exception_type'),
            key_columns=(0, 1),
        ),
        EntitySchema(
            'routes',
            ('route_id', 'agency_id', 'route_short_name', 'route_long_name',
             'route_type', 'route_color', 'route_text_color'),
        ),
        EntitySchema(
            'stops',
            ('stop_id', 'stop_name', 'stop_lat', 'stop_lon'),
        ),
        # trip_id, stop_id, stop_sequence
        EntitySchema(
            'stop_times',
            ('trip_id', 'arrival_time', 'departure_time', 'stop_id', 'stop_sequence',
             'stop_headsign', 'pickup_type', 'drop_off_type', 'shape_dist_traveled'),
            key_columns=(0, 3, 4),
        ),
        EntitySchema(
            'trips',
            ('route_id', 'service_id', 'trip_id', 'shape_id', 'trip_headsign', 'direction_id'),
        ),
        # shape_id, shape_pt_sequence
        EntitySchema(
            'shapes',
            ('shape_id', 'shape_pt_lat', 'shape_pt_lon', 'shape_pt_sequence',
             'shape_dist_traveled'),
            key_columns=(0, 3),
        ),
    )
}

_FILE_NAME_INDEX: Dict[str, str] = {
    schema.file_name: name for name, schema in ENTITY_TYPES.items()
}


# ============================================================================
# LOOKUPS
# ============================================================================

def entity_type_for(file_name: str) -> Optional[str]:
    """
    Map a file's base name to its entity type.

    Matching is exact: 'stops.txt' is recognized, 'Stops.txt' and
    'old_stops.txt' are not.

    Args:
        file_name: Base name of the file

    Returns:
        Entity type name, or None if the file is not a recognized entity file
    """
    return _FILE_NAME_INDEX.get(file_name)


def is_entity_file(file_name: str) -> bool:
    return entity_type_for(file_name) is not None


def get_schema(entity_type: str) -> EntitySchema:
    return ENTITY_TYPES[entity_type]
