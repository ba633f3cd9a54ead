"""
Tests for GTFS entity schema lookups.
"""

import pytest
from src.prepare.schema import ENTITY_TYPES, entity_type_for, is_entity_file, get_schema


class TestEntitySchema:
    """Test the recognized entity set and key extraction."""

    def test_recognized_types(self):
        """Test the closed set of entity types."""
        assert set(ENTITY_TYPES) == {
            'agency', 'calendar', 'calendar_dates', 'routes',
            'stops', 'stop_times', 'trips', 'shapes'
        }

    @pytest.mark.parametrize("file_name,expected", [
        ('stops.txt', 'stops'),
        ('stop_times.txt', 'stop_times'),
        ('calendar_dates.txt', 'calendar_dates'),
        ('calendar.txt', 'calendar'),
        ('Stops.txt', None),
        ('stops.csv', None),
        ('old_stops.txt', None),
        ('stops', None),
    ])
    def test_entity_type_for(self, file_name, expected):
        """Test exact base name matching."""
        assert entity_type_for(file_name) == expected
        assert is_entity_file(file_name) == (expected is not None)

    def test_default_key_is_first_field(self):
        stops = get_schema('stops')
        assert stops.primary_key(('S1', 'Main St', '-37.8', '144.9')) == ('S1',)

    def test_stop_times_composite_key(self):
        stop_times = get_schema('stop_times')
        row = ('T1', '08:00:00', '08:00:00', 'S1', '1', '', '0', '0', '')
        assert stop_times.primary_key(row) == ('T1', 'S1', '1')

    def test_key_columns_within_header(self):
        """Test every key column exists in the fixed header."""
        for schema in ENTITY_TYPES.values():
            assert max(schema.key_columns) < len(schema.header)
            assert schema.file_name == f"{schema.name}.txt"
