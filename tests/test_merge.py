"""
Tests for the first-write-wins merge consumer.
"""

import pytest
from src.prepare.merge import MergeContext, Table, consume
from src.prepare.scanner import Record
from src.prepare.schema import ENTITY_TYPES, get_schema


class TestTable:
    """Test a single consolidated table."""

    def test_header_first(self):
        table = Table(get_schema('stops'))
        table.add(('S1', 'Main St', '-37.8', '144.9'))

        assert table.rows[0] == ('stop_id', 'stop_name', 'stop_lat', 'stop_lon')
        assert len(table) == 1

    def test_first_write_wins(self):
        table = Table(get_schema('stops'))

        assert table.add(('S1', 'Main St', '-37.8', '144.9')) is True
        assert table.add(('S1', 'Main Street', '-37.81', '144.95')) is False

        assert table.rows[1:] == [('S1', 'Main St', '-37.8', '144.9')]
        assert table.duplicates == 1

    def test_stop_times_keep_every_sequence(self):
        table = Table(get_schema('stop_times'))
        for sequence in range(1, 11):
            table.add(('T1', '08:00:00', '08:00:00', f'S{sequence}', str(sequence), '', '0', '0', ''))
        table.add(('T1', '09:00:00', '09:00:00', 'S1', '1', '', '0', '0', ''))

        assert len(table.rows) == 11
        assert [row[4] for row in table.rows[1:]] == [str(n) for n in range(1, 11)]
        assert table.duplicates == 1


class TestMergeContext:
    """Test merging records across entity types."""

    def test_seeded_with_headers(self):
        context = MergeContext()

        assert set(context.tables) == set(ENTITY_TYPES)
        for name, table in context.tables.items():
            assert table.rows == [ENTITY_TYPES[name].header]

    def test_contexts_are_independent(self):
        first = MergeContext()
        first.merge(Record('a', 'stops', ('S1', 'A', '1', '2')))

        assert len(MergeContext().tables['stops']) == 0

    def test_conflicting_stops_keep_one_complete_row(self):
        """Test two sources disagreeing on S1 leave one unmodified source row."""
        candidates = [
            ('S1', 'Main St', '-37.8', '144.9'),
            ('S1', 'Main Street', '-37.81', '144.95'),
        ]
        records = [
            Record('1/google_transit/stops.txt', 'stops', candidates[0]),
            Record('2/google_transit/stops.txt', 'stops', candidates[1]),
        ]

        context = consume(records)
        rows = context.tables['stops'].rows[1:]

        assert len(rows) == 1
        assert rows[0] in candidates

    def test_primary_keys_distinct(self):
        records = [
            Record('f', 'routes', (str(n % 7), 'PTV', 'n', 'Route', '2', '', ''))
            for n in range(50)
        ]

        context = consume(records)
        keys = [row[0] for row in context.tables['routes'].rows[1:]]

        assert len(keys) == len(set(keys)) == 7
        assert context.records_received == 50
        assert context.summary()['routes'] == {'rows': 7, 'duplicates': 43}

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_same_key_set_regardless_of_order(self, order):
        batches = [
            [Record('a', 'stops', ('S1', 'A', '1', '2')), Record('a', 'stops', ('S2', 'B', '1', '2'))],
            [Record('b', 'stops', ('S2', 'B', '1', '2')), Record('b', 'stops', ('S3', 'C', '1', '2'))],
        ]
        records = batches[order[0]] + batches[order[1]]

        context = consume(records)

        assert context.tables['stops'].keys() == {('S1',), ('S2',), ('S3',)}
