import csv
import io

import pytest

from raft_graph import REQUIRED_COLUMNS


@pytest.fixture
def make_record():
    """Factory for row records as produced by parse_records."""
    def _make(serial, actor=None, interacts_with='', category='', relationship_type='',
              tension='', description='', relevance='', line=None):
        return {
            'serial': str(serial),
            'category': category,
            'actor': actor if actor is not None else f"Actor {serial}",
            'description': description,
            'interacts_with': interacts_with,
            'relationship_type': relationship_type,
            'tension': tension,
            'relevance': relevance,
            'line': line,
        }
    return _make


@pytest.fixture
def make_csv():
    """Factory for CSV text with the standard header."""
    def _make(rows):
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator='\n')
        writer.writerow(REQUIRED_COLUMNS)
        for row in rows:
            writer.writerow(row)
        return buffer.getvalue()
    return _make


@pytest.fixture
def sample_csv(make_csv):
    return make_csv([
        ['1', 'Military', 'Task Force', 'Runs operations', '2;3', 'Command', 'Resources', 'High'],
        ['2', 'Partner Nation', 'Partner Navy', 'Coastal navy', '1', 'Cooperation', 'Fuel', ''],
        ['3', 'Criminal Network', 'Cartel', '', '18-19', 'Trafficking', 'Interdiction', 'Top threat'],
        ['18', 'Criminal Network', 'Maritime Cell', 'Boats', '3', 'Logistics', 'Losses', ''],
    ])
