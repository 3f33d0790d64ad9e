"""
Unit tests for the selection context and description synthesis.

Tests cover:
- Direction classification of incident edges
- Self-loops and unknown endpoints
- Node click / background click transitions
- Enhanced description wording and category summary
"""

import pytest

from raft_graph import build_graph
from raft_selection import (
    BACKGROUND,
    INCOMING,
    NO_DESCRIPTION,
    OUTGOING,
    SelectionContext,
    build_incident_index,
    format_markup,
    node_view,
    resolve_neighborhood,
    summarize_categories,
    synthesize_description,
)


def entry(direction, other_id, category='', known=True):
    return {
        'direction': direction,
        'other_node_id': other_id,
        'other_node_name': f"Actor {other_id}",
        'other_node_category': category,
        'relationship': '',
        'tension': '',
        'known': known,
    }


@pytest.fixture
def chain(make_record):
    """Edges 1->2 and 2->3."""
    return build_graph([
        make_record(1, 'One', interacts_with='2', category='Military',
                    relationship_type='Command', tension='Tempo'),
        make_record(2, 'Two', interacts_with='3', category='Partner Nation'),
        make_record(3, 'Three', category='Criminal Network'),
    ])


class TestResolveNeighborhood:
    """Test incident edge resolution."""

    def test_middle_of_chain(self, chain):
        graph, relationships = chain

        neighborhood = resolve_neighborhood(graph, relationships, '2')

        assert [(e['direction'], e['other_node_id']) for e in neighborhood] == [
            (INCOMING, '1'),
            (OUTGOING, '3'),
        ]

    def test_entries_carry_neighbor_and_edge_data(self, chain):
        graph, relationships = chain

        incoming = resolve_neighborhood(graph, relationships, '2')[0]

        assert incoming['other_node_name'] == 'One'
        assert incoming['other_node_category'] == 'Military'
        assert incoming['relationship'] == 'Command'
        assert incoming['tension'] == 'Tempo'
        assert incoming['known'] is True

    def test_isolated_node(self, make_record):
        graph, relationships = build_graph([make_record(1), make_record(2, interacts_with='3'), make_record(3)])

        assert resolve_neighborhood(graph, relationships, '1') == []

    def test_directions_match_edge_roles(self, make_record):
        records = [
            make_record(1, interacts_with='2-5'),
            make_record(2, interacts_with='1;3'),
            make_record(3, interacts_with='1;4;5'),
            make_record(4, interacts_with='2'),
            make_record(5),
        ]
        graph, relationships = build_graph(records)

        for node_id in graph.nodes():
            neighborhood = resolve_neighborhood(graph, relationships, node_id)
            incident = [e for e in relationships if node_id in (e['source'], e['target'])]

            assert len(neighborhood) == len(incident)
            for item, edge in zip(neighborhood, incident):
                if item['direction'] == OUTGOING:
                    assert edge['source'] == node_id
                    assert edge['target'] == item['other_node_id']
                else:
                    assert edge['target'] == node_id
                    assert edge['source'] == item['other_node_id']

    def test_self_loop_is_outgoing_once(self, make_record):
        graph, relationships = build_graph([make_record(1, interacts_with='1;2'), make_record(2)])

        neighborhood = resolve_neighborhood(graph, relationships, '1')

        assert [(e['direction'], e['other_node_id']) for e in neighborhood] == [
            (OUTGOING, '1'),
            (OUTGOING, '2'),
        ]

    def test_unknown_neighbor_uses_placeholder(self, make_record):
        graph, relationships = build_graph([make_record(1, interacts_with='99')])

        item = resolve_neighborhood(graph, relationships, '1')[0]

        assert item['other_node_id'] == '99'
        assert item['other_node_name'] == 'Unknown actor #99'
        assert item['known'] is False

    def test_index_gives_same_result_as_scan(self, make_record):
        records = [
            make_record(1, interacts_with='1-4'),
            make_record(2, interacts_with='1;3'),
            make_record(3, interacts_with='2;99'),
            make_record(4),
        ]
        graph, relationships = build_graph(records)
        index = build_incident_index(relationships)

        for node_id in ['1', '2', '3', '4', '99', '7']:
            assert (resolve_neighborhood(graph, relationships, node_id, index)
                    == resolve_neighborhood(graph, relationships, node_id))

    def test_index_lists_self_loop_once(self, make_record):
        _, relationships = build_graph([make_record(1, interacts_with='1')])

        assert len(build_incident_index(relationships)['1']) == 1


class TestNodeView:
    def test_known_node(self, chain):
        graph, _ = chain

        node = node_view(graph, '3')

        assert node['id'] == '3'
        assert node['name'] == 'Three'
        assert node['known'] is True

    def test_unknown_node(self, chain):
        graph, _ = chain

        node = node_view(graph, '42')

        assert node['id'] == '42'
        assert node['known'] is False
        assert node['description'] == ''


class TestSelectionContext:
    """Test selection state transitions."""

    def test_starts_empty(self):
        selection = SelectionContext()

        assert selection.is_empty
        assert selection.describe() == ''

    def test_node_click_then_background_click(self, chain):
        graph, relationships = chain
        selection = SelectionContext()

        selection.handle_click(graph, relationships, '2')
        assert selection.selected_node['name'] == 'Two'
        assert len(selection.outgoing) == 1
        assert len(selection.incoming) == 1

        selection.handle_click(graph, relationships, BACKGROUND)
        assert selection.is_empty
        assert selection.neighborhood == []

    def test_new_click_replaces_previous(self, chain):
        graph, relationships = chain
        selection = SelectionContext()

        selection.handle_click(graph, relationships, '1')
        selection.handle_click(graph, relationships, '3')

        assert selection.selected_node['id'] == '3'
        assert [(e['direction'], e['other_node_id']) for e in selection.neighborhood] == [(INCOMING, '2')]

    def test_selecting_unknown_serial(self, make_record):
        graph, relationships = build_graph([make_record(1, interacts_with='99')])
        selection = SelectionContext()

        selection.select(graph, relationships, '99')

        assert selection.selected_node['known'] is False
        assert [(e['direction'], e['other_node_id']) for e in selection.neighborhood] == [(INCOMING, '1')]
        assert selection.describe().startswith(NO_DESCRIPTION)


class TestSummarizeCategories:
    def test_sorted_by_count_then_first_seen(self):
        neighborhood = [
            entry(OUTGOING, '1', 'B'),
            entry(OUTGOING, '2', 'A'),
            entry(INCOMING, '3', 'B'),
            entry(INCOMING, '4', 'A'),
            entry(INCOMING, '5', 'C'),
            entry(INCOMING, '6', 'D'),
        ]

        assert summarize_categories(neighborhood) == '2 B, 2 A, 1 C'

    def test_tie_order_follows_input_order(self):
        neighborhood = [
            entry(OUTGOING, '2', 'A'),
            entry(OUTGOING, '1', 'B'),
            entry(INCOMING, '3', 'B'),
            entry(INCOMING, '4', 'A'),
        ]

        assert summarize_categories(neighborhood) == '2 A, 2 B'

    def test_missing_category_counts_as_other(self):
        assert summarize_categories([entry(OUTGOING, '1', '')]) == '1 Other'

    def test_placeholders_are_not_counted(self):
        assert summarize_categories([entry(OUTGOING, '99', '', known=False)]) == ''


class TestSynthesizeDescription:
    """Test the enhanced actor description."""

    @pytest.fixture
    def node(self):
        return {'id': '7', 'name': 'Liaison', 'description': 'Works with partners.', 'relevance': 'Key link'}

    def test_description_and_relevance(self, node):
        text = synthesize_description(node, [])

        assert text.startswith('Works with partners.\n\n')
        assert '**Strategic Relevance:** Key link\n\n' in text
        assert 'Network Position' not in text

    def test_placeholder_description_and_no_relevance(self):
        text = synthesize_description({'id': '1', 'name': 'X', 'description': '', 'relevance': ''}, [])

        assert text == f"{NO_DESCRIPTION}\n\n"

    def test_no_node(self):
        assert synthesize_description(None, []) == ''

    def test_both_directions(self, node):
        neighborhood = [
            entry(OUTGOING, '1', 'Military'),
            entry(OUTGOING, '2', 'Military'),
            entry(INCOMING, '3', 'Government'),
        ]

        text = synthesize_description(node, neighborhood)

        assert ('**Network Position:** Liaison serves as a key intermediary node, actively engaging '
                '2 entities while being influenced by 1 actors. ') in text
        assert text.endswith('Primary connections include: 2 Military, 1 Government.')

    def test_outgoing_only(self, node):
        text = synthesize_description(node, [entry(OUTGOING, '1', 'NGO'), entry(OUTGOING, '2', 'NGO')])

        assert 'Liaison projects influence toward 2 entities. ' in text
        assert 'Primary connections include: 2 NGO.' in text

    def test_incoming_only(self, node):
        text = synthesize_description(node, [entry(INCOMING, '1', 'Armed Group')])

        assert 'Liaison receives influence from 1 actors. ' in text

    def test_top_three_categories_only(self, node):
        neighborhood = [entry(OUTGOING, str(n), category) for n, category in enumerate('AABBCD')]

        text = synthesize_description(node, neighborhood)

        assert text.endswith('Primary connections include: 2 A, 2 B, 1 C.')

    def test_only_placeholder_neighbors_omit_summary(self, node):
        text = synthesize_description(node, [entry(OUTGOING, '99', known=False)])

        assert 'projects influence toward 1 entities.' in text
        assert 'Primary connections' not in text


class TestFormatMarkup:
    def test_bold_and_line_breaks(self):
        assert format_markup('**Bold:** x\nnext') == '<strong>Bold:</strong> x<br/>next'

    def test_escapes_html(self):
        assert format_markup('a <b> & c') == 'a &lt;b&gt; &amp; c'

    def test_empty(self):
        assert format_markup('') == ''
