"""
Selection context for the RAFT relationship graph.

Resolves the neighborhood of a clicked actor (incident edges, the actor at
the other end, and the direction of each edge) and turns it into the
enhanced description shown in the Actor Profile panel.
"""

import html
import re
from collections import Counter, defaultdict


OUTGOING = 'outgoing'
INCOMING = 'incoming'

NO_DESCRIPTION = 'No description available.'
OTHER_CATEGORY = 'Other'
TOP_CATEGORIES = 3

_BOLD_RE = re.compile(r'\*\*(.+?)\*\*')


class _Background:
    """Click event for the empty canvas."""

    def __repr__(self):
        return 'BACKGROUND'


BACKGROUND = _Background()


def placeholder_node(node_id):
    """Stand-in for a serial that has no row in the dataset."""
    return {
        'id': node_id,
        'name': f"Unknown actor #{node_id}",
        'category': '',
        'description': '',
        'relevance': '',
        'known': False,
    }


def node_view(graph, node_id):
    """Node attributes plus id, or a placeholder when the serial is unknown."""
    if node_id not in graph:
        return placeholder_node(node_id)
    node = dict(graph.nodes[node_id])
    node['id'] = node_id
    node['known'] = True
    return node


def build_incident_index(relationships):
    """Map each serial to its incident edges, in edge order."""
    index = defaultdict(list)
    for edge in relationships:
        index[edge['source']].append(edge)
        if edge['target'] != edge['source']:
            index[edge['target']].append(edge)
    return dict(index)


def resolve_neighborhood(graph, relationships, node_id, index=None):
    """
    Resolve every edge touching node_id.

    Edges where the node is the source are outgoing, where it is the target
    incoming. A self-loop is reported once, as outgoing. Unknown endpoints
    resolve to a placeholder instead of failing.
    """
    if index is not None:
        edges = index.get(node_id, [])
    else:
        edges = relationships

    neighborhood = []
    for edge in edges:
        if edge['source'] == node_id:
            direction, other_id = OUTGOING, edge['target']
        elif edge['target'] == node_id:
            direction, other_id = INCOMING, edge['source']
        else:
            continue

        other = node_view(graph, other_id)
        neighborhood.append({
            'direction': direction,
            'other_node_id': other_id,
            'other_node_name': other.get('name', ''),
            'other_node_category': other.get('category', ''),
            'relationship': edge.get('relationship', ''),
            'tension': edge.get('tension', ''),
            'known': other['known'],
        })
    return neighborhood


def summarize_categories(neighborhood, limit=TOP_CATEGORIES):
    """
    "<count> <category>" for the most frequent neighbor categories.

    Ties keep first-seen order. Placeholder neighbors are not counted;
    known neighbors without a category count as "Other".
    """
    categories = Counter()
    for entry in neighborhood:
        if not entry.get('known', True):
            continue
        categories[entry.get('other_node_category') or OTHER_CATEGORY] += 1

    return ', '.join(f"{count} {category}" for category, count in categories.most_common(limit))


def synthesize_description(node, neighborhood):
    """
    Build the enhanced actor description.

    Plain text with **bold** spans and blank-line paragraph breaks; see
    format_markup for the HTML rendering.
    """
    if not node:
        return ''

    outgoing = [entry for entry in neighborhood if entry['direction'] == OUTGOING]
    incoming = [entry for entry in neighborhood if entry['direction'] == INCOMING]
    name = node.get('name') or f"#{node.get('id')}"

    enhanced = f"{node.get('description') or NO_DESCRIPTION}\n\n"

    if node.get('relevance'):
        enhanced += f"**Strategic Relevance:** {node['relevance']}\n\n"

    if outgoing or incoming:
        enhanced += "**Network Position:** "

        if outgoing and incoming:
            enhanced += (
                f"{name} serves as a key intermediary node, actively engaging "
                f"{len(outgoing)} entities while being influenced by {len(incoming)} actors. "
            )
        elif outgoing:
            enhanced += f"{name} projects influence toward {len(outgoing)} entities. "
        else:
            enhanced += f"{name} receives influence from {len(incoming)} actors. "

        summary = summarize_categories(outgoing + incoming)
        if summary:
            enhanced += f"Primary connections include: {summary}."

    return enhanced


def format_markup(text):
    """Render **bold** spans and line breaks as HTML, escaping everything else."""
    if not text:
        return ''
    formatted = html.escape(text, quote=False)
    formatted = _BOLD_RE.sub(r'<strong>\1</strong>', formatted)
    return formatted.replace('\n', '<br/>')


class SelectionContext:
    """The selected actor and its resolved neighborhood; empty when nothing is selected."""

    def __init__(self):
        self.selected_node = None
        self.neighborhood = []

    @property
    def is_empty(self):
        return self.selected_node is None

    @property
    def outgoing(self):
        return [entry for entry in self.neighborhood if entry['direction'] == OUTGOING]

    @property
    def incoming(self):
        return [entry for entry in self.neighborhood if entry['direction'] == INCOMING]

    def select(self, graph, relationships, node_id, index=None):
        self.selected_node = node_view(graph, node_id)
        self.neighborhood = resolve_neighborhood(graph, relationships, node_id, index)
        return self

    def clear(self):
        self.selected_node = None
        self.neighborhood = []
        return self

    def handle_click(self, graph, relationships, event, index=None):
        if event is BACKGROUND or event is None:
            return self.clear()
        return self.select(graph, relationships, event, index)

    def describe(self):
        if self.is_empty:
            return ''
        return synthesize_description(self.selected_node, self.neighborhood)
