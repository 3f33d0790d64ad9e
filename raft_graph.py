"""
RAFT Relationship Graph Builder
Parses a relationship CSV (actors plus the serials they interact with) into a
directed actor graph with faction coloring, and keeps the current selection
context for the detail panels.

Required installations:
pip install networkx pyvis

Usage:
from raft_graph import RelationshipGraphBuilder
builder = RelationshipGraphBuilder()
builder.load_default()
"""

import csv
import io
import json
import os
import re
from collections import Counter

import networkx as nx

from raft_data import DEFAULT_DATASET
from raft_selection import BACKGROUND, SelectionContext, build_incident_index


# Column name -> record field
COLUMN_FIELDS = {
    'Serial': 'serial',
    'Category': 'category',
    'Actor': 'actor',
    'ActorDescription': 'description',
    'InteractsWithSerials': 'interacts_with',
    'RelationshipType': 'relationship_type',
    'Tensions': 'tension',
    'Relevance': 'relevance',
}
REQUIRED_COLUMNS = tuple(COLUMN_FIELDS)

TEMPLATE_CSV = """Serial,Category,Actor,ActorDescription,InteractsWithSerials,RelationshipType,Tensions,Relevance
1,Category1,Actor1,"Description of actor 1",2;3,"Type of relationship","Potential tensions","Why this actor matters"
2,Category2,Actor2,"Description of actor 2",1;3,"Type of relationship","Potential tensions","Why this actor matters"
3,Category3,Actor3,"Description of actor 3",1;2,"Type of relationship","Potential tensions","Why this actor matters"
"""

FRIENDLY = 'Friendly'
ADVERSARY = 'Adversary'
NEUTRAL = 'Neutral'

# Fixed partition of serials into factions
FRIENDLY_IDS = list(range(1, 18)) + [33]
ADVERSARY_IDS = list(range(18, 33))

FACTION_HUES = {
    FRIENDLY: 210,   # Blue
    ADVERSARY: 0,    # Red
}
NEUTRAL_COLOR = '#888888'

RANGE_SEPARATOR = '-'
DASH_CHARS = ('\u2010', '\u2011', '\u2012', '\u2013', '\u2014', '\u2212')  # hyphens, en/em dash, minus
_NUMBER_RE = re.compile(r'^\d+$', re.ASCII)

# Largest number of serials one range segment may expand to
MAX_RANGE_SPAN = 1000


class MalformedInputError(ValueError):
    """The dataset as a whole cannot be read (no header, missing columns)."""


class ReferenceFormatError(ValueError):
    """A single InteractsWithSerials segment cannot be decoded."""

    def __init__(self, segment, reason):
        super().__init__(f"invalid reference '{segment}': {reason}")
        self.segment = segment
        self.reason = reason


class RaftWarning(UserWarning):
    """Base class for recoverable problems collected while loading a dataset."""

    def __init__(self, message, line=None, serial=None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.serial = serial

    def __str__(self):
        if self.line is not None:
            return f"line {self.line}: {self.message}"
        return self.message


class MalformedRowWarning(RaftWarning):
    pass


class ExtraColumnWarning(RaftWarning):
    pass


class DuplicateSerialWarning(RaftWarning):
    pass


class ReferenceFormatWarning(RaftWarning):
    pass


class UnknownReferenceWarning(RaftWarning):
    pass


def parse_records(text, warnings=None):
    """
    Parse raw CSV text into row records.

    Every value stays text. Empty lines are skipped; rows whose column count
    differs from the header, or whose Serial is empty, are skipped and
    reported as MalformedRowWarning.
    Raises MalformedInputError when there is no usable header.
    """
    if warnings is None:
        warnings = []

    reader = csv.reader(io.StringIO(text.lstrip('\ufeff')))
    header = None
    records = []

    try:
        for row in reader:
            line = reader.line_num
            if not row:
                continue

            if header is None:
                header = [cell.strip() for cell in row]
                missing = [column for column in REQUIRED_COLUMNS if column not in header]
                if missing:
                    raise MalformedInputError(
                        f"header row is missing required column(s): {', '.join(missing)}"
                    )
                extras = [column for column in header if column not in COLUMN_FIELDS]
                if extras:
                    warnings.append(ExtraColumnWarning(
                        f"ignoring unknown column(s): {', '.join(extras)}", line=line
                    ))
                continue

            if len(row) != len(header):
                warnings.append(MalformedRowWarning(
                    f"expected {len(header)} columns, found {len(row)}; row skipped",
                    line=line
                ))
                continue

            values = dict(zip(header, row))
            record = {field: values[column].strip() for column, field in COLUMN_FIELDS.items()}
            record['line'] = line

            if not record['serial']:
                warnings.append(MalformedRowWarning("empty Serial; row skipped", line=line))
                continue

            records.append(record)
    except csv.Error as e:
        raise MalformedInputError(f"unreadable CSV near line {reader.line_num}: {e}") from e

    if header is None:
        raise MalformedInputError("input is empty: no header row found")

    return records


def normalize_dashes(text):
    """Map every dash-like character onto the range separator."""
    for dash in DASH_CHARS:
        text = text.replace(dash, RANGE_SEPARATOR)
    return text


def split_segments(raw):
    """Split an InteractsWithSerials value into trimmed, non-empty segments."""
    if not raw:
        return []
    normalized = normalize_dashes(raw)
    return [segment.strip() for segment in normalized.split(';') if segment.strip()]


def expand_segment(segment):
    """
    Decode one segment into target serials.

    "7" -> ["7"]; "3-5" -> ["3", "4", "5"]. Reversed or non-numeric bounds, and
    ranges wider than MAX_RANGE_SPAN, raise ReferenceFormatError.
    """
    segment = normalize_dashes(segment.strip())

    if RANGE_SEPARATOR in segment:
        bounds = [part.strip() for part in segment.split(RANGE_SEPARATOR)]
        if len(bounds) != 2 or not all(_NUMBER_RE.match(bound) for bound in bounds):
            raise ReferenceFormatError(segment, "range bounds must be two whole numbers")
        start, end = int(bounds[0]), int(bounds[1])
        if start > end:
            raise ReferenceFormatError(segment, f"range start {start} is greater than end {end}")
        if end - start + 1 > MAX_RANGE_SPAN:
            raise ReferenceFormatError(
                segment, f"range covers {end - start + 1} serials, more than {MAX_RANGE_SPAN}"
            )
        return [str(number) for number in range(start, end + 1)]

    if not _NUMBER_RE.match(segment):
        raise ReferenceFormatError(segment, "not a numeric serial")
    return [segment]


def expand_interactions(record, warnings=None):
    """
    Expand a record's InteractsWithSerials into
    (source, target, relationship_type, tension) tuples.

    A bad segment is dropped with a ReferenceFormatWarning; the rest of the
    row is kept. Duplicates are not removed here.
    """
    if warnings is None:
        warnings = []

    source = record['serial']
    interactions = []
    for segment in split_segments(record.get('interacts_with', '')):
        try:
            targets = expand_segment(segment)
        except ReferenceFormatError as e:
            warnings.append(ReferenceFormatWarning(
                str(e), line=record.get('line'), serial=source
            ))
            continue
        for target in targets:
            interactions.append(
                (source, target, record.get('relationship_type', ''), record.get('tension', ''))
            )
    return interactions


def _numeric_id(node_id):
    if isinstance(node_id, int):
        return node_id
    text = str(node_id).strip()
    if _NUMBER_RE.match(text):
        return int(text)
    return None


def classify_faction(node_id):
    """Friendly for 1-17 and 33, Adversary for 18-32, Neutral otherwise."""
    number = _numeric_id(node_id)
    if number in FRIENDLY_IDS:
        return FRIENDLY
    if number in ADVERSARY_IDS:
        return ADVERSARY
    return NEUTRAL


def faction_color(node_id):
    """Deterministic display color from faction and rank within the faction."""
    faction = classify_faction(node_id)
    number = _numeric_id(node_id)

    if faction == FRIENDLY:
        index = FRIENDLY_IDS.index(number)
    elif faction == ADVERSARY:
        index = ADVERSARY_IDS.index(number)
    else:
        return NEUTRAL_COLOR

    lightness = 30 + (index * 3)
    return f"hsl({FACTION_HUES[faction]}, 70%, {lightness}%)"


def node_attributes(record):
    """Node attributes for one row record."""
    node_id = record['serial']
    return {
        'name': record['actor'],
        'label': record['actor'],
        'title': record['actor'],
        'category': record['category'],
        'description': record['description'],
        'relevance': record['relevance'],
        'faction': classify_faction(node_id),
        'color': faction_color(node_id),
    }


def build_graph(records, warnings=None):
    """
    Build the actor graph from row records.

    Returns (graph, relationships). The DiGraph holds one node per serial in
    first-seen order and mirrors the edges whose endpoints both exist;
    relationships is the ordered, de-duplicated edge list and keeps edges to
    unknown serials as well.
    """
    if warnings is None:
        warnings = []

    graph = nx.DiGraph()
    for record in records:
        node_id = record['serial']
        if node_id in graph:
            warnings.append(DuplicateSerialWarning(
                f"duplicate Serial {node_id}; later row overwrites '{graph.nodes[node_id]['name']}'",
                line=record.get('line'), serial=node_id
            ))
        graph.add_node(node_id, **node_attributes(record))

    relationships = []
    seen_pairs = set()
    for record in records:
        for source, target, relationship, tension in expand_interactions(record, warnings):
            if (source, target) in seen_pairs:
                continue
            seen_pairs.add((source, target))

            relationships.append({
                'source': source,
                'target': target,
                'relationship': relationship,
                'tension': tension,
            })

            if target in graph:
                graph.add_edge(source, target, relationship=relationship, tension=tension)
            else:
                warnings.append(UnknownReferenceWarning(
                    f"Serial {source} references unknown Serial {target}",
                    line=record.get('line'), serial=source
                ))

    return graph, relationships


def write_template(output_file='network_template.csv'):
    """Write the three-row example dataset users can fill in."""
    with open(output_file, 'w', encoding='utf-8', newline='') as f:
        f.write(TEMPLATE_CSV)
    print(f"✓ Template saved to {output_file}")
    return output_file


class RelationshipGraphBuilder:
    def __init__(self, default_dataset=DEFAULT_DATASET):
        self.default_dataset = default_dataset
        self.graph = nx.DiGraph()
        self.records = []
        self.relationships = []
        self.incident_index = {}
        self.warnings = []
        self.source_name = None
        self.selection = SelectionContext()
        self.load_error = None

    def load_csv_text(self, text, source_name='uploaded dataset'):
        """Parse and build a dataset, replacing the current graph on success."""
        print(f"Loading dataset: {source_name}")
        warnings = []
        try:
            records = parse_records(text, warnings)
        except MalformedInputError as e:
            print(f"✗ Error loading {source_name}: {e}")
            self.load_error = f"{source_name}: {e}"
            if self.source_name:
                print(f"  ⚠ Keeping previous dataset: {self.source_name}")
            return False

        graph, relationships = build_graph(records, warnings)

        # Graph and selection are replaced together
        self.graph = graph
        self.records = records
        self.relationships = relationships
        self.incident_index = build_incident_index(relationships)
        self.warnings = warnings
        self.source_name = source_name
        self.selection = SelectionContext()
        self.load_error = None

        print(f"✓ Loaded graph with {graph.number_of_nodes()} nodes and {len(relationships)} edges")
        if self.skipped_rows:
            print(f"  ⚠ Skipped {self.skipped_rows} malformed row(s)")
        for warning in warnings:
            print(f"  ⚠ {warning}")
        return True

    def load_file(self, csv_file):
        """Load a user-supplied CSV file."""
        if not csv_file.lower().endswith('.csv'):
            print(f"✗ Please upload a valid CSV file: {csv_file}")
            self.load_error = f"not a CSV file: {csv_file}"
            return False

        try:
            with open(csv_file, 'r', encoding='utf-8-sig') as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            print(f"✗ Error reading {csv_file}: {e}")
            self.load_error = f"{csv_file}: {e}"
            return False

        return self.load_csv_text(text, os.path.basename(csv_file))

    def load_default(self):
        """Load the bundled default dataset."""
        return self.load_file(self.default_dataset)

    def reset_to_default(self):
        print("Resetting to default dataset...")
        return self.load_default()

    @property
    def skipped_rows(self):
        return sum(1 for warning in self.warnings if isinstance(warning, MalformedRowWarning))

    def unknown_references(self):
        """Edges whose target serial has no row in the dataset."""
        return [edge for edge in self.relationships if edge['target'] not in self.graph]

    def select(self, node_id):
        """Select a node and resolve its neighborhood."""
        return self.selection.select(self.graph, self.relationships, node_id, self.incident_index)

    def handle_click(self, event):
        """Handle a click from the render layer: a node id or BACKGROUND."""
        return self.selection.handle_click(
            self.graph, self.relationships, event, self.incident_index
        )

    def clear_selection(self):
        return self.handle_click(BACKGROUND)

    def to_dict(self):
        nodes = []
        for node_id, data in self.graph.nodes(data=True):
            node = {'id': node_id}
            node.update(data)
            nodes.append(node)
        return {
            'source': self.source_name,
            'nodes': nodes,
            'edges': [dict(edge) for edge in self.relationships],
            'warnings': [
                {'type': type(warning).__name__, 'line': warning.line, 'message': warning.message}
                for warning in self.warnings
            ],
        }

    def save_data(self, output_file='raft_data.json'):
        """Save node, edge and warning data."""
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        print(f"✓ Data saved to {output_file}")

    def print_summary(self):
        """Print a summary of the loaded network."""
        print(f"\n{'=' * 50}")
        print(f"Network Summary: {self.source_name}")
        print(f"{'=' * 50}")

        faction_counts = Counter(data['faction'] for _, data in self.graph.nodes(data=True))
        print(f"\nActors ({self.graph.number_of_nodes()}):")
        for faction in (FRIENDLY, ADVERSARY, NEUTRAL):
            print(f"  • {faction:<10} {faction_counts.get(faction, 0)}")

        print(f"\nInteractions: {len(self.relationships)}")
        unknown = self.unknown_references()
        if unknown:
            print(f"  ⚠ {len(unknown)} reference(s) to unknown serials")

        rel_types = Counter(edge['relationship'] or 'Unspecified' for edge in self.relationships)
        if rel_types:
            print(f"\nRelationship Types:")
            for rel_type, count in rel_types.most_common(10):
                print(f"  • {rel_type}: {count}")
