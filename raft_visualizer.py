#!/usr/bin/env python3
"""
RAFT Visualization - Relationship Analysis & Force Topology
Renders a relationship CSV as an interactive force-directed graph with
faction coloring, a legend, and Actor Profile / Relationships & Tensions
panels that open when an actor is clicked.

Required installations:
pip install networkx pyvis

Usage:
python raft_visualizer.py [csv_file] [-o output.html] [--json data.json]
python raft_visualizer.py --template network_template.csv
python raft_visualizer.py [csv_file] --inspect SERIAL
"""

import argparse
import html
import json
import os
import re
import sys
from collections import Counter

from pyvis.network import Network

from raft_graph import (
    ADVERSARY,
    FRIENDLY,
    NEUTRAL,
    RelationshipGraphBuilder,
    write_template,
)
from raft_selection import (
    OUTGOING,
    SelectionContext,
    format_markup,
    node_view,
    synthesize_description,
)


def render_profile_html(node, neighborhood):
    """Actor Profile panel body for one node."""
    parts = [
        '<h3>Actor Profile</h3>',
        f'<div class="raft-actor-title">#{html.escape(str(node["id"]))} - {html.escape(node.get("name", ""))}</div>',
    ]
    if node.get('category'):
        parts.append(f'<div class="raft-actor-category">Category: {html.escape(node["category"])}</div>')
    parts.append(
        f'<div class="raft-description">{format_markup(synthesize_description(node, neighborhood))}</div>'
    )
    return '\n'.join(parts)


def render_relationships_html(neighborhood):
    """Relationships & Tensions panel body."""
    parts = [
        '<h3>Relationships &amp; Tensions</h3>',
        f'<strong>Connections: {len(neighborhood)}</strong>',
    ]
    for entry in neighborhood:
        arrow = '→' if entry['direction'] == OUTGOING else '←'
        item = [
            '<div class="raft-connection">',
            f'<div class="raft-connection-title">{arrow} #{html.escape(str(entry["other_node_id"]))}'
            f' - {html.escape(entry["other_node_name"])}</div>',
        ]
        if entry['other_node_category']:
            item.append(f'<div class="raft-connection-category">{html.escape(entry["other_node_category"])}</div>')
        item.append(f'<div><strong>Relationship:</strong> {html.escape(entry["relationship"] or "N/A")}</div>')
        item.append(f'<div><strong>Tensions:</strong> {html.escape(entry["tension"] or "N/A")}</div>')
        item.append('</div>')
        parts.append('\n'.join(item))
    return '\n'.join(parts)


def format_selection_text(selection):
    """Console rendering of both detail panels for the current selection."""
    if selection.is_empty:
        return 'Nothing selected.'

    node = selection.selected_node
    lines = ['Actor Profile', f"#{node['id']} - {node.get('name', '')}"]
    if node.get('category'):
        lines.append(f"Category: {node['category']}")
    lines.append('')
    lines.append(selection.describe().rstrip())
    lines.append('')
    lines.append('Relationships & Tensions')
    lines.append(f'Connections: {len(selection.neighborhood)}')
    for entry in selection.neighborhood:
        arrow = '→' if entry['direction'] == OUTGOING else '←'
        title = f"  {arrow} #{entry['other_node_id']} - {entry['other_node_name']}"
        if entry['other_node_category']:
            title += f" ({entry['other_node_category']})"
        lines.append(title)
        lines.append(f"      Relationship: {entry['relationship'] or 'N/A'}")
        lines.append(f"      Tensions: {entry['tension'] or 'N/A'}")
    return '\n'.join(lines)


class RelationshipGraphVisualizer:
    def __init__(self, builder):
        self.builder = builder

        # Node styling per faction
        self.faction_styles = {
            FRIENDLY: {
                'shape': 'dot',
                'legend': 'Friendly Forces (Nodes 1-17, 33)',
                'swatch': 'hsl(210, 70%, 50%)',
                'note': 'Blue circles (varying shades)',
            },
            ADVERSARY: {
                'shape': 'diamond',
                'legend': 'Hostile Forces (Nodes 18-32)',
                'swatch': 'hsl(0, 70%, 50%)',
                'note': 'Red diamonds (varying shades)',
            },
            NEUTRAL: {
                'shape': 'square',
                'legend': 'Neutral / Other',
                'swatch': '#888888',
                'note': 'Grey squares',
            },
        }
        self.unknown_style = {
            'shape': 'dot',
            'color': '#444444',
            'size': 8,
        }
        self.node_size = 20
        self.edge_style = {'color': '#9AA5B1', 'width': 1}

        self.physics = {
            'gravity': -12000,
            'central_gravity': 0.4,
            'spring_length': 160,
            'spring_strength': 0.02,
            'damping': 0.3,
        }

    def build_network(self, physics_buttons=True):
        """Convert the loaded graph into a pyvis network."""
        graph = self.builder.graph

        net = Network(
            height='900px',
            width='100%',
            bgcolor='#f4f6f8',
            font_color='#0f2537',
            directed=True,
            cdn_resources='remote'
        )
        net.barnes_hut(**self.physics)

        for node_id, data in graph.nodes(data=True):
            style = self.faction_styles.get(data['faction'], self.faction_styles[NEUTRAL])
            net.add_node(
                node_id,
                label=data['label'],
                title=data['name'],
                color=data['color'],
                shape=style['shape'],
                size=self.node_size,
                borderWidth=2,
                faction=data['faction'],
                category=data['category']
            )

        for edge in self.builder.relationships:
            for endpoint in (edge['source'], edge['target']):
                if endpoint not in graph and endpoint not in net.get_nodes():
                    placeholder = node_view(graph, endpoint)
                    net.add_node(
                        endpoint,
                        label=f"#{endpoint}",
                        title=placeholder['name'],
                        color=self.unknown_style['color'],
                        shape=self.unknown_style['shape'],
                        size=self.unknown_style['size'],
                        faction='Unknown'
                    )

            net.add_edge(
                edge['source'],
                edge['target'],
                title=f"{edge['relationship']}\n{edge['tension']}",
                arrows='to',
                color=self.edge_style['color'],
                width=self.edge_style['width']
            )

        if physics_buttons:
            net.show_buttons(filter_=['physics'])

        return net

    def build_panels(self):
        """Precompute both detail panels for every rendered node."""
        graph = self.builder.graph
        relationships = self.builder.relationships
        index = self.builder.incident_index

        node_ids = list(graph.nodes())
        for edge in relationships:
            for endpoint in (edge['source'], edge['target']):
                if endpoint not in graph and endpoint not in node_ids:
                    node_ids.append(endpoint)

        panels = {}
        selection = SelectionContext()
        for node_id in node_ids:
            selection.select(graph, relationships, node_id, index)
            panels[str(node_id)] = {
                'profile': render_profile_html(selection.selected_node, selection.neighborhood),
                'relationships': render_relationships_html(selection.neighborhood),
            }
        return panels

    def create_visualization(self, output_file='raft_graph.html', physics_buttons=True):
        """Create the interactive HTML visualization."""
        print(f"\nCreating visualization: {output_file}")
        print("  Using force-directed layout...")

        net = self.build_network(physics_buttons=physics_buttons)
        net.save_graph(output_file)
        self.enhance_html(output_file)

        print(f"✓ Visualization saved to {output_file}")

    def legend_html(self):
        items = []
        for faction in (FRIENDLY, ADVERSARY, NEUTRAL):
            style = self.faction_styles[faction]
            radius = '50%' if style['shape'] == 'dot' else '3px'
            items.append(f'''
        <div class="legend-section">
            <h4>{style['legend']}</h4>
            <div class="legend-item">
                <div class="legend-color" style="background-color: {style['swatch']}; border-radius: {radius};"></div>
                <span>{style['note']}</span>
            </div>
        </div>''')

        return f'''
    <div id="raft-header">
        <h1>RAFT Visualization</h1>
        <p>Relationship Analysis &amp; Force Topology &middot; {html.escape(self.builder.source_name or '')}</p>
    </div>
    <div id="legend">
        <h3>Legend</h3>{''.join(items)}
        <div class="legend-hint">
            Click an actor for its profile<br>
            Click the background to clear the selection
        </div>
    </div>
    <div id="raft-profile" class="raft-panel"></div>
    <div id="raft-relationships" class="raft-panel">
        <span id="raft-close">&times;</span>
        <div id="raft-relationships-body"></div>
    </div>
    '''

    def enhance_html(self, html_file):
        """Add header, legend and the detail panels to the saved HTML."""
        try:
            with open(html_file, 'r', encoding='utf-8') as f:
                html_content = f.read()

            css_additions = '''
    <style>
    body { margin: 0; padding: 0; overflow: hidden; font-family: Arial, sans-serif; }
    #mynetwork { width: 100vw; height: 100vh; }
    #raft-header {
        position: absolute; top: 0; left: 0; right: 0; height: 80px; z-index: 1001;
        background: linear-gradient(135deg, #0f2537 0%, #1a4063 100%);
        border-bottom: 4px solid #d4af37; padding: 0 32px; color: white;
    }
    #raft-header h1 { margin: 12px 0 0 0; font-size: 28px; letter-spacing: 1px; }
    #raft-header p { margin: 4px 0 0 0; font-size: 13px; opacity: 0.85; }
    #legend {
        position: absolute; bottom: 20px; right: 20px; z-index: 1000;
        background-color: rgba(255, 255, 255, 0.95); border: 2px solid #d4af37;
        border-radius: 8px; padding: 14px; font-size: 12px; max-width: 260px;
    }
    #legend h3 { margin: 0 0 10px 0; font-size: 16px; color: #0f2537; }
    .legend-section h4 { margin: 8px 0 4px 0; font-size: 13px; color: #0f2537; }
    .legend-item { display: flex; align-items: center; padding-left: 8px; color: #555; }
    .legend-color { width: 16px; height: 16px; margin-right: 8px; border: 2px solid #000; }
    .legend-hint { margin-top: 10px; padding-top: 8px; border-top: 1px solid #ddd; color: #777; }
    .raft-panel {
        position: absolute; top: 100px; width: 340px; max-height: 75vh; overflow-y: auto;
        background-color: rgba(255, 255, 255, 0.97); border-radius: 8px; padding: 16px;
        box-shadow: 0 4px 12px rgba(0, 0, 0, 0.3); z-index: 1000; display: none; font-size: 13px;
    }
    #raft-profile { left: 20px; border: 2px solid #1a3a5c; }
    #raft-relationships { right: 20px; border: 2px solid #333; }
    .raft-panel h3 { margin: 0 0 6px 0; font-size: 18px; color: #1a3a5c; }
    .raft-actor-title { font-weight: bold; font-size: 14px; }
    .raft-actor-category, .raft-connection-category { color: #666; font-size: 12px; }
    .raft-description { margin-top: 12px; line-height: 1.6; }
    .raft-connection { margin-top: 10px; padding: 8px; background: #f5f5f5; border-radius: 4px; }
    .raft-connection-title { font-weight: bold; margin-bottom: 4px; }
    #raft-close { position: absolute; top: 10px; right: 14px; cursor: pointer; font-size: 20px; }
    </style>
    '''
            html_content = html_content.replace('</head>', css_additions + '</head>')

            body = re.search(r'<body[^>]*>', html_content)
            if body:
                html_content = (
                    html_content[:body.end()] + '\n' + self.legend_html() + html_content[body.end():]
                )

            panels_json = json.dumps(self.build_panels(), ensure_ascii=False).replace('</', '<\\/')
            js_additions = '''
    <script type="text/javascript">
    var raftPanels = %s;

    function showRaftPanels(nodeId) {
        var panel = raftPanels[String(nodeId)];
        if (!panel) { return; }
        var profile = document.getElementById('raft-profile');
        var relationships = document.getElementById('raft-relationships');
        profile.innerHTML = panel.profile;
        document.getElementById('raft-relationships-body').innerHTML = panel.relationships;
        profile.style.display = 'block';
        relationships.style.display = 'block';
    }

    function hideRaftPanels() {
        document.getElementById('raft-profile').style.display = 'none';
        document.getElementById('raft-relationships').style.display = 'none';
    }

    window.addEventListener('load', function() {
        document.getElementById('raft-close').addEventListener('click', hideRaftPanels);

        setTimeout(function() {
            if (typeof network !== 'undefined') {
                network.on("click", function(params) {
                    if (params.nodes.length > 0) {
                        showRaftPanels(params.nodes[0]);
                    } else {
                        hideRaftPanels();
                    }
                });
            }
        }, 1000);
    });
    </script>
    ''' % panels_json
            html_content = html_content.replace('</body>', js_additions + '\n</body>')

            with open(html_file, 'w', encoding='utf-8') as f:
                f.write(html_content)

            print("  ✓ Enhanced HTML with legend and detail panels")

        except OSError as e:
            print(f"  ⚠ Error enhancing HTML: {e}")

    def print_statistics(self):
        """Print graph statistics."""
        graph = self.builder.graph

        print(f"\n{'=' * 60}")
        print("Graph Statistics")
        print(f"{'=' * 60}")
        print(f"Total Nodes: {graph.number_of_nodes()}")
        print(f"Total Edges: {len(self.builder.relationships)}")

        faction_counts = Counter(data['faction'] for _, data in graph.nodes(data=True))
        print("\nNodes by Faction:")
        for faction, count in faction_counts.most_common():
            print(f"  {faction}: {count}")

        unknown = {edge['target'] for edge in self.builder.unknown_references()}
        if unknown:
            print(f"\nPlaceholder nodes for unknown serials: {len(unknown)}")
        if self.builder.warnings:
            print(f"Warnings while loading: {len(self.builder.warnings)}")
        print(f"{'=' * 60}")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Build an interactive RAFT relationship graph from a CSV dataset'
    )
    parser.add_argument('csv_file', nargs='?',
                        help='Path to the relationship CSV (default: bundled dataset)')
    parser.add_argument('-o', '--output', default='raft_graph.html',
                        help='Path for the output HTML file (default: raft_graph.html)')
    parser.add_argument('--json', dest='json_file',
                        help='Also save nodes, edges and warnings to this JSON file')
    parser.add_argument('--template', metavar='PATH',
                        help='Write a CSV template to PATH and exit')
    parser.add_argument('--inspect', metavar='SERIAL',
                        help='Print the actor profile and relationships for one serial')
    parser.add_argument('--no-physics-buttons', action='store_true',
                        help='Do not add the physics control panel to the HTML')

    args = parser.parse_args(argv)

    if args.template:
        write_template(args.template)
        return 0

    print("RAFT Visualization - Relationship Analysis & Force Topology")
    print("=" * 60)

    builder = RelationshipGraphBuilder()
    if args.csv_file:
        if not os.path.exists(args.csv_file):
            print(f"Error: CSV file not found: {args.csv_file}")
            return 1
        loaded = builder.load_file(args.csv_file)
    else:
        loaded = builder.load_default()

    if not loaded:
        return 1

    if args.inspect:
        if args.inspect not in builder.graph:
            print(f"  ⚠ Serial {args.inspect} is not in the dataset")
        builder.select(args.inspect)
        print()
        print(format_selection_text(builder.selection))
        return 0

    output_dir = os.path.dirname(args.output)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    visualizer = RelationshipGraphVisualizer(builder)
    visualizer.create_visualization(args.output, physics_buttons=not args.no_physics_buttons)

    if args.json_file:
        builder.save_data(args.json_file)

    builder.print_summary()
    visualizer.print_statistics()

    print(f"\n✓ Complete! Open {args.output} in your browser to explore the graph.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
