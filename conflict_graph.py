import logging
from collections import Counter

import networkx as nx

logger = logging.getLogger(__name__)


def get_adjacent_positions(row, col, rows, cols):
    """Get all valid adjacent positions (including diagonals)."""
    adjacents = []
    for dr in [-1, 0, 1]:
        for dc in [-1, 0, 1]:
            if dr == 0 and dc == 0:
                continue
            nr, nc = row + dr, col + dc
            if 0 <= nr < rows and 0 <= nc < cols:
                adjacents.append((nr, nc))
    return adjacents


def build_seat_graph(placement):
    """
    Build a graph of one room's occupied seats.

    Nodes are (row, col) positions carrying the seated examinee. Edges join
    occupied seats that touch orthogonally or diagonally; an edge is marked
    `conflict=True` when both seats hold the same subject.

    Args:
        placement: RoomPlacement from an allocation run

    Returns:
        NetworkX graph
    """
    graph = nx.Graph()
    rows, cols = placement.rows, placement.columns

    for seat in placement.occupied_seats():
        graph.add_node((seat.row, seat.col), examinee=seat.examinee, subject=seat.examinee.subject)

    for node, data in list(graph.nodes(data=True)):
        for adj in get_adjacent_positions(node[0], node[1], rows, cols):
            if adj in graph and not graph.has_edge(node, adj):
                same = graph.nodes[adj]['subject'] == data['subject']
                graph.add_edge(node, adj, conflict=same)

    return graph


def conflict_subgraph(graph):
    """Subgraph holding only the same-subject edges."""
    edges = [(u, v) for u, v, same in graph.edges(data='conflict') if same]
    return graph.edge_subgraph(edges)


def find_adjacency_conflicts(result):
    """
    List every pair of touching seats that share a subject.

    Returns:
        List of dicts with room, subject and the two (row, col) positions,
        ordered by room then scan position
    """
    conflicts = []
    for placement in result.placements:
        graph = build_seat_graph(placement)
        for u, v in sorted(tuple(sorted(edge)) for edge in conflict_subgraph(graph).edges()):
            conflicts.append({
                'room_id': placement.room_id,
                'room_name': placement.room_name,
                'subject': graph.nodes[u]['subject'],
                'seats': [list(u), list(v)],
                'examinee_ids': [graph.nodes[u]['examinee'].id, graph.nodes[v]['examinee'].id],
            })

    if conflicts:
        logger.warning("Allocation %s has %d adjacent same-subject pairs", result.id, len(conflicts))
    return conflicts


def conflict_stats(result):
    """Summarise conflicts per room and the largest same-subject cluster."""
    per_room = Counter()
    largest_cluster = 0
    total = 0

    for placement in result.placements:
        sub = conflict_subgraph(build_seat_graph(placement))
        count = sub.number_of_edges()
        total += count
        if count:
            per_room[placement.room_name] += count
            largest_cluster = max(largest_cluster, max(len(c) for c in nx.connected_components(sub)))

    return {
        'total_conflicts': total,
        'rooms_with_conflicts': dict(per_room),
        'largest_cluster': largest_cluster,
        'seated': result.seated_count,
        'unallocated': len(result.unallocated),
    }
