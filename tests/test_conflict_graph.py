from conflict_graph import (
    build_seat_graph, conflict_stats, find_adjacency_conflicts, get_adjacent_positions,
)
from tests.builders import make_placement, make_result


def test_adjacent_positions_respect_room_edges():
    assert sorted(get_adjacent_positions(0, 0, 3, 3)) == [(0, 1), (1, 0), (1, 1)]
    assert len(get_adjacent_positions(1, 1, 3, 3)) == 8
    assert get_adjacent_positions(0, 0, 1, 1) == []


def test_seat_graph_links_touching_occupied_seats():
    placement = make_placement('Hall', [['A', None, 'B'], ['B', 'A', None]])
    graph = build_seat_graph(placement)

    assert set(graph.nodes) == {(0, 0), (0, 2), (1, 0), (1, 1)}
    assert graph.has_edge((0, 0), (1, 1))
    assert graph.edges[(0, 0), (1, 1)]['conflict'] is True
    assert graph.edges[(0, 0), (1, 0)]['conflict'] is False
    assert not graph.has_edge((0, 0), (0, 2))


def test_alternating_row_has_no_conflicts():
    result = make_result(make_placement('Row', [['A', 'B', 'A', 'B']]))

    assert find_adjacency_conflicts(result) == []
    assert conflict_stats(result)['total_conflicts'] == 0


def test_diagonal_conflicts_are_reported_per_pair():
    result = make_result(make_placement('Hall 1', [['A', 'B', 'A'], ['B', 'A', 'B']]))

    conflicts = find_adjacency_conflicts(result)

    assert [(c['subject'], c['seats']) for c in conflicts] == [
        ('A', [[0, 0], [1, 1]]),
        ('B', [[0, 1], [1, 0]]),
        ('B', [[0, 1], [1, 2]]),
        ('A', [[0, 2], [1, 1]]),
    ]
    assert conflicts[0]['room_name'] == 'Hall 1'
    assert conflicts[0]['examinee_ids'] == ['Hall 1-0-0', 'Hall 1-1-1']


def test_stats_count_rooms_and_largest_cluster():
    result = make_result(
        make_placement('Full', [['A', 'A'], ['A', 'A']]),
        make_placement('Clean', [['A', 'B']]),
    )

    stats = conflict_stats(result)

    assert stats['total_conflicts'] == 6
    assert stats['rooms_with_conflicts'] == {'Full': 6}
    assert stats['largest_cluster'] == 4
    assert stats['seated'] == 6
    assert stats['unallocated'] == 0
