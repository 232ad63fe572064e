import logging
import random

import pytest

from conflict_graph import find_adjacency_conflicts
from seat_layout import (
    AllocationOptions, AllocationResult, ExamSession, Room, SubjectQueues,
    allocate_seating, get_filled_neighbours, has_subject_conflict, is_spacing_seat,
)
from tests.builders import make_examinees


def subject_grid(placement):
    return [[seat.examinee.subject if seat.examinee else None for seat in row] for row in placement.seats]


def seated_ids(result):
    return [seat.examinee.id for p in result.placements for seat in p.occupied_seats()]


def random_scenario(seed):
    gen = random.Random(seed)
    counts = {s: gen.randint(0, 12) for s in 'ABCDE'}
    in_scope = tuple(gen.sample('ABCDE', gen.randint(1, 4)))
    rooms = [
        Room(id=str(i), name=f"Hall {i}", rows=gen.randint(-1, 5), columns=gen.randint(0, 6))
        for i in range(gen.randint(0, 3))
    ]
    options = AllocationOptions(empty_seat_spacing=gen.random() < 0.4, strict_adjacency=gen.random() < 0.3)
    return ExamSession(id=f"exam-{seed}", subjects=in_scope), rooms, make_examinees(counts), options


# Example layouts

def test_two_subjects_fill_two_by_three_room():
    session = ExamSession(id='e1', subjects=('A', 'B'))
    rooms = [Room(id='r1', name='Hall 1', rows=2, columns=3)]

    result = allocate_seating(session, rooms, make_examinees({'A': 3, 'B': 3}), rng=11)

    assert result.seated_count == 6
    assert result.unallocated == ()
    assert subject_grid(result.placements[0]) == [['A', 'B', 'A'], ['B', 'A', 'B']]


def test_two_by_three_room_has_no_orthogonal_neighbours_sharing_subject():
    session = ExamSession(id='e1', subjects=('A', 'B'))
    result = allocate_seating(session, [Room('r1', 'Hall 1', 2, 3)], make_examinees({'A': 3, 'B': 3}), rng=3)
    grid = subject_grid(result.placements[0])

    for r in range(2):
        for c in range(3):
            if r > 0:
                assert grid[r][c] != grid[r - 1][c]
            if c > 0:
                assert grid[r][c] != grid[r][c - 1]


def test_single_row_alternates_subjects_without_conflicts():
    session = ExamSession(id='e1', subjects=('A', 'B'))
    result = allocate_seating(session, [Room('r1', 'Row', 1, 6)], make_examinees({'A': 3, 'B': 3}), rng=5)

    assert subject_grid(result.placements[0]) == [['A', 'B', 'A', 'B', 'A', 'B']]
    assert find_adjacency_conflicts(result) == []


def test_largest_remaining_subject_is_seated_first():
    session = ExamSession(id='e1', subjects=('A', 'B'))
    result = allocate_seating(session, [Room('r1', 'Tiny', 1, 1)], make_examinees({'A': 1, 'B': 3}), rng=0)

    assert subject_grid(result.placements[0]) == [['B']]


def test_ties_are_broken_by_session_subject_order():
    session = ExamSession(id='e1', subjects=('B', 'A'))
    result = allocate_seating(session, [Room('r1', 'Tiny', 1, 1)], make_examinees({'A': 2, 'B': 2}), rng=0)

    assert subject_grid(result.placements[0]) == [['B']]


# Fallback and strictness

def test_single_subject_falls_back_to_conflicting_seats():
    session = ExamSession(id='e1', subjects=('A',))
    result = allocate_seating(session, [Room('r1', 'Hall', 2, 2)], make_examinees({'A': 4}), rng=1)

    assert result.seated_count == 4
    assert result.unallocated == ()
    assert len(find_adjacency_conflicts(result)) == 6


def test_strict_adjacency_leaves_seats_empty_instead_of_conflicting():
    session = ExamSession(id='e1', subjects=('A',))
    options = AllocationOptions(strict_adjacency=True)
    result = allocate_seating(session, [Room('r1', 'Hall', 2, 2)], make_examinees({'A': 4}),
                              options=options, rng=1)

    assert subject_grid(result.placements[0]) == [['A', None], [None, None]]
    assert len(result.unallocated) == 3


def test_spacing_mode_never_falls_back():
    session = ExamSession(id='e1', subjects=('A',))
    options = AllocationOptions(empty_seat_spacing=True)
    result = allocate_seating(session, [Room('r1', 'Hall', 2, 2)], make_examinees({'A': 4}),
                              options=options, rng=1)

    # (1, 1) is a spacing-eligible seat, but diagonal to the examinee at (0, 0)
    assert subject_grid(result.placements[0]) == [['A', None], [None, None]]
    assert len(result.unallocated) == 3


@pytest.mark.parametrize('seed', range(25))
def test_conflicts_only_come_from_fallback_placements(seed, caplog):
    session = ExamSession(id='e1', subjects=('A', 'B', 'C'))
    gen = random.Random(seed)
    examinees = make_examinees({'A': gen.randint(5, 25), 'B': gen.randint(0, 10), 'C': gen.randint(0, 6)})
    rooms = [Room('r1', 'Hall 1', 4, 5), Room('r2', 'Hall 2', 3, 3)]

    with caplog.at_level(logging.DEBUG, logger='seat_layout'):
        result = allocate_seating(session, rooms, examinees, rng=seed)

    fallbacks = {
        (rec.args[1], rec.args[2], rec.args[3])
        for rec in caplog.records if rec.getMessage().startswith('Fallback')
    }
    for conflict in find_adjacency_conflicts(result):
        later = max(tuple(pos) for pos in conflict['seats'])
        assert (conflict['room_name'],) + later in fallbacks


@pytest.mark.parametrize('seed', range(25))
def test_strict_mode_never_produces_conflicts(seed):
    session, rooms, examinees, _ = random_scenario(seed)
    result = allocate_seating(session, rooms, examinees,
                              options=AllocationOptions(strict_adjacency=True), rng=seed)

    assert find_adjacency_conflicts(result) == []


# Structural properties

@pytest.mark.parametrize('seed', range(40))
def test_every_eligible_examinee_is_seated_or_unallocated_exactly_once(seed):
    session, rooms, examinees, options = random_scenario(seed)
    result = allocate_seating(session, rooms, examinees, options=options, rng=seed)

    eligible = {e.id for e in examinees if e.subject in session.subjects}
    accounted = seated_ids(result) + [e.id for e in result.unallocated]

    assert len(accounted) == len(set(accounted))
    assert set(accounted) == eligible


@pytest.mark.parametrize('seed', range(40))
def test_grids_are_complete_and_in_room_order(seed):
    session, rooms, examinees, options = random_scenario(seed)
    result = allocate_seating(session, rooms, examinees, options=options, rng=seed)

    assert [p.room_id for p in result.placements] == [r.id for r in rooms]
    for room, placement in zip(rooms, result.placements):
        rows, cols = room.grid_size
        assert len(placement.seats) == rows
        for r, row in enumerate(placement.seats):
            assert len(row) == cols
            assert [(s.row, s.col) for s in row] == [(r, c) for c in range(cols)]


@pytest.mark.parametrize('seed', range(30))
def test_spacing_mask_seats_stay_empty(seed):
    session, rooms, examinees, _ = random_scenario(seed)
    options = AllocationOptions(empty_seat_spacing=True)
    result = allocate_seating(session, rooms, examinees, options=options, rng=seed)

    for placement in result.placements:
        for row in placement.seats:
            for seat in row:
                if (seat.row + seat.col) % 2 != 0:
                    assert seat.is_empty


def test_overflow_leaves_exactly_the_excess_unallocated():
    session = ExamSession(id='e1', subjects=('A', 'B', 'C'))
    rooms = [Room('r1', 'Hall 1', 2, 3), Room('r2', 'Hall 2', 3, 3)]
    result = allocate_seating(session, rooms, make_examinees({'A': 10, 'B': 10, 'C': 10}), rng=2)

    assert result.seated_count == 15
    assert len(result.unallocated) == 30 - 15


def test_spare_capacity_seats_everyone():
    session = ExamSession(id='e1', subjects=('A', 'B', 'C'))
    rooms = [Room('r1', 'Hall 1', 5, 5), Room('r2', 'Hall 2', 4, 4)]
    result = allocate_seating(session, rooms, make_examinees({'A': 9, 'B': 7, 'C': 4}), rng=2)

    assert result.seated_count == 20
    assert result.unallocated == ()
    # Once supply runs out the remaining seats, including the whole second hall, stay empty
    assert subject_grid(result.placements[0])[4] == [None] * 5
    assert result.placements[1].seated_count == 0


def test_spacing_overflow_counts_only_usable_seats():
    session = ExamSession(id='e1', subjects=('A',))
    options = AllocationOptions(empty_seat_spacing=True)
    result = allocate_seating(session, [Room('r1', 'Row', 1, 5)], make_examinees({'A': 5}),
                              options=options, rng=4)

    assert subject_grid(result.placements[0]) == [['A', None, 'A', None, 'A']]
    assert len(result.unallocated) == 2


# Degenerate inputs

def test_no_rooms_leaves_everyone_unallocated():
    session = ExamSession(id='e1', subjects=('A', 'B'))
    result = allocate_seating(session, [], make_examinees({'A': 2, 'B': 3, 'C': 4}), rng=0)

    assert result.placements == ()
    assert len(result.unallocated) == 5


def test_no_eligible_examinees_returns_empty_grids():
    session = ExamSession(id='e1', subjects=('X',))
    rooms = [Room('r1', 'Hall 1', 2, 2), Room('r2', 'Hall 2', 1, 3)]
    result = allocate_seating(session, rooms, make_examinees({'A': 3}), rng=0)

    assert len(result.placements) == 2
    assert result.seated_count == 0
    assert result.unallocated == ()


def test_empty_subject_set_is_not_an_error():
    session = ExamSession(id='e1', subjects=())
    result = allocate_seating(session, [Room('r1', 'Hall', 1, 2)], make_examinees({'A': 3}), rng=0)

    assert result.seated_count == 0
    assert result.unallocated == ()
    assert subject_grid(result.placements[0]) == [[None, None]]


def test_no_examinees():
    session = ExamSession(id='e1', subjects=('A',))
    result = allocate_seating(session, [Room('r1', 'Hall', 2, 2)], [], rng=0)

    assert result.seated_count == 0
    assert result.unallocated == ()


def test_ineligible_examinees_never_appear():
    session = ExamSession(id='e1', subjects=('A',))
    result = allocate_seating(session, [Room('r1', 'Hall', 1, 1)], make_examinees({'A': 2, 'Z': 5}), rng=0)

    everyone = seated_ids(result) + [e.id for e in result.unallocated]
    assert all(eid.startswith('s-A-') for eid in everyone)
    assert len(everyone) == 2


@pytest.mark.parametrize('rows,columns,expected', [
    (-2, 3, (0, 3)),
    ('abc', 3, (0, 3)),
    (None, 4, (0, 4)),
    (3, 0, (3, 0)),
    ('2', '2', (2, 2)),
])
def test_malformed_room_dimensions_are_clamped(rows, columns, expected):
    room = Room('r1', 'Odd', rows, columns)
    session = ExamSession(id='e1', subjects=('A',))
    result = allocate_seating(session, [room], make_examinees({'A': 3}), rng=0)

    placement = result.placements[0]
    assert room.grid_size == expected
    assert len(placement.seats) == expected[0]
    assert all(len(row) == expected[1] for row in placement.seats)
    assert result.seated_count + len(result.unallocated) == 3


# Randomness

def test_same_seed_gives_same_seating():
    session = ExamSession(id='e1', subjects=('A', 'B', 'C'))
    rooms = [Room('r1', 'Hall 1', 3, 4), Room('r2', 'Hall 2', 2, 2)]
    examinees = make_examinees({'A': 8, 'B': 6, 'C': 5})

    first = allocate_seating(session, rooms, examinees, rng=99).to_dict()
    second = allocate_seating(session, rooms, examinees, rng=random.Random(99)).to_dict()

    assert first['placements'] == second['placements']
    assert first['unallocated'] == second['unallocated']


def test_shuffle_decides_who_sits_first():
    session = ExamSession(id='e1', subjects=('A',))
    examinees = make_examinees({'A': 30})
    firsts = {
        allocate_seating(session, [Room('r1', 'Hall', 1, 1)], examinees, rng=seed).placements[0].seats[0][0].examinee.id
        for seed in range(20)
    }
    assert len(firsts) > 1


def test_global_random_generator_is_not_used(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("module-level random used")

    monkeypatch.setattr(random, 'shuffle', fail)
    monkeypatch.setattr(random, 'random', fail)

    session = ExamSession(id='e1', subjects=('A', 'B'))
    result = allocate_seating(session, [Room('r1', 'Hall', 2, 2)], make_examinees({'A': 2, 'B': 2}))
    assert result.seated_count == 4


def test_leftovers_keep_subject_order_then_shuffled_order():
    session = ExamSession(id='e1', subjects=('B', 'A'))
    examinees = make_examinees({'A': 4, 'B': 3, 'C': 2})

    result = allocate_seating(session, [], examinees, rng=7)

    eligible = [e for e in examinees if e.subject in ('A', 'B')]
    random.Random(7).shuffle(eligible)
    expected = [e for e in eligible if e.subject == 'B'] + [e for e in eligible if e.subject == 'A']
    assert list(result.unallocated) == expected


# Helpers

def test_session_drops_duplicate_subjects():
    assert ExamSession(id='e1', subjects=('A', 'B', 'A')).subjects == ('A', 'B')


def test_subject_queues_pop_in_order_and_report_leftovers():
    examinees = make_examinees({'A': 3, 'B': 1})
    queues = SubjectQueues(['A', 'B', 'C'], examinees)

    assert queues.candidates() == ['A', 'B']
    assert queues.pop('A').id == 's-A-0'
    assert queues.remaining('A') == 2
    assert queues.remaining('C') == 0
    assert [e.id for e in queues.leftovers()] == ['s-A-1', 's-A-2', 's-B-0']
    assert not queues.is_exhausted()

    for subject in ('A', 'A', 'B'):
        queues.pop(subject)
    assert queues.is_exhausted()
    assert queues.candidates() == []


def test_fill_stops_asking_for_candidates_once_queues_run_dry(monkeypatch):
    calls = []
    original = SubjectQueues.candidates

    def counting(self):
        calls.append(1)
        return original(self)

    monkeypatch.setattr(SubjectQueues, 'candidates', counting)
    session = ExamSession(id='e1', subjects=('A', 'B'))
    result = allocate_seating(session, [Room('r1', 'Hall 1', 3, 3)], make_examinees({'A': 1, 'B': 1}), rng=0)

    assert result.seated_count == 2
    assert len(calls) == 2


def test_filled_neighbours_only_look_up_and_left():
    assert get_filled_neighbours(0, 0, 3) == []
    assert sorted(get_filled_neighbours(1, 1, 3)) == [(0, 0), (0, 1), (0, 2), (1, 0)]
    assert sorted(get_filled_neighbours(1, 2, 3)) == [(0, 1), (0, 2), (1, 1)]


def test_has_subject_conflict_checks_upper_diagonal():
    examinee = make_examinees({'A': 1})[0]
    grid = [[None, None, examinee], [None, None, None]]

    assert has_subject_conflict(grid, 1, 1, 'A')
    assert not has_subject_conflict(grid, 1, 1, 'B')
    assert not has_subject_conflict(grid, 1, 0, 'A')


def test_spacing_seat_pattern():
    assert not is_spacing_seat(0, 0)
    assert is_spacing_seat(0, 1)
    assert is_spacing_seat(1, 0)
    assert not is_spacing_seat(1, 1)


def test_result_survives_a_snapshot_round_trip():
    session = ExamSession(id='e1', subjects=('A', 'B'))
    result = allocate_seating(session, [Room('r1', 'Hall', 2, 3)], make_examinees({'A': 4, 'B': 4}), rng=8)

    restored = AllocationResult.from_dict(result.to_dict())

    assert restored == result
    assert restored.seat_of(result.unallocated[0].id) is None
    placement, seat = restored.seat_of(result.placements[0].seats[0][0].examinee.id)
    assert (placement.room_id, seat.row, seat.col) == ('r1', 0, 0)
