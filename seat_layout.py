import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Examinee:
    id: str
    roll_no: str
    name: str
    department: str
    subject: str

    def to_dict(self):
        return {
            'id': self.id,
            'roll_no': self.roll_no,
            'name': self.name,
            'department': self.department,
            'subject': self.subject,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data['id']),
            roll_no=str(data.get('roll_no', '')),
            name=str(data.get('name', '')),
            department=str(data.get('department', '')),
            subject=str(data['subject']),
        )


def _clamp_dimension(value):
    """Coerce a row/column count to a non-negative int; junk becomes 0."""
    try:
        value = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, value)


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    rows: int
    columns: int

    @property
    def grid_size(self) -> Tuple[int, int]:
        return _clamp_dimension(self.rows), _clamp_dimension(self.columns)

    @property
    def capacity(self) -> int:
        rows, cols = self.grid_size
        return rows * cols


@dataclass(frozen=True)
class ExamSession:
    id: str
    subjects: Tuple[str, ...]
    name: str = ''
    date: str = ''

    def __post_init__(self):
        # Keep first-seen order, drop repeats
        object.__setattr__(self, 'subjects', tuple(dict.fromkeys(self.subjects or ())))


@dataclass(frozen=True)
class AllocationOptions:
    """
    Knobs for a single allocation run.

    empty_seat_spacing: leave every seat with (row + col) odd empty.
    strict_adjacency: never seat a same-subject neighbour, even if that
        leaves a usable seat empty. Off by default, so that dense
        single-subject tails still fill the hall.
    """
    empty_seat_spacing: bool = False
    strict_adjacency: bool = False


@dataclass(frozen=True)
class Seat:
    row: int
    col: int
    examinee: Optional[Examinee] = None

    @property
    def is_empty(self):
        return self.examinee is None

    def to_dict(self):
        return {
            'row': self.row,
            'col': self.col,
            'examinee': self.examinee.to_dict() if self.examinee else None,
        }


@dataclass(frozen=True)
class RoomPlacement:
    room_id: str
    room_name: str
    seats: Tuple[Tuple[Seat, ...], ...]

    @property
    def rows(self):
        return len(self.seats)

    @property
    def columns(self):
        return len(self.seats[0]) if self.seats else 0

    def occupied_seats(self) -> List[Seat]:
        return [seat for row in self.seats for seat in row if seat.examinee is not None]

    @property
    def seated_count(self):
        return len(self.occupied_seats())

    def to_dict(self):
        return {
            'room_id': self.room_id,
            'room_name': self.room_name,
            'rows': self.rows,
            'columns': self.columns,
            'seats': [[seat.to_dict() for seat in row] for row in self.seats],
        }

    @classmethod
    def from_dict(cls, data):
        seats = tuple(
            tuple(
                Seat(
                    row=cell['row'],
                    col=cell['col'],
                    examinee=Examinee.from_dict(cell['examinee']) if cell.get('examinee') else None,
                )
                for cell in row
            )
            for row in data.get('seats', [])
        )
        return cls(room_id=str(data['room_id']), room_name=data.get('room_name', ''), seats=seats)


@dataclass(frozen=True)
class AllocationResult:
    id: str
    exam_id: str
    created_at: datetime
    placements: Tuple[RoomPlacement, ...] = field(default_factory=tuple)
    unallocated: Tuple[Examinee, ...] = field(default_factory=tuple)

    @property
    def seated_count(self):
        return sum(p.seated_count for p in self.placements)

    def seat_of(self, examinee_id):
        """Return (room_placement, seat) for an examinee, or None if unseated."""
        for placement in self.placements:
            for seat in placement.occupied_seats():
                if seat.examinee.id == examinee_id:
                    return placement, seat
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'exam_id': self.exam_id,
            'created_at': self.created_at.isoformat(),
            'placements': [p.to_dict() for p in self.placements],
            'unallocated': [e.to_dict() for e in self.unallocated],
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            exam_id=str(data['exam_id']),
            created_at=datetime.fromisoformat(data['created_at']),
            placements=tuple(RoomPlacement.from_dict(p) for p in data.get('placements', [])),
            unallocated=tuple(Examinee.from_dict(e) for e in data.get('unallocated', [])),
        )


class SubjectQueues:
    """Per-subject FIFO queues over pre-shuffled lists, popped via a cursor."""

    def __init__(self, subjects, examinees):
        self.subjects = list(subjects)
        self._lists: Dict[str, List[Examinee]] = {subject: [] for subject in self.subjects}
        self._cursors: Dict[str, int] = {subject: 0 for subject in self.subjects}
        for examinee in examinees:
            self._lists[examinee.subject].append(examinee)

    def remaining(self, subject):
        return len(self._lists[subject]) - self._cursors[subject]

    def is_exhausted(self):
        return all(self.remaining(s) == 0 for s in self.subjects)

    def candidates(self):
        """Subjects with supply left, most remaining first (stable on subject order)."""
        available = [s for s in self.subjects if self.remaining(s) > 0]
        return sorted(available, key=self.remaining, reverse=True)

    def pop(self, subject):
        examinee = self._lists[subject][self._cursors[subject]]
        self._cursors[subject] += 1
        return examinee

    def leftovers(self):
        left = []
        for subject in self.subjects:
            left.extend(self._lists[subject][self._cursors[subject]:])
        return left


def get_filled_neighbours(row, col, cols):
    """Positions already visited in a row-major scan: up, left, up-left, up-right."""
    neighbours = []
    if row > 0:
        neighbours.append((row - 1, col))
        if col > 0:
            neighbours.append((row - 1, col - 1))
        if col < cols - 1:
            neighbours.append((row - 1, col + 1))
    if col > 0:
        neighbours.append((row, col - 1))
    return neighbours


def has_subject_conflict(grid, row, col, subject):
    """
    Check if placing `subject` at (row, col) would sit next to the same subject.

    Args:
        grid: rows x cols list of Examinee or None, filled so far
        row, col: Position to check
        subject: Subject code of the candidate

    Returns:
        True if any previously filled neighbour shares the subject
    """
    cols = len(grid[row])
    for r, c in get_filled_neighbours(row, col, cols):
        occupant = grid[r][c]
        if occupant is not None and occupant.subject == subject:
            return True
    return False


def is_spacing_seat(row, col):
    """Seats skipped by the checkerboard spacing mask."""
    return (row + col) % 2 != 0


def _resolve_rng(rng):
    if rng is None:
        return random.Random()
    if isinstance(rng, random.Random):
        return rng
    return random.Random(rng)


def _fill_room(room, queues, options, fallbacks):
    rows, cols = room.grid_size
    grid = [[None] * cols for _ in range(rows)]

    for r in range(rows):
        for c in range(cols):
            if options.empty_seat_spacing and is_spacing_seat(r, c):
                continue

            if queues.is_exhausted():
                continue

            candidates = queues.candidates()

            chosen = next(
                (s for s in candidates if not has_subject_conflict(grid, r, c, s)),
                None,
            )
            if chosen is None and not options.empty_seat_spacing and not options.strict_adjacency:
                # Accept the conflict rather than waste the seat
                chosen = candidates[0]
                fallbacks.append((room.id, r, c, chosen))
                logger.debug("Fallback placement of %s at %s (%d, %d)", chosen, room.name, r, c)

            if chosen is not None:
                grid[r][c] = queues.pop(chosen)

    seats = tuple(
        tuple(Seat(row=r, col=c, examinee=grid[r][c]) for c in range(cols))
        for r in range(rows)
    )
    return RoomPlacement(room_id=room.id, room_name=room.name, seats=seats)


def allocate_seating(session, rooms, examinees, options=None, rng=None, now=None):
    """
    Seat the examinees of an exam session across the given rooms.

    Eligible examinees are shuffled, bucketed by subject and dealt out seat by
    seat in row-major order, largest remaining subject first, avoiding a
    same-subject examinee directly above, to the left or diagonally above.

    Args:
        session: ExamSession whose subjects define who is eligible
        rooms: Ordered list of Room; each is filled in turn
        examinees: Full examinee population (ineligible ones are ignored)
        options: AllocationOptions, defaults to no spacing and fallback allowed
        rng: random.Random instance or seed; a private generator when None
        now: Creation timestamp override

    Returns:
        AllocationResult with one RoomPlacement per room, in input order,
        and the eligible examinees that could not be seated
    """
    options = options or AllocationOptions()
    rng = _resolve_rng(rng)

    subjects = set(session.subjects)
    eligible = [e for e in examinees if e.subject in subjects]
    rng.shuffle(eligible)

    queues = SubjectQueues(session.subjects, eligible)
    fallbacks = []
    placements = tuple(_fill_room(room, queues, options, fallbacks) for room in rooms)
    unallocated = tuple(queues.leftovers())

    result = AllocationResult(
        id=f"alloc-{uuid.uuid4().hex[:12]}",
        exam_id=session.id,
        created_at=now or datetime.now(timezone.utc),
        placements=placements,
        unallocated=unallocated,
    )

    logger.info(
        "Allocation %s for exam %s: %d eligible, %d seated, %d unallocated, %d rooms, %d fallback seats",
        result.id, session.id, len(eligible), result.seated_count, len(unallocated),
        len(placements), len(fallbacks),
    )
    return result
