import argparse
import logging
import os

import pandas as pd

from conflict_graph import conflict_stats
from exports import parse_students_csv, parse_halls_csv, export_csv, export_excel, csv_filename, excel_filename
from seat_layout import AllocationOptions, Examinee, ExamSession, Room, allocate_seating

EXPORT_DIR = os.environ.get('SEATING_EXPORT_DIR', 'exports')


def load_examinees(path):
    """Roster rows become examinees; the roll number doubles as the id."""
    return [
        Examinee(id=row['roll_no'], roll_no=row['roll_no'], name=row['name'],
                 department=row['department'], subject=row['subject'])
        for row in parse_students_csv(path)
    ]


def load_rooms(path):
    return [
        Room(id=str(idx + 1), name=hall['name'], rows=hall['rows'], columns=hall['columns'])
        for idx, hall in enumerate(parse_halls_csv(path))
    ]


def write_unallocated(result, output_dir):
    path = os.path.join(output_dir, f"Unallocated_{result.exam_id}.csv")
    pd.DataFrame(
        [[e.roll_no, e.name, e.department, e.subject] for e in result.unallocated],
        columns=['Roll No', 'Name', 'Department', 'Subject'],
    ).to_csv(path, index=False)
    return path


def main(students_csv, halls_csv, subjects=None, exam_name='Exam', exam_date='',
         spacing=False, strict=False, seed=None, output_dir=EXPORT_DIR):
    """
    Batch entry point: CSV roster + CSV halls in, seating plan files out.

    Args:
        students_csv: Roster with Roll No, Name, Department, Subject
        halls_csv: Halls with Name, Rows, Columns
        subjects: Subjects in scope; every subject on the roster when None
        spacing: Leave a checkerboard of empty seats
        strict: Never seat same-subject neighbours, even at the cost of a seat
        seed: Fix the shuffle for a reproducible plan

    Returns:
        The AllocationResult
    """
    print("Exam Seating Allocator")
    print("=" * 40)

    examinees = load_examinees(students_csv)
    rooms = load_rooms(halls_csv)
    print(f"Loaded {len(examinees)} students and {len(rooms)} halls "
          f"(total capacity: {sum(r.capacity for r in rooms)})")

    if not subjects:
        subjects = list(dict.fromkeys(e.subject for e in examinees))
    session = ExamSession(id=exam_name, subjects=tuple(subjects), name=exam_name, date=exam_date)
    print(f"  Subjects: {', '.join(session.subjects)}")

    result = allocate_seating(
        session, rooms, examinees,
        options=AllocationOptions(empty_seat_spacing=spacing, strict_adjacency=strict),
        rng=seed,
    )

    os.makedirs(output_dir, exist_ok=True)
    with open(os.path.join(output_dir, csv_filename(result)), 'w', newline='') as f:
        f.write(export_csv(result))
    with open(os.path.join(output_dir, excel_filename(exam_name)), 'wb') as f:
        f.write(export_excel(result, exam_name=exam_name, exam_date=exam_date))

    for placement in result.placements:
        print(f"    {placement.room_name}: {placement.seated_count} students")

    if result.unallocated:
        path = write_unallocated(result, output_dir)
        print(f"  Warning: {len(result.unallocated)} students could not be seated (see {path})")

    stats = conflict_stats(result)
    if stats['total_conflicts']:
        print(f"  Note: {stats['total_conflicts']} adjacent same-subject pairs were unavoidable")

    print("\n" + "=" * 40)
    print("Complete!")
    print(f"  Exports: {output_dir}/")
    return result


def build_parser():
    parser = argparse.ArgumentParser(description="Assign exam seats with subject separation.")
    parser.add_argument('students_csv')
    parser.add_argument('halls_csv')
    parser.add_argument('--subject', action='append', dest='subjects',
                        help="Subject in scope (repeatable); defaults to all on the roster")
    parser.add_argument('--exam-name', default='Exam')
    parser.add_argument('--exam-date', default='')
    parser.add_argument('--spacing', action='store_true', help="Leave alternate seats empty")
    parser.add_argument('--strict', action='store_true', help="Never allow same-subject neighbours")
    parser.add_argument('--seed', type=int)
    parser.add_argument('--output-dir', default=EXPORT_DIR)
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser


if __name__ == '__main__':
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    main(
        args.students_csv, args.halls_csv, subjects=args.subjects,
        exam_name=args.exam_name, exam_date=args.exam_date,
        spacing=args.spacing, strict=args.strict, seed=args.seed,
        output_dir=args.output_dir,
    )
