"""
Roster import and seating-plan export.

Everything here works on plain rows or on an AllocationResult; nothing
touches the database.
"""

import io
import re

import pandas as pd
from openpyxl.utils import get_column_letter

STUDENT_COLUMNS = ['Roll No', 'Name', 'Department', 'Subject']
HALL_COLUMNS = ['Name', 'Rows', 'Columns']
MASTER_COLUMNS = ['Hall', 'Row', 'Column', 'Roll No', 'Name', 'Department', 'Subject']

TEMPLATE_ROWS = [
    ['2023CS001', 'John Doe', 'Computer Science', 'Data Structures'],
    ['2023ME042', 'Jane Smith', 'Mechanical', 'Thermodynamics'],
    ['2023EC015', 'Mike Ross', 'Electronics', 'Signals & Systems'],
]

MAX_SHEET_NAME = 31
_INVALID_SHEET_CHARS = re.compile(r'[\[\]:*?/\\]')


def _normalise(name):
    return re.sub(r'[\s_]+', '', str(name)).lower()


def _read_table(source, required):
    if isinstance(source, bytes):
        source = io.BytesIO(source)
    df = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)

    by_key = {_normalise(col): col for col in df.columns}
    missing = [col for col in required if _normalise(col) not in by_key]
    if missing:
        raise ValueError(f"Missing columns: {missing}")

    df = df.rename(columns={by_key[_normalise(col)]: col for col in required})[required].copy()
    for col in required:
        df[col] = df[col].astype(str).str.strip()
    return df


def parse_students_csv(source):
    """
    Read a student roster (Roll No, Name, Department, Subject).

    Header matching ignores case, spaces and underscores. Rows without a
    roll number or a name are skipped.

    Args:
        source: Path, file object or raw bytes of the CSV

    Returns:
        List of dicts with roll_no, name, department and subject keys
    """
    df = _read_table(source, STUDENT_COLUMNS)
    df = df[(df['Roll No'] != '') & (df['Name'] != '')]
    return [
        {
            'roll_no': row['Roll No'],
            'name': row['Name'],
            'department': row['Department'],
            'subject': row['Subject'],
        }
        for _, row in df.iterrows()
    ]


def parse_halls_csv(source):
    """Read hall definitions (Name, Rows, Columns)."""
    df = _read_table(source, HALL_COLUMNS)
    halls = []
    for _, row in df.iterrows():
        if not row['Name']:
            continue
        try:
            rows, columns = int(row['Rows']), int(row['Columns'])
        except ValueError:
            raise ValueError(f"Hall {row['Name']!r} has non-numeric dimensions")
        halls.append({'name': row['Name'], 'rows': rows, 'columns': columns})
    return halls


def student_template_csv():
    return pd.DataFrame(TEMPLATE_ROWS, columns=STUDENT_COLUMNS).to_csv(index=False)


def seating_to_dataframe(result):
    """One row per occupied seat, rows and columns numbered from 1."""
    data = []
    for placement in result.placements:
        for seat in placement.occupied_seats():
            e = seat.examinee
            data.append([
                placement.room_name, seat.row + 1, seat.col + 1,
                e.roll_no, e.name, e.department, e.subject,
            ])
    return pd.DataFrame(data, columns=MASTER_COLUMNS)


def export_csv(result):
    return seating_to_dataframe(result).to_csv(index=False)


def _filename_part(text, default):
    """Make free text safe for a Content-Disposition filename."""
    cleaned = str(text or '').encode('ascii', 'ignore').decode('ascii')
    cleaned = re.sub(r'[\x00-\x1f\x7f]+', '', cleaned)
    cleaned = re.sub(r'["\\\/:*?<>|;]', '_', cleaned).strip()
    return cleaned or default


def csv_filename(result):
    return f"Seating_Plan_{_filename_part(result.exam_id, 'Exam')}.csv"


def excel_filename(exam_name=None):
    return f"Seating_Plan_{_filename_part(exam_name, 'Exam')}.xlsx"


def _sheet_name(name, taken):
    base = _INVALID_SHEET_CHARS.sub('-', name or '').strip() or 'Hall'
    candidate = base[:MAX_SHEET_NAME]
    n = 2
    while candidate.lower() in taken:
        suffix = f" ({n})"
        candidate = base[:MAX_SHEET_NAME - len(suffix)] + suffix
        n += 1
    taken.add(candidate.lower())
    return candidate


def _seat_label(seat):
    if seat.examinee is None:
        return 'EMPTY'
    e = seat.examinee
    return f"{e.roll_no}\n{e.name}\n({e.subject})"


def room_grid_rows(placement):
    header = ['Row \\ Col'] + [f"Column {c + 1}" for c in range(placement.columns)]
    grid = [header]
    for r, row in enumerate(placement.seats):
        grid.append([f"Row {r + 1}"] + [_seat_label(seat) for seat in row])
    return grid


def summary_rows(result, exam_name=None, exam_date=None):
    rows = [
        ['Exam Name', exam_name or 'N/A'],
        ['Date', exam_date or 'N/A'],
        ['Total Allocated', result.seated_count],
        ['Unallocated', len(result.unallocated)],
        [],
        ['Roll No', 'Name', 'Department', 'Subject', 'Hall', 'Row', 'Column'],
    ]
    for placement in result.placements:
        for seat in placement.occupied_seats():
            e = seat.examinee
            rows.append([e.roll_no, e.name, e.department, e.subject,
                         placement.room_name, seat.row + 1, seat.col + 1])
    return rows


def export_excel(result, exam_name=None, exam_date=None):
    """
    Build the seating workbook: one grid sheet per hall plus a master list.

    Returns:
        Workbook bytes (xlsx)
    """
    output = io.BytesIO()
    taken = {'master list'}

    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        for placement in result.placements:
            sheet = _sheet_name(placement.room_name, taken)
            pd.DataFrame(room_grid_rows(placement)).to_excel(
                writer, sheet_name=sheet, index=False, header=False)

            ws = writer.sheets[sheet]
            ws.column_dimensions['A'].width = 12
            for c in range(placement.columns):
                ws.column_dimensions[get_column_letter(c + 2)].width = 20

        pd.DataFrame(summary_rows(result, exam_name, exam_date)).to_excel(
            writer, sheet_name='Master List', index=False, header=False)

    output.seek(0)
    return output.getvalue()
