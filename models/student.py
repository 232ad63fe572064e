"""
Student (examinee) model.
"""

from . import db
from .base import TimestampMixin, require_text
from seat_layout import Examinee


class Student(db.Model, TimestampMixin):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    roll_no = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    department = db.Column(db.String(100), default='')
    subject = db.Column(db.String(100), nullable=False, index=True)

    @classmethod
    def bulk_import(cls, rows):
        """
        Insert roster rows, skipping roll numbers that already exist.

        Args:
            rows: Dicts with roll_no, name, department, subject

        Returns:
            Tuple of (inserted, skipped_duplicates)
        """
        existing = {roll for (roll,) in db.session.query(cls.roll_no).all()}
        inserted = skipped = 0

        for row in rows:
            roll_no = require_text(row.get('roll_no'), 'Roll No')
            if roll_no in existing:
                skipped += 1
                continue
            db.session.add(cls(
                roll_no=roll_no,
                name=require_text(row.get('name'), 'Name'),
                department=(row.get('department') or '').strip(),
                subject=(row.get('subject') or '').strip(),
            ))
            existing.add(roll_no)
            inserted += 1

        return inserted, skipped

    @classmethod
    def search(cls, term=None):
        query = cls.query
        if term:
            like = f'%{term}%'
            query = query.filter(db.or_(
                cls.name.ilike(like),
                cls.roll_no.ilike(like),
                cls.subject.ilike(like),
                cls.department.ilike(like),
            ))
        return query.order_by(cls.roll_no).all()

    @classmethod
    def distinct_subjects(cls):
        """Sorted subject codes present in the roster, blanks excluded."""
        rows = db.session.query(cls.subject).filter(cls.subject != '').distinct()
        return sorted(subject for (subject,) in rows)

    def to_examinee(self):
        """Convert to the value type the allocator works on."""
        return Examinee(
            id=str(self.id),
            roll_no=self.roll_no,
            name=self.name,
            department=self.department or '',
            subject=self.subject,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'roll_no': self.roll_no,
            'name': self.name,
            'department': self.department,
            'subject': self.subject,
        }

    def __repr__(self):
        return f'<Student {self.roll_no}: {self.name}>'
