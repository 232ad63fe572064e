"""
Exam and saved Allocation models.
"""

from . import db
from .base import TimestampMixin, require_text
from seat_layout import AllocationResult, ExamSession


class Exam(db.Model, TimestampMixin):
    __tablename__ = 'exams'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    exam_date = db.Column(db.String(20))
    subjects = db.Column(db.JSON, nullable=False, default=list)

    # Relationships
    allocations = db.relationship('Allocation', backref='exam', lazy='dynamic',
                                  cascade='all, delete-orphan')

    @classmethod
    def create(cls, name, exam_date, subjects):
        if isinstance(subjects, str):
            subjects = subjects.split(',')
        elif subjects is not None and not isinstance(subjects, (list, tuple)):
            raise ValueError("Subjects must be a list or a comma separated string")
        cleaned = list(dict.fromkeys(str(s).strip() for s in subjects or [] if s is not None and str(s).strip()))
        if not cleaned:
            raise ValueError("An exam needs at least one subject")

        exam = cls(
            name=require_text(name, 'Exam name'),
            exam_date=require_text(exam_date, 'Exam date'),
            subjects=cleaned,
        )
        db.session.add(exam)
        return exam

    def to_session(self):
        """Convert to the value type the allocator works on."""
        return ExamSession(id=str(self.id), subjects=tuple(self.subjects or ()),
                           name=self.name, date=self.exam_date or '')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'date': self.exam_date,
            'subjects': list(self.subjects or []),
        }

    def __repr__(self):
        return f'<Exam {self.name} on {self.exam_date}>'


class Allocation(db.Model):
    """A stored AllocationResult; the snapshot is the result's to_dict()."""
    __tablename__ = 'allocations'

    id = db.Column(db.String(40), primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False)
    empty_seat_spacing = db.Column(db.Boolean, default=False)
    seated_count = db.Column(db.Integer, default=0)
    unallocated_count = db.Column(db.Integer, default=0)
    snapshot = db.Column(db.JSON, nullable=False)

    @classmethod
    def from_result(cls, exam, result, empty_seat_spacing=False):
        allocation = cls(
            id=result.id,
            exam_id=exam.id,
            created_at=result.created_at,
            empty_seat_spacing=empty_seat_spacing,
            seated_count=result.seated_count,
            unallocated_count=len(result.unallocated),
            snapshot=result.to_dict(),
        )
        db.session.add(allocation)
        return allocation

    @classmethod
    def newest_first(cls):
        return cls.query.order_by(cls.created_at.desc()).all()

    def to_result(self):
        return AllocationResult.from_dict(self.snapshot)

    def to_summary(self):
        return {
            'id': self.id,
            'exam_id': self.exam_id,
            'exam_name': self.exam.name if self.exam else None,
            'created_at': self.created_at.isoformat(),
            'empty_seat_spacing': self.empty_seat_spacing,
            'seated': self.seated_count,
            'unallocated': self.unallocated_count,
            'halls': [p['room_name'] for p in self.snapshot.get('placements', [])],
        }

    def __repr__(self):
        return f'<Allocation {self.id} exam={self.exam_id}>'
