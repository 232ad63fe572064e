"""
Examination hall model.
"""

from . import db
from .base import TimestampMixin, require_text
from seat_layout import Room


def _positive_int(value, field):
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a whole number")
    if value < 1:
        raise ValueError(f"{field} must be at least 1")
    return value


class Hall(db.Model, TimestampMixin):
    __tablename__ = 'halls'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    layout_rows = db.Column(db.Integer, nullable=False, default=10)
    layout_columns = db.Column(db.Integer, nullable=False, default=6)

    @classmethod
    def create(cls, name, rows, columns):
        """Validate and add a hall; zero or negative dimensions are rejected here."""
        hall = cls(
            name=require_text(name, 'Hall name'),
            layout_rows=_positive_int(rows, 'Rows'),
            layout_columns=_positive_int(columns, 'Columns'),
        )
        db.session.add(hall)
        return hall

    @property
    def capacity(self):
        return self.layout_rows * self.layout_columns

    def to_room(self):
        """Convert to the value type the allocator works on."""
        return Room(id=str(self.id), name=self.name, rows=self.layout_rows, columns=self.layout_columns)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'rows': self.layout_rows,
            'columns': self.layout_columns,
            'capacity': self.capacity,
        }

    def __repr__(self):
        return f'<Hall {self.name} ({self.layout_rows}x{self.layout_columns})>'
