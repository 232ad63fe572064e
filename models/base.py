"""
Base classes and mixins for SQLAlchemy models.
"""

from datetime import datetime, timezone
from . import db


def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


def require_text(value, field):
    """Strip a user-entered string and reject it when blank."""
    value = '' if value is None else str(value).strip()
    if not value:
        raise ValueError(f"{field} is required")
    return value
