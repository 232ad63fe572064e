"""
SQLAlchemy ORM Models for the Exam Seating Allocator

Usage:
    from models import db, Student, Hall, Exam, Allocation

    # Initialize with Flask app
    db.init_app(app)
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models to make them available from the package
from .user import AdminUser
from .student import Student
from .room import Hall
from .seating import Exam, Allocation

__all__ = [
    'db',
    # User
    'AdminUser',
    # Student
    'Student',
    # Room
    'Hall',
    # Seating
    'Exam', 'Allocation',
]
