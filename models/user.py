"""
Admin account model for authentication.
"""

from werkzeug.security import generate_password_hash, check_password_hash
from . import db
from .base import TimestampMixin, require_text, utcnow

MIN_PASSWORD_LENGTH = 6


class AdminUser(db.Model, TimestampMixin):
    __tablename__ = 'admin_users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    full_name = db.Column(db.String(200))
    email = db.Column(db.String(200))
    password_hash = db.Column(db.String(255), nullable=False)
    last_login = db.Column(db.DateTime)

    @classmethod
    def register(cls, username, password, full_name=None, email=None):
        """Create a new admin; raises ValueError on bad input or a taken username."""
        username = require_text(username, 'Username')
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if cls.query.filter_by(username=username).first() is not None:
            raise ValueError(f"Username {username!r} is already taken")

        user = cls(username=username, full_name=(full_name or '').strip(), email=(email or '').strip())
        user.set_password(password)
        db.session.add(user)
        return user

    def set_password(self, password):
        """Hash and set the user's password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify the password against the hash."""
        if not isinstance(password, str):
            return False
        return check_password_hash(self.password_hash, password)

    def record_successful_login(self):
        self.last_login = utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'full_name': self.full_name,
            'email': self.email,
        }

    def __repr__(self):
        return f'<AdminUser {self.username}>'
