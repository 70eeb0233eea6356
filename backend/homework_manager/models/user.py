"""User model for authentication and authorization."""
from enum import Enum
from werkzeug.security import generate_password_hash, check_password_hash
from homework_manager import db
from homework_manager.models.base import BaseModel

class UserRole(Enum):
    """User roles enumeration."""
    USER = 'user'
    ADMIN = 'admin'

class User(BaseModel):
    """User model for all system users."""

    __tablename__ = 'users'

    # Basic Information
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    # Role
    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.USER)

    # Relationships
    assignments = db.relationship('Assignment', backref='user', lazy='dynamic',
                                  cascade='all, delete-orphan')
    recurring_assignments = db.relationship('RecurringAssignment', backref='user', lazy='dynamic',
                                            cascade='all, delete-orphan')
    api_keys = db.relationship('APIKey', backref='user', lazy='dynamic',
                               cascade='all, delete-orphan')
    notification_settings = db.relationship('UserNotificationSettings', backref='user', uselist=False,
                                            cascade='all, delete-orphan')

    def set_password(self, password: str) -> None:
        """Set user password with hashing."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user's password."""
        return check_password_hash(self.password_hash, password)

    def is_admin(self) -> bool:
        """Check if user is an administrator."""
        return self.role == UserRole.ADMIN

    @classmethod
    def find_by_email(cls, email: str) -> 'User':
        return cls.query.filter_by(email=email.lower().strip()).first()

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        default_exclude = ['password_hash']
        exclude = (exclude or []) + default_exclude

        return super().to_dict(exclude=exclude)

    def __repr__(self) -> str:
        return f'<User {self.email}>'
