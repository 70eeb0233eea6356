"""Recurring assignment template model."""
from enum import Enum
from typing import List, Optional
from homework_manager import db
from homework_manager.models.base import BaseModel

class RecurrenceType(Enum):
    """How often a recurring assignment repeats."""
    NONE = 'none'
    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY = 'monthly'

class EndType(Enum):
    """When a recurring assignment stops generating."""
    NEVER = 'never'
    COUNT = 'count'
    DATE = 'date'

class EditBehavior(Enum):
    """Which occurrences an edit to a series applies to."""
    THIS_ONLY = 'this_only'
    THIS_AND_FUTURE = 'this_and_future'
    ALL = 'all'

WEEKDAY_NAMES = ('Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday')

class RecurringAssignment(BaseModel):
    """Template controlling the production of Assignment occurrences."""

    __tablename__ = 'recurring_assignments'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Copied into every generated occurrence
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    subject = db.Column(db.String(100), nullable=False, default='')
    priority = db.Column(db.String(20), nullable=False, default='medium')

    # Recurrence rule
    recurrence_type = db.Column(db.Enum(RecurrenceType), nullable=False, default=RecurrenceType.NONE)
    recurrence_interval = db.Column(db.Integer, nullable=False, default=1)
    recurrence_weekday = db.Column(db.Integer, nullable=True)  # 0=Sunday .. 6=Saturday, weekly only
    recurrence_day = db.Column(db.Integer, nullable=True)  # 1..31, monthly only
    due_time = db.Column(db.String(5), nullable=False, default='')  # HH:MM

    # End condition
    end_type = db.Column(db.Enum(EndType), nullable=False, default=EndType.NEVER)
    end_count = db.Column(db.Integer, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    generated_count = db.Column(db.Integer, nullable=False, default=0)

    edit_behavior = db.Column(db.Enum(EditBehavior), nullable=False, default=EditBehavior.THIS_ONLY)

    # Reminder templates
    reminder_enabled = db.Column(db.Boolean, nullable=False, default=False)
    reminder_offset = db.Column(db.Integer, nullable=True)  # minutes before due
    urgent_reminder_enabled = db.Column(db.Boolean, nullable=False, default=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    @classmethod
    def find_by_user(cls, user_id: int, active_only: bool = False) -> List['RecurringAssignment']:
        query = cls.query.filter_by(user_id=user_id)
        if active_only:
            query = query.filter_by(is_active=True)
        return query.order_by(cls.created_at.desc()).all()

    @classmethod
    def find_active_for_generation(cls) -> List['RecurringAssignment']:
        """Active rules that actually recur; end conditions are checked by the caller."""
        return cls.query.filter(
            cls.is_active.is_(True),
            cls.recurrence_type != RecurrenceType.NONE
        ).order_by(cls.id.asc()).all()

    @property
    def weekday_name(self) -> Optional[str]:
        if self.recurrence_weekday is None or not 0 <= self.recurrence_weekday <= 6:
            return None
        return WEEKDAY_NAMES[self.recurrence_weekday]

    def to_dict(self, exclude: list = None) -> dict:
        from homework_manager.services.recurrence import format_recurring_summary

        result = super().to_dict(exclude=exclude)
        result['summary'] = format_recurring_summary(self)
        return result

    def __repr__(self):
        recurrence = self.recurrence_type.value if self.recurrence_type else None
        return f'<RecurringAssignment {self.title} ({recurrence})>'
