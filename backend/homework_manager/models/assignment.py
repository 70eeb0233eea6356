"""Assignment model and its lifecycle helpers."""
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import or_
from homework_manager import db
from homework_manager.models.base import BaseModel

PRIORITIES = ('low', 'medium', 'high')

def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)

class Assignment(BaseModel):
    """A single concrete homework item."""

    __tablename__ = 'assignments'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    subject = db.Column(db.String(100), nullable=False, default='')
    priority = db.Column(db.String(20), nullable=False, default='medium')
    due_date = db.Column(db.DateTime, nullable=False, index=True)

    # Completion
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    is_archived = db.Column(db.Boolean, nullable=False, default=False, index=True)

    # One-time reminder
    reminder_enabled = db.Column(db.Boolean, nullable=False, default=False)
    reminder_at = db.Column(db.DateTime, nullable=True)
    reminder_sent = db.Column(db.Boolean, nullable=False, default=False, index=True)

    # Urgent reminder, repeats until completed
    urgent_reminder_enabled = db.Column(db.Boolean, nullable=False, default=True)
    last_urgent_reminder_sent = db.Column(db.DateTime, nullable=True)

    # Weak link to the rule that generated this occurrence
    recurring_assignment_id = db.Column(
        db.Integer,
        db.ForeignKey('recurring_assignments.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )

    # =================== LIFECYCLE HELPERS ===================

    def is_overdue(self, now: datetime = None) -> bool:
        now = now or datetime.now()
        return not self.is_completed and now > self.due_date

    def is_due_today(self, now: datetime = None) -> bool:
        now = now or datetime.now()
        return self.due_date.date() == now.date()

    def is_due_this_week(self, now: datetime = None) -> bool:
        now = now or datetime.now()
        return now < self.due_date < now + timedelta(days=7)

    def toggle_complete(self, now: datetime = None) -> None:
        """Flip completion and stamp or clear completed_at accordingly."""
        self.is_completed = not self.is_completed
        if self.is_completed:
            self.completed_at = now or datetime.now()
        else:
            self.completed_at = None

    def configure_reminder(self, enabled: bool, at: Optional[datetime]) -> None:
        """Set the one-time reminder; re-arms it whenever enabled with a time."""
        self.reminder_enabled = bool(enabled)
        self.reminder_at = at
        if enabled and at:
            self.reminder_sent = False

    @property
    def is_recurring(self) -> bool:
        return self.recurring_assignment_id is not None

    # =================== QUERIES ===================

    @classmethod
    def _for_user(cls, user_id: int):
        return cls.query.filter(cls.user_id == user_id)

    @classmethod
    def find_by_user(cls, user_id: int) -> List['Assignment']:
        return cls._for_user(user_id).order_by(cls.due_date.asc()).all()

    @classmethod
    def pending_query(cls, user_id: int):
        return cls._for_user(user_id).filter(cls.is_completed.is_(False)).order_by(cls.due_date.asc())

    @classmethod
    def completed_query(cls, user_id: int):
        return cls._for_user(user_id).filter(cls.is_completed.is_(True)).order_by(cls.completed_at.desc())

    @classmethod
    def overdue_query(cls, user_id: int, now: datetime = None):
        now = now or datetime.now()
        return cls._for_user(user_id).filter(
            cls.is_completed.is_(False),
            cls.due_date < now
        ).order_by(cls.due_date.asc())

    @classmethod
    def find_due_between(cls, user_id: int, start: datetime, end: datetime) -> List['Assignment']:
        return cls._for_user(user_id).filter(
            cls.is_completed.is_(False),
            cls.due_date >= start,
            cls.due_date < end
        ).order_by(cls.due_date.asc()).all()

    @classmethod
    def find_due_today(cls, user_id: int, now: datetime = None) -> List['Assignment']:
        start = _start_of_day(now or datetime.now())
        return cls.find_due_between(user_id, start, start + timedelta(days=1))

    @classmethod
    def find_due_this_week(cls, user_id: int, now: datetime = None) -> List['Assignment']:
        start = _start_of_day(now or datetime.now())
        return cls.find_due_between(user_id, start, start + timedelta(days=7))

    @classmethod
    def search_query(cls, user_id: int, text: str = '', priority: str = '',
                     status_filter: str = 'pending', now: datetime = None):
        now = now or datetime.now()
        query = cls._for_user(user_id)

        if text:
            pattern = f'%{text}%'
            query = query.filter(or_(cls.title.like(pattern), cls.description.like(pattern)))

        if priority:
            query = query.filter(cls.priority == priority)

        if status_filter == 'completed':
            return query.filter(cls.is_completed.is_(True)).order_by(cls.completed_at.desc())
        if status_filter == 'overdue':
            query = query.filter(cls.is_completed.is_(False), cls.due_date < now)
        else:
            query = query.filter(cls.is_completed.is_(False))
        return query.order_by(cls.due_date.asc())

    @classmethod
    def subjects_for_user(cls, user_id: int, include_archived: bool = True,
                          archived_only: bool = False) -> List[str]:
        query = db.session.query(cls.subject).filter(cls.user_id == user_id, cls.subject != '')
        if archived_only:
            query = query.filter(cls.is_archived.is_(True))
        elif not include_archived:
            query = query.filter(cls.is_archived.is_(False))
        return [row[0] for row in query.distinct().order_by(cls.subject).all()]

    @classmethod
    def set_archived_for_subject(cls, user_id: int, subject: str, archived: bool) -> int:
        count = cls.query.filter_by(user_id=user_id, subject=subject).update(
            {cls.is_archived: archived}, synchronize_session=False
        )
        db.session.commit()
        return count

    # Reminder selection

    @classmethod
    def find_due_reminders(cls, now: datetime) -> List['Assignment']:
        """One-time reminders whose time has come and that have not gone out."""
        return cls.query.filter(
            cls.reminder_enabled.is_(True),
            cls.reminder_sent.is_(False),
            cls.reminder_at.isnot(None),
            cls.reminder_at <= now,
            cls.is_completed.is_(False)
        ).order_by(cls.reminder_at.asc()).all()

    @classmethod
    def find_urgent_candidates(cls, now: datetime, window: timedelta) -> List['Assignment']:
        """Uncompleted assignments due within ``window`` from now."""
        return cls.query.filter(
            cls.urgent_reminder_enabled.is_(True),
            cls.is_completed.is_(False),
            cls.due_date > now,
            cls.due_date <= now + window
        ).order_by(cls.due_date.asc()).all()

    # Recurring-occurrence store calls

    @classmethod
    def find_by_recurring_id(cls, recurring_id: int, from_date: datetime = None) -> List['Assignment']:
        query = cls.query.filter(cls.recurring_assignment_id == recurring_id)
        if from_date is not None:
            query = query.filter(cls.due_date >= from_date)
        return query.order_by(cls.due_date.asc()).all()

    @classmethod
    def count_pending_by_recurring_id(cls, recurring_id: int) -> int:
        return cls.query.filter(
            cls.recurring_assignment_id == recurring_id,
            cls.is_completed.is_(False)
        ).count()

    @classmethod
    def find_latest_by_recurring_id(cls, recurring_id: int) -> Optional['Assignment']:
        return cls.query.filter(
            cls.recurring_assignment_id == recurring_id
        ).order_by(cls.due_date.desc()).first()

    @classmethod
    def detach_from_recurring(cls, recurring_id: int) -> int:
        """Break the link to a rule without touching the occurrences. Not committed."""
        return cls.query.filter(cls.recurring_assignment_id == recurring_id).update(
            {cls.recurring_assignment_id: None}, synchronize_session='fetch'
        )

    def to_dict(self, exclude: list = None, now: datetime = None) -> dict:
        result = super().to_dict(exclude=exclude)
        result['is_overdue'] = self.is_overdue(now)
        return result

    def __repr__(self):
        return f'<Assignment {self.title}>'
