"""Assignment management service."""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List

from sqlalchemy.exc import SQLAlchemyError

from homework_manager import db
from homework_manager.models.assignment import Assignment
from homework_manager.services.errors import NotFoundError, UnauthorizedError, StorageError
from homework_manager.utils.validators import Validator

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    'title', 'description', 'subject', 'priority', 'due_date',
    'reminder_enabled', 'reminder_at', 'urgent_reminder_enabled',
)


@dataclass
class PaginatedResult:
    """One page of assignments plus paging metadata."""
    assignments: List[Assignment] = field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    current_page: int = 1
    page_size: int = 10

    def to_dict(self, now: datetime = None) -> Dict:
        return {
            'assignments': [a.to_dict(now=now) for a in self.assignments],
            'count': len(self.assignments),
            'total_count': self.total_count,
            'total_pages': self.total_pages,
            'current_page': self.current_page,
            'page_size': self.page_size,
        }


def _paginate(query, page: int, page_size: int) -> PaginatedResult:
    if page < 1:
        page = 1
    if page_size < 1:
        page_size = 10
    total_count = query.order_by(None).count()
    assignments = query.offset((page - 1) * page_size).limit(page_size).all()
    return PaginatedResult(
        assignments=assignments,
        total_count=total_count,
        total_pages=math.ceil(total_count / page_size),
        current_page=page,
        page_size=page_size,
    )


class AssignmentService:
    """Service for managing single assignments."""

    @staticmethod
    def create(user_id: int, title: str, due_date: datetime, description: str = '',
               subject: str = '', priority: str = 'medium', reminder_enabled: bool = False,
               reminder_at: datetime = None, urgent_reminder_enabled: bool = True) -> Assignment:
        Validator.validate_assignment_input(title, description, subject, priority)

        assignment = Assignment(
            user_id=user_id,
            title=title.strip(),
            description=description or '',
            subject=subject or '',
            priority=priority or 'medium',
            due_date=due_date,
            urgent_reminder_enabled=urgent_reminder_enabled,
        )
        assignment.configure_reminder(reminder_enabled, reminder_at if reminder_enabled else None)
        try:
            assignment.save()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to create assignment: {e}")
        return assignment

    @staticmethod
    def get_by_id(user_id: int, assignment_id: int) -> Assignment:
        assignment = Assignment.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        if assignment.user_id != user_id:
            raise UnauthorizedError()
        return assignment

    # =================== LISTINGS ===================

    @staticmethod
    def get_all_by_user(user_id: int) -> List[Assignment]:
        return Assignment.find_by_user(user_id)

    @staticmethod
    def get_pending_by_user(user_id: int) -> List[Assignment]:
        return Assignment.pending_query(user_id).all()

    @staticmethod
    def get_completed_by_user(user_id: int) -> List[Assignment]:
        return Assignment.completed_query(user_id).all()

    @staticmethod
    def get_overdue_by_user(user_id: int, now: datetime = None) -> List[Assignment]:
        return Assignment.overdue_query(user_id, now).all()

    @staticmethod
    def get_due_today_by_user(user_id: int, now: datetime = None) -> List[Assignment]:
        return Assignment.find_due_today(user_id, now)

    @staticmethod
    def get_due_this_week_by_user(user_id: int, now: datetime = None) -> List[Assignment]:
        return Assignment.find_due_this_week(user_id, now)

    @staticmethod
    def get_all_by_user_paginated(user_id: int, page: int, page_size: int) -> PaginatedResult:
        query = Assignment.query.filter(Assignment.user_id == user_id).order_by(Assignment.due_date.asc())
        return _paginate(query, page, page_size)

    @staticmethod
    def get_pending_by_user_paginated(user_id: int, page: int, page_size: int) -> PaginatedResult:
        return _paginate(Assignment.pending_query(user_id), page, page_size)

    @staticmethod
    def get_completed_by_user_paginated(user_id: int, page: int, page_size: int) -> PaginatedResult:
        return _paginate(Assignment.completed_query(user_id), page, page_size)

    @staticmethod
    def get_overdue_by_user_paginated(user_id: int, page: int, page_size: int,
                                      now: datetime = None) -> PaginatedResult:
        return _paginate(Assignment.overdue_query(user_id, now), page, page_size)

    @staticmethod
    def search(user_id: int, query: str = '', priority: str = '', filter: str = 'pending',
               page: int = 1, page_size: int = 10, now: datetime = None) -> PaginatedResult:
        """Search title/description; filter is pending, completed or overdue."""
        search_query = Assignment.search_query(
            user_id, text=(query or '').strip(), priority=priority,
            status_filter=filter or 'pending', now=now
        )
        return _paginate(search_query, page, page_size)

    # =================== MUTATIONS ===================

    @staticmethod
    def update(user_id: int, assignment_id: int, **fields) -> Assignment:
        assignment = AssignmentService.get_by_id(user_id, assignment_id)
        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}

        for name in ('title', 'description', 'subject', 'priority'):
            if name in changes:
                Validator.validate_field(name, changes[name], required=(name == 'title'))
        if 'priority' in changes:
            Validator.validate_priority(changes['priority'])

        reminder_changed = 'reminder_enabled' in changes or 'reminder_at' in changes
        reminder_enabled = changes.pop('reminder_enabled', assignment.reminder_enabled)
        reminder_at = changes.pop('reminder_at', assignment.reminder_at)

        for key, value in changes.items():
            setattr(assignment, key, value)
        if reminder_changed:
            assignment.configure_reminder(reminder_enabled, reminder_at)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to update assignment: {e}")
        return assignment

    @staticmethod
    def toggle_complete(user_id: int, assignment_id: int, now: datetime = None) -> Assignment:
        assignment = AssignmentService.get_by_id(user_id, assignment_id)
        assignment.toggle_complete(now)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to update assignment: {e}")
        return assignment

    @staticmethod
    def delete(user_id: int, assignment_id: int) -> None:
        assignment = AssignmentService.get_by_id(user_id, assignment_id)
        try:
            assignment.delete()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to delete assignment: {e}")

    # =================== DASHBOARD & STATISTICS ===================

    @staticmethod
    def get_dashboard_stats(user_id: int, now: datetime = None) -> Dict:
        now = now or datetime.now()
        return {
            'total_pending': Assignment.pending_query(user_id).count(),
            'due_today': len(Assignment.find_due_today(user_id, now)),
            'due_this_week': len(Assignment.find_due_this_week(user_id, now)),
            'overdue': Assignment.overdue_query(user_id, now).count(),
            'subjects': Assignment.subjects_for_user(user_id),
        }

    @staticmethod
    def _statistics_query(user_id: int, subject: str = None, date_from: datetime = None,
                          date_to: datetime = None, include_archived: bool = False):
        query = Assignment.query.filter(Assignment.user_id == user_id)
        if subject:
            query = query.filter(Assignment.subject == subject)
        if date_from is not None:
            query = query.filter(Assignment.created_at >= date_from)
        if date_to is not None:
            # Inclusive of the whole "to" day
            query = query.filter(Assignment.created_at < date_to + timedelta(days=1))
        if not include_archived:
            query = query.filter(Assignment.is_archived.is_(False))
        return query

    @staticmethod
    def get_statistics(user_id: int, subject: str = None, date_from: datetime = None,
                       date_to: datetime = None, include_archived: bool = False,
                       now: datetime = None) -> Dict:
        """Completion figures over assignments created in [date_from, date_to]."""
        now = now or datetime.now()
        base = AssignmentService._statistics_query(user_id, subject, date_from, date_to, include_archived)

        total = base.count()
        completed = base.filter(Assignment.is_completed.is_(True)).count()
        pending = base.filter(Assignment.is_completed.is_(False)).count()
        overdue = base.filter(Assignment.is_completed.is_(False), Assignment.due_date < now).count()
        completed_on_time = base.filter(
            Assignment.is_completed.is_(True),
            Assignment.completed_at <= Assignment.due_date
        ).count()

        rate = completed_on_time / completed * 100 if completed else 0.0
        return {
            'total': total,
            'completed': completed,
            'pending': pending,
            'overdue': overdue,
            'completed_on_time': completed_on_time,
            'on_time_completion_rate': round(rate, 2),
        }

    @staticmethod
    def get_statistics_by_subject(user_id: int, date_from: datetime = None, date_to: datetime = None,
                                  include_archived: bool = False, now: datetime = None) -> List[Dict]:
        results = []
        for subject in Assignment.subjects_for_user(user_id, include_archived=include_archived):
            stats = AssignmentService.get_statistics(
                user_id, subject=subject, date_from=date_from, date_to=date_to,
                include_archived=include_archived, now=now
            )
            stats['subject'] = subject
            results.append(stats)
        return results

    # =================== SUBJECTS ===================

    @staticmethod
    def archive_subject(user_id: int, subject: str) -> int:
        count = Assignment.set_archived_for_subject(user_id, subject, True)
        logger.info(f"Archived {count} assignment(s) in subject '{subject}' for user {user_id}")
        return count

    @staticmethod
    def unarchive_subject(user_id: int, subject: str) -> int:
        return Assignment.set_archived_for_subject(user_id, subject, False)

    @staticmethod
    def get_archived_subjects(user_id: int) -> List[str]:
        return Assignment.subjects_for_user(user_id, archived_only=True)

    @staticmethod
    def get_subjects_by_user(user_id: int, include_archived: bool = True) -> List[str]:
        return Assignment.subjects_for_user(user_id, include_archived=include_archived)
