"""Models package with all models."""
from .base import BaseModel
from .user import User, UserRole
from .assignment import Assignment, PRIORITIES
from .recurring_assignment import RecurringAssignment, RecurrenceType, EndType, EditBehavior
from .api_key import APIKey
from .notification_settings import UserNotificationSettings

__all__ = [
    'BaseModel', 'User', 'UserRole',
    'Assignment', 'PRIORITIES',
    'RecurringAssignment', 'RecurrenceType', 'EndType', 'EditBehavior',
    'APIKey', 'UserNotificationSettings'
]
