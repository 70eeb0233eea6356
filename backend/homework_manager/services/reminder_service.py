"""Reminder processing.

Two kinds of reminders are selected here:

- one-time reminders, sent once when ``reminder_at`` has passed;
- urgent reminders, repeated during the last hours before the deadline at an
  interval that depends on priority.

Delivery goes through a ``Notifier``. The default ``LogNotifier`` only writes
the message to the log.
"""
import logging
from datetime import datetime, timedelta
from typing import List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from homework_manager import db
from homework_manager.models.assignment import Assignment
from homework_manager.models.notification_settings import UserNotificationSettings
from homework_manager.services.errors import StorageError
from homework_manager.utils.validators import ValidationError

logger = logging.getLogger(__name__)

URGENT_INTERVALS = {
    'high': timedelta(minutes=10),
    'medium': timedelta(minutes=30),
    'low': timedelta(minutes=60),
}
DEFAULT_URGENT_INTERVAL = timedelta(minutes=30)

SETTINGS_TEXT_LIMITS = {
    'telegram_chat_id': 100,
    'line_notify_token': 255,
}
SETTINGS_FLAGS = ('telegram_enabled', 'line_enabled')


class NotificationError(Exception):
    pass


class Notifier:
    """Delivers a message to the channels in a user's settings."""

    def send(self, settings: UserNotificationSettings, message: str) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    def send(self, settings, message):
        channels = ', '.join(settings.channels) or 'no channel'
        logger.info(f"Reminder for user {settings.user_id} ({channels}): {message}")


def urgent_interval(priority: str) -> timedelta:
    return URGENT_INTERVALS.get(priority, DEFAULT_URGENT_INTERVAL)


def format_time_remaining(due_date: datetime, now: datetime) -> str:
    remaining = due_date - now
    if remaining < timedelta(0):
        return 'overdue'
    minutes = int(remaining.total_seconds() // 60)
    if minutes < 60:
        return f'{minutes} min left'
    return f'{minutes // 60}h {minutes % 60}m left'


def build_reminder_message(assignment: Assignment) -> str:
    lines = [f'Reminder: {assignment.title}']
    if assignment.subject:
        lines.append(f'Subject: {assignment.subject}')
    lines.append(f"Due: {assignment.due_date.strftime('%Y-%m-%d %H:%M')}")
    if assignment.description:
        lines.extend(['', assignment.description])
    return '\n'.join(lines)


def build_urgent_message(assignment: Assignment, now: datetime) -> str:
    lines = [f'[{assignment.priority.upper()}] Still open: {assignment.title}']
    if assignment.subject:
        lines.append(f'Subject: {assignment.subject}')
    lines.append(
        f"Due: {assignment.due_date.strftime('%Y-%m-%d %H:%M')} "
        f"({format_time_remaining(assignment.due_date, now)})"
    )
    lines.extend(['', 'Mark it as completed once you are done.'])
    return '\n'.join(lines)


class ReminderService:
    """Service class for reminder selection and notification settings."""

    # =================== SETTINGS ===================

    @staticmethod
    def get_settings(user_id: int) -> UserNotificationSettings:
        """Stored settings, or unsaved defaults when the user has none."""
        settings = UserNotificationSettings.find_by_user(user_id)
        if settings is None:
            settings = UserNotificationSettings(
                user_id=user_id,
                telegram_enabled=False,
                telegram_chat_id='',
                line_enabled=False,
                line_notify_token=''
            )
        return settings

    @staticmethod
    def update_settings(user_id: int, **fields) -> UserNotificationSettings:
        for name, limit in SETTINGS_TEXT_LIMITS.items():
            if name not in fields:
                continue
            value = fields[name] if fields[name] is not None else ''
            if not isinstance(value, str):
                raise ValidationError("must be a string", field=name)
            if len(value.strip()) > limit:
                raise ValidationError(f"must be at most {limit} characters", field=name)
            fields[name] = value.strip()
        for name in SETTINGS_FLAGS:
            if name in fields and not isinstance(fields[name], bool):
                raise ValidationError("must be a boolean", field=name)

        settings = ReminderService.get_settings(user_id)
        for key in SETTINGS_FLAGS + tuple(SETTINGS_TEXT_LIMITS):
            if key in fields:
                setattr(settings, key, fields[key])

        try:
            db.session.add(settings)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to save notification settings: {e}")

        logger.info(f"Notification settings updated for user {user_id}")
        return settings

    # =================== PROCESSING ===================

    @staticmethod
    def process_pending_reminders(notifier: Notifier = None, now: datetime = None) -> List[Assignment]:
        """Send every one-time reminder that is due and mark it sent.

        A reminder whose delivery fails stays unsent and is retried next run.
        """
        notifier = notifier or LogNotifier()
        now = now or datetime.now()
        sent = []

        for assignment in Assignment.find_due_reminders(now):
            assignment_id = assignment.id
            try:
                settings = ReminderService.get_settings(assignment.user_id)
                notifier.send(settings, build_reminder_message(assignment))
                assignment.reminder_sent = True
                db.session.commit()
                sent.append(assignment)
            except Exception:
                db.session.rollback()
                logger.exception(f"Failed to send reminder for assignment {assignment_id}")

        if sent:
            logger.info(f"Sent {len(sent)} reminder(s)")
        return sent

    @staticmethod
    def process_urgent_reminders(notifier: Notifier = None, now: datetime = None) -> List[Assignment]:
        """Nag about open assignments close to their deadline.

        Each assignment is sent again once its priority interval has passed
        since ``last_urgent_reminder_sent``.
        """
        notifier = notifier or LogNotifier()
        now = now or datetime.now()
        window = timedelta(minutes=current_app.config.get('URGENT_REMINDER_WINDOW_MINUTES', 180))
        sent = []

        for assignment in Assignment.find_urgent_candidates(now, window):
            last_sent = assignment.last_urgent_reminder_sent
            if last_sent is not None and now - last_sent < urgent_interval(assignment.priority):
                continue

            assignment_id = assignment.id
            try:
                settings = ReminderService.get_settings(assignment.user_id)
                notifier.send(settings, build_urgent_message(assignment, now))
                assignment.last_urgent_reminder_sent = now
                db.session.commit()
                sent.append(assignment)
            except Exception:
                db.session.rollback()
                logger.exception(f"Failed to send urgent reminder for assignment {assignment_id}")

        if sent:
            logger.info(f"Sent {len(sent)} urgent reminder(s)")
        return sent
