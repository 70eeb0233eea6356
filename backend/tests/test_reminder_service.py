"""Tests for reminder selection, urgent intervals and notification settings."""
import logging
from datetime import datetime, timedelta

import pytest

from homework_manager.models import UserNotificationSettings
from homework_manager.services.reminder_service import (
    ReminderService, Notifier, LogNotifier, NotificationError,
    urgent_interval, format_time_remaining, build_urgent_message
)
from homework_manager.utils.validators import ValidationError

NOW = datetime(2024, 3, 6, 12, 0)


class RecordingNotifier(Notifier):
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.sent = []

    def send(self, settings, message):
        if self.fail_on and self.fail_on in message:
            raise NotificationError('channel unavailable')
        self.sent.append((settings.user_id, message))


# =================== ONE-TIME REMINDERS ===================

def test_pending_reminders_are_sent_once(user, make_assignment):
    notifier = RecordingNotifier()
    tomorrow = NOW + timedelta(days=1)
    due = make_assignment(title='Lab report', subject='Chemistry', due_date=tomorrow,
                          reminder_enabled=True, reminder_at=NOW - timedelta(minutes=5))
    later = make_assignment(title='Later', due_date=tomorrow,
                            reminder_enabled=True, reminder_at=NOW + timedelta(hours=1))
    make_assignment(title='Done', due_date=tomorrow, is_completed=True, completed_at=NOW,
                    reminder_enabled=True, reminder_at=NOW - timedelta(hours=1))
    make_assignment(title='Disabled', due_date=tomorrow,
                    reminder_enabled=False, reminder_at=NOW - timedelta(hours=1))
    make_assignment(title='Already sent', due_date=tomorrow, reminder_sent=True,
                    reminder_enabled=True, reminder_at=NOW - timedelta(hours=1))

    sent = ReminderService.process_pending_reminders(notifier, now=NOW)

    assert [a.id for a in sent] == [due.id]
    assert due.reminder_sent is True
    assert later.reminder_sent is False
    user_id, message = notifier.sent[0]
    assert user_id == user.id
    assert 'Lab report' in message
    assert 'Chemistry' in message

    assert ReminderService.process_pending_reminders(notifier, now=NOW) == []


def test_failed_delivery_leaves_reminder_unsent(user, make_assignment):
    notifier = RecordingNotifier(fail_on='Broken')
    reminder_at = NOW - timedelta(minutes=1)
    broken = make_assignment(title='Broken', reminder_enabled=True, reminder_at=reminder_at,
                             due_date=NOW + timedelta(days=1))
    fine = make_assignment(title='Fine', reminder_enabled=True, reminder_at=reminder_at,
                           due_date=NOW + timedelta(days=1))

    sent = ReminderService.process_pending_reminders(notifier, now=NOW)

    assert [a.title for a in sent] == ['Fine']
    assert broken.reminder_sent is False
    assert fine.reminder_sent is True


# =================== URGENT REMINDERS ===================

@pytest.mark.parametrize('priority, minutes', [
    ('high', 10),
    ('medium', 30),
    ('low', 60),
    ('unknown', 30),
])
def test_urgent_interval_by_priority(priority, minutes):
    assert urgent_interval(priority) == timedelta(minutes=minutes)


def test_urgent_reminders_within_window(user, make_assignment):
    notifier = RecordingNotifier()
    high = make_assignment(title='High', priority='high', due_date=NOW + timedelta(hours=2))
    low = make_assignment(title='Low', priority='low', due_date=NOW + timedelta(hours=1))
    make_assignment(title='Far', due_date=NOW + timedelta(hours=4))
    make_assignment(title='Past due', due_date=NOW - timedelta(hours=1))
    make_assignment(title='Muted', due_date=NOW + timedelta(hours=1), urgent_reminder_enabled=False)

    first = ReminderService.process_urgent_reminders(notifier, now=NOW)

    assert [a.title for a in first] == ['Low', 'High']
    assert high.last_urgent_reminder_sent == NOW
    assert low.last_urgent_reminder_sent == NOW


def test_urgent_reminders_repeat_after_priority_interval(user, make_assignment):
    notifier = RecordingNotifier()
    make_assignment(title='High', priority='high', due_date=NOW + timedelta(hours=2))
    make_assignment(title='Low', priority='low', due_date=NOW + timedelta(hours=2))
    ReminderService.process_urgent_reminders(notifier, now=NOW)

    repeat = ReminderService.process_urgent_reminders(notifier, now=NOW + timedelta(minutes=5))
    assert repeat == []

    repeat = ReminderService.process_urgent_reminders(notifier, now=NOW + timedelta(minutes=15))
    assert [a.title for a in repeat] == ['High']

    repeat = ReminderService.process_urgent_reminders(notifier, now=NOW + timedelta(minutes=60))
    assert sorted(a.title for a in repeat) == ['High', 'Low']


def test_urgent_window_comes_from_config(app, user, make_assignment):
    app.config['URGENT_REMINDER_WINDOW_MINUTES'] = 300
    make_assignment(title='Far', due_date=NOW + timedelta(hours=4))

    sent = ReminderService.process_urgent_reminders(RecordingNotifier(), now=NOW)

    assert [a.title for a in sent] == ['Far']


def test_urgent_message_shows_time_remaining(make_assignment):
    assignment = make_assignment(title='Essay', priority='high', due_date=NOW + timedelta(minutes=95))

    message = build_urgent_message(assignment, NOW)

    assert message.startswith('[HIGH] Still open: Essay')
    assert '1h 35m left' in message
    assert format_time_remaining(NOW + timedelta(minutes=20), NOW) == '20 min left'
    assert format_time_remaining(NOW - timedelta(minutes=1), NOW) == 'overdue'


# =================== SETTINGS ===================

def test_settings_default_to_no_channels(user):
    settings = ReminderService.get_settings(user.id)

    assert settings.id is None
    assert settings.channels == []
    assert UserNotificationSettings.query.count() == 0


def test_update_settings_creates_then_updates_one_row(user):
    ReminderService.update_settings(user.id, telegram_enabled=True, telegram_chat_id=' 12345 ')
    settings = ReminderService.update_settings(user.id, line_enabled=True, line_notify_token='secret')

    assert UserNotificationSettings.query.count() == 1
    assert settings.telegram_chat_id == '12345'
    assert settings.channels == ['telegram', 'line']

    data = settings.to_dict()
    assert 'line_notify_token' not in data
    assert data['line_token_set'] is True


@pytest.mark.parametrize('fields', [
    {'telegram_chat_id': 12345},
    {'line_notify_token': 'x' * 256},
    {'telegram_enabled': 'yes'},
])
def test_update_settings_validation(user, fields):
    with pytest.raises(ValidationError):
        ReminderService.update_settings(user.id, **fields)


def test_log_notifier_writes_message(user, caplog):
    caplog.set_level(logging.INFO, logger='homework_manager.services.reminder_service')

    LogNotifier().send(ReminderService.get_settings(user.id), 'Reminder: Essay')

    assert 'Reminder: Essay' in caplog.text
