"""Tests for recurring assignment creation, generation and edit propagation."""
from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from homework_manager import db
from homework_manager.models import Assignment, RecurringAssignment, EditBehavior, RecurrenceType
from homework_manager.services.assignment_service import AssignmentService
from homework_manager.services.errors import (
    NotFoundError, UnauthorizedError, StorageError,
    InvalidRecurrenceTypeError, InvalidEndTypeError, InvalidEditBehaviorError
)
from homework_manager.services.recurring_assignment_service import (
    RecurringAssignmentService, MAX_RECURRENCE_INTERVAL
)
from homework_manager.utils.validators import ValidationError

MONDAY = datetime(2024, 1, 1, 9, 0)


def create_weekly(user, **overrides):
    fields = dict(
        title='Weekly worksheet',
        subject='Math',
        recurrence_type='weekly',
        recurrence_weekday=1,
        due_time='09:00',
    )
    fields.update(overrides)
    return RecurringAssignmentService.create(user.id, MONDAY, **fields)


def first_occurrence(rule):
    return Assignment.find_by_recurring_id(rule.id)[0]


def complete(user, assignment, when=datetime(2024, 1, 1, 8, 0)):
    AssignmentService.toggle_complete(user.id, assignment.id, now=when)


# =================== CREATE ===================

def test_create_generates_first_occurrence(user):
    rule = create_weekly(user, reminder_enabled=True, reminder_offset=60)

    occurrences = Assignment.find_by_recurring_id(rule.id)
    assert len(occurrences) == 1
    assignment = occurrences[0]
    assert assignment.title == 'Weekly worksheet'
    assert assignment.subject == 'Math'
    assert assignment.due_date == datetime(2024, 1, 1, 9, 0)
    assert assignment.reminder_at == datetime(2024, 1, 1, 8, 0)
    assert assignment.user_id == user.id
    assert rule.generated_count == 1
    assert rule.is_active is True
    assert rule.edit_behavior == EditBehavior.THIS_ONLY


def test_create_applies_due_time_to_first_date(user):
    rule = RecurringAssignmentService.create(
        user.id, datetime(2024, 1, 1, 23, 59),
        title='Reading', recurrence_type='daily', due_time='07:30'
    )
    assert first_occurrence(rule).due_date == datetime(2024, 1, 1, 7, 30)


def test_create_rejects_unknown_recurrence_type(user):
    with pytest.raises(InvalidRecurrenceTypeError):
        RecurringAssignmentService.create(user.id, MONDAY, title='X', recurrence_type='yearly')
    assert RecurringAssignment.query.count() == 0


def test_create_rejects_unknown_end_type(user):
    with pytest.raises(InvalidEndTypeError):
        RecurringAssignmentService.create(
            user.id, MONDAY, title='X', recurrence_type='daily', end_type='forever'
        )


def test_create_coerces_interval_and_drops_mismatched_selectors(user):
    rule = RecurringAssignmentService.create(
        user.id, MONDAY, title='Drill', recurrence_type='daily',
        recurrence_interval=0, recurrence_weekday=3, recurrence_day=12
    )
    assert rule.recurrence_interval == 1
    assert rule.recurrence_weekday is None
    assert rule.recurrence_day is None


@pytest.mark.parametrize('overrides', [
    {'recurrence_type': 'weekly', 'recurrence_weekday': 7},
    {'recurrence_type': 'monthly', 'recurrence_day': 0},
    {'recurrence_type': 'monthly', 'recurrence_day': 32},
    {'recurrence_type': 'daily', 'due_time': '9am'},
    {'recurrence_type': 'daily', 'recurrence_interval': 366},
    {'recurrence_type': 'daily', 'recurrence_interval': '2'},
    {'recurrence_type': 'daily', 'due_time': 900},
    {'recurrence_type': 'daily', 'end_type': 'count', 'end_count': 0},
])
def test_create_rejects_out_of_range_selectors(user, overrides):
    with pytest.raises(ValidationError):
        RecurringAssignmentService.create(user.id, MONDAY, title='Bad', **overrides)


def test_create_requires_title(user):
    with pytest.raises(ValidationError):
        RecurringAssignmentService.create(user.id, MONDAY, title='  ', recurrence_type='daily')


# =================== GENERATION ===================

def test_weekly_generation_after_completion(user):
    rule = create_weekly(user)
    complete(user, first_occurrence(rule))

    generated = RecurringAssignmentService.generate_due(now=datetime(2024, 1, 2, 12, 0))

    assert len(generated) == 1
    assert generated[0].due_date == datetime(2024, 1, 8, 9, 0)
    assert generated[0].recurring_assignment_id == rule.id
    assert RecurringAssignment.get_by_id(rule.id).generated_count == 2


def test_generation_is_idempotent_without_completions(user):
    rule = create_weekly(user)
    complete(user, first_occurrence(rule))
    now = datetime(2024, 1, 2, 12, 0)

    first = RecurringAssignmentService.generate_due(now=now)
    second = RecurringAssignmentService.generate_due(now=now)

    assert len(first) == 1
    assert second == []
    assert len(Assignment.find_by_recurring_id(rule.id)) == 2


def test_pending_occurrence_blocks_generation(user):
    create_weekly(user)
    assert RecurringAssignmentService.generate_due(now=datetime(2024, 1, 2)) == []


def test_count_end_stops_generation(user):
    rule = create_weekly(user, end_type='count', end_count=1)
    complete(user, first_occurrence(rule))
    assert RecurringAssignmentService.generate_due(now=datetime(2024, 1, 2)) == []


def test_date_end_stops_generation(user):
    rule = create_weekly(user, end_type='date', end_date=datetime(2024, 1, 5, 23, 59))
    complete(user, first_occurrence(rule))
    assert RecurringAssignmentService.generate_due(now=datetime(2024, 1, 6)) == []


def test_generation_requires_next_date_in_future(user):
    rule = RecurringAssignmentService.create(user.id, MONDAY, title='Drill', recurrence_type='daily')
    complete(user, first_occurrence(rule))
    assert RecurringAssignmentService.generate_due(now=datetime(2024, 3, 1)) == []


def test_paused_rule_does_not_generate_until_resumed(user):
    rule = create_weekly(user)
    complete(user, first_occurrence(rule))
    now = datetime(2024, 1, 2)

    RecurringAssignmentService.set_active(user.id, rule.id, False)
    assert RecurringAssignmentService.generate_due(now=now) == []

    RecurringAssignmentService.set_active(user.id, rule.id, True)
    assert len(RecurringAssignmentService.generate_due(now=now)) == 1


def test_failure_for_one_rule_does_not_stop_the_sweep(user, monkeypatch):
    broken = create_weekly(user, title='Broken')
    healthy = create_weekly(user, title='Healthy')
    complete(user, first_occurrence(broken))
    complete(user, first_occurrence(healthy))
    broken_id = broken.id

    original = RecurringAssignmentService._generate_assignment

    def flaky(rule, due_date):
        if rule.id == broken_id:
            raise StorageError('disk full')
        return original(rule, due_date)

    monkeypatch.setattr(RecurringAssignmentService, '_generate_assignment', staticmethod(flaky))

    generated = RecurringAssignmentService.generate_due(now=datetime(2024, 1, 2))

    assert [a.title for a in generated] == ['Healthy']


def test_date_overflow_for_one_rule_does_not_stop_the_sweep(user):
    broken = RecurringAssignmentService.create(user.id, MONDAY, title='Broken', recurrence_type='daily')
    healthy = RecurringAssignmentService.create(user.id, MONDAY, title='Healthy', recurrence_type='daily')
    complete(user, first_occurrence(broken))
    complete(user, first_occurrence(healthy))
    # Stored before the interval ceiling existed
    broken.recurrence_interval = 10 ** 8
    db.session.commit()

    generated = RecurringAssignmentService.generate_due(now=datetime(2024, 1, 1, 12, 0))

    assert [a.title for a in generated] == ['Healthy']
    assert generated[0].due_date == datetime(2024, 1, 2, 9, 0)


def test_interval_ceiling_is_accepted(user):
    rule = RecurringAssignmentService.create(
        user.id, MONDAY, title='Yearly', recurrence_type='daily',
        recurrence_interval=MAX_RECURRENCE_INTERVAL
    )
    assert rule.recurrence_interval == MAX_RECURRENCE_INTERVAL


def test_create_keeps_rule_when_first_generation_fails(user, monkeypatch):
    def failing_save(self):
        raise SQLAlchemyError('database is locked')

    monkeypatch.setattr(Assignment, 'save', failing_save)

    with pytest.raises(StorageError):
        RecurringAssignmentService.create(user.id, MONDAY, title='Worksheet', recurrence_type='weekly')

    assert RecurringAssignment.query.count() == 1
    assert RecurringAssignment.query.first().generated_count == 0
    assert Assignment.query.count() == 0


# =================== EDIT PROPAGATION ===================

@pytest.fixture
def series(user, make_assignment):
    """A completed first occurrence followed by two pending ones."""
    rule = create_weekly(user)
    done = first_occurrence(rule)
    complete(user, done)
    second = make_assignment(title=rule.title, subject='Math', due_date=datetime(2024, 1, 8, 9, 0),
                             recurring_assignment_id=rule.id)
    third = make_assignment(title=rule.title, subject='Math', due_date=datetime(2024, 1, 15, 9, 0),
                            recurring_assignment_id=rule.id)
    return rule, done, second, third


def test_this_and_future_updates_later_pending_occurrences(user, series):
    rule, done, second, third = series

    RecurringAssignmentService.update_assignment_with_behavior(
        user.id, second.id, 'this_and_future', title='Revised worksheet'
    )

    assert second.title == 'Revised worksheet'
    assert third.title == 'Revised worksheet'
    assert done.title == 'Weekly worksheet'
    assert rule.title == 'Revised worksheet'


def test_this_and_future_leaves_earlier_pending_occurrences(user, series):
    rule, done, second, third = series

    RecurringAssignmentService.update_assignment_with_behavior(
        user.id, third.id, 'this_and_future', priority='high'
    )

    assert third.priority == 'high'
    assert second.priority == 'medium'
    assert rule.priority == 'high'


def test_this_only_touches_only_the_target(user, series):
    rule, done, second, third = series

    RecurringAssignmentService.update_assignment_with_behavior(
        user.id, second.id, 'this_only', title='Just this one', due_date=datetime(2024, 1, 9, 9, 0)
    )

    assert second.title == 'Just this one'
    assert second.due_date == datetime(2024, 1, 9, 9, 0)
    assert third.title == 'Weekly worksheet'
    assert rule.title == 'Weekly worksheet'


def test_all_updates_every_pending_occurrence_but_not_completed(user, series):
    rule, done, second, third = series

    RecurringAssignmentService.update_assignment_with_behavior(
        user.id, third.id, 'all', subject='Algebra', due_date=datetime(2024, 1, 20, 9, 0)
    )

    assert second.subject == 'Algebra'
    assert third.subject == 'Algebra'
    assert done.subject == 'Math'
    assert rule.subject == 'Algebra'
    # Target-only fields are not applied through the series sweep
    assert third.due_date == datetime(2024, 1, 15, 9, 0)


def test_missing_scope_uses_rule_default(user, series):
    rule, done, second, third = series
    rule.edit_behavior = EditBehavior.ALL
    db.session.commit()

    RecurringAssignmentService.update_assignment_with_behavior(user.id, third.id, None, title='Default')

    assert second.title == 'Default'
    assert done.title == 'Weekly worksheet'


def test_unknown_scope_is_rejected(user, series):
    rule, done, second, third = series
    with pytest.raises(InvalidEditBehaviorError):
        RecurringAssignmentService.update_assignment_with_behavior(
            user.id, second.id, 'sometimes', title='Nope'
        )


def test_non_recurring_assignment_is_updated_alone(user, make_assignment):
    plain = make_assignment(title='Lab report')
    other = make_assignment(title='Lab report')

    RecurringAssignmentService.update_assignment_with_behavior(user.id, plain.id, 'all', title='Lab v2')

    assert plain.title == 'Lab v2'
    assert other.title == 'Lab report'


def test_reminder_changes_rearm_target(user, series):
    rule, done, second, third = series
    second.reminder_sent = True
    db.session.commit()

    RecurringAssignmentService.update_assignment_with_behavior(
        user.id, second.id, 'this_only', reminder_enabled=True,
        reminder_at=datetime(2024, 1, 8, 7, 0)
    )

    assert second.reminder_enabled is True
    assert second.reminder_at == datetime(2024, 1, 8, 7, 0)
    assert second.reminder_sent is False


def test_edit_of_foreign_assignment_is_unauthorized(other_user, series):
    rule, done, second, third = series
    with pytest.raises(UnauthorizedError):
        RecurringAssignmentService.update_assignment_with_behavior(
            other_user.id, second.id, 'this_only', title='Hijack'
        )


# =================== TEMPLATE UPDATE ===================

def test_template_update_this_and_future_uses_now(user, series):
    rule, done, second, third = series

    RecurringAssignmentService.update(
        user.id, rule.id, edit_behavior='this_and_future',
        now=datetime(2024, 1, 10), title='From now on'
    )

    assert rule.title == 'From now on'
    assert rule.edit_behavior == EditBehavior.THIS_AND_FUTURE
    assert second.title == 'Weekly worksheet'
    assert third.title == 'From now on'
    assert done.title == 'Weekly worksheet'


def test_template_update_all_skips_completed(user, series):
    rule, done, second, third = series

    RecurringAssignmentService.update(user.id, rule.id, edit_behavior='all', description='Pages 1-10')

    assert second.description == 'Pages 1-10'
    assert third.description == 'Pages 1-10'
    assert done.description == ''


def test_template_update_this_only_leaves_occurrences(user, series):
    rule, done, second, third = series

    RecurringAssignmentService.update(user.id, rule.id, title='Template only')

    assert rule.title == 'Template only'
    assert second.title == 'Weekly worksheet'


def test_template_update_clears_selector_when_type_changes(user):
    rule = create_weekly(user)
    RecurringAssignmentService.update(user.id, rule.id, recurrence_type='daily')

    assert rule.recurrence_type == RecurrenceType.DAILY
    assert rule.recurrence_weekday is None


# =================== LOOKUP & DELETE ===================

def test_get_by_id_checks_owner(user, other_user):
    rule = create_weekly(user)
    assert RecurringAssignmentService.get_by_id(user.id, rule.id) is rule
    with pytest.raises(UnauthorizedError):
        RecurringAssignmentService.get_by_id(other_user.id, rule.id)
    with pytest.raises(NotFoundError):
        RecurringAssignmentService.get_by_id(user.id, rule.id + 100)


def test_active_listing(user):
    active = create_weekly(user, title='Active')
    paused = create_weekly(user, title='Paused')
    RecurringAssignmentService.set_active(user.id, paused.id, False)

    assert {r.id for r in RecurringAssignmentService.get_all_by_user(user.id)} == {active.id, paused.id}
    assert [r.id for r in RecurringAssignmentService.get_active_by_user(user.id)] == [active.id]


def test_delete_with_cascade_removes_future_pending_only(user, series, make_assignment):
    rule, done, second, third = series
    rule_id = rule.id
    done_id, second_id, third_id = done.id, second.id, third.id

    RecurringAssignmentService.delete(user.id, rule_id, cascade_future=True, now=datetime(2024, 1, 10))

    assert db.session.get(Assignment, third_id) is None
    # Pending but already past "now"
    assert db.session.get(Assignment, second_id) is not None
    survivor = db.session.get(Assignment, done_id)
    assert survivor is not None
    assert survivor.is_completed is True
    assert survivor.recurring_assignment_id is None
    with pytest.raises(NotFoundError):
        RecurringAssignmentService.get_by_id(user.id, rule_id)


def test_delete_with_cascade_keeps_completed_future_occurrences(user, series, make_assignment):
    rule, done, second, third = series
    rule_id = rule.id
    complete(user, third, when=datetime(2024, 1, 9, 8, 0))
    fourth = make_assignment(title=rule.title, due_date=datetime(2024, 1, 22, 9, 0),
                             recurring_assignment_id=rule_id)
    third_id, fourth_id = third.id, fourth.id

    RecurringAssignmentService.delete(user.id, rule_id, cascade_future=True, now=datetime(2024, 1, 10))

    survivor = db.session.get(Assignment, third_id)
    assert survivor is not None
    assert survivor.is_completed is True
    assert survivor.recurring_assignment_id is None
    assert db.session.get(Assignment, fourth_id) is None


def test_delete_without_cascade_keeps_occurrences(user, series):
    rule, done, second, third = series
    rule_id = rule.id

    RecurringAssignmentService.delete(user.id, rule_id, now=datetime(2024, 1, 2))

    assert Assignment.query.filter_by(user_id=user.id).count() == 3
    assert Assignment.find_by_recurring_id(rule_id) == []
    assert RecurringAssignment.get_by_id(rule_id) is None
