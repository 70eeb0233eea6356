"""Recurring assignment service.

Owns the RecurringAssignment lifecycle: materializing the first occurrence on
creation, the periodic generation sweep, edit propagation across a series and
pause/resume/delete.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from homework_manager import db
from homework_manager.models.assignment import Assignment
from homework_manager.models.recurring_assignment import (
    RecurringAssignment, RecurrenceType, EndType, EditBehavior
)
from homework_manager.services.errors import (
    NotFoundError, UnauthorizedError, StorageError,
    InvalidRecurrenceTypeError, InvalidEndTypeError, InvalidEditBehaviorError
)
from homework_manager.services.recurrence import (
    next_due_date, should_generate_next, apply_due_time, reminder_at_for, parse_due_time
)
from homework_manager.utils.validators import Validator, ValidationError

logger = logging.getLogger(__name__)

RULE_FIELDS = (
    'title', 'description', 'subject', 'priority',
    'recurrence_type', 'recurrence_interval', 'recurrence_weekday', 'recurrence_day',
    'due_time', 'end_type', 'end_count', 'end_date', 'edit_behavior',
    'reminder_enabled', 'reminder_offset', 'urgent_reminder_enabled', 'is_active',
)

# Copied to sibling occurrences when a series is edited
PROPAGATED_FIELDS = ('title', 'description', 'subject', 'priority', 'urgent_reminder_enabled')

# Only ever applied to the occurrence being edited
TARGET_ONLY_FIELDS = ('due_date', 'reminder_enabled', 'reminder_at')

_TEXT_FIELDS = ('title', 'description', 'subject', 'priority')

_INT_FIELDS = ('recurrence_interval', 'recurrence_weekday', 'recurrence_day', 'end_count', 'reminder_offset')

MAX_RECURRENCE_INTERVAL = 365


def _coerce_enum(enum_cls, value, error_cls):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise error_cls(f"{error_cls.default_message}: {value!r}")


def coerce_edit_behavior(value) -> EditBehavior:
    return _coerce_enum(EditBehavior, value, InvalidEditBehaviorError)


class RecurringAssignmentService:
    """Service class for recurring assignments."""

    @staticmethod
    def create(user_id: int, first_due_date: datetime, **fields) -> RecurringAssignment:
        """Persist a rule and generate its first occurrence at first_due_date."""
        fields.setdefault('recurrence_type', RecurrenceType.NONE)
        fields.setdefault('end_type', EndType.NEVER)
        data = RecurringAssignmentService._normalize_rule_fields(fields)
        Validator.validate_assignment_input(
            data.get('title'), data.get('description', ''),
            data.get('subject', ''), data.get('priority', '')
        )
        if data.get('edit_behavior') is None:
            data['edit_behavior'] = EditBehavior.THIS_ONLY
        data['is_active'] = True

        rule = RecurringAssignment(user_id=user_id, generated_count=0, **data)
        try:
            rule.save()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to save recurring assignment: {e}")

        RecurringAssignmentService._generate_assignment(rule, first_due_date)
        logger.info(f"Recurring assignment {rule.id} created for user {user_id}")
        return rule

    @staticmethod
    def get_by_id(user_id: int, rule_id: int) -> RecurringAssignment:
        rule = RecurringAssignment.get_by_id(rule_id)
        if rule is None:
            raise NotFoundError("Recurring assignment not found")
        if rule.user_id != user_id:
            raise UnauthorizedError()
        return rule

    @staticmethod
    def get_all_by_user(user_id: int) -> List[RecurringAssignment]:
        return RecurringAssignment.find_by_user(user_id)

    @staticmethod
    def get_active_by_user(user_id: int) -> List[RecurringAssignment]:
        return RecurringAssignment.find_by_user(user_id, active_only=True)

    @staticmethod
    def update(user_id: int, rule_id: int, edit_behavior=None, now: datetime = None,
               **fields) -> RecurringAssignment:
        """Edit the template and carry the changes into pending occurrences.

        ``edit_behavior`` becomes the rule's stored default when given and
        selects the occurrences touched:

        - ``all``: every uncompleted occurrence
        - ``this_and_future``: uncompleted occurrences due at or after now
        - ``this_only``: none
        """
        rule = RecurringAssignmentService.get_by_id(user_id, rule_id)
        if edit_behavior is not None:
            fields['edit_behavior'] = edit_behavior
        data = RecurringAssignmentService._normalize_rule_fields(fields, current=rule)
        for name in _TEXT_FIELDS:
            if name in data:
                Validator.validate_field(name, data[name], required=(name == 'title'))
        if 'priority' in data:
            Validator.validate_priority(data['priority'])

        for key, value in data.items():
            setattr(rule, key, value)

        scope = rule.edit_behavior
        changes = {k: v for k, v in data.items() if k in PROPAGATED_FIELDS}
        targets = []
        if changes and scope == EditBehavior.ALL:
            targets = Assignment.find_by_recurring_id(rule.id)
        elif changes and scope == EditBehavior.THIS_AND_FUTURE:
            targets = Assignment.find_by_recurring_id(rule.id, from_date=now or datetime.now())

        updated = RecurringAssignmentService._apply_to_pending(targets, changes)
        RecurringAssignmentService._commit("Failed to update recurring assignment")
        logger.debug(f"Recurring assignment {rule.id} updated, {updated} occurrence(s) propagated")
        return rule

    @staticmethod
    def set_active(user_id: int, rule_id: int, is_active: bool) -> RecurringAssignment:
        """Pause or resume generation."""
        rule = RecurringAssignmentService.get_by_id(user_id, rule_id)
        rule.is_active = bool(is_active)
        RecurringAssignmentService._commit("Failed to update recurring assignment")
        logger.info(f"Recurring assignment {rule.id} {'resumed' if rule.is_active else 'paused'}")
        return rule

    @staticmethod
    def update_assignment_with_behavior(user_id: int, assignment_id: int, edit_behavior=None,
                                        **changes) -> Assignment:
        """Edit one occurrence and, depending on scope, the rest of its series.

        Completed occurrences other than the target are never modified.
        """
        assignment = Assignment.get_by_id(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        if assignment.user_id != user_id:
            raise UnauthorizedError()

        scope = coerce_edit_behavior(edit_behavior) if edit_behavior is not None else None
        changes = {k: v for k, v in changes.items() if k in PROPAGATED_FIELDS + TARGET_ONLY_FIELDS}
        for name in _TEXT_FIELDS:
            if name in changes:
                Validator.validate_field(name, changes[name], required=(name == 'title'))
        if 'priority' in changes:
            Validator.validate_priority(changes['priority'])

        rule = None
        if assignment.recurring_assignment_id is not None:
            rule = RecurringAssignment.get_by_id(assignment.recurring_assignment_id)
            if rule is not None and rule.user_id != user_id:
                rule = None

        if rule is None:
            RecurringAssignmentService._apply_to_target(assignment, changes)
            RecurringAssignmentService._commit("Failed to update assignment")
            return assignment

        scope = scope or rule.edit_behavior
        propagated = {k: v for k, v in changes.items() if k in PROPAGATED_FIELDS}

        if scope == EditBehavior.THIS_ONLY:
            RecurringAssignmentService._apply_to_target(assignment, changes)
            siblings = []
        elif scope == EditBehavior.THIS_AND_FUTURE:
            RecurringAssignmentService._apply_to_target(assignment, changes)
            for key, value in propagated.items():
                setattr(rule, key, value)
            siblings = Assignment.find_by_recurring_id(rule.id, from_date=assignment.due_date)
        else:
            for key, value in propagated.items():
                setattr(rule, key, value)
            siblings = Assignment.find_by_recurring_id(rule.id)

        updated = RecurringAssignmentService._apply_to_pending(siblings, propagated)
        RecurringAssignmentService._commit("Failed to update assignment")
        logger.debug(
            f"Assignment {assignment.id} edited with scope {scope.value}, "
            f"{updated} occurrence(s) in series {rule.id} updated"
        )
        return assignment

    @staticmethod
    def delete(user_id: int, rule_id: int, cascade_future: bool = False,
               now: datetime = None) -> None:
        """Delete a rule, optionally with its future uncompleted occurrences.

        Remaining occurrences keep their rows and lose the back-reference.
        """
        rule = RecurringAssignmentService.get_by_id(user_id, rule_id)
        now = now or datetime.now()
        removed = 0
        try:
            if cascade_future:
                for assignment in Assignment.find_by_recurring_id(rule.id, from_date=now):
                    if not assignment.is_completed:
                        db.session.delete(assignment)
                        removed += 1
            Assignment.detach_from_recurring(rule.id)
            db.session.delete(rule)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to delete recurring assignment: {e}")

        logger.info(f"Recurring assignment {rule_id} deleted ({removed} future occurrence(s) removed)")

    @staticmethod
    def generate_due(now: datetime = None) -> List[Assignment]:
        """Generation sweep, run by the scheduler.

        A rule gets a new occurrence only when it has no pending one and the
        next due date lies strictly after now. Failures are isolated per rule.
        """
        now = now or datetime.now()
        generated = []

        for rule in RecurringAssignment.find_active_for_generation():
            rule_id = rule.id
            try:
                if not should_generate_next(rule, now):
                    continue
                if Assignment.count_pending_by_recurring_id(rule_id) > 0:
                    continue

                latest = Assignment.find_latest_by_recurring_id(rule_id)
                due = next_due_date(rule, latest.due_date) if latest else now
                if due > now:
                    generated.append(RecurringAssignmentService._generate_assignment(rule, due))
            except Exception:
                db.session.rollback()
                logger.exception(f"Failed to generate next assignment for recurring assignment {rule_id}")

        if generated:
            logger.info(f"Generated {len(generated)} recurring assignment occurrence(s)")
        return generated

    # =================== INTERNALS ===================

    @staticmethod
    def _generate_assignment(rule: RecurringAssignment, due_date: datetime) -> Assignment:
        due_date = apply_due_time(rule, due_date)
        assignment = Assignment(
            user_id=rule.user_id,
            title=rule.title,
            description=rule.description,
            subject=rule.subject,
            priority=rule.priority,
            due_date=due_date,
            reminder_enabled=rule.reminder_enabled,
            reminder_at=reminder_at_for(rule, due_date),
            urgent_reminder_enabled=rule.urgent_reminder_enabled,
            recurring_assignment_id=rule.id,
        )
        try:
            assignment.save()
            rule.generated_count += 1
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"Failed to generate assignment: {e}")

        logger.info(f"Generated assignment {assignment.id} from recurring assignment {rule.id} due {due_date}")
        return assignment

    @staticmethod
    def _apply_to_target(assignment: Assignment, changes: dict) -> None:
        for key in PROPAGATED_FIELDS + ('due_date',):
            if key in changes:
                setattr(assignment, key, changes[key])
        if 'reminder_enabled' in changes or 'reminder_at' in changes:
            assignment.configure_reminder(
                changes.get('reminder_enabled', assignment.reminder_enabled),
                changes.get('reminder_at', assignment.reminder_at)
            )

    @staticmethod
    def _apply_to_pending(assignments: List[Assignment], changes: dict) -> int:
        if not changes:
            return 0
        count = 0
        for assignment in assignments:
            if assignment.is_completed:
                continue
            for key, value in changes.items():
                setattr(assignment, key, value)
            count += 1
        return count

    @staticmethod
    def _commit(message: str) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StorageError(f"{message}: {e}")

    @staticmethod
    def _normalize_rule_fields(fields: dict, current: Optional[RecurringAssignment] = None) -> dict:
        """Validate and coerce rule fields.

        Selectors that do not match the effective recurrence type are cleared.
        """
        data = {k: v for k, v in fields.items() if k in RULE_FIELDS}

        for name in ('description', 'subject', 'due_time'):
            if name in data and data[name] is None:
                data[name] = ''

        if 'recurrence_type' in data:
            data['recurrence_type'] = _coerce_enum(
                RecurrenceType, data['recurrence_type'], InvalidRecurrenceTypeError
            )
        if 'end_type' in data:
            data['end_type'] = _coerce_enum(EndType, data['end_type'], InvalidEndTypeError)
        if data.get('edit_behavior') is not None:
            data['edit_behavior'] = coerce_edit_behavior(data['edit_behavior'])
        else:
            data.pop('edit_behavior', None)

        for name in _INT_FIELDS:
            value = data.get(name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise ValidationError("must be an integer", field=name)

        if 'recurrence_interval' in data:
            interval = data['recurrence_interval']
            if interval is not None and interval > MAX_RECURRENCE_INTERVAL:
                raise ValidationError(f"must be at most {MAX_RECURRENCE_INTERVAL}", field='recurrence_interval')
            data['recurrence_interval'] = interval if interval and interval >= 1 else 1

        recurrence_type = data.get('recurrence_type', getattr(current, 'recurrence_type', None))
        weekday = data.get('recurrence_weekday', getattr(current, 'recurrence_weekday', None))
        day = data.get('recurrence_day', getattr(current, 'recurrence_day', None))

        if recurrence_type != RecurrenceType.WEEKLY:
            if weekday is not None:
                data['recurrence_weekday'] = None
        elif weekday is not None and not 0 <= weekday <= 6:
            raise ValidationError("must be between 0 and 6", field='recurrence_weekday')

        if recurrence_type != RecurrenceType.MONTHLY:
            if day is not None:
                data['recurrence_day'] = None
        elif day is not None and not 1 <= day <= 31:
            raise ValidationError("must be between 1 and 31", field='recurrence_day')

        if data.get('due_time') and parse_due_time(data['due_time']) is None:
            raise ValidationError("must be in HH:MM format", field='due_time')
        if data.get('end_count') is not None and data['end_count'] < 1:
            raise ValidationError("must be at least 1", field='end_count')
        if data.get('reminder_offset') is not None and data['reminder_offset'] < 0:
            raise ValidationError("must not be negative", field='reminder_offset')

        return data
