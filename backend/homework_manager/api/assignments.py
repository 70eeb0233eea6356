"""Assignments REST API (API key authentication)."""
from flask import Blueprint, g, request

from homework_manager.models.assignment import Assignment
from homework_manager.services.assignment_service import AssignmentService
from homework_manager.services.recurring_assignment_service import RecurringAssignmentService
from homework_manager.utils.decorators import api_key_required
from homework_manager.utils.validators import Validator, ValidationError
from homework_manager.utils.helpers import (
    success_response, error_response, parse_datetime, parse_date, parse_pagination,
    parse_bool, parse_int
)

assignments_bp = Blueprint('assignments', __name__)

UPDATE_FIELDS = ('title', 'description', 'subject', 'priority', 'reminder_enabled',
                 'urgent_reminder_enabled')


def _list_response(assignments):
    return success_response(data={
        'assignments': [a.to_dict() for a in assignments],
        'count': len(assignments)
    })


def _recurrence_fields(recurrence: dict, data: dict, due_date) -> dict:
    """Translate the ``recurrence`` request object into rule fields."""
    fields = {
        'title': data.get('title', ''),
        'description': data.get('description', ''),
        'subject': data.get('subject', ''),
        'priority': data.get('priority') or 'medium',
        'recurrence_type': recurrence.get('type'),
        'recurrence_interval': parse_int(recurrence.get('interval'), 'recurrence.interval') or 1,
        'recurrence_weekday': parse_int(recurrence.get('weekday'), 'recurrence.weekday'),
        'recurrence_day': parse_int(recurrence.get('day'), 'recurrence.day'),
        'due_time': due_date.strftime('%H:%M'),
        'edit_behavior': data.get('edit_behavior'),
        'reminder_enabled': parse_bool(data.get('reminder_enabled', False)),
        'urgent_reminder_enabled': parse_bool(data.get('urgent_reminder_enabled', True)),
    }

    # A concrete reminder time becomes an offset relative to each due date
    reminder_at = parse_datetime(data.get('reminder_at'), 'reminder_at')
    if fields['reminder_enabled'] and reminder_at is not None and reminder_at <= due_date:
        fields['reminder_offset'] = int((due_date - reminder_at).total_seconds() // 60)

    until = recurrence.get('until') or {}
    if not isinstance(until, dict):
        raise ValidationError('must be an object', field='recurrence.until')
    end_type = until.get('type') or 'never'
    fields['end_type'] = end_type
    if end_type == 'count':
        fields['end_count'] = parse_int(until.get('count'), 'recurrence.until.count')
    elif end_type == 'date':
        fields['end_date'] = parse_datetime(until.get('date'), 'recurrence.until.date')
    return fields


@assignments_bp.route('/assignments', methods=['GET'])
@api_key_required
def list_assignments():
    """List assignments; ``filter`` selects pending, completed or overdue."""
    page, page_size = parse_pagination()
    status_filter = request.args.get('filter', '')
    query = request.args.get('q', '').strip()
    priority = request.args.get('priority', '').strip()

    if query or priority:
        result = AssignmentService.search(
            g.current_user_id, query=query, priority=priority,
            filter=status_filter or 'pending', page=page, page_size=page_size
        )
    elif status_filter == 'pending':
        result = AssignmentService.get_pending_by_user_paginated(g.current_user_id, page, page_size)
    elif status_filter == 'completed':
        result = AssignmentService.get_completed_by_user_paginated(g.current_user_id, page, page_size)
    elif status_filter == 'overdue':
        result = AssignmentService.get_overdue_by_user_paginated(g.current_user_id, page, page_size)
    else:
        result = AssignmentService.get_all_by_user_paginated(g.current_user_id, page, page_size)

    return success_response(data=result.to_dict())


@assignments_bp.route('/assignments/pending', methods=['GET'])
@api_key_required
def list_pending():
    page, page_size = parse_pagination()
    result = AssignmentService.get_pending_by_user_paginated(g.current_user_id, page, page_size)
    return success_response(data=result.to_dict())


@assignments_bp.route('/assignments/completed', methods=['GET'])
@api_key_required
def list_completed():
    page, page_size = parse_pagination()
    result = AssignmentService.get_completed_by_user_paginated(g.current_user_id, page, page_size)
    return success_response(data=result.to_dict())


@assignments_bp.route('/assignments/overdue', methods=['GET'])
@api_key_required
def list_overdue():
    page, page_size = parse_pagination()
    result = AssignmentService.get_overdue_by_user_paginated(g.current_user_id, page, page_size)
    return success_response(data=result.to_dict())


@assignments_bp.route('/assignments/due-today', methods=['GET'])
@api_key_required
def list_due_today():
    return _list_response(AssignmentService.get_due_today_by_user(g.current_user_id))


@assignments_bp.route('/assignments/due-this-week', methods=['GET'])
@api_key_required
def list_due_this_week():
    return _list_response(AssignmentService.get_due_this_week_by_user(g.current_user_id))


@assignments_bp.route('/assignments/<int:assignment_id>', methods=['GET'])
@api_key_required
def get_assignment(assignment_id):
    assignment = AssignmentService.get_by_id(g.current_user_id, assignment_id)
    return success_response(data=assignment.to_dict())


@assignments_bp.route('/assignments', methods=['POST'])
@api_key_required
def create_assignment():
    """Create an assignment, or a recurring series when ``recurrence.type`` is set."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return error_response('Request body must be JSON', 400)
    if not data.get('due_date'):
        return error_response('due_date: is required', 400)

    due_date = parse_datetime(data.get('due_date'), 'due_date')
    recurrence = data.get('recurrence') or {}
    if not isinstance(recurrence, dict):
        return error_response('recurrence: must be an object', 400)

    if recurrence.get('type') and recurrence.get('type') != 'none':
        fields = _recurrence_fields(recurrence, data, due_date)
        rule = RecurringAssignmentService.create(g.current_user_id, due_date, **fields)
        first = Assignment.find_latest_by_recurring_id(rule.id)
        return success_response(
            data={
                'recurring_assignment': rule.to_dict(),
                'assignment': first.to_dict() if first else None
            },
            message='Recurring assignment created',
            status_code=201
        )

    reminder_enabled = parse_bool(data.get('reminder_enabled', False))
    assignment = AssignmentService.create(
        g.current_user_id,
        title=data.get('title', ''),
        due_date=due_date,
        description=data.get('description', ''),
        subject=data.get('subject', ''),
        priority=data.get('priority') or 'medium',
        reminder_enabled=reminder_enabled,
        reminder_at=parse_datetime(data.get('reminder_at'), 'reminder_at'),
        urgent_reminder_enabled=parse_bool(data.get('urgent_reminder_enabled', True))
    )
    return success_response(data=assignment.to_dict(), message='Assignment created', status_code=201)


@assignments_bp.route('/assignments/<int:assignment_id>', methods=['PUT'])
@api_key_required
def update_assignment(assignment_id):
    """Update an assignment; ``edit_behavior`` scopes the edit for recurring ones."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('Request body must be JSON', 400)

    changes = {key: data[key] for key in UPDATE_FIELDS if key in data}
    for key in ('reminder_enabled', 'urgent_reminder_enabled'):
        if key in changes:
            changes[key] = parse_bool(changes[key])
    if data.get('due_date'):
        changes['due_date'] = parse_datetime(data['due_date'], 'due_date')
    if 'reminder_at' in data:
        changes['reminder_at'] = parse_datetime(data['reminder_at'], 'reminder_at')

    assignment = RecurringAssignmentService.update_assignment_with_behavior(
        g.current_user_id, assignment_id, data.get('edit_behavior') or None, **changes
    )
    return success_response(data=assignment.to_dict(), message='Assignment updated')


@assignments_bp.route('/assignments/<int:assignment_id>', methods=['DELETE'])
@api_key_required
def delete_assignment(assignment_id):
    """Delete an assignment; ``delete_recurring=true`` also removes its series rule."""
    assignment = AssignmentService.get_by_id(g.current_user_id, assignment_id)

    if parse_bool(request.args.get('delete_recurring', 'false')) and assignment.is_recurring:
        RecurringAssignmentService.delete(g.current_user_id, assignment.recurring_assignment_id)
        AssignmentService.delete(g.current_user_id, assignment_id)
        return success_response(message='Assignment and recurring settings deleted')

    AssignmentService.delete(g.current_user_id, assignment_id)
    return success_response(message='Assignment deleted')


@assignments_bp.route('/assignments/<int:assignment_id>/toggle', methods=['PATCH'])
@api_key_required
def toggle_assignment(assignment_id):
    assignment = AssignmentService.toggle_complete(g.current_user_id, assignment_id)
    return success_response(data=assignment.to_dict())


@assignments_bp.route('/dashboard', methods=['GET'])
@api_key_required
def dashboard():
    return success_response(data=AssignmentService.get_dashboard_stats(g.current_user_id))


@assignments_bp.route('/statistics', methods=['GET'])
@api_key_required
def statistics():
    """Completion statistics, optionally filtered by subject and creation date."""
    subject = request.args.get('subject', '').strip() or None
    date_from = parse_date(request.args.get('from'), 'from')
    date_to = parse_date(request.args.get('to'), 'to')
    include_archived = parse_bool(request.args.get('include_archived', 'false'))

    stats = AssignmentService.get_statistics(
        g.current_user_id, subject=subject, date_from=date_from,
        date_to=date_to, include_archived=include_archived
    )
    if subject is None:
        stats['subjects'] = AssignmentService.get_statistics_by_subject(
            g.current_user_id, date_from=date_from, date_to=date_to,
            include_archived=include_archived
        )
    return success_response(data=stats)


@assignments_bp.route('/subjects', methods=['GET'])
@api_key_required
def list_subjects():
    return success_response(data={
        'subjects': AssignmentService.get_subjects_by_user(g.current_user_id, include_archived=False),
        'archived': AssignmentService.get_archived_subjects(g.current_user_id)
    })


@assignments_bp.route('/subjects/archive', methods=['POST'])
@api_key_required
def archive_subject():
    data = request.get_json(silent=True) or {}
    subject = data.get('subject') or ''
    Validator.validate_field('subject', subject)
    subject = subject.strip()
    if not subject:
        return error_response('subject: is required', 400)

    if parse_bool(data.get('archived', True)):
        count = AssignmentService.archive_subject(g.current_user_id, subject)
    else:
        count = AssignmentService.unarchive_subject(g.current_user_id, subject)
    return success_response(data={'subject': subject, 'updated': count})
