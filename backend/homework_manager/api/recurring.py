"""Recurring assignments REST API (API key authentication)."""
from flask import Blueprint, g, request

from homework_manager.services.recurring_assignment_service import RecurringAssignmentService
from homework_manager.utils.decorators import api_key_required
from homework_manager.utils.helpers import (
    success_response, error_response, parse_datetime, parse_bool, parse_int
)

recurring_bp = Blueprint('recurring', __name__)

TEXT_FIELDS = ('title', 'description', 'subject', 'priority', 'recurrence_type',
               'due_time', 'end_type')
INT_FIELDS = ('recurrence_interval', 'recurrence_weekday', 'recurrence_day',
              'end_count', 'reminder_offset')
BOOL_FIELDS = ('reminder_enabled', 'urgent_reminder_enabled', 'is_active')


@recurring_bp.route('/recurring', methods=['GET'])
@api_key_required
def list_recurring():
    if parse_bool(request.args.get('active', 'false')):
        rules = RecurringAssignmentService.get_active_by_user(g.current_user_id)
    else:
        rules = RecurringAssignmentService.get_all_by_user(g.current_user_id)
    return success_response(data={
        'recurring_assignments': [rule.to_dict() for rule in rules],
        'count': len(rules)
    })


@recurring_bp.route('/recurring/<int:rule_id>', methods=['GET'])
@api_key_required
def get_recurring(rule_id):
    rule = RecurringAssignmentService.get_by_id(g.current_user_id, rule_id)
    return success_response(data=rule.to_dict())


@recurring_bp.route('/recurring/<int:rule_id>', methods=['PUT'])
@api_key_required
def update_recurring(rule_id):
    """Update the series template; ``edit_behavior`` picks which pending occurrences follow."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response('Request body must be JSON', 400)

    fields = {key: data[key] for key in TEXT_FIELDS if key in data}
    for key in INT_FIELDS:
        if key in data:
            fields[key] = parse_int(data[key], key)
    for key in BOOL_FIELDS:
        if key in data:
            fields[key] = parse_bool(data[key])
    if 'end_date' in data:
        fields['end_date'] = parse_datetime(data['end_date'], 'end_date')

    rule = RecurringAssignmentService.update(
        g.current_user_id, rule_id, edit_behavior=data.get('edit_behavior') or None, **fields
    )
    return success_response(data=rule.to_dict(), message='Recurring assignment updated')


@recurring_bp.route('/recurring/<int:rule_id>', methods=['DELETE'])
@api_key_required
def delete_recurring(rule_id):
    delete_future = parse_bool(request.args.get('delete_future', 'false'))
    RecurringAssignmentService.delete(g.current_user_id, rule_id, cascade_future=delete_future)
    return success_response(message='Recurring assignment deleted')


@recurring_bp.route('/recurring/<int:rule_id>/pause', methods=['POST'])
@api_key_required
def pause_recurring(rule_id):
    rule = RecurringAssignmentService.set_active(g.current_user_id, rule_id, False)
    return success_response(data=rule.to_dict(), message='Recurring assignment paused')


@recurring_bp.route('/recurring/<int:rule_id>/resume', methods=['POST'])
@api_key_required
def resume_recurring(rule_id):
    rule = RecurringAssignmentService.set_active(g.current_user_id, rule_id, True)
    return success_response(data=rule.to_dict(), message='Recurring assignment resumed')
