"""Helper functions for the application."""
from datetime import datetime, timedelta
from typing import Any, Optional, Tuple

from flask import current_app, jsonify, request

from homework_manager.utils.validators import ValidationError

def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code

def success_response(data: Any = None, message: str = "Success", status_code: int = 200):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }

    if data is not None:
        response['data'] = data

    return jsonify(response), status_code

def error_response(message: str, status_code: int = 400):
    """Return consistent error response."""
    return jsonify({
        'error': True,
        'message': message,
        'status_code': status_code
    }), status_code

def parse_datetime(value: Optional[str], field: str = 'date') -> Optional[datetime]:
    """Parse ISO 8601, ``YYYY-MM-DDTHH:MM`` or a bare ``YYYY-MM-DD``.

    A bare date means the end of that day (23:59). Timezone-aware values are
    converted to naive local time.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value

    text = str(value).strip()
    if len(text) == 10:
        try:
            return datetime.strptime(text, '%Y-%m-%d') + timedelta(hours=23, minutes=59)
        except ValueError:
            raise ValidationError("invalid date, use YYYY-MM-DD", field=field)

    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError("invalid date, use ISO 8601 or YYYY-MM-DDTHH:MM", field=field)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed

def parse_date(value: Optional[str], field: str = 'date') -> Optional[datetime]:
    """Parse a ``YYYY-MM-DD`` query value to midnight of that day."""
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise ValidationError("invalid date, use YYYY-MM-DD", field=field)

def parse_pagination() -> Tuple[int, int]:
    """Read page/page_size from the query string, clamped to the configured bounds."""
    default_size = current_app.config.get('DEFAULT_PAGE_SIZE', 20)
    max_size = current_app.config.get('MAX_PAGE_SIZE', 100)

    page = request.args.get('page', 1, type=int) or 1
    page_size = request.args.get('page_size', default_size, type=int) or default_size

    page = max(page, 1)
    if page_size < 1:
        page_size = default_size
    return page, min(page_size, max_size)

def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('1', 'true', 'yes', 'on')

def parse_int(value: Any, field: str) -> Optional[int]:
    """Coerce an optional JSON number; bools and fractional numbers are rejected."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError("must be an integer", field=field)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("must be an integer", field=field)
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("must be an integer", field=field)
