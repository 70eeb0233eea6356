"""Validation utilities for the application."""
import re
import unicodedata
from typing import Dict, List, Any

MAX_LENGTHS = {
    'title': 200,
    'description': 5000,
    'subject': 100,
    'priority': 20,
}

_SCRIPT_PATTERNS = [
    re.compile(r'<\s*script', re.IGNORECASE),
    re.compile(r'javascript\s*:', re.IGNORECASE),
    re.compile(r'<\s*iframe', re.IGNORECASE),
    re.compile(r'<[^>]*\bon\w+\s*=', re.IGNORECASE),
]

class ValidationError(Exception):
    """Invalid user input."""

    status_code = 400

    def __init__(self, message: str, field: str = None):
        self.field = field
        self.message = f'{field}: {message}' if field else message
        super().__init__(self.message)

class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        if not email:
            return False
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, email))

    @staticmethod
    def validate_password(password: str) -> Dict[str, Any]:
        """Validate password strength."""
        errors = []

        if not password:
            errors.append("Password is required")
        elif len(password) < 8:
            errors.append("Password must be at least 8 characters long")
        elif len(password) > 128:
            errors.append("Password is too long")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_name(name: str) -> Dict[str, Any]:
        """Validate user name."""
        errors = []

        if not name or not name.strip():
            errors.append("Name is required")
        elif len(name.strip()) > 100:
            errors.append("Name is too long")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> Dict[str, Any]:
        """Validate required fields in data."""
        errors = []

        for field in required_fields:
            if field not in data or data[field] in (None, ''):
                errors.append(f"{field.title()} is required")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_field(name: str, value: str, required: bool = False) -> None:
        """Check a free-text field; raises ValidationError."""
        if value is not None and not isinstance(value, str):
            raise ValidationError("must be a string", field=name)
        if required and (value is None or not str(value).strip()):
            raise ValidationError("is required", field=name)
        if not value:
            return

        max_length = MAX_LENGTHS.get(name)
        if max_length is not None and len(value) > max_length:
            raise ValidationError(f"must be at most {max_length} characters", field=name)

        if name != 'description':
            for char in value:
                if unicodedata.category(char) == 'Cc' and char not in '\n\r\t':
                    raise ValidationError("contains control characters", field=name)

        for pattern in _SCRIPT_PATTERNS:
            if pattern.search(value):
                raise ValidationError("contains HTML or script content", field=name)

    @staticmethod
    def validate_assignment_input(title: str, description: str = '', subject: str = '',
                                  priority: str = '') -> None:
        Validator.validate_field('title', title, required=True)
        Validator.validate_field('description', description)
        Validator.validate_field('subject', subject)
        Validator.validate_field('priority', priority)
        Validator.validate_priority(priority)

    @staticmethod
    def validate_priority(priority: str) -> None:
        from homework_manager.models.assignment import PRIORITIES

        if priority and priority not in PRIORITIES:
            raise ValidationError(f"must be one of {', '.join(PRIORITIES)}", field='priority')
