"""Service layer exceptions."""


class ServiceError(Exception):
    """Base error raised by services; carries the HTTP status to report."""

    status_code = 500
    default_message = 'Service error'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NotFoundError(ServiceError):
    status_code = 404
    default_message = 'Not found'


class UnauthorizedError(ServiceError):
    status_code = 403
    default_message = 'Unauthorized'


class InvalidRecurrenceTypeError(ServiceError):
    status_code = 400
    default_message = 'Invalid recurrence type'


class InvalidEndTypeError(ServiceError):
    status_code = 400
    default_message = 'Invalid end type'


class InvalidEditBehaviorError(ServiceError):
    status_code = 400
    default_message = 'Invalid edit behavior'


class StorageError(ServiceError):
    """Database failure; the session has already been rolled back."""
    status_code = 500
    default_message = 'Database error'
