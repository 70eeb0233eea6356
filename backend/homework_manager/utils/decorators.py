"""Custom decorators for authorization."""
from functools import wraps

from flask import g, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from homework_manager.models.user import User
from homework_manager.services.api_key_service import APIKeyService
from homework_manager.utils.helpers import error_response

def admin_required(f):
    """Decorator to require a JWT belonging to an admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        verify_jwt_in_request()
        user = User.get_by_id(int(get_jwt_identity()))

        if not user:
            return error_response("User not found", 404)

        if not user.is_admin():
            return error_response("Admin access required", 403)

        g.current_user_id = user.id
        return f(*args, **kwargs)
    return decorated_function

def api_key_required(f):
    """Decorator to require ``Authorization: Bearer <api key>``.

    The authenticated user id is stored in ``g.current_user_id``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        if scheme != 'Bearer' or not token.strip():
            return error_response("Authorization header required", 401)

        user_id = APIKeyService.validate_api_key(token.strip())
        if user_id is None:
            return error_response("Invalid API key", 401)

        g.current_user_id = user_id
        return f(*args, **kwargs)
    return decorated_function
