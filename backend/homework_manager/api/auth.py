"""Authentication API."""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from homework_manager import limiter
from homework_manager.utils.helpers import success_response, error_response, parse_bool
from homework_manager.services.auth_service import AuthService
from homework_manager.services.reminder_service import ReminderService

auth_bp = Blueprint("auth", __name__)

@auth_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return success_response(message="Auth service is running")

@auth_bp.route("/register", methods=["POST"])
@limiter.limit("10 per hour")
def register():
    data = request.get_json(silent=True)
    if not data:
        return error_response("Request body must be JSON", 400)

    result, error = AuthService.register(
        data.get("email", ""),
        data.get("password", ""),
        data.get("name", "")
    )
    if error:
        status = 403 if error == "Registration is disabled" else 400
        return error_response(error, status)

    return success_response(data=result, message="Registration successful", status_code=201)

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    data = request.get_json(silent=True)
    if not data:
        return error_response("Request body must be JSON", 400)

    result, error = AuthService.login(data.get("email", ""), data.get("password", ""))
    if error:
        return error_response(error, 401)

    return success_response(data=result, message="Login successful")

@auth_bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh():
    """Exchange a refresh token for a new access token."""
    result, error = AuthService.refresh_token(int(get_jwt_identity()))
    if error:
        return error_response(error, 401)
    return success_response(data=result, message="Token refreshed")

@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    user = AuthService.get_user_by_id(int(get_jwt_identity()))
    if not user:
        return error_response("User not found", 404)
    return success_response(data=user.to_dict())

@auth_bp.route("/password", methods=["PUT"])
@jwt_required()
def change_password():
    data = request.get_json(silent=True) or {}
    ok, error = AuthService.change_password(
        int(get_jwt_identity()),
        data.get("old_password", ""),
        data.get("new_password", "")
    )
    if not ok:
        return error_response(error, 400)
    return success_response(message="Password updated")

@auth_bp.route("/profile", methods=["PUT"])
@jwt_required()
def update_profile():
    data = request.get_json(silent=True) or {}
    result, error = AuthService.update_profile(int(get_jwt_identity()), data.get("name", ""))
    if error:
        return error_response(error, 400)
    return success_response(data=result, message="Profile updated")

@auth_bp.route("/notifications", methods=["GET"])
@jwt_required()
def get_notification_settings():
    settings = ReminderService.get_settings(int(get_jwt_identity()))
    return success_response(data=settings.to_dict())

@auth_bp.route("/notifications", methods=["PUT"])
@jwt_required()
def update_notification_settings():
    """Update reminder channels. The LINE token is write-only."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response("Request body must be JSON", 400)

    fields = {key: data[key] for key in ("telegram_chat_id", "line_notify_token") if key in data}
    for key in ("telegram_enabled", "line_enabled"):
        if key in data:
            fields[key] = parse_bool(data[key])

    settings = ReminderService.update_settings(int(get_jwt_identity()), **fields)
    return success_response(data=settings.to_dict(), message="Notification settings updated")
