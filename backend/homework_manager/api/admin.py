"""Admin API: user and API key management."""
from flask import Blueprint, g, request

from homework_manager.services.admin_service import AdminService
from homework_manager.services.api_key_service import APIKeyService
from homework_manager.utils.decorators import admin_required
from homework_manager.utils.helpers import success_response, error_response

admin_bp = Blueprint("admin", __name__)

@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    users = AdminService.get_all_users()
    return success_response(data={
        "users": [user.to_dict() for user in users],
        "count": len(users)
    })

@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id):
    ok, error = AdminService.delete_user(g.current_user_id, user_id)
    if not ok:
        return error_response(error, 404 if error == "User not found" else 400)
    return success_response(message="User deleted")

@admin_bp.route("/users/<int:user_id>/role", methods=["PUT"])
@admin_required
def change_role(user_id):
    data = request.get_json(silent=True) or {}
    result, error = AdminService.change_role(g.current_user_id, user_id, data.get("role", ""))
    if error:
        return error_response(error, 404 if error == "User not found" else 400)
    return success_response(data=result, message="Role updated")

@admin_bp.route("/api-keys", methods=["GET"])
@admin_required
def list_api_keys():
    keys = APIKeyService.get_all_api_keys()
    return success_response(data={
        "api_keys": [key.to_dict() for key in keys],
        "count": len(keys)
    })

@admin_bp.route("/api-keys", methods=["POST"])
@admin_required
def create_api_key():
    """Issue a key for the calling admin. The plain key is only returned here."""
    data = request.get_json(silent=True) or {}
    plain_key, api_key = APIKeyService.create_api_key(g.current_user_id, data.get("name", ""))

    result = api_key.to_dict()
    result["key"] = plain_key
    return success_response(data=result, message="API key created", status_code=201)

@admin_bp.route("/api-keys/<int:key_id>", methods=["DELETE"])
@admin_required
def delete_api_key(key_id):
    APIKeyService.delete_api_key(key_id)
    return success_response(message="API key deleted")
