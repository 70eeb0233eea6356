"""Authentication service for user management."""
import logging
from typing import Optional, Tuple

from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token
from sqlalchemy.exc import SQLAlchemyError

from homework_manager import db
from homework_manager.models.user import User, UserRole
from homework_manager.utils.validators import Validator

logger = logging.getLogger(__name__)

class AuthService:
    @staticmethod
    def login(email: str, password: str) -> Tuple[Optional[dict], Optional[str]]:
        """Authenticate user and return tokens."""
        if not email or not password:
            return None, "Email and password are required"

        if not Validator.validate_email(email.strip()):
            return None, "Invalid email format"

        user = User.find_by_email(email)
        if not user or not user.check_password(password):
            return None, "Invalid email or password"

        # JWT subjects must be strings
        return {
            "access_token": create_access_token(identity=str(user.id)),
            "refresh_token": create_refresh_token(identity=str(user.id)),
            "user": user.to_dict()
        }, None

    @staticmethod
    def register(email: str, password: str, name: str) -> Tuple[Optional[dict], Optional[str]]:
        """Register new user. The first account becomes an administrator."""
        if not current_app.config.get('ALLOW_REGISTRATION', True):
            return None, "Registration is disabled"

        if not all([email, password, name]):
            return None, "Email, password and name are required"

        email = email.lower().strip()
        if not Validator.validate_email(email):
            return None, "Invalid email format"

        password_check = Validator.validate_password(password)
        if not password_check["is_valid"]:
            return None, password_check["errors"][0]

        name_check = Validator.validate_name(name)
        if not name_check["is_valid"]:
            return None, name_check["errors"][0]

        if User.find_by_email(email):
            return None, "Email already exists"

        role = UserRole.ADMIN if User.query.count() == 0 else UserRole.USER
        user = User(email=email, name=name.strip(), role=role)
        user.set_password(password)
        try:
            user.save()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Registration failed for {email}: {e}")
            return None, "Registration failed"

        logger.info(f"User {user.id} registered with role {role.value}")
        return user.to_dict(), None

    @staticmethod
    def get_user_by_id(user_id: int) -> Optional[User]:
        """Get user by ID."""
        return User.get_by_id(user_id)

    @staticmethod
    def refresh_token(user_id: int) -> Tuple[Optional[dict], Optional[str]]:
        """Generate new access token."""
        user = User.get_by_id(user_id)
        if not user:
            return None, "User not found"

        return {
            "access_token": create_access_token(identity=str(user.id)),
            "user": user.to_dict()
        }, None

    @staticmethod
    def change_password(user_id: int, old_password: str, new_password: str) -> Tuple[bool, Optional[str]]:
        user = User.get_by_id(user_id)
        if not user:
            return False, "User not found"

        if not user.check_password(old_password or ''):
            return False, "Current password is incorrect"

        password_check = Validator.validate_password(new_password)
        if not password_check["is_valid"]:
            return False, password_check["errors"][0]

        user.set_password(new_password)
        user.save()
        return True, None

    @staticmethod
    def update_profile(user_id: int, name: str) -> Tuple[Optional[dict], Optional[str]]:
        user = User.get_by_id(user_id)
        if not user:
            return None, "User not found"

        name_check = Validator.validate_name(name)
        if not name_check["is_valid"]:
            return None, name_check["errors"][0]

        user.update(name=name.strip())
        return user.to_dict(), None
