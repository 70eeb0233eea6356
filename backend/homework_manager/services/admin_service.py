"""Administrative user management."""
import logging
from typing import List, Optional, Tuple

from homework_manager.models.user import User, UserRole

logger = logging.getLogger(__name__)

class AdminService:
    @staticmethod
    def get_all_users() -> List[User]:
        return User.query.order_by(User.created_at.asc()).all()

    @staticmethod
    def get_user_by_id(user_id: int) -> Optional[User]:
        return User.get_by_id(user_id)

    @staticmethod
    def delete_user(admin_id: int, target_id: int) -> Tuple[bool, Optional[str]]:
        if admin_id == target_id:
            return False, "You cannot delete your own account"

        user = User.get_by_id(target_id)
        if not user:
            return False, "User not found"

        user.delete()
        logger.info(f"Admin {admin_id} deleted user {target_id}")
        return True, None

    @staticmethod
    def change_role(admin_id: int, target_id: int, role: str) -> Tuple[Optional[dict], Optional[str]]:
        if admin_id == target_id:
            return None, "You cannot change your own role"

        try:
            new_role = UserRole((role or '').lower())
        except ValueError:
            return None, "Invalid role"

        user = User.get_by_id(target_id)
        if not user:
            return None, "User not found"

        user.update(role=new_role)
        logger.info(f"Admin {admin_id} changed role of user {target_id} to {new_role.value}")
        return user.to_dict(), None
