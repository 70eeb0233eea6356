"""API key issuing and validation."""
import hashlib
import logging
import secrets
from datetime import datetime
from typing import List, Optional, Tuple

from flask import current_app

from homework_manager import db
from homework_manager.models.api_key import APIKey
from homework_manager.services.errors import NotFoundError
from homework_manager.utils.validators import ValidationError

logger = logging.getLogger(__name__)

class APIKeyService:
    """Keys are shown once on creation; only their SHA-256 hash is stored."""

    @staticmethod
    def generate_key() -> str:
        prefix = current_app.config.get('API_KEY_PREFIX', 'hm_')
        return prefix + secrets.token_hex(32)

    @staticmethod
    def hash_key(plain_key: str) -> str:
        return hashlib.sha256(plain_key.encode('utf-8')).hexdigest()

    @staticmethod
    def create_api_key(user_id: int, name: str) -> Tuple[str, APIKey]:
        if not name or not name.strip():
            raise ValidationError("is required", field='name')
        if len(name.strip()) > 100:
            raise ValidationError("must be at most 100 characters", field='name')

        plain_key = APIKeyService.generate_key()
        api_key = APIKey(user_id=user_id, name=name.strip(), key_hash=APIKeyService.hash_key(plain_key))
        api_key.save()

        logger.info(f"API key {api_key.id} created for user {user_id}")
        return plain_key, api_key

    @staticmethod
    def validate_api_key(plain_key: str) -> Optional[int]:
        """Return the owning user id and stamp last_used, or None for unknown keys."""
        if not plain_key:
            return None

        api_key = APIKey.query.filter_by(key_hash=APIKeyService.hash_key(plain_key)).first()
        if api_key is None:
            return None

        api_key.last_used = datetime.now()
        db.session.commit()
        return api_key.user_id

    @staticmethod
    def get_all_api_keys() -> List[APIKey]:
        return APIKey.query.order_by(APIKey.created_at.desc()).all()

    @staticmethod
    def get_api_keys_by_user(user_id: int) -> List[APIKey]:
        return APIKey.query.filter_by(user_id=user_id).order_by(APIKey.created_at.desc()).all()

    @staticmethod
    def delete_api_key(key_id: int) -> None:
        api_key = APIKey.get_by_id(key_id)
        if api_key is None:
            raise NotFoundError("API key not found")
        api_key.delete()
        logger.info(f"API key {key_id} deleted")
