"""API key model for the REST API."""
from homework_manager import db
from homework_manager.models.base import BaseModel

class APIKey(BaseModel):
    """Hashed API key owned by a user."""

    __tablename__ = 'api_keys'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    key_hash = db.Column(db.String(255), unique=True, nullable=False, index=True)
    last_used = db.Column(db.DateTime, nullable=True)

    def to_dict(self, exclude: list = None) -> dict:
        exclude = (exclude or []) + ['key_hash']
        result = super().to_dict(exclude=exclude)
        result['user_name'] = self.user.name if self.user else None
        return result

    def __repr__(self):
        return f'<APIKey {self.name}>'
