"""Per-user reminder delivery preferences."""
from homework_manager import db
from homework_manager.models.base import BaseModel

class UserNotificationSettings(BaseModel):
    """Which channels a user's reminders go to."""

    __tablename__ = 'user_notification_settings'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, unique=True, index=True)

    # Telegram
    telegram_enabled = db.Column(db.Boolean, nullable=False, default=False)
    telegram_chat_id = db.Column(db.String(100), nullable=False, default='')

    # LINE
    line_enabled = db.Column(db.Boolean, nullable=False, default=False)
    line_notify_token = db.Column(db.String(255), nullable=False, default='')

    @classmethod
    def find_by_user(cls, user_id: int) -> 'UserNotificationSettings':
        return cls.query.filter_by(user_id=user_id).first()

    @property
    def channels(self) -> list:
        """Channels that are both enabled and configured."""
        result = []
        if self.telegram_enabled and self.telegram_chat_id:
            result.append('telegram')
        if self.line_enabled and self.line_notify_token:
            result.append('line')
        return result

    def to_dict(self, exclude: list = None) -> dict:
        """The LINE token is never returned."""
        exclude = (exclude or []) + ['line_notify_token']
        result = super().to_dict(exclude=exclude)
        result['line_token_set'] = bool(self.line_notify_token)
        return result

    def __repr__(self):
        return f'<UserNotificationSettings user={self.user_id}>'
