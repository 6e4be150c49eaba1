from ..extensions import db
from .base import CreatedAtMixin, UUIDPrimaryKeyMixin, iso

# general / evaluation_submitted / evaluation_locked
NOTIFICATION_TYPES = ("general", "evaluation_submitted", "evaluation_locked")


class Notification(db.Model, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """In-app message for one user, shown until read."""
    __tablename__ = "notifications"
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = db.Column(db.String(40), nullable=False, default="general")
    title = db.Column(db.String(300), nullable=False)
    body = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    read_at = db.Column(db.DateTime)

    __table_args__ = (
        db.Index("ix_notifications_user_created", "user_id", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "body": self.body,
            "data": self.data or {},
            "readAt": iso(self.read_at),
            "createdAt": iso(self.created_at),
        }
