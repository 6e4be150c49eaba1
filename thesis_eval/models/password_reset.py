from ..extensions import db
from .base import CreatedAtMixin, UUIDPrimaryKeyMixin


class PasswordReset(db.Model, UUIDPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "password_resets"
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)  # sha256 hex of the emailed token
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime)

    user = db.relationship("User")
