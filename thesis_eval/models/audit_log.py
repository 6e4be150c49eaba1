from ..extensions import db
from .base import CreatedAtMixin, UUIDPrimaryKeyMixin, iso


class AuditLog(db.Model, UUIDPrimaryKeyMixin, CreatedAtMixin):
    # append-only: never updated or deleted by the application
    __tablename__ = "audit_logs"
    actor_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), index=True)
    action = db.Column(db.String(120), nullable=False, index=True)
    entity = db.Column(db.String(60), nullable=False)
    entity_id = db.Column(db.String(36))
    details = db.Column(db.JSON)

    actor = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "actorId": self.actor_id,
            "actorName": self.actor.name if self.actor else None,
            "action": self.action,
            "entity": self.entity,
            "entityId": self.entity_id,
            "details": self.details or {},
            "createdAt": iso(self.created_at),
        }
