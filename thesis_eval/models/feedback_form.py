from ..extensions import db
from .base import TimestampMixin, UUIDPrimaryKeyMixin, iso


class StudentFeedbackForm(db.Model, UUIDPrimaryKeyMixin, TimestampMixin):
    """A versioned student feedback questionnaire.

    ``definition`` (column ``schema``) shape::

        {"sections": [{"id": s, "title": s, "questions": [
            {"id": s, "type": "rating", "label": s, "required": bool,
             "scale": {"min": 1, "max": 5, "minLabel"?: s, "maxLabel"?: s}},
            {"id": s, "type": "text", "label": s, "required": bool, "maxLength"?: n}]}]}

    At most one form is active; new defense schedules pin it.
    """
    __tablename__ = "student_feedback_forms"
    key = db.Column(db.String(120), nullable=False)
    version = db.Column(db.Integer, nullable=False, default=1)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    definition = db.Column("schema", db.JSON, nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=False)

    __table_args__ = (
        db.UniqueConstraint("key", "version", name="uq_student_feedback_forms_key_version"),
    )

    def to_dict(self, with_schema=True):
        out = {
            "id": self.id,
            "key": self.key,
            "version": self.version,
            "title": self.title,
            "description": self.description,
            "active": bool(self.active),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if with_schema:
            out["schema"] = self.definition
        return out

    def __repr__(self) -> str:
        return f"<StudentFeedbackForm id={self.id} key={self.key!r} v{self.version}>"
