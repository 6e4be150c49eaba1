from ..extensions import db
from .base import CreatedAtMixin, TimestampMixin, UUIDPrimaryKeyMixin, iso


class RubricTemplate(db.Model, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "rubric_templates"
    name = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    version = db.Column(db.Integer, nullable=False, default=1)
    active = db.Column(db.Boolean, nullable=False, default=True)

    criteria = db.relationship("RubricCriterion", backref="template", cascade="all, delete-orphan",
                               order_by="RubricCriterion.position")
    scale_levels = db.relationship("RubricScaleLevel", cascade="all, delete-orphan",
                                   order_by="RubricScaleLevel.score.desc()")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "active": bool(self.active),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<RubricTemplate id={self.id} name={self.name!r} v{self.version}>"


class RubricCriterion(db.Model, UUIDPrimaryKeyMixin, CreatedAtMixin):
    __tablename__ = "rubric_criteria"
    template_id = db.Column(db.String(36), db.ForeignKey("rubric_templates.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    criterion = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    weight = db.Column(db.Numeric(6, 3, asdecimal=False), nullable=False, default=1)
    min_score = db.Column(db.Integer, nullable=False, default=1)
    max_score = db.Column(db.Integer, nullable=False, default=5)
    # insertion order within the template
    position = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.CheckConstraint("min_score <= max_score", name="ck_rubric_criteria_score_range"),
        db.CheckConstraint("weight > 0", name="ck_rubric_criteria_weight_positive"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "templateId": self.template_id,
            "criterion": self.criterion,
            "description": self.description,
            "weight": float(self.weight) if self.weight is not None else None,
            "minScore": self.min_score,
            "maxScore": self.max_score,
            "createdAt": iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<RubricCriterion id={self.id} criterion={self.criterion!r}>"


class RubricScaleLevel(db.Model):
    """Display label for one score value of a template (e.g. 5 = Accomplished)."""
    __tablename__ = "rubric_scale_levels"
    template_id = db.Column(db.String(36), db.ForeignKey("rubric_templates.id", ondelete="CASCADE"),
                            primary_key=True)
    score = db.Column(db.Integer, primary_key=True)
    adjectival = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)

    def to_dict(self):
        return {
            "templateId": self.template_id,
            "score": self.score,
            "adjectival": self.adjectival,
            "description": self.description,
        }
