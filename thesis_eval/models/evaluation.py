from ..extensions import db
from .base import CreatedAtMixin, TimestampMixin, UUIDPrimaryKeyMixin, iso

# pending -> submitted -> locked
STATUSES = ("pending", "submitted", "locked")
COUNTED_STATUSES = ("submitted", "locked")


class Evaluation(db.Model, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """One panelist's review of one defense schedule."""
    __tablename__ = "evaluations"
    schedule_id = db.Column(db.String(36), db.ForeignKey("defense_schedules.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    evaluator_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    submitted_at = db.Column(db.DateTime)
    locked_at = db.Column(db.DateTime)

    schedule = db.relationship("DefenseSchedule")
    evaluator = db.relationship("User")
    scores = db.relationship("EvaluationScore", backref="evaluation", cascade="all, delete-orphan")
    extras = db.relationship("EvaluationExtras", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("schedule_id", "evaluator_id", name="uq_evaluations_assignment"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "scheduleId": self.schedule_id,
            "evaluatorId": self.evaluator_id,
            "status": self.status,
            "submittedAt": iso(self.submitted_at),
            "lockedAt": iso(self.locked_at),
            "createdAt": iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Evaluation id={self.id} schedule_id={self.schedule_id} status={self.status}>"


class EvaluationScore(db.Model):
    __tablename__ = "evaluation_scores"
    evaluation_id = db.Column(db.String(36), db.ForeignKey("evaluations.id", ondelete="CASCADE"),
                              primary_key=True)
    criterion_id = db.Column(db.String(36), db.ForeignKey("rubric_criteria.id", ondelete="CASCADE"),
                             primary_key=True)
    score = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)

    criterion = db.relationship("RubricCriterion")

    def to_dict(self):
        return {
            "evaluationId": self.evaluation_id,
            "criterionId": self.criterion_id,
            "score": self.score,
            "comment": self.comment,
        }


class EvaluationExtras(db.Model, TimestampMixin):
    """Evaluator-entered values outside the rubric.

    ``data`` shape::

        {"group": {"score": n, "comment": s},
         "system": {"score": n, "comment": s},
         "membersOverall": {"<student id>": {"score": n, "comment": s}}}
    """
    __tablename__ = "evaluation_extras"
    evaluation_id = db.Column(db.String(36), db.ForeignKey("evaluations.id", ondelete="CASCADE"),
                              primary_key=True)
    data = db.Column(db.JSON, nullable=False, default=dict)
