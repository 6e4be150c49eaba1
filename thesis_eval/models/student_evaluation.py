from ..extensions import db
from .base import TimestampMixin, UUIDPrimaryKeyMixin, iso


class StudentEvaluation(db.Model, UUIDPrimaryKeyMixin, TimestampMixin):
    """A student's own feedback/survey for their defense."""
    __tablename__ = "student_evaluations"
    schedule_id = db.Column(db.String(36), db.ForeignKey("defense_schedules.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    # feedback form version the answers follow
    form_id = db.Column(db.String(36), db.ForeignKey("student_feedback_forms.id", ondelete="SET NULL"),
                        index=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    answers = db.Column(db.JSON, nullable=False, default=dict)
    submitted_at = db.Column(db.DateTime)
    locked_at = db.Column(db.DateTime)

    form = db.relationship("StudentFeedbackForm")
    score = db.relationship("StudentEvaluationScore", uselist=False, cascade="all, delete-orphan",
                            back_populates="student_evaluation")

    __table_args__ = (
        db.UniqueConstraint("schedule_id", "student_id", name="uq_student_evaluations_schedule_student"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "scheduleId": self.schedule_id,
            "studentId": self.student_id,
            "formId": self.form_id,
            "status": self.status,
            "answers": self.answers or {},
            "score": self.score.to_dict() if self.score else None,
            "submittedAt": iso(self.submitted_at),
            "lockedAt": iso(self.locked_at),
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<StudentEvaluation id={self.id} student_id={self.student_id} status={self.status}>"


class StudentEvaluationScore(db.Model, UUIDPrimaryKeyMixin, TimestampMixin):
    """Rating totals computed from a student evaluation's answers against its form.

    Rewritten whenever the answers change; never edited directly.
    """
    __tablename__ = "student_evaluation_scores"
    student_evaluation_id = db.Column(db.String(36),
                                      db.ForeignKey("student_evaluations.id", ondelete="CASCADE"),
                                      nullable=False, unique=True)
    form_id = db.Column(db.String(36), db.ForeignKey("student_feedback_forms.id", ondelete="SET NULL"))
    total_score = db.Column(db.Float, nullable=False, default=0)
    max_score = db.Column(db.Float, nullable=False, default=0)
    percentage = db.Column(db.Float, nullable=False, default=0)
    breakdown = db.Column(db.JSON, nullable=False, default=dict)
    computed_at = db.Column(db.DateTime)

    student_evaluation = db.relationship("StudentEvaluation", back_populates="score")

    def to_dict(self):
        return {
            "formId": self.form_id,
            "totalScore": self.total_score,
            "maxScore": self.max_score,
            "percentage": self.percentage,
            "breakdown": self.breakdown or {},
            "computedAt": iso(self.computed_at),
        }
