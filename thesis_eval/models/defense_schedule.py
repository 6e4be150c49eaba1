from ..extensions import db
from .base import TimestampMixin, UUIDPrimaryKeyMixin, iso


class DefenseSchedule(db.Model, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "defense_schedules"
    group_id = db.Column(db.String(36), db.ForeignKey("thesis_groups.id", ondelete="CASCADE"),
                         nullable=False, index=True)
    scheduled_at = db.Column(db.DateTime, nullable=False, index=True)
    room = db.Column(db.String(120))
    status = db.Column(db.String(30), nullable=False, default="scheduled")  # scheduled/done/cancelled
    rubric_template_id = db.Column(db.String(36), db.ForeignKey("rubric_templates.id", ondelete="SET NULL"),
                                   index=True)
    student_feedback_form_id = db.Column(db.String(36),
                                         db.ForeignKey("student_feedback_forms.id", ondelete="SET NULL"),
                                         index=True)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))

    group = db.relationship("ThesisGroup")
    rubric_template = db.relationship("RubricTemplate")
    panelists = db.relationship("SchedulePanelist", backref="schedule", cascade="all, delete-orphan")

    def to_dict(self, with_panelists=False):
        out = {
            "id": self.id,
            "groupId": self.group_id,
            "groupTitle": self.group.title if self.group else None,
            "scheduledAt": iso(self.scheduled_at),
            "room": self.room,
            "status": self.status,
            "rubricTemplateId": self.rubric_template_id,
            "studentFeedbackFormId": self.student_feedback_form_id,
            "createdBy": self.created_by,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if with_panelists:
            out["panelists"] = [p.to_dict() for p in self.panelists]
        return out

    def __repr__(self) -> str:
        return f"<DefenseSchedule id={self.id} group_id={self.group_id}>"


class SchedulePanelist(db.Model):
    __tablename__ = "schedule_panelists"
    schedule_id = db.Column(db.String(36), db.ForeignKey("defense_schedules.id", ondelete="CASCADE"),
                            primary_key=True)
    staff_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    staff = db.relationship("User")

    def to_dict(self):
        return {
            "scheduleId": self.schedule_id,
            "staffId": self.staff_id,
            "name": self.staff.name if self.staff else None,
            "email": self.staff.email if self.staff else None,
        }
