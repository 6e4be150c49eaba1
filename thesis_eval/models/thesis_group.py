from ..extensions import db
from .base import TimestampMixin, UUIDPrimaryKeyMixin, iso


class ThesisGroup(db.Model, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "thesis_groups"
    title = db.Column(db.String(300), nullable=False)
    adviser_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    program = db.Column(db.String(120))
    term = db.Column(db.String(60))

    members = db.relationship("GroupMember", backref="group", cascade="all, delete-orphan")

    def to_dict(self, with_members=False):
        out = {
            "id": self.id,
            "title": self.title,
            "adviserId": self.adviser_id,
            "program": self.program,
            "term": self.term,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if with_members:
            out["members"] = [m.to_dict() for m in self.members]
        return out

    def __repr__(self) -> str:
        return f"<ThesisGroup id={self.id} title={self.title!r}>"


class GroupMember(db.Model):
    __tablename__ = "group_members"
    group_id = db.Column(db.String(36), db.ForeignKey("thesis_groups.id", ondelete="CASCADE"), primary_key=True)
    student_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    student = db.relationship("User")

    def to_dict(self):
        return {
            "groupId": self.group_id,
            "studentId": self.student_id,
            "name": self.student.name if self.student else None,
            "email": self.student.email if self.student else None,
        }
