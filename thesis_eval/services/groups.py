from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models.thesis_group import GroupMember, ThesisGroup
from ..models.user import User
from . import audit
from .pagination import clamp_limit, clamp_offset, like_pattern
from .validation import optional_text, require_text


def get_user(user_id, label="User"):
    user = db.session.get(User, user_id) if user_id else None
    if user is None:
        raise NotFoundError(f"{label} not found")
    return user


def _group_values(fields):
    out = {}
    if "title" in fields:
        out["title"] = require_text(fields["title"], "title")
    for key in ("program", "term"):
        if key in fields:
            out[key] = optional_text(fields[key])
    if "adviser_id" in fields:
        adviser_id = optional_text(fields["adviser_id"])
        if adviser_id:
            adviser = get_user(adviser_id, "Adviser")
            if adviser.role not in ("staff", "panelist", "admin"):
                raise ValidationError("Adviser must be a staff member")
        out["adviser_id"] = adviser_id
    return out


def _member_students(student_ids):
    """Resolve ``student_ids`` to student users, refusing the whole list on any bad id."""
    if student_ids is None:
        return []
    if not isinstance(student_ids, list):
        raise ValidationError("memberIds must be a list")
    students = []
    for student_id in student_ids:
        student = get_user(student_id, "Student")
        if student.role != "student":
            raise ValidationError("Only students can be group members")
        if student in students:
            raise ConflictError("Student is listed more than once")
        students.append(student)
    return students


def create_group(title, program=None, term=None, adviser_id=None, member_ids=None):
    """Create a group with its initial members in one commit."""
    values = _group_values({"title": title, "program": program, "term": term, "adviser_id": adviser_id})
    students = _member_students(member_ids)
    group = ThesisGroup(**values)
    group.members = [GroupMember(student_id=s.id) for s in students]
    db.session.add(group)
    db.session.commit()
    audit.record("thesis_group_created", "thesis_group", group.id, group.to_dict(with_members=True))
    return group


def get_group(group_id):
    group = db.session.get(ThesisGroup, group_id) if group_id else None
    if group is None:
        raise NotFoundError("Thesis group not found")
    return group


def list_groups(q=None, limit=50, offset=0):
    query = ThesisGroup.query
    like = like_pattern(q)
    if like:
        query = query.filter(or_(ThesisGroup.title.ilike(like),
                                 ThesisGroup.program.ilike(like),
                                 ThesisGroup.term.ilike(like)))
    total = query.count()
    rows = (query.order_by(ThesisGroup.created_at.desc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, rows


def patch_group(group_id, **fields):
    group = get_group(group_id)
    values = _group_values(fields)
    if not values:
        return group
    before = group.to_dict()
    for k, v in values.items():
        setattr(group, k, v)
    db.session.commit()
    audit.record("thesis_group_updated", "thesis_group", group.id, {"before": before, "changes": values})
    return group


def delete_group(group_id):
    group = get_group(group_id)
    snapshot = group.to_dict(with_members=True)
    db.session.delete(group)
    db.session.commit()
    audit.record("thesis_group_deleted", "thesis_group", group_id, snapshot)


def add_member(group_id, student_id):
    group = get_group(group_id)
    student = _member_students([student_id])[0]
    if db.session.get(GroupMember, (group.id, student.id)) is not None:
        raise ConflictError("Student is already a member of this group")
    member = GroupMember(group_id=group.id, student_id=student.id)
    db.session.add(member)
    db.session.commit()
    audit.record("thesis_group_member_added", "thesis_group", group.id, {"studentId": student.id})
    return member


def remove_member(group_id, student_id):
    member = db.session.get(GroupMember, (group_id, student_id))
    if member is None:
        raise NotFoundError("Group member not found")
    db.session.delete(member)
    db.session.commit()
    audit.record("thesis_group_member_removed", "thesis_group", group_id, {"studentId": student_id})
