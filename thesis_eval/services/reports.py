from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models.audit_log import AuditLog
from ..models.defense_schedule import DefenseSchedule
from ..models.evaluation import Evaluation
from ..models.student_evaluation import StudentEvaluation
from ..models.thesis_group import GroupMember, ThesisGroup
from ..models.user import ROLES, User
from .audit import resolve_range, top_actions


def _bounds(from_day, to_day):
    start = datetime.combine(from_day, datetime.min.time())
    end = datetime.combine(to_day + timedelta(days=1), datetime.min.time())
    return start, end


def _counts(query, column):
    rows = query.with_entities(column, func.count()).group_by(column).order_by(func.count().desc()).all()
    return [{"key": key, "count": int(n)} for key, n in rows]


def _users_summary():
    by_role = {role: 0 for role in ROLES}
    by_status = {"active": 0, "disabled": 0}
    for role, status, n in (db.session.query(User.role, User.status, func.count(User.id))
                            .group_by(User.role, User.status).all()):
        by_role[role] = by_role.get(role, 0) + n
        by_status[status] = by_status.get(status, 0) + n
    return {"total": sum(by_role.values()), "byRole": by_role, "byStatus": by_status}


def _thesis_summary(program=None, term=None):
    groups = ThesisGroup.query
    if program:
        groups = groups.filter(ThesisGroup.program == program)
    if term:
        groups = groups.filter(ThesisGroup.term == term)
    group_ids = groups.with_entities(ThesisGroup.id).subquery()
    memberships = GroupMember.query.filter(GroupMember.group_id.in_(db.select(group_ids.c.id))).count()
    return {
        "groupsTotal": groups.count(),
        "membershipsTotal": memberships,
        "unassignedAdviser": groups.filter(ThesisGroup.adviser_id.is_(None)).count(),
        "byProgram": [{"program": r["key"] or "Unspecified", "count": r["count"]}
                      for r in _counts(groups, ThesisGroup.program)],
    }


def reports_summary(date_from=None, date_to=None, days=30, program=None, term=None):
    """Admin dashboard counts for the inclusive day window ``[from, to]``."""
    from_day, to_day = resolve_range(date_from, date_to, days)
    start, end = _bounds(from_day, to_day)

    defenses = (DefenseSchedule.query
                .join(ThesisGroup, ThesisGroup.id == DefenseSchedule.group_id)
                .filter(DefenseSchedule.scheduled_at >= start, DefenseSchedule.scheduled_at < end))
    if program:
        defenses = defenses.filter(ThesisGroup.program == program)
    if term:
        defenses = defenses.filter(ThesisGroup.term == term)

    panel = Evaluation.query.filter(Evaluation.created_at >= start, Evaluation.created_at < end)
    student = StudentEvaluation.query.filter(StudentEvaluation.created_at >= start,
                                             StudentEvaluation.created_at < end)
    audit_q = AuditLog.query.filter(AuditLog.created_at >= start, AuditLog.created_at < end)

    return {
        "range": {"from": from_day.isoformat(), "to": to_day.isoformat()},
        "filters": {"program": program or None, "term": term or None},
        "users": _users_summary(),
        "thesis": _thesis_summary(program, term),
        "defenses": {
            "totalInRange": defenses.count(),
            "byStatus": [{"status": r["key"], "count": r["count"]}
                         for r in _counts(defenses, DefenseSchedule.status)],
            "byRoom": [{"room": r["key"] or "Unassigned", "count": r["count"]}
                       for r in _counts(defenses, DefenseSchedule.room)],
        },
        "evaluations": {
            "panel": {
                "totalInRange": panel.count(),
                "byStatus": [{"status": r["key"], "count": r["count"]}
                             for r in _counts(panel, Evaluation.status)],
            },
            "student": {
                "totalInRange": student.count(),
                "byStatus": [{"status": r["key"], "count": r["count"]}
                             for r in _counts(student, StudentEvaluation.status)],
            },
        },
        "audit": {
            "totalInRange": audit_q.count(),
            "topActions": top_actions(from_day, to_day),
        },
    }
