import csv
import json
from datetime import date, datetime, timedelta
from io import StringIO

from flask import current_app, has_request_context
from flask_login import current_user
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ValidationError
from ..extensions import db
from ..models.audit_log import AuditLog
from ..models.base import utcnow
from .pagination import clamp_limit, clamp_offset

_CURRENT = object()


def _actor_id():
    if not has_request_context():
        return None
    if getattr(current_user, "is_authenticated", False):
        return current_user.id
    return None


def record(action, entity, entity_id=None, details=None, actor_id=_CURRENT):
    """Append one audit entry, best-effort.

    Call after the primary change is committed: the entry is committed on
    its own, and a failure is logged and rolled back without touching the
    caller's result.
    """
    if actor_id is _CURRENT:
        actor_id = _actor_id()
    try:
        entry = AuditLog(actor_id=actor_id, action=action, entity=entity,
                         entity_id=entity_id, details=details or {})
        db.session.add(entry)
        db.session.commit()
        return entry.id
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception('Audit write failed: action=%s entity=%s id=%s', action, entity, entity_id)
        return None


def _parse_day(value, default):
    if value in (None, ""):
        return default
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def resolve_range(date_from=None, date_to=None, days=30):
    """Inclusive [from, to] day window; defaults to the last ``days`` days."""
    try:
        days = max(1, min(365, int(days or 30)))
    except (TypeError, ValueError):
        raise ValidationError("days must be an integer")
    to_day = _parse_day(date_to, utcnow().date())
    from_day = _parse_day(date_from, to_day - timedelta(days=days - 1))
    if from_day > to_day:
        raise ValidationError("'from' must not be after 'to'")
    return from_day, to_day


def _range_query(date_from, date_to, action=None, actor_id=None):
    from_day, to_day = resolve_range(date_from, date_to)
    start = datetime.combine(from_day, datetime.min.time())
    end = datetime.combine(to_day + timedelta(days=1), datetime.min.time())
    q = AuditLog.query.filter(AuditLog.created_at >= start, AuditLog.created_at < end)
    if action:
        q = q.filter(AuditLog.action == action)
    if actor_id:
        q = q.filter(AuditLog.actor_id == actor_id)
    return q


def list_audit_logs(date_from=None, date_to=None, action=None, actor_id=None, limit=100, offset=0):
    q = _range_query(date_from, date_to, action, actor_id)
    total = q.count()
    rows = (q.order_by(AuditLog.created_at.desc())
            .limit(clamp_limit(limit, maximum=500))
            .offset(clamp_offset(offset))
            .all())
    return total, rows


def top_actions(date_from=None, date_to=None, limit=10):
    q = _range_query(date_from, date_to)
    rows = (q.with_entities(AuditLog.action, func.count(AuditLog.id).label("cnt"))
            .group_by(AuditLog.action)
            .order_by(func.count(AuditLog.id).desc())
            .limit(limit)
            .all())
    return [{"action": r.action, "count": int(r.cnt)} for r in rows]


EXPORT_COLUMNS = ["created_at", "actor_id", "actor_name", "action", "entity", "entity_id", "details"]


def export_audit_csv(date_from=None, date_to=None, action=None, actor_id=None):
    q = _range_query(date_from, date_to, action, actor_id).order_by(AuditLog.created_at.desc())
    buf = StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_COLUMNS)
    for row in q.all():
        writer.writerow([
            row.created_at.isoformat() if row.created_at else "",
            row.actor_id or "",
            row.actor.name if row.actor else "",
            row.action,
            row.entity,
            row.entity_id or "",
            json.dumps(row.details or {}, ensure_ascii=False, default=str),
        ])
    return buf.getvalue()
