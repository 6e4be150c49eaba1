from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models.base import utcnow
from ..models.notification import NOTIFICATION_TYPES, Notification
from ..models.thesis_group import GroupMember
from .pagination import clamp_limit, clamp_offset

_EVALUATION_MESSAGES = {
    "submitted": ("evaluation_submitted", "New panel evaluation submitted",
                  'A panelist submitted an evaluation for your thesis group "{title}".'),
    "locked": ("evaluation_locked", "Evaluation finalized",
               'Your thesis group "{title}" has a finalized panel evaluation.'),
}


def notify_evaluation_status(ev):
    """Tell every member of the evaluated group that a panel evaluation was submitted or locked.

    Best-effort like audit: written after the transition is committed, and a
    failed write is logged and rolled back. Returns the number of rows written.
    """
    message = _EVALUATION_MESSAGES.get(ev.status)
    sched = ev.schedule
    if message is None or sched is None:
        return 0
    ntype, title, body = message
    group_title = sched.group.title if sched.group else "Untitled Group"
    try:
        members = GroupMember.query.filter_by(group_id=sched.group_id).all()
        for m in members:
            db.session.add(Notification(
                user_id=m.student_id, type=ntype, title=title, body=body.format(title=group_title),
                data={"evaluationId": ev.id, "scheduleId": sched.id, "groupId": sched.group_id,
                      "status": ev.status}))
        db.session.commit()
        return len(members)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception('Notification write failed for evaluation %s', ev.id)
        return 0


def list_notifications(user_id, unread_only=False, type=None, limit=50, offset=0):
    """Returns ``(total, unread, rows)``, newest first."""
    query = Notification.query.filter(Notification.user_id == user_id)
    unread = query.filter(Notification.read_at.is_(None)).count()
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    if type:
        if type not in NOTIFICATION_TYPES:
            raise ValidationError(f"type must be one of {', '.join(NOTIFICATION_TYPES)}")
        query = query.filter(Notification.type == type)
    total = query.count()
    rows = (query.order_by(Notification.created_at.desc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, unread, rows


def mark_read(notification_id, user_id):
    n = db.session.get(Notification, notification_id) if notification_id else None
    # other users' notifications look missing
    if n is None or n.user_id != user_id:
        raise NotFoundError("Notification not found")
    if n.read_at is None:
        n.read_at = utcnow()
        db.session.commit()
    return n


def mark_all_read(user_id):
    count = (Notification.query
             .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
             .update({Notification.read_at: utcnow()}, synchronize_session=False))
    db.session.commit()
    return count
