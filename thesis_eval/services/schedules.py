from datetime import datetime, timedelta

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models.defense_schedule import DefenseSchedule, SchedulePanelist
from ..models.thesis_group import ThesisGroup
from ..models.user import EVALUATOR_ROLES
from . import audit, feedback_forms
from .groups import get_group, get_user
from .pagination import clamp_limit, clamp_offset, like_pattern
from .rubrics import get_template, latest_active_template
from .validation import as_datetime, optional_text, require_text


def _day(value, field):
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"{field} must be YYYY-MM-DD")


def _panelist_users(staff_ids):
    """Resolve ``staff_ids`` to evaluator users, refusing the whole list on any bad id."""
    if staff_ids is None:
        return []
    if not isinstance(staff_ids, list):
        raise ValidationError("panelistIds must be a list")
    users = []
    for staff_id in staff_ids:
        staff = get_user(staff_id, "Staff user")
        if staff.role not in EVALUATOR_ROLES:
            raise ValidationError("Panelists must be staff or panelist users")
        if staff in users:
            raise ConflictError("Panelist is listed more than once")
        users.append(staff)
    return users


def create_schedule(group_id, scheduled_at, room=None, status=None, rubric_template_id=None, created_by=None,
                    panelist_ids=None):
    """Schedule a defense with its panel in one commit.

    The newest active rubric and the active student feedback form are bound
    when not given, so every evaluation of the defense scores against the
    same versions.
    """
    group = get_group(group_id)
    when = as_datetime(scheduled_at, "scheduledAt")
    if rubric_template_id:
        template_id = get_template(rubric_template_id).id
    else:
        tpl = latest_active_template()
        template_id = tpl.id if tpl else None
    form = feedback_forms.active_form()
    panel = _panelist_users(panelist_ids)

    sched = DefenseSchedule(group_id=group.id, scheduled_at=when, room=optional_text(room),
                            status=optional_text(status) or "scheduled",
                            rubric_template_id=template_id,
                            student_feedback_form_id=form.id if form else None,
                            created_by=created_by)
    sched.panelists = [SchedulePanelist(staff_id=u.id) for u in panel]
    db.session.add(sched)
    db.session.commit()
    audit.record("defense_schedule_created", "defense_schedule", sched.id, sched.to_dict(with_panelists=True))
    return sched


def get_schedule(schedule_id):
    sched = db.session.get(DefenseSchedule, schedule_id) if schedule_id else None
    if sched is None:
        raise NotFoundError("Defense schedule not found")
    return sched


def list_schedules(q=None, group_id=None, status=None, date_from=None, date_to=None, limit=50,
                   offset=0):
    query = DefenseSchedule.query.join(ThesisGroup, ThesisGroup.id == DefenseSchedule.group_id)
    if group_id:
        query = query.filter(DefenseSchedule.group_id == group_id)
    if status:
        query = query.filter(DefenseSchedule.status == status.strip())
    if date_from:
        query = query.filter(DefenseSchedule.scheduled_at >= _day(date_from, "from"))
    if date_to:
        query = query.filter(DefenseSchedule.scheduled_at < _day(date_to, "to") + timedelta(days=1))
    like = like_pattern(q)
    if like:
        query = query.filter(or_(ThesisGroup.title.ilike(like), ThesisGroup.program.ilike(like),
                                 ThesisGroup.term.ilike(like), DefenseSchedule.room.ilike(like)))
    total = query.count()
    rows = (query.order_by(DefenseSchedule.scheduled_at.desc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, rows


def patch_schedule(schedule_id, **fields):
    sched = get_schedule(schedule_id)
    values = {}
    if "scheduled_at" in fields:
        values["scheduled_at"] = as_datetime(fields["scheduled_at"], "scheduledAt")
    if "room" in fields:
        values["room"] = optional_text(fields["room"])
    if "status" in fields:
        values["status"] = require_text(fields["status"], "status")
    if "rubric_template_id" in fields:
        tid = optional_text(fields["rubric_template_id"])
        values["rubric_template_id"] = get_template(tid).id if tid else None
    if "student_feedback_form_id" in fields:
        fid = optional_text(fields["student_feedback_form_id"])
        values["student_feedback_form_id"] = feedback_forms.get_form(fid).id if fid else None
    if not values:
        return sched
    before = sched.to_dict()
    for k, v in values.items():
        setattr(sched, k, v)
    db.session.commit()
    changes = {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in values.items()}
    audit.record("defense_schedule_updated", "defense_schedule", sched.id, {"before": before, "changes": changes})
    return sched


def delete_schedule(schedule_id):
    sched = get_schedule(schedule_id)
    snapshot = sched.to_dict()
    db.session.delete(sched)
    db.session.commit()
    audit.record("defense_schedule_deleted", "defense_schedule", schedule_id, snapshot)


def add_panelist(schedule_id, staff_id):
    sched = get_schedule(schedule_id)
    staff = _panelist_users([staff_id])[0]
    if db.session.get(SchedulePanelist, (sched.id, staff.id)) is not None:
        raise ConflictError("User is already a panelist for this schedule")
    row = SchedulePanelist(schedule_id=sched.id, staff_id=staff.id)
    db.session.add(row)
    db.session.commit()
    audit.record("schedule_panelist_added", "defense_schedule", sched.id, {"staffId": staff.id})
    return row


def remove_panelist(schedule_id, staff_id):
    row = db.session.get(SchedulePanelist, (schedule_id, staff_id))
    if row is None:
        raise NotFoundError("Schedule panelist not found")
    db.session.delete(row)
    db.session.commit()
    audit.record("schedule_panelist_removed", "defense_schedule", schedule_id, {"staffId": staff_id})
