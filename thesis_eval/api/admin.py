# thesis_eval/api/admin.py
from flask import Blueprint, Response
from flask_login import current_user

from ..services import accounts, aggregation, audit, evaluations, feedback_forms, groups, reports, schedules
from ..services.audit import resolve_range
from ..utils.decorators import admin_required
from .common import json_body, ok, param, pick, required

bp = Blueprint("admin", __name__, url_prefix="/api/admin")

GROUP_FIELDS = {"title": "title", "program": "program", "term": "term", "adviserId": "adviser_id"}
SCHEDULE_FIELDS = {"scheduledAt": "scheduled_at", "room": "room", "status": "status",
                   "rubricTemplateId": "rubric_template_id",
                   "studentFeedbackFormId": "student_feedback_form_id"}
USER_FIELDS = {"name": "name", "role": "role", "status": "status"}


@bp.before_request
@admin_required
def _admins_only():
    # every route below is admin-only
    return None


# --- users -----------------------------------------------------------------

@bp.route("/users", methods=["GET"])
def users_index():
    total, rows = accounts.list_users(q=param("q"), role=param("role"),
                                      limit=param("limit"), offset=param("offset"))
    return ok(total=total, users=[u.to_dict() for u in rows])


@bp.route("/users", methods=["POST"])
def users_create():
    body = json_body()
    user = accounts.create_user(body.get("name"), body.get("email"), body.get("password"),
                                role=body.get("role") or "student", status=body.get("status") or "active")
    return ok(201, user=user.to_dict())


@bp.route("/users/<user_id>", methods=["PATCH"])
def users_patch(user_id):
    user = accounts.patch_user(user_id, **pick(json_body(), USER_FIELDS))
    return ok(user=user.to_dict())


# --- thesis groups ---------------------------------------------------------

@bp.route("/thesis-groups", methods=["GET"])
def groups_index():
    total, rows = groups.list_groups(q=param("q"), limit=param("limit"), offset=param("offset"))
    return ok(total=total, groups=[g.to_dict() for g in rows])


@bp.route("/thesis-groups", methods=["POST"])
def groups_create():
    body = json_body()
    group = groups.create_group(body.get("title"), program=body.get("program"), term=body.get("term"),
                                adviser_id=body.get("adviserId"), member_ids=body.get("memberIds"))
    return ok(201, group=group.to_dict(with_members=True))


@bp.route("/thesis-groups/<group_id>", methods=["GET"])
def groups_show(group_id):
    return ok(group=groups.get_group(group_id).to_dict(with_members=True))


@bp.route("/thesis-groups/<group_id>", methods=["PATCH"])
def groups_patch(group_id):
    group = groups.patch_group(group_id, **pick(json_body(), GROUP_FIELDS))
    return ok(group=group.to_dict(with_members=True))


@bp.route("/thesis-groups/<group_id>", methods=["DELETE"])
def groups_delete(group_id):
    groups.delete_group(group_id)
    return ok()


@bp.route("/thesis-groups/<group_id>/members", methods=["POST"])
def groups_add_member(group_id):
    member = groups.add_member(group_id, required("studentId", json_body()))
    return ok(201, member=member.to_dict())


@bp.route("/thesis-groups/<group_id>/members/<student_id>", methods=["DELETE"])
def groups_remove_member(group_id, student_id):
    groups.remove_member(group_id, student_id)
    return ok()


# --- defense schedules -----------------------------------------------------

@bp.route("/defense-schedules", methods=["GET"])
def schedules_index():
    total, rows = schedules.list_schedules(q=param("q"), group_id=param("groupId"), status=param("status"),
                                           date_from=param("from"), date_to=param("to"),
                                           limit=param("limit"), offset=param("offset"))
    return ok(total=total, schedules=[s.to_dict() for s in rows])


@bp.route("/defense-schedules", methods=["POST"])
def schedules_create():
    body = json_body()
    sched = schedules.create_schedule(body.get("groupId"), body.get("scheduledAt"), room=body.get("room"),
                                      status=body.get("status"), rubric_template_id=body.get("rubricTemplateId"),
                                      created_by=current_user.id, panelist_ids=body.get("panelistIds"))
    return ok(201, schedule=sched.to_dict(with_panelists=True))


@bp.route("/defense-schedules/<schedule_id>", methods=["GET"])
def schedules_show(schedule_id):
    return ok(schedule=schedules.get_schedule(schedule_id).to_dict(with_panelists=True))


@bp.route("/defense-schedules/<schedule_id>", methods=["PATCH"])
def schedules_patch(schedule_id):
    sched = schedules.patch_schedule(schedule_id, **pick(json_body(), SCHEDULE_FIELDS))
    return ok(schedule=sched.to_dict(with_panelists=True))


@bp.route("/defense-schedules/<schedule_id>", methods=["DELETE"])
def schedules_delete(schedule_id):
    schedules.delete_schedule(schedule_id)
    return ok()


@bp.route("/defense-schedules/<schedule_id>/panelists", methods=["POST"])
def schedules_add_panelist(schedule_id):
    row = schedules.add_panelist(schedule_id, required("staffId", json_body()))
    return ok(201, panelist=row.to_dict())


@bp.route("/defense-schedules/<schedule_id>/panelists/<staff_id>", methods=["DELETE"])
def schedules_remove_panelist(schedule_id, staff_id):
    schedules.remove_panelist(schedule_id, staff_id)
    return ok()


@bp.route("/defense-schedules/<schedule_id>/scores", methods=["GET"])
def schedules_scores(schedule_id):
    return ok(scheduleId=schedule_id, **aggregation.schedule_scores(schedule_id, student_id=param("studentId")))


# --- student feedback forms ------------------------------------------------

@bp.route("/feedback-forms", methods=["GET"])
def feedback_forms_index():
    total, rows = feedback_forms.list_forms(key=param("key"), limit=param("limit"), offset=param("offset"))
    return ok(total=total, forms=[f.to_dict(with_schema=False) for f in rows])


@bp.route("/feedback-forms", methods=["POST"])
def feedback_forms_create():
    body = json_body()
    form = feedback_forms.create_form(body.get("title"), body.get("schema"), key=body.get("key"),
                                      description=body.get("description"), active=body.get("active", False))
    return ok(201, form=form.to_dict())


@bp.route("/feedback-forms/<form_id>", methods=["GET"])
def feedback_forms_show(form_id):
    return ok(form=feedback_forms.get_form(form_id).to_dict())


@bp.route("/feedback-forms/<form_id>/activate", methods=["POST"])
def feedback_forms_activate(form_id):
    return ok(form=feedback_forms.activate_form(form_id).to_dict(with_schema=False))


# --- evaluations -----------------------------------------------------------

@bp.route("/evaluations/assign", methods=["POST"])
def evaluations_assign():
    body = json_body()
    schedule_id = required("scheduleId", body)
    evaluator_ids = body.get("evaluatorIds")
    if evaluator_ids is not None:
        created = evaluations.assign_evaluators(schedule_id, evaluator_ids)
    else:
        created = evaluations.assign_panelists(schedule_id)
    return ok(201 if created else 200, evaluations=[e.to_dict() for e in created])


@bp.route("/rankings", methods=["GET"])
def rankings():
    return ok(rankings=aggregation.group_rankings())


# --- reports and audit -----------------------------------------------------

@bp.route("/reports/summary", methods=["GET"])
def reports_summary():
    summary = reports.reports_summary(date_from=param("from"), date_to=param("to"), days=param("days", default=30),
                                      program=param("program"), term=param("term"))
    return ok(summary=summary)


@bp.route("/audit-logs", methods=["GET"])
def audit_logs():
    total, rows = audit.list_audit_logs(date_from=param("from"), date_to=param("to"), action=param("action"),
                                        actor_id=param("actorId"), limit=param("limit", default=100),
                                        offset=param("offset"))
    return ok(total=total, logs=[r.to_dict() for r in rows])


@bp.route("/audit-logs/export", methods=["GET"])
def audit_logs_export():
    from_day, to_day = resolve_range(param("from"), param("to"))
    body = audit.export_audit_csv(date_from=from_day, date_to=to_day, action=param("action"),
                                  actor_id=param("actorId"))
    filename = f"audit-logs_{from_day.isoformat()}_{to_day.isoformat()}.csv"
    return Response(body, mimetype="text/csv",
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})
