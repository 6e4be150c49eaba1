from flask import Blueprint, request
from flask_login import current_user

from ..errors import NotFoundError
from ..services import feedback_forms
from ..services.aggregation import student_evaluation_summary
from ..services.schedules import get_schedule
from ..utils.decorators import roles_required
from .common import ok, param

bp = Blueprint("student", __name__)


@bp.route("/api/student/evaluation-summary", methods=["GET"])
@roles_required("student")
def evaluation_summary():
    items = student_evaluation_summary(current_user.id, request.args.get("limit", 10))
    return ok(items=items)


@bp.route("/api/student/feedback-form", methods=["GET"])
@roles_required("student")
def feedback_form():
    """The form a student answers: the schedule's pinned one, else the active one."""
    schedule_id = param("scheduleId")
    sched = get_schedule(schedule_id) if schedule_id else None
    if sched is not None and sched.student_feedback_form_id:
        form = feedback_forms.get_form(sched.student_feedback_form_id)
    else:
        form = feedback_forms.active_form()
    if form is None:
        raise NotFoundError("No active student feedback form")
    return ok(form=form.to_dict())
