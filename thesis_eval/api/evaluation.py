# thesis_eval/api/evaluation.py
from flask import Blueprint, abort, request
from flask_login import current_user, login_required

from ..errors import ForbiddenError, ValidationError
from ..models.user import EVALUATOR_ROLES
from ..services import aggregation, evaluations, rubrics, student_evaluations
from .common import flag, json_body, ok, param, pick, required

bp = Blueprint("evaluation", __name__)

RUBRIC_WRITERS = ("staff", "admin")

TEMPLATE_FIELDS = {"name": "name", "description": "description", "version": "version", "active": "active"}
CRITERION_FIELDS = {"criterion": "criterion", "description": "description", "weight": "weight",
                    "minScore": "min_score", "maxScore": "max_score"}


def _require_role(*roles):
    if current_user.role not in roles:
        raise ForbiddenError("Your role cannot perform this action")


def _is_admin():
    return current_user.role == "admin"


def _own_evaluation(evaluation_id):
    ev = evaluations.get_evaluation(evaluation_id)
    evaluations.ensure_access(ev, current_user)
    return ev


# --- rubric templates ------------------------------------------------------

def get_templates():
    template_id = param("id")
    if template_id:
        tpl = rubrics.get_template(template_id)
        data = tpl.to_dict()
        data["criteria"] = [c.to_dict() for c in tpl.criteria]
        data["scaleLevels"] = [lvl.to_dict() for lvl in tpl.scale_levels]
        return ok(template=data)
    total, rows = rubrics.list_templates(q=param("q"), active_only=flag("activeOnly"),
                                         limit=param("limit"), offset=param("offset"))
    return ok(total=total, templates=[t.to_dict() for t in rows])


def create_template():
    _require_role(*RUBRIC_WRITERS)
    body = json_body()
    if body.get("cloneFrom"):
        tpl = rubrics.clone_template(body["cloneFrom"], name=body.get("name"))
    else:
        tpl = rubrics.create_template(body.get("name"), description=body.get("description"),
                                      version=body.get("version"), active=body.get("active"))
    return ok(201, template=tpl.to_dict())


def patch_template():
    _require_role(*RUBRIC_WRITERS)
    body = json_body()
    template_id = required("id", body)
    tpl = rubrics.patch_template(template_id, **pick(body, TEMPLATE_FIELDS))
    if "scaleLevels" in body:
        rubrics.set_scale_levels(tpl.id, body["scaleLevels"])
    data = tpl.to_dict()
    data["scaleLevels"] = [lvl.to_dict() for lvl in tpl.scale_levels]
    return ok(template=data)


def delete_template():
    _require_role(*RUBRIC_WRITERS)
    rubrics.delete_template(required("id", json_body()))
    return ok()


# --- rubric criteria -------------------------------------------------------

def get_criteria():
    criterion_id = param("id")
    if criterion_id:
        return ok(criterion=rubrics.get_criterion(criterion_id).to_dict())
    rows = rubrics.list_criteria(required("templateId"))
    return ok(criteria=[c.to_dict() for c in rows])


def create_criterion():
    _require_role(*RUBRIC_WRITERS)
    body = json_body()
    row = rubrics.add_criterion(required("templateId", body), body.get("criterion"),
                                description=body.get("description"), weight=body.get("weight"),
                                min_score=body.get("minScore"), max_score=body.get("maxScore"))
    return ok(201, criterion=row.to_dict())


def patch_criterion():
    _require_role(*RUBRIC_WRITERS)
    body = json_body()
    row = rubrics.patch_criterion(required("id", body), **pick(body, CRITERION_FIELDS))
    return ok(criterion=row.to_dict())


def delete_criterion():
    _require_role(*RUBRIC_WRITERS)
    rubrics.delete_criterion(required("id", json_body()))
    return ok()


# --- panel evaluations -----------------------------------------------------

def _evaluation_detail(ev):
    data = ev.to_dict()
    data["scores"] = [s.to_dict() for s in evaluations.list_scores(ev.id)]
    data["extras"] = evaluations.get_extras(ev.id)
    data["totals"] = aggregation.evaluation_totals(ev)
    return data


def get_evaluations():
    _require_role("admin", *EVALUATOR_ROLES)
    evaluation_id = param("id")
    if evaluation_id:
        return ok(evaluation=_evaluation_detail(_own_evaluation(evaluation_id)))
    evaluator_id = param("evaluatorId") if _is_admin() else current_user.id
    total, rows = evaluations.list_evaluations(schedule_id=param("scheduleId"), evaluator_id=evaluator_id,
                                               status=param("status"), limit=param("limit"),
                                               offset=param("offset"))
    return ok(total=total, evaluations=[e.to_dict() for e in rows])


def create_evaluation():
    _require_role("admin", *EVALUATOR_ROLES)
    body = json_body()
    evaluator_id = body.get("evaluatorId") or current_user.id
    if not _is_admin() and evaluator_id != current_user.id:
        raise ForbiddenError("Evaluators can only create their own evaluations")
    ev = evaluations.create_evaluation(body.get("scheduleId"), evaluator_id, status=body.get("status"))
    return ok(201, evaluation=ev.to_dict())


def patch_evaluation():
    body = json_body()
    ev = _own_evaluation(required("id", body))
    if "status" not in body:
        raise ValidationError("status is required")
    ev = evaluations.set_status(ev.id, body["status"])
    return ok(evaluation=ev.to_dict())


def delete_evaluation():
    body = json_body()
    ev = _own_evaluation(required("id", body))
    force = _is_admin() and (flag("force") or bool(body.get("force")))
    evaluations.delete_evaluation(ev.id, force=force)
    return ok()


# --- scores and extras -----------------------------------------------------

def get_scores():
    ev = _own_evaluation(required("evaluationId"))
    return ok(scores=[s.to_dict() for s in evaluations.list_scores(ev.id)])


def save_score():
    body = json_body()
    ev = _own_evaluation(required("evaluationId", body))
    row = evaluations.upsert_score(ev.id, body.get("criterionId"), body.get("score"), body.get("comment"))
    return ok(score=row.to_dict())


def save_scores_bulk():
    body = json_body()
    ev = _own_evaluation(required("evaluationId", body))
    rows = evaluations.bulk_upsert_scores(ev.id, body.get("items"))
    return ok(scores=[s.to_dict() for s in rows])


def get_extras():
    ev = _own_evaluation(required("evaluationId"))
    return ok(evaluationId=ev.id, extras=evaluations.get_extras(ev.id))


def save_extras():
    body = json_body()
    ev = _own_evaluation(required("evaluationId", body))
    data = evaluations.save_extras(ev.id, body.get("extras", body.get("data")))
    return ok(evaluationId=ev.id, extras=data)


# --- student evaluations ---------------------------------------------------

def get_student_evaluations():
    evaluation_id = param("id")
    if evaluation_id:
        se = student_evaluations.get_student_evaluation(evaluation_id)
        student_evaluations.ensure_access(se, current_user)
        return ok(studentEvaluation=se.to_dict())
    if current_user.role == "student":
        student_id = current_user.id
    else:
        _require_role("admin", *EVALUATOR_ROLES)
        student_id = param("studentId")
    total, rows = student_evaluations.list_student_evaluations(schedule_id=param("scheduleId"),
                                                               student_id=student_id,
                                                               limit=param("limit"), offset=param("offset"))
    return ok(total=total, studentEvaluations=[se.to_dict() for se in rows])


def create_student_evaluation():
    body = json_body()
    if current_user.role == "student":
        student_id = current_user.id
    else:
        _require_role("admin")
        student_id = body.get("studentId")
    se, created = student_evaluations.get_or_create_student_evaluation(body.get("scheduleId"), student_id,
                                                                       answers=body.get("answers"))
    return ok(201 if created else 200, studentEvaluation=se.to_dict(), created=created)


def patch_student_evaluation():
    body = json_body()
    se = student_evaluations.get_student_evaluation(required("id", body))
    student_evaluations.ensure_access(se, current_user, write=True)
    if se.student_id != current_user.id:
        # admins may only lock
        if set(body) - {"id", "status"} or str(body.get("status", "")).strip().lower() != "locked":
            raise ForbiddenError("Admins can only lock student evaluations")
    se = student_evaluations.patch_student_evaluation(se.id, status=body.get("status"),
                                                      answers=body.get("answers"),
                                                      submitted_at=body.get("submittedAt"))
    return ok(studentEvaluation=se.to_dict())


def delete_student_evaluation():
    _require_role("admin")
    student_evaluations.delete_student_evaluation(required("id", json_body()))
    return ok()


RESOURCES = {
    "rubricTemplates": {"GET": get_templates, "POST": create_template,
                        "PATCH": patch_template, "DELETE": delete_template},
    "rubricCriteria": {"GET": get_criteria, "POST": create_criterion,
                       "PATCH": patch_criterion, "DELETE": delete_criterion},
    "evaluations": {"GET": get_evaluations, "POST": create_evaluation,
                    "PATCH": patch_evaluation, "DELETE": delete_evaluation},
    "evaluationScores": {"GET": get_scores, "POST": save_score},
    "evaluationScoresBulk": {"POST": save_scores_bulk},
    "evaluationExtras": {"GET": get_extras, "POST": save_extras},
    "studentEvaluations": {"GET": get_student_evaluations, "POST": create_student_evaluation,
                           "PATCH": patch_student_evaluation, "DELETE": delete_student_evaluation},
}


@bp.route("/api/evaluation", methods=["GET", "POST", "PATCH", "DELETE"])
@login_required
def evaluation_resource():
    resource = (request.args.get("resource") or "").strip()
    handlers = RESOURCES.get(resource)
    if handlers is None:
        raise ValidationError(f"Unknown resource {resource!r}; expected one of {', '.join(RESOURCES)}")
    handler = handlers.get(request.method)
    if handler is None:
        abort(405)
    return handler()


@bp.route("/api/staff/evaluations/<evaluation_id>/submit", methods=["POST"])
@login_required
def submit_evaluation(evaluation_id):
    ev = _own_evaluation(evaluation_id)
    ev = evaluations.submit_evaluation(ev.id)
    return ok(evaluation=ev.to_dict())


@bp.route("/api/staff/evaluations/<evaluation_id>/lock", methods=["POST"])
@login_required
def lock_evaluation(evaluation_id):
    ev = _own_evaluation(evaluation_id)
    ev = evaluations.lock_evaluation(ev.id)
    return ok(evaluation=ev.to_dict())
