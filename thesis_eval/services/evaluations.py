from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models.defense_schedule import SchedulePanelist
from ..models.evaluation import Evaluation, EvaluationExtras, EvaluationScore
from ..models.rubric import RubricCriterion
from ..models.user import EVALUATOR_ROLES
from . import audit, lifecycle, notifications
from .groups import get_user
from .pagination import clamp_limit, clamp_offset
from .schedules import get_schedule
from .validation import as_int, as_number, optional_text, require_text

EXTRAS_KEYS = ("group", "system", "membersOverall")


# --- records ---------------------------------------------------------------

def get_evaluation(evaluation_id):
    ev = db.session.get(Evaluation, evaluation_id) if evaluation_id else None
    if ev is None:
        raise NotFoundError("Evaluation not found")
    return ev


def ensure_access(evaluation, user):
    """Admins see every evaluation; evaluators only their own."""
    if user.role == "admin":
        return
    if user.role in EVALUATOR_ROLES and evaluation.evaluator_id == user.id:
        return
    raise ForbiddenError("Not allowed to access this evaluation")


def _evaluator(evaluator_id):
    evaluator = get_user(require_text(evaluator_id, "evaluatorId"), "Evaluator")
    if evaluator.role not in EVALUATOR_ROLES:
        raise ValidationError("Evaluator must be a staff or panelist user")
    return evaluator


def create_evaluation(schedule_id, evaluator_id, status=None):
    sched = get_schedule(require_text(schedule_id, "scheduleId"))
    evaluator = _evaluator(evaluator_id)
    target = lifecycle.validate_status(status) if status else lifecycle.PENDING
    existing = Evaluation.query.filter_by(schedule_id=sched.id, evaluator_id=evaluator.id).first()
    if existing is not None:
        raise ConflictError("Evaluation already exists for this schedule and evaluator")

    ev = Evaluation(schedule_id=sched.id, evaluator_id=evaluator.id, status=lifecycle.PENDING)
    db.session.add(ev)
    db.session.commit()
    audit.record("evaluation_created", "evaluation", ev.id, ev.to_dict())
    if target != lifecycle.PENDING:
        set_status(ev.id, target)
    return ev


def assign_evaluators(schedule_id, evaluator_ids):
    """Create pending evaluations for ``evaluator_ids`` on one schedule.

    Every id is checked before anything is written; one refused id (unknown,
    not an evaluator, repeated or already assigned) leaves the schedule as it was.
    """
    sched = get_schedule(require_text(schedule_id, "scheduleId"))
    if not isinstance(evaluator_ids, list) or not evaluator_ids:
        raise ValidationError("evaluatorIds must be a non-empty list")
    have = {e.evaluator_id for e in Evaluation.query.filter_by(schedule_id=sched.id).all()}
    created = []
    for evaluator_id in evaluator_ids:
        evaluator = _evaluator(evaluator_id)
        if evaluator.id in have:
            raise ConflictError(f"Evaluation already exists for evaluator {evaluator.id}")
        have.add(evaluator.id)
        created.append(Evaluation(schedule_id=sched.id, evaluator_id=evaluator.id, status=lifecycle.PENDING))
    db.session.add_all(created)
    db.session.commit()
    audit.record("evaluations_assigned", "defense_schedule", sched.id,
                 {"evaluationIds": [e.id for e in created],
                  "evaluatorIds": [e.evaluator_id for e in created]})
    return created


def assign_panelists(schedule_id):
    """Create a pending evaluation for every panelist of the schedule that lacks one."""
    sched = get_schedule(schedule_id)
    have = {e.evaluator_id for e in Evaluation.query.filter_by(schedule_id=sched.id).all()}
    created = []
    for p in SchedulePanelist.query.filter_by(schedule_id=sched.id).all():
        if p.staff_id in have:
            continue
        ev = Evaluation(schedule_id=sched.id, evaluator_id=p.staff_id, status=lifecycle.PENDING)
        db.session.add(ev)
        created.append(ev)
    db.session.commit()
    if created:
        audit.record("evaluations_assigned", "defense_schedule", sched.id,
                     {"evaluationIds": [e.id for e in created],
                      "evaluatorIds": [e.evaluator_id for e in created]})
    return created


def list_evaluations(schedule_id=None, evaluator_id=None, status=None, limit=50, offset=0):
    query = Evaluation.query
    if schedule_id:
        query = query.filter(Evaluation.schedule_id == schedule_id)
    if evaluator_id:
        query = query.filter(Evaluation.evaluator_id == evaluator_id)
    if status:
        query = query.filter(Evaluation.status == lifecycle.validate_status(status))
    total = query.count()
    rows = (query.order_by(Evaluation.created_at.asc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, rows


def submit_evaluation(evaluation_id):
    ev = get_evaluation(evaluation_id)
    if lifecycle.submit(ev, "Evaluation"):
        audit.record("evaluation_submitted", "evaluation", ev.id,
                     {"status": ev.status, "submittedAt": ev.to_dict()["submittedAt"]})
        notifications.notify_evaluation_status(ev)
    return ev


def lock_evaluation(evaluation_id):
    ev = get_evaluation(evaluation_id)
    if lifecycle.lock(ev, "Evaluation"):
        audit.record("evaluation_locked", "evaluation", ev.id,
                     {"status": ev.status, "lockedAt": ev.to_dict()["lockedAt"]})
        notifications.notify_evaluation_status(ev)
    return ev


def set_status(evaluation_id, status):
    ev = get_evaluation(evaluation_id)
    target = lifecycle.validate_status(status)
    if target == lifecycle.SUBMITTED:
        return submit_evaluation(ev.id)
    if target == lifecycle.LOCKED:
        return lock_evaluation(ev.id)
    lifecycle.transition(ev, target, "Evaluation")
    return ev


def delete_evaluation(evaluation_id, force=False):
    """Delete an evaluation with its scores and extras.

    Submitted or locked evaluations are kept unless ``force`` is set.
    """
    ev = get_evaluation(evaluation_id)
    if not force and (ev.status != lifecycle.PENDING or ev.submitted_at or ev.locked_at):
        raise ConflictError("Only pending evaluations can be deleted")
    snapshot = ev.to_dict()
    snapshot["scoreCount"] = len(ev.scores)
    db.session.delete(ev)
    db.session.commit()
    audit.record("evaluation_deleted", "evaluation", evaluation_id, dict(snapshot, forced=bool(force)))


# --- scores ----------------------------------------------------------------

def _criteria_for(ev):
    template_id = ev.schedule.rubric_template_id if ev.schedule else None
    if not template_id:
        raise ValidationError("Evaluation has no rubric template via its schedule")
    rows = RubricCriterion.query.filter_by(template_id=template_id).all()
    return {c.id: c for c in rows}


def _parse_item(item, criteria, label):
    if not isinstance(item, dict):
        raise ValidationError(f"{label} must be an object")
    criterion_id = require_text(item.get("criterionId"), f"{label}.criterionId")
    criterion = criteria.get(criterion_id)
    if criterion is None:
        raise ValidationError(f"{label}.criterionId does not belong to this evaluation's rubric")
    if item.get("score") is None:
        raise ValidationError(f"{label}.score is required")
    score = as_int(item.get("score"), f"{label}.score")
    if not criterion.min_score <= score <= criterion.max_score:
        raise ValidationError(
            f"{label}.score {score} out of range [{criterion.min_score}..{criterion.max_score}]"
            f" for criterion {criterion.criterion!r}")
    return criterion_id, score, optional_text(item.get("comment"))


def _apply(ev, parsed):
    lifecycle.hold_editable(ev, "Evaluation")
    existing = {s.criterion_id: s for s in ev.scores}
    for criterion_id, score, comment in parsed:
        row = existing.get(criterion_id)
        if row is None:
            row = EvaluationScore(evaluation_id=ev.id, criterion_id=criterion_id, score=score, comment=comment)
            ev.scores.append(row)
            existing[criterion_id] = row
        else:
            row.score = score
            row.comment = comment
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception('Score write failed for evaluation %s', ev.id)
        raise


def upsert_score(evaluation_id, criterion_id, score, comment=None):
    ev = get_evaluation(evaluation_id)
    lifecycle.ensure_editable(ev, "Evaluation")
    parsed = _parse_item({"criterionId": criterion_id, "score": score, "comment": comment},
                         _criteria_for(ev), "item")
    _apply(ev, [parsed])
    audit.record("evaluation_score_saved", "evaluation", ev.id,
                 {"criterionId": parsed[0], "score": parsed[1]})
    return db.session.get(EvaluationScore, (ev.id, parsed[0]))


def bulk_upsert_scores(evaluation_id, items):
    """Upsert a batch of ``{criterionId, score, comment?}``.

    All-or-nothing: every item is validated before anything is written and
    the batch commits once.
    """
    ev = get_evaluation(evaluation_id)
    lifecycle.ensure_editable(ev, "Evaluation")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must contain at least one entry")
    criteria = _criteria_for(ev)
    parsed = []
    seen = set()
    for i, item in enumerate(items):
        entry = _parse_item(item, criteria, f"items[{i}]")
        if entry[0] in seen:
            raise ValidationError(f"items[{i}].criterionId is duplicated in this batch")
        seen.add(entry[0])
        parsed.append(entry)
    _apply(ev, parsed)
    audit.record("evaluation_scores_saved", "evaluation", ev.id,
                 {"items": [{"criterionId": c, "score": s} for c, s, _ in parsed]})
    return list_scores(ev.id)


def list_scores(evaluation_id):
    ev = get_evaluation(evaluation_id)
    return (EvaluationScore.query.filter_by(evaluation_id=ev.id)
            .join(RubricCriterion, RubricCriterion.id == EvaluationScore.criterion_id)
            .order_by(RubricCriterion.position.asc())
            .all())


# --- extras ----------------------------------------------------------------

def _score_entry(value, label):
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError(f"{label} must be an object with score/comment")
    unknown = set(value) - {"score", "comment"}
    if unknown:
        raise ValidationError(f"{label} has unknown keys: {', '.join(sorted(unknown))}")
    score = value.get("score")
    return {
        "score": None if score is None else as_number(score, f"{label}.score"),
        "comment": optional_text(value.get("comment")),
    }


def normalize_extras(data):
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("extras must be a JSON object")
    unknown = set(data) - set(EXTRAS_KEYS)
    if unknown:
        raise ValidationError(f"extras has unknown keys: {', '.join(sorted(unknown))}")
    out = {}
    for key in ("group", "system"):
        entry = _score_entry(data.get(key), key)
        if entry is not None:
            out[key] = entry
    members = data.get("membersOverall")
    if members is not None:
        if not isinstance(members, dict):
            raise ValidationError("membersOverall must map student ids to score entries")
        out["membersOverall"] = {
            str(student_id): _score_entry(entry, f"membersOverall.{student_id}") or {"score": None, "comment": None}
            for student_id, entry in members.items()
        }
    return out


def get_extras(evaluation_id):
    ev = get_evaluation(evaluation_id)
    return dict(ev.extras.data) if ev.extras and ev.extras.data else {}


def save_extras(evaluation_id, data):
    ev = get_evaluation(evaluation_id)
    lifecycle.ensure_editable(ev, "Evaluation")
    clean = normalize_extras(data)
    lifecycle.hold_editable(ev, "Evaluation")
    if ev.extras is None:
        ev.extras = EvaluationExtras(evaluation_id=ev.id, data=clean)
    else:
        ev.extras.data = clean
    db.session.commit()
    audit.record("evaluation_extras_saved", "evaluation", ev.id, {"keys": sorted(clean)})
    return clean
