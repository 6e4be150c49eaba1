from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..extensions import db
from ..models.base import utcnow
from ..models.student_evaluation import StudentEvaluation, StudentEvaluationScore
from ..models.thesis_group import GroupMember
from . import audit, feedback_forms, lifecycle
from .groups import get_user
from .pagination import clamp_limit, clamp_offset
from .schedules import get_schedule
from .validation import as_datetime, as_json_object, require_text

LABEL = "Student evaluation"


def get_student_evaluation(evaluation_id):
    se = db.session.get(StudentEvaluation, evaluation_id) if evaluation_id else None
    if se is None:
        raise NotFoundError("Student evaluation not found")
    return se


def _form_answers(form, answers):
    answers = as_json_object(answers, "answers")
    if form is not None:
        feedback_forms.check_answers(answers, form.definition)
    return answers


def _store_score(se):
    """Recompute the score row from the answers; the caller commits."""
    if se.form is None:
        return None
    summary = feedback_forms.score_summary(se.answers or {}, se.form.definition)
    row = se.score or StudentEvaluationScore()
    row.form_id = se.form.id
    row.total_score = summary["totalScore"]
    row.max_score = summary["maxScore"]
    row.percentage = summary["percentage"]
    row.breakdown = summary["breakdown"]
    row.computed_at = utcnow()
    se.score = row
    return row


def ensure_access(se, user, write=False):
    """The owning student reads and writes; admins may read and lock."""
    if se.student_id == user.id or user.role == "admin":
        return
    if not write and user.role in ("staff", "panelist"):
        return
    raise ForbiddenError("Not allowed to access this student evaluation")


def get_or_create_student_evaluation(schedule_id, student_id, answers=None):
    """Returns ``(record, created)``."""
    sched = get_schedule(require_text(schedule_id, "scheduleId"))
    student = get_user(require_text(student_id, "studentId"), "Student")
    if student.role != "student":
        raise ValidationError("Student evaluations belong to student users")
    if db.session.get(GroupMember, (sched.group_id, student.id)) is None:
        raise ForbiddenError("Student is not a member of the scheduled group")

    se = StudentEvaluation.query.filter_by(schedule_id=sched.id, student_id=student.id).first()
    if se is not None:
        return se, False
    form = (feedback_forms.get_form(sched.student_feedback_form_id) if sched.student_feedback_form_id
            else feedback_forms.active_form())
    se = StudentEvaluation(schedule_id=sched.id, student_id=student.id, status=lifecycle.PENDING,
                           form=form, answers=_form_answers(form, answers))
    db.session.add(se)
    _store_score(se)
    db.session.commit()
    audit.record("student_evaluation_created", "student_evaluation", se.id,
                 {"scheduleId": sched.id, "studentId": student.id, "formId": se.form_id})
    return se, True


def list_student_evaluations(schedule_id=None, student_id=None, limit=50, offset=0):
    query = StudentEvaluation.query
    if schedule_id:
        query = query.filter(StudentEvaluation.schedule_id == schedule_id)
    if student_id:
        query = query.filter(StudentEvaluation.student_id == student_id)
    total = query.count()
    rows = (query.order_by(StudentEvaluation.updated_at.desc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, rows


def submit_student_evaluation(evaluation_id):
    se = get_student_evaluation(evaluation_id)
    if se.status == lifecycle.PENDING and se.form is not None:
        missing = feedback_forms.missing_required(se.answers or {}, se.form.definition)
        if missing:
            raise ValidationError("Please answer all required questions before submitting: "
                                  + ", ".join(missing))
    if lifecycle.submit(se, LABEL):
        _store_score(se)
        db.session.commit()
        audit.record("student_evaluation_submitted", "student_evaluation", se.id,
                     {"submittedAt": se.to_dict()["submittedAt"]})
    return se


def lock_student_evaluation(evaluation_id):
    se = get_student_evaluation(evaluation_id)
    if lifecycle.lock(se, LABEL):
        audit.record("student_evaluation_locked", "student_evaluation", se.id,
                     {"lockedAt": se.to_dict()["lockedAt"]})
    return se


def patch_student_evaluation(evaluation_id, status=None, answers=None, submitted_at=None):
    """Edit answers while editable, then apply a forward-only status change.

    The status request is checked before anything is written, so a refused
    transition leaves the answers untouched.
    """
    se = get_student_evaluation(evaluation_id)
    target = lifecycle.check_transition(se, status, LABEL) if status is not None else None

    if answers is not None or submitted_at is not None:
        lifecycle.ensure_editable(se, LABEL)
        clean = _form_answers(se.form, answers) if answers is not None else None
        when = as_datetime(submitted_at, "submittedAt") if submitted_at is not None else None
        lifecycle.hold_editable(se, LABEL)
        if clean is not None:
            se.answers = clean
            _store_score(se)
        if when is not None and se.submitted_at is None:
            se.submitted_at = when
        db.session.commit()

    if target == lifecycle.SUBMITTED:
        return submit_student_evaluation(se.id)
    if target == lifecycle.LOCKED:
        return lock_student_evaluation(se.id)
    return se


def delete_student_evaluation(evaluation_id):
    se = get_student_evaluation(evaluation_id)
    snapshot = se.to_dict()
    db.session.delete(se)
    db.session.commit()
    audit.record("student_evaluation_deleted", "student_evaluation", evaluation_id,
                 {k: snapshot[k] for k in ("scheduleId", "studentId", "status")})
