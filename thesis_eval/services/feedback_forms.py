"""Student feedback forms and the scoring of answers against them.

Only one form is active at a time. Defense schedules pin the active form
when created, and student evaluations take their schedule's form, so the
answers of one defense are always read against the same questions.
"""
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models.feedback_form import StudentFeedbackForm
from . import audit
from .pagination import clamp_limit, clamp_offset
from .validation import as_bool, optional_text, require_text

QUESTION_TYPES = ("rating", "text")


def _check_scale(scale, label):
    if not isinstance(scale, dict):
        raise ValidationError(f"{label}.scale must be an object with min and max")
    lo, hi = scale.get("min"), scale.get("max")
    if not isinstance(lo, int) or not isinstance(hi, int) or isinstance(lo, bool) or isinstance(hi, bool):
        raise ValidationError(f"{label}.scale min and max must be integers")
    if lo >= hi:
        raise ValidationError(f"{label}.scale min must be below max")


def check_schema(schema):
    """Validate a form definition; returns it unchanged."""
    if not isinstance(schema, dict):
        raise ValidationError("schema must be a JSON object")
    sections = schema.get("sections")
    if not isinstance(sections, list) or not sections:
        raise ValidationError("schema.sections must be a non-empty list")
    seen = set()
    for i, section in enumerate(sections):
        label = f"sections[{i}]"
        if not isinstance(section, dict):
            raise ValidationError(f"{label} must be an object")
        require_text(section.get("id"), f"{label}.id")
        questions = section.get("questions")
        if not isinstance(questions, list) or not questions:
            raise ValidationError(f"{label}.questions must be a non-empty list")
        for j, q in enumerate(questions):
            qlabel = f"{label}.questions[{j}]"
            if not isinstance(q, dict):
                raise ValidationError(f"{qlabel} must be an object")
            qid = require_text(q.get("id"), f"{qlabel}.id")
            if qid in seen:
                raise ValidationError(f"question id {qid!r} is used more than once")
            seen.add(qid)
            if q.get("type") not in QUESTION_TYPES:
                raise ValidationError(f"{qlabel}.type must be one of {', '.join(QUESTION_TYPES)}")
            require_text(q.get("label"), f"{qlabel}.label")
            if q["type"] == "rating":
                _check_scale(q.get("scale"), qlabel)
    return schema


def questions(schema):
    """Yield ``(section_id, question)`` in form order."""
    for section in (schema or {}).get("sections") or []:
        for q in section.get("questions") or []:
            yield section.get("id"), q


# --- forms -----------------------------------------------------------------

def get_form(form_id):
    form = db.session.get(StudentFeedbackForm, form_id) if form_id else None
    if form is None:
        raise NotFoundError("Student feedback form not found")
    return form


def active_form():
    return StudentFeedbackForm.query.filter_by(active=True).order_by(StudentFeedbackForm.version.desc()).first()


def list_forms(key=None, limit=50, offset=0):
    query = StudentFeedbackForm.query
    if key:
        query = query.filter(StudentFeedbackForm.key == key.strip())
    total = query.count()
    rows = (query.order_by(StudentFeedbackForm.key.asc(), StudentFeedbackForm.version.desc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, rows


def _deactivate_others(form_id):
    (StudentFeedbackForm.query
     .filter(StudentFeedbackForm.active.is_(True), StudentFeedbackForm.id != form_id)
     .update({StudentFeedbackForm.active: False}, synchronize_session="fetch"))


def create_form(title, schema, key=None, description=None, active=False):
    """Store a new form version; the version follows the newest one for ``key``."""
    title = require_text(title, "title")
    key = optional_text(key) or "student-feedback"
    schema = check_schema(schema)
    active = as_bool(active, "active") if active is not None else False
    latest = (db.session.query(db.func.max(StudentFeedbackForm.version))
              .filter(StudentFeedbackForm.key == key).scalar())
    form = StudentFeedbackForm(key=key, version=(latest or 0) + 1, title=title,
                               description=optional_text(description), definition=schema, active=active)
    db.session.add(form)
    db.session.flush()
    if active:
        _deactivate_others(form.id)
    db.session.commit()
    audit.record("student_feedback_form_created", "student_feedback_form", form.id,
                 form.to_dict(with_schema=False))
    return form


def activate_form(form_id):
    """Make ``form_id`` the only active form. Schedules already pinned keep theirs."""
    form = get_form(form_id)
    if form.active and StudentFeedbackForm.query.filter_by(active=True).count() == 1:
        return form
    _deactivate_others(form.id)
    form.active = True
    db.session.commit()
    audit.record("student_feedback_form_activated", "student_feedback_form", form.id,
                 {"key": form.key, "version": form.version})
    return form


# --- answers ---------------------------------------------------------------

def _blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def check_answers(answers, schema):
    """Reject answers to unknown questions, ratings off the scale and overlong text."""
    by_id = {q["id"]: q for _, q in questions(schema)}
    for qid, value in answers.items():
        q = by_id.get(qid)
        if q is None:
            raise ValidationError(f"answers.{qid} is not a question on this form")
        if _blank(value):
            continue
        if q["type"] == "rating":
            scale = q["scale"]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"answers.{qid} must be a number")
            if not scale["min"] <= value <= scale["max"]:
                raise ValidationError(f"answers.{qid} must be between {scale['min']} and {scale['max']}")
        else:
            if not isinstance(value, str):
                raise ValidationError(f"answers.{qid} must be text")
            max_length = q.get("maxLength")
            if max_length and len(value) > max_length:
                raise ValidationError(f"answers.{qid} is longer than {max_length} characters")


def missing_required(answers, schema):
    return [q["id"] for _, q in questions(schema) if q.get("required") and _blank(answers.get(q["id"]))]


def score_summary(answers, schema):
    """Total and maximum of the answered rating questions, overall and per section.

    Unanswered and text questions do not count toward either side.
    """
    breakdown = {}
    total = maximum = 0.0
    for section_id, q in questions(schema):
        if q.get("type") != "rating":
            continue
        value = answers.get(q["id"])
        if _blank(value) or isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        part = breakdown.setdefault(section_id, {"total": 0.0, "max": 0.0, "answered": 0})
        part["total"] += value
        part["max"] += q["scale"]["max"]
        part["answered"] += 1
        total += value
        maximum += q["scale"]["max"]
    return {
        "totalScore": total,
        "maxScore": maximum,
        "percentage": round(total / maximum * 100, 2) if maximum else 0.0,
        "breakdown": breakdown,
    }
