"""Derived scores. Nothing here is persisted; every call reads current rows.

Only evaluations in ``submitted`` or ``locked`` count towards a schedule's
scores. Two families of totals are exposed side by side:

* raw: ``rawTotal`` is the plain sum of criterion scores and ``groupScore``
  the mean of those sums;
* weighted: ``weightedTotal`` multiplies each score by its criterion weight,
  and ``overallPercentage`` relates it to the template's weighted maximum.
"""
from ..extensions import db
from ..models.base import iso
from ..models.defense_schedule import DefenseSchedule
from ..models.evaluation import COUNTED_STATUSES, Evaluation
from ..models.rubric import RubricCriterion
from ..models.student_evaluation import StudentEvaluation
from ..models.thesis_group import GroupMember, ThesisGroup
from .schedules import get_schedule


def mean(values):
    xs = [float(v) for v in values if v is not None]
    if not xs:
        return None
    return sum(xs) / len(xs)


def _round(value, ndigits=2):
    return None if value is None else round(value, ndigits)


def score_percent(x):
    """Map a score of unknown scale onto 0..100 for display.

    Values up to 5 are read as a 5-point scale, up to 10 as a 10-point
    scale, anything else as a percentage.
    """
    if x is None:
        return 0.0
    x = float(x)
    scale = 5 if x <= 5 else 10 if x <= 10 else 100
    return max(0.0, min(100.0, x / scale * 100))


def _criteria(template_id):
    if not template_id:
        return []
    return RubricCriterion.query.filter_by(template_id=template_id).all()


def evaluation_totals(ev, criteria=None):
    if criteria is None:
        criteria = _criteria(ev.schedule.rubric_template_id if ev.schedule else None)
    by_id = {c.id: c for c in criteria}
    raw = 0
    weighted = 0.0
    scored = 0
    for s in ev.scores:
        c = by_id.get(s.criterion_id)
        if c is None:
            continue
        raw += s.score
        weighted += s.score * float(c.weight)
        scored += 1
    weighted_max = sum(c.max_score * float(c.weight) for c in criteria)
    pct = round(weighted / weighted_max * 100, 2) if weighted_max else 0.0
    return {
        "rawTotal": raw,
        "weightedTotal": round(weighted, 3),
        "weightedMax": round(weighted_max, 3),
        "overallPercentage": pct,
        "criteriaCount": len(criteria),
        "criteriaScored": scored,
    }


def _extras_score(extras, *path):
    node = extras or {}
    for key in path:
        if not isinstance(node, dict):
            return None, None
        node = node.get(key)
    if not isinstance(node, dict):
        return None, None
    return node.get("score"), node.get("comment")


def _panelist_entry(ev, totals, student_id):
    extras = ev.extras.data if ev.extras and ev.extras.data else {}
    group_score, group_comment = _extras_score(extras, "group")
    system_score, system_comment = _extras_score(extras, "system")
    personal_score, personal_comment = (None, None)
    if student_id:
        personal_score, personal_comment = _extras_score(extras, "membersOverall", student_id)
    return {
        "evaluationId": ev.id,
        "status": ev.status,
        "submittedAt": iso(ev.submitted_at),
        "lockedAt": iso(ev.locked_at),
        "counted": ev.status in COUNTED_STATUSES,
        "evaluator": {
            "id": ev.evaluator_id,
            "name": ev.evaluator.name if ev.evaluator else None,
            "email": ev.evaluator.email if ev.evaluator else None,
        },
        "totals": totals,
        "scores": {
            "criteria": [s.to_dict() for s in ev.scores],
            "groupScore": group_score,
            "systemScore": system_score,
            "personalScore": personal_score,
        },
        "comments": {
            "groupComment": group_comment,
            "systemComment": system_comment,
            "personalComment": personal_comment,
        },
    }


def schedule_scores(schedule_id, student_id=None):
    """Aggregate a schedule's panel evaluations.

    Returns ``{"scores": {...}, "panelistEvaluations": [...]}``. The result
    does not depend on the order evaluations were created or submitted.
    """
    sched = get_schedule(schedule_id)
    criteria = _criteria(sched.rubric_template_id)
    evaluations = (Evaluation.query.filter_by(schedule_id=sched.id)
                   .order_by(Evaluation.created_at.asc(), Evaluation.id.asc()).all())

    panelists = []
    for ev in evaluations:
        panelists.append(_panelist_entry(ev, evaluation_totals(ev, criteria), student_id))
    panelists.sort(key=lambda p: ((p["evaluator"]["name"] or "").lower(), p["evaluationId"]))

    counted = [p for p in panelists if p["counted"]]
    scores = {
        "groupScore": mean(p["totals"]["rawTotal"] for p in counted),
        "weightedGroupScore": _round(mean(p["totals"]["weightedTotal"] for p in counted), 3),
        "groupPercentage": _round(mean(p["totals"]["overallPercentage"] for p in counted)),
        "systemScore": mean(p["scores"]["systemScore"] for p in counted),
        "personalScore": mean(p["scores"]["personalScore"] for p in counted) if student_id else None,
        "countedEvaluations": len(counted),
        "totalEvaluations": len(panelists),
    }
    return {"scores": scores, "panelistEvaluations": panelists}


def group_rankings():
    """Thesis groups by mean overall percentage, high to low.

    Groups without a counted evaluation sort last. Equal percentages are
    ordered by the latest defense date, then by title.
    """
    rows = []
    for group in ThesisGroup.query.all():
        schedules = DefenseSchedule.query.filter_by(group_id=group.id).all()
        percentages = []
        for sched in schedules:
            criteria = _criteria(sched.rubric_template_id)
            counted = (Evaluation.query.filter(Evaluation.schedule_id == sched.id,
                                               Evaluation.status.in_(COUNTED_STATUSES)).all())
            percentages.extend(evaluation_totals(ev, criteria)["overallPercentage"] for ev in counted)
        latest = max((s.scheduled_at for s in schedules), default=None)
        rows.append({
            "groupId": group.id,
            "groupTitle": group.title,
            "groupPercentage": _round(mean(percentages)),
            "submittedEvaluations": len(percentages),
            "latestDefenseAt": latest,
        })

    rows.sort(key=lambda r: (
        r["groupPercentage"] is None,
        -(r["groupPercentage"] or 0),
        r["latestDefenseAt"] is None,
        -r["latestDefenseAt"].timestamp() if r["latestDefenseAt"] else 0,
        r["groupTitle"] or "",
    ))

    rank = 0
    previous = object()
    for r in rows:
        key = (r["groupPercentage"], r["latestDefenseAt"], r["groupTitle"])
        if key != previous:
            rank += 1
            previous = key
        r["rank"] = rank
        r["latestDefenseAt"] = iso(r["latestDefenseAt"])
    return rows


def student_evaluation_summary(student_id, limit=10):
    """Recent defenses of the student's groups with their aggregated scores."""
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = 10
    limit = max(1, min(20, limit))

    schedules = (db.session.query(DefenseSchedule)
                 .join(GroupMember, GroupMember.group_id == DefenseSchedule.group_id)
                 .filter(GroupMember.student_id == student_id)
                 .order_by(DefenseSchedule.scheduled_at.desc())
                 .limit(limit)
                 .all())

    items = []
    for sched in schedules:
        agg = schedule_scores(sched.id, student_id=student_id)
        own = StudentEvaluation.query.filter_by(schedule_id=sched.id, student_id=student_id).first()
        group = sched.group
        items.append({
            "schedule": {
                "id": sched.id,
                "scheduledAt": iso(sched.scheduled_at),
                "room": sched.room,
                "status": sched.status,
                "rubricTemplateId": sched.rubric_template_id,
            },
            "group": {
                "id": group.id,
                "title": group.title,
                "program": group.program,
                "term": group.term,
            },
            "scores": agg["scores"],
            "panelistEvaluations": agg["panelistEvaluations"],
            "studentEvaluation": own.to_dict() if own else None,
        })
    return items
