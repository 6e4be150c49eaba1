import pytest

from thesis_eval.errors import ConflictError, ForbiddenError, LockedError, ValidationError
from thesis_eval.models.audit_log import AuditLog
from thesis_eval.services import student_evaluations as se_service


def test_get_or_create_is_stable(defense):
    ana = defense.students[0]
    se, created = se_service.get_or_create_student_evaluation(defense.schedule.id, ana.id)
    assert created and se.status == "pending" and se.answers == {}
    again, created = se_service.get_or_create_student_evaluation(defense.schedule.id, ana.id)
    assert not created and again.id == se.id


def test_only_group_members_get_one(defense, make_user):
    outsider = make_user("student")
    with pytest.raises(ForbiddenError):
        se_service.get_or_create_student_evaluation(defense.schedule.id, outsider.id)


def test_answers_must_be_an_object(defense):
    se, _ = se_service.get_or_create_student_evaluation(defense.schedule.id, defense.students[0].id)
    with pytest.raises(ValidationError):
        se_service.patch_student_evaluation(se.id, answers=["not", "an", "object"])


def test_patch_then_submit_then_lock(defense):
    se, _ = se_service.get_or_create_student_evaluation(defense.schedule.id, defense.students[0].id)
    se = se_service.patch_student_evaluation(se.id, answers={"q1": 5, "remarks": "Fair panel"})
    assert se.answers["remarks"] == "Fair panel"

    se = se_service.patch_student_evaluation(se.id, status="submitted", answers={"q1": 4})
    assert se.status == "submitted"
    assert se.answers == {"q1": 4}
    assert se.submitted_at is not None

    se = se_service.lock_student_evaluation(se.id)
    assert se.status == "locked"
    with pytest.raises(LockedError):
        se_service.patch_student_evaluation(se.id, answers={"q1": 1})
    assert AuditLog.query.filter_by(action="student_evaluation_locked", entity_id=se.id).count() == 1


def test_refused_transition_leaves_answers(defense):
    se, _ = se_service.get_or_create_student_evaluation(defense.schedule.id, defense.students[0].id,
                                                        answers={"q1": 3})
    se_service.submit_student_evaluation(se.id)
    with pytest.raises(ConflictError):
        se_service.patch_student_evaluation(se.id, status="pending", answers={"q1": 1})
    assert se_service.get_student_evaluation(se.id).answers == {"q1": 3}


def test_client_submitted_at_only_fills_unset(defense):
    se, _ = se_service.get_or_create_student_evaluation(defense.schedule.id, defense.students[0].id)
    se = se_service.patch_student_evaluation(se.id, submitted_at="2025-11-03T10:15:00Z")
    assert se.submitted_at.isoformat() == "2025-11-03T10:15:00"
    se = se_service.submit_student_evaluation(se.id)
    assert se.submitted_at.isoformat() == "2025-11-03T10:15:00"


def test_answers_refuse_a_row_locked_after_load(defense):
    from sqlalchemy import text
    from thesis_eval.extensions import db
    se, _ = se_service.get_or_create_student_evaluation(defense.schedule.id, defense.students[0].id)
    assert se.status == "pending"
    db.session.execute(text("UPDATE student_evaluations SET status = 'locked' WHERE id = :id"), {"id": se.id})
    with pytest.raises(LockedError):
        se_service.patch_student_evaluation(se.id, answers={"q1": 5})
    assert se_service.get_student_evaluation(se.id).answers == {}
