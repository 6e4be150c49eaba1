import pytest

from thesis_eval.errors import ValidationError
from thesis_eval.models.audit_log import AuditLog
from thesis_eval.models.feedback_form import StudentFeedbackForm
from thesis_eval.services import feedback_forms, schedules
from thesis_eval.services import student_evaluations as se_service

SCHEMA = {"sections": [
    {"id": "overall", "title": "Overall", "questions": [
        {"id": "satisfaction", "type": "rating", "label": "Overall satisfaction", "required": True,
         "scale": {"min": 1, "max": 5}},
        {"id": "clarity", "type": "rating", "label": "Schedule clarity", "required": False,
         "scale": {"min": 1, "max": 5}},
    ]},
    {"id": "panel", "title": "Panel", "questions": [
        {"id": "fairness", "type": "rating", "label": "Fairness", "required": True,
         "scale": {"min": 1, "max": 10}},
        {"id": "comments", "type": "text", "label": "Comments", "required": False, "maxLength": 20},
    ]},
]}


@pytest.fixture
def form(app):
    return feedback_forms.create_form("Student Feedback", SCHEMA, active=True)


@pytest.fixture
def pinned(defense, form):
    """A second defense of the fixture group, scheduled while ``form`` is active."""
    return schedules.create_schedule(defense.group.id, "2025-11-10T09:00:00", room="CCS Lab 2")


def test_versions_count_up_per_key(app):
    a = feedback_forms.create_form("A", SCHEMA)
    b = feedback_forms.create_form("B", SCHEMA)
    other = feedback_forms.create_form("C", SCHEMA, key="exit-survey")
    assert (a.key, a.version) == ("student-feedback", 1)
    assert b.version == 2
    assert other.version == 1
    assert AuditLog.query.filter_by(action="student_feedback_form_created").count() == 3


def test_activation_leaves_one_active_form(app):
    first = feedback_forms.create_form("First", SCHEMA, active=True)
    second = feedback_forms.create_form("Second", SCHEMA, active=True)
    assert feedback_forms.active_form().id == second.id

    feedback_forms.activate_form(first.id)
    assert [f.id for f in StudentFeedbackForm.query.filter_by(active=True)] == [first.id]


@pytest.mark.parametrize("schema", [
    None,
    {"sections": []},
    {"sections": [{"id": "s", "questions": []}]},
    {"sections": [{"id": "s", "questions": [{"id": "q", "type": "choice", "label": "Q"}]}]},
    {"sections": [{"id": "s", "questions": [{"id": "q", "type": "rating", "label": "Q",
                                             "scale": {"min": 5, "max": 1}}]}]},
    {"sections": [{"id": "s", "questions": [{"id": "q", "type": "text", "label": "Q"},
                                            {"id": "q", "type": "text", "label": "Again"}]}]},
])
def test_bad_schemas_are_refused(app, schema):
    with pytest.raises(ValidationError):
        feedback_forms.create_form("Broken", schema)
    assert StudentFeedbackForm.query.count() == 0


def test_schedule_pins_the_active_form(pinned, form):
    assert pinned.student_feedback_form_id == form.id
    newer = feedback_forms.create_form("Newer", SCHEMA, active=True)
    assert feedback_forms.active_form().id == newer.id
    assert schedules.get_schedule(pinned.id).student_feedback_form_id == form.id


def test_student_evaluation_binds_the_pinned_form(defense, pinned, form):
    feedback_forms.create_form("Newer", SCHEMA, active=True)
    se, created = se_service.get_or_create_student_evaluation(pinned.id, defense.students[0].id)
    assert created
    assert se.form_id == form.id
    assert se.to_dict()["formId"] == form.id


def test_answers_are_checked_against_the_form(defense, pinned):
    se, _ = se_service.get_or_create_student_evaluation(pinned.id, defense.students[0].id)
    with pytest.raises(ValidationError, match="not a question"):
        se_service.patch_student_evaluation(se.id, answers={"mystery": 3})
    with pytest.raises(ValidationError, match="between 1 and 5"):
        se_service.patch_student_evaluation(se.id, answers={"satisfaction": 6})
    with pytest.raises(ValidationError, match="longer than 20"):
        se_service.patch_student_evaluation(se.id, answers={"comments": "x" * 21})
    assert se_service.get_student_evaluation(se.id).answers == {}


def test_score_summary_counts_answered_ratings_only():
    summary = feedback_forms.score_summary({"satisfaction": 4, "fairness": 8, "comments": "Good"}, SCHEMA)
    assert summary["totalScore"] == 12
    assert summary["maxScore"] == 15
    assert summary["percentage"] == 80.0
    assert summary["breakdown"] == {
        "overall": {"total": 4, "max": 5, "answered": 1},
        "panel": {"total": 8, "max": 10, "answered": 1},
    }
    assert feedback_forms.score_summary({}, SCHEMA)["percentage"] == 0.0


def test_score_is_stored_and_refreshed_with_answers(defense, pinned):
    se, _ = se_service.get_or_create_student_evaluation(pinned.id, defense.students[0].id)
    se = se_service.patch_student_evaluation(se.id, answers={"satisfaction": 5, "clarity": 3})
    assert (se.score.total_score, se.score.max_score, se.score.percentage) == (8, 10, 80.0)

    se = se_service.patch_student_evaluation(se.id, answers={"satisfaction": 5, "fairness": 10})
    score = se.to_dict()["score"]
    assert score["totalScore"] == 15
    assert score["maxScore"] == 15
    assert score["percentage"] == 100.0


def test_submit_needs_required_answers(defense, pinned):
    se, _ = se_service.get_or_create_student_evaluation(pinned.id, defense.students[0].id,
                                                        answers={"satisfaction": 4})
    with pytest.raises(ValidationError, match="fairness"):
        se_service.submit_student_evaluation(se.id)
    assert se_service.get_student_evaluation(se.id).status == "pending"

    se_service.patch_student_evaluation(se.id, answers={"satisfaction": 4, "fairness": 7})
    assert se_service.submit_student_evaluation(se.id).status == "submitted"


def test_without_a_form_answers_are_free_form(defense):
    se, _ = se_service.get_or_create_student_evaluation(defense.schedule.id, defense.students[0].id)
    assert se.form_id is None
    se = se_service.patch_student_evaluation(se.id, answers={"anything": "goes"})
    assert se.score is None


def test_admin_form_endpoints(defense, client, login):
    login(defense.admin)
    resp = client.post("/api/admin/feedback-forms", json={"title": "Feedback", "schema": SCHEMA})
    assert resp.status_code == 201
    created = resp.get_json()["form"]
    assert created["version"] == 1 and created["active"] is False
    assert created["schema"] == SCHEMA

    body = client.get("/api/admin/feedback-forms").get_json()
    assert body["total"] == 1
    assert "schema" not in body["forms"][0]

    resp = client.post(f"/api/admin/feedback-forms/{created['id']}/activate")
    assert resp.get_json()["form"]["active"] is True

    resp = client.post("/api/admin/feedback-forms", json={"title": "Feedback", "schema": {"sections": []}})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "validation_error"


def test_student_form_endpoint(defense, client, login):
    login(defense.students[0])
    resp = client.get("/api/student/feedback-form")
    assert resp.status_code == 404
    assert resp.get_json()["message"] == "No active student feedback form"

    form = feedback_forms.create_form("Feedback", SCHEMA, active=True)
    resp = client.get(f"/api/student/feedback-form?scheduleId={defense.schedule.id}")
    assert resp.status_code == 200
    assert resp.get_json()["form"]["id"] == form.id
