import pytest

from thesis_eval.errors import ConflictError, NotFoundError, ValidationError
from thesis_eval.models.evaluation import EvaluationScore
from thesis_eval.services import evaluations, rubrics


def test_assign_panelists_creates_one_pending_row_each(defense):
    assert len(defense.evaluations) == 2
    assert {e.status for e in defense.evaluations} == {"pending"}
    # second call finds nothing to create
    assert evaluations.assign_panelists(defense.schedule.id) == []


def test_duplicate_assignment_conflicts(defense):
    with pytest.raises(ConflictError):
        evaluations.create_evaluation(defense.schedule.id, defense.panel[0].id)


def test_students_cannot_be_evaluators(defense):
    with pytest.raises(ValidationError):
        evaluations.create_evaluation(defense.schedule.id, defense.students[0].id)


@pytest.mark.parametrize("value", [-1, 11, 7.5, "abc", True])
def test_score_outside_range_rejected(defense, value):
    ev = defense.evaluations[0]
    with pytest.raises(ValidationError):
        evaluations.upsert_score(ev.id, defense.content.id, value)
    assert EvaluationScore.query.count() == 0


def test_score_range_checked_on_update(defense):
    ev = defense.evaluations[0]
    evaluations.upsert_score(ev.id, defense.content.id, 10)
    with pytest.raises(ValidationError):
        evaluations.upsert_score(ev.id, defense.content.id, 12)
    assert evaluations.list_scores(ev.id)[0].score == 10


def test_upsert_is_idempotent(defense):
    ev = defense.evaluations[0]
    evaluations.upsert_score(ev.id, defense.content.id, 8, "Clear scope")
    row = evaluations.upsert_score(ev.id, defense.content.id, 8, "Clear scope")
    assert EvaluationScore.query.filter_by(evaluation_id=ev.id).count() == 1
    assert (row.score, row.comment) == (8, "Clear scope")


def test_criterion_from_another_template_rejected(defense):
    other = rubrics.create_template("Other")
    foreign = rubrics.add_criterion(other.id, "Elsewhere")
    with pytest.raises(ValidationError):
        evaluations.upsert_score(defense.evaluations[0].id, foreign.id, 3)


def test_bulk_rejects_empty_items(defense):
    with pytest.raises(ValidationError):
        evaluations.bulk_upsert_scores(defense.evaluations[0].id, [])


def test_bulk_is_all_or_nothing(defense):
    ev = defense.evaluations[0]
    with pytest.raises(ValidationError):
        evaluations.bulk_upsert_scores(ev.id, [
            {"criterionId": defense.content.id, "score": 9},
            {"criterionId": defense.delivery.id, "score": 99},
        ])
    assert EvaluationScore.query.filter_by(evaluation_id=ev.id).count() == 0


def test_bulk_rejects_duplicate_criteria(defense):
    with pytest.raises(ValidationError):
        evaluations.bulk_upsert_scores(defense.evaluations[0].id, [
            {"criterionId": defense.content.id, "score": 9},
            {"criterionId": defense.content.id, "score": 8},
        ])


def test_bulk_returns_scores_in_criterion_order(defense):
    rows = evaluations.bulk_upsert_scores(defense.evaluations[0].id, [
        {"criterionId": defense.delivery.id, "score": 6, "comment": "Soft voice"},
        {"criterionId": defense.content.id, "score": 9},
    ])
    assert [r.criterion_id for r in rows] == [defense.content.id, defense.delivery.id]
    assert rows[1].comment == "Soft voice"


def test_extras_are_normalized(defense):
    ev = defense.evaluations[0]
    student = defense.students[0]
    saved = evaluations.save_extras(ev.id, {
        "group": {"score": 88, "comment": "Well prepared"},
        "system": {"score": "4.5"},
        "membersOverall": {student.id: {"score": 90}},
    })
    assert saved["system"] == {"score": 4.5, "comment": None}
    assert saved["membersOverall"][student.id]["score"] == 90
    assert evaluations.get_extras(ev.id) == saved


@pytest.mark.parametrize("data", [
    {"groupScore": 90},
    {"group": {"score": 90, "weight": 2}},
    {"membersOverall": [1, 2]},
    ["group"],
])
def test_extras_reject_unknown_shapes(defense, data):
    with pytest.raises(ValidationError):
        evaluations.save_extras(defense.evaluations[0].id, data)


def test_delete_pending_evaluation(defense, score):
    ev = defense.evaluations[0]
    score(ev, 5, 5)
    evaluations.delete_evaluation(ev.id)
    assert evaluations.list_evaluations(evaluator_id=defense.panel[0].id)[0] == 0
    assert EvaluationScore.query.count() == 0
    with pytest.raises(NotFoundError):
        evaluations.get_evaluation(ev.id)


def test_delete_submitted_requires_force(defense):
    ev = evaluations.submit_evaluation(defense.evaluations[1].id)
    with pytest.raises(ConflictError):
        evaluations.delete_evaluation(ev.id)
    evaluations.delete_evaluation(ev.id, force=True)
    with pytest.raises(NotFoundError):
        evaluations.get_evaluation(ev.id)


def test_list_evaluations_filters(defense):
    evaluations.submit_evaluation(defense.evaluations[0].id)
    total, rows = evaluations.list_evaluations(schedule_id=defense.schedule.id, status="submitted")
    assert total == 1
    assert rows[0].evaluator_id == defense.panel[0].id
