import pytest

from thesis_eval.errors import NotFoundError, ValidationError
from thesis_eval.models.audit_log import AuditLog
from thesis_eval.models.rubric import RubricCriterion
from thesis_eval.services import rubrics


def test_create_template_defaults(app):
    tpl = rubrics.create_template("Defense Rubric")
    assert tpl.version == 1
    assert tpl.active is True
    assert AuditLog.query.filter_by(action="rubric_template_created", entity_id=tpl.id).count() == 1


@pytest.mark.parametrize("kwargs", [{"name": "  "}, {"name": "X", "version": 0}])
def test_create_template_rejects_bad_input(app, kwargs):
    with pytest.raises(ValidationError):
        rubrics.create_template(**kwargs)


def test_add_criterion_defaults(app):
    tpl = rubrics.create_template("T")
    c = rubrics.add_criterion(tpl.id, "Presentation")
    assert (c.min_score, c.max_score, float(c.weight)) == (1, 5, 1.0)


@pytest.mark.parametrize("kwargs", [
    {"min_score": 5, "max_score": 4},
    {"min_score": -1, "max_score": 5},
    {"weight": 0},
    {"weight": -2},
])
def test_add_criterion_rejects_invalid_ranges(app, kwargs):
    tpl = rubrics.create_template("T")
    with pytest.raises(ValidationError):
        rubrics.add_criterion(tpl.id, "Content", **kwargs)
    assert RubricCriterion.query.count() == 0


def test_add_criterion_unknown_template(app):
    with pytest.raises(NotFoundError):
        rubrics.add_criterion("missing", "Content")


def test_patch_criterion_validates_merged_values(app):
    tpl = rubrics.create_template("T")
    c = rubrics.add_criterion(tpl.id, "Content", min_score=0, max_score=10)
    with pytest.raises(ValidationError):
        rubrics.patch_criterion(c.id, min_score=11)
    assert rubrics.get_criterion(c.id).min_score == 0

    rubrics.patch_criterion(c.id, max_score=20, description="Depth of work")
    c = rubrics.get_criterion(c.id)
    assert (c.min_score, c.max_score, c.description) == (0, 20, "Depth of work")


def test_list_criteria_keeps_insertion_order(app):
    tpl = rubrics.create_template("T")
    names = ["Presentation", "Content", "Answers", "System"]
    for n in names:
        rubrics.add_criterion(tpl.id, n)
    assert [c.criterion for c in rubrics.list_criteria(tpl.id)] == names


def test_list_templates_search_and_active_first(app):
    old = rubrics.create_template("Proposal Rubric", active=False)
    new = rubrics.create_template("Final Defense Rubric")
    total, rows = rubrics.list_templates()
    assert total == 2
    assert [t.id for t in rows] == [new.id, old.id]

    total, rows = rubrics.list_templates(q="proposal")
    assert total == 1 and rows[0].id == old.id

    total, rows = rubrics.list_templates(active_only=True)
    assert [t.id for t in rows] == [new.id]


def test_clone_template_bumps_version_and_copies(app):
    tpl = rubrics.create_template("Form 3-C")
    rubrics.add_criterion(tpl.id, "Presentation", weight=25)
    rubrics.add_criterion(tpl.id, "Content", weight=25)
    rubrics.set_scale_levels(tpl.id, [{"score": 5, "adjectival": "Accomplished"},
                                      {"score": 1, "adjectival": "Absent"}])

    clone = rubrics.clone_template(tpl.id)
    assert clone.id != tpl.id
    assert clone.version == 2
    assert [c.criterion for c in clone.criteria] == ["Presentation", "Content"]
    assert [lvl.score for lvl in clone.scale_levels] == [5, 1]
    # source untouched
    assert len(rubrics.get_template(tpl.id).criteria) == 2


def test_set_scale_levels_rejects_duplicates(app):
    tpl = rubrics.create_template("T")
    with pytest.raises(ValidationError):
        rubrics.set_scale_levels(tpl.id, [{"score": 5, "adjectival": "A"}, {"score": 5, "adjectival": "B"}])


def test_delete_template_cascades_criteria(app):
    tpl = rubrics.create_template("T")
    rubrics.add_criterion(tpl.id, "Content")
    rubrics.delete_template(tpl.id)
    assert RubricCriterion.query.count() == 0
    with pytest.raises(NotFoundError):
        rubrics.get_template(tpl.id)
    assert AuditLog.query.filter_by(action="rubric_template_deleted").count() == 1
