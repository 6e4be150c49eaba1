from sqlalchemy import func, or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models.rubric import RubricCriterion, RubricScaleLevel, RubricTemplate
from . import audit
from .pagination import clamp_limit, clamp_offset, like_pattern
from .validation import as_bool, as_int, as_number, optional_text, require_text

TEMPLATE_FIELDS = ("name", "description", "version", "active")


# --- templates -------------------------------------------------------------

def _template_values(fields):
    out = {}
    if "name" in fields:
        out["name"] = require_text(fields["name"], "name")
    if "description" in fields:
        out["description"] = optional_text(fields["description"])
    if "version" in fields:
        version = as_int(fields["version"], "version")
        if version < 1:
            raise ValidationError("version must be >= 1")
        out["version"] = version
    if "active" in fields:
        out["active"] = as_bool(fields["active"], "active")
    return out


def create_template(name, description=None, version=1, active=True):
    values = _template_values({"name": name, "description": description,
                               "version": 1 if version is None else version,
                               "active": True if active is None else active})
    tpl = RubricTemplate(**values)
    db.session.add(tpl)
    db.session.commit()
    audit.record("rubric_template_created", "rubric_template", tpl.id, tpl.to_dict())
    return tpl


def get_template(template_id):
    tpl = db.session.get(RubricTemplate, template_id) if template_id else None
    if tpl is None:
        raise NotFoundError("Rubric template not found")
    return tpl


def list_templates(q=None, active_only=False, limit=50, offset=0):
    query = RubricTemplate.query
    like = like_pattern(q)
    if like:
        query = query.filter(or_(RubricTemplate.name.ilike(like), RubricTemplate.description.ilike(like)))
    if active_only:
        query = query.filter(RubricTemplate.active.is_(True))
    total = query.count()
    rows = (query.order_by(RubricTemplate.active.desc(), RubricTemplate.updated_at.desc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, rows


def latest_active_template():
    return (RubricTemplate.query.filter(RubricTemplate.active.is_(True))
            .order_by(RubricTemplate.version.desc(), RubricTemplate.created_at.desc())
            .first())


def patch_template(template_id, **fields):
    tpl = get_template(template_id)
    values = _template_values({k: v for k, v in fields.items() if k in TEMPLATE_FIELDS})
    if not values:
        return tpl
    before = tpl.to_dict()
    for k, v in values.items():
        setattr(tpl, k, v)
    db.session.commit()
    audit.record("rubric_template_updated", "rubric_template", tpl.id,
                 {"before": before, "changes": values})
    return tpl


def delete_template(template_id):
    # criteria and scale levels go with it; schedules keep a dangling-safe NULL
    tpl = get_template(template_id)
    snapshot = tpl.to_dict()
    snapshot["criteriaCount"] = len(tpl.criteria)
    db.session.delete(tpl)
    db.session.commit()
    audit.record("rubric_template_deleted", "rubric_template", template_id, snapshot)


def clone_template(template_id, name=None):
    """Copy a template and its criteria as a new version."""
    src = get_template(template_id)
    clone = RubricTemplate(name=optional_text(name) or src.name, description=src.description,
                           version=(src.version or 1) + 1, active=src.active)
    db.session.add(clone)
    for c in src.criteria:
        clone.criteria.append(RubricCriterion(criterion=c.criterion, description=c.description,
                                              weight=c.weight, min_score=c.min_score,
                                              max_score=c.max_score, position=c.position))
    for lvl in src.scale_levels:
        clone.scale_levels.append(RubricScaleLevel(score=lvl.score, adjectival=lvl.adjectival,
                                                   description=lvl.description))
    db.session.commit()
    audit.record("rubric_template_cloned", "rubric_template", clone.id,
                 {"sourceId": src.id, "version": clone.version})
    return clone


# --- criteria --------------------------------------------------------------

def _check_criterion(weight, min_score, max_score):
    if weight <= 0:
        raise ValidationError("weight must be greater than 0")
    if min_score < 0:
        raise ValidationError("minScore must be >= 0")
    if max_score < min_score:
        raise ValidationError("maxScore must be >= minScore")


def add_criterion(template_id, criterion, description=None, weight=None, min_score=None, max_score=None):
    tpl = get_template(template_id)
    text = require_text(criterion, "criterion")
    weight = 1.0 if weight is None else as_number(weight, "weight")
    min_score = 1 if min_score is None else as_int(min_score, "minScore")
    max_score = 5 if max_score is None else as_int(max_score, "maxScore")
    _check_criterion(weight, min_score, max_score)

    position = (db.session.query(func.coalesce(func.max(RubricCriterion.position), -1))
                .filter(RubricCriterion.template_id == tpl.id).scalar()) + 1
    row = RubricCriterion(template_id=tpl.id, criterion=text, description=optional_text(description),
                          weight=weight, min_score=min_score, max_score=max_score, position=position)
    db.session.add(row)
    db.session.commit()
    audit.record("rubric_criterion_created", "rubric_criterion", row.id, row.to_dict())
    return row


def get_criterion(criterion_id):
    row = db.session.get(RubricCriterion, criterion_id) if criterion_id else None
    if row is None:
        raise NotFoundError("Rubric criterion not found")
    return row


def list_criteria(template_id):
    tpl = get_template(template_id)
    return list(tpl.criteria)


def patch_criterion(criterion_id, **fields):
    row = get_criterion(criterion_id)
    values = {}
    if "criterion" in fields:
        values["criterion"] = require_text(fields["criterion"], "criterion")
    if "description" in fields:
        values["description"] = optional_text(fields["description"])
    if "weight" in fields:
        values["weight"] = as_number(fields["weight"], "weight")
    if "min_score" in fields:
        values["min_score"] = as_int(fields["min_score"], "minScore")
    if "max_score" in fields:
        values["max_score"] = as_int(fields["max_score"], "maxScore")
    if not values:
        return row

    # validate the merged row, not just the patch
    _check_criterion(values.get("weight", float(row.weight)),
                     values.get("min_score", row.min_score),
                     values.get("max_score", row.max_score))
    before = row.to_dict()
    for k, v in values.items():
        setattr(row, k, v)
    db.session.commit()
    audit.record("rubric_criterion_updated", "rubric_criterion", row.id,
                 {"before": before, "changes": values})
    return row


def delete_criterion(criterion_id):
    row = get_criterion(criterion_id)
    snapshot = row.to_dict()
    db.session.delete(row)
    db.session.commit()
    audit.record("rubric_criterion_deleted", "rubric_criterion", criterion_id, snapshot)


# --- scale levels ----------------------------------------------------------

def set_scale_levels(template_id, levels):
    """Replace the template's score labels with ``levels``.

    Each level is ``{"score": int, "adjectival": str, "description"?: str}``.
    """
    tpl = get_template(template_id)
    if not isinstance(levels, list):
        raise ValidationError("levels must be a list")
    parsed = {}
    for i, lvl in enumerate(levels):
        if not isinstance(lvl, dict):
            raise ValidationError(f"levels[{i}] must be an object")
        score = as_int(lvl.get("score"), f"levels[{i}].score")
        if score in parsed:
            raise ValidationError(f"duplicate score {score} in levels")
        parsed[score] = RubricScaleLevel(score=score,
                                         adjectival=require_text(lvl.get("adjectival"), f"levels[{i}].adjectival"),
                                         description=optional_text(lvl.get("description")))
    tpl.scale_levels.clear()
    db.session.flush()
    tpl.scale_levels.extend(parsed.values())
    db.session.commit()
    audit.record("rubric_scale_levels_updated", "rubric_template", tpl.id,
                 {"scores": sorted(parsed)})
    return list(tpl.scale_levels)
