"""Status lifecycle shared by panel evaluations and student evaluations.

    pending --submit--> submitted --lock--> locked
       |                                      ^
       +-----------------lock-----------------+

``locked`` is terminal. Submitting a submitted record and locking a locked
record are no-ops. Transitions are written as conditional updates guarded by
the expected source status, so a concurrent transition that got there first
surfaces as ``ConflictError`` instead of being silently overwritten.
"""
from flask import current_app

from ..errors import ConflictError, LockedError, ValidationError
from ..extensions import db
from ..models.base import utcnow

PENDING = "pending"
SUBMITTED = "submitted"
LOCKED = "locked"
STATUSES = (PENDING, SUBMITTED, LOCKED)
EDITABLE = (PENDING, SUBMITTED)

_ORDER = {PENDING: 0, SUBMITTED: 1, LOCKED: 2}


def validate_status(value):
    status = str(value or "").strip().lower()
    if status not in STATUSES:
        raise ValidationError(f"status must be one of {', '.join(STATUSES)}")
    return status


def ensure_editable(record, label="Record"):
    if record.status == LOCKED:
        raise LockedError(f"{label} is locked")


def hold_editable(record, label="Record"):
    """Claim ``record``'s row for the current transaction while it is still editable.

    Issues a no-op UPDATE guarded on status, which takes the row's write lock
    until the caller commits. A lock that landed since ``record`` was loaded
    leaves zero rows matched and raises ``LockedError`` with nothing written.
    """
    model = type(record)
    affected = (model.query
                .filter(model.id == record.id, model.status.in_(EDITABLE))
                .update({model.status: model.status}, synchronize_session=False))
    if affected == 0:
        db.session.rollback()
        raise LockedError(f"{label} is locked")


def _guarded_update(record, allowed, values):
    model = type(record)
    if hasattr(model, "updated_at"):
        values = dict(values, updated_at=utcnow())
    affected = (model.query
                .filter(model.id == record.id, model.status.in_(allowed))
                .update(values, synchronize_session=False))
    if affected == 0:
        db.session.rollback()
        raise ConflictError(f"{model.__name__} {record.id} changed status concurrently")
    db.session.commit()
    db.session.refresh(record)


def submit(record, label="Record"):
    """Move ``record`` to submitted. Returns True if the status changed."""
    if record.status == LOCKED:
        raise LockedError(f"{label} is locked")
    if record.status == SUBMITTED:
        return False
    values = {"status": SUBMITTED}
    if record.submitted_at is None:
        values["submitted_at"] = utcnow()
    _guarded_update(record, (PENDING,), values)
    current_app.logger.info('%s %s submitted', type(record).__name__, record.id)
    return True


def lock(record, label="Record"):
    """Move ``record`` to locked. Returns True if the status changed."""
    if record.status == LOCKED:
        return False
    _guarded_update(record, EDITABLE, {"status": LOCKED, "locked_at": utcnow()})
    current_app.logger.info('%s %s locked', type(record).__name__, record.id)
    return True


def check_transition(record, target, label="Record"):
    """Validate a requested status; returns it, or None when already there."""
    target = validate_status(target)
    if target == record.status:
        return None
    if record.status == LOCKED:
        raise LockedError(f"{label} is locked")
    if _ORDER[target] < _ORDER[record.status]:
        raise ConflictError(f"{label} cannot move from {record.status} back to {target}")
    return target


def transition(record, target, label="Record"):
    """Apply a requested status value, only ever moving forward."""
    target = check_transition(record, target, label)
    if target is None:
        return False
    if target == SUBMITTED:
        return submit(record, label)
    return lock(record, label)
