import hashlib
import secrets
from datetime import timedelta

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy import or_

from ..errors import ConflictError, ValidationError
from ..extensions import db, rq
from ..jobs.notify import send_password_reset_email
from ..models.base import utcnow
from ..models.password_reset import PasswordReset
from ..models.user import ROLES, User
from . import audit
from .groups import get_user
from .pagination import clamp_limit, clamp_offset, like_pattern
from .validation import require_text

MIN_PASSWORD_LENGTH = 8


def hash_token(token):
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def find_user_by_email(email):
    email = (email or "").strip().lower()
    if not email:
        return None
    return User.query.filter(db.func.lower(User.email) == email).first()


def request_password_reset(email):
    """Issue a reset token and mail it. Unknown or disabled accounts are a silent no-op.

    Returns the raw token when one was issued (never shown to the caller of
    the HTTP endpoint).
    """
    user = find_user_by_email(email)
    if user is None or not user.is_active:
        current_app.logger.info('Password reset requested for unknown or inactive account')
        return None

    ttl = int(current_app.config.get("PASSWORD_RESET_TTL_MINUTES", 60))
    token = secrets.token_urlsafe(32)
    db.session.add(PasswordReset(user_id=user.id, token_hash=hash_token(token),
                                 expires_at=utcnow() + timedelta(minutes=ttl)))
    db.session.commit()

    rq.enqueue(send_password_reset_email, user.email, user.name, token, ttl)
    audit.record("password_reset_requested", "user", user.id, {"email": user.email}, actor_id=user.id)
    return token


def reset_password(token, new_password):
    if not token or not isinstance(token, str):
        raise ValidationError("Reset token is required")
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    row = PasswordReset.query.filter_by(token_hash=hash_token(token)).first()
    now = utcnow()
    if row is None or row.used_at is not None or row.expires_at <= now:
        raise ValidationError("Reset link is invalid or has expired")

    user = row.user
    user.set_password(new_password)
    row.used_at = now
    db.session.commit()
    audit.record("password_reset_completed", "user", user.id, {}, actor_id=user.id)
    return user


# --- user administration ---------------------------------------------------

USER_STATUSES = ("active", "disabled")


def _check_role(role):
    role = str(role or "").strip().lower()
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    return role


def create_user(name, email, password, role="student", status="active"):
    name = require_text(name, "name")
    try:
        email = validate_email(require_text(email, "email"), check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        raise ValidationError(f"email is not valid: {exc}")
    if find_user_by_email(email) is not None:
        raise ConflictError("A user with this email already exists")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    status = str(status or "active").strip().lower()
    if status not in USER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(USER_STATUSES)}")
    user = User(name=name, email=email, role=_check_role(role), status=status)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    audit.record("user_created", "user", user.id, user.to_dict())
    return user


def list_users(q=None, role=None, limit=50, offset=0):
    query = User.query
    like = like_pattern(q)
    if like:
        query = query.filter(or_(User.name.ilike(like), User.email.ilike(like)))
    if role:
        query = query.filter(User.role == _check_role(role))
    total = query.count()
    rows = (query.order_by(User.name.asc())
            .limit(clamp_limit(limit)).offset(clamp_offset(offset)).all())
    return total, rows


def patch_user(user_id, **fields):
    user = get_user(user_id)
    values = {}
    if "name" in fields:
        values["name"] = require_text(fields["name"], "name")
    if "role" in fields:
        values["role"] = _check_role(fields["role"])
    if "status" in fields:
        status = str(fields["status"] or "").strip().lower()
        if status not in USER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(USER_STATUSES)}")
        values["status"] = status
    if not values:
        return user
    before = user.to_dict()
    for k, v in values.items():
        setattr(user, k, v)
    db.session.commit()
    audit.record("user_updated", "user", user.id, {"before": before, "changes": values})
    return user
