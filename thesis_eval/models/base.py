from datetime import datetime, timezone
from uuid import uuid4

from ..extensions import db


def new_id():
    return str(uuid4())


def utcnow():
    """Naive UTC timestamp (columns are stored without tz)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(dt):
    return dt.isoformat() if dt else None


class UUIDPrimaryKeyMixin:
    id = db.Column(db.String(36), primary_key=True, default=new_id)


class CreatedAtMixin:
    created_at = db.Column(db.DateTime, default=utcnow, server_default=db.func.now(), nullable=False)


class TimestampMixin(CreatedAtMixin):
    updated_at = db.Column(db.DateTime, default=utcnow, server_default=db.func.now(), onupdate=utcnow)
