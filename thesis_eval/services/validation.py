from datetime import datetime, timezone

from ..errors import ValidationError


def require_text(value, field):
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def optional_text(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def as_int(value, field):
    # bool is an int subclass; "true" is not a score
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be an integer")
        return int(value)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def as_number(value, field):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        n = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if n != n or n in (float("inf"), float("-inf")):
        raise ValidationError(f"{field} must be a finite number")
    return n


def as_bool(value, field):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise ValidationError(f"{field} must be a boolean")


def as_datetime(value, field):
    if isinstance(value, datetime):
        return value
    text = require_text(value, field)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    if parsed.tzinfo is not None:
        # stored as naive UTC
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def as_json_object(value, field):
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be a JSON object")
    return value
