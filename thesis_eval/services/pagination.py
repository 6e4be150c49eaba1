from flask import current_app, has_app_context


def _config(key, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def clamp_limit(value, default=None, maximum=None):
    """Coerce a requested page size into 1..maximum (API_MAX_LIMIT)."""
    default = default or _config("API_DEFAULT_LIMIT", 50)
    maximum = maximum or _config("API_MAX_LIMIT", 200)
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = default
    return max(1, min(maximum, n))


def clamp_offset(value):
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = 0
    return max(0, n)


def like_pattern(q):
    q = (q or "").strip()
    return f"%{q}%" if q else None
