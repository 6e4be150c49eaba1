from flask import jsonify, request

from ..errors import ValidationError


def ok(status=200, **payload):
    body = {"ok": True}
    body.update(payload)
    return jsonify(body), status


def json_body():
    """Request JSON as a dict; an empty body reads as ``{}``."""
    if not request.get_data(cache=True):
        return {}
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def param(name, body=None, default=None):
    """Read ``name`` from the query string first, then from the JSON body."""
    value = request.args.get(name)
    if value not in (None, ""):
        return value
    if body is not None and body.get(name) not in (None, ""):
        return body.get(name)
    return default


def required(name, body=None):
    value = param(name, body)
    if value in (None, ""):
        raise ValidationError(f"{name} is required")
    return value


def flag(name, default=False):
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def pick(body, mapping):
    """Translate camelCase body keys to service keyword names, keeping only those present."""
    return {target: body[source] for source, target in mapping.items() if source in body}
