"""Request parsing shared by the tournament desk blueprints."""
from flask import request

from padel_live.errors import InvalidPayload


def _json_body():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise InvalidPayload()
    return data


def _parse_positive_int(raw_value):
    try:
        value = int(raw_value)
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _require_int(data, key, message):
    value = _parse_positive_int(data.get(key))
    if value is None:
        raise InvalidPayload(message)
    return value


def _coerce_bool(raw_value):
    if isinstance(raw_value, bool):
        return raw_value
    if isinstance(raw_value, (int, float)):
        return raw_value == 1
    if raw_value is None:
        return False
    return str(raw_value).strip().lower() in {'1', 'true', 'yes', 'on'}
