import re
from datetime import datetime

from ..errors import ModelValidationError
from ..extensions import db


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# validators shared by the models' @validates hooks

def check_required(field, value):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ModelValidationError(field, f"{field} is required")
    return value.strip() if isinstance(value, str) else value


def check_choice(field, value, choices, allow_none=False):
    if value is None and allow_none:
        return value
    if value not in choices:
        raise ModelValidationError(field, f"{field} must be one of: {', '.join(choices)}")
    return value


def check_length(field, value, max_len, min_len=0):
    if value is None:
        return value
    if len(value) > max_len:
        raise ModelValidationError(field, f"{field} cannot exceed {max_len} characters")
    if len(value) < min_len:
        raise ModelValidationError(field, f"{field} must be at least {min_len} characters")
    return value


def check_range(field, value, lo=None, hi=None):
    if value is None:
        return value
    if lo is not None and value < lo:
        raise ModelValidationError(field, f"{field} must be at least {lo}")
    if hi is not None and value > hi:
        raise ModelValidationError(field, f"{field} cannot exceed {hi}")
    return value


def check_pattern(field, value, pattern, message):
    if value in (None, ""):
        return value
    if not re.match(pattern, value):
        raise ModelValidationError(field, message)
    return value


def isoformat(value):
    return value.isoformat() if value else None
