import re

from portal.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 8


def validate_email(email) -> bool:
    return isinstance(email, str) and len(email) <= 254 and bool(EMAIL_PATTERN.match(email))


def validate_password(password) -> bool:
    return isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH


def normalize_email(email: str) -> str:
    return email.strip().lower()


def parse_id(value, field: str):
    """Coerce an optional id from JSON or a query string; None stays None."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}", "INVALID_FIELD_TYPE")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}", "INVALID_FIELD_TYPE")


def require_strings(**fields) -> None:
    """Reject JSON values that are present but not strings."""
    for name, value in fields.items():
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string", "INVALID_FIELD_TYPE")
