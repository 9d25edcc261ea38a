import re

from markupsafe import escape


EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+$")


def sanitize_input(value):
    """HTML-escape strings before they are stored; other values pass through."""
    if not isinstance(value, str):
        return value
    return str(escape(value))


def is_valid_email(value):
    if not isinstance(value, str) or len(value) > 254:
        return False
    return bool(EMAIL_PATTERN.fullmatch(value))
