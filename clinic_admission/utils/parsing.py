"""
Request payload parsing helpers shared by the blueprints.
"""
from datetime import datetime


def parse_datetime(value, policy):
    """
    Parse an ISO-8601 timestamp from a request body.

    Naive values are clinic-local wall-clock time; the result is always
    timezone-aware in the clinic zone. Raises ValueError on bad input.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError('Expected an ISO-8601 date-time string')
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return policy.localize(datetime.fromisoformat(text))


def parse_date(date_string):
    """Parse YYYY-MM-DD; returns None for empty input."""
    if not date_string:
        return None
    if not isinstance(date_string, str):
        raise ValueError('Expected a YYYY-MM-DD string')
    return datetime.strptime(date_string, '%Y-%m-%d').date()


def parse_reasons(value):
    """Accept a list of reasons or a single comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(',') if part.strip()]
    if isinstance(value, list):
        return [str(part).strip() for part in value if str(part).strip()]
    raise ValueError('reasons must be a list of strings')


def parse_text(value, field):
    """Optional free-text field; empty input becomes None, non-strings raise ValueError."""
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValueError(f'{field} must be a string')
    return value


def parse_bool(value, field, default):
    """Accept only JSON booleans; a missing value falls back to ``default``."""
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ValueError(f'{field} must be true or false')
    return value
