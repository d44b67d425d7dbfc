"""
Resident feedback form validation.
"""

from .entities import FEEDBACK_TYPES, Feedback, utcnow
from .errors import ValidationFailed

REQUIRED_FIELDS = ("name", "email", "phone", "type", "content")


def feedback_from_form(data, user_id=None, now=None):
    """Build a Feedback from submitted form data. Every field is required."""
    values = {key: str(data.get(key) or "").strip() for key in REQUIRED_FIELDS}
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")
    if values["type"] not in FEEDBACK_TYPES:
        raise ValidationFailed(f"Unknown feedback type '{values['type']}'")
    if "@" not in values["email"]:
        raise ValidationFailed("Invalid email address")

    return Feedback(id=None, user_id=user_id, created_at=now or utcnow(), **values)
