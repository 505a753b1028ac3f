"""
Validation rules for incoming contact messages.

Rules run in declaration order (name, email, content) and every violation is
collected, so a client can fix all problems in one round-trip.
"""

import logging
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 150
CONTENT_MIN_LENGTH = 10
CONTENT_MAX_LENGTH = 1000


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def is_valid_email(value: str) -> bool:
    """Check address syntax only; no DNS lookups."""
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def check_sender_name(name: Optional[str]) -> List[str]:
    if _is_blank(name):
        return ["Name is required"]
    if len(name) > NAME_MAX_LENGTH:
        return [f"Name must not exceed {NAME_MAX_LENGTH} characters"]
    return []


def check_sender_email(email: Optional[str]) -> List[str]:
    if _is_blank(email):
        return ["Email is required"]
    if len(email) > EMAIL_MAX_LENGTH:
        return [f"Email must not exceed {EMAIL_MAX_LENGTH} characters"]
    if not is_valid_email(email):
        return ["Email must be a valid email address"]
    return []


def check_content(content: Optional[str]) -> List[str]:
    if _is_blank(content):
        return ["Content is required"]
    if not CONTENT_MIN_LENGTH <= len(content) <= CONTENT_MAX_LENGTH:
        return [
            f"Content must be between {CONTENT_MIN_LENGTH} and "
            f"{CONTENT_MAX_LENGTH} characters"
        ]
    return []


def validate_message(
    sender_name: Optional[str],
    sender_email: Optional[str],
    content: Optional[str],
) -> List[str]:
    """
    Validate the three user-supplied fields of a message.

    Returns:
        Ordered list of violation messages; empty when the message is accepted.
    """
    violations = (
        check_sender_name(sender_name)
        + check_sender_email(sender_email)
        + check_content(content)
    )
    if violations:
        logger.debug(f"Message rejected with {len(violations)} violation(s): {violations}")
    return violations
