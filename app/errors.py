"""
Domain exceptions raised by the message service and stores.

Handlers in main.py turn these into ErrorResponse payloads.
"""

from typing import List


class InboxError(Exception):
    """Base class for all inbox errors."""


class ValidationError(InboxError):
    """One or more field rules were violated; carries every violation in order."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class MessageNotFoundError(InboxError):
    def __init__(self, message_id: int):
        self.message_id = message_id
        super().__init__(f"Message not found with id: {message_id}")


class UnexpectedError(InboxError):
    """Storage or other infrastructure failure. Details stay in the logs."""
