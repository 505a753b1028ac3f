"""
Message service: validation, persistence and DTO projection.

A message is created Unread and can only move to Read. The service is built
explicitly around any MessageStore implementation.
"""

import logging
from typing import List, Optional

from app.errors import MessageNotFoundError, ValidationError
from app.schemas import MessagePageResponse, MessageResponse, to_message_response
from app.storage import (
    MAX_SQL_INTEGER,
    NEWEST_FIRST,
    SORT_DIRECTIONS,
    SORT_FIELDS,
    MessageFilter,
    MessageStore,
    Ordering,
)
from app.utils import count_pages
from app.validation import validate_message

logger = logging.getLogger(__name__)


def _mark_read(message) -> None:
    message.is_read = True


class MessageService:
    def __init__(self, store: MessageStore, default_page_size: int = 10, max_page_size: int = 100):
        self.store = store
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    # ===== Single message operations =====

    def submit(self, sender_name: Optional[str], sender_email: Optional[str], content: Optional[str]) -> MessageResponse:
        """
        Validate and store a new message.

        Raises:
            ValidationError: with every violated rule, in rule order.
                Nothing is stored in that case.
        """
        violations = validate_message(sender_name, sender_email, content)
        if violations:
            logger.info(f"Message submission rejected: {len(violations)} violation(s)")
            raise ValidationError(violations)

        message = self.store.insert(sender_name, sender_email, content)
        logger.info(f"Message submitted: id={message.id}")
        return to_message_response(message)

    def get_by_id(self, message_id: int) -> MessageResponse:
        message = self.store.get(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return to_message_response(message)

    def mark_read(self, message_id: int) -> MessageResponse:
        """
        Mark a message as read. Marking an already read message is a no-op
        that returns the same state.
        """
        message = self.store.get(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        if message.is_read:
            logger.debug(f"Message already read: id={message_id}")
            return to_message_response(message)

        updated = self.store.update(message_id, _mark_read)
        if updated is None:
            # Deleted between lookup and update
            raise MessageNotFoundError(message_id)
        logger.info(f"Message marked as read: id={message_id}")
        return to_message_response(updated)

    def delete(self, message_id: int) -> None:
        if not self.store.exists(message_id):
            raise MessageNotFoundError(message_id)
        if not self.store.delete(message_id):
            raise MessageNotFoundError(message_id)
        logger.info(f"Message deleted: id={message_id}")

    def count_unread(self) -> int:
        return self.store.count_by_read_state(False)

    # ===== Listings =====

    def list_all(self) -> List[MessageResponse]:
        return [to_message_response(m) for m in self.store.list_all(NEWEST_FIRST)]

    def list_unread(self) -> List[MessageResponse]:
        return [to_message_response(m) for m in self.store.list_by_read_state(False)]

    def list_by_email(self, sender_email: str) -> List[MessageResponse]:
        return [to_message_response(m) for m in self.store.list_by_email(sender_email)]

    # ===== Paginated listings =====

    def list_all_paginated(self, page: int = 0, size: Optional[int] = None,
                           sort: str = "created_at", direction: str = "desc") -> MessagePageResponse:
        return self._paginate(MessageFilter(), page, size, sort, direction)

    def list_by_read_state_paginated(self, is_read: bool = False, page: int = 0, size: Optional[int] = None,
                                     sort: str = "created_at", direction: str = "desc") -> MessagePageResponse:
        return self._paginate(MessageFilter(is_read=is_read), page, size, sort, direction)

    def list_unread_paginated(self, page: int = 0, size: Optional[int] = None,
                              sort: str = "created_at", direction: str = "desc") -> MessagePageResponse:
        return self.list_by_read_state_paginated(False, page, size, sort, direction)

    def list_by_email_paginated(self, sender_email: str, page: int = 0, size: Optional[int] = None,
                                sort: str = "created_at", direction: str = "desc") -> MessagePageResponse:
        return self._paginate(MessageFilter(sender_email=sender_email), page, size, sort, direction)

    def search_content_paginated(self, text: str, page: int = 0, size: Optional[int] = None,
                                 sort: str = "created_at", direction: str = "desc") -> MessagePageResponse:
        if not text or not text.strip():
            raise ValidationError(["Search text is required"])
        return self._paginate(MessageFilter(content_contains=text), page, size, sort, direction)

    def _paginate(self, message_filter: MessageFilter, page: int, size: Optional[int],
                  sort: str, direction: str) -> MessagePageResponse:
        if size is None:
            size = self.default_page_size

        violations = []
        if page < 0:
            violations.append("Page number must not be negative")
        if size < 1:
            violations.append("Page size must be positive")
        elif size > self.max_page_size:
            violations.append(f"Page size must not exceed {self.max_page_size}")
        elif page > 0 and page * size > MAX_SQL_INTEGER:
            violations.append("Page number is too large for the page size")
        if sort not in SORT_FIELDS:
            violations.append(f"Sort field must be one of: {', '.join(SORT_FIELDS)}")
        if direction not in SORT_DIRECTIONS:
            violations.append(f"Sort direction must be one of: {', '.join(SORT_DIRECTIONS)}")
        if violations:
            raise ValidationError(violations)

        messages, total = self.store.list_paginated(message_filter, page, size, Ordering(sort, direction))
        logger.debug(f"Page {page} (size {size}): {len(messages)} of {total} messages")

        return MessagePageResponse(
            content=[to_message_response(m) for m in messages],
            page_number=page,
            page_size=size,
            total_elements=total,
            total_pages=count_pages(total, size),
        )
