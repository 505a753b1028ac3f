import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generator, Iterator, Optional, Protocol, Tuple

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import settings
from app.errors import UnexpectedError
from app.utils import utc_now

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from app.models import Message  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and the messages table exists, False otherwise.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            if not inspect(conn).has_table("messages"):
                logger.error("Database schema not applied: 'messages' table not found")
                return False
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Query Options
# =============================================================================

SORT_FIELDS = ("created_at", "id", "sender_name", "sender_email", "is_read")
SORT_DIRECTIONS = ("asc", "desc")

# Largest value an SQL BIGINT (and SQLite INTEGER) column or OFFSET can hold
MAX_SQL_INTEGER = 2 ** 63 - 1


@dataclass(frozen=True)
class Ordering:
    """Sort order for listings. Ties are broken by id in the same direction."""
    field: str = "created_at"
    direction: str = "desc"


NEWEST_FIRST = Ordering("created_at", "desc")
OLDEST_FIRST = Ordering("id", "asc")


@dataclass(frozen=True)
class MessageFilter:
    """
    Filter for paginated listings. Unset fields do not constrain the result.

    - is_read: exact read-state match
    - sender_email: exact email match
    - content_contains: case-insensitive substring of content
    """
    is_read: Optional[bool] = None
    sender_email: Optional[str] = None
    content_contains: Optional[str] = None


# =============================================================================
# Message Store Contract
# =============================================================================

class MessageStore(Protocol):
    """Persistence capability the message service depends on."""

    def insert(self, sender_name: str, sender_email: str, content: str): ...

    def get(self, message_id: int): ...

    def exists(self, message_id: int) -> bool: ...

    def delete(self, message_id: int) -> bool: ...

    def update(self, message_id: int, mutator: Callable): ...

    def list_all(self, ordering: Ordering = NEWEST_FIRST) -> list: ...

    def list_by_read_state(self, is_read: bool) -> list: ...

    def list_by_email(self, sender_email: str) -> list: ...

    def count_by_read_state(self, is_read: bool) -> int: ...

    def list_paginated(
        self,
        message_filter: MessageFilter,
        page_number: int,
        page_size: int,
        ordering: Ordering = NEWEST_FIRST,
    ) -> Tuple[list, int]: ...


class SqlMessageStore:
    """
    SQLAlchemy-backed message store.

    Each write is a single commit; any SQLAlchemy failure rolls the session
    back and is re-raised as UnexpectedError.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Storage operation '{operation}' failed: {e}")
            raise UnexpectedError(f"Storage operation '{operation}' failed") from e

    def _apply_filter(self, query, message_filter: MessageFilter):
        from app.models import Message

        if message_filter.is_read is not None:
            query = query.filter(Message.is_read == message_filter.is_read)
            logger.debug(f"Applied read-state filter: {message_filter.is_read}")
        if message_filter.sender_email:
            query = query.filter(Message.sender_email == message_filter.sender_email)
            logger.debug(f"Applied email filter: {message_filter.sender_email}")
        if message_filter.content_contains:
            query = query.filter(
                Message.content.icontains(message_filter.content_contains, autoescape=True)
            )
            logger.debug(f"Applied content filter: {message_filter.content_contains}")
        return query

    def _order(self, query, ordering: Ordering):
        from app.models import Message

        column = getattr(Message, ordering.field)
        if ordering.direction == "desc":
            return query.order_by(column.desc(), Message.id.desc())
        return query.order_by(column.asc(), Message.id.asc())

    def insert(self, sender_name: str, sender_email: str, content: str):
        from app.models import Message

        message = Message(
            sender_name=sender_name,
            sender_email=sender_email,
            content=content,
            created_at=utc_now(),
            is_read=False,
        )
        with self._guard("insert"):
            self.db.add(message)
            self.db.commit()
            self.db.refresh(message)
        logger.info(f"Message stored: id={message.id}, email={sender_email}")
        return message

    def get(self, message_id: int):
        from app.models import Message

        if not 1 <= message_id <= MAX_SQL_INTEGER:
            logger.debug(f"Message lookup id={message_id}: out of range")
            return None
        with self._guard("get"):
            message = self.db.get(Message, message_id)
        logger.debug(f"Message lookup id={message_id}: {'found' if message else 'not found'}")
        return message

    def exists(self, message_id: int) -> bool:
        from app.models import Message

        if not 1 <= message_id <= MAX_SQL_INTEGER:
            return False
        with self._guard("exists"):
            found = self.db.query(Message.id).filter(Message.id == message_id).first()
        return found is not None

    def delete(self, message_id: int) -> bool:
        with self._guard("delete"):
            message = self.get(message_id)
            if message is None:
                return False
            self.db.delete(message)
            self.db.commit()
        logger.info(f"Message deleted: id={message_id}")
        return True

    def update(self, message_id: int, mutator: Callable):
        with self._guard("update"):
            message = self.get(message_id)
            if message is None:
                return None
            mutator(message)
            self.db.commit()
            self.db.refresh(message)
        logger.info(f"Message updated: id={message_id}")
        return message

    def list_all(self, ordering: Ordering = NEWEST_FIRST) -> list:
        from app.models import Message

        with self._guard("list_all"):
            return self._order(self.db.query(Message), ordering).all()

    def list_by_read_state(self, is_read: bool) -> list:
        from app.models import Message

        with self._guard("list_by_read_state"):
            query = self._apply_filter(self.db.query(Message), MessageFilter(is_read=is_read))
            return self._order(query, NEWEST_FIRST).all()

    def list_by_email(self, sender_email: str) -> list:
        from app.models import Message

        with self._guard("list_by_email"):
            query = self.db.query(Message).filter(Message.sender_email == sender_email)
            return self._order(query, OLDEST_FIRST).all()

    def count_by_read_state(self, is_read: bool) -> int:
        from app.models import Message

        with self._guard("count_by_read_state"):
            return self.db.query(Message).filter(Message.is_read == is_read).count()

    def list_paginated(
        self,
        message_filter: MessageFilter,
        page_number: int,
        page_size: int,
        ordering: Ordering = NEWEST_FIRST,
    ) -> Tuple[list, int]:
        from app.models import Message

        logger.debug(
            f"Querying messages: page={page_number}, size={page_size}, "
            f"filter={message_filter}, ordering={ordering}"
        )
        with self._guard("list_paginated"):
            query = self._apply_filter(self.db.query(Message), message_filter)

            # Get total count before pagination
            total = query.count()

            messages = (
                self._order(query, ordering)
                .offset(page_number * page_size)
                .limit(page_size)
                .all()
            )
        logger.debug(f"Retrieved {len(messages)} of {total} total messages")
        return messages, total


def _clone(message):
    from app.models import Message

    return Message(
        id=message.id,
        sender_name=message.sender_name,
        sender_email=message.sender_email,
        content=message.content,
        created_at=message.created_at,
        is_read=message.is_read,
    )


class InMemoryMessageStore:
    """
    Dict-backed message store with the same contract as SqlMessageStore.

    Records are copied in and out so callers never hold a reference to
    stored state. Ids come from a counter and are never reused.
    """

    def __init__(self):
        self._messages = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _matches(self, message, message_filter: MessageFilter) -> bool:
        if message_filter.is_read is not None and message.is_read != message_filter.is_read:
            return False
        if message_filter.sender_email and message.sender_email != message_filter.sender_email:
            return False
        if message_filter.content_contains:
            return message_filter.content_contains.lower() in message.content.lower()
        return True

    def _select(self, message_filter: MessageFilter, ordering: Ordering) -> list:
        with self._lock:
            selected = [m for m in self._messages.values() if self._matches(m, message_filter)]
        selected.sort(
            key=lambda m: (getattr(m, ordering.field), m.id),
            reverse=ordering.direction == "desc",
        )
        return [_clone(m) for m in selected]

    def insert(self, sender_name: str, sender_email: str, content: str):
        from app.models import Message

        with self._lock:
            message = Message(
                id=next(self._ids),
                sender_name=sender_name,
                sender_email=sender_email,
                content=content,
                created_at=utc_now(),
                is_read=False,
            )
            self._messages[message.id] = message
        return _clone(message)

    def get(self, message_id: int):
        with self._lock:
            message = self._messages.get(message_id)
        return _clone(message) if message is not None else None

    def exists(self, message_id: int) -> bool:
        with self._lock:
            return message_id in self._messages

    def delete(self, message_id: int) -> bool:
        with self._lock:
            return self._messages.pop(message_id, None) is not None

    def update(self, message_id: int, mutator: Callable):
        with self._lock:
            stored = self._messages.get(message_id)
            if stored is None:
                return None
            working = _clone(stored)
            mutator(working)
            # id and created_at are fixed at insert time
            stored.is_read = working.is_read
            return _clone(stored)

    def list_all(self, ordering: Ordering = NEWEST_FIRST) -> list:
        return self._select(MessageFilter(), ordering)

    def list_by_read_state(self, is_read: bool) -> list:
        return self._select(MessageFilter(is_read=is_read), NEWEST_FIRST)

    def list_by_email(self, sender_email: str) -> list:
        return self._select(MessageFilter(sender_email=sender_email), OLDEST_FIRST)

    def count_by_read_state(self, is_read: bool) -> int:
        with self._lock:
            return sum(1 for m in self._messages.values() if m.is_read == is_read)

    def list_paginated(
        self,
        message_filter: MessageFilter,
        page_number: int,
        page_size: int,
        ordering: Ordering = NEWEST_FIRST,
    ) -> Tuple[list, int]:
        selected = self._select(message_filter, ordering)
        start = page_number * page_size
        return selected[start:start + page_size], len(selected)
