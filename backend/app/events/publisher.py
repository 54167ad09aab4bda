"""
Event publisher - fans domain events out to in-process listeners.

Services queue events on the session they are writing with; the events are
only delivered once that session commits, and are dropped on rollback, so a
listener never hears about a change that didn't happen.
"""
from __future__ import annotations

from collections import defaultdict
import logging
from typing import Any, Callable, DefaultDict, Dict, List, Optional, Protocol, Type

from sqlalchemy import event as sa_event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_PENDING_KEY = "pending_domain_events"


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


EventListener = Callable[[Event], None]


class EventPublisher:
    """Registry of listeners, keyed by event class (None listens to everything)."""

    _listeners: DefaultDict[Optional[type], List[EventListener]] = defaultdict(list)

    @classmethod
    def register(cls, listener: EventListener, event_type: Optional[Type[Any]] = None) -> None:
        cls._listeners[event_type].append(listener)

    @classmethod
    def unregister(cls, listener: EventListener) -> None:
        for key, listeners in list(cls._listeners.items()):
            cls._listeners[key] = [existing for existing in listeners if existing is not listener]

    @classmethod
    def clear(cls) -> None:
        cls._listeners.clear()

    @classmethod
    def publish(cls, event: Event) -> None:
        """Deliver ``event`` now. Listener failures are logged and never propagated."""
        event_type = type(event)
        targets = list(cls._listeners.get(event_type, [])) + list(cls._listeners.get(None, []))
        for listener in targets:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener %r failed for %s", listener, event_type.__name__)
        logger.info("domain_event=%s payload=%s", event_type.__name__, event.to_dict())

    @classmethod
    def publish_after_commit(cls, db: Session, event: Event) -> None:
        """Queue ``event`` until ``db`` commits its outermost transaction."""
        db.info.setdefault(_PENDING_KEY, []).append(event)


@sa_event.listens_for(Session, "after_commit")
def _flush_pending_events(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    for queued in pending:
        EventPublisher.publish(queued)


@sa_event.listens_for(Session, "after_rollback")
def _drop_pending_events(session: Session) -> None:
    dropped = session.info.pop(_PENDING_KEY, [])
    if dropped:
        logger.debug("Dropped %d domain events after rollback", len(dropped))
