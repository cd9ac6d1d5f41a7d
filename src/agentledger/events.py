#!/usr/bin/env python3
"""
agentledger.events — Append-only event log shared by the three registries.

Every committed operation appends exactly one record. Indexers either read
the history or subscribe with glob patterns. Records are read-only: the
payload is a mapping proxy, so neither readers nor subscribers can rewrite
what was committed.

Usage:
    log = EventLog()
    log.subscribe("Validation*", my_handler)
    log.history(event_type="AgentRegistered")
"""

import fnmatch
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterator, Mapping, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    AGENT_REGISTERED = "AgentRegistered"
    AGENT_UPDATED = "AgentUpdated"
    AGENT_ROLES_UPDATED = "AgentRolesUpdated"
    AUTH_FEEDBACK = "AuthFeedback"
    VALIDATION_REQUESTED = "ValidationRequested"
    VALIDATION_RESPONDED = "ValidationResponded"


@dataclass(frozen=True)
class Event:
    """One immutable log record."""
    event_type: str
    data: Mapping
    sequence: int
    timestamp: int

    def __post_init__(self):
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "data": dict(self.data),
            "sequence": self.sequence,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Event":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class Subscription:
    subscriber_id: str
    patterns: list[str]  # glob patterns like "Validation*"
    callback: Callable[[Event], None]

    def matches(self, event_type: str) -> bool:
        return any(fnmatch.fnmatch(event_type, p) for p in self.patterns)


class EventLog:
    """
    Append-only sequence of Events.

    Records are never modified or removed. Subscribers are notified in
    sequence order; a callback that raises is logged and skipped so it
    cannot undo an operation that already committed.
    """

    def __init__(self):
        self._events: list[Event] = []
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._next_sub = 0

        # Sequence of the next record to deliver to subscribers.
        self._delivered = 0
        self._dispatch_lock = threading.RLock()
        self._dispatching = False

    def append(self, event_type: EventType, data: dict, timestamp: int,
               notify: bool = True) -> Event:
        """
        Append one record. With ``notify=False`` delivery waits for the next
        ``notify_pending()`` call, which lets the ledger finish its
        transaction before any subscriber runs.
        """
        etype = event_type.value if isinstance(event_type, EventType) else event_type
        with self._lock:
            event = Event(
                event_type=etype,
                data=data,
                sequence=len(self._events),
                timestamp=timestamp,
            )
            self._events.append(event)

        if notify:
            self.notify_pending()
        return event

    def notify_pending(self) -> int:
        """Deliver every record not yet seen by subscribers, oldest first."""
        delivered = 0
        with self._dispatch_lock:
            # A callback that commits an operation lands here again; the
            # outer loop picks up its record after the current one.
            if self._dispatching:
                return 0
            self._dispatching = True
            try:
                while True:
                    with self._lock:
                        if self._delivered >= len(self._events):
                            break
                        event = self._events[self._delivered]
                        self._delivered += 1
                        subs = [s for s in self._subscriptions.values()
                                if s.matches(event.event_type)]
                    for sub in subs:
                        try:
                            sub.callback(event)
                        except Exception:
                            logger.exception("Subscriber %s failed on %s #%d",
                                             sub.subscriber_id, event.event_type, event.sequence)
                    delivered += 1
            finally:
                self._dispatching = False
        return delivered

    def subscribe(self, patterns: str | list[str],
                  callback: Callable[[Event], None],
                  subscriber_id: Optional[str] = None) -> str:
        """
        Register a callback for event types matching the glob pattern(s).

        Records appended by the ledger are delivered after the operation's
        transaction has finished and the store lock is released, so a
        callback may call back into the registries; each such call runs as
        its own operation.
        """
        if isinstance(patterns, str):
            patterns = [patterns]
        with self._lock:
            if not subscriber_id:
                self._next_sub += 1
                subscriber_id = f"sub:{self._next_sub}"
            self._subscriptions[subscriber_id] = Subscription(
                subscriber_id=subscriber_id,
                patterns=list(patterns),
                callback=callback,
            )
        return subscriber_id

    def unsubscribe(self, subscriber_id: str) -> bool:
        with self._lock:
            return self._subscriptions.pop(subscriber_id, None) is not None

    def history(self, event_type: Optional[str] = None,
                since_sequence: Optional[int] = None,
                limit: Optional[int] = None) -> list[Event]:
        """Query records, oldest first. ``event_type`` accepts glob patterns."""
        with self._lock:
            events = list(self._events)

        if event_type:
            if isinstance(event_type, EventType):
                event_type = event_type.value
            events = [e for e in events if fnmatch.fnmatch(e.event_type, event_type)]
        if since_sequence is not None:
            events = [e for e in events if e.sequence >= since_sequence]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events

    @property
    def last(self) -> Optional[Event]:
        with self._lock:
            return self._events[-1] if self._events else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.history())

    def to_list(self) -> list[dict]:
        return [e.to_dict() for e in self.history()]

    @classmethod
    def from_list(cls, data: list[dict]) -> "EventLog":
        log = cls()
        for i, item in enumerate(data):
            event = Event.from_dict(item)
            if event.sequence != i:
                raise ValueError(f"Event log out of order at position {i} (sequence {event.sequence})")
            log._events.append(event)
        log._delivered = len(log._events)
        return log
