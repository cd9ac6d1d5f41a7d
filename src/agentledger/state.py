"""
agentledger.state — The single store every registry reads and writes.

All operations run inside ``LedgerState.transaction()``, which holds one
re-entrant lock for the whole store. Registries run every check first and
mutate last, so a rejected operation leaves tables, counters and the event
log exactly as they were. Nested transactions join the outer one.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from agentledger.errors import LedgerError
from agentledger.events import EventLog, EventType, Event
from agentledger.logs import operation_var
from agentledger.models import Agent, PendingValidation

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class LedgerState:
    """Agent table, uniqueness indexes, counters and pending validations."""

    def __init__(self, clock: Optional[Callable[[], float]] = None,
                 events: Optional[EventLog] = None):
        self.clock = clock or time.time
        self.events = events if events is not None else EventLog()

        self.agents: dict[int, Agent] = {}
        self.agent_by_domain: dict[str, int] = {}
        self.agent_by_address: dict[str, int] = {}
        self.agent_counter = 0

        self.feedback_counter = 0
        self.reputation_salt: Optional[bytes] = None

        self.pending: dict[str, PendingValidation] = {}

        self._lock = threading.RLock()
        self._depth = 0

    def now(self) -> int:
        return int(self.clock())

    @contextmanager
    def transaction(self, operation: str) -> Iterator["LedgerState"]:
        """
        Exclusive access to the whole store for one operation.

        Subscribers hear about the operation's records once the outermost
        transaction has exited and the lock is released.
        """
        with self._lock:
            outer = self._depth == 0
            token = operation_var.set(operation) if outer else None
            self._depth += 1
            try:
                yield self
            except LedgerError as e:
                if outer:
                    logger.warning("%s rejected: %s", operation, e.detail,
                                   extra={"code": e.code})
                raise
            finally:
                self._depth -= 1
                if token is not None:
                    operation_var.reset(token)
        if outer:
            self.events.notify_pending()

    def emit(self, event_type: EventType, data: dict) -> Event:
        event = self.events.append(event_type, data, self.now(), notify=False)
        logger.info("%s #%d", event.event_type, event.sequence, extra={"event": dict(event.data)})
        return event

    # ─── Persistence ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        with self.transaction("snapshot"):
            return {
                "version": STATE_VERSION,
                "agent_counter": self.agent_counter,
                "agents": [a.to_dict() for a in self.agents.values()],
                "feedback_counter": self.feedback_counter,
                "reputation_salt": self.reputation_salt.hex() if self.reputation_salt else None,
                "pending": {h: p.to_dict() for h, p in self.pending.items()},
                "events": self.events.to_list(),
            }

    @classmethod
    def from_dict(cls, data: dict, clock: Optional[Callable[[], float]] = None) -> "LedgerState":
        if data.get("version") != STATE_VERSION:
            raise ValueError(f"Unsupported state version: {data.get('version')!r}")
        state = cls(clock=clock, events=EventLog.from_list(data.get("events", [])))
        state.agent_counter = int(data["agent_counter"])
        for item in data.get("agents", []):
            agent = Agent.from_dict(item)
            state.agents[agent.agent_id] = agent
            state.agent_by_domain[agent.domain] = agent.agent_id
            state.agent_by_address[agent.agent_address] = agent.agent_id
        state.feedback_counter = int(data.get("feedback_counter", 0))
        salt = data.get("reputation_salt")
        state.reputation_salt = bytes.fromhex(salt) if salt else None
        state.pending = {h: PendingValidation.from_dict(p)
                         for h, p in data.get("pending", {}).items()}
        return state
