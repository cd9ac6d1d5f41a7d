"""
agentledger.ledger — One state store, one event log, three registries.

Usage:
    ledger = Ledger()
    agent_id = ledger.identity.register(key.address, "a.example", key.address)
    ledger.save("ledger.json")
    ledger = Ledger.load("ledger.json")
"""

import json
import logging
import os
from typing import Callable, Optional

from agentledger.config import Settings
from agentledger.events import EventLog
from agentledger.identity import IdentityRegistry
from agentledger.reputation import ReputationRegistry
from agentledger.state import LedgerState
from agentledger.validation import ValidationRegistry

logger = logging.getLogger(__name__)


class Ledger:
    """Wires the registries to a shared LedgerState."""

    def __init__(self, settings: Optional[Settings] = None,
                 state: Optional[LedgerState] = None,
                 clock: Optional[Callable[[], float]] = None):
        self.settings = settings or Settings()
        self.state = state if state is not None else LedgerState(clock=clock)
        self.identity = IdentityRegistry(self.state)
        self.reputation = ReputationRegistry(
            self.state, self.identity, network_salt=self.settings.network_salt,
        )
        self.validation = ValidationRegistry(
            self.state, self.identity, ttl=self.settings.validation_ttl,
        )

    @property
    def events(self) -> EventLog:
        return self.state.events

    def save(self, filepath: str):
        """Write a JSON snapshot readable by Ledger.load()."""
        data = self.state.to_dict()
        os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)
        tmp = f"{filepath}.tmp"
        with open(tmp, "w") as f:
            json.dump(data, f, indent=2)
        os.chmod(tmp, 0o600)
        os.replace(tmp, filepath)
        logger.debug("Saved ledger to %s (%d events)", filepath, len(data["events"]))

    @classmethod
    def load(cls, filepath: str, settings: Optional[Settings] = None,
             clock: Optional[Callable[[], float]] = None) -> "Ledger":
        with open(filepath) as f:
            data = json.load(f)
        return cls(settings=settings, state=LedgerState.from_dict(data, clock=clock))

    @classmethod
    def open(cls, filepath: str, settings: Optional[Settings] = None,
             clock: Optional[Callable[[], float]] = None) -> "Ledger":
        """Load ``filepath`` if it exists, else start an empty ledger."""
        if os.path.exists(filepath):
            return cls.load(filepath, settings=settings, clock=clock)
        return cls(settings=settings, clock=clock)
