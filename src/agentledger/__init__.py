"""agentledger — Identity, reputation and validation registries for agent networks."""

from agentledger.config import Settings
from agentledger.credentials import AgentKey, NULL_ADDRESS, address_from_public_key
from agentledger.errors import (
    LedgerError, InvalidInput, Conflict, NotFound, Unauthorized, RoleError, Expired,
)
from agentledger.events import Event, EventLog, EventType
from agentledger.models import Agent, AgentInfo, PendingValidation, Role
from agentledger.state import LedgerState
from agentledger.identity import IdentityRegistry
from agentledger.reputation import ReputationRegistry, derive_feedback_auth_id
from agentledger.validation import ValidationRegistry
from agentledger.ledger import Ledger

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "AgentKey",
    "NULL_ADDRESS",
    "address_from_public_key",
    "LedgerError",
    "InvalidInput",
    "Conflict",
    "NotFound",
    "Unauthorized",
    "RoleError",
    "Expired",
    "Event",
    "EventLog",
    "EventType",
    "Agent",
    "AgentInfo",
    "PendingValidation",
    "Role",
    "LedgerState",
    "IdentityRegistry",
    "ReputationRegistry",
    "derive_feedback_auth_id",
    "ValidationRegistry",
    "Ledger",
]
