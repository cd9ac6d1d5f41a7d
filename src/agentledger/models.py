"""
agentledger.models — Records held in the ledger state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import NamedTuple


class Role(IntFlag):
    """Capabilities an agent may hold. Any OR-combination in [0, 7] is valid."""
    NONE = 0
    SERVER = 1
    CLIENT = 2
    VALIDATOR = 4


ALL_ROLES = Role.SERVER | Role.CLIENT | Role.VALIDATOR


def role_names(roles: Role) -> list[str]:
    return [r.name.lower() for r in (Role.SERVER, Role.CLIENT, Role.VALIDATOR) if r in roles]


class AgentInfo(NamedTuple):
    agent_id: int
    domain: str
    agent_address: str


@dataclass
class Agent:
    """A registered identity. Only mutated by owner-authenticated operations."""
    agent_id: int
    domain: str
    agent_address: str
    owner: str
    roles: Role = Role.NONE

    @property
    def info(self) -> AgentInfo:
        return AgentInfo(self.agent_id, self.domain, self.agent_address)

    def to_dict(self) -> dict:
        return {
            "agent_id": self.agent_id,
            "domain": self.domain,
            "agent_address": self.agent_address,
            "owner": self.owner,
            "roles": int(self.roles),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Agent:
        return cls(
            agent_id=int(data["agent_id"]),
            domain=data["domain"],
            agent_address=data["agent_address"],
            owner=data["owner"],
            roles=Role(int(data.get("roles", 0))),
        )


@dataclass
class PendingValidation:
    """An outstanding validation request, keyed by data hash in the state."""
    validator_id: int
    server_id: int
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at

    def to_dict(self) -> dict:
        return {
            "validator_id": self.validator_id,
            "server_id": self.server_id,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> PendingValidation:
        return cls(
            validator_id=int(data["validator_id"]),
            server_id=int(data["server_id"]),
            expires_at=int(data["expires_at"]),
        )
