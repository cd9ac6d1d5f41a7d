#!/usr/bin/env python3
"""
agentledger.identity — Identity Registry.

Issues dense agent ids (1, 2, 3, ...) and keeps two injective indexes,
domain -> id and agent address -> id. An agent's *address* identifies it;
its *owner* controls it. Only the current owner may change the domain,
the address, the owner or the role flags.

Every mutating call takes the authenticated caller address explicitly.
"""

import logging
from typing import Optional

from agentledger.credentials import is_null_address, normalize_address
from agentledger.errors import Conflict, InvalidInput, NotFound, RoleError, Unauthorized
from agentledger.events import EventType
from agentledger.models import ALL_ROLES, Agent, AgentInfo, Role
from agentledger.state import LedgerState

logger = logging.getLogger(__name__)


def _coerce_role(role) -> Role:
    """Accept exactly one of SERVER, CLIENT, VALIDATOR."""
    try:
        value = int(role)
    except (TypeError, ValueError):
        raise InvalidInput(f"Not a role: {role!r}") from None
    if value not in (Role.SERVER, Role.CLIENT, Role.VALIDATOR):
        raise InvalidInput(f"Role must be a single flag (1, 2 or 4), got {value}")
    return Role(value)


class IdentityRegistry:
    """Authoritative mapping from agent id to agent record."""

    def __init__(self, state: LedgerState):
        self._state = state

    # ─── Internal lookups ──────────────────────────────────────────

    def _agent(self, agent_id: int) -> Agent:
        agent = self._state.agents.get(agent_id)
        if agent is None:
            raise NotFound(f"No agent with id {agent_id}")
        return agent

    def _owned(self, caller: str, agent_id: int) -> Agent:
        agent = self._agent(agent_id)
        if normalize_address(caller) != agent.owner:
            raise Unauthorized(f"{caller} is not the owner of agent {agent_id}")
        return agent

    def _id_for_domain(self, domain: str) -> int:
        agent_id = self._state.agent_by_domain.get(domain, 0)
        if not agent_id:
            raise NotFound(f"No agent with domain {domain!r}")
        return agent_id

    def _id_for_address(self, address: str) -> int:
        agent_id = self._state.agent_by_address.get(normalize_address(address), 0)
        if not agent_id:
            raise NotFound(f"No agent with address {address}")
        return agent_id

    def _roles_changed(self, agent: Agent, roles: Role):
        agent.roles = roles
        self._state.emit(EventType.AGENT_ROLES_UPDATED, {
            "agent_id": agent.agent_id,
            "roles": int(roles),
        })

    def _agent_updated(self, agent: Agent):
        self._state.emit(EventType.AGENT_UPDATED, {
            "agent_id": agent.agent_id,
            "domain": agent.domain,
            "agent_address": agent.agent_address,
            "owner": agent.owner,
        })

    # ─── Registration ──────────────────────────────────────────────

    def register(self, caller: str, domain: str, agent_address: str) -> int:
        """
        Register a new agent and return its id.

        Self-registration only: the caller must present ``agent_address`` as
        its own credential, and becomes the agent's owner. Roles start empty.

        Raises:
            InvalidInput: empty domain or null address
            Unauthorized: caller is not ``agent_address``
            Conflict: domain or address already registered
        """
        address = normalize_address(agent_address)
        with self._state.transaction("register") as st:
            if not domain:
                raise InvalidInput("Domain must not be empty")
            if is_null_address(address):
                raise InvalidInput("Agent address must not be the null credential")
            if normalize_address(caller) != address:
                raise Unauthorized(f"{caller} cannot register address {agent_address}")
            if domain in st.agent_by_domain:
                raise Conflict(f"Domain {domain!r} is already registered")
            if address in st.agent_by_address:
                raise Conflict(f"Address {agent_address} is already registered")

            st.agent_counter += 1
            agent = Agent(
                agent_id=st.agent_counter,
                domain=domain,
                agent_address=address,
                owner=address,
            )
            st.agents[agent.agent_id] = agent
            st.agent_by_domain[domain] = agent.agent_id
            st.agent_by_address[address] = agent.agent_id
            st.emit(EventType.AGENT_REGISTERED, {
                "agent_id": agent.agent_id,
                "domain": agent.domain,
                "agent_address": agent.agent_address,
                "owner": agent.owner,
            })
            return agent.agent_id

    def update(self, caller: str, agent_id: int,
               new_domain: Optional[str] = None,
               new_agent_address: Optional[str] = None) -> bool:
        """
        Change an agent's domain and/or address.

        ``None`` or an empty/null value leaves that field unchanged. Each
        supplied value must not be registered to any agent, this one
        included, so setting a field to its current value is a Conflict.
        Both fields change together or not at all.
        """
        address = normalize_address(new_agent_address)
        change_domain = bool(new_domain)
        change_address = not is_null_address(address)

        with self._state.transaction("update") as st:
            agent = self._owned(caller, agent_id)
            if change_domain and new_domain in st.agent_by_domain:
                raise Conflict(f"Domain {new_domain!r} is already registered")
            if change_address and address in st.agent_by_address:
                raise Conflict(f"Address {new_agent_address} is already registered")

            if change_domain:
                del st.agent_by_domain[agent.domain]
                agent.domain = new_domain
                st.agent_by_domain[new_domain] = agent_id
            if change_address:
                del st.agent_by_address[agent.agent_address]
                agent.agent_address = address
                st.agent_by_address[address] = agent_id
            self._agent_updated(agent)
            return True

    def transfer_ownership(self, caller: str, agent_id: int, new_owner: str) -> bool:
        """Hand the control credential to ``new_owner``."""
        owner = normalize_address(new_owner)
        with self._state.transaction("transfer_ownership"):
            agent = self._owned(caller, agent_id)
            if is_null_address(owner):
                raise InvalidInput("New owner must not be the null credential")
            agent.owner = owner
            self._agent_updated(agent)
            return True

    # ─── Lookups ───────────────────────────────────────────────────

    def get(self, agent_id: int) -> AgentInfo:
        with self._state.transaction("get"):
            return self._agent(agent_id).info

    def resolve_by_domain(self, domain: str) -> AgentInfo:
        with self._state.transaction("resolve_by_domain"):
            return self._agent(self._id_for_domain(domain)).info

    def resolve_by_address(self, agent_address: str) -> AgentInfo:
        with self._state.transaction("resolve_by_address"):
            return self._agent(self._id_for_address(agent_address)).info

    def get_owner(self, agent_id: int) -> str:
        with self._state.transaction("get_owner"):
            return self._agent(agent_id).owner

    def get_owner_by_address(self, agent_address: str) -> str:
        with self._state.transaction("get_owner_by_address"):
            return self._agent(self._id_for_address(agent_address)).owner

    def get_owner_by_domain(self, domain: str) -> str:
        with self._state.transaction("get_owner_by_domain"):
            return self._agent(self._id_for_domain(domain)).owner

    def agent_count(self) -> int:
        with self._state.transaction("agent_count") as st:
            return st.agent_counter

    def agent_exists(self, agent_id: int) -> bool:
        with self._state.transaction("agent_exists") as st:
            return agent_id in st.agents

    # ─── Roles ─────────────────────────────────────────────────────

    def add_role(self, caller: str, agent_id: int, role: Role) -> Role:
        """Set one role flag. Adding a flag already held is a no-op that still logs."""
        with self._state.transaction("add_role"):
            agent = self._owned(caller, agent_id)
            flag = _coerce_role(role)
            self._roles_changed(agent, agent.roles | flag)
            return agent.roles

    def remove_role(self, caller: str, agent_id: int, role: Role) -> Role:
        with self._state.transaction("remove_role"):
            agent = self._owned(caller, agent_id)
            flag = _coerce_role(role)
            self._roles_changed(agent, agent.roles & ~flag & ALL_ROLES)
            return agent.roles

    def set_roles(self, caller: str, agent_id: int, roles: int) -> Role:
        """Replace the whole role bitmap; must be within [0, 7]."""
        with self._state.transaction("set_roles"):
            agent = self._owned(caller, agent_id)
            if isinstance(roles, bool) or not isinstance(roles, int) or not 0 <= roles <= int(ALL_ROLES):
                raise InvalidInput(f"Role bitmap must be an integer in [0, 7], got {roles!r}")
            self._roles_changed(agent, Role(roles))
            return agent.roles

    def has_role(self, agent_id: int, role: Role) -> bool:
        """An id with no agent behind it holds no roles."""
        with self._state.transaction("has_role"):
            flag = _coerce_role(role)
            agent = self._state.agents.get(agent_id)
            return agent is not None and flag in agent.roles

    def get_roles(self, agent_id: int) -> Role:
        with self._state.transaction("get_roles"):
            return self._agent(agent_id).roles

    def require_role(self, agent_id: int, role: Role, label: str = "agent") -> Agent:
        """Return the agent if it holds ``role``, else raise RoleError (unknown ids included)."""
        with self._state.transaction("require_role"):
            agent = self._state.agents.get(agent_id)
            if agent is None or role not in agent.roles:
                raise RoleError(f"{label} {agent_id} lacks the {role.name} role")
            return agent

    def require_owner(self, caller: str, agent_id: int) -> Agent:
        with self._state.transaction("require_owner"):
            return self._owned(caller, agent_id)
