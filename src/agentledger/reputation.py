"""
agentledger.reputation — Reputation Registry: feedback pre-authorization.

A server's owner authorizes a client to leave feedback about the server.
Each authorization gets a fresh ``feedback_auth_id`` that off-chain feedback
documents cite. Nothing is stored beyond a counter; the token lives only in
the AuthFeedback log record.

Auditors recompute tokens with ``derive_feedback_auth_id``.
"""

import hashlib
import logging
import os
from typing import Optional

from agentledger.events import EventType
from agentledger.identity import IdentityRegistry
from agentledger.models import Role
from agentledger.state import LedgerState

logger = logging.getLogger(__name__)

INSTANCE_SALT_BYTES = 32


def _field(data: bytes) -> bytes:
    return len(data).to_bytes(4, "big") + data


def _uint256(value: int) -> bytes:
    return value.to_bytes(32, "big")


def derive_feedback_auth_id(network_salt: bytes, instance_salt: bytes,
                            counter: int, client_id: int, server_id: int) -> str:
    """
    sha256 over five length-prefixed fields:
    network_salt ‖ instance_salt ‖ counter ‖ client_id ‖ server_id.

    Integers are 32-byte big-endian; every field carries a 4-byte length.
    """
    h = hashlib.sha256()
    for part in (network_salt, instance_salt, _uint256(counter),
                 _uint256(client_id), _uint256(server_id)):
        h.update(_field(part))
    return "0x" + h.hexdigest()


class ReputationRegistry:
    """Issues feedback authorizations between registered agents."""

    def __init__(self, state: LedgerState, identity: IdentityRegistry,
                 network_salt: bytes, instance_salt: Optional[bytes] = None):
        self._state = state
        self._identity = identity
        self.network_salt = network_salt
        if instance_salt is not None:
            state.reputation_salt = instance_salt
        elif state.reputation_salt is None:
            state.reputation_salt = os.urandom(INSTANCE_SALT_BYTES)

    @property
    def instance_salt(self) -> bytes:
        return self._state.reputation_salt

    def accept_feedback(self, caller: str, client_id: int, server_id: int) -> str:
        """
        Authorize ``client_id`` to give feedback about ``server_id``.

        Checks, first failure wins: caller owns the server (NotFound /
        Unauthorized), the server holds SERVER, the client holds CLIENT
        (RoleError).

        Returns:
            The new feedback_auth_id, 0x-prefixed hex.
        """
        with self._state.transaction("accept_feedback") as st:
            self._identity.require_owner(caller, server_id)
            self._identity.require_role(server_id, Role.SERVER, "server")
            self._identity.require_role(client_id, Role.CLIENT, "client")

            st.feedback_counter += 1
            feedback_auth_id = derive_feedback_auth_id(
                self.network_salt, self.instance_salt,
                st.feedback_counter, client_id, server_id,
            )
            st.emit(EventType.AUTH_FEEDBACK, {
                "client_id": client_id,
                "server_id": server_id,
                "feedback_auth_id": feedback_auth_id,
            })
            return feedback_auth_id
