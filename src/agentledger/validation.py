"""
agentledger.validation — Validation Registry: TTL-bounded request/response.

A server's owner asks a validator agent to check some work, identified by a
caller-supplied data hash. The validator answers with a score in [0, 100]
before the deadline.

    ABSENT --request_validation--> PENDING --submit_validation_response--> ABSENT

An entry past its deadline can no longer be answered but stays stored, so
its data hash can never be requested again.
"""

import logging
from typing import Union

from agentledger.config import DEFAULT_VALIDATION_TTL
from agentledger.credentials import normalize_address
from agentledger.errors import Conflict, Expired, InvalidInput, NotFound, Unauthorized
from agentledger.events import EventType
from agentledger.identity import IdentityRegistry
from agentledger.models import PendingValidation, Role
from agentledger.state import LedgerState

logger = logging.getLogger(__name__)

MIN_RESPONSE = 0
MAX_RESPONSE = 100


def normalize_data_hash(data_hash: Union[str, bytes]) -> str:
    """Bytes become 0x-prefixed lowercase hex; strings are kept as given."""
    if isinstance(data_hash, (bytes, bytearray)):
        key = "0x" + bytes(data_hash).hex() if data_hash else ""
    elif isinstance(data_hash, str):
        key = data_hash
    else:
        raise InvalidInput(f"Data hash must be str or bytes, got {type(data_hash).__name__}")
    if not key:
        raise InvalidInput("Data hash must not be empty")
    return key


class ValidationRegistry:
    """Pending validation requests, one per data hash."""

    def __init__(self, state: LedgerState, identity: IdentityRegistry,
                 ttl: int = DEFAULT_VALIDATION_TTL):
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
            raise InvalidInput(f"TTL must be a positive integer, got {ttl!r}")
        self._state = state
        self._identity = identity
        self._ttl = ttl

    @property
    def ttl(self) -> int:
        return self._ttl

    def request_validation(self, caller: str, validator_id: int, server_id: int,
                           data_hash: Union[str, bytes]) -> PendingValidation:
        """
        Open a validation request for ``data_hash``.

        Raises:
            NotFound: unknown server or validator
            Unauthorized: caller does not own the server
            RoleError: server lacks SERVER or validator lacks VALIDATOR
            Conflict: an entry, live or expired, already holds ``data_hash``
        """
        key = normalize_data_hash(data_hash)
        with self._state.transaction("request_validation") as st:
            self._identity.require_owner(caller, server_id)
            self._identity.require_role(server_id, Role.SERVER, "server")
            self._identity.require_role(validator_id, Role.VALIDATOR, "validator")
            if key in st.pending:
                raise Conflict(f"Validation already requested for {key}")

            entry = PendingValidation(
                validator_id=validator_id,
                server_id=server_id,
                expires_at=st.now() + self._ttl,
            )
            st.pending[key] = entry
            st.emit(EventType.VALIDATION_REQUESTED, {
                "validator_id": validator_id,
                "server_id": server_id,
                "data_hash": key,
            })
            return entry

    def submit_validation_response(self, caller: str, data_hash: Union[str, bytes],
                                   response: int) -> bool:
        """
        Answer a pending request with a score in [0, 100].

        The caller must be the validator's *current* agent address, looked up
        at call time, so rotating the address moves response authority for
        every open request at once.
        """
        key = normalize_data_hash(data_hash)
        with self._state.transaction("submit_validation_response") as st:
            # An out-of-range score is rejected whatever the entry's state.
            if (isinstance(response, bool) or not isinstance(response, int)
                    or not MIN_RESPONSE <= response <= MAX_RESPONSE):
                raise InvalidInput(f"Response must be an integer in [0, 100], got {response!r}")
            entry = st.pending.get(key)
            if entry is None:
                raise NotFound(f"No pending validation for {key}")
            if entry.is_expired(st.now()):
                raise Expired(f"Validation for {key} expired at {entry.expires_at}")

            validator_address = self._identity.get(entry.validator_id).agent_address
            if normalize_address(caller) != validator_address:
                raise Unauthorized(f"{caller} is not validator {entry.validator_id}")
            self._identity.require_role(entry.validator_id, Role.VALIDATOR, "validator")

            del st.pending[key]
            st.emit(EventType.VALIDATION_RESPONDED, {
                "validator_id": entry.validator_id,
                "server_id": entry.server_id,
                "data_hash": key,
                "response": response,
            })
            return True

    # ─── Lookups ───────────────────────────────────────────────────

    def get_validation_request(self, data_hash: Union[str, bytes]) -> PendingValidation:
        key = normalize_data_hash(data_hash)
        with self._state.transaction("get_validation_request") as st:
            entry = st.pending.get(key)
            if entry is None:
                raise NotFound(f"No pending validation for {key}")
            return PendingValidation(entry.validator_id, entry.server_id, entry.expires_at)

    def is_validation_pending(self, data_hash: Union[str, bytes]) -> bool:
        """True if the entry exists and can still be answered."""
        key = normalize_data_hash(data_hash)
        with self._state.transaction("is_validation_pending") as st:
            entry = st.pending.get(key)
            return entry is not None and not entry.is_expired(st.now())

    def is_expired(self, data_hash: Union[str, bytes]) -> bool:
        key = normalize_data_hash(data_hash)
        with self._state.transaction("is_expired") as st:
            entry = st.pending.get(key)
            return entry is not None and entry.is_expired(st.now())

    def pending_hashes(self) -> list[str]:
        with self._state.transaction("pending_hashes") as st:
            return list(st.pending)
