"""
agentledger.config — Environment-driven settings in one place.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from agentledger.errors import InvalidInput

DEFAULT_NETWORK_SALT = "agentledger-local"
DEFAULT_VALIDATION_TTL = 3600
DEFAULT_STATE_FILE = "ledger.json"
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    network_salt: bytes = DEFAULT_NETWORK_SALT.encode()
    validation_ttl: int = DEFAULT_VALIDATION_TTL
    state_file: str = DEFAULT_STATE_FILE
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self):
        if not isinstance(self.validation_ttl, int) or self.validation_ttl <= 0:
            raise InvalidInput(f"validation TTL must be a positive integer, got {self.validation_ttl!r}")
        if not self.network_salt:
            raise InvalidInput("network salt must not be empty")

    @classmethod
    def from_env(cls) -> Settings:
        raw_ttl = os.environ.get("AGENTLEDGER_VALIDATION_TTL", str(DEFAULT_VALIDATION_TTL))
        try:
            ttl = int(raw_ttl)
        except ValueError:
            raise InvalidInput(f"AGENTLEDGER_VALIDATION_TTL is not an integer: {raw_ttl!r}") from None
        return cls(
            network_salt=os.environ.get("AGENTLEDGER_NETWORK_SALT", DEFAULT_NETWORK_SALT).encode(),
            validation_ttl=ttl,
            state_file=os.environ.get("AGENTLEDGER_STATE_FILE", DEFAULT_STATE_FILE),
            log_level=os.environ.get("AGENTLEDGER_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )
