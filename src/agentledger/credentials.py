"""
agentledger.credentials — Ed25519 keys and the credential addresses derived from them.

The registries never verify signatures; they only compare addresses. An
AgentKey is how a boundary layer (the CLI, a test, a service) proves it
controls an address before presenting it as the caller.
"""

import hashlib
import json
import os
from datetime import datetime, timezone
from typing import Optional

from nacl.encoding import HexEncoder
from nacl.signing import SigningKey, VerifyKey

from agentledger.errors import InvalidInput

ADDRESS_BYTES = 20
NULL_ADDRESS = "0x" + "00" * ADDRESS_BYTES


def address_from_public_key(public_key: bytes) -> str:
    """Last 20 bytes of sha256(public key), hex with 0x prefix."""
    digest = hashlib.sha256(public_key).digest()
    return "0x" + digest[-ADDRESS_BYTES:].hex()


def normalize_address(address: Optional[str]) -> str:
    """Lower-case an address; None and "" map to the empty string."""
    if address is None or address == "":
        return ""
    if not isinstance(address, str):
        raise InvalidInput(f"Address must be a string, got {type(address).__name__}")
    return address.strip().lower()


def is_null_address(address: Optional[str]) -> bool:
    normalized = normalize_address(address)
    return normalized == "" or normalized == NULL_ADDRESS


# ─── Keys ──────────────────────────────────────────────────────────

class AgentKey:
    """Ed25519 keypair controlling one credential address."""

    def __init__(self, signing_key: Optional[SigningKey] = None):
        self.signing_key = signing_key or SigningKey.generate()
        self.verify_key: VerifyKey = self.signing_key.verify_key

    @property
    def address(self) -> str:
        return address_from_public_key(self.verify_key.encode())

    @property
    def public_key_hex(self) -> str:
        return self.verify_key.encode(encoder=HexEncoder).decode()

    def sign(self, data: bytes) -> bytes:
        return self.signing_key.sign(data).signature

    def export_keys(self) -> dict:
        return {
            "address": self.address,
            "public_key": self.public_key_hex,
            "private_key": self.signing_key.encode(encoder=HexEncoder).decode(),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    @classmethod
    def from_private_key(cls, hex_key: str) -> "AgentKey":
        return cls(signing_key=SigningKey(hex_key.encode(), encoder=HexEncoder))

    @classmethod
    def load(cls, filepath: str) -> "AgentKey":
        """Load a key from a JSON keyfile written by save()."""
        with open(filepath) as f:
            data = json.load(f)
        return cls.from_private_key(data["private_key"])

    def save(self, filepath: str):
        os.makedirs(os.path.dirname(filepath) or ".", exist_ok=True)
        with open(filepath, "w") as f:
            json.dump(self.export_keys(), f, indent=2)
        os.chmod(filepath, 0o600)

    def __repr__(self):
        return f"AgentKey({self.address})"
