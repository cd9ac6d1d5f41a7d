"""agentledger.errors — Typed failures raised by the registries.

Every rejected operation raises a LedgerError subclass before touching
state. The ``code`` attribute is a stable machine-readable classification;
``detail`` is the human-readable cause.
"""


class LedgerError(Exception):
    """Base class for all registry failures."""

    code = "ledger_error"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"[{self.code}] {detail}")

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.detail}


class InvalidInput(LedgerError):
    """Malformed argument: empty domain, null credential, bad bitmap or response."""

    code = "invalid_input"


class Conflict(LedgerError):
    """Uniqueness violation, or an occupied data hash."""

    code = "conflict"


class NotFound(LedgerError):
    code = "not_found"


class Unauthorized(LedgerError):
    """Caller is not the required owner or designated validator."""

    code = "unauthorized"


class RoleError(LedgerError):
    """A required role flag is absent."""

    code = "role_error"


class Expired(LedgerError):
    """The validation deadline passed before a response arrived."""

    code = "expired"
