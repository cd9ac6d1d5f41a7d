"""
agentledger.logs — Structured JSON logging with the current operation name.
"""

import logging
from contextvars import ContextVar

operation_var: ContextVar[str] = ContextVar("operation", default="")


class OperationFilter(logging.Filter):
    def filter(self, record):
        record.operation = operation_var.get("")
        return True


def setup_structured_logging(level: str = "INFO") -> logging.Logger:
    """Configure JSON structured logging on the ``agentledger`` logger."""
    from pythonjsonlogger.json import JsonFormatter

    logger = logging.getLogger("agentledger")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(operation)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        handler.addFilter(OperationFilter())
        logger.addHandler(handler)

    return logger
