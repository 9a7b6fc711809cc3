from __future__ import annotations

from typing import Dict


class PokerError(Exception):
    """Base class for recoverable table errors; carries a machine-readable code."""

    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg

    def to_payload(self) -> Dict[str, str]:
        return {"code": self.code, "msg": self.msg}


class ValidationError(PokerError, ValueError):
    """Illegal action or malformed input for the current state."""


class StateError(PokerError, RuntimeError):
    """Operation not valid in the current phase (no hand, hand running, ...)."""


class CapacityError(PokerError, RuntimeError):
    """Seat occupied, table full or table closed to the requester."""
