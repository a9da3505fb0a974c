"""
Error kinds raised by the IdSpace client.

Point lookups that miss return ``None``; the exceptions below are for
operations that cannot complete. ``TransportFailure`` is only raised by
gateways and is never used for a ledger-level rejection.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class IdSpaceError(Exception):
    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class MalformedInput(IdSpaceError, ValueError):
    """Bad hex or identifier, detected before any ledger call."""


class MalformedIdentifier(MalformedInput):
    pass


class NotFound(IdSpaceError, LookupError):
    pass


class ConflictReason(str, Enum):
    ALREADY_REGISTERED = "AlreadyRegistered"
    ALREADY_REVOKED = "AlreadyRevoked"
    ALREADY_ANCHORED = "AlreadyAnchored"
    PREVIOUSLY_REVOKED = "PreviouslyRevoked"


class Conflict(IdSpaceError):
    def __init__(
        self,
        reason: ConflictReason,
        message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or reason.value, extra)
        self.reason = reason


class LedgerRejected(IdSpaceError):
    def __init__(
        self,
        operation: str,
        reason: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(f"{operation} rejected by ledger: {reason}", extra)
        self.operation = operation
        self.reason = reason


class TransportFailure(IdSpaceError, RuntimeError):
    pass
