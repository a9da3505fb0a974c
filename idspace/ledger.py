from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple
import logging

from .config import Settings
from .errors import Conflict, ConflictReason, LedgerRejected, NotFound
from .models import EventView, Signer, TxView


logger = logging.getLogger(__name__)

NOT_FOUND_REASON = "NotFound"

_CONFLICT_REASONS = {reason.value: reason for reason in ConflictReason}


@dataclass(frozen=True)
class LedgerEvent:
    name: str
    data: Tuple[str, ...]
    block_height: int = 0


@dataclass
class SubmitResult:
    accepted: bool
    events: List[LedgerEvent] = field(default_factory=list)
    tx_hash: str = ""
    block_height: int = 0
    reason: Optional[str] = None


@dataclass
class TxResult:
    operation: str
    tx_hash: str
    block_height: int
    events: List[LedgerEvent] = field(default_factory=list)

    def event(self, name: str) -> Optional[LedgerEvent]:
        for item in self.events:
            if item.name == name:
                return item
        return None

    def to_view(self) -> TxView:
        return TxView(
            operation=self.operation,
            tx_hash=self.tx_hash,
            block_height=self.block_height,
            events=[
                EventView(name=e.name, data=list(e.data), block_height=e.block_height)
                for e in self.events
            ],
        )


class LedgerGateway(ABC):
    @abstractmethod
    def submit(self, signer: Signer, operation: str, *args: Any) -> SubmitResult:
        ...

    @abstractmethod
    def query(self, path: str, key: Any = None) -> Any:
        """Return the value stored under ``path``/``key`` or ``None`` when absent."""

    @abstractmethod
    def wait_for_event(self, name: str) -> LedgerEvent:
        ...


def rejection_error(operation: str, reason: Optional[str]) -> Exception:
    reason = reason or "Unknown"
    extra = {"operation": operation, "reason": reason}
    if reason in _CONFLICT_REASONS:
        return Conflict(_CONFLICT_REASONS[reason], extra=extra)
    if reason == NOT_FOUND_REASON:
        return NotFound(f"{operation}: record not found on ledger", extra=extra)
    return LedgerRejected(operation, reason, extra=extra)


def execute(gateway: LedgerGateway, signer: Signer, operation: str, *args: Any) -> TxResult:
    """Submit one operation and turn the outcome into a ``TxResult`` or an error."""
    logger.debug("Submitting %s for %s", operation, signer.address)
    result = gateway.submit(signer, operation, *args)
    if not result.accepted:
        logger.warning("Ledger rejected %s: %s", operation, result.reason)
        raise rejection_error(operation, result.reason)
    logger.info(
        "%s accepted at block %s (tx %s)", operation, result.block_height, result.tx_hash
    )
    return TxResult(
        operation=operation,
        tx_hash=result.tx_hash,
        block_height=result.block_height,
        events=list(result.events),
    )


def build_gateway(settings: Settings) -> LedgerGateway:
    mode = settings.ledger_mode.lower()
    if mode == "memory":
        from .memory_ledger import InMemoryLedger

        return InMemoryLedger(settings)
    raise ValueError(f"Unsupported ledger mode: {settings.ledger_mode}")
