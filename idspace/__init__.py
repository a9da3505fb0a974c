"""Client-side logic for an IdSpace DID ledger."""

from .certificates import CertificateRegistry
from .credentials import CredentialAnchor
from .did_codec import DidParts, decode, encode
from .did_registry import DidRegistry
from .keys import KeyManager
from .ledger import LedgerEvent, LedgerGateway, SubmitResult, TxResult, build_gateway
from .memory_ledger import InMemoryLedger

__version__ = "0.1.0"

__all__ = [
    "CertificateRegistry",
    "CredentialAnchor",
    "DidParts",
    "DidRegistry",
    "InMemoryLedger",
    "KeyManager",
    "LedgerEvent",
    "LedgerGateway",
    "SubmitResult",
    "TxResult",
    "build_gateway",
    "decode",
    "encode",
]
