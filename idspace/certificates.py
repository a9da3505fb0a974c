from operator import attrgetter
from typing import Callable, Iterator, List, Optional, Sequence, Tuple
import logging

from . import did_codec
from .errors import Conflict, ConflictReason, MalformedInput, NotFound
from .hexutil import require_hex, to_wire, to_wire_raw
from .ledger import LedgerGateway, TxResult, execute
from .models import Certificate, CertificateDraft, Signer


logger = logging.getLogger(__name__)

Snapshot = Tuple[Certificate, ...]

_by_cid = attrgetter("cid")


def binary_search(
    snapshot: Sequence[Certificate],
    cid: str,
    key: Callable[[Certificate], str] = _by_cid,
) -> Optional[Certificate]:
    """Exact-match search over a snapshot sorted by ``key``.

    ``key`` is read once per step, so a search over ``n`` records reads at
    most ``floor(log2 n) + 1`` entries.
    """
    low, high = 0, len(snapshot) - 1
    while low <= high:
        middle = (low + high) // 2
        candidate = snapshot[middle]
        found = key(candidate)
        if found == cid:
            return candidate
        if found < cid:
            low = middle + 1
        else:
            high = middle - 1
    return None


class CertificateRegistry:
    def __init__(self, gateway: LedgerGateway) -> None:
        self.gateway = gateway

    def snapshot(self) -> Snapshot:
        raw = self.gateway.query("certificates") or []
        records = [
            Certificate.from_json(item) if isinstance(item, str) else Certificate.model_validate(item)
            for item in raw
        ]
        return tuple(sorted(records, key=_by_cid))

    @staticmethod
    def lookup(snapshot: Sequence[Certificate], cid: str) -> Optional[Certificate]:
        return binary_search(snapshot, cid)

    @staticmethod
    def list_valid(snapshot: Sequence[Certificate]) -> Iterator[Certificate]:
        return (certificate for certificate in snapshot if certificate.block_valid_to == 0)

    @staticmethod
    def list_by_did(snapshot: Sequence[Certificate], did: str) -> List[Certificate]:
        did_codec.decode(did)
        return [
            certificate
            for certificate in snapshot
            if certificate.block_valid_to == 0 and did_codec.same_did(certificate.did_owner, did)
        ]

    def find(self, cid: str) -> Optional[Certificate]:
        require_hex(cid, "cid")
        return self.lookup(self.snapshot(), cid)

    def valid_certificates(self) -> List[Certificate]:
        return list(self.list_valid(self.snapshot()))

    def certificates_of(self, did: str) -> List[Certificate]:
        return self.list_by_did(self.snapshot(), did)

    def register(self, signer: Signer, draft: CertificateDraft) -> TxResult:
        require_hex(draft.cid, "cid")
        if draft.did_owner is not None:
            did_codec.decode(draft.did_owner)
        if self.lookup(self.snapshot(), draft.cid) is not None:
            logger.warning("Certificate %s already registered", draft.cid)
            raise Conflict(ConflictReason.ALREADY_REGISTERED, extra={"cid": draft.cid})
        return execute(
            self.gateway,
            signer,
            "addCertificate",
            draft.cid,
            to_wire(draft.title),
            to_wire(draft.url_certificate),
            to_wire(draft.url_image),
            to_wire(draft.cid_type),
            to_wire_raw(draft.did_owner),
        )

    def revoke(
        self,
        signer: Signer,
        cid: str,
        at_block_height: int,
        did: Optional[str] = None,
    ) -> TxResult:
        require_hex(cid, "cid")
        valid_height = isinstance(at_block_height, int) and not isinstance(at_block_height, bool)
        if not valid_height or at_block_height <= 0:
            raise MalformedInput(
                "Revocation block height must be a positive integer",
                extra={"block_height": at_block_height},
            )
        if did is not None:
            did_codec.decode(did)
        current = self.lookup(self.snapshot(), cid)
        if current is None:
            raise NotFound(f"Certificate {cid} not found", extra={"cid": cid})
        if current.block_valid_to != 0:
            logger.warning("Certificate %s already revoked at %s", cid, current.block_valid_to)
            raise Conflict(
                ConflictReason.ALREADY_REVOKED,
                extra={"cid": cid, "block_valid_to": current.block_valid_to},
            )
        return execute(
            self.gateway, signer, "revokeCertificate", cid, to_wire_raw(did), at_block_height
        )
