from typing import List, Set
import json
import logging

from . import did_codec
from .errors import Conflict, ConflictReason, MalformedInput, NotFound
from .hexutil import UNSET
from .ledger import LedgerGateway, TxResult, execute
from .models import CredentialRecord, Signer


logger = logging.getLogger(__name__)


class CredentialAnchor:
    def __init__(self, gateway: LedgerGateway) -> None:
        self.gateway = gateway

    def records(self, did: str) -> List[CredentialRecord]:
        key = did_codec.storage_key(did)
        raw = self.gateway.query("credentials", key) or []
        return [
            CredentialRecord.model_validate(json.loads(item) if isinstance(item, str) else item)
            for item in raw
        ]

    def put(
        self,
        signer: Signer,
        did: str,
        hash: str,
        certificate_id: str,
        type: str = UNSET,
    ) -> TxResult:
        did_codec.decode(did)
        if not hash:
            raise MalformedInput("Credential hash must not be empty")
        if self.gateway.query("revokedHashes", hash):
            logger.warning("Refusing to re-anchor revoked hash %s", hash)
            raise Conflict(ConflictReason.PREVIOUSLY_REVOKED, extra={"did": did, "hash": hash})
        for record in self.records(did):
            if record.hash != hash:
                continue
            logger.warning("Hash %s already anchored to %s (revoked=%s)", hash, did, record.revoked)
            if record.revoked:
                raise Conflict(ConflictReason.PREVIOUSLY_REVOKED, extra={"did": did, "hash": hash})
            raise Conflict(ConflictReason.ALREADY_ANCHORED, extra={"did": did, "hash": hash})
        return execute(self.gateway, signer, "putHash", did, hash, certificate_id, type)

    def revoke(self, signer: Signer, did: str, hash: str) -> TxResult:
        active = self.query(did)
        if hash not in active:
            raise NotFound(f"No active anchor for {hash}", extra={"did": did, "hash": hash})
        return execute(self.gateway, signer, "revokeHash", did, hash)

    def query(self, did: str) -> Set[str]:
        return {record.hash for record in self.records(did) if not record.revoked}
