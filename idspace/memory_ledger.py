"""In-process ledger used in "memory" mode and by the test-suite."""

from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Deque, Dict, List, Optional, Set, Tuple
from uuid import uuid4
import inspect
import json
import logging

from . import did_codec
from .config import Settings
from .errors import MalformedInput, TransportFailure
from .hexutil import UNSET, is_unset
from .ledger import LedgerEvent, LedgerGateway, NOT_FOUND_REASON, SubmitResult
from .models import INFO_FIELDS, Certificate, CredentialRecord, Signer


logger = logging.getLogger(__name__)

# Undelivered events kept for wait_for_event; the oldest are dropped first.
EVENT_BACKLOG = 1024


class _Rejected(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass
class _DidRecord:
    did: str
    owner: str
    promoter: str
    did_promoter: str
    level: int
    did_type: str
    legal_name: str
    tax_id: str
    info: Dict[str, str] = field(default_factory=lambda: {k: UNSET for k in INFO_FIELDS})
    did_doc: str = UNSET

    def to_json(self) -> str:
        return json.dumps(
            {
                "did": self.did,
                "owner": self.owner,
                "did_promoter": self.did_promoter,
                "level": self.level,
                "did_type": self.did_type,
                "legal_name": self.legal_name,
                "tax_id": self.tax_id,
                "info": dict(self.info),
                "did_doc": self.did_doc,
            },
            separators=(",", ":"),
        )


class InMemoryLedger(LedgerGateway):
    def __init__(self, settings: Settings, event_backlog: int = EVENT_BACKLOG) -> None:
        self.settings = settings
        self._lock = Lock()
        self._block_height = 0
        self._dids: Dict[str, _DidRecord] = {}
        self._did_by_owner: Dict[str, str] = {}
        self._certificates: Dict[str, Certificate] = {}
        self._credentials: Dict[str, Dict[str, CredentialRecord]] = {}
        self._revoked_hashes: Set[str] = set()
        self._keys: Dict[Tuple[str, int], str] = {}
        self._events: Deque[LedgerEvent] = deque(maxlen=event_backlog)
        self._pending: List[LedgerEvent] = []
        self._handlers: Dict[str, Callable[..., None]] = {
            "registerDid": self._register_did,
            "changeDidOwner": self._change_did_owner,
            "removeDid": self._remove_did,
            "setStorageAddress": self._set_storage_address,
            "changeLegalNameOrTaxId": self._change_legal_name_or_tax_id,
            "updateInfo": self._update_info,
            "setKey": self._set_key,
            "addCertificate": self._add_certificate,
            "revokeCertificate": self._revoke_certificate,
            "putHash": self._put_hash,
            "revokeHash": self._revoke_hash,
        }
        self._queries: Dict[str, Callable[[Any], Any]] = {
            "didData": self._query_did_data,
            "ownerFromDid": self._query_owner_from_did,
            "didFromOwner": self._did_by_owner.get,
            "storageAddressFromDid": self._query_storage_address,
            "publicKeyFromDid": self._query_public_key,
            "certificates": self._query_certificates,
            "credentials": self._query_credentials,
            "revokedHashes": self._query_revoked_hash,
            "blockHeight": lambda _key: self._block_height,
        }

    # -- gateway contract -------------------------------------------------

    def submit(self, signer: Signer, operation: str, *args: Any) -> SubmitResult:
        handler = self._handlers.get(operation)
        if handler is None:
            return SubmitResult(accepted=False, reason="UnknownOperation")
        try:
            inspect.signature(handler).bind(signer, *args)
        except TypeError:
            return SubmitResult(accepted=False, reason="InvalidArgument")
        with self._lock:
            self._pending = []
            try:
                handler(signer, *args)
            except _Rejected as exc:
                logger.debug("memory ledger rejected %s: %s", operation, exc.reason)
                return SubmitResult(accepted=False, reason=exc.reason)
            self._block_height += 1
            events = [
                LedgerEvent(name=e.name, data=e.data, block_height=self._block_height)
                for e in self._pending
            ]
            self._events.extend(events)
            return SubmitResult(
                accepted=True,
                events=events,
                tx_hash=uuid4().hex,
                block_height=self._block_height,
            )

    def query(self, path: str, key: Any = None) -> Any:
        reader = self._queries.get(path)
        if reader is None:
            raise TransportFailure(f"Unknown query path: {path}", extra={"path": path})
        with self._lock:
            return reader(key)

    def wait_for_event(self, name: str) -> LedgerEvent:
        with self._lock:
            for event in self._events:
                if event.name == name:
                    self._events.remove(event)
                    return event
        # Nothing else can produce events while we wait in-process.
        raise TransportFailure(f"No pending {name} event", extra={"event": name})

    # -- helpers ----------------------------------------------------------

    @property
    def _next_block(self) -> int:
        return self._block_height + 1

    def _emit(self, name: str, *data: str) -> None:
        self._pending.append(LedgerEvent(name=name, data=tuple(data)))

    def _record_for(self, did: str) -> _DidRecord:
        try:
            key = did_codec.storage_key(did)
        except MalformedInput:
            raise _Rejected("InvalidArgument") from None
        record = self._dids.get(key)
        if record is None:
            raise _Rejected(NOT_FOUND_REASON)
        return record

    def _signer_did(self, signer: Signer) -> str:
        did = self._did_by_owner.get(signer.address)
        if did is None:
            raise _Rejected("NoDidForSigner")
        return did

    def _require_owner(self, signer: Signer, record: _DidRecord) -> None:
        if record.owner != signer.address:
            raise _Rejected("NotOwner")

    def _same_did(self, left: str, right: str) -> bool:
        try:
            return did_codec.same_did(left, right)
        except MalformedInput:
            raise _Rejected("InvalidArgument") from None

    def _require_controller(self, signer: Signer, record: _DidRecord) -> None:
        if signer.address not in (record.owner, record.promoter):
            raise _Rejected("NotOwner")

    # -- DIDs -------------------------------------------------------------

    def _register_did(
        self,
        signer: Signer,
        account_to: str,
        level: int,
        did_type: int,
        legal_name: str,
        tax_id: str,
    ) -> None:
        if account_to in self._did_by_owner:
            raise _Rejected("DidAlreadyExists")
        try:
            type_hex = did_codec.format_did_type(did_type)
        except MalformedInput:
            raise _Rejected("InvalidArgument") from None
        did = did_codec.encode(
            self.settings.did_marker,
            self.settings.did_version,
            self.settings.did_network,
            type_hex,
            uuid4().hex,
        )
        self._dids[did_codec.storage_key(did)] = _DidRecord(
            did=did,
            owner=account_to,
            promoter=signer.address,
            did_promoter=self._did_by_owner.get(signer.address, UNSET),
            level=level,
            did_type=type_hex,
            legal_name=legal_name,
            tax_id=tax_id,
        )
        self._did_by_owner[account_to] = did
        self._emit("DidRegistered", did, signer.address)

    def _change_did_owner(self, signer: Signer, did: str, new_owner: str) -> None:
        record = self._record_for(did)
        self._require_owner(signer, record)
        if new_owner in self._did_by_owner:
            raise _Rejected("DidAlreadyExists")
        old_owner = record.owner
        del self._did_by_owner[old_owner]
        self._did_by_owner[new_owner] = record.did
        record.owner = new_owner
        self._emit("NewOwner", record.did, old_owner, new_owner)

    def _remove_did(self, signer: Signer, did: str) -> None:
        record = self._record_for(did)
        self._require_owner(signer, record)
        key = did_codec.storage_key(record.did)
        del self._dids[key]
        del self._did_by_owner[record.owner]
        for pair in [pair for pair in self._keys if pair[0] == key]:
            del self._keys[pair]
        self._emit("DidRemoved", signer.address, record.did)

    def _set_storage_address(self, signer: Signer, did: str, storage_address: str) -> None:
        record = self._record_for(did)
        self._require_owner(signer, record)
        record.did_doc = storage_address
        self._emit("StorageAddressRegistered", signer.address, record.did, storage_address)

    def _change_legal_name_or_tax_id(
        self, signer: Signer, did: str, legal_name: str, tax_id: str
    ) -> None:
        record = self._record_for(did)
        if record.promoter != signer.address:
            raise _Rejected("NotPromoter")
        if not is_unset(legal_name):
            record.legal_name = legal_name
        if not is_unset(tax_id):
            record.tax_id = tax_id
        self._emit("LegalNameOrTaxIdChanged", signer.address, record.did)

    def _update_info(self, signer: Signer, did: str, *values: str) -> None:
        if len(values) != len(INFO_FIELDS):
            raise _Rejected("InvalidArgument")
        record = self._record_for(did)
        self._require_owner(signer, record)
        for name, value in zip(INFO_FIELDS, values):
            if not is_unset(value):
                record.info[name] = value
        self._emit("InfoUpdated", signer.address, record.did)

    # -- keys -------------------------------------------------------------

    def _set_key(self, signer: Signer, did: str, key: str, key_type: int) -> None:
        source = did_codec.storage_key(self._signer_did(signer))
        if is_unset(did):
            target_did = self._signer_did(signer)
        else:
            target_did = self._record_for(did).did
        target = did_codec.storage_key(target_did)
        if target != source:
            self._keys.pop((source, key_type), None)
        self._keys[(target, key_type)] = key
        self._emit("KeySet", signer.address, target_did, key)

    # -- certificates -----------------------------------------------------

    def _add_certificate(
        self,
        signer: Signer,
        cid: str,
        title: str,
        url_certificate: str,
        url_image: str,
        cid_type: str,
        did: str,
    ) -> None:
        if cid in self._certificates:
            raise _Rejected("AlreadyRegistered")
        if is_unset(did):
            owner_did = self._signer_did(signer)
        else:
            owner_did = self._record_for(did).did
        self._certificates[cid] = Certificate(
            cid=cid,
            title=title,
            url_certificate=url_certificate,
            url_image=url_image,
            cid_type=cid_type,
            did_owner=owner_did,
            block_valid_from=self._next_block,
            block_valid_to=0,
        )
        self._emit("CIDCreated", cid, signer.address, owner_did)

    def _revoke_certificate(self, signer: Signer, cid: str, did: str, block_height: int) -> None:
        certificate = self._certificates.get(cid)
        if certificate is None:
            raise _Rejected(NOT_FOUND_REASON)
        if certificate.block_valid_to != 0:
            raise _Rejected("AlreadyRevoked")
        if not isinstance(block_height, int) or block_height <= 0:
            raise _Rejected("InvalidArgument")
        owner_did = self._signer_did(signer) if is_unset(did) else did
        if not self._same_did(owner_did, certificate.did_owner):
            raise _Rejected("NotOwner")
        record = self._dids.get(did_codec.storage_key(certificate.did_owner))
        if record is None:
            raise _Rejected("NotOwner")
        self._require_controller(signer, record)
        self._certificates[cid] = certificate.model_copy(update={"block_valid_to": block_height})
        self._emit("CIDRevoked", cid, signer.address, certificate.did_owner)

    # -- credential hashes ------------------------------------------------

    def _put_hash(
        self, signer: Signer, did: str, credential: str, certificate_id: str, typ: str
    ) -> None:
        record = self._record_for(did)
        self._require_controller(signer, record)
        if credential in self._revoked_hashes:
            raise _Rejected("PreviouslyRevoked")
        anchors = self._credentials.setdefault(did_codec.storage_key(record.did), {})
        if credential in anchors:
            raise _Rejected("AlreadyAnchored")
        anchors[credential] = CredentialRecord(
            did=record.did, hash=credential, certificate_id=certificate_id, type=typ
        )
        self._emit("CredentialAssigned", signer.address, record.did, credential)

    def _revoke_hash(self, signer: Signer, did: str, credential: str) -> None:
        record = self._record_for(did)
        self._require_controller(signer, record)
        anchors = self._credentials.get(did_codec.storage_key(record.did), {})
        anchor = anchors.get(credential)
        if anchor is None or anchor.revoked:
            raise _Rejected(NOT_FOUND_REASON)
        anchors[credential] = anchor.model_copy(update={"revoked": True})
        self._revoked_hashes.add(credential)
        self._emit("CredentialRemoved", signer.address, record.did, credential)

    # -- queries ----------------------------------------------------------

    def _query_did_data(self, key: str) -> Optional[str]:
        record = self._dids.get(key)
        return record.to_json() if record else None

    def _query_owner_from_did(self, key: str) -> Optional[str]:
        record = self._dids.get(key)
        return record.owner if record else None

    def _query_storage_address(self, key: str) -> Optional[str]:
        record = self._dids.get(key)
        if record is None or is_unset(record.did_doc):
            return None
        return record.did_doc

    def _query_public_key(self, key: Tuple[str, int]) -> Optional[str]:
        return self._keys.get(tuple(key))

    def _query_certificates(self, _key: Any) -> List[str]:
        return [certificate.to_json() for certificate in self._certificates.values()]

    def _query_credentials(self, key: str) -> List[str]:
        anchors = self._credentials.get(key, {})
        return [record.model_dump_json() for record in anchors.values()]

    def _query_revoked_hash(self, key: str) -> bool:
        return key in self._revoked_hashes
