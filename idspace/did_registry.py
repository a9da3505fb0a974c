from typing import Optional
import json
import logging

from . import did_codec
from .errors import MalformedInput
from .hexutil import from_wire, hex_to_utf8, to_wire, utf8_to_hex
from .ledger import LedgerEvent, LedgerGateway, TxResult, execute
from .models import INFO_FIELDS, DidData, DidInfo, Signer


logger = logging.getLogger(__name__)


class DidRegistry:
    def __init__(self, gateway: LedgerGateway) -> None:
        self.gateway = gateway

    def register_did(
        self,
        signer: Signer,
        account_to: str,
        level: int,
        did_type: int,
        legal_name: str,
        tax_id: str,
    ) -> TxResult:
        if not account_to:
            raise MalformedInput("Account to assign the DID is required")
        did_codec.format_did_type(did_type)
        return execute(
            self.gateway,
            signer,
            "registerDid",
            account_to,
            level,
            did_type,
            utf8_to_hex(legal_name),
            utf8_to_hex(tax_id),
        )

    def change_owner(self, signer: Signer, did: str, new_owner: str) -> TxResult:
        did_codec.decode(did)
        return execute(self.gateway, signer, "changeDidOwner", did, new_owner)

    def remove_did(self, signer: Signer, did: str) -> TxResult:
        did_codec.decode(did)
        return execute(self.gateway, signer, "removeDid", did)

    def set_storage_address(self, signer: Signer, did: str, storage_address: str) -> TxResult:
        did_codec.decode(did)
        return execute(
            self.gateway, signer, "setStorageAddress", did, utf8_to_hex(storage_address)
        )

    def get_storage_address(self, did: str) -> Optional[str]:
        value = self.gateway.query("storageAddressFromDid", did_codec.storage_key(did))
        return hex_to_utf8(value)

    def change_legal_name_or_tax_id(
        self,
        signer: Signer,
        did: str,
        legal_name: Optional[str] = None,
        tax_id: Optional[str] = None,
    ) -> TxResult:
        did_codec.decode(did)
        return execute(
            self.gateway,
            signer,
            "changeLegalNameOrTaxId",
            did,
            to_wire(legal_name),
            to_wire(tax_id),
        )

    def update_info(self, signer: Signer, did: str, info: DidInfo) -> TxResult:
        did_codec.decode(did)
        values = [to_wire(getattr(info, name)) for name in INFO_FIELDS]
        return execute(self.gateway, signer, "updateInfo", did, *values)

    def get_did_data(self, did: str) -> Optional[DidData]:
        raw = self.gateway.query("didData", did_codec.storage_key(did))
        if raw is None:
            return None
        data = json.loads(raw) if isinstance(raw, str) else dict(raw)
        info = data.get("info") or {}
        return DidData(
            did=data["did"],
            owner=data["owner"],
            did_promoter=data["did_promoter"],
            level=data["level"],
            did_type=data["did_type"],
            legal_name=hex_to_utf8(data.get("legal_name")),
            tax_id=hex_to_utf8(data.get("tax_id")),
            info=DidInfo(**{name: hex_to_utf8(info.get(name)) for name in INFO_FIELDS}),
            did_doc=hex_to_utf8(data.get("did_doc")),
        )

    def get_owner(self, did: str) -> Optional[str]:
        return self.gateway.query("ownerFromDid", did_codec.storage_key(did))

    def get_did_from_owner(self, address: str) -> Optional[str]:
        return from_wire(self.gateway.query("didFromOwner", address))

    def wait_for(self, event_name: str) -> LedgerEvent:
        logger.debug("Waiting for %s", event_name)
        return self.gateway.wait_for_event(event_name)
