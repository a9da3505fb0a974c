from typing import Optional
import logging

from . import did_codec
from .errors import MalformedInput, NotFound
from .hexutil import hex_to_utf8, to_wire_raw, utf8_to_hex
from .ledger import LedgerGateway, TxResult, execute
from .models import PublicKey, Signer


logger = logging.getLogger(__name__)

DEFAULT_KEY_TYPE = 0


class KeyManager:
    def __init__(self, gateway: LedgerGateway, default_key_type: int = DEFAULT_KEY_TYPE) -> None:
        self.gateway = gateway
        self.default_key_type = default_key_type

    def _key_type(self, key_type: Optional[int]) -> int:
        if key_type is None:
            return self.default_key_type
        if isinstance(key_type, bool) or not isinstance(key_type, int) or key_type < 0:
            raise MalformedInput(
                "Key type must be a non-negative integer", extra={"key_type": key_type}
            )
        return key_type

    def set_key(
        self,
        signer: Signer,
        key: str,
        key_type: Optional[int] = None,
        target_did: Optional[str] = None,
    ) -> TxResult:
        if not key:
            raise MalformedInput("Key material must not be empty")
        material = utf8_to_hex(key)
        typ = self._key_type(key_type)
        if target_did is not None:
            did_codec.decode(target_did)
        if self.gateway.query("didFromOwner", signer.address) is None:
            raise NotFound(
                f"Account {signer.address} has no DID", extra={"address": signer.address}
            )
        logger.debug("Setting key type %s (%s...) for %s", typ, key[:8], target_did or signer.address)
        return execute(
            self.gateway, signer, "setKey", to_wire_raw(target_did), material, typ
        )

    def get_key(self, did: str, key_type: Optional[int] = None) -> Optional[str]:
        typ = self._key_type(key_type)
        value = self.gateway.query("publicKeyFromDid", (did_codec.storage_key(did), typ))
        return hex_to_utf8(value)

    def get_public_key(self, did: str, key_type: Optional[int] = None) -> Optional[PublicKey]:
        typ = self._key_type(key_type)
        value = self.get_key(did, typ)
        if value is None:
            return None
        return PublicKey(did=did, type=typ, value=value)
