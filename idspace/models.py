from typing import List, Optional
import json

from pydantic import BaseModel, Field

from .hexutil import hex_to_utf8


class Signer(BaseModel):
    """Account on whose behalf a state-changing operation is submitted."""

    address: str


class Certificate(BaseModel):
    """A certificate record exactly as the ledger stores it.

    Unset text fields hold the ``0x00`` sentinel. ``block_valid_to == 0``
    means active; any other value is the block height of revocation.
    """

    cid: str
    title: str
    url_certificate: str
    url_image: str
    cid_type: str
    did_owner: str
    block_valid_from: int = 0
    block_valid_to: int = 0

    @property
    def is_active(self) -> bool:
        return self.block_valid_to == 0

    @classmethod
    def from_json(cls, raw: str) -> "Certificate":
        return cls.model_validate(json.loads(raw))

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), separators=(",", ":"))

    def text(self, field_name: str) -> Optional[str]:
        """Decode one of the UTF-8 hex text fields; unset fields give ``None``."""
        return hex_to_utf8(getattr(self, field_name))


class CertificateDraft(BaseModel):
    cid: str
    title: Optional[str] = None
    url_certificate: Optional[str] = None
    url_image: Optional[str] = None
    cid_type: Optional[str] = None
    did_owner: Optional[str] = None


class CredentialRecord(BaseModel):
    did: str
    hash: str
    certificate_id: str
    type: str
    revoked: bool = False


class PublicKey(BaseModel):
    did: str
    type: int = 0
    value: str


class DidInfo(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    country_code: Optional[str] = None
    phone_number: Optional[str] = None
    website: Optional[str] = None
    endpoint: Optional[str] = None


INFO_FIELDS = tuple(DidInfo.model_fields)


class DidData(BaseModel):
    did: str
    owner: str
    did_promoter: str
    level: int
    did_type: str
    legal_name: Optional[str] = None
    tax_id: Optional[str] = None
    info: DidInfo = Field(default_factory=DidInfo)
    did_doc: Optional[str] = None


class RegisterDidRequest(BaseModel):
    signer_address: str
    account_to: str
    level: int = Field(ge=0)
    did_type: int = Field(default=0, ge=0, le=255)
    legal_name: str
    tax_id: str


class RegisterCertificateRequest(CertificateDraft):
    signer_address: str


class RevokeCertificateRequest(BaseModel):
    signer_address: str
    block_height: int = Field(gt=0)
    did: Optional[str] = None


class PutHashRequest(BaseModel):
    signer_address: str
    did: str
    hash: str
    certificate_id: str
    type: str = "0x00"


class RevokeHashRequest(BaseModel):
    signer_address: str
    did: str
    hash: str


class SetKeyRequest(BaseModel):
    signer_address: str
    key: str
    key_type: Optional[int] = Field(default=None, ge=0)
    did: Optional[str] = None


class AppInfo(BaseModel):
    app_name: str
    ledger_mode: str
    did_version: str
    did_network: str
    default_key_type: int
    block_height: int


class DecodedDid(BaseModel):
    version: str
    network: str
    did_type: str
    internal_id: str


class CredentialList(BaseModel):
    did: str
    hashes: List[str]


class DidCertificates(BaseModel):
    did: str
    certificates: List[Certificate]


class EventView(BaseModel):
    name: str
    data: List[str]
    block_height: int


class TxView(BaseModel):
    operation: str
    tx_hash: str
    block_height: int
    events: List[EventView]
