from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from typing import List, NoReturn, Optional

from . import did_codec
from .certificates import CertificateRegistry
from .config import configure_logging, settings
from .credentials import CredentialAnchor
from .did_registry import DidRegistry
from .errors import (
    Conflict,
    IdSpaceError,
    LedgerRejected,
    MalformedInput,
    NotFound,
    TransportFailure,
)
from .keys import KeyManager
from .ledger import build_gateway
from .models import (
    AppInfo,
    Certificate,
    CertificateDraft,
    CredentialList,
    DecodedDid,
    DidCertificates,
    DidData,
    PublicKey,
    PutHashRequest,
    RegisterCertificateRequest,
    RegisterDidRequest,
    RevokeCertificateRequest,
    RevokeHashRequest,
    SetKeyRequest,
    Signer,
    TxView,
)


configure_logging(settings)

ledger = build_gateway(settings)
dids = DidRegistry(ledger)
certificates = CertificateRegistry(ledger)
credentials = CredentialAnchor(ledger)
keys = KeyManager(ledger, default_key_type=settings.default_key_type)

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = (
    (MalformedInput, 422),
    (NotFound, 404),
    (Conflict, 409),
    (LedgerRejected, 400),
    (TransportFailure, 502),
)


def require_api_key(x_api_key: str = Header(default="")) -> None:
    if settings.api_key and x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def raise_http(exc: IdSpaceError) -> NoReturn:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=exc.message) from exc
    raise HTTPException(status_code=500, detail=exc.message) from exc


@app.get("/api/info", response_model=AppInfo)
async def info() -> AppInfo:
    return AppInfo(
        app_name=settings.app_name,
        ledger_mode=settings.ledger_mode,
        did_version=settings.did_version,
        did_network=settings.did_network,
        default_key_type=settings.default_key_type,
        block_height=ledger.query("blockHeight") or 0,
    )


@app.get("/api/dids/{did}/decode", response_model=DecodedDid)
async def decode_did(did: str) -> DecodedDid:
    try:
        parts = did_codec.decode(did)
    except IdSpaceError as exc:
        raise_http(exc)
    return DecodedDid(
        version=parts.version,
        network=parts.network,
        did_type=parts.did_type,
        internal_id=parts.internal_id,
    )


@app.post("/api/dids", response_model=TxView)
async def register_did(payload: RegisterDidRequest, _: None = Depends(require_api_key)) -> TxView:
    try:
        result = dids.register_did(
            Signer(address=payload.signer_address),
            payload.account_to,
            payload.level,
            payload.did_type,
            payload.legal_name,
            payload.tax_id,
        )
    except IdSpaceError as exc:
        raise_http(exc)
    return result.to_view()


@app.get("/api/dids/{did}", response_model=DidData)
async def get_did(did: str) -> DidData:
    try:
        data = dids.get_did_data(did)
    except IdSpaceError as exc:
        raise_http(exc)
    if data is None:
        raise HTTPException(status_code=404, detail="DID not found")
    return data


@app.get("/api/certificates", response_model=List[Certificate])
async def list_certificates(valid: bool = False) -> List[Certificate]:
    snapshot = certificates.snapshot()
    if valid:
        return list(certificates.list_valid(snapshot))
    return list(snapshot)


@app.get("/api/certificates/{cid}", response_model=Certificate)
async def get_certificate(cid: str) -> Certificate:
    try:
        certificate = certificates.find(cid)
    except IdSpaceError as exc:
        raise_http(exc)
    if certificate is None:
        raise HTTPException(status_code=404, detail="Certificate not found")
    return certificate


@app.post("/api/certificates", response_model=TxView)
async def register_certificate(
    payload: RegisterCertificateRequest, _: None = Depends(require_api_key)
) -> TxView:
    draft = payload.model_dump(exclude={"signer_address"})
    try:
        result = certificates.register(
            Signer(address=payload.signer_address),
            CertificateDraft.model_validate(draft),
        )
    except IdSpaceError as exc:
        raise_http(exc)
    return result.to_view()


@app.post("/api/certificates/{cid}/revoke", response_model=TxView)
async def revoke_certificate(
    cid: str, payload: RevokeCertificateRequest, _: None = Depends(require_api_key)
) -> TxView:
    try:
        result = certificates.revoke(
            Signer(address=payload.signer_address), cid, payload.block_height, payload.did
        )
    except IdSpaceError as exc:
        raise_http(exc)
    return result.to_view()


@app.get("/api/dids/{did}/certificates", response_model=DidCertificates)
async def did_certificates(did: str) -> DidCertificates:
    try:
        owned = certificates.certificates_of(did)
    except IdSpaceError as exc:
        raise_http(exc)
    return DidCertificates(did=did, certificates=owned)


@app.post("/api/credentials", response_model=TxView)
async def put_hash(payload: PutHashRequest, _: None = Depends(require_api_key)) -> TxView:
    try:
        result = credentials.put(
            Signer(address=payload.signer_address),
            payload.did,
            payload.hash,
            payload.certificate_id,
            payload.type,
        )
    except IdSpaceError as exc:
        raise_http(exc)
    return result.to_view()


@app.post("/api/credentials/revoke", response_model=TxView)
async def revoke_hash(payload: RevokeHashRequest, _: None = Depends(require_api_key)) -> TxView:
    try:
        result = credentials.revoke(
            Signer(address=payload.signer_address), payload.did, payload.hash
        )
    except IdSpaceError as exc:
        raise_http(exc)
    return result.to_view()


@app.get("/api/dids/{did}/credentials", response_model=CredentialList)
async def list_credentials(did: str) -> CredentialList:
    try:
        hashes = credentials.query(did)
    except IdSpaceError as exc:
        raise_http(exc)
    return CredentialList(did=did, hashes=sorted(hashes))


@app.post("/api/keys", response_model=TxView)
async def set_key(payload: SetKeyRequest, _: None = Depends(require_api_key)) -> TxView:
    try:
        result = keys.set_key(
            Signer(address=payload.signer_address),
            payload.key,
            payload.key_type,
            payload.did,
        )
    except IdSpaceError as exc:
        raise_http(exc)
    return result.to_view()


@app.get("/api/dids/{did}/keys/{key_type}", response_model=PublicKey)
async def get_key(did: str, key_type: int) -> PublicKey:
    try:
        key: Optional[PublicKey] = keys.get_public_key(did, key_type)
    except IdSpaceError as exc:
        raise_http(exc)
    if key is None:
        raise HTTPException(status_code=404, detail="Key not found")
    return key
