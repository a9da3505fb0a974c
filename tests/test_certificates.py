import math

import pytest

from idspace.certificates import CertificateRegistry, binary_search
from idspace.errors import Conflict, ConflictReason, MalformedIdentifier, MalformedInput, NotFound
from idspace.hexutil import UNSET
from idspace.models import Certificate, CertificateDraft, Signer


def _certificate(cid: str, did_owner: str = "f001020304aa", block_valid_to: int = 0) -> Certificate:
    return Certificate(
        cid=cid,
        title=UNSET,
        url_certificate=UNSET,
        url_image=UNSET,
        cid_type=UNSET,
        did_owner=did_owner,
        block_valid_from=1,
        block_valid_to=block_valid_to,
    )


def _snapshot(count: int):
    return tuple(_certificate(f"{i:06x}") for i in range(0, count * 2, 2))


@pytest.mark.parametrize("count", [1, 2, 3, 7, 8, 100, 1000, 1025])
def test_lookup_finds_every_member_within_log_bound(count: int) -> None:
    snapshot = _snapshot(count)
    bound = math.ceil(math.log2(count)) + 1
    for certificate in snapshot:
        reads = []

        def key(record: Certificate) -> str:
            reads.append(record.cid)
            return record.cid

        assert binary_search(snapshot, certificate.cid, key=key) is certificate
        assert len(reads) <= bound


@pytest.mark.parametrize("count", [0, 1, 2, 9, 64])
def test_lookup_misses_absent_ids(count: int) -> None:
    snapshot = _snapshot(count)
    # Odd ids sit between the even ids of the snapshot, plus both ends.
    for cid in ["", "000001", f"{count * 2 + 1:06x}", "ffffffff"]:
        assert CertificateRegistry.lookup(snapshot, cid) is None


def test_lookup_is_exact_match_only() -> None:
    snapshot = (_certificate("aa"), _certificate("aaa111"), _certificate("bb"))
    assert CertificateRegistry.lookup(snapshot, "aaa") is None
    assert CertificateRegistry.lookup(snapshot, "aaa1111") is None
    assert CertificateRegistry.lookup(snapshot, "aaa111").cid == "aaa111"


def test_list_valid_excludes_revoked() -> None:
    snapshot = (_certificate("01"), _certificate("02", block_valid_to=9), _certificate("03"))
    valid = CertificateRegistry.list_valid(snapshot)
    assert not isinstance(valid, (list, tuple))
    assert [c.cid for c in valid] == ["01", "03"]


def test_list_by_did_filters_owner_and_active() -> None:
    did = "f001020304aa"
    other = "f001020304bb"
    snapshot = (
        _certificate("01", did),
        _certificate("02", other),
        _certificate("03", did, block_valid_to=4),
        _certificate("04", did),
    )
    assert [c.cid for c in CertificateRegistry.list_by_did(snapshot, did)] == ["01", "04"]
    assert [c.cid for c in CertificateRegistry.list_by_did(snapshot, did.upper())] == ["01", "04"]
    with pytest.raises(MalformedIdentifier):
        CertificateRegistry.list_by_did(snapshot, "nope")


def test_snapshot_is_sorted_on_read(certificates: CertificateRegistry, alice) -> None:
    signer, _did = alice
    for cid in ["cc", "0a", "bb", "aa"]:
        certificates.register(signer, CertificateDraft(cid=cid))
    assert [c.cid for c in certificates.snapshot()] == ["0a", "aa", "bb", "cc"]


def test_register_uses_signer_did_and_sentinels(certificates: CertificateRegistry, alice) -> None:
    signer, did = alice
    result = certificates.register(
        signer, CertificateDraft(cid="ab01", title="Title for ab01", cid_type=None)
    )
    event = result.event("CIDCreated")
    assert event is not None
    assert event.data == ("ab01", signer.address, did)

    stored = certificates.find("ab01")
    assert stored is not None
    assert stored.did_owner == did
    assert stored.text("title") == "Title for ab01"
    assert stored.url_certificate == UNSET
    assert stored.url_image == UNSET
    assert stored.cid_type == UNSET
    assert stored.text("cid_type") is None
    assert stored.block_valid_from == result.block_height
    assert stored.block_valid_to == 0


def test_register_for_other_did(certificates: CertificateRegistry, alice, bob) -> None:
    signer, _ = alice
    _, bob_did = bob
    certificates.register(signer, CertificateDraft(cid="ab02", did_owner=bob_did))
    assert [c.cid for c in certificates.certificates_of(bob_did)] == ["ab02"]


def test_register_duplicate_is_conflict(certificates: CertificateRegistry, alice) -> None:
    signer, _ = alice
    certificates.register(signer, CertificateDraft(cid="ab03"))
    with pytest.raises(Conflict) as excinfo:
        certificates.register(signer, CertificateDraft(cid="ab03"))
    assert excinfo.value.reason is ConflictReason.ALREADY_REGISTERED


def test_register_validates_before_ledger(certificates: CertificateRegistry, ledger, alice) -> None:
    signer, _ = alice
    height = ledger.query("blockHeight")
    with pytest.raises(MalformedInput):
        certificates.register(signer, CertificateDraft(cid="not hex"))
    with pytest.raises(MalformedIdentifier):
        certificates.register(signer, CertificateDraft(cid="ab04", did_owner="xyz"))
    assert ledger.query("blockHeight") == height


def test_register_without_signer_did_is_rejected(certificates: CertificateRegistry) -> None:
    from idspace.errors import LedgerRejected

    with pytest.raises(LedgerRejected) as excinfo:
        certificates.register(Signer(address="nobody"), CertificateDraft(cid="ab05"))
    assert excinfo.value.reason == "NoDidForSigner"


def test_revoke_unknown_is_not_found(certificates: CertificateRegistry, alice) -> None:
    signer, _ = alice
    with pytest.raises(NotFound):
        certificates.revoke(signer, "abcdef", 10)


@pytest.mark.parametrize("height", [0, -1, True, "100"])
def test_revoke_requires_positive_height(certificates: CertificateRegistry, alice, height) -> None:
    signer, _ = alice
    certificates.register(signer, CertificateDraft(cid="ab06"))
    with pytest.raises(MalformedInput):
        certificates.revoke(signer, "ab06", height)


def test_revoke_by_non_owner_is_rejected(certificates: CertificateRegistry, alice, bob) -> None:
    from idspace.errors import LedgerRejected

    signer, _ = alice
    other, _ = bob
    certificates.register(signer, CertificateDraft(cid="ab07"))
    with pytest.raises(LedgerRejected) as excinfo:
        certificates.revoke(other, "ab07", 50)
    assert excinfo.value.reason == "NotOwner"
    assert certificates.find("ab07").block_valid_to == 0


def test_ledger_rejects_second_revoke_even_when_client_check_is_stale(
    certificates: CertificateRegistry, ledger, alice
) -> None:
    signer, _ = alice
    certificates.register(signer, CertificateDraft(cid="ab08"))
    # Another writer revokes directly on the ledger after our read.
    ledger.submit(signer, "revokeCertificate", "ab08", UNSET, 20)
    result = ledger.submit(signer, "revokeCertificate", "ab08", UNSET, 30)
    assert result.accepted is False
    assert result.reason == "AlreadyRevoked"
    assert certificates.find("ab08").block_valid_to == 20


def test_end_to_end_revocation(certificates: CertificateRegistry, ledger, alice) -> None:
    signer, did = alice
    certificates.register(signer, CertificateDraft(cid="aaa111", did_owner=did))

    found = certificates.find("aaa111")
    assert found is not None
    assert found.block_valid_to == 0

    result = certificates.revoke(signer, "aaa111", 100)
    assert result.event("CIDRevoked").data == ("aaa111", signer.address, did)
    assert ledger.wait_for_event("CIDRevoked").data[0] == "aaa111"

    assert certificates.find("aaa111").block_valid_to == 100
    assert certificates.valid_certificates() == []
    assert certificates.certificates_of(did) == []

    with pytest.raises(Conflict) as excinfo:
        certificates.revoke(signer, "aaa111", 150)
    assert excinfo.value.reason is ConflictReason.ALREADY_REVOKED
    assert certificates.find("aaa111").block_valid_to == 100


def test_list_by_did_compares_storage_keys() -> None:
    did = "0x01020304aa"
    snapshot = (
        _certificate("01", did),
        _certificate("02", "0x01020304bb"),
        _certificate("03", "0X01020304AA"),
    )
    assert [c.cid for c in CertificateRegistry.list_by_did(snapshot, did)] == ["01", "03"]
    assert [c.cid for c in CertificateRegistry.list_by_did(snapshot, "0X01020304Aa")] == [
        "01",
        "03",
    ]
    # A different marker names a different DID.
    assert CertificateRegistry.list_by_did(snapshot, "f001020304aa") == []


def test_prefixed_dids_revoke_and_list(settings) -> None:
    from dataclasses import replace

    from idspace.did_registry import DidRegistry
    from idspace.memory_ledger import InMemoryLedger

    ledger = InMemoryLedger(replace(settings, did_marker="0x"))
    registry = CertificateRegistry(ledger)
    owner = Signer(address="owner-account")
    did = DidRegistry(ledger).register_did(
        Signer(address="root-account"), owner.address, 1, 2, "Legal Name", "Tax Id"
    ).event("DidRegistered").data[0]
    assert did.startswith("0x")

    registry.register(owner, CertificateDraft(cid="ab01"))
    registry.register(owner, CertificateDraft(cid="ab02"))
    assert [c.cid for c in registry.certificates_of(did.upper())] == ["ab01", "ab02"]

    result = registry.revoke(owner, "ab02", 10, did=did.upper())
    assert result.event("CIDRevoked").data == ("ab02", owner.address, did)
    assert [c.cid for c in registry.certificates_of(did)] == ["ab01"]


def test_revoke_after_owner_did_removed_is_rejected(
    certificates: CertificateRegistry, registry, alice
) -> None:
    from idspace.errors import LedgerRejected

    signer, did = alice
    certificates.register(signer, CertificateDraft(cid="ab03"))
    registry.remove_did(signer, did)

    with pytest.raises(LedgerRejected) as excinfo:
        certificates.revoke(Signer(address="mallory-account"), "ab03", 10, did=did)
    assert excinfo.value.reason == "NotOwner"
    assert certificates.find("ab03").block_valid_to == 0
