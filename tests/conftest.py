import pytest

from idspace.certificates import CertificateRegistry
from idspace.config import Settings
from idspace.credentials import CredentialAnchor
from idspace.did_registry import DidRegistry
from idspace.keys import KeyManager
from idspace.memory_ledger import InMemoryLedger
from idspace.models import Signer


@pytest.fixture
def settings() -> Settings:
    return Settings(
        app_name="test",
        ledger_mode="memory",
        did_marker="f0",
        did_version="01",
        did_network="0203",
        default_key_type=0,
        log_level="DEBUG",
        api_key="",
    )


@pytest.fixture
def ledger(settings: Settings) -> InMemoryLedger:
    return InMemoryLedger(settings)


@pytest.fixture
def registry(ledger: InMemoryLedger) -> DidRegistry:
    return DidRegistry(ledger)


@pytest.fixture
def certificates(ledger: InMemoryLedger) -> CertificateRegistry:
    return CertificateRegistry(ledger)


@pytest.fixture
def anchors(ledger: InMemoryLedger) -> CredentialAnchor:
    return CredentialAnchor(ledger)


@pytest.fixture
def keys(ledger: InMemoryLedger) -> KeyManager:
    return KeyManager(ledger)


@pytest.fixture
def root() -> Signer:
    return Signer(address="root-account")


def _register(registry: DidRegistry, root: Signer, address: str) -> str:
    result = registry.register_did(root, address, 2000, 2, "Legal Name", "Tax Id")
    event = result.event("DidRegistered")
    assert event is not None
    return event.data[0]


@pytest.fixture
def alice(registry: DidRegistry, root: Signer):
    signer = Signer(address="alice-account")
    return signer, _register(registry, root, signer.address)


@pytest.fixture
def bob(registry: DidRegistry, root: Signer):
    signer = Signer(address="bob-account")
    return signer, _register(registry, root, signer.address)
