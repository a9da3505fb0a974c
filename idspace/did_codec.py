"""
Fixed-offset DID codec.

A DID is a hex string laid out as::

    marker[0:2] version[2:4] network[4:8] type[8:10] entropy[10:]

Only ``marker + entropy`` identifies the DID in ledger storage; version,
network and type are routing metadata. Fields are sliced from the raw
identifier, so a leading ``0x`` is the marker.
"""

from dataclasses import dataclass

from .errors import MalformedIdentifier
from .hexutil import HEX_PREFIX, is_hex_digits


MIN_DID_LENGTH = 10

MARKER_WIDTH = 2
VERSION_WIDTH = 2
NETWORK_WIDTH = 4
TYPE_WIDTH = 2


@dataclass(frozen=True)
class DidParts:
    version: str
    network: str
    did_type: str
    internal_id: str

    @property
    def marker(self) -> str:
        return self.internal_id[:MARKER_WIDTH]

    @property
    def entropy(self) -> str:
        return self.internal_id[MARKER_WIDTH:]


def _is_marker(value: str) -> bool:
    return value.lower() == HEX_PREFIX or is_hex_digits(value)


def is_did(identifier: object) -> bool:
    if not isinstance(identifier, str) or len(identifier) < MIN_DID_LENGTH:
        return False
    return _is_marker(identifier[:MARKER_WIDTH]) and is_hex_digits(identifier[MARKER_WIDTH:])


def decode(identifier: str) -> DidParts:
    if not is_did(identifier):
        raise MalformedIdentifier(
            f"Malformed DID: {identifier!r}", extra={"identifier": identifier}
        )
    return DidParts(
        version=identifier[2:4],
        network=identifier[4:8],
        did_type=identifier[8:10],
        internal_id=identifier[0:2] + identifier[10:],
    )


def encode(marker: str, version: str, network: str, did_type: str, entropy: str) -> str:
    if len(marker) != MARKER_WIDTH or not _is_marker(marker):
        raise MalformedIdentifier(
            f"marker must be {MARKER_WIDTH} hex characters or 0x", extra={"marker": marker}
        )
    for name, value, width in (
        ("version", version, VERSION_WIDTH),
        ("network", network, NETWORK_WIDTH),
        ("did_type", did_type, TYPE_WIDTH),
    ):
        if len(value) != width or not is_hex_digits(value):
            raise MalformedIdentifier(
                f"{name} must be {width} hex characters", extra={name: value}
            )
    if entropy and not is_hex_digits(entropy):
        raise MalformedIdentifier("entropy must be hex", extra={"entropy": entropy})
    return marker + version + network + did_type + entropy


def encode_parts(parts: DidParts) -> str:
    return encode(parts.marker, parts.version, parts.network, parts.did_type, parts.entropy)


def internal_id(identifier: str) -> str:
    return decode(identifier).internal_id


def storage_key(identifier: str) -> str:
    """Case-folded internal id; two DIDs with the same key name the same entity."""
    return internal_id(identifier).lower()


def same_did(left: str, right: str) -> bool:
    return storage_key(left) == storage_key(right)


def format_did_type(did_type: int) -> str:
    if not 0 <= did_type <= 0xFF:
        raise MalformedIdentifier(f"DID type out of range: {did_type}")
    return f"{did_type:02x}"
