from typing import Optional
import string

from .errors import MalformedInput


HEX_PREFIX = "0x"
# Unset optional fields travel as a single zero byte; the ledger schema has no absent value.
UNSET = "0x00"

_HEX_DIGITS = frozenset(string.hexdigits)


def strip_prefix(value: str) -> str:
    if value[:2].lower() == HEX_PREFIX:
        return value[2:]
    return value


def is_hex_digits(value: str) -> bool:
    return bool(value) and all(ch in _HEX_DIGITS for ch in value)


def is_hex(value: object, min_length: int = 1) -> bool:
    if not isinstance(value, str):
        return False
    digits = strip_prefix(value)
    return len(digits) >= min_length and is_hex_digits(digits)


def require_hex(value: object, field: str, min_length: int = 1) -> str:
    if not is_hex(value, min_length):
        raise MalformedInput(
            f"{field} must be a hex string", extra={"field": field, "value": value}
        )
    return value  # type: ignore[return-value]


def utf8_to_hex(value: str) -> str:
    encoded = HEX_PREFIX + value.encode("utf-8").hex()
    if encoded == UNSET:
        raise MalformedInput("Value encodes to the unset sentinel", extra={"value": value})
    return encoded


def hex_to_utf8(value: Optional[str]) -> Optional[str]:
    if value is None or value == UNSET:
        return None
    try:
        return bytes.fromhex(strip_prefix(value)).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedInput(f"Not UTF-8 hex: {value}") from exc


def to_wire(value: Optional[str]) -> str:
    """Serialize an optional text field, mapping ``None`` to the unset sentinel."""
    if value is None:
        return UNSET
    return utf8_to_hex(value)


def to_wire_raw(value: Optional[str]) -> str:
    """Like ``to_wire`` for values that are already hex on the wire (DIDs, ids)."""
    if value is None:
        return UNSET
    return value


def from_wire(value: Optional[str]) -> Optional[str]:
    if value is None or value == UNSET:
        return None
    return value


def is_unset(value: Optional[str]) -> bool:
    return value is None or value == UNSET
