"""NIP-19 bech32 entities and event pointers.

Decodes ``note``, ``npub``, ``nevent``, ``nprofile`` and ``naddr`` strings
(with or without the NIP-21 ``nostr:`` prefix), extracts relay hints, and
turns event pointers into [Filter][nostrdk.models.filter.Filter] objects.

TLV layout for the shareable identifiers:

```text
type 0  special   32-byte id/pubkey, or the d-identifier for naddr
type 1  relay     ascii relay URL (repeatable)
type 2  author    32-byte pubkey
type 3  kind      32-bit big-endian unsigned int
```

Note:
    The ``bech32`` package provides the charset, checksum and 5-to-8 bit
    conversion. Its ``bech32_decode`` enforces the 90-character BIP-173
    limit, which TLV entities with relay hints routinely exceed, so the
    string is split here and only the checksum is delegated.

See Also:
    [Session.fetch_event()][nostrdk.core.session.Session.fetch_event]:
        Uses [relays_from_bech32][nostrdk.nips.nip19.relays_from_bech32] and
        [filter_from_id][nostrdk.nips.nip19.filter_from_id].
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import bech32

from nostrdk.models._validation import is_hex64
from nostrdk.models.filter import Filter
from nostrdk.models.relay_url import try_normalize_relay_url


logger = logging.getLogger(__name__)

BECH32_PREFIXES: tuple[str, ...] = ("naddr", "nevent", "note", "nprofile", "npub")
TLV_PREFIXES: tuple[str, ...] = ("naddr", "nevent", "nprofile")

TLV_SPECIAL = 0
TLV_RELAY = 1
TLV_AUTHOR = 2
TLV_KIND = 3

_ADDRESSABLE_VALUE_RE = re.compile(r"^\d+:[a-fA-F0-9]+:.*$")


@dataclass(frozen=True, slots=True)
class Nip19Pointer:
    """Decoded NIP-19 entity.

    Attributes:
        prefix: Human-readable part (``note``, ``nevent``, ...).
        special: Hex id or pubkey, or the d-identifier for ``naddr``.
        relays: Relay hints in the order they were encoded.
        author: Hex author pubkey, when present.
        kind: Event kind, when present.
    """

    prefix: str
    special: str
    relays: tuple[str, ...] = ()
    author: str | None = None
    kind: int | None = None


def strip_uri(value: str) -> str:
    """Remove a NIP-21 ``nostr:`` prefix."""
    return value.removeprefix("nostr:")


def is_bech32(value: str) -> bool:
    """Return True if *value* looks like a NIP-19 entity (checksum not verified)."""
    if not isinstance(value, str):
        return False
    value = strip_uri(value)
    return any(value.startswith(prefix + "1") for prefix in BECH32_PREFIXES)


def is_addressable_value(value: str) -> bool:
    """Return True for a NIP-33 ``kind:pubkey:d-identifier`` reference."""
    return isinstance(value, str) and _ADDRESSABLE_VALUE_RE.match(value) is not None


def _parse_tlv(data: bytes) -> dict[int, list[bytes]]:
    result: dict[int, list[bytes]] = {}
    while data:
        if len(data) < 2:
            raise ValueError("Truncated TLV entry")
        tlv_type, length = data[0], data[1]
        value = data[2 : 2 + length]
        if len(value) != length:
            raise ValueError("Truncated TLV value")
        result.setdefault(tlv_type, []).append(value)
        data = data[2 + length :]
    return result


def _split_bech32(value: str) -> tuple[str, list[int]]:
    """Split a bech32 string into its prefix and data words, verifying the checksum."""
    if value.lower() != value and value.upper() != value:
        raise ValueError(f"Mixed-case bech32 string: {value!r}")
    value = value.lower()
    pos = value.rfind("1")
    if pos < 1 or pos + 7 > len(value):
        raise ValueError(f"Invalid bech32 string: {value!r}")
    prefix = value[:pos]
    try:
        words = [bech32.CHARSET.index(char) for char in value[pos + 1 :]]
    except ValueError:
        raise ValueError(f"Invalid bech32 character in {value!r}") from None
    if not bech32.bech32_verify_checksum(prefix, words):
        raise ValueError(f"Invalid bech32 checksum: {value!r}")
    return prefix, words[:-6]


def decode(value: str) -> Nip19Pointer:
    """Decode a NIP-19 entity.

    Args:
        value: bech32 string, optionally prefixed with ``nostr:``.

    Returns:
        The decoded [Nip19Pointer][nostrdk.nips.nip19.Nip19Pointer]. Relay hints
        are normalized; unparseable hints are dropped.

    Raises:
        ValueError: If the checksum, prefix, or payload is invalid.
    """
    prefix, words = _split_bech32(strip_uri(value))
    if prefix not in BECH32_PREFIXES:
        raise ValueError(f"Unsupported NIP-19 prefix: {prefix!r}")
    converted = bech32.convertbits(words, 5, 8, False)
    if converted is None:
        raise ValueError(f"Invalid bech32 payload: {value!r}")
    data = bytes(converted)

    if prefix not in TLV_PREFIXES:
        if len(data) != 32:
            raise ValueError(f"{prefix} payload must be 32 bytes, got {len(data)}")
        return Nip19Pointer(prefix=prefix, special=data.hex())

    tlv = _parse_tlv(data)
    if TLV_SPECIAL not in tlv:
        raise ValueError(f"{prefix} is missing its special TLV entry")
    raw_special = tlv[TLV_SPECIAL][0]

    if prefix == "naddr":
        special = raw_special.decode("utf-8")
    else:
        if len(raw_special) != 32:
            raise ValueError(f"{prefix} special entry must be 32 bytes")
        special = raw_special.hex()

    relays: list[str] = []
    for raw_relay in tlv.get(TLV_RELAY, []):
        url = try_normalize_relay_url(raw_relay.decode("ascii", errors="replace"))
        if url is None:
            logger.debug("nip19_relay_hint_dropped hint=%r", raw_relay)
            continue
        if url not in relays:
            relays.append(url)

    author = None
    if TLV_AUTHOR in tlv:
        if len(tlv[TLV_AUTHOR][0]) != 32:
            raise ValueError(f"{prefix} author entry must be 32 bytes")
        author = tlv[TLV_AUTHOR][0].hex()

    kind = None
    if TLV_KIND in tlv:
        if len(tlv[TLV_KIND][0]) != 4:
            raise ValueError(f"{prefix} kind entry must be 4 bytes")
        kind = int.from_bytes(tlv[TLV_KIND][0], "big")

    if prefix == "naddr" and (author is None or kind is None):
        raise ValueError("naddr requires author and kind entries")

    return Nip19Pointer(
        prefix=prefix, special=special, relays=tuple(relays), author=author, kind=kind
    )


def _encode(prefix: str, data: bytes) -> str:
    words = bech32.convertbits(data, 8, 5, True)
    return bech32.bech32_encode(prefix, words)


def _tlv(tlv_type: int, value: bytes) -> bytes:
    return bytes([tlv_type, len(value)]) + value


def encode_note(event_id: str) -> str:
    return _encode("note", bytes.fromhex(event_id))


def encode_npub(pubkey: str) -> str:
    return _encode("npub", bytes.fromhex(pubkey))


def encode_nevent(
    event_id: str,
    relays: list[str] | tuple[str, ...] = (),
    author: str | None = None,
    kind: int | None = None,
) -> str:
    """Encode an event pointer with optional relay hints, author and kind."""
    data = _tlv(TLV_SPECIAL, bytes.fromhex(event_id))
    for relay in relays:
        data += _tlv(TLV_RELAY, relay.encode("ascii"))
    if author is not None:
        data += _tlv(TLV_AUTHOR, bytes.fromhex(author))
    if kind is not None:
        data += _tlv(TLV_KIND, kind.to_bytes(4, "big"))
    return _encode("nevent", data)


def encode_nprofile(pubkey: str, relays: list[str] | tuple[str, ...] = ()) -> str:
    data = _tlv(TLV_SPECIAL, bytes.fromhex(pubkey))
    for relay in relays:
        data += _tlv(TLV_RELAY, relay.encode("ascii"))
    return _encode("nprofile", data)


def encode_naddr(
    identifier: str,
    author: str,
    kind: int,
    relays: list[str] | tuple[str, ...] = (),
) -> str:
    """Encode a parameterized replaceable event coordinate."""
    data = _tlv(TLV_SPECIAL, identifier.encode("utf-8"))
    for relay in relays:
        data += _tlv(TLV_RELAY, relay.encode("ascii"))
    data += _tlv(TLV_AUTHOR, bytes.fromhex(author))
    data += _tlv(TLV_KIND, kind.to_bytes(4, "big"))
    return _encode("naddr", data)


def relays_from_bech32(value: str) -> list[str]:
    """Return the normalized relay hints embedded in a NIP-19 entity.

    Returns an empty list for hex ids, coordinates, entities without hints,
    and strings that fail to decode.
    """
    if not is_bech32(value):
        return []
    try:
        return list(decode(value).relays)
    except ValueError:
        return []


def filter_from_id(value: str) -> Filter:
    """Build a filter selecting the event referenced by *value*.

    Accepted inputs:

    * NIP-33 ``kind:pubkey:d`` values -> ``kinds`` + ``authors`` (+ ``#d``)
    * ``naddr`` -> ``kinds`` + ``authors`` (+ ``#d``)
    * ``note`` / ``nevent`` -> ``ids``
    * 64-char hex event id -> ``ids``

    Raises:
        ValueError: If *value* is empty or does not reference an event.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Event id must be a non-empty string")
    value = strip_uri(value.strip())

    if is_addressable_value(value):
        kind, pubkey, identifier = value.split(":", 2)
        tags = {"d": [identifier]} if identifier else {}
        return Filter(kinds=[int(kind)], authors=[pubkey.lower()], tags=tags)

    if is_bech32(value):
        pointer = decode(value)
        if pointer.prefix in ("note", "nevent"):
            return Filter(ids=[pointer.special])
        if pointer.prefix == "naddr":
            tags = {"d": [pointer.special]} if pointer.special else {}
            return Filter(kinds=[pointer.kind], authors=[pointer.author], tags=tags)
        raise ValueError(f"{pointer.prefix} does not reference an event")

    if is_hex64(value.lower()):
        return Filter(ids=[value.lower()])

    raise ValueError(f"Unrecognized event id: {value!r}")
