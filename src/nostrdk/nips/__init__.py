"""NIP helpers layered on the pure models.

Attributes:
    nip19: bech32 entities (``note``, ``npub``, ``nevent``, ``nprofile``,
        ``naddr``), relay hint extraction, and id-to-filter conversion.
    nip51: List items and mute-list folding.
    nip65: [RelayList][nostrdk.nips.nip65.RelayList] parsed from kind 10002.

Note:
    Like the models layer, this package raises ``ValueError`` on bad input
    and never imports from [nostrdk.core][]; the session translates these
    into [InvalidFilterError][nostrdk.core.exceptions.InvalidFilterError].
"""

from .nip19 import (
    Nip19Pointer,
    decode,
    encode_naddr,
    encode_nevent,
    encode_note,
    encode_nprofile,
    encode_npub,
    filter_from_id,
    is_addressable_value,
    is_bech32,
    relays_from_bech32,
)
from .nip51 import list_items, mute_entries
from .nip65 import RelayList


__all__ = [
    "Nip19Pointer",
    "RelayList",
    "decode",
    "encode_naddr",
    "encode_nevent",
    "encode_note",
    "encode_nprofile",
    "encode_npub",
    "filter_from_id",
    "is_addressable_value",
    "is_bech32",
    "list_items",
    "mute_entries",
    "relays_from_bech32",
]
