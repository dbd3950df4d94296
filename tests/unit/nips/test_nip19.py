"""
Unit tests for nips.nip19 module.

Tests:
- Decoding bech32 entities and TLV payloads
- Relay hint extraction
- Filter construction from ids, entities and coordinates
"""

import pytest

from conftest import PUBKEY_A, RELAY_1, RELAY_2, event_id
from nostrdk.nips import (
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


EVENT_ID = event_id("nip19")


class TestDecode:
    """decode() of every supported prefix."""

    def test_note(self):
        pointer = decode(encode_note(EVENT_ID))
        assert pointer.prefix == "note"
        assert pointer.special == EVENT_ID
        assert pointer.relays == ()

    def test_npub(self):
        assert decode(encode_npub(PUBKEY_A)).special == PUBKEY_A

    def test_nevent_with_hints(self):
        pointer = decode(encode_nevent(EVENT_ID, [RELAY_1, RELAY_2 + "/"], author=PUBKEY_A, kind=1))
        assert pointer.special == EVENT_ID
        assert pointer.relays == (RELAY_1, RELAY_2)
        assert pointer.author == PUBKEY_A
        assert pointer.kind == 1

    def test_nprofile(self):
        pointer = decode(encode_nprofile(PUBKEY_A, [RELAY_1]))
        assert pointer.prefix == "nprofile"
        assert pointer.special == PUBKEY_A
        assert pointer.relays == (RELAY_1,)

    def test_naddr(self):
        pointer = decode(encode_naddr("mute", PUBKEY_A, 30_000, [RELAY_1]))
        assert pointer.special == "mute"
        assert pointer.author == PUBKEY_A
        assert pointer.kind == 30_000

    def test_nostr_uri_prefix(self):
        assert decode("nostr:" + encode_note(EVENT_ID)).special == EVENT_ID

    def test_invalid_hint_dropped(self):
        pointer = decode(encode_nevent(EVENT_ID, ["https://not-a-relay.com", RELAY_1]))
        assert pointer.relays == (RELAY_1,)

    def test_bad_checksum(self):
        value = encode_note(EVENT_ID)
        corrupted = value[:-1] + ("q" if value[-1] != "q" else "p")
        with pytest.raises(ValueError, match="checksum"):
            decode(corrupted)

    def test_unsupported_prefix(self):
        with pytest.raises(ValueError):
            decode("nsec1" + encode_note(EVENT_ID)[5:])


class TestPredicates:
    """is_bech32() / is_addressable_value()."""

    def test_is_bech32(self):
        assert is_bech32(encode_note(EVENT_ID))
        assert is_bech32("nostr:" + encode_npub(PUBKEY_A))
        assert not is_bech32(EVENT_ID)

    def test_is_addressable_value(self):
        assert is_addressable_value(f"30000:{PUBKEY_A}:mute")
        assert is_addressable_value(f"30023:{PUBKEY_A}:")
        assert not is_addressable_value(EVENT_ID)
        assert not is_addressable_value(encode_note(EVENT_ID))


class TestRelaysFromBech32:
    """relays_from_bech32() hint extraction."""

    def test_nevent_hints(self):
        assert relays_from_bech32(encode_nevent(EVENT_ID, [RELAY_1])) == [RELAY_1]

    def test_no_hints(self):
        assert relays_from_bech32(encode_note(EVENT_ID)) == []

    def test_hex_id(self):
        assert relays_from_bech32(EVENT_ID) == []

    def test_undecodable(self):
        assert relays_from_bech32("nevent1qqqqqq") == []


class TestFilterFromId:
    """filter_from_id() conversions."""

    def test_hex_id(self):
        assert filter_from_id(EVENT_ID).to_dict() == {"ids": [EVENT_ID]}

    def test_uppercase_hex_id(self):
        assert filter_from_id(EVENT_ID.upper()).ids == (EVENT_ID,)

    def test_note(self):
        assert filter_from_id(encode_note(EVENT_ID)).ids == (EVENT_ID,)

    def test_nevent(self):
        assert filter_from_id(encode_nevent(EVENT_ID, [RELAY_1])).ids == (EVENT_ID,)

    def test_naddr(self):
        f = filter_from_id(encode_naddr("mute", PUBKEY_A, 30_000))
        assert f.to_dict() == {"authors": [PUBKEY_A], "kinds": [30_000], "#d": ["mute"]}

    def test_coordinate(self):
        f = filter_from_id(f"30000:{PUBKEY_A}:mute")
        assert f.kinds == (30_000,)
        assert f.authors == (PUBKEY_A,)
        assert f.tags["d"] == ("mute",)

    def test_coordinate_without_identifier(self):
        assert "d" not in filter_from_id(f"30023:{PUBKEY_A}:").tags

    def test_npub_rejected(self):
        with pytest.raises(ValueError, match="does not reference an event"):
            filter_from_id(encode_npub(PUBKEY_A))

    @pytest.mark.parametrize("value", ["", "   ", "not-an-id", "abc123"])
    def test_garbage_rejected(self, value):
        with pytest.raises(ValueError):
            filter_from_id(value)
