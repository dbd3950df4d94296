"""Unit tests for nips.nip51 (list items, mute folding) and nips.nip65 (relay lists)."""

import pytest

from conftest import PUBKEY_A, PUBKEY_B, PUBKEY_C, RELAY_1, RELAY_2, RELAY_3, event_id, make_event
from nostrdk.nips import RelayList, list_items, mute_entries


class TestListItems:
    """list_items() skips metadata tags."""

    def test_items_in_order(self):
        event = make_event(
            kind=10_000,
            tags=[["p", PUBKEY_B], ["t", "spam"], ["word", "gm"], ["e", event_id(1)]],
        )
        assert [tag[0] for tag in list_items(event)] == ["p", "t", "word", "e"]

    def test_metadata_tags_skipped(self):
        event = make_event(
            kind=30_000,
            tags=[["d", "mute"], ["title", "Muted"], ["alt", "list"], ["p", PUBKEY_B]],
        )
        assert list_items(event) == [["p", PUBKEY_B]]

    def test_valueless_tags_skipped(self):
        assert list_items(make_event(kind=10_000, tags=[["p"]])) == []


class TestMuteEntries:
    """mute_entries() folding."""

    def test_target_to_category(self):
        event = make_event(kind=10_000, tags=[["p", PUBKEY_B], ["t", "nsfw"], ["word", "x"]])
        assert mute_entries([event]) == {PUBKEY_B: "p", "nsfw": "t", "x": "word"}

    def test_multiple_lists_merged(self):
        plain = make_event(kind=10_000, tags=[["p", PUBKEY_B]])
        categorized = make_event(kind=30_000, tags=[["d", "mute"], ["p", PUBKEY_C]])
        assert mute_entries([plain, categorized]) == {PUBKEY_B: "p", PUBKEY_C: "p"}

    def test_empty(self):
        assert mute_entries([]) == {}


class TestRelayList:
    """RelayList.from_event() parsing."""

    def test_markers(self):
        event = make_event(
            kind=10_002,
            pubkey=PUBKEY_A,
            created_at=42,
            tags=[["r", RELAY_1], ["r", RELAY_2, "write"], ["r", RELAY_3, "read"]],
        )
        relay_list = RelayList.from_event(event)
        assert relay_list.pubkey == PUBKEY_A
        assert relay_list.created_at == 42
        assert relay_list.read_relays == (RELAY_1, RELAY_3)
        assert relay_list.write_relays == (RELAY_1, RELAY_2)
        assert relay_list.relays == (RELAY_1, RELAY_3, RELAY_2)

    def test_urls_normalized_and_invalid_skipped(self):
        event = make_event(kind=10_002, tags=[["r", RELAY_1 + "/"], ["r", "http://bad"], ["r"]])
        assert RelayList.from_event(event).relays == (RELAY_1,)

    def test_duplicates_collapsed(self):
        event = make_event(kind=10_002, tags=[["r", RELAY_1], ["r", RELAY_1.upper()]])
        assert RelayList.from_event(event).read_relays == (RELAY_1,)

    def test_wrong_kind(self):
        with pytest.raises(ValueError, match="10002"):
            RelayList.from_event(make_event(kind=3))
