"""
Nostr event value type with client-side provenance.

Holds the signed NIP-01 envelope (id, pubkey, created_at, kind, tags,
content, sig) plus the bookkeeping a multi-relay client needs: which relay
delivered this copy, the set of relays the event is known to live on, and
whether the copy was authored or relayed locally.

The identity used to merge copies across relays is the
[deduplication key][nostrdk.models.event.Event.deduplication_key], not the
protocol id: parameterized replaceable events are identified by their
``kind:pubkey:d`` coordinate.

See Also:
    [nostrdk.core.dedup][]: Chooses the canonical copy between two events
        sharing a deduplication key.
    [nostrdk.core.subscription][]: Classifies incoming events as first
        occurrences or duplicates by deduplication key.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ._validation import validate_hex64, validate_instance, validate_int, validate_tags
from .constants import EVENT_KIND_MAX, is_parameterized_replaceable


if TYPE_CHECKING:
    from nostr_sdk import Event as NostrEvent


@dataclass(eq=False, slots=True)
class Event:
    """Nostr event with per-copy relay provenance.

    The protocol fields are validated on construction and treated as
    read-only afterwards. Provenance fields (``relay``, ``on_relays``,
    ``published``) are mutable: the merge policy unions ``on_relays``
    across duplicate copies.

    Equality and hashing use the protocol ``id`` so that sets of events
    collapse identical copies.

    Attributes:
        id: 64-char hex event id.
        pubkey: 64-char hex author public key.
        created_at: Unix timestamp of creation.
        kind: Integer event kind (0-65535).
        tags: Tag arrays, each a non-empty list of strings.
        content: Raw content string.
        sig: Hex Schnorr signature.
        relay: URL of the relay that delivered this copy, if any.
        on_relays: Relay URLs this event has been seen on.
        published: Whether this copy was authored or relayed by this client.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If id/pubkey are not hex, or kind/created_at are out
            of range.

    Examples:
        ```python
        event = Event.from_dict(raw, relay="wss://relay.damus.io")
        event.deduplication_key()   # event.id, or "30000:<pubkey>:mute"
        event.on_relays             # {"wss://relay.damus.io"}
        ```
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: list[list[str]] = field(default_factory=list)
    content: str = ""
    sig: str = ""
    relay: str | None = None
    on_relays: set[str] = field(default_factory=set)
    published: bool = False

    def __post_init__(self) -> None:
        validate_hex64(self.id, "id")
        validate_hex64(self.pubkey, "pubkey")
        validate_int(self.created_at, "created_at")
        validate_int(self.kind, "kind", maximum=EVENT_KIND_MAX)
        validate_tags(self.tags, "tags")
        validate_instance(self.content, str, "content")
        validate_instance(self.sig, str, "sig")
        self.tags = [list(tag) for tag in self.tags]
        self.on_relays = set(self.on_relays)
        if self.relay is not None:
            self.on_relays.add(self.relay)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Event(id={self.id[:16]}..., kind={self.kind}, relays={len(self.on_relays)})"

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    def tag_value(self, name: str) -> str | None:
        """Return the first value of the first tag called *name*, or None."""
        for tag in self.tags:
            if tag[0] == name and len(tag) > 1:
                return tag[1]
        return None

    def get_matching_tags(self, name: str) -> list[list[str]]:
        """Return every tag whose name is *name*."""
        return [tag for tag in self.tags if tag[0] == name]

    @property
    def coordinate(self) -> str:
        """NIP-33 ``kind:pubkey:d`` coordinate (``d`` defaults to empty)."""
        return f"{self.kind}:{self.pubkey}:{self.tag_value('d') or ''}"

    def deduplication_key(self) -> str:
        """Identity used to merge copies of this event across relays.

        Parameterized replaceable kinds (30000-39999) are keyed by their
        coordinate so that different revisions from different relays collapse
        into one logical item. Every other kind is keyed by its protocol id.
        """
        if is_parameterized_replaceable(self.kind):
            return self.coordinate
        return self.id

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the NIP-01 wire representation (provenance excluded)."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, relay: str | None = None) -> Event:
        """Build an event from a NIP-01 JSON object.

        Args:
            data: Decoded event object as received on the wire.
            relay: URL of the relay that delivered it.

        Raises:
            ValueError: If a required field is missing or invalid.
        """
        try:
            return cls(
                id=data["id"],
                pubkey=data["pubkey"],
                created_at=data["created_at"],
                kind=data["kind"],
                tags=data.get("tags", []),
                content=data.get("content", ""),
                sig=data.get("sig", ""),
                relay=relay,
            )
        except KeyError as e:
            raise ValueError(f"Event is missing field {e.args[0]!r}") from None

    @classmethod
    def from_nostr(cls, nostr_event: NostrEvent, *, relay: str | None = None) -> Event:
        """Build an event from a ``nostr_sdk.Event``.

        Used for events signed locally with a [KeysSigner][nostrdk.core.signer.KeysSigner]
        or returned by nostr-sdk clients.
        """
        return cls(
            id=nostr_event.id().to_hex(),
            pubkey=nostr_event.author().to_hex(),
            created_at=nostr_event.created_at().as_secs(),
            kind=nostr_event.kind().as_u16(),
            tags=[list(tag.as_vec()) for tag in nostr_event.tags().to_vec()],
            content=nostr_event.content(),
            sig=nostr_event.signature(),
            relay=relay,
        )
