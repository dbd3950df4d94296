"""
Nostr user bound to a session.

A [User][nostrdk.core.user.User] is a hex public key plus cached data
fetched through its [Session][nostrdk.core.session.Session]: the NIP-65
relay list and the mute list folded during bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nostrdk.models._validation import validate_hex64
from nostrdk.models.constants import EventKind
from nostrdk.models.filter import Filter
from nostrdk.nips.nip19 import decode, encode_npub
from nostrdk.nips.nip65 import RelayList

from .relay_set import RelaySet


if TYPE_CHECKING:
    from .session import Session


class User:
    """A public key, optionally bound to a session for fetching its data.

    Attributes:
        pubkey: 64-char lowercase hex public key.
        session: Session used by [relay_list()][nostrdk.core.user.User.relay_list].
        mute_list: ``target -> category`` entries from the last bootstrap,
            or None if never fetched.

    Raises:
        ValueError: If *pubkey* is not 64 hex characters.
    """

    def __init__(self, pubkey: str, *, session: Session | None = None) -> None:
        if isinstance(pubkey, str):
            pubkey = pubkey.lower()
        validate_hex64(pubkey, "pubkey")
        self.pubkey = pubkey
        self.session = session
        self.mute_list: dict[str, str] | None = None
        self._relay_list: RelayList | None = None

    @classmethod
    def from_npub(cls, npub: str, *, session: Session | None = None) -> User:
        """Build a user from an ``npub`` or ``nprofile`` entity.

        Raises:
            ValueError: If *npub* does not decode to a public key.
        """
        pointer = decode(npub)
        if pointer.prefix not in ("npub", "nprofile"):
            raise ValueError(f"Expected npub or nprofile, got {pointer.prefix}")
        return cls(pointer.special, session=session)

    @property
    def npub(self) -> str:
        return encode_npub(self.pubkey)

    async def relay_list(self, *, refresh: bool = False) -> RelayList | None:
        """Fetch and cache the user's NIP-65 relay list.

        Queries the outbox pool's relays when the session has one, else the
        main pool. The newest kind 10002 event wins.

        Returns:
            The parsed list, or None if no relay published one.

        Raises:
            RuntimeError: If the user is not bound to a session.
        """
        if self._relay_list is not None and not refresh:
            return self._relay_list
        if self.session is None:
            raise RuntimeError("User is not bound to a session")

        relay_set = None
        if self.session.outbox_pool is not None:
            relay_set = RelaySet(self.session.outbox_pool.relays.values())

        events = await self.session.fetch_events(
            Filter(kinds=[EventKind.RELAY_LIST], authors=[self.pubkey]), relay_set=relay_set
        )
        if not events:
            return None
        newest = min(events, key=lambda e: (-e.created_at, e.id))
        self._relay_list = RelayList.from_event(newest)
        return self._relay_list

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.pubkey == other.pubkey

    def __hash__(self) -> int:
        return hash(self.pubkey)

    def __repr__(self) -> str:
        return f"User(pubkey={self.pubkey[:16]}...)"
