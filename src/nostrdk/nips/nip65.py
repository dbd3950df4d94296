"""NIP-65 relay list metadata (kind 10002).

The relay list advertises where a user writes (outbox) and reads (inbox):

```text
["r", "wss://relay.example.com"]           read + write
["r", "wss://relay.example.com", "write"]  write only
["r", "wss://relay.example.com", "read"]   read only
```

See Also:
    [User.relay_list()][nostrdk.core.user.User.relay_list]: Fetches and
        parses the list for a user.
    [OutboxTracker][nostrdk.core.outbox.OutboxTracker]: Learns authors'
        write relays from these lists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from nostrdk.models.constants import EventKind
from nostrdk.models.event import Event
from nostrdk.models.relay_url import try_normalize_relay_url


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RelayList:
    """Parsed NIP-65 relay list.

    Attributes:
        pubkey: Author of the list.
        read_relays: Normalized URLs the author reads from.
        write_relays: Normalized URLs the author writes to.
        created_at: Timestamp of the source event.
    """

    pubkey: str
    read_relays: tuple[str, ...] = ()
    write_relays: tuple[str, ...] = ()
    created_at: int = 0

    @property
    def relays(self) -> tuple[str, ...]:
        """Every listed relay, read and write, without duplicates."""
        return tuple(dict.fromkeys(self.read_relays + self.write_relays))

    @classmethod
    def from_event(cls, event: Event) -> RelayList:
        """Parse a kind 10002 event.

        Unparseable relay URLs are skipped.

        Raises:
            ValueError: If *event* is not a relay list.
        """
        if event.kind != EventKind.RELAY_LIST:
            raise ValueError(f"Expected kind {int(EventKind.RELAY_LIST)}, got {event.kind}")

        read: list[str] = []
        write: list[str] = []
        for tag in event.get_matching_tags("r"):
            if len(tag) < 2:
                continue
            url = try_normalize_relay_url(tag[1])
            if url is None:
                logger.debug("relay_list_url_skipped url=%s pubkey=%s", tag[1], event.pubkey)
                continue
            marker = tag[2] if len(tag) > 2 else None
            if marker in (None, "read") and url not in read:
                read.append(url)
            if marker in (None, "write") and url not in write:
                write.append(url)

        return cls(
            pubkey=event.pubkey,
            read_relays=tuple(read),
            write_relays=tuple(write),
            created_at=event.created_at,
        )
