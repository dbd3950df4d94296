"""NIP-01 client/relay message framing.

Client to relay:

```text
["REQ", <sub_id>, <filter>, ...]
["CLOSE", <sub_id>]
```

Relay to client:

```text
["EVENT", <sub_id>, <event>]
["EOSE", <sub_id>]
["CLOSED", <sub_id>, <reason>]
["NOTICE", <message>]
["OK", <event_id>, <accepted>, <message>]
```

[RelayConnection.receive()][nostrdk.core.relay.RelayConnection.receive]
dispatches parsed frames; the WebSocket transport only moves text.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from nostr_sdk import Event as NostrEvent
from nostr_sdk import NostrSdkError

from nostrdk.models.event import Event
from nostrdk.models.filter import Filter


RELAY_MESSAGE_TYPES = frozenset({"EVENT", "EOSE", "CLOSED", "NOTICE", "OK", "AUTH", "COUNT"})


def encode_req(subscription_id: str, filters: Sequence[Filter]) -> str:
    return json.dumps(["REQ", subscription_id, *(f.to_dict() for f in filters)])


def encode_close(subscription_id: str) -> str:
    return json.dumps(["CLOSE", subscription_id])


def parse_relay_message(raw: str | bytes) -> list[Any]:
    """Decode one relay frame into a list whose first element is the message type.

    Raises:
        ValueError: If the frame is not JSON, not a non-empty array, or its
            type is unknown.
    """
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Relay message is not JSON: {e}") from e

    if not isinstance(message, list) or not message:
        raise ValueError("Relay message must be a non-empty JSON array")
    if message[0] not in RELAY_MESSAGE_TYPES:
        raise ValueError(f"Unknown relay message type: {message[0]!r}")
    return message


def verify_event(event: Event) -> bool:
    """Check the event id and Schnorr signature with nostr-sdk.

    Returns False for events nostr-sdk cannot parse.
    """
    try:
        return NostrEvent.from_json(event.to_json()).verify()
    except (NostrSdkError, ValueError, TypeError, OverflowError):
        return False
