r"""nostrdk -- Nostr client orchestration: sessions, relay pools and subscriptions.

A client talks to many untrusted relays at once. nostrdk merges their
overlapping answers into one deduplicated event stream, discovers which
relays hold a user's data, and bootstraps a user's session (identity, relay
preferences, mute list) without blocking the caller.

Architecture follows a **diamond DAG** dependency structure where imports
flow strictly downward:

```text
               core            Session, pools, subscriptions, transport
             /   |   \
         nips    |    utils    NIP-19/51/65 helpers, keys, message framing
             \   |   /
              models           Pure value types (zero I/O)
```

Note:
    For lightweight usage, import directly from subpackages::

        from nostrdk.models import Event, Filter
        from nostrdk.core import Session

    Top-level imports (``from nostrdk import Session``) use lazy loading
    and resolve on first access.
"""

import importlib
from importlib.metadata import version as _get_version


__version__ = _get_version("nostrdk")

__all__ = [
    "Event",
    "EventKind",
    "Filter",
    "InvalidFilterError",
    "KeysSigner",
    "Logger",
    "OutboxTracker",
    "RelayList",
    "RelayPool",
    "RelaySet",
    "Session",
    "SessionConfig",
    "Signer",
    "SignerRequiredError",
    "Subscription",
    "SubscriptionOptions",
    "User",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "Event": ("nostrdk.models", "Event"),
    "EventKind": ("nostrdk.models", "EventKind"),
    "Filter": ("nostrdk.models", "Filter"),
    "RelayList": ("nostrdk.nips", "RelayList"),
    "InvalidFilterError": ("nostrdk.core", "InvalidFilterError"),
    "KeysSigner": ("nostrdk.core", "KeysSigner"),
    "Logger": ("nostrdk.core", "Logger"),
    "OutboxTracker": ("nostrdk.core", "OutboxTracker"),
    "RelayPool": ("nostrdk.core", "RelayPool"),
    "RelaySet": ("nostrdk.core", "RelaySet"),
    "Session": ("nostrdk.core", "Session"),
    "SessionConfig": ("nostrdk.core", "SessionConfig"),
    "Signer": ("nostrdk.core", "Signer"),
    "SignerRequiredError": ("nostrdk.core", "SignerRequiredError"),
    "Subscription": ("nostrdk.core", "Subscription"),
    "SubscriptionOptions": ("nostrdk.core", "SubscriptionOptions"),
    "User": ("nostrdk.core", "User"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        module = importlib.import_module(module_path)
        value = getattr(module, attr_name)
        globals()[name] = value  # Cache for subsequent access
        return value
    raise AttributeError(f"module 'nostrdk' has no attribute {name!r}")


def __dir__() -> list[str]:
    return __all__
