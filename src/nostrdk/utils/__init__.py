"""Key loading and NIP-01 message framing.

The utils layer depends only on [nostrdk.models][nostrdk.models].

Attributes:
    keys: Nostr key pair loading from environment variables (nsec1 bech32 or
        hex) with Pydantic validation. Used by
        [KeysSigner][nostrdk.core.signer.KeysSigner].
    protocol: ``REQ``/``CLOSE`` encoding, relay frame parsing and event
        signature verification through nostr-sdk.

Note:
    The utils layer has **zero** imports from ``nostrdk.core``.
"""

from .keys import ENV_PRIVATE_KEY, KeysConfig, load_keys_from_env
from .protocol import encode_close, encode_req, parse_relay_message, verify_event


__all__ = [
    "ENV_PRIVATE_KEY",
    "KeysConfig",
    "encode_close",
    "encode_req",
    "load_keys_from_env",
    "parse_relay_message",
    "verify_event",
]
