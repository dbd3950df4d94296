"""
Relay URL parsing and normalization.

Every component keys relays by their normalized URL, so two spellings of
the same relay (``WSS://Relay.Example.com/`` and ``wss://relay.example.com``)
must collapse to one pool entry. Normalization follows RFC 3986 via
``rfc3986`` and adds the relay-specific rules: ``ws``/``wss`` only, no
query or fragment, duplicate and trailing slashes removed, default ports
omitted.

Unlike a crawler, a client must be able to talk to ``ws://localhost``
development relays, so local addresses are accepted.
"""

from __future__ import annotations

from rfc3986 import uri_reference
from rfc3986.exceptions import UnpermittedComponentError, ValidationError
from rfc3986.validators import Validator


_DEFAULT_PORTS: dict[str, int] = {"ws": 80, "wss": 443}


def normalize_relay_url(raw: str) -> str:
    """Return the canonical form of a relay URL.

    Args:
        raw: URL as configured or as found in a relay hint.

    Returns:
        Normalized URL, e.g. ``"wss://relay.damus.io"``.

    Raises:
        ValueError: If the URL is malformed, uses a scheme other than
            ``ws``/``wss``, or carries a query string or fragment.

    Examples:
        ```python
        normalize_relay_url("WSS://Relay.Damus.io/")      # 'wss://relay.damus.io'
        normalize_relay_url("ws://localhost:7777//sub/")  # 'ws://localhost:7777/sub'
        ```
    """
    if not isinstance(raw, str):
        raise TypeError(f"Relay URL must be a str, got {type(raw).__name__}")
    if "\x00" in raw:
        raise ValueError("Relay URL contains null bytes")

    uri = uri_reference(raw.strip()).normalize()
    validator = (
        Validator()
        .require_presence_of("scheme", "host")
        .allow_schemes("ws", "wss")
        .check_validity_of("scheme", "host", "port", "path")
    )
    try:
        validator.validate(uri)
    except UnpermittedComponentError:
        raise ValueError(f"Invalid relay scheme: {raw!r} (must be ws or wss)") from None
    except ValidationError as e:
        raise ValueError(f"Invalid relay URL {raw!r}: {e}") from None

    if uri.query:
        raise ValueError(f"Relay URL must not contain a query string: {raw!r}")
    if uri.fragment:
        raise ValueError(f"Relay URL must not contain a fragment: {raw!r}")

    scheme = uri.scheme
    host = uri.host
    port = int(uri.port) if uri.port else None

    path = uri.path or ""
    while "//" in path:
        path = path.replace("//", "/")
    path = path.rstrip("/")

    if port and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}{path}"
    return f"{scheme}://{host}{path}"


def try_normalize_relay_url(raw: str) -> str | None:
    """Like [normalize_relay_url][nostrdk.models.relay_url.normalize_relay_url], None on bad input.

    Used for relay hints coming from untrusted events and bech32 pointers.
    """
    try:
        return normalize_relay_url(raw)
    except (TypeError, ValueError):
        return None
