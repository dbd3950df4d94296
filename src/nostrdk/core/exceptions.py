"""nostrdk exception hierarchy.

Separates the errors a caller is synchronously waiting on (bad input,
missing signer) from connectivity failures that background work logs and
moves past.

Exception hierarchy:

```text
NostrdkError (base -- never raised directly)
├── ConfigurationError       -- config validation, bad YAML, bad relay URL
├── ConnectivityError        -- relay unreachable, network failures
│   ├── RelayConnectionError -- handshake refused or socket dropped
│   └── RelayTimeoutError    -- connection or fetch timed out
├── ProtocolError            -- malformed relay messages, NIP violations
│   └── InvalidFilterError   -- unparseable id or empty/malformed filter
└── SignerRequiredError      -- operation needs a signer, none configured
```

See Also:
    [Session.fetch_event()][nostrdk.core.session.Session.fetch_event]:
        Raises [InvalidFilterError][nostrdk.core.exceptions.InvalidFilterError]
        before any subscription is created.
    [Session.assert_signer()][nostrdk.core.session.Session.assert_signer]:
        Emits ``signer_required`` then raises
        [SignerRequiredError][nostrdk.core.exceptions.SignerRequiredError].
"""

from __future__ import annotations


class NostrdkError(Exception):
    """Base exception for all nostrdk errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(NostrdkError):
    """Invalid or missing configuration (YAML, relay URLs, CLI flags)."""


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(NostrdkError):
    """Base for all relay/network connectivity errors."""


class RelayConnectionError(ConnectivityError):
    """The relay refused the WebSocket handshake or dropped the connection."""


class RelayTimeoutError(ConnectivityError):
    """A relay connection or a fetch did not complete within its timeout."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(NostrdkError):
    """Malformed relay message or NIP violation."""


class InvalidFilterError(ProtocolError, ValueError):
    """An event id or filter could not be turned into a usable query.

    Also a ``ValueError`` so callers validating user input can catch the
    builtin.
    """


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------


class SignerRequiredError(NostrdkError):
    """An operation that needs a signer was attempted without one."""
