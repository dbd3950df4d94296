"""
Signers resolve the identity a session acts as.

The session only needs [Signer.user()][nostrdk.core.signer.Signer.user]:
it is awaited once per [Session.set_signer()][nostrdk.core.session.Session.set_signer]
and the result becomes the active user. [KeysSigner][nostrdk.core.signer.KeysSigner]
is backed by a local ``nostr_sdk.Keys`` pair and can also sign events.

Examples:
    ```python
    signer = KeysSigner.from_env()              # reads NOSTR_PRIVATE_KEY
    session.set_signer(signer)

    builder = EventBuilder(Kind(1), "gm")
    event = signer.sign(builder)
    ```
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from nostr_sdk import EventBuilder, Keys

from nostrdk.models.event import Event
from nostrdk.utils.keys import ENV_PRIVATE_KEY, KeysConfig

from .user import User


class Signer(ABC):
    """Identity provider for a session."""

    @abstractmethod
    async def user(self) -> User:
        """Resolve the user this signer signs for."""


class KeysSigner(Signer):
    """Signer holding a local private key.

    Warning:
        The wrapped ``Keys`` hold a live private key; ``repr()`` shows only
        the public key.
    """

    def __init__(self, keys: Keys) -> None:
        self._keys = keys

    @classmethod
    def from_env(cls, env_var: str = ENV_PRIVATE_KEY) -> KeysSigner:
        """Load the private key from *env_var*.

        Raises:
            ValueError: If the variable is unset or empty.
        """
        return cls(KeysConfig(keys_env=env_var).keys)

    @classmethod
    def generate(cls) -> KeysSigner:
        """Signer for a fresh random key pair."""
        return cls(Keys.generate())

    @property
    def pubkey(self) -> str:
        return self._keys.public_key().to_hex()

    async def user(self) -> User:
        return User(self.pubkey)

    def sign(self, builder: EventBuilder) -> Event:
        """Sign *builder* and return the event marked as published locally."""
        signed = Event.from_nostr(builder.sign_with_keys(self._keys))
        signed.published = True
        return signed

    def __repr__(self) -> str:
        return f"KeysSigner(pubkey={self.pubkey[:16]}...)"
