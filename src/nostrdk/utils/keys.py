"""Nostr key loading for the key-based signer.

Loads a private key (``nsec1`` bech32 or 64-char hex) from an environment
variable. [KeysSigner][nostrdk.core.signer.KeysSigner] wraps the result
and resolves it to the session's active user.

Warning:
    Private keys must never be written to configuration files or logged.
    Keep them in environment variables or a secret manager.

Examples:
    ```python
    import os

    os.environ["NOSTR_PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("NOSTR_PRIVATE_KEY")
    keys.public_key().to_hex()
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "NOSTR_PRIVATE_KEY"  # pragma: allowlist secret


def load_keys_from_env(env_var: str) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable holding the private key.

    Returns:
        A ``nostr_sdk.Keys`` instance with the derived public key.

    Raises:
        ValueError: If the variable is unset or empty.
        nostr_sdk.NostrError: If the value is not a valid private key.
    """
    value = os.getenv(env_var)
    if not value:
        raise ValueError(f"{env_var} environment variable is required to sign as a user")
    return Keys.parse(value)


class KeysConfig(BaseModel):
    """Pydantic model that loads ``keys`` from the variable named by ``keys_env``.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys``.

    Warning:
        ``keys`` holds a live private key; never serialize this model.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for the private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        if isinstance(data, dict) and "keys" not in data:
            data = {**data, "keys": load_keys_from_env(data.get("keys_env", ENV_PRIVATE_KEY))}
        return data
