"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so that every component logs
snake_case event names followed by structured fields:

```text
info subscription subscription_eose sub_id=3 relays=2
```

``StructuredFormatter`` reads the ``structured_kv`` extra attached by
[Logger][nostrdk.core.logger.Logger] and appends it as key=value pairs.
Installed on the root handler (the CLI does this), it unifies output from
``Logger`` and from plain ``logging.getLogger()`` calls in the models and
nips layers.

Examples:
    ```python
    from nostrdk.core.logger import Logger

    logger = Logger("pool")
    logger.info("relay_added", url="wss://relay.damus.io")
    # Output: relay_added url=wss://relay.damus.io

    sub_logger = logger.bind(sub_id="7")
    sub_logger.debug("eose_received", relay="wss://nos.lol")
    # Output: eose_received sub_id=7 relay=wss://nos.lol
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values are truncated to ``max_value_length`` characters, and values
    containing whitespace, equals signs, or quotes are escaped and quoted.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ' key1=value1 key2="value with spaces"'.
        Returns empty string if kwargs is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = _truncate(str(v), max_value_length)
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts)


def _truncate(value: str, max_length: int | None) -> str:
    if max_length and len(value) > max_length:
        return value[:max_length] + f"...<truncated {len(value) - max_length} chars>"
    return value


class StructuredFormatter(logging.Formatter):
    """Formats all log records as ``level name message key=value ...``.

    Records without ``structured_kv`` (plain ``logging.getLogger()`` calls)
    are emitted with the same prefix and no trailing fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as fields.

    Mirrors the standard logging API with an added ``**kwargs`` parameter.
    [bind()][nostrdk.core.logger.Logger.bind] returns a logger that carries
    fixed context fields, used to tag every line of one subscription or
    relay with its identifier.

    Examples:
        ```python
        logger = Logger("session")
        logger.info("active_user_changed", pubkey="ab12...")
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, typically the component name. Maps to
                ``logging.getLogger(name)``.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum characters per value before
                truncation. Defaults to 1000.
            context: Fields prepended to every record.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a logger with the same name that always includes *context*."""
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def _format_json(self, msg: str, level: str, fields: dict[str, Any]) -> str:
        """Format message and fields as one JSON object for log aggregators."""
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "component": self._logger.name,
            "message": msg,
            **fields,
        }
        return json.dumps(record, default=str)

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {**self._context, **kwargs}
        if self._json_output:
            level_name = logging.getLevelName(level).lower()
            self._logger.log(level, self._format_json(msg, level_name, fields), exc_info=exc_info)
            return
        extra = {}
        if fields:
            limit = self._max_value_length
            extra = {"structured_kv": {k: _truncate_value(v, limit) for k, v in fields.items()}}
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active exception's traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)


def _truncate_value(value: Any, max_length: int | None) -> Any:
    """Pre-truncate long values so the formatter receives clean data."""
    s = str(value)
    if max_length and len(s) > max_length:
        return _truncate(s, max_length)
    return value
