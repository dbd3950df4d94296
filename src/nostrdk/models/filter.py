"""
Declarative NIP-01 subscription filter.

A [Filter][nostrdk.models.filter.Filter] is an immutable query that relays
match stored and live events against. Filters are built from the familiar
JSON shape (``{"kinds": [1], "authors": [...], "#d": ["mute"], "limit": 1}``)
and serialized back to it for the ``REQ`` message.

See Also:
    [nostrdk.nips.nip19.filter_from_id][]: Builds a filter from a bech32
        pointer or hex id.
    [nostrdk.core.subscription.Subscription][]: Holds one or more filters.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ._validation import validate_int


if TYPE_CHECKING:
    from .event import Event


_LIST_FIELDS = ("ids", "authors", "kinds")
_INT_FIELDS = ("since", "until", "limit")


def _frozen_strings(values: Iterable[Any], name: str) -> tuple[str, ...]:
    if isinstance(values, str) or not isinstance(values, Iterable):
        raise TypeError(f"{name} must be a list of strings")
    result = tuple(values)
    for value in result:
        if not isinstance(value, str):
            raise TypeError(f"{name} values must be str, got {type(value).__name__}")
    return result


@dataclass(frozen=True, slots=True)
class Filter:
    """Immutable NIP-01 filter.

    Attributes:
        ids: Event ids to match.
        authors: Author pubkeys to match.
        kinds: Event kinds to match.
        tags: Single-letter tag filters, keyed by letter (``{"d": ("mute",)}``).
        since: Inclusive lower ``created_at`` bound.
        until: Inclusive upper ``created_at`` bound.
        limit: Maximum number of stored events a relay should return.
        search: NIP-50 full-text query.

    Raises:
        TypeError: If a field has the wrong type.
        ValueError: If a tag key is not a single letter or a bound is negative.
    """

    ids: tuple[str, ...] | None = None
    authors: tuple[str, ...] | None = None
    kinds: tuple[int, ...] | None = None
    tags: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    since: int | None = None
    until: int | None = None
    limit: int | None = None
    search: str | None = None

    def __post_init__(self) -> None:
        if self.ids is not None:
            object.__setattr__(self, "ids", _frozen_strings(self.ids, "ids"))
        if self.authors is not None:
            object.__setattr__(self, "authors", _frozen_strings(self.authors, "authors"))
        if self.kinds is not None:
            if isinstance(self.kinds, str | bytes) or not isinstance(self.kinds, Iterable):
                raise TypeError("kinds must be a list of ints")
            kinds = tuple(self.kinds)
            for kind in kinds:
                validate_int(kind, "kinds")
            object.__setattr__(self, "kinds", kinds)

        tags: dict[str, tuple[str, ...]] = {}
        for key, values in dict(self.tags).items():
            if not isinstance(key, str):
                raise TypeError(f"Tag filter key must be a str, got {type(key).__name__}")
            letter = key.removeprefix("#")
            if len(letter) != 1 or not letter.isalpha():
                raise ValueError(f"Invalid tag filter key: {key!r}")
            tags[letter] = _frozen_strings(values, f"#{letter}")
        object.__setattr__(self, "tags", MappingProxyType(tags))

        for name in _INT_FIELDS:
            value = getattr(self, name)
            if value is not None:
                validate_int(value, name)
        if self.search is not None and not isinstance(self.search, str):
            raise TypeError("search must be a str")

    def __hash__(self) -> int:
        return hash(
            (
                self.ids,
                self.authors,
                self.kinds,
                tuple(sorted(self.tags.items())),
                self.since,
                self.until,
                self.limit,
                self.search,
            )
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Filter:
        """Build a filter from its JSON shape.

        Keys starting with ``#`` become tag filters; unknown keys are rejected.

        Raises:
            TypeError: If *data* is not a mapping or a value has the wrong type.
            ValueError: On unknown keys or invalid tag letters.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Filter must be a mapping, got {type(data).__name__}")
        kwargs: dict[str, Any] = {}
        tags: dict[str, Any] = {}
        for key, value in data.items():
            if not isinstance(key, str):
                raise TypeError(f"Filter key must be a str, got {type(key).__name__}")
            if key.startswith("#"):
                tags[key] = value
            elif key in _LIST_FIELDS or key in _INT_FIELDS or key == "search":
                kwargs[key] = value
            else:
                raise ValueError(f"Unknown filter field: {key!r}")
        return cls(tags=tags, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON shape sent in a ``REQ`` message."""
        result: dict[str, Any] = {}
        for name in _LIST_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = list(value)
        for letter, values in self.tags.items():
            result[f"#{letter}"] = list(values)
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.search is not None:
            result["search"] = self.search
        return result

    def is_empty(self) -> bool:
        """Return True if the filter constrains nothing."""
        return not self.to_dict()

    def has_authors(self) -> bool:
        return bool(self.authors)

    def matches(self, event: Event) -> bool:
        """Return True if *event* satisfies every constraint (``limit`` ignored)."""
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for letter, values in self.tags.items():
            present = {tag[1] for tag in event.get_matching_tags(letter) if len(tag) > 1}
            if not present.intersection(values):
                return False
        return True


def normalize_filters(filters: Filter | Mapping[str, Any] | Iterable[Any]) -> list[Filter]:
    """Normalize one filter, a mapping, or a sequence of either into a list.

    Raises:
        ValueError: If the result would be empty.
    """
    if isinstance(filters, Filter | Mapping):
        items: list[Any] = [filters]
    else:
        items = list(filters)
    result = [item if isinstance(item, Filter) else Filter.from_dict(item) for item in items]
    if not result:
        raise ValueError("At least one filter is required")
    return result
