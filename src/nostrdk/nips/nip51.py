"""NIP-51 list events.

A list event carries its items as tags (``["p", <pubkey>]``,
``["e", <event id>]``, ``["t", <hashtag>]``, ``["word", <text>]``) next to
descriptive metadata tags that are not items. The session folds mute-list
items into a ``target -> category`` mapping where the category is the tag
name.

See Also:
    [Session][nostrdk.core.session.Session]: Rebuilds ``muted_ids`` from
        these items whenever a new active user is bootstrapped.
"""

from __future__ import annotations

from collections.abc import Iterable

from nostrdk.models.event import Event


# Tags describing the list itself rather than listing an item
METADATA_TAGS: frozenset[str] = frozenset(
    {"d", "name", "title", "description", "image", "summary", "alt", "client"}
)


def list_items(event: Event) -> list[list[str]]:
    """Return the item tags of a list event, in order.

    Tags with no value and metadata tags (see ``METADATA_TAGS``) are skipped.
    """
    return [tag for tag in event.tags if len(tag) > 1 and tag[0] not in METADATA_TAGS]


def mute_entries(events: Iterable[Event]) -> dict[str, str]:
    """Fold the items of several mute-list events into ``target -> category``.

    Later events win for a target present in more than one list.
    """
    muted: dict[str, str] = {}
    for event in events:
        for tag in list_items(event):
            muted[tag[1]] = tag[0]
    return muted
