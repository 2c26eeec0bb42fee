"""
Merging of duplicate groups into a single clustered event.
"""

from __future__ import annotations

from typing import Dict, List

from intel.data.schema import ClusteredEvent, NewsItem, SourceRef

from .schema import DuplicateGroup


def _item_sort_key(item: NewsItem) -> float:
    # Undated items sort after every dated one when ordering newest first
    return item.pub_date.timestamp() if item.pub_date else float("-inf")


def merge_group(group: DuplicateGroup, max_sources: int = 5) -> ClusteredEvent:
    """
    Fold a group's duplicates into its primary event.

    - all_items: union across members, newest first, undated last
    - top_sources: union keyed by lower-cased name, by tier, capped at max_sources
    - source_count: size of the full source union
    - last_updated: latest across members
    - lat/lon: the primary keeps its own; without any it adopts the first
      duplicate that has coordinates

    Inputs are never mutated; a group without duplicates returns its primary.
    """

    primary = group.primary_event
    if not group.duplicates:
        return primary

    items: List[NewsItem] = list(primary.all_items)
    sources: Dict[str, SourceRef] = {s.name.lower(): s for s in primary.top_sources}

    for match in group.duplicates:
        items.extend(match.event.all_items)
        for source in match.event.top_sources:
            sources[source.name.lower()] = source

    items.sort(key=_item_sort_key, reverse=True)
    top_sources = sorted(sources.values(), key=lambda s: s.tier)[:max_sources]

    last_updated = max(
        [primary.last_updated] + [m.event.last_updated for m in group.duplicates]
    )

    update = {
        "all_items": items,
        "top_sources": top_sources,
        "source_count": len(sources),
        "last_updated": last_updated,
    }

    if not primary.has_location:
        located = next((m.event for m in group.duplicates if m.event.has_location), None)
        if located is not None:
            update["lat"] = located.lat
            update["lon"] = located.lon

    return primary.model_copy(update=update)
