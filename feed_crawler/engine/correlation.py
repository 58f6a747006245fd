"""Ephemeral correlation ids linking list items to their detail artifacts.

Ids are minted once per list item at parse time and never persisted. The
fan-out stages lose ordering, so every stage boundary rebuilds a fresh
id -> item index from the items still alive at that point.
"""

from __future__ import annotations

from typing import Iterable
from uuid import uuid4

from .models import ParsedTargetListItem, TaggedListItem


def new_correlation_id() -> str:
    return uuid4().hex


def tag_items(items: Iterable[ParsedTargetListItem]) -> list[TaggedListItem]:
    return [TaggedListItem(correlation_id=new_correlation_id(), fields=dict(item)) for item in items]


def index_by_correlation(items: Iterable[TaggedListItem]) -> dict[str, TaggedListItem]:
    return {item.correlation_id: item for item in items}


__all__ = ["index_by_correlation", "new_correlation_id", "tag_items"]
