"""Recent learner activity feed (newest first, bounded)."""

from datetime import datetime
from typing import Any

from progression_engine.store import Transaction
from progression_engine.store.keys import activity_key
from progression_engine.utils.timestamps import from_iso, to_iso


DEFAULT_FEED_SIZE = 20


class ActivityItem:
    """One completed lesson, exam or quiz."""

    def __init__(
        self,
        item_id: str,
        title: str,
        module_id: str,
        kind: str,
        at: datetime,
    ):
        self.item_id = item_id
        self.title = title
        self.module_id = module_id
        self.kind = kind
        self.at = at

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ActivityItem":
        return cls(
            item_id=record["item_id"],
            title=record.get("title", ""),
            module_id=record.get("module_id", ""),
            kind=record.get("kind", ""),
            at=from_iso(record.get("at")),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "title": self.title,
            "module_id": self.module_id,
            "kind": self.kind,
            "at": to_iso(self.at),
        }


def items_from_feed(record: dict[str, Any] | None) -> list[ActivityItem]:
    if not record:
        return []
    return [ActivityItem.from_record(item) for item in record.get("items", [])]


async def record_activity_in(
    tx: Transaction,
    user_id: str,
    item: ActivityItem,
    max_items: int = DEFAULT_FEED_SIZE,
) -> list[ActivityItem]:
    """Prepend ``item`` to the learner's feed within ``tx``."""
    items = [item, *items_from_feed(await tx.get(activity_key(user_id)))][:max_items]
    tx.set(activity_key(user_id), {"items": [i.to_record() for i in items]})
    return items
