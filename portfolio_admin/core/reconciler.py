"""
Entity List Reconciler
======================

Pure functions that merge Content API responses into ordered, in-memory
collections without refetching the whole list.

Ordering Rules:
---------------
- Experience: start date descending; equal or missing start dates fall back
  to ascending ``order`` (non-numeric counts as 0). Missing dates sort last.
- Blog: ``publishedAt`` descending, then ``createdAt`` descending. Missing
  dates sort last.
- Every other kind: creations are prepended, updates replace in place.

Collections are re-sorted after inserts and updates, never after deletes.
When a response does not carry the saved entity, ``RefetchRequired`` is
raised and the caller reloads that collection instead of guessing.

Author: Portfolio Admin Project
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from portfolio_admin.core import config

Entity = Dict[str, Any]


class RefetchRequired(Exception):
    """Raised when a response is too ambiguous to merge locally."""

    def __init__(self, kind: str, reason: str):
        super().__init__(f"{kind} collection needs a refetch: {reason}")
        self.kind = kind
        self.reason = reason


# ============================================================================
# HELPERS
# ============================================================================

def entity_id(entity: Entity) -> Optional[str]:
    """Server id of an entity (``_id``, falling back to ``id``)."""
    if not entity:
        return None
    value = entity.get("_id")
    if value is None:
        value = entity.get("id")
    return value


def parse_timestamp(value: Any) -> Optional[float]:
    """
    Convert an API date value into a POSIX timestamp.

    Accepts datetimes, dates, and ISO 8601 strings including a trailing ``Z``
    and month precision (``2023-04``). Naive values are treated as UTC.
    Returns None for missing or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Milliseconds since the epoch, as serialised by JavaScript clients
        return float(value) / 1000.0
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        if len(text) == 7 and text[4] == "-":
            text = text + "-01"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _numeric_order(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _timestamp_or_zero(value: Any) -> float:
    ts = parse_timestamp(value)
    return ts if ts is not None else 0.0


def experience_sort_key(entity: Entity) -> Tuple[float, float]:
    return (-_timestamp_or_zero(entity.get("startDate")), _numeric_order(entity.get("order")))


def blog_sort_key(entity: Entity) -> Tuple[float, float]:
    created = _timestamp_or_zero(entity.get("createdAt"))
    published = parse_timestamp(entity.get("publishedAt"))
    return (-(published if published is not None else created), -created)


SORT_KEYS: Dict[str, Callable[[Entity], Any]] = {
    config.KIND_EXPERIENCE: experience_sort_key,
    config.KIND_BLOG: blog_sort_key,
}


# ============================================================================
# COLLECTION
# ============================================================================

@dataclass(frozen=True)
class OrderedCollection:
    """Immutable, ordered list of entities of one kind."""
    kind: str
    items: Tuple[Entity, ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.items)

    def ids(self) -> List[Optional[str]]:
        return [entity_id(item) for item in self.items]

    def find(self, id_: str) -> Optional[Entity]:
        for item in self.items:
            if entity_id(item) == id_:
                return item
        return None

    def as_list(self) -> List[Entity]:
        return list(self.items)

    @property
    def is_sorted_kind(self) -> bool:
        return self.kind in SORT_KEYS


def _ordered(kind: str, items: Iterable[Entity]) -> Tuple[Entity, ...]:
    key = SORT_KEYS.get(kind)
    if key is None:
        return tuple(items)
    return tuple(sorted(items, key=key))


def build_collection(kind: str, items: Optional[Iterable[Entity]] = None) -> OrderedCollection:
    """Create a collection from a server listing, applying the kind's ordering."""
    return OrderedCollection(kind=kind, items=_ordered(kind, [i for i in (items or []) if i]))


# ============================================================================
# RECONCILIATION
# ============================================================================

def reconcile_create(collection: OrderedCollection, entity: Optional[Entity]) -> OrderedCollection:
    """Merge a newly created entity into ``collection``."""
    if not entity:
        raise RefetchRequired(collection.kind, "create response carried no entity")

    new_id = entity_id(entity)
    if new_id is not None and collection.find(new_id) is not None:
        # Already present (e.g. a refetch landed first): treat as an update
        return reconcile_update(collection, new_id, entity)

    if collection.is_sorted_kind:
        items = _ordered(collection.kind, collection.items + (entity,))
    else:
        items = (entity,) + collection.items
    return OrderedCollection(kind=collection.kind, items=items)


def reconcile_update(collection: OrderedCollection, id_: str, entity: Optional[Entity]) -> OrderedCollection:
    """Replace the entity with ``id_`` by the server's copy."""
    if not entity:
        raise RefetchRequired(collection.kind, "update response carried no entity")
    if collection.find(id_) is None:
        raise RefetchRequired(collection.kind, f"updated entity {id_} is not in the local list")

    items = tuple(entity if entity_id(item) == id_ else item for item in collection.items)
    if collection.is_sorted_kind:
        items = _ordered(collection.kind, items)
    return OrderedCollection(kind=collection.kind, items=items)


def reconcile_delete(collection: OrderedCollection, id_: str) -> OrderedCollection:
    """Remove the entity with ``id_``. The survivors keep their relative order."""
    items = tuple(item for item in collection.items if entity_id(item) != id_)
    return OrderedCollection(kind=collection.kind, items=items)
