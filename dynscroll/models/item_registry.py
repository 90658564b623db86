"""Ordered registry of the logical list the engine virtualizes."""

from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass, field


@dataclass
class ListItem:
    """One logical list entry with a stable id."""
    id: Hashable
    payload: object = None
    index: int = -1


@dataclass
class RegistryChange:
    """Difference between two consecutive registry states."""
    old_ids: list = field(default_factory=list)
    removed_ids: list = field(default_factory=list)
    inserted_ids: list = field(default_factory=list)
    tail_changed: bool = False

    @property
    def was_empty(self) -> bool:
        return not self.old_ids

    @property
    def is_noop(self) -> bool:
        return not self.removed_ids and not self.inserted_ids


def coerce_item(element) -> ListItem:
    """Turn a caller-supplied element into a `ListItem`.

    Accepts `ListItem`, mappings with an ``"id"`` key and objects with an
    ``id`` attribute. The mapping/object itself becomes the payload.
    """
    if isinstance(element, ListItem):
        return ListItem(id=element.id, payload=element.payload)
    if isinstance(element, Mapping):
        if 'id' not in element:
            raise TypeError(f"List element has no 'id' key: {element!r}")
        return ListItem(id=element['id'], payload=element)
    if hasattr(element, 'id'):
        return ListItem(id=element.id, payload=element)
    raise TypeError(f"List element has no id: {element!r}")


class ItemRegistry:
    """Holds the ordered items; the single source of truth for ordering."""

    def __init__(self):
        self._items: list[ListItem] = []
        self._by_id: dict = {}

    def replace(self, elements: Iterable) -> RegistryChange:
        """Swap in a new ordered sequence and report what changed."""
        new_items = []
        new_by_id = {}
        for index, element in enumerate(elements):
            item = coerce_item(element)
            if item.id in new_by_id:
                raise ValueError(f"Duplicate item id {item.id!r} at index {index}")
            item.index = index
            new_items.append(item)
            new_by_id[item.id] = item

        old_ids = [item.id for item in self._items]
        old_tail = old_ids[-1] if old_ids else None
        new_tail = new_items[-1].id if new_items else None
        change = RegistryChange(
            old_ids=old_ids,
            removed_ids=[item_id for item_id in old_ids if item_id not in new_by_id],
            inserted_ids=[item.id for item in new_items if item.id not in self._by_id],
            tail_changed=old_tail != new_tail,
        )
        self._items = new_items
        self._by_id = new_by_id
        return change

    def get(self, item_id) -> ListItem | None:
        return self._by_id.get(item_id)

    def index_of(self, item_id) -> int:
        item = self._by_id.get(item_id)
        return item.index if item is not None else -1

    def at(self, index: int) -> ListItem:
        return self._items[index]

    def ids(self) -> list:
        return [item.id for item in self._items]

    def items(self) -> list[ListItem]:
        return list(self._items)

    def last_id(self):
        return self._items[-1].id if self._items else None

    def __len__(self):
        return len(self._items)

    def __contains__(self, item_id):
        return item_id in self._by_id

    def __iter__(self):
        return iter(self._items)
