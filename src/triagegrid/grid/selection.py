"""
Selection and expansion side-maps.

Both are keyed purely by record id and never look at the record store:
ids that disappear from a fetch stay in the set and come back to life
when a later fetch reintroduces them.
"""

from typing import Dict, Iterable, List


class SelectionManager:
    """Insertion-ordered set of selected record ids."""

    def __init__(self) -> None:
        self._ids: Dict[str, None] = {}

    def toggle(self, record_id: str) -> bool:
        """Flip selection of ``record_id``; returns the new state."""
        if record_id in self._ids:
            del self._ids[record_id]
            return False
        self._ids[record_id] = None
        return True

    def select_all_visible(self, visible_ids: Iterable[str]) -> None:
        """Select exactly the visible ids, or clear if that is already the selection."""
        visible = list(dict.fromkeys(visible_ids))
        if visible and set(visible) == set(self._ids):
            self.clear()
            return
        self._ids = dict.fromkeys(visible)

    def clear(self) -> None:
        self._ids = {}

    def discard_many(self, record_ids: Iterable[str]) -> None:
        for record_id in record_ids:
            self._ids.pop(record_id, None)

    def is_selected(self, record_id: str) -> bool:
        return record_id in self._ids

    def count(self) -> int:
        return len(self._ids)

    def ids(self) -> List[str]:
        return list(self._ids)

    def visible_in(self, present_ids: Iterable[str]) -> List[str]:
        """Selected ids that are present in ``present_ids``."""
        return [i for i in present_ids if i in self._ids]

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


class ExpansionManager:
    """Ids whose detail row is open. Any number may be open at once."""

    def __init__(self) -> None:
        self._ids: Dict[str, None] = {}

    def toggle(self, record_id: str) -> bool:
        if record_id in self._ids:
            del self._ids[record_id]
            return False
        self._ids[record_id] = None
        return True

    def is_expanded(self, record_id: str) -> bool:
        return record_id in self._ids

    def collapse_all(self) -> None:
        self._ids = {}

    def ids(self) -> List[str]:
        return list(self._ids)
