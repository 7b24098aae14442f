"""Immutable set of entity ids marked for redaction."""

from typing import FrozenSet, Iterable, Iterator


class SelectionSet:
    """Value type: every mutation returns a new set, the original is untouched."""

    __slots__ = ("_ids",)

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: FrozenSet[str] = frozenset(ids)

    @property
    def ids(self) -> FrozenSet[str]:
        return self._ids

    def toggle(self, entity_id: str) -> "SelectionSet":
        if entity_id in self._ids:
            return SelectionSet(self._ids - {entity_id})
        return SelectionSet(self._ids | {entity_id})

    def select_all(self, entity_ids: Iterable[str]) -> "SelectionSet":
        return SelectionSet(self._ids | frozenset(entity_ids))

    def deselect_all(self, entity_ids: Iterable[str]) -> "SelectionSet":
        return SelectionSet(self._ids - frozenset(entity_ids))

    @staticmethod
    def replace(entity_ids: Iterable[str]) -> "SelectionSet":
        return SelectionSet(entity_ids)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __bool__(self) -> bool:
        return bool(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SelectionSet):
            return self._ids == other._ids
        if isinstance(other, (set, frozenset)):
            return self._ids == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._ids)

    def __repr__(self) -> str:
        return f"SelectionSet({sorted(self._ids)!r})"
