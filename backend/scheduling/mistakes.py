"""Ordered ``exam item id -> count`` tally of driving mistakes."""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any


class MistakeTally:
    """Mistake counts keyed by exam item, kept in first-recorded order.

    Counts never go below zero and an item whose count reaches zero is
    dropped, so every stored entry has ``count >= 1``.
    """

    def __init__(self, counts: Iterable[tuple[int, int]] = ()) -> None:
        self._counts: dict[int, int] = {}
        for item_id, count in counts:
            if count > 0:
                self._counts[int(item_id)] = self._counts.get(int(item_id), 0) + int(count)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]] | None) -> 'MistakeTally':
        """Load the stored ``[{"id_item": .., "count": ..}]`` representation."""
        return cls((record['id_item'], record['count']) for record in records or ())

    def to_records(self) -> list[dict[str, int]]:
        return [{'id_item': item_id, 'count': count} for item_id, count in self._counts.items()]

    def count(self, item_id: int) -> int:
        return self._counts.get(item_id, 0)

    def increment(self, item_id: int) -> int:
        self._counts[item_id] = self._counts.get(item_id, 0) + 1
        return self._counts[item_id]

    def decrement(self, item_id: int) -> int:
        current = self._counts.get(item_id, 0)
        if current <= 1:
            self._counts.pop(item_id, None)
            return 0
        self._counts[item_id] = current - 1
        return self._counts[item_id]

    def apply(self, item_id: int, delta: int) -> int:
        if delta == 1:
            return self.increment(item_id)
        if delta == -1:
            return self.decrement(item_id)
        raise ValueError(f'delta must be +1 or -1, got {delta}')

    def total_points(self, penalties: Mapping[int, int]) -> int:
        """Sum of ``count * penalty``; items missing from ``penalties`` score nothing."""
        return sum(count * penalties.get(item_id, 0) for item_id, count in self._counts.items())

    def items(self) -> Iterator[tuple[int, int]]:
        return iter(self._counts.items())

    def __len__(self) -> int:
        return len(self._counts)

    def __bool__(self) -> bool:
        return bool(self._counts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MistakeTally):
            return NotImplemented
        return list(self._counts.items()) == list(other._counts.items())

    def __repr__(self) -> str:
        return f'MistakeTally({list(self._counts.items())!r})'
