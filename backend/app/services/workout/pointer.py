"""
Guided-navigation pointer for a workout session snapshot.

The pointer walks groups -> rounds -> exercises. Inside a group every exercise
is performed once per round (round-robin), so a superset cycles through its
2-3 exercises before the round count advances. The pure functions here are
used by the server and by the device client alike.
"""
from dataclasses import dataclass, asdict
from typing import Any, Iterator, List, NamedTuple, Optional, Sequence


@dataclass(frozen=True)
class Pointer:
    group_index: int = 0
    exercise_index: int = 0
    set_index: int = 0
    round_index: int = 0

    @property
    def set_number(self) -> int:
        """1-based number of the set performed at this position."""
        return self.round_index + 1

    def sort_key(self) -> tuple:
        return (self.group_index, self.round_index, self.exercise_index)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Pointer":
        if not data:
            return cls()
        return cls(
            group_index=int(data.get("group_index", 0)),
            exercise_index=int(data.get("exercise_index", 0)),
            set_index=int(data.get("set_index", 0)),
            round_index=int(data.get("round_index", 0)),
        )


START = Pointer()


class GroupShape(NamedTuple):
    rounds_total: int
    item_count: int


def _read(obj: Any, key: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def shape_of(groups: Sequence[Any]) -> List[GroupShape]:
    """Reduce snapshot groups (ORM rows, schemas or plain dicts) to their navigation shape."""
    shapes = []
    for group in groups:
        if isinstance(group, GroupShape):
            shapes.append(group)
            continue
        items = _read(group, "workout_items") or []
        shapes.append(GroupShape(int(_read(group, "rounds_total", 1) or 1), len(items)))
    return shapes


def next_pointer(pointer: Pointer, groups: Sequence[Any]) -> Optional[Pointer]:
    """Return the position after ``pointer``, or None once the snapshot is exhausted."""
    shapes = shape_of(groups)
    if pointer.group_index < 0 or pointer.group_index >= len(shapes):
        return None
    group = shapes[pointer.group_index]

    # Next exercise in the same round
    if pointer.exercise_index < group.item_count - 1:
        return Pointer(
            group_index=pointer.group_index,
            exercise_index=pointer.exercise_index + 1,
            set_index=pointer.set_index,
            round_index=pointer.round_index,
        )

    # Next round of the same group
    if pointer.round_index < group.rounds_total - 1:
        return Pointer(
            group_index=pointer.group_index,
            exercise_index=0,
            set_index=pointer.set_index + 1,
            round_index=pointer.round_index + 1,
        )

    if pointer.group_index < len(shapes) - 1:
        return Pointer(group_index=pointer.group_index + 1)

    return None


def iter_pointers(groups: Sequence[Any], start: Pointer = START) -> Iterator[Pointer]:
    """Yield every position from ``start`` (inclusive) to the end of the snapshot."""
    shapes = shape_of(groups)
    if not shapes or start.group_index >= len(shapes):
        return
    current: Optional[Pointer] = start
    while current is not None:
        yield current
        current = next_pointer(current, shapes)


def total_steps(groups: Sequence[Any]) -> int:
    return sum(shape.rounds_total * shape.item_count for shape in shape_of(groups))


def rest_after(pointer: Pointer, group: Any) -> int:
    """
    Seconds of rest due after completing the exercise at ``pointer``.

    Inside a superset round the between-exercises rest applies; after the last
    exercise of a non-final round the after-round rest applies. Nothing is due
    after a group's final round.
    """
    items = _read(group, "workout_items") or []
    rounds_total = int(_read(group, "rounds_total", 1) or 1)
    is_last_item = pointer.exercise_index >= len(items) - 1
    is_last_round = pointer.round_index >= rounds_total - 1

    if len(items) > 1 and not is_last_item:
        return int(_read(group, "rest_between_exercises_seconds", 0) or 0)
    if is_last_item and not is_last_round:
        return int(_read(group, "rest_after_round_seconds", 0) or 0)
    return 0
