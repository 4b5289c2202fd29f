"""
Tests for the guided-navigation pointer.
"""

from dataclasses import FrozenInstanceError

import pytest

from app.services.workout.pointer import (
    GroupShape,
    Pointer,
    START,
    iter_pointers,
    next_pointer,
    rest_after,
    total_steps,
)


def superset(rounds=3, items=2, **rest):
    group = {"rounds_total": rounds, "workout_items": [{} for _ in range(items)]}
    group.update(rest)
    return group


class TestNextPointer:
    def test_superset_round_robin(self):
        groups = [superset(rounds=3, items=2)]

        sequence = list(iter_pointers(groups))

        assert [(p.group_index, p.exercise_index, p.set_index, p.round_index) for p in sequence] == [
            (0, 0, 0, 0),
            (0, 1, 0, 0),
            (0, 0, 1, 1),
            (0, 1, 1, 1),
            (0, 0, 2, 2),
            (0, 1, 2, 2),
        ]
        assert next_pointer(sequence[-1], groups) is None

    def test_moves_to_next_group_and_resets(self):
        groups = [superset(rounds=1, items=1), superset(rounds=2, items=3)]

        result = next_pointer(START, groups)

        assert result == Pointer(group_index=1, exercise_index=0, set_index=0, round_index=0)

    def test_single_group_with_rounds(self):
        groups = [{"rounds_total": 3, "workout_items": [{}]}]

        assert next_pointer(START, groups) == Pointer(0, 0, 1, 1)
        assert next_pointer(Pointer(0, 0, 2, 2), groups) is None

    @pytest.mark.parametrize("group_index", [-1, 2, 10])
    def test_out_of_range_pointer_returns_none(self, group_index):
        groups = [superset(), superset()]

        assert next_pointer(Pointer(group_index=group_index), groups) is None

    def test_empty_snapshot(self):
        assert next_pointer(START, []) is None
        assert list(iter_pointers([])) == []

    def test_accepts_orm_like_objects(self):
        class Group:
            rounds_total = 2
            workout_items = ["a", "b"]

        assert next_pointer(Pointer(0, 1, 0, 0), [Group()]) == Pointer(0, 0, 1, 1)

    def test_accepts_group_shapes(self):
        assert next_pointer(START, [GroupShape(rounds_total=1, item_count=2)]) == Pointer(0, 1, 0, 0)


class TestSequenceProperties:
    def test_strictly_increasing_and_complete(self):
        groups = [superset(rounds=3, items=2), superset(rounds=1, items=1), superset(rounds=4, items=3)]

        sequence = list(iter_pointers(groups))

        keys = [p.sort_key() for p in sequence]
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)
        assert len(sequence) == total_steps(groups) == 6 + 1 + 12

    def test_iter_from_midpoint(self):
        groups = [superset(rounds=2, items=2)]

        remaining = list(iter_pointers(groups, start=Pointer(0, 0, 1, 1)))

        assert remaining == [Pointer(0, 0, 1, 1), Pointer(0, 1, 1, 1)]

    def test_set_number_follows_round(self):
        assert START.set_number == 1
        assert Pointer(0, 1, 2, 2).set_number == 3


class TestPointerSerialization:
    def test_dict_round_trip(self):
        pointer = Pointer(group_index=1, exercise_index=2, set_index=3, round_index=3)

        assert Pointer.from_dict(pointer.to_dict()) == pointer

    def test_from_empty_dict_is_start(self):
        assert Pointer.from_dict(None) == START
        assert Pointer.from_dict({}) == START

    def test_pointer_is_immutable(self):
        with pytest.raises(FrozenInstanceError):
            START.group_index = 3


class TestRestAfter:
    def test_between_exercises_inside_round(self):
        group = superset(rest_between_exercises_seconds=20, rest_after_round_seconds=90)

        assert rest_after(Pointer(0, 0, 0, 0), group) == 20

    def test_after_round(self):
        group = superset(rest_between_exercises_seconds=20, rest_after_round_seconds=90)

        assert rest_after(Pointer(0, 1, 0, 0), group) == 90

    def test_nothing_after_final_round(self):
        group = superset(rest_between_exercises_seconds=20, rest_after_round_seconds=90)

        assert rest_after(Pointer(0, 1, 2, 2), group) == 0

    def test_single_exercise_group_rests_after_round(self):
        group = {"rounds_total": 3, "workout_items": [{}], "rest_after_round_seconds": 120}

        assert rest_after(Pointer(0, 0, 0, 0), group) == 120
