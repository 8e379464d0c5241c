from datetime import date, datetime, timezone
import pytest
from app.engine.habits import (
    Habit, habit_from_record, habit_to_record, new_habit,
    add_habit, remove_habit, find_habit, roll_over, icon_for_habit,
)

TODAY = date(2024, 6, 10)
NOW = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


def make_habits() -> list[Habit]:
    return [
        Habit("habit-1", "Read", "Learning"),
        Habit("habit-2", "Gym", "Fitness", completed=True, streak=3, last_completed_date=TODAY),
        Habit("habit-3", "Meditate", "Health"),
    ]


class TestRecords:
    def test_record_uses_camel_case_fields(self):
        record = habit_to_record(make_habits()[1])
        assert record == {
            "id": "habit-2",
            "name": "Gym",
            "category": "Fitness",
            "completed": True,
            "streak": 3,
            "lastCompletedDate": "2024-06-10",
        }

    def test_record_round_trip(self):
        for habit in make_habits():
            assert habit_from_record(habit_to_record(habit)) == habit

    def test_missing_fields_take_creation_values(self):
        habit = habit_from_record({"id": "habit-9", "name": "Walk"})
        assert habit.completed is False
        assert habit.streak == 0
        assert habit.last_completed_date is None
        assert habit.category == ""

    def test_negative_stored_streak_clamped(self):
        assert habit_from_record({"id": "h", "streak": -2}).streak == 0


class TestNewHabit:
    def test_fresh_habit_defaults(self):
        habit = new_habit("Stretch", "Health", [], NOW)
        assert habit.id == f"habit-{int(NOW.timestamp() * 1000)}"
        assert habit.completed is False
        assert habit.streak == 0
        assert habit.last_completed_date is None

    def test_id_is_unique_within_collection(self):
        first = new_habit("A", "", [], NOW)
        second = new_habit("B", "", [first.id], NOW)
        third = new_habit("C", "", [first.id, second.id], NOW)
        assert len({first.id, second.id, third.id}) == 3


class TestCollection:
    def test_add_appends_in_order(self):
        habits = make_habits()
        extra = Habit("habit-4", "Journal", "Mind")
        updated = add_habit(habits, extra)
        assert [h.id for h in updated] == ["habit-1", "habit-2", "habit-3", "habit-4"]
        assert len(habits) == 3

    def test_add_then_delete_round_trip(self):
        habits = make_habits()
        extra = new_habit("Journal", "Mind", [h.id for h in habits], NOW)
        assert remove_habit(add_habit(habits, extra), extra.id) == habits

    def test_delete_preserves_remaining_order(self):
        updated = remove_habit(make_habits(), "habit-2")
        assert [h.id for h in updated] == ["habit-1", "habit-3"]

    def test_delete_unknown_id_is_noop(self):
        habits = make_habits()
        assert remove_habit(habits, "nope") == habits

    def test_find(self):
        habits = make_habits()
        assert find_habit(habits, "habit-3").name == "Meditate"
        assert find_habit(habits, "missing") is None


class TestRollOver:
    def test_completed_earlier_day_becomes_pending(self):
        habit = Habit("h", "Read", "", completed=True, streak=2, last_completed_date=date(2024, 6, 9))
        rolled = roll_over(habit, TODAY)
        assert rolled.completed is False
        assert rolled.streak == 2
        assert rolled.last_completed_date == date(2024, 6, 9)

    def test_completed_today_unchanged(self):
        habit = make_habits()[1]
        assert roll_over(habit, TODAY) is habit

    def test_pending_unchanged(self):
        habit = make_habits()[0]
        assert roll_over(habit, TODAY) is habit


class TestIcons:
    @pytest.mark.parametrize("habit_id,icon", [
        ("habit-1", "book-open"),
        ("habit-2", "dumbbell"),
        ("habit-3", "heart-pulse"),
        ("habit-1718000000000", "trending-up"),
    ])
    def test_icon_lookup(self, habit_id, icon):
        assert icon_for_habit(habit_id) == icon


class TestLenientRecords:
    def test_timestamp_date_cut_to_day(self):
        habit = habit_from_record({"id": "h", "lastCompletedDate": "2024-06-09T00:00:00Z"})
        assert habit.last_completed_date == date(2024, 6, 9)

    def test_missing_id_raises(self):
        with pytest.raises(KeyError):
            habit_from_record({"name": "No id"})

    def test_garbage_values_raise(self):
        with pytest.raises(ValueError):
            habit_from_record({"id": "h", "streak": "lots"})
        with pytest.raises(ValueError):
            habit_from_record({"id": "h", "lastCompletedDate": "yesterday"})


class TestRollOverLeavesUndatedAndCurrent:
    def test_completed_without_date_unchanged(self):
        habit = Habit("h", "Read", "", completed=True, streak=0)
        assert roll_over(habit, TODAY) is habit

    def test_completed_future_date_unchanged(self):
        habit = Habit("h", "Read", "", completed=True, streak=1, last_completed_date=date(2024, 6, 11))
        assert roll_over(habit, TODAY) is habit
