"""
Habit records and collection operations — pure functions, no DB access.
"""
from dataclasses import dataclass, replace
from datetime import date, datetime

ICONS: dict[str, str] = {
    "habit-1": "book-open",
    "habit-2": "dumbbell",
    "habit-3": "heart-pulse",
}
DEFAULT_ICON = "trending-up"


@dataclass(frozen=True)
class Habit:
    id: str
    name: str
    category: str
    completed: bool = False
    streak: int = 0
    last_completed_date: date | None = None


def icon_for_habit(habit_id: str) -> str:
    return ICONS.get(habit_id, DEFAULT_ICON)


def habit_from_record(record: dict) -> Habit:
    """
    Build a Habit from its stored camelCase record. Missing fields take creation values.
    Timestamps in lastCompletedDate are cut to their calendar day.
    Raises KeyError or ValueError for a record without an id or with unreadable values.
    """
    last = record.get("lastCompletedDate")
    return Habit(
        id=record["id"],
        name=record.get("name", ""),
        category=record.get("category", ""),
        completed=bool(record.get("completed", False)),
        streak=max(int(record.get("streak") or 0), 0),
        last_completed_date=date.fromisoformat(str(last)[:10]) if last else None,
    )


def habit_to_record(habit: Habit) -> dict:
    return {
        "id": habit.id,
        "name": habit.name,
        "category": habit.category,
        "completed": habit.completed,
        "streak": habit.streak,
        "lastCompletedDate": habit.last_completed_date.isoformat() if habit.last_completed_date else None,
    }


def new_habit(name: str, category: str, existing_ids, now: datetime) -> Habit:
    """
    Fresh habit with an id of the form habit-<epoch ms>.
    The timestamp is bumped until the id is unused in the collection.
    """
    taken = set(existing_ids)
    stamp = int(now.timestamp() * 1000)
    while f"habit-{stamp}" in taken:
        stamp += 1
    return Habit(id=f"habit-{stamp}", name=name, category=category)


def add_habit(habits: list[Habit], habit: Habit) -> list[Habit]:
    return [*habits, habit]


def remove_habit(habits: list[Habit], habit_id: str) -> list[Habit]:
    return [h for h in habits if h.id != habit_id]


def find_habit(habits: list[Habit], habit_id: str) -> Habit | None:
    return next((h for h in habits if h.id == habit_id), None)


def roll_over(habit: Habit, today: date) -> Habit:
    """
    A habit still marked completed from an earlier day is pending again today.
    Streak and last_completed_date are kept so today's completion can extend it.
    Habits without a completion date, or dated today or later, are left alone
    so the toggle still un-completes them.
    """
    last = habit.last_completed_date
    if habit.completed and last is not None and last < today:
        return replace(habit, completed=False)
    return habit
