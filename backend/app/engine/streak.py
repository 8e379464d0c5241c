"""
Streak tracking — pure functions, no DB access.
"""
from dataclasses import dataclass, replace
from datetime import date, timedelta

from .habits import Habit


@dataclass(frozen=True)
class ToggleResult:
    habit: Habit
    xp: int
    streak_achieved: int


def toggle_completion(habit: Habit, today: date, current_xp: int) -> ToggleResult:
    """
    Flip a habit's completion for today and reconcile streak and XP.

    Un-completing reconstructs last_completed_date as yesterday when the
    streak before the decrement was above 1, otherwise clears it. No history
    is kept, so repeated toggles on one day are not a true undo.
    Completing extends the streak only when the last completion was yesterday.
    """
    yesterday = today - timedelta(days=1)

    if habit.completed:
        updated = replace(
            habit,
            completed=False,
            streak=max(habit.streak - 1, 0),
            last_completed_date=yesterday if habit.streak > 1 else None,
        )
        return ToggleResult(updated, max(current_xp - 1, 0), 0)

    if habit.last_completed_date == yesterday:
        new_streak = habit.streak + 1
    else:
        new_streak = 1

    updated = replace(habit, completed=True, streak=new_streak, last_completed_date=today)
    return ToggleResult(updated, max(current_xp, 0) + 1, new_streak)


def is_celebration(streak_achieved: int) -> bool:
    return streak_achieved > 1
