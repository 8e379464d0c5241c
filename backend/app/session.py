"""
Per-user session state: the habit list, XP and goals of one signed-in user.

The session is the local authority between saves. Mutations apply to it
optimistically and the caller persists the matching payload afterwards;
a failed save is reported through the notification outbox and never rolled
back. There is no conflict detection against the remote store.
"""
import logging
import threading
import time
from dataclasses import dataclass, asdict, field
from datetime import date, datetime
from typing import Callable

from .engine.habits import (
    Habit, habit_from_record, habit_to_record, new_habit,
    add_habit, remove_habit, find_habit, roll_over,
)
from .engine.streak import ToggleResult, toggle_completion, is_celebration
from .errors import ProfileLoadFailure

logger = logging.getLogger(__name__)

ProfileLoader = Callable[[str], dict | None]


@dataclass(frozen=True)
class Notification:
    kind: str           # 'info' | 'error'
    title: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PendingSave:
    """A partial profile staged for writing, ordered by version within its session."""
    version: int
    updates: dict = field(compare=False)

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(sorted(self.updates))


class HabitSession:
    def __init__(self, user_id: str):
        self.user_id = user_id
        self.habits: list[Habit] = []
        self.xp = 0
        self.goals = ""
        self.loaded = False
        self.lock = threading.Lock()
        self.save_lock = threading.Lock()
        self._outbox: list[Notification] = []
        self._unreadable: list = []
        self._save_version = 0
        self._written: dict[tuple[str, ...], int] = {}

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def load(self, loader: ProfileLoader) -> None:
        """Fetch the stored profile once. Later calls are no-ops until close()."""
        if self.loaded:
            return
        try:
            record = loader(self.user_id)
            if record is None:
                # New users have no profile row until their first save.
                logger.info("Profile not provisioned yet for %s...", self.user_id[:8])
            else:
                self._apply_record(record)
        except ProfileLoadFailure as e:
            logger.error("Error loading profile for %s...: %s", self.user_id[:8], e)
            self.notify("error", "Error", "Could not load your data.")
        finally:
            self.loaded = True

    def _apply_record(self, record: dict) -> None:
        """
        Unreadable habit entries are kept aside untouched and written back on
        every save, so a bad entry never costs the user the rest of the list.
        """
        try:
            xp = max(int(record.get("xp") or 0), 0)
            raw_habits = list(record.get("habits") or [])
        except (AttributeError, TypeError, ValueError) as e:
            raise ProfileLoadFailure(f"unreadable profile record: {e!r}") from e

        habits: list[Habit] = []
        unreadable: list = []
        for raw in raw_habits:
            try:
                habits.append(habit_from_record(raw))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping unreadable habit for %s...: %r (%r)", self.user_id[:8], raw, e)
                unreadable.append(raw)

        self.habits = habits
        self.xp = xp
        self.goals = record.get("goals") or ""
        self._unreadable = unreadable
        if unreadable:
            self.notify("error", "Some habits could not be read",
                        f"{len(unreadable)} stored habit(s) could not be shown. They are kept as they were.")

    def close(self) -> None:
        self.habits = []
        self.xp = 0
        self.goals = ""
        self._outbox = []
        self._unreadable = []
        self.loaded = False

    # ── Notifications ─────────────────────────────────────────────────────────

    def notify(self, kind: str, title: str, message: str) -> None:
        self._outbox.append(Notification(kind, title, message))

    def drain_notifications(self) -> list[Notification]:
        pending, self._outbox = self._outbox, []
        return pending

    # ── Actions ───────────────────────────────────────────────────────────────

    def roll_over_completions(self, today: date) -> None:
        self.habits = [roll_over(h, today) for h in self.habits]

    def toggle(self, habit_id: str, today: date) -> ToggleResult | None:
        """Toggle one habit's completion for today. Returns None for an unknown id."""
        self.roll_over_completions(today)
        habit = find_habit(self.habits, habit_id)
        if habit is None:
            return None

        result = toggle_completion(habit, today, self.xp)
        self.habits = [result.habit if h.id == habit_id else h for h in self.habits]
        self.xp = result.xp

        if is_celebration(result.streak_achieved):
            self.notify("info", f"🔥 {result.streak_achieved}-day streak!", "Keep it up!")
        return result

    def add(self, name: str, category: str, now: datetime) -> Habit:
        habit = new_habit(name, category, (h.id for h in self.habits), now)
        self.habits = add_habit(self.habits, habit)
        self.notify("info", "Habit added", f'You added "{name}" to your list.')
        return habit

    def delete(self, habit_id: str) -> bool:
        if find_habit(self.habits, habit_id) is None:
            return False
        self.habits = remove_habit(self.habits, habit_id)
        self.notify("info", "Habit deleted", "The habit was removed from your list.")
        return True

    def set_goals(self, goals: str) -> None:
        self.goals = goals

    # ── Persistence payloads ──────────────────────────────────────────────────

    def habits_payload(self) -> dict:
        records = [habit_to_record(h) for h in self.habits]
        return {"habits": [*records, *self._unreadable], "xp": self.xp}

    def goals_payload(self) -> dict:
        return {"goals": self.goals}

    def stage_save(self, updates: dict) -> PendingSave:
        """Call under self.lock, right after the mutation the payload reflects."""
        self._save_version += 1
        return PendingSave(self._save_version, updates)

    def is_superseded(self, save: PendingSave) -> bool:
        """True once a newer payload for the same columns has been written. Call under save_lock."""
        return self._written.get(save.columns, 0) > save.version

    def mark_written(self, save: PendingSave) -> None:
        self._written[save.columns] = max(self._written.get(save.columns, 0), save.version)


class SessionRegistry:
    """
    Live sessions keyed by user id. Sign-in initializes, sign-out tears down.
    Sessions idle for longer than idle_timeout seconds are torn down on the
    next lookup, and the following request signs the user in again.
    """

    def __init__(self, idle_timeout: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: dict[str, HabitSession] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def sign_in(self, user_id: str, loader: ProfileLoader) -> HabitSession:
        session = HabitSession(user_id)
        with self._lock:
            previous = self._sessions.get(user_id)
            self._sessions[user_id] = session
            self._last_seen[user_id] = self._clock()
        if previous:
            previous.close()
        with session.lock:
            session.load(loader)
        logger.info("Session started for %s...", user_id[:8])
        return session

    def get(self, user_id: str, loader: ProfileLoader) -> HabitSession:
        self.expire_idle()
        with self._lock:
            session = self._sessions.get(user_id)
            if session is not None:
                self._last_seen[user_id] = self._clock()
        if session is None:
            return self.sign_in(user_id, loader)
        return session

    def sign_out(self, user_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(user_id, None)
            self._last_seen.pop(user_id, None)
        if session is None:
            return False
        session.close()
        logger.info("Session ended for %s...", user_id[:8])
        return True

    def expire_idle(self) -> int:
        cutoff = self._clock() - self.idle_timeout
        with self._lock:
            idle = [uid for uid, seen in self._last_seen.items() if seen < cutoff]
            expired = [self._sessions.pop(uid) for uid in idle]
            for uid in idle:
                del self._last_seen[uid]
        for session in expired:
            session.close()
        if expired:
            logger.info("Expired %d idle session(s)", len(expired))
        return len(expired)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
