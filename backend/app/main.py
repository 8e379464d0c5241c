"""
Habit Quest — FastAPI backend
"""
import logging
import os
from datetime import date, datetime, timedelta, timezone

from fastapi import FastAPI, Header, HTTPException, Depends, Request, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .db import get_client, resolve_user, load_profile, save_profile
from .engine.habits import Habit, habit_to_record, icon_for_habit
from .engine.xp import current_rank, next_rank
from .errors import PlanGenerationFailure, ProfileSaveFailure
from .models import HabitCreate, GoalsUpdate
from .planner import generate_plan
from .session import HabitSession, PendingSave, SessionRegistry

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="Habit Quest API")
app.state.limiter = limiter
app.state.sessions = SessionRegistry(idle_timeout=float(os.environ.get("SESSION_IDLE_SECONDS", "3600")))
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:9002",
]
ALLOWED_ORIGINS = [
    o.strip() for o in os.environ.get("ALLOWED_ORIGINS", "").split(",") if o.strip()
] or DEFAULT_ORIGINS
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Client-Date"],
)


@app.get("/health")
def health():
    try:
        db = get_client()
        db.table("profiles").select("user_id").limit(1).execute()
        return {"status": "ok", "db": "ok"}
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
        raise HTTPException(status_code=503, detail="DB unavailable")


# ── Auth ──────────────────────────────────────────────────────────────────────

def get_access_token(authorization: str = Header(...)) -> str:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")
    return authorization.removeprefix("Bearer ").strip()


def require_user(access_token: str = Depends(get_access_token)) -> str:
    user_id = resolve_user(get_client(), access_token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid access token")
    return user_id


def current_session(request: Request, user_id: str = Depends(require_user)) -> HabitSession:
    return request.app.state.sessions.get(user_id, _load)


def client_today(x_client_date: str | None = Header(None)) -> date:
    """
    The user's calendar day. Clients send X-Client-Date (YYYY-MM-DD) so streaks
    follow their local midnight. It must lie within a day of the server's UTC date.
    """
    server_today = datetime.now(timezone.utc).date()
    if not x_client_date:
        return server_today
    try:
        day = date.fromisoformat(x_client_date)
    except ValueError:
        raise HTTPException(status_code=422, detail="X-Client-Date must be YYYY-MM-DD")
    if abs(day - server_today) > timedelta(days=1):
        raise HTTPException(status_code=422, detail="X-Client-Date is too far from the current date")
    return day


# ── Session ───────────────────────────────────────────────────────────────────

@app.post("/api/session", status_code=201)
@limiter.limit("20/minute")
def sign_in(request: Request, user_id: str = Depends(require_user), today: date = Depends(client_today)):
    session = request.app.state.sessions.sign_in(user_id, _load)
    with session.lock:
        return {"status": "signed_in", **_profile_view(session, today), **_drain(session)}


@app.delete("/api/session")
def sign_out(request: Request, user_id: str = Depends(require_user)):
    if not request.app.state.sessions.sign_out(user_id):
        return {"status": "not_signed_in"}
    return {"status": "signed_out"}


# ── Profile ───────────────────────────────────────────────────────────────────

@app.get("/api/profile")
def get_profile(session: HabitSession = Depends(current_session), today: date = Depends(client_today)):
    with session.lock:
        return {**_profile_view(session, today), **_drain(session)}


@app.get("/api/notifications")
def get_notifications(session: HabitSession = Depends(current_session)):
    with session.lock:
        return _drain(session)


# ── Habits ────────────────────────────────────────────────────────────────────

@app.post("/api/habits", status_code=201)
def create_habit(body: HabitCreate, background_tasks: BackgroundTasks,
                 session: HabitSession = Depends(current_session)):
    with session.lock:
        habit = session.add(body.name, body.category, datetime.now(timezone.utc))
        background_tasks.add_task(_persist, session, session.stage_save(session.habits_payload()))
        return {"habit": _habit_view(habit), **_drain(session)}


@app.delete("/api/habits/{habit_id}")
def delete_habit(habit_id: str, background_tasks: BackgroundTasks,
                 session: HabitSession = Depends(current_session)):
    with session.lock:
        if not session.delete(habit_id):
            raise HTTPException(status_code=404, detail="Habit not found")
        background_tasks.add_task(_persist, session, session.stage_save(session.habits_payload()))
        return {"status": "deleted", **_drain(session)}


@app.post("/api/habits/{habit_id}/toggle")
def toggle_habit(habit_id: str, background_tasks: BackgroundTasks,
                 session: HabitSession = Depends(current_session),
                 today: date = Depends(client_today)):
    with session.lock:
        result = session.toggle(habit_id, today)
        if result is None:
            raise HTTPException(status_code=404, detail="Habit not found")
        background_tasks.add_task(_persist, session, session.stage_save(session.habits_payload()))
        logger.info("Habit %s %s for %s...: streak=%d xp=%d",
                    habit_id, "completed" if result.habit.completed else "uncompleted",
                    session.user_id[:8], result.habit.streak, result.xp)
        return {
            "habit": _habit_view(result.habit),
            "xp": result.xp,
            "streak_achieved": result.streak_achieved,
            **_drain(session),
        }


# ── Goals & AI plan ───────────────────────────────────────────────────────────

@app.put("/api/goals")
def update_goals(body: GoalsUpdate, background_tasks: BackgroundTasks,
                 session: HabitSession = Depends(current_session)):
    with session.lock:
        session.set_goals(body.goals)
        background_tasks.add_task(_persist, session, session.stage_save(session.goals_payload()))
        return {"goals": session.goals, **_drain(session)}


@app.post("/api/plan")
@limiter.limit("10/minute")
def create_plan(request: Request, session: HabitSession = Depends(current_session)):
    with session.lock:
        goals = session.goals
    try:
        plan = generate_plan(goals)
    except PlanGenerationFailure as e:
        logger.error("Plan generation failed for %s...: %s", session.user_id[:8], e)
        with session.lock:
            session.notify("error", "AI error", "Could not generate the plan. Please try again.")
        raise HTTPException(status_code=502, detail="Could not generate the plan")
    with session.lock:
        return {"habits": [h.model_dump() for h in plan.habits], **_drain(session)}


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load(user_id: str) -> dict | None:
    return load_profile(get_client(), user_id)


def _persist(session: HabitSession, save: PendingSave) -> None:
    """
    Best-effort save. Failures are reported to the user, local state is kept.
    Saves for one session run one at a time, and a payload is dropped once a
    newer one for the same columns has been written.
    """
    with session.save_lock:
        if session.is_superseded(save):
            logger.info("Skipping stale save v%d for %s...", save.version, session.user_id[:8])
            return
        try:
            save_profile(get_client(), session.user_id, save.updates)
        except ProfileSaveFailure as e:
            logger.error("Error saving profile for %s...: %s", session.user_id[:8], e)
            with session.lock:
                session.notify("error", "Save failed", "Could not save your progress. Check your connection.")
            return
        session.mark_written(save)


def _drain(session: HabitSession) -> dict:
    return {"notifications": [n.to_dict() for n in session.drain_notifications()]}


def _habit_view(habit: Habit) -> dict:
    return {**habit_to_record(habit), "icon": icon_for_habit(habit.id)}


def _profile_view(session: HabitSession, today: date) -> dict:
    session.roll_over_completions(today)
    rank = current_rank(session.xp)
    upcoming = next_rank(session.xp)
    return {
        "user_id": session.user_id,
        "xp": session.xp,
        "rank": rank.name,
        "rank_min_xp": rank.min_xp,
        "next_rank": upcoming.name if upcoming else None,
        "xp_to_next_rank": upcoming.min_xp - session.xp if upcoming else None,
        "goals": session.goals,
        "habits": [_habit_view(h) for h in session.habits],
    }
