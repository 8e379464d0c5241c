import os
import logging
from functools import lru_cache
from supabase import create_client, Client

from .errors import ProfileLoadFailure, ProfileSaveFailure

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = "habits, xp, goals"


@lru_cache(maxsize=1)
def get_client() -> Client:
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_KEY"]
    return create_client(url, key)


def resolve_user(db: Client, access_token: str) -> str | None:
    """Return the user id behind an access token, or None if the token is not accepted."""
    try:
        res = db.auth.get_user(access_token)
    except Exception as e:
        logger.info("Access token rejected: %s", e)
        return None
    user = getattr(res, "user", None)
    return user.id if user else None


def load_profile(db: Client, user_id: str) -> dict | None:
    """
    Returns {habits, xp, goals} or None when the profile is not provisioned yet.
    Raises ProfileLoadFailure when the store cannot be read.
    """
    try:
        res = db.table("profiles").select(PROFILE_COLUMNS).eq("user_id", user_id).execute()
    except Exception as e:
        raise ProfileLoadFailure(str(e)) from e
    return res.data[0] if res.data else None


def save_profile(db: Client, user_id: str, updates: dict) -> None:
    """Merge-write: columns missing from updates keep their stored values."""
    try:
        db.table("profiles").upsert({"user_id": user_id, **updates}).execute()
    except Exception as e:
        raise ProfileSaveFailure(str(e)) from e
