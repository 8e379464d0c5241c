"""
AI habit plan generation via OpenAI chat completions.
"""
import logging
import os

import openai
from pydantic import BaseModel, Field, ValidationError

from .errors import PlanGenerationFailure

logger = logging.getLogger(__name__)

DEFAULT_GOALS = "Improve my consistency and overall wellbeing."
DEFAULT_MODEL = "gpt-4o-mini"

SYSTEM_PROMPT = (
    "You are a habit coach. Given a person's goals, suggest 3 to 5 small, concrete "
    "daily habits that move them toward those goals. Respond with JSON only, shaped as "
    '{"habits": [{"name": str, "category": str, "reason": str}]}. '
    "Keep names under 60 characters and categories to one or two words."
)


class SuggestedHabit(BaseModel):
    name: str = Field(min_length=1)
    category: str
    reason: str


class HabitPlan(BaseModel):
    habits: list[SuggestedHabit] = []


def get_openai_client() -> openai.OpenAI | None:
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        return None
    return openai.OpenAI(api_key=api_key)


def generate_plan(goals: str, client: openai.OpenAI | None = None) -> HabitPlan:
    """
    Ask the model for habit suggestions matching the goals text.
    Raises PlanGenerationFailure on a missing key, API error or malformed reply.
    """
    goals = (goals or "").strip() or DEFAULT_GOALS
    client = client or get_openai_client()
    if client is None:
        raise PlanGenerationFailure("OPENAI_API_KEY is not configured")

    try:
        completion = client.chat.completions.create(
            model=os.environ.get("OPENAI_MODEL", DEFAULT_MODEL),
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"My goals: {goals}"},
            ],
        )
    except openai.OpenAIError as e:
        logger.error("Plan generation request failed: %s", e)
        raise PlanGenerationFailure(str(e)) from e

    content = completion.choices[0].message.content or "{}"
    try:
        return HabitPlan.model_validate_json(content)
    except ValidationError as e:
        logger.error("Plan generation returned an invalid plan: %s", e)
        raise PlanGenerationFailure("invalid plan returned by model") from e
