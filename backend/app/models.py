from pydantic import BaseModel, Field, field_validator


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class HabitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    category: str = Field(default="", max_length=50)
    model_config = {"extra": "ignore"}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _strip_required(v)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v):
        return v.strip()


class GoalsUpdate(BaseModel):
    goals: str = Field(max_length=2000)

