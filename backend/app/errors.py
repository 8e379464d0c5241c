class HabitQuestError(Exception):
    """Base class for failures recovered at the call boundary."""


class ProfileLoadFailure(HabitQuestError):
    pass


class ProfileSaveFailure(HabitQuestError):
    pass


class PlanGenerationFailure(HabitQuestError):
    pass
