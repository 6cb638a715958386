"""Achievement rule table and evaluator.

The set of achievements is fixed by ``AchievementType``; display text,
thresholds and rewards come from ``data/achievements.yaml`` (see
``AchievementService``), which must define every member exactly once.
"""

from enum import Enum

from pydantic import BaseModel


class AchievementType(str, Enum):
    FIRST_POST = "FIRST_POST"
    STREAK_3 = "STREAK_3"
    STREAK_7 = "STREAK_7"
    STREAK_30 = "STREAK_30"
    POSTS_10 = "POSTS_10"
    POSTS_50 = "POSTS_50"
    POSTS_100 = "POSTS_100"
    WEEKLY_5 = "WEEKLY_5"


class Metric(str, Enum):
    TOTAL_POSTS = "total_posts"
    CURRENT_STREAK = "current_streak"
    WEEKLY_POSTS = "weekly_posts"


class Comparison(str, Enum):
    EQ = "eq"
    GTE = "gte"


class UserStats(BaseModel):
    """Derived statistics the rules are checked against."""
    total_posts: int = 0
    current_streak: int = 0
    weekly_posts: int = 0


class AchievementDefinition(BaseModel):
    type_key: AchievementType
    name: str
    description: str
    points: int
    metric: Metric
    comparison: Comparison = Comparison.GTE
    threshold: int

    model_config = {"frozen": True}

    def is_met(self, stats: UserStats) -> bool:
        value = getattr(stats, self.metric.value)
        if self.comparison is Comparison.EQ:
            return value == self.threshold
        return value >= self.threshold


def evaluate(
    definitions: list[AchievementDefinition],
    stats: UserStats,
    already_earned: set[str],
) -> list[AchievementDefinition]:
    """Return definitions newly met by ``stats``, in table order.

    Anything in ``already_earned`` is skipped even if its threshold is met
    again, so each achievement is awarded at most once.
    """
    return [
        d for d in definitions
        if d.type_key.value not in already_earned and d.is_met(stats)
    ]
