"""Achievement service - loads the achievement catalog and awards badges.

Definitions live in ``data/achievements.yaml`` and are validated against the
``AchievementType`` enumeration when first loaded.
"""

import logging
from pathlib import Path

import yaml
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from postscore.core.achievements import AchievementDefinition, AchievementType
from postscore.models.point_transaction import ACHIEVEMENT_REASON_PREFIX
from postscore.models.user_achievement import UserAchievement
from postscore.services.ledger_service import ledger_service

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).parent.parent / "data" / "achievements.yaml"


class AchievementService:
    def __init__(self, catalog_path: Path = CATALOG_PATH):
        self.catalog_path = catalog_path
        self._definitions: list[AchievementDefinition] | None = None

    def load_catalog(self) -> list[AchievementDefinition]:
        """Load and validate the catalog. Cached after the first call."""
        if self._definitions is not None:
            return self._definitions

        if not self.catalog_path.exists():
            raise FileNotFoundError(f"Achievement catalog not found: {self.catalog_path}")

        with open(self.catalog_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        definitions = [AchievementDefinition(**entry) for entry in raw.get("achievements", [])]

        keys = [d.type_key for d in definitions]
        duplicated = {k.value for k in keys if keys.count(k) > 1}
        if duplicated:
            raise ValueError(f"Duplicate achievements in catalog: {sorted(duplicated)}")
        missing = {t.value for t in AchievementType} - {k.value for k in keys}
        if missing:
            raise ValueError(f"Achievements missing from catalog: {sorted(missing)}")

        self._definitions = definitions
        return definitions

    def get_definition(self, type_key: str) -> AchievementDefinition | None:
        for definition in self.load_catalog():
            if definition.type_key.value == type_key:
                return definition
        return None

    @staticmethod
    async def earned_keys(db: AsyncSession, user_id: int) -> set[str]:
        result = await db.execute(
            select(UserAchievement.type_key).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars().all())

    @staticmethod
    async def list_for_user(db: AsyncSession, user_id: int) -> list[UserAchievement]:
        """Earned achievements, newest first."""
        result = await db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.earned_at.desc(), UserAchievement.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def grant(
        db: AsyncSession, user_id: int, definition: AchievementDefinition
    ) -> bool:
        """Record the achievement and its point award.

        Returns False if the user already holds it (the unique constraint
        rejected the insert); in that case no points are awarded.
        """
        try:
            async with db.begin_nested():
                db.add(UserAchievement(
                    user_id=user_id,
                    type_key=definition.type_key.value,
                    points_awarded=definition.points,
                ))
                await db.flush()
        except IntegrityError:
            logger.info(
                "Achievement %s already granted to user %s, skipping",
                definition.type_key.value, user_id,
            )
            return False

        await ledger_service.award(
            db, user_id, definition.points,
            f"{ACHIEVEMENT_REASON_PREFIX}{definition.type_key.value}",
        )
        return True


achievement_service = AchievementService()
