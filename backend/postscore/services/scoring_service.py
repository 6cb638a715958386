"""Scoring service - turns publish events into points, streaks and achievements.

``handle_publish_event`` is the single entry point for the posting subsystem.
For one event it:

1. validates the user, the publish event, and that the post is not scored yet;
2. awards base points (plus the first-post bonus on a user's first publish);
3. recomputes the streak as of the event's calendar day and awards the streak bonus;
4. evaluates achievements and awards newly earned ones;
5. refreshes the ``user_scores`` snapshot as of the latest publish day seen.

Steps 1-4 share one transaction, so an event is either fully scored or not at
all. Step 5 runs in a savepoint: if it fails the ledger is still committed and
the snapshot is left stale until the next run or ``recompute_snapshot``.

Runs for the same user are serialized with a per-user lock that is held
until the transaction commits.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select, func, or_, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from postscore.config import settings
from postscore.core.achievements import UserStats, evaluate
from postscore.core.errors import (
    DuplicatePublishEventError,
    PublishEventNotFoundError,
    UserNotFoundError,
)
from postscore.core.locks import LocalUserLocks, RedisUserLocks, build_user_locks
from postscore.core.streak import StreakResult, compute_streak, reference_zone, to_calendar_day
from postscore.models.point_transaction import (
    REASON_FIRST_POST_BONUS,
    REASON_POST,
    REASON_STREAK_BONUS,
)
from postscore.models.publish_event import PublishEvent
from postscore.models.user import User
from postscore.models.user_score import UserScore
from postscore.schemas.scoring import (
    PointHistoryItem,
    PointLine,
    ScoringResult,
    UserAchievementOut,
    UserScoreResponse,
)
from postscore.services.achievement_service import achievement_service
from postscore.services.leaderboard_service import leaderboard_service
from postscore.services.ledger_service import ledger_service

logger = logging.getLogger(__name__)


@dataclass
class _History:
    """Publish history of one user up to a point in time."""
    total_posts: int
    days: list[date]  # calendar days of the recent events, may repeat
    last_day: date | None = None


class ScoringService:
    def __init__(self, locks: LocalUserLocks | RedisUserLocks | None = None):
        self._locks = locks

    @property
    def locks(self) -> LocalUserLocks | RedisUserLocks:
        if self._locks is None:
            self._locks = build_user_locks()
        return self._locks

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    async def handle_publish_event(
        self, db: AsyncSession, user_id: int, post_id: int
    ) -> ScoringResult:
        """Score one publish event and commit it."""
        async with self.locks.hold(user_id):
            try:
                result = await self._score_event(db, user_id, post_id)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(
            "Scored post %s for user %s: +%s points, streak %s, new achievements %s",
            post_id, user_id, result.points_awarded, result.current_streak,
            result.new_achievements or "none",
        )
        return result

    async def recompute_snapshot(
        self, db: AsyncSession, user_id: int, as_of: date | None = None
    ) -> UserScore:
        """Rebuild a user's snapshot from the ledger and publish history.

        ``as_of`` defaults to today in the reference zone, so a streak whose
        last publish day is older than yesterday is reported as broken.
        """
        async with self.locks.hold(user_id):
            try:
                await self._get_user_or_raise(db, user_id)
                if as_of is None:
                    as_of = datetime.now(reference_zone()).date()
                history = await self._load_history(db, user_id, as_of)
                streak = compute_streak(history.days, as_of)
                snapshot = await self._write_snapshot(db, user_id, streak, history.last_day)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Recomputed snapshot for user %s: %s points", user_id, snapshot.total_points)
        return snapshot

    async def recompute_all(self, db: AsyncSession, as_of: date | None = None) -> int:
        """Recompute every user's snapshot. Returns the number of users processed."""
        result = await db.execute(select(User.id).order_by(User.id))
        user_ids = list(result.scalars().all())
        await db.commit()  # release the read before taking per-user locks
        for user_id in user_ids:
            await self.recompute_snapshot(db, user_id, as_of=as_of)
        return len(user_ids)

    async def _score_event(self, db: AsyncSession, user_id: int, post_id: int) -> ScoringResult:
        await self._get_user_or_raise(db, user_id)

        result = await db.execute(
            select(PublishEvent).where(
                PublishEvent.user_id == user_id, PublishEvent.post_id == post_id
            )
        )
        event = result.scalar_one_or_none()
        if event is None:
            raise PublishEventNotFoundError(user_id, post_id)
        if await ledger_service.has_post_award(db, user_id, post_id):
            raise DuplicatePublishEventError(user_id, post_id)

        as_of = to_calendar_day(event.published_at)
        history = await self._load_history(db, user_id, as_of, through=event)

        breakdown: list[PointLine] = []

        async def award(points: int, reason: str, label: str) -> None:
            await ledger_service.award(db, user_id, points, reason, related_post_id=post_id)
            breakdown.append(PointLine(reason=reason, points=points, label=f"{label}: +{points}"))

        try:
            await award(settings.POST_POINTS, REASON_POST, "Post")
            if history.total_posts == 1:
                await award(settings.FIRST_POST_BONUS, REASON_FIRST_POST_BONUS, "First Post Bonus")
        except IntegrityError as e:
            # Another worker scored this post between the check above and our insert
            raise DuplicatePublishEventError(user_id, post_id) from e

        streak = compute_streak(history.days, as_of)
        if streak.current_streak > 1:
            bonus = settings.STREAK_MULTIPLIER * (streak.current_streak - 1)
            await award(bonus, REASON_STREAK_BONUS, f"{streak.current_streak}-day Streak")

        weekly_start = as_of - timedelta(days=settings.WEEKLY_WINDOW_DAYS)
        stats = UserStats(
            total_posts=history.total_posts,
            current_streak=streak.current_streak,
            weekly_posts=sum(1 for d in history.days if weekly_start <= d <= as_of),
        )
        earned = await achievement_service.earned_keys(db, user_id)
        granted = []
        for definition in evaluate(achievement_service.load_catalog(), stats, earned):
            if await achievement_service.grant(db, user_id, definition):
                logger.info("User %s earned achievement %s", user_id, definition.type_key.value)
                granted.append(definition)

        snapshot = await self._refresh_snapshot(db, user_id, as_of)

        return ScoringResult(
            points_awarded=sum(line.points for line in breakdown),
            breakdown=breakdown,
            new_achievements=[d.type_key.value for d in granted],
            achievement_points=sum(d.points for d in granted),
            current_streak=streak.current_streak,
            best_streak=streak.best_streak,
            total_points=snapshot.total_points if snapshot is not None else None,
        )

    async def _refresh_snapshot(
        self, db: AsyncSession, user_id: int, as_of: date
    ) -> UserScore | None:
        """Write the snapshot in a savepoint; a failure is logged, never raised.

        The snapshot streak is taken from the full history as of the latest
        publish day seen so far, not the scored event's day, so an event
        delivered late never moves the snapshot backwards.
        """
        try:
            async with db.begin_nested():
                previous = await db.get(UserScore, user_id)
                snapshot_day = as_of
                if previous is not None and previous.last_post_date:
                    snapshot_day = max(previous.last_post_date, as_of)
                history = await self._load_history(db, user_id, snapshot_day)
                streak = compute_streak(history.days, snapshot_day)
                return await self._write_snapshot(db, user_id, streak, history.last_day)
        except SQLAlchemyError:
            logger.warning(
                "Snapshot refresh failed for user %s; ledger is committed, snapshot is stale",
                user_id, exc_info=True,
            )
            return None

    @staticmethod
    async def _write_snapshot(
        db: AsyncSession,
        user_id: int,
        streak: StreakResult,
        last_post_date: date | None,
    ) -> UserScore:
        total = await ledger_service.total_for(db, user_id)

        result = await db.execute(
            select(UserScore).where(UserScore.user_id == user_id).with_for_update()
        )
        snapshot = result.scalar_one_or_none()
        if snapshot is None:
            snapshot = UserScore(user_id=user_id)
            db.add(snapshot)

        snapshot.total_points = total
        snapshot.current_streak = streak.current_streak
        snapshot.best_streak = streak.best_streak
        snapshot.last_post_date = last_post_date
        await db.flush()
        return snapshot

    @staticmethod
    async def _load_history(
        db: AsyncSession,
        user_id: int,
        as_of: date,
        through: PublishEvent | None = None,
    ) -> _History:
        """Count a user's publish events and collect the recent calendar days.

        With ``through``, only events ordered at or before it (by published_at,
        then id) are considered, so replaying events in order reproduces the
        same decisions.
        """
        tz = reference_zone()

        def utc_midnight(day: date) -> datetime:
            return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)

        filters = [
            PublishEvent.user_id == user_id,
            PublishEvent.published_at < utc_midnight(as_of + timedelta(days=1)),
        ]
        if through is not None:
            filters.append(or_(
                PublishEvent.published_at < through.published_at,
                and_(
                    PublishEvent.published_at == through.published_at,
                    PublishEvent.id <= through.id,
                ),
            ))

        result = await db.execute(
            select(func.count(PublishEvent.id), func.max(PublishEvent.published_at)).where(*filters)
        )
        total_posts, last_published_at = result.one()

        # One extra day of slack on the lower bound; compute_streak trims to the exact window
        lookback = max(settings.STREAK_WINDOW_DAYS, settings.WEEKLY_WINDOW_DAYS + 1)
        result = await db.execute(
            select(PublishEvent.published_at).where(
                *filters, PublishEvent.published_at >= utc_midnight(as_of - timedelta(days=lookback))
            )
        )
        return _History(
            total_posts=int(total_posts),
            days=[to_calendar_day(published_at, tz) for published_at in result.scalars().all()],
            last_day=to_calendar_day(last_published_at, tz) if last_published_at else None,
        )

    @staticmethod
    async def _get_user_or_raise(db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    async def get_user_score(self, db: AsyncSession, user_id: int) -> UserScoreResponse:
        """Snapshot-backed score card.

        ``current_streak`` is the streak as of ``last_post_date``, not today: a
        user who stopped posting keeps their streak here until the next event
        or a ``recompute_snapshot`` run.
        """
        await self._get_user_or_raise(db, user_id)

        snapshot = await db.get(UserScore, user_id)
        result = await db.execute(
            select(func.count(PublishEvent.id)).where(PublishEvent.user_id == user_id)
        )
        post_count = int(result.scalar_one())

        return UserScoreResponse(
            user_id=user_id,
            total_points=snapshot.total_points if snapshot else 0,
            current_streak=snapshot.current_streak if snapshot else 0,
            best_streak=snapshot.best_streak if snapshot else 0,
            post_count=post_count,
            rank=await leaderboard_service.rank_of(db, user_id),
            total_users=await leaderboard_service.total_users(db),
            last_post_date=snapshot.last_post_date if snapshot else None,
        )

    async def get_user_achievements(
        self, db: AsyncSession, user_id: int
    ) -> list[UserAchievementOut]:
        """Earned achievements with catalog text, newest first."""
        await self._get_user_or_raise(db, user_id)
        items = []
        for earned in await achievement_service.list_for_user(db, user_id):
            definition = achievement_service.get_definition(earned.type_key)
            items.append(UserAchievementOut(
                type_key=earned.type_key,
                name=definition.name if definition else earned.type_key,
                description=definition.description if definition else "",
                points_awarded=earned.points_awarded,
                earned_at=earned.earned_at,
            ))
        return items

    async def get_point_history(
        self, db: AsyncSession, user_id: int, limit: int = 50
    ) -> list[PointHistoryItem]:
        await self._get_user_or_raise(db, user_id)
        return [
            PointHistoryItem(
                points=tx.points,
                reason=tx.reason,
                post_id=tx.related_post_id,
                created_at=tx.created_at,
            )
            for tx in await ledger_service.history(db, user_id, limit)
        ]


scoring_service = ScoringService()
