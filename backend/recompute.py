#!/usr/bin/env python3
"""Rebuild user score snapshots from the point ledger and publish history.

Usage:
    python recompute.py               # every user
    python recompute.py 42 43         # only the given user ids

Meant to be run from cron or a scheduler to heal snapshots whose refresh
failed after a publish event was scored.
"""

import asyncio
import logging
import sys

from postscore.config import settings
from postscore.core.errors import ScoringError
from postscore.db.database import async_session, engine
from postscore.services.scoring_service import scoring_service

logger = logging.getLogger("recompute")


async def run(user_ids: list[int]) -> None:
    async with async_session() as db:
        if not user_ids:
            count = await scoring_service.recompute_all(db)
            logger.info("Recomputed %s snapshots", count)
            return

        for user_id in user_ids:
            try:
                snapshot = await scoring_service.recompute_snapshot(db, user_id)
            except ScoringError as e:
                logger.error("Skipping user %s: %s", user_id, e)
                continue
            print(
                f"user {user_id}: {snapshot.total_points} points, "
                f"streak {snapshot.current_streak} (best {snapshot.best_streak})"
            )


async def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    user_ids = [int(arg) for arg in sys.argv[1:]]
    try:
        await run(user_ids)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nInterrupted.")
    except ValueError as e:
        print(f"\033[91mUser ids must be integers: {e}\033[0m")
