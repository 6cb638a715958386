"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from postscore.config import settings
from postscore.db.database import engine, Base
from postscore.db.redis import close_redis
from postscore.services.achievement_service import achievement_service

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: fail fast on a broken achievement catalog, create tables (dev only)
    achievement_service.load_catalog()
    import postscore.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    # Shutdown: close connections
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title="postscore API",
    description="Gamification engine: points, streaks, achievements and leaderboard for published posts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # TODO: restrict to the dashboard origin once it is deployed
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routes ---
from postscore.api.routes import scoring, leaderboard  # noqa: E402

app.include_router(scoring.router, prefix="/api/scoring", tags=["scoring"])
app.include_router(leaderboard.router, prefix="/api/leaderboard", tags=["leaderboard"])


@app.get("/health")
async def health_check():
    return {"status": "ok"}
