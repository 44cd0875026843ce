from contextlib import asynccontextmanager

from fastapi import FastAPI

from anime import router as anime_router
from anime.repository import AnimeRepository
from core import db
from core.config import Settings
from core.log import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Settings are read once here and passed down explicitly.
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    pool = await db.create_pool(settings)
    app.state.anime_repository = AnimeRepository(pool, settings)
    try:
        yield
    finally:
        await pool.close()


app = FastAPI(lifespan=lifespan)

app.include_router(anime_router.router, tags=["anime"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "anime catalog api"}
