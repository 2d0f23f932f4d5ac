from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flashdeck.config import settings
from flashdeck.db import init_all_databases


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_all_databases(settings.data_dir)
    yield
    from flashdeck.services import session_store, task_registry

    session_store.close_all()
    await task_registry.drain()


def create_app() -> FastAPI:
    application = FastAPI(
        title="Flashdeck Backend", version="0.1.0", lifespan=lifespan
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from flashdeck.routers import flashcards, health, settings, study

    application.include_router(health.router)
    application.include_router(
        flashcards.router, prefix="/flashcards", tags=["flashcards"]
    )
    application.include_router(
        study.router, prefix="/study", tags=["study"]
    )
    application.include_router(
        settings.router, prefix="/settings", tags=["settings"]
    )

    return application


app = create_app()
