import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutorsched.api.dependencies import close_clients
from tutorsched.api.v1.audit.router import router as audit_router
from tutorsched.api.v1.conflicts.router import router as conflicts_router
from tutorsched.api.v1.slot_inventory.router import router as slot_inventory_router
from tutorsched.api.v1.weekly_slots.router import router as weekly_slots_router
from tutorsched.core.config import settings
from tutorsched.core.models import ConflictOverrideLog  # noqa: F401  registers the table on Base.metadata
from tutorsched.db.session import Base, engine


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_clients()
    await engine.dispose()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Tutor Scheduling Backend", lifespan=lifespan)

    # CORS: the admin frontend calls this API from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(weekly_slots_router)
    app.include_router(slot_inventory_router)
    app.include_router(conflicts_router)
    app.include_router(audit_router)

    return app


app = create_app()
