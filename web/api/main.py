"""FastAPI bracket API - read-only view of tournaments for dashboards and overlays."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from tourbot.errors import NotFoundError, PreconditionError
from tourbot.models import create_engine, create_session_factory, init_db
from tourbot.services.lifecycle import TournamentController
from tourbot.services.store import TournamentStore

from web.api.routes import router as api_router


async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _conflict(request: Request, exc: PreconditionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def create_app(store: Optional[TournamentStore] = None) -> FastAPI:
    """Build the API. Without a store, the lifespan opens config.DATABASE_URL."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if store is None:
            engine = create_engine(config.DATABASE_URL)
            await init_db(engine)
            app.state.controller = TournamentController(TournamentStore(create_session_factory(engine)))
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(title="TourBot Bracket API", lifespan=lifespan)
    if store is not None:
        app.state.controller = TournamentController(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_exception_handler(NotFoundError, _not_found)
    app.add_exception_handler(PreconditionError, _conflict)
    app.include_router(api_router)
    return app


app = create_app()
