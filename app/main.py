# app/main.py
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.settings import get_settings
from app.domain.common.session import create_session
from app.domain.lifecycle.handlers import end_game, run_sweeper
from app.transport.admin import router as admin_router
from app.transport.ws import router as ws_router
from app.transport.ws_manager import WSManager


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME)
    allowed_origins = [o.strip() for o in settings.WS_ALLOWED_ORIGINS.split(",") if o.strip()]
    if "null" not in allowed_origins:
        allowed_origins.append("null")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def _startup() -> None:
        session = create_session(settings)
        wsman = WSManager()
        session.notifier.subscribe(wsman.deliver)
        app.state.session = session
        app.state.wsman = wsman
        app.state.sweeper = asyncio.create_task(run_sweeper(session))

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        session = app.state.session
        session.notifier.unsubscribe(app.state.wsman.deliver)
        app.state.sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await app.state.sweeper
        async with session.lock:
            await end_game(session, "ADMIN")
        await session.timers.cancel_all()

    @app.get("/health")
    async def health():
        session = app.state.session
        return {
            "ok": True,
            "players": session.repo.count(),
            "game_state": session.game.state,
        }

    app.include_router(ws_router)
    app.include_router(admin_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("app.main:app", host=_settings.HOST, port=_settings.PORT, log_level=_settings.LOG_LEVEL.lower())
