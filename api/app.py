"""
api/app.py — FastAPI app instance + session middleware + static file serving
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from config import STATIC_DIR
from api.config import CLEANUP_INTERVAL, SESSION_COOKIE, SESSION_TTL
from api.routes import router
import api.session as session

logger = logging.getLogger(__name__)


async def _close_states(states) -> None:
    for state in states:
        try:
            await state["client"].aclose()
        except Exception as e:
            logger.warning(f"Backend client close failed: {e}")


async def _cleanup_loop() -> None:
    while True:
        await asyncio.sleep(CLEANUP_INTERVAL)
        removed = session.cleanup_expired()
        if removed:
            logger.info(f"Cleaned up {len(removed)} expired session(s)")
            await _close_states(removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cleanup = asyncio.create_task(_cleanup_loop())
    try:
        yield
    finally:
        cleanup.cancel()
        # Running exam controllers stop with the server; their progress stays stored.
        states = session.all_states()
        for state in states:
            if state["exam"] is not None:
                state["exam"].close()
        await _close_states(states)


def create_app() -> FastAPI:
    app = FastAPI(title="HR Portal", docs_url=None, redoc_url=None, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Session middleware: read the session id from the cookie, issue a new one if missing
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=SESSION_TTL,
        )
        return response

    app.include_router(router)

    if os.path.isdir(STATIC_DIR):
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/")
    async def serve_index():
        index_path = os.path.join(STATIC_DIR, "index.html")
        if os.path.exists(index_path):
            return FileResponse(index_path)
        return {"error": "index.html not found"}

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app
