import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler as fastapi_http_exception_handler
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .database import build_engine, build_session_maker, init_db
from .routes import router
from .settings.config import Settings, settings as default_settings
from .tokens import TokenService
from .users import build_password_hasher

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    # Fails here, at startup, when JWT_SECRET is missing
    tokens = TokenService(settings.JWT_SECRET, lifetime_seconds=settings.TOKEN_LIFETIME_SECONDS)
    engine = build_engine(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await init_db(engine, settings.RUN_DB_CREATE_ALL)
        if settings.RUN_DB_CREATE_ALL:
            logger.info("Database schema ensured at %s", engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await engine.dispose()

    # Trailing-slash variants are not part of the route table
    app = FastAPI(title=settings.APP_TITLE, lifespan=lifespan, redirect_slashes=False)
    app.state.settings = settings
    app.state.tokens = tokens
    app.state.engine = engine
    app.state.session_maker = build_session_maker(engine)
    app.state.password_hasher = build_password_hasher(settings.BCRYPT_ROUNDS)

    app.include_router(router)

    # -----------------------------------------------------
    # Unknown paths, and known paths hit with a method they
    # do not serve, are both plain 404s.
    # -----------------------------------------------------
    @app.exception_handler(StarletteHTTPException)
    async def _not_found_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return PlainTextResponse("Not found", status_code=404)
        return await fastapi_http_exception_handler(request, exc)

    return app


def run() -> None:
    import uvicorn

    settings = default_settings
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
