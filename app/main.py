from uuid import uuid4

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response

from app.api.routes.eligibilities import router as eligibilities_router
from app.api.routes.forge import router as forge_router
from app.api.routes.health import router as health_router
from app.api.routes.leaderboard import router as leaderboard_router
from app.api.routes.mint import router as mint_router
from app.api.routes.questions import router as questions_router
from app.api.routes.sessions import router as sessions_router
from app.core.config import get_settings
from app.core.logging import configure_logging

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64


async def bind_request_context(request: Request, call_next) -> Response:  # noqa: ANN001
    request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip()[:MAX_REQUEST_ID_LENGTH] or uuid4().hex
    with structlog.contextvars.bound_contextvars(request_id=request_id, path=request.url.path):
        response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, service="api", json_logs=settings.log_json)

    app = FastAPI(
        title="Trivia Forge API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.middleware("http")(bind_request_context)
    app.include_router(health_router)
    app.include_router(sessions_router)
    app.include_router(eligibilities_router)
    app.include_router(mint_router)
    app.include_router(forge_router)
    app.include_router(leaderboard_router)
    app.include_router(questions_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
        log_config=None,
    )


if __name__ == "__main__":
    run()
