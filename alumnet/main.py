from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from .config import get_settings
from .db import engine
from .api.errors import register_exception_handlers
from .api.routers import health as health_router
from .api.routers import auth as auth_router
from .api.routers import session as session_router
from .api.routers import posts as posts_router
from .api.routers import metrics as metrics_router
from .observability.logging import setup_logging
from .middleware.request_context import RequestContextMiddleware
from .observability.metrics import MetricsHTTPMiddleware
from .services.uploads import UPLOAD_URL_PREFIX
import uvicorn

settings = get_settings()
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    try:
        yield
    finally:
        await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[settings.REQUEST_ID_HEADER],
    )

    # then your custom middlewares
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(MetricsHTTPMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router.router)
    app.include_router(auth_router.router)
    app.include_router(session_router.router)
    app.include_router(posts_router.router)
    app.include_router(metrics_router.router)

    # avatars and post media
    app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("alumnet.main:app", host=settings.APP_HOST, port=settings.APP_PORT, reload=settings.DEBUG)
