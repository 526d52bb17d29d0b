import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from opsdocs.api.errors import REQUEST_ID_HEADER, get_request_id, register_exception_handlers
from opsdocs.api.http import documents_router, health_router
from opsdocs.core.config import settings
from opsdocs.core.db import get_engine, init_models
from opsdocs.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    if settings.create_tables_on_startup:
        await init_models()
        logger.info("Database tables are ready")
    yield
    await get_engine().dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="OpsDocs",
        description="Версионируемые операционные документы",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = get_request_id(request)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    register_exception_handlers(app)

    # Подключаем роутеры
    app.include_router(health_router)
    app.include_router(documents_router)
    return app


app = create_app()
