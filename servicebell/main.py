import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from servicebell.api.endpoints import ws
from servicebell.api.router import api_router
from servicebell.core.config import settings
from servicebell.core.exceptions import ServiceBellError
from servicebell.core.logging import setup_logging
from servicebell.database import engine
from servicebell.db import models  # noqa: F401  registra os modelos no metadata
from servicebell.db.base_class import Base
from servicebell.services.broadcast import BroadcastHub
from servicebell.services.redis_service import RedisClient
from servicebell.services.request_service import RequestService
from servicebell.services.session_manager import SessionManager

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Em produção, use migrações com Alembic
    if settings.CREATE_TABLES_ON_STARTUP and settings.ENVIRONMENT != "production":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Tabelas criadas (ambiente %s)", settings.ENVIRONMENT)
    mirror = app.state.redis
    if mirror is not None:
        await mirror.connect()
    yield
    if mirror is not None:
        await mirror.disconnect()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Chamados de mesa via QR Code: sessões por mesa, painel da equipe e avisos em tempo real",
        openapi_url=f"{settings.API_STR}/openapi.json",
        version=settings.PROJECT_VERSION,
        contact={"name": "Suporte Técnico", "email": settings.SUPPORT_EMAIL},
        license_info={"name": "MIT"},
        lifespan=lifespan,
    )

    # Um hub por processo, injetado nos handlers via app.state
    app.state.redis = RedisClient() if settings.REDIS_EVENTS_ENABLED else None
    hub = BroadcastHub(mirror=app.state.redis, mirror_channel=settings.REDIS_EVENTS_CHANNEL)
    app.state.hub = hub
    app.state.session_manager = SessionManager(hub)
    app.state.request_service = RequestService(hub)

    # Configuração de CORS
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    @app.exception_handler(ServiceBellError)
    async def service_error_handler(request: Request, exc: ServiceBellError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Erro em %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(api_router, prefix=settings.API_STR)
    app.include_router(ws.router)

    @app.get("/", tags=["Root"])
    async def read_root():
        return {
            "message": f"Bem-vindo à API {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}",
            "docs": "/docs",
            "status": "operacional",
            "environment": settings.ENVIRONMENT,
        }

    @app.get("/health", tags=["Health Check"])
    async def health_check():
        """Endpoint para verificação de saúde da API"""
        return {
            "status": "healthy",
            "connections": len(hub),
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
