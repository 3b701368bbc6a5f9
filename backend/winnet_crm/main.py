"""
Aplicação FastAPI do Winnet CRM
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from winnet_crm import __version__
from winnet_crm.api.v1 import api_router
from winnet_crm.core.config import settings
from winnet_crm.core.database import close_db, init_db
from winnet_crm.core.middleware import setup_error_handling
from winnet_crm.core.redis_client import close_redis
from winnet_crm.services.notification_service import register_notification_handlers


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info(f"{settings.APP_NAME} {__version__} iniciado")
    yield
    await close_redis()
    await close_db()
    logger.info(f"{settings.APP_NAME} encerrado")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Winnet CRM",
        description="Orçamentos, vendas, financeiro e funil comercial",
        version=__version__,
        lifespan=lifespan
    )

    setup_error_handling(app)
    register_notification_handlers()
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/health", tags=["Sistema"])
    async def health():
        return {"status": "ok", "app": settings.APP_NAME, "version": __version__}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("winnet_crm.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
