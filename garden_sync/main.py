# garden_sync/main.py
import logging
import os
import uvicorn
from fastapi import FastAPI
import structlog

from garden_sync.routers.auth_router import router as auth_router
from garden_sync.routers.user_router import router as user_router
from garden_sync.routers.integrations_router import router as integrations_router
from garden_sync.routers.metrics_router import router as metrics_router
from garden_sync.routers.cron_router import router as cron_router
from garden_sync.routers.garden_router import router as garden_router
from garden_sync.routers.currency_router import router as currency_router
from garden_sync.infrastructure.database import init_db
from garden_sync.middleware.logging import RequestIdMiddleware

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

def configure_structlog():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, LOG_LEVEL, logging.INFO)),
        context_class=dict,
    )

configure_structlog()
logger = structlog.get_logger()

app = FastAPI(title="Garden Sync")

app.add_middleware(RequestIdMiddleware)

app.include_router(auth_router)
app.include_router(user_router)
app.include_router(integrations_router)
app.include_router(metrics_router)
app.include_router(cron_router)
app.include_router(garden_router)
app.include_router(currency_router)

@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("app_startup")

if __name__ == "__main__":
    uvicorn.run("garden_sync.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
