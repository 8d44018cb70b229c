"""Watson API application.

Run with::

    uvicorn watson.main:app

or via the ``watson`` console script, which reads ``HOST`` and ``PORT`` from
the environment.
"""

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse

from watson.api.middleware.logging import RequestLoggingMiddleware
from watson.api.routes.analyzers import router as analyzers_router
from watson.api.routes.documents import router as documents_router
from watson.api.routes.workflows import router as workflows_router
from watson.config import settings
from watson.services.snapshot import FileSnapshotStorage
from watson.services.watson import WatsonService

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Watson API",
    description="Log document store with line-level pattern analysis",
    version="1.0.0",
    debug=settings.DEBUG,
    docs_url="/v1/docs",
    openapi_url="/v1/openapi.json",
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(documents_router)
app.include_router(analyzers_router)
app.include_router(workflows_router)

# Service stored on app state so routes can reach it and tests can replace it
app.state.service = None


@app.get("/status", response_class=PlainTextResponse, tags=["health"])
def status() -> str:
    return "alive"


@app.get("/healthz", tags=["health"])
async def health_check() -> JSONResponse:
    return JSONResponse({"status": "ok"})


@app.on_event("startup")
def startup_event() -> None:
    logger.info("Watson API starting up")
    if app.state.service is None:
        app.state.service = WatsonService(FileSnapshotStorage(settings.STATE_FILE))
        logger.info("State loaded from %s", settings.STATE_FILE)


@app.on_event("shutdown")
def shutdown_event() -> None:
    logger.info("Watson API shutting down")


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
