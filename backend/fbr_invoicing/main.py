#!/usr/bin/env python3
import logging
import uuid

import uvicorn
from fastapi import FastAPI, Request, Response

from fbr_invoicing.api.endpoints import fbr
from fbr_invoicing.config.settings import settings
from fbr_invoicing.utils.metrics import metrics_collector
from fbr_invoicing.utils.observability import observability_logger, setup_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    app = FastAPI(
        title="FBR Digital Invoicing",
        description="Maps commerce orders to FBR invoices and submits them (validate, then post)",
        version="1.0.0",
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        observability_logger.set_request_context(req_id)
        try:
            response = await call_next(request)
        finally:
            observability_logger.clear_request_context()
        response.headers["X-Request-ID"] = req_id
        return response

    app.include_router(fbr.router, prefix="/fbr", tags=["fbr"])

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        return Response(metrics_collector.get_metrics_output(), media_type="text/plain; version=0.0.4")

    logger.info("🚀 FBR invoicing API ready")
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "fbr_invoicing.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        workers=1,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,
    )
