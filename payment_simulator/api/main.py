"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from payment_simulator import __version__
from payment_simulator.api.endpoints.payments import payments_api
from payment_simulator.api.endpoints.webhook_receiver import WebhookInbox, router as webhook_receiver_router
from payment_simulator.error_handler import ErrorHandler
from payment_simulator.integrations.clients.mocks.simulator import SimulationEngine
from payment_simulator.utils.config_loader import SimulatorConfig, load_simulator_config

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

error_handler = ErrorHandler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log settings on startup; let scheduled completions finish on shutdown."""
    engine = app.state.engine
    cfg = engine.config
    logger.info("Starting Payment Simulator API (success_rate=%.0f%%)", cfg.success_rate * 100)
    logger.info("M-Pesa completes after %.1fs, bank transfers after %.1fs",
                cfg.mpesa_delay_seconds, cfg.bank_delay_seconds)
    yield
    if engine.scheduler.pending:
        logger.info("Waiting for %d scheduled completions...", engine.scheduler.pending)
        await engine.scheduler.join()
    logger.info("Shutting down Payment Simulator API...")


def create_app(config: Optional[SimulatorConfig] = None, engine: Optional[SimulationEngine] = None) -> FastAPI:
    """
    Build the application. The engine created here (or passed in) is the only
    simulator instance; routes reach it through ``app.state``.
    """
    app = FastAPI(
        lifespan=lifespan,
        title="Payment Simulator API",
        description="Mock M-Pesa STK push and bank transfer provider with webhook callbacks",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["content-type", "if-modified-since"],
    )

    app.state.engine = engine or SimulationEngine(config=config or load_simulator_config())
    app.state.webhook_inbox = WebhookInbox()

    app.include_router(payments_api, prefix="/api")
    app.include_router(webhook_receiver_router)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"success": False, "message": "Invalid request body"})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"success": False, "message": "Endpoint not found"})
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)},
                            headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        result = error_handler.handle_exception(exc, {"path": request.url.path})
        result.pop("metadata", None)
        return JSONResponse(status_code=500, content=result)

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "payment_simulator.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )


if __name__ == "__main__":
    run()
