"""Main application entry point."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import redis
import httpx
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from config import REDIS_URL, API_VERSION, OTEL_EXPORT_ENABLED, PAYMENT_GATEWAY_TIMEOUT
from database import init_db, engine
from exceptions import OrderServiceError
from monitoring import init_tracing, init_metrics, init_profiling
from logging_config import setup_logging
from routers import orders, admin_orders, cart

# Setup structured logging
setup_logging()
logger = logging.getLogger(__name__)

redis_client = redis.from_url(REDIS_URL, decode_responses=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting application...")

    if OTEL_EXPORT_ENABLED:
        init_tracing()
        init_metrics()
        init_profiling()

    init_db()

    RedisInstrumentor().instrument(redis_client=redis_client)
    app.state.redis_client = redis_client
    logger.info("Redis client initialized")

    # Bounded so a hung gateway call surfaces as a retryable error
    http_client = httpx.AsyncClient(timeout=PAYMENT_GATEWAY_TIMEOUT)
    HTTPXClientInstrumentor().instrument_client(http_client)
    app.state.http_client = http_client
    logger.info("HTTP client initialized", extra={"timeout_seconds": PAYMENT_GATEWAY_TIMEOUT})

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    await http_client.aclose()
    redis_client.close()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Storefront Order Service",
    version=API_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(OrderServiceError)
async def order_service_error_handler(request: Request, exc: OrderServiceError):
    """Render domain errors as status code plus message."""
    if exc.status_code >= 500:
        logger.error("Request failed", extra={
            "path": request.url.path,
            "code": exc.code,
            "error": exc.message
        })
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code}
    )


FastAPIInstrumentor.instrument_app(app)
SQLAlchemyInstrumentor().instrument(engine=engine)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(orders.router)
app.include_router(admin_orders.router)
app.include_router(cart.router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
