"""
FastAPI Application Entry Point

Integrates:
  - Webhook relay (verification handshake + fan-out)
  - Device management routes over the provider API
  - Chat message relay
  - Hook administration
  - Health checks
  - Middleware for logging & error handling

Run: uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""

import json
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from config import get_config
from infra.bootstrap import GatewayBootstrap, get_bootstrap
from store.base import StoreError
from transport.whatsapp.chat import router as chat_router
from transport.whatsapp.devices import router as devices_router
from transport.whatsapp.errors import ApiError, api_error_handler
from transport.whatsapp.hooks import router as hooks_router
from transport.whatsapp.schemas import GATEWAY_VERSION, LoginRequest, ServiceInfo
from transport.whatsapp.security import credentials_match
from transport.whatsapp.webhook import router as webhook_router

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan: startup and shutdown handlers.
    """
    # Startup
    gateway = GatewayBootstrap.get_instance()
    logger.info("=" * 60)
    logger.info("WhatsApp Device Gateway starting up...")
    logger.info(f"Provider API: {gateway.config.provider_api_url}")
    logger.info(f"Hook store: {gateway.config.hooks_data_path}")
    logger.info(f"Environment: {gateway.config.environment}")
    logger.info("=" * 60)
    gateway.config.validate()

    yield

    # Shutdown: let in-flight deliveries finish
    if gateway.fanout.pending:
        logger.info(f"Waiting for {gateway.fanout.pending} webhook deliveries")
        await gateway.fanout.drain()
    logger.info("WhatsApp Device Gateway shutting down...")


# Create FastAPI app
app = FastAPI(
    title="WhatsApp Device Gateway",
    description="Device management and webhook relay in front of a WhatsApp automation API",
    version=GATEWAY_VERSION,
    lifespan=lifespan,
)

app.add_exception_handler(ApiError, api_error_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "apikey"],
)


# Middleware for logging
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests."""
    logger.debug(f"{request.method} {request.url.path}")
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"Request error: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )


# Include routers
app.include_router(webhook_router)
app.include_router(devices_router)
app.include_router(chat_router)
app.include_router(hooks_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return ServiceInfo().model_dump()


@app.post("/api/login")
async def login(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Dashboard login: user and apiKey must match GATEWAY_USER and PROVIDER_API_KEY."""
    try:
        credentials = LoginRequest.model_validate(json.loads(await request.body()))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
        return JSONResponse(status_code=400, content={"success": False})

    config = gateway.config
    if (
        config.gateway_user
        and config.provider_api_key
        and credentials_match(credentials.user, config.gateway_user)
        and credentials_match(credentials.apiKey, config.provider_api_key)
    ):
        return {"success": True}
    return JSONResponse(status_code=401, content={"success": False})


# Health check endpoints
@app.get("/health/live")
async def health_live():
    """Live health check (Kubernetes liveness probe)."""
    return {"status": "alive"}


@app.get("/health/ready")
async def health_ready(gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Readiness health check: configuration loaded and hook store readable."""
    try:
        await gateway.store.count()
        return {"status": "ready", "configured": gateway.config.validate()}
    except StoreError as e:
        return {"status": "not_ready", "reason": str(e)}


if __name__ == "__main__":
    import uvicorn

    config = get_config()
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=config.port,
        reload=config.environment == "development",
    )
