# backend/printshop/main.py

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .api import api_chat, api_orders, api_ws
from .core.config import settings, FRONTEND_ORIGINS
from .core.observability import setup_logging
from .database import Base, engine
from .utils.errors import field_errors_from

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Print Shop Realtime API", default_response_class=ORJSONResponse)

app.add_middleware(
    CORSMiddleware,
    allow_origins=FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", FRONTEND_ORIGINS)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Return JSON responses for HTTP errors and log them."""
    if exc.status_code >= 500:
        logger.error("HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail)
    else:
        logger.info("HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail)
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors as ``{"message", "field_errors"}`` and log them."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {
                "message": "Validation error",
                "field_errors": field_errors_from(errors),
            }
        },
    )


api_prefix = settings.API_V1_STR  # usually something like "/api/v1"

app.include_router(api_ws.router, prefix=f"{api_prefix}", tags=["realtime"])
app.include_router(api_chat.router, prefix=f"{api_prefix}/chat")
app.include_router(api_orders.router, prefix=f"{api_prefix}/orders")


@app.on_event("startup")
def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok", "connections": len(api_ws.hub.registry)}
