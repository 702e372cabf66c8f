"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.logging import log_error, setup_logging
from app.core.metrics import get_metrics, get_metrics_content_type, set_app_info
from app.core.middleware import (
    MetricsMiddleware,
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
)
from app.modules.moderation.admin_router import ops_router, router as admin_moderation_router
from app.modules.moderation.router import router as moderation_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Smart Classroom Moderation API

Warnings, account locks, chatbot restrictions and appeals for classroom
students.

### Authentication

All endpoints except `/health` and `/metrics` require a JWT Bearer token.
`/ops` endpoints accept the admin API key instead.

```
Authorization: Bearer <access_token>
X-Admin-Key: <admin_api_key>
```
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check endpoints",
        },
        {
            "name": "moderation",
            "description": "Student view - status, access probe, appeals",
        },
        {
            "name": "admin-moderation",
            "description": "Admin moderation - warnings, locks, global lock, appeal resolution",
        },
        {
            "name": "ops",
            "description": "Server-to-server operations authenticated by API key",
        },
    ],
)

# Set up logging with correlation IDs
setup_logging(
    level="INFO" if not settings.DEBUG else "DEBUG",
    json_format=True,
    include_stack_trace=True,
    service_name="classroom-moderation",
)

# Set application info for metrics
set_app_info(
    version=settings.VERSION,
    environment="development" if settings.DEBUG else "production",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware, log_request_body=False)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


def custom_openapi() -> dict:
    """Generate custom OpenAPI schema."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
        tags=app.openapi_tags,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "JWT access token",
        },
        "AdminKeyAuth": {
            "type": "apiKey",
            "in": "header",
            "name": "X-Admin-Key",
            "description": "Admin API key for ops endpoints",
        },
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Store failures surface as a generic 500."""
    log_error(
        logger,
        "Database operation failed",
        exception=exc,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(status_code=500, content={"detail": "Server error"})


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        dict: Health status with "healthy" or "unhealthy" value.
    """
    return {"status": "healthy"}


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


# Include routers
app.include_router(moderation_router, prefix=settings.API_V1_PREFIX)
app.include_router(admin_moderation_router, prefix=settings.API_V1_PREFIX)
app.include_router(ops_router, prefix=settings.API_V1_PREFIX)
