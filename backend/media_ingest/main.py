"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, Response

from media_ingest.core.config import settings
from media_ingest.core.database import engine
from media_ingest.core.logging import setup_logging
from media_ingest.core.metrics import get_content_type, get_metrics, set_app_info
from media_ingest.core.middleware import (
    CorrelationIdMiddleware,
    MetricsMiddleware,
    RequestLoggingMiddleware,
    TracingMiddleware,
)
from media_ingest.core.tracing import setup_tracing, shutdown_tracing
from media_ingest.modules.asset.router import router as asset_router
from media_ingest.modules.transcoding.router import router as transcode_router
from media_ingest.modules.upload.router import router as upload_router

ENVIRONMENT = "development" if settings.DEBUG else "production"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Flush spans and close pooled connections on shutdown."""
    yield
    shutdown_tracing()
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="""
## Media Ingest API

Direct-to-storage multipart uploads for campaign media, with an asynchronous
transcode queue for video.

### Flow

1. `POST /upload/start` returns one presigned PUT URL per part
2. The client uploads each part straight to object storage
3. `POST /upload/complete` assembles the object and registers the asset
4. Video assets are transcoded in the background; poll `GET /assets/{id}`

### Authentication

All endpoints except `/health` and `/metrics` require a JWT Bearer token.

```
Authorization: Bearer <access_token>
```
    """,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check and Prometheus metrics",
        },
        {
            "name": "uploads",
            "description": "Multipart upload sessions - start and complete",
        },
        {
            "name": "assets",
            "description": "Registered assets - status, playback fields, download",
        },
        {
            "name": "transcode",
            "description": "Transcode queue - sweeps, stats, manual requeue",
        },
    ],
)

setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
    include_stack_trace=True,
)

setup_tracing(
    service_name=settings.PROJECT_NAME,
    service_version=settings.VERSION,
    environment=ENVIRONMENT,
    otlp_endpoint=settings.OTLP_ENDPOINT,
    enable_console_export=settings.DEBUG,
)

set_app_info(version=settings.VERSION, environment=ENVIRONMENT)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TracingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(MetricsMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are client errors, reported as 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


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
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


@app.get("/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    """Swagger UI documentation."""
    return get_swagger_ui_html(
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        title=f"{settings.PROJECT_NAME} - Swagger UI",
        swagger_js_url="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui-bundle.js",
        swagger_css_url="https://cdn.jsdelivr.net/npm/swagger-ui-dist@5/swagger-ui.css",
    )


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/metrics", tags=["health"], include_in_schema=False)
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_content_type())


# Include routers
app.include_router(upload_router, prefix=settings.API_V1_PREFIX)
app.include_router(asset_router, prefix=settings.API_V1_PREFIX)
app.include_router(transcode_router, prefix=settings.API_V1_PREFIX)
