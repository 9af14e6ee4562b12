"""
qpilot - FastAPI Application

Runs natural-language login scenarios against a real browser over HTTP.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from qpilot import __version__
from qpilot.api import api_router
from qpilot.config import settings
from qpilot.log import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    """
    logger = structlog.get_logger()

    logger.info(
        "application_starting",
        version=__version__,
        environment=settings.app_env,
        base_url=settings.base_url,
        resolver=settings.q_resolver,
    )

    yield

    logger.info("application_shutting_down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    configure_logging()

    app = FastAPI(
        title="qpilot",
        description="""
## Natural-language browser scenarios

- **q() instructions**: `user fill username tomsmith`, `user click login button`
- **Multi-strategy locators**: elements resolved by id, name, role, text, ...
- **Expectations**: text checks on page elements after the run

### Quick Start

```
POST /api/v1/scenarios/run
{"scenario_name": "ai-login"}
```
        """,
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": "qpilot",
            "version": __version__,
            "docs": "/docs" if settings.is_development else "Disabled in production",
            "api": "/api/v1",
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger = structlog.get_logger()
        logger.exception("unhandled_exception", error=str(exc))

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.is_development else "An error occurred",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "qpilot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
