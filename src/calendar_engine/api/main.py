"""
FastAPI application for Calendar Engine.

Exposes the tool registry over HTTP:
- GET /health - service status
- GET /tools - registered tool names and descriptions
- POST /tools/{name} - run a tool with the JSON body as its arguments
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse

from calendar_engine import __version__
from calendar_engine.api.dependencies import (
    get_service,
    init_calendar_service,
    is_service_ready,
    shutdown_calendar_service,
)
from calendar_engine.api.middleware import RequestIdFilter, RequestLoggingMiddleware
from calendar_engine.api.models import HealthResponse, ToolListResponse, ToolResponse
from calendar_engine.api.tools import TOOLS, execute_tool, list_tools
from calendar_engine.config import get_settings
from calendar_engine.services.calendar_service import CalendarService

logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Calendar Engine API")
    init_calendar_service()
    logger.info(f"Calendar Engine API started with {len(TOOLS)} tools")

    yield

    logger.info("Shutting down Calendar Engine API")
    shutdown_calendar_service()


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Calendar Engine API",
    description="""
# Calendar Engine API

Calendar and reminder management as named tools.

## Calling a tool

**POST /tools/{name}** with the tool arguments as the JSON body. The response
is always `{"content": ..., "is_error": ...}`:
- success: `content` is pretty-printed JSON (or a short sentence for deletes)
- failure: `content` is `Error: <message>`, `is_error` is true

Tool failures are reported in the body with status 200; only unknown tool
names return 404.
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with the tool response shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"content": f"Error: {exc.detail}", "is_error": True},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"content": "Error: An unexpected error occurred", "is_error": True},
    )


# =============================================================================
# Health & Discovery
# =============================================================================


@app.get("/health", response_model=HealthResponse, summary="Health check", tags=["System"])
async def health_check():
    """Report whether the calendar service is ready to run tools."""
    ready = is_service_ready()
    return HealthResponse(
        status="healthy" if ready else "unhealthy",
        version=__version__,
        store_provider=get_settings().store_provider,
        service_ready=ready,
    )


@app.get("/tools", response_model=ToolListResponse, summary="List tools", tags=["Tools"])
async def get_tools():
    """Names of all registered tools."""
    return ToolListResponse(tools=[t.name for t in list_tools()])


@app.get("/tools/{name}", summary="Describe a tool", tags=["Tools"])
async def describe_tool(name: str):
    """Description and argument schema of one tool."""
    registered = TOOLS.get(name)
    if registered is None:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    return {
        "name": registered.name,
        "description": registered.description,
        "arguments": registered.arguments.model_json_schema(),
    }


# =============================================================================
# Tool Invocation
# =============================================================================


@app.post("/tools/{name}", response_model=ToolResponse, summary="Run a tool", tags=["Tools"])
async def run_tool(
    name: str,
    arguments: Optional[dict[str, Any]] = Body(default=None),
    service: CalendarService = Depends(get_service),
):
    """
    Run a tool with the request body as its arguments.

    Returns:
        ToolResponse with the result text and error flag
    """
    if name not in TOOLS:
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")

    result = await execute_tool(service, name, arguments or {})
    return ToolResponse(content=result.text, is_error=result.is_error)


# =============================================================================
# Run with Uvicorn
# =============================================================================


def configure_logging(level: str) -> None:
    """Root logging with the request id in every line."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: Optional[bool] = None,
):
    """Run the API server with Uvicorn (defaults from settings)."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "calendar_engine.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.api_reload if reload is None else reload,
    )


if __name__ == "__main__":
    run_server()
