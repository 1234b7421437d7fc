"""
FastAPI main application.
Entry point for the ToyWonder AI API.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from toywonder.core.config import get_settings
from toywonder.core.errors import ErrorKind, TerminalError, ValidationError
from toywonder.api import routes_ai, routes_catalog
from toywonder.core.logging import setup_logging
from toywonder.services.broker import ResponseBroker
from toywonder.services.catalog import load_catalog

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the catalog and build the response broker on startup."""
    logger.info("Starting ToyWonder AI API...")
    settings = get_settings()
    catalog = await load_catalog(settings)
    app.state.broker = ResponseBroker(catalog, settings=settings)
    if not settings.has_provider_credential:
        logger.warning("GEMINI_API_KEY not set; using local heuristics and the keyless image service only.")
    yield
    logger.info("Shutting down ToyWonder AI API...")


# Create FastAPI app
app = FastAPI(
    title="ToyWonder AI API",
    description="GiftBot chat, recommendations and image tools for the ToyWonder toy shop",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(routes_ai.router, prefix="/api/ai", tags=["ai"])
app.include_router(routes_catalog.router, prefix="/api", tags=["catalog"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "ToyWonder AI API is running",
        "version": "1.0.0"
    }


@app.get("/api/health")
async def health_check(request: Request):
    """Detailed health check."""
    settings = get_settings()
    broker = getattr(request.app.state, "broker", None)
    return {
        "status": "healthy",
        "backend_mode": settings.backend_mode,
        "ai": broker.state if broker else "starting",
        "products": len(broker.catalog) if broker else 0,
    }


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "field": exc.field},
    )


@app.exception_handler(TerminalError)
async def terminal_exception_handler(request: Request, exc: TerminalError):
    status_code = 503 if exc.error_kind == ErrorKind.CAPABILITY_UNSUPPORTED else 502
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_kind": exc.error_kind.value,
            "remediation": exc.remediation,
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc)},
    )


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "toywonder.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True
    )
