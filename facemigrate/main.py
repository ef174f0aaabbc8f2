"""FastAPI application entry point."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import get_settings
from .logging_config import configure_from_settings, get_logger
from .routers import templates

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    configure_from_settings(settings)
    logger.info("Face template migration API starting")
    yield
    logger.info("Face template migration API stopped")


# Create FastAPI app
app = FastAPI(
    title="Face Template Migration API",
    description="Converts legacy face templates to normalized float vectors",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(templates.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Face Template Migration API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
