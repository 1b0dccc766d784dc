"""
Notice Engine - FastAPI Application

Main entry point for the expiry-notice letter backend.

Architecture:
- RawRecord → Validator → valid records + validation errors
- valid records → Grouping Engine → LetterUnit (annotated)
- LetterUnit → Mutation API → Completeness Engine → LetterUnit
- LetterUnit → Renderer/Exporter → PDF / zip bundle
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import LOG_LEVEL
from .routers import letters_router
from .database import init_db

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Notice Engine",
    description="""
    Notice Engine - Expiry Letter Generation System

    Groups insurance policy records into expiry-notice letters per client and
    template (health / general), tracks the fields an operator still has to
    confirm, and exports the reviewed letters as PDFs.

    ## Pipeline
    1. **Validation**: records missing minimum data are reported, not grouped
    2. **Grouping**: one letter per client and template type
    3. **Review**: every edit re-computes needs_review and missing_data
    4. **Export**: single PDF, zip bundle, or messaging handoff

    ## Key Principles
    - Ingested values are kept next to operator overrides, never replaced
    - Review state is recomputed after every mutation
    - Grouping and completeness are pure, deterministic computations
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(letters_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "Notice Engine",
        "version": "1.0.0",
        "description": "Expiry Letter Generation System",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m app.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
