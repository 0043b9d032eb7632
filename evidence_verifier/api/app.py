"""FastAPI application for the evidence verifier service."""

import contextlib
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load environment variables from .env file
load_dotenv()

from ..infrastructure.dependencies import get_service_container
from .endpoints import claims, health, verification

# Configure logging
logging.basicConfig(
    level=get_service_container().settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="Evidence Verifier API",
    description="Verifies that a document's cited statements are backed by captured evidence",
    version="0.1.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(verification.router)
app.include_router(claims.router)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager: set up the oracle on startup, release it on shutdown."""
    container = get_service_container()
    await container.get_oracle()

    yield  # Application runs here

    await container.shutdown()


# Set lifespan handler
app.router.lifespan_context = lifespan
