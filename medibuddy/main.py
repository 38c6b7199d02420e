"""
FastAPI application for the MediBuddy trial matching backend.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import ALLOWED_ORIGINS, ENVIRONMENT
from .routers import consultations as consultations_router
from .routers import entities as entities_router
from .routers import health
from .routers import matches as matches_router
from .routers import trials as trials_router
from .utils.logging import setup_structured_logging

logger = logging.getLogger(__name__)

app = FastAPI(
    title="MediBuddy Trial Matching API",
    description="Clinical trial matching from consultation transcripts and structured medical entities",
    version="1.0.0",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if ENVIRONMENT == "development" else ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(trials_router.router)
app.include_router(consultations_router.router)
app.include_router(entities_router.router)
app.include_router(matches_router.router)


@app.on_event("startup")
async def _on_startup():
    setup_structured_logging()
    logger.info(f"MediBuddy backend started ({ENVIRONMENT})")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("medibuddy.main:app", host="0.0.0.0", port=8000, reload=ENVIRONMENT == "development")
