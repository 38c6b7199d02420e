"""
Health and basic status endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter

from medibuddy.config import ENVIRONMENT

router = APIRouter(prefix="", tags=["health"])


@router.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint."""
    return {
        "message": "MediBuddy Trial Matching Backend",
        "status": "operational",
        "version": "1.0.0",
    }


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint."""
    return {"status": "healthy", "environment": ENVIRONMENT}
