"""
Health Check Routes
System status and diagnostics
"""
import logging
from fastapi import APIRouter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@router.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Zoho Books Sync API",
        "version": "1.0.0",
        "description": "Mirrors Zoho Books invoices and purchase orders into local storage",
        "endpoints": {
            "health": "/health",
            "backfill": "/admin/zoho/backfill-all",
            "sync": {
                "all": "/admin/zoho/sync",
                "module": "/admin/zoho/sync/{module}",
                "status": "/admin/zoho/sync/status"
            }
        }
    }
