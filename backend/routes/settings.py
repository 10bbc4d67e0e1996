"""Health check and settings endpoints."""

from fastapi import APIRouter

from backend import storage

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get simulation settings (seed, decay, clock, score tiers, definition overrides)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update simulation settings (partial merge). Applies to worlds created afterwards."""
    return storage.update_config(body)
