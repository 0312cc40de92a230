"""Health check, anomaly catalog, and engine settings endpoints."""

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from backend import runs
from haunted_debug.anomalies import default_catalog

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/anomalies")
async def list_anomalies():
    """List the built-in anomalies."""
    return [a.model_dump(mode="json") for a in default_catalog()]


@router.get("/settings")
async def get_settings():
    """Get engine settings (defaults merged with stored values)."""
    return runs.get_config().model_dump(mode="json")


@router.patch("/settings")
async def update_settings(body: dict):
    """Update engine settings (partial merge)."""
    try:
        return runs.set_config(body).model_dump(mode="json")
    except ValidationError as e:
        raise HTTPException(400, str(e))
