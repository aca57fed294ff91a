"""
Health check endpoints
"""

from fastapi import APIRouter, Depends

from fleetsync.api.deps import get_console
from fleetsync.console import FleetConsole

router = APIRouter()


@router.get("/health")
async def health_check(console: FleetConsole = Depends(get_console)):
    """Liveness plus event channel state"""
    channel = "connected" if console.adapter.is_initialized else "disconnected"
    return {
        "status": "healthy" if channel == "connected" else "degraded",
        "event_channel": channel,
        "devices": len(console.store),
        "busy": console.dispatcher.busy,
        "service": "Fleet Console API",
        "version": "1.0.0"
    }
