import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from moods import list_moods

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/moods")
def get_moods():
    return {"moods": list_moods()}


@router.get("/api/health")
async def get_health(request: Request):
    """Service health plus an informational check of the remote generator."""
    generator = request.app.state.generator
    if generator is None:
        comfyui = {"healthy": False, "error": "not configured"}
    else:
        comfyui = await generator.comfy.check_health()
    return {
        "status": "ok",
        "comfyui": comfyui,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
