import logging

from errors import CapacityError, NotFoundError, TrackStateError
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from models import TrackState
from pydantic import BaseModel, Field
from track_pool import DEFAULT_DURATION_S, TrackPool

logger = logging.getLogger(__name__)
router = APIRouter()


def get_track_pool(request: Request) -> TrackPool:
    return request.app.state.track_pool


class TrackCreate(BaseModel):
    prompt: str = ""
    mood: str = ""
    volume: float = 1.0
    duration: float = Field(DEFAULT_DURATION_S, gt=0)
    metadata: dict = Field(default_factory=dict)


class TrackUpdate(BaseModel):
    state: TrackState | None = None
    volume: float | None = None


@router.get("/api/tracks")
def list_tracks(state: TrackState | None = None, pool: TrackPool = Depends(get_track_pool)):
    """All tracks (optionally one state) plus pool status."""
    return {
        "tracks": [t.to_dict() for t in pool.list_tracks(state)],
        "status": pool.status(),
    }


@router.post("/api/tracks", status_code=201)
def create_track(req: TrackCreate, pool: TrackPool = Depends(get_track_pool)):
    track = pool.reserve_track(**req.model_dump())
    if track is None:
        raise HTTPException(409, str(CapacityError(pool.max_tracks)))
    return {"track": track.to_dict()}


@router.get("/api/tracks/{track_id}")
def get_track(track_id: str, pool: TrackPool = Depends(get_track_pool)):
    try:
        return {"track": pool.require(track_id).to_dict()}
    except NotFoundError as e:
        raise HTTPException(404, str(e))


@router.patch("/api/tracks/{track_id}")
def update_track(track_id: str, update: TrackUpdate, pool: TrackPool = Depends(get_track_pool)):
    try:
        if update.state is not None and not pool.set_state(track_id, update.state):
            raise NotFoundError(track_id)
        if update.volume is not None and not pool.set_volume(track_id, update.volume):
            raise NotFoundError(track_id)
        track = pool.require(track_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except TrackStateError as e:
        raise HTTPException(409, str(e))

    logger.info(f"Updated track {track_id}: state={track.state.value} volume={track.volume}")
    return {"track": track.to_dict()}


@router.delete("/api/tracks/{track_id}", status_code=204)
def delete_track(track_id: str, pool: TrackPool = Depends(get_track_pool)):
    if not pool.remove(track_id):
        raise HTTPException(404, "Track not found")
    logger.info(f"Deleted track: {track_id}")
    return Response(status_code=204)
