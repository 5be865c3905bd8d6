import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

FilterChain = tuple[str, ...]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class TrackState(str, Enum):
    GENERATING = "generating"
    READY = "ready"
    PLAYING = "playing"
    FADING = "fading"
    EXPIRED = "expired"


@dataclass(frozen=True)
class GenerationRequest:
    text: str
    mood: str = ""
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass(frozen=True)
class RemoteJobHandle:
    correlation_id: str
    submitted_at: datetime
    prompt_id: Optional[str] = None  # remote queue id, when the ack carries one


@dataclass(frozen=True)
class ArtifactReference:
    filename: str
    subfolder: str = ""
    type: str = "output"

    @classmethod
    def from_output(cls, entry: dict) -> "ArtifactReference":
        return cls(
            filename=entry["filename"],
            subfolder=entry.get("subfolder") or "",
            type=entry.get("type") or "output",
        )


@dataclass
class Track:
    id: str
    state: TrackState
    prompt: str
    mood: str
    volume: float
    duration: float
    created_at: datetime
    filters: FilterChain
    started_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "state": self.state.value,
            "prompt": self.prompt,
            "mood": self.mood,
            "volume": self.volume,
            "duration": self.duration,
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "expired_at": _iso(self.expired_at),
            "filters": list(self.filters),
            "metadata": self.metadata,
        }
