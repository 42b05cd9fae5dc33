"""Value models passed between the queue store, navigator and UI."""

from config import SEQUENTIAL_SEED
from enum import StrEnum
from pydantic import BaseModel, ConfigDict, Field


class RepeatMode(StrEnum):
    OFF = "off"
    ONE = "one"
    QUEUE = "queue"

    def cycle(self) -> "RepeatMode":
        """Next mode in the OFF → QUEUE → ONE → OFF cycle."""
        order = [RepeatMode.OFF, RepeatMode.QUEUE, RepeatMode.ONE]
        return order[(order.index(self) + 1) % len(order)]


class Track(BaseModel):
    """A library track as referenced by a queue."""

    model_config = ConfigDict(frozen=True)

    id: int
    filepath: str
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    duration: int | None = Field(None, ge=0, description="Duration in milliseconds")

    @property
    def display_name(self) -> str:
        artist = self.artist or "Unknown Artist"
        title = self.title or self.filepath.rsplit('/', 1)[-1]
        return f"{artist} - {title}"


class Queue(BaseModel):
    """A persisted queue with its playback cursor."""

    id: int
    name: str
    is_active: bool = False
    current_index: int = Field(0, ge=0, description="Position in the active order")
    shuffle_seed: int = SEQUENTIAL_SEED
    shuffle_anchor: int = Field(0, ge=0, description="Sequential index fixed by the shuffle")
    length: int = Field(0, ge=0)

    @property
    def is_shuffled(self) -> bool:
        return self.shuffle_seed != SEQUENTIAL_SEED


class PlayerState(BaseModel):
    """Transport state reported by the playback device."""

    playing: bool = False
    paused: bool = False
    position_ms: int = 0
    duration_ms: int = 0
    track_ended: bool = False
    current_file: str | None = None


class NavigatorSnapshot(BaseModel):
    """Read-only view of the navigator cursor handed to observers."""

    model_config = ConfigDict(frozen=True)

    queue_id: int | None = None
    display_index: int | None = None
    shuffle_seed: int = SEQUENTIAL_SEED
    shuffle_anchor: int = 0
    track: Track | None = None
    repeat_mode: RepeatMode = RepeatMode.OFF

    @property
    def is_shuffled(self) -> bool:
        return self.shuffle_seed != SEQUENTIAL_SEED
