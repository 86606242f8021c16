"""
Domain models for fields, tiles, tasks and scans.

These models represent the core domain entities and should be independent
of any infrastructure concerns (store clients, HTTP, etc.). Fields and
tiles are treated as immutable snapshots: every change produces a copy.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field as ModelField


class Stage(str, Enum):
    """Field lifecycle stage, declared in lifecycle order."""
    EMPTY = "empty"
    PLOUGHED = "ploughed"
    PLANTED = "planted"
    GROWING = "growing"
    MATURE = "mature"
    HARVESTED = "harvested"


class TileType(str, Enum):
    """Finer-grained state of a single tile in the interactive grid."""
    EMPTY = "empty"
    SOIL = "soil"
    PLANTED = "planted"
    WATERED = "watered"
    GROWN = "grown"
    HARVESTED = "harvested"


class Tool(str, Enum):
    """Tools a player can apply to a tile."""
    PLOUGH = "plough"
    SOW = "sow"
    WATER = "water"
    HARVEST = "harvest"


# Task types mirror the tools one-to-one
TaskType = Tool


class Coordinate(BaseModel):
    """Grid coordinate of a tile."""
    x: int
    y: int

    class Config:
        frozen = True

    @property
    def tile_id(self) -> str:
        return f"{self.x}-{self.y}"


class Tile(BaseModel):
    """Single tile of a field grid."""
    id: str
    x: int
    y: int
    type: TileType = TileType.EMPTY
    progress: int = ModelField(default=0, ge=0, le=100)
    last_updated: datetime

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(x=self.x, y=self.y)


class Field(BaseModel):
    """
    A farm field.

    Fields with a tile grid derive ``current_stage`` from their tiles.
    Fields without a grid are tracked by scans only and their
    ``current_stage`` is authoritative.
    """
    id: str
    name: str
    user_id: Optional[str] = None
    size_acres: float = ModelField(default=0.0, ge=0)
    soil_condition: str = "Unknown"
    moisture_level: int = ModelField(default=0, ge=0, le=100)
    current_stage: Stage = Stage.EMPTY
    last_scanned_at: Optional[datetime] = None
    recommendations: List[str] = ModelField(default_factory=list)
    image_url: Optional[str] = None
    grid_width: Optional[int] = None
    grid_height: Optional[int] = None
    tiles: Optional[List[Tile]] = None

    @property
    def has_grid(self) -> bool:
        return self.tiles is not None


class Task(BaseModel):
    """A learnable farming task worth a fixed number of points."""
    id: str
    type: TaskType
    title: str
    description: str
    points: int = ModelField(gt=0)
    completed: bool = False
    strategy: Optional[str] = None


class ScanReading(BaseModel):
    """
    Raw output of the scan oracle.

    Untrusted: the stage is a free string and must be validated before
    it touches a field.
    """
    detected_stage: str
    moisture_level: int
    soil_condition: str
    recommendations: List[str] = ModelField(default_factory=list)
    size_acres: float


class ScanResult(BaseModel):
    """Validated scan reading, safe to apply to a field."""
    detected_stage: Stage
    moisture_level: int = ModelField(ge=0, le=100)
    soil_condition: str
    recommendations: List[str] = ModelField(default_factory=list)
    size_acres: float = ModelField(ge=0)


class ImageReference(BaseModel):
    """Decoded image handed over by the upload collaborator."""
    name: str
    content_type: Optional[str] = None
    data: bytes = b""

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class Notification(BaseModel):
    """User-visible message emitted by the game session."""
    title: str
    message: str
    created_at: datetime


class ScanRecord(BaseModel):
    """Row written to the store for every applied scan."""
    field_id: str
    user_id: Optional[str] = None
    scan_type: str = "image"
    detected_stage: Stage
    moisture_level: int
    soil_condition: str
    recommendations: List[str] = ModelField(default_factory=list)
    image_url: Optional[str] = None
    verified: bool = False
