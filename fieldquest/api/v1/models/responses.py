"""
API response models using Pydantic.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from fieldquest.domain.models import Field as DomainField, Notification, Task, Tile
from fieldquest.services.domain.stage_catalog import StageCatalog


class StageResponse(BaseModel):
    """Single lifecycle stage."""
    stage: str = Field(description="Stage identifier", examples=["planted"])
    display_name: str = Field(description="Human readable stage name")
    progress: int = Field(description="Field progress percentage at this stage")
    color_key: str = Field(description="Color/asset key used to render the stage")
    order: int = Field(description="Position in the lifecycle")


class FieldResponse(BaseModel):
    """Field snapshot."""
    id: str
    name: str
    user_id: Optional[str] = None
    size_acres: float
    soil_condition: str
    moisture_level: int
    current_stage: str
    stage_name: str = Field(description="Display name of the current stage")
    progress: int = Field(description="Progress percentage of the current stage")
    last_scanned_at: Optional[datetime] = None
    recommendations: List[str] = Field(default_factory=list)
    grid_width: Optional[int] = None
    grid_height: Optional[int] = None
    tiles_planted: Optional[int] = Field(
        default=None,
        description="Tiles at or past the planted state (grid fields only)"
    )
    tiles: Optional[List[Tile]] = None

    @classmethod
    def from_field(
        cls,
        field: DomainField,
        catalog: StageCatalog,
        tiles_planted: Optional[int] = None,
    ) -> "FieldResponse":
        info = catalog.info(field.current_stage)
        return cls(
            id=field.id,
            name=field.name,
            user_id=field.user_id,
            size_acres=field.size_acres,
            soil_condition=field.soil_condition,
            moisture_level=field.moisture_level,
            current_stage=field.current_stage.value,
            stage_name=info.display_name,
            progress=info.progress,
            last_scanned_at=field.last_scanned_at,
            recommendations=field.recommendations,
            grid_width=field.grid_width,
            grid_height=field.grid_height,
            tiles_planted=tiles_planted,
            tiles=field.tiles,
        )


class SessionResponse(BaseModel):
    """Game session snapshot."""
    session_id: str
    user_id: Optional[str] = None
    points: int = Field(description="Current point balance")
    scan_state: str = Field(description="'idle' or 'analyzing'")
    field: Optional[FieldResponse] = None
    tasks: List[Task] = Field(description="Pending tasks")
    completed_tasks: List[Task] = Field(description="Completed tasks in completion order")


class TasksResponse(BaseModel):
    """Task ledger snapshot."""
    tasks: List[Task]
    completed_tasks: List[Task]
    points: int


class TaskCompletionResponse(BaseModel):
    """Result of completing a task by hand."""
    task: Task
    newly_completed: bool = Field(
        description="False when the task had already been completed"
    )
    points: int


class ToolActionResponse(BaseModel):
    """Result of applying a tool to a tile."""
    tile: Tile
    transition_occurred: bool
    completed_task: Optional[Task] = None
    points: int
    growth_scheduled: bool = False
    field_stage: str
    tiles_planted: int


class RescanResponse(BaseModel):
    """Result of rescanning a stored field."""
    field: FieldResponse
    previous_stage: str
    completed_tasks: List[Task]
    points_awarded: int
    points: int


class NotificationsResponse(BaseModel):
    """Notifications emitted in a session."""
    notifications: List[Notification]

    class Config:
        json_schema_extra = {
            "example": {
                "notifications": [
                    {
                        "title": "Task completed",
                        "message": "Task completed: Plough Your Field",
                        "created_at": "2024-01-15T08:00:00Z",
                    },
                ]
            }
        }
