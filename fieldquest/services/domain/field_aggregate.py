"""
Domain service: field grid ownership and stage derivation.

This module provides the operations that move a field through its
lifecycle:
- Grid creation from a validated scan
- Tool application on a single tile
- Deferred growth of watered tiles
- Authoritative rescans of stage-only fields
- Majority-based stage derivation for grid fields
"""
from datetime import datetime, timezone
from typing import Optional
from dataclasses import dataclass
import uuid
import numpy as np
import logging
from pydantic import ValidationError

from fieldquest.config import settings
from fieldquest.domain.errors import (
    FieldNotReadyError,
    ScanValidationError,
    TileNotFoundError,
)
from fieldquest.domain.models import (
    Coordinate,
    Field,
    ScanReading,
    ScanResult,
    Stage,
    Tile,
    TileType,
    Tool,
)
from fieldquest.services.domain.stage_catalog import StageCatalog, stage_catalog
from fieldquest.services.domain.tile_state_machine import TileStateMachine

logger = logging.getLogger(__name__)


@dataclass
class GridConfig:
    """Configuration for newly created field grids."""

    width: int = 10
    """Number of tile columns"""

    height: int = 10
    """Number of tile rows"""

    default_name: str = "My Farm Field"
    """Name given to fields created from a scan"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FieldAggregate:
    """
    Domain service owning the rules for a field and its tile grid.

    Every operation takes a Field snapshot and returns a new one; the
    input snapshot is never mutated.
    """

    PLANTED_TILE_TYPES = frozenset({
        TileType.PLANTED,
        TileType.WATERED,
        TileType.GROWN,
        TileType.HARVESTED,
    })

    def __init__(
        self,
        config: Optional[GridConfig] = None,
        state_machine: Optional[TileStateMachine] = None,
        catalog: Optional[StageCatalog] = None,
    ):
        """
        Initialize the aggregate.

        Args:
            config: Grid configuration (defaults from settings)
            state_machine: Tile transition rules
            catalog: Stage catalog used for derivation and validation
        """
        self.config = config or GridConfig(
            width=settings.grid_width,
            height=settings.grid_height,
        )
        self.state_machine = state_machine or TileStateMachine()
        self.catalog = catalog or stage_catalog

    # ------------------------------------------------------------
    # Scan validation
    # ------------------------------------------------------------

    def validate_scan(self, reading: ScanReading) -> ScanResult:
        """
        Validate an untrusted scan reading.

        Raises:
            ScanValidationError: If the stage is unknown or a metric is
                out of range
        """
        stage = self.catalog.parse(reading.detected_stage)
        try:
            return ScanResult(
                detected_stage=stage,
                moisture_level=reading.moisture_level,
                soil_condition=reading.soil_condition,
                recommendations=reading.recommendations,
                size_acres=reading.size_acres,
            )
        except ValidationError as e:
            raise ScanValidationError(f"Invalid scan reading: {e.errors()[0]['msg']}")

    # ------------------------------------------------------------
    # Grid fields
    # ------------------------------------------------------------

    def create_field(
        self,
        grid_width: Optional[int],
        grid_height: Optional[int],
        initial_metrics: ScanResult,
        name: Optional[str] = None,
        field_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Field:
        """
        Build a field with a dense grid of empty tiles.

        Args:
            grid_width: Number of columns (defaults to config)
            grid_height: Number of rows (defaults to config)
            initial_metrics: Validated scan the field is created from
            name: Field name
            field_id: Field identifier (generated when omitted)
            now: Creation timestamp

        Returns:
            New Field with width*height empty tiles
        """
        width = grid_width or self.config.width
        height = grid_height or self.config.height
        if width <= 0 or height <= 0:
            raise ValueError(f"Grid dimensions must be positive, got {width}x{height}")

        now = now or _utcnow()
        tiles = [
            Tile(id=f"{x}-{y}", x=x, y=y, type=TileType.EMPTY, progress=0, last_updated=now)
            for x in range(width)
            for y in range(height)
        ]

        field = Field(
            id=field_id or uuid.uuid4().hex,
            name=name or self.config.default_name,
            size_acres=initial_metrics.size_acres,
            soil_condition=initial_metrics.soil_condition,
            moisture_level=initial_metrics.moisture_level,
            current_stage=Stage.EMPTY,
            last_scanned_at=now,
            recommendations=list(initial_metrics.recommendations),
            grid_width=width,
            grid_height=height,
            tiles=tiles,
        )
        logger.info(f"Created field {field.id} with a {width}x{height} grid")
        return field

    def find_tile(self, field: Field, coordinate: Coordinate) -> tuple[int, Tile]:
        """
        Locate a tile by coordinate.

        Returns:
            (index in the grid, tile)

        Raises:
            FieldNotReadyError: If the field has no grid
            TileNotFoundError: If no tile has that coordinate
        """
        if not field.has_grid:
            raise FieldNotReadyError(f"Field {field.id} has no tile grid")

        # Grids are built column-major, so try the direct slot first
        if field.grid_height and 0 <= coordinate.x and 0 <= coordinate.y < field.grid_height:
            index = coordinate.x * field.grid_height + coordinate.y
            if index < len(field.tiles):
                tile = field.tiles[index]
                if tile.x == coordinate.x and tile.y == coordinate.y:
                    return index, tile

        for index, tile in enumerate(field.tiles):
            if tile.x == coordinate.x and tile.y == coordinate.y:
                return index, tile
        raise TileNotFoundError(coordinate.x, coordinate.y)

    def apply_tool_at(
        self,
        field: Field,
        coordinate: Coordinate,
        tool: Tool,
        now: Optional[datetime] = None,
    ) -> tuple[Field, bool]:
        """
        Apply a tool to the tile at a coordinate.

        Args:
            field: Grid field snapshot
            coordinate: Tile coordinate
            tool: Tool used
            now: Timestamp stamped on the tile

        Returns:
            (new field snapshot, whether a transition occurred). When no
            transition occurs the same field object is returned.

        Raises:
            TileNotFoundError: If the coordinate is outside the grid
        """
        index, tile = self.find_tile(field, coordinate)
        updated = self.state_machine.apply_tool(tile, tool)
        if updated is tile:
            return field, False

        return self._replace_tile(field, index, updated, now), True

    def complete_growth(
        self,
        field: Field,
        coordinate: Coordinate,
        now: Optional[datetime] = None,
    ) -> tuple[Field, bool]:
        """
        Apply the deferred watered -> grown advance to one tile.

        Returns:
            (new field snapshot, whether the tile grew)
        """
        index, tile = self.find_tile(field, coordinate)
        updated = self.state_machine.advance_growth(tile)
        if updated is tile:
            logger.debug(f"Tile {tile.id} is {tile.type.value}, skipping growth")
            return field, False

        return self._replace_tile(field, index, updated, now), True

    def _replace_tile(
        self,
        field: Field,
        index: int,
        tile: Tile,
        now: Optional[datetime],
    ) -> Field:
        update = {"last_updated": now or _utcnow()}
        if tile.type == TileType.GROWN:
            update["progress"] = 100
        tiles = list(field.tiles)
        tiles[index] = tile.model_copy(update=update)
        return field.model_copy(update={
            "tiles": tiles,
            "current_stage": self.derive_stage(tiles),
        })

    def derive_stage(self, tiles: list[Tile]) -> Stage:
        """
        Derive the field stage from its tiles.

        The field is at the furthest stage that more than half of its
        tiles have reached or passed.
        """
        if not tiles:
            return Stage.EMPTY

        orders = np.array([
            self.catalog.order(self.catalog.for_tile(tile.type)) for tile in tiles
        ])
        counts = np.bincount(orders, minlength=len(self.catalog))
        reached = np.cumsum(counts[::-1])[::-1]
        majority = np.flatnonzero(reached * 2 > len(tiles))
        return self.catalog.stage_at(int(majority[-1]))

    def tiles_planted(self, field: Field) -> int:
        """Number of tiles at or past the planted state."""
        if not field.has_grid:
            return 0
        return sum(1 for tile in field.tiles if tile.type in self.PLANTED_TILE_TYPES)

    # ------------------------------------------------------------
    # Stage-only fields
    # ------------------------------------------------------------

    def rescan(
        self,
        field: Field,
        scan_result: ScanResult,
        now: Optional[datetime] = None,
    ) -> Field:
        """
        Overwrite a stage-only field with a validated scan.

        Raises:
            FieldNotReadyError: If the field has a tile grid, whose stage
                can only be derived from its tiles
        """
        if field.has_grid:
            raise FieldNotReadyError(
                f"Field {field.id} has a tile grid; its stage follows its tiles"
            )

        updated = field.model_copy(update={
            "current_stage": scan_result.detected_stage,
            "moisture_level": scan_result.moisture_level,
            "soil_condition": scan_result.soil_condition,
            "recommendations": list(scan_result.recommendations),
            "last_scanned_at": now or _utcnow(),
        })
        logger.info(
            f"Rescanned field {field.id}: "
            f"{field.current_stage.value} -> {updated.current_stage.value}"
        )
        return updated

    def progress(self, field: Field) -> int:
        """Field-level progress percentage from the stage catalog."""
        return self.catalog.progress(field.current_stage)
