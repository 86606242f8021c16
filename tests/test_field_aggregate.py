"""
Unit tests for the field aggregate.

Tests cover:
- Grid creation
- Tool application and tile bookkeeping
- Stage derivation from tiles
- Scan validation
- Rescans of stage-only fields
"""
import pytest
from datetime import datetime, timezone

from fieldquest.domain.errors import (
    FieldNotReadyError,
    ScanValidationError,
    TileNotFoundError,
)
from fieldquest.domain.models import Coordinate, Stage, TileType, Tool
from fieldquest.services.domain.field_aggregate import FieldAggregate, GridConfig

from conftest import make_reading


NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def tile_at(field, x, y):
    return next(tile for tile in field.tiles if tile.x == x and tile.y == y)


# ============================================================
# Grid Creation Tests
# ============================================================

class TestCreateField:
    """Tests for building a new grid field."""

    def test_dense_grid_of_empty_tiles(self, grid_field):
        coords = {(tile.x, tile.y) for tile in grid_field.tiles}

        assert len(grid_field.tiles) == 100
        assert coords == {(x, y) for x in range(10) for y in range(10)}
        assert all(tile.type == TileType.EMPTY for tile in grid_field.tiles)
        assert all(tile.progress == 0 for tile in grid_field.tiles)

    def test_metrics_copied_from_scan(self, grid_field, sample_scan_result):
        assert grid_field.moisture_level == sample_scan_result.moisture_level
        assert grid_field.soil_condition == sample_scan_result.soil_condition
        assert grid_field.size_acres == sample_scan_result.size_acres
        assert grid_field.recommendations == sample_scan_result.recommendations
        assert grid_field.current_stage == Stage.EMPTY
        assert grid_field.has_grid

    def test_non_square_grid(self, aggregate, sample_scan_result):
        field = aggregate.create_field(4, 3, sample_scan_result)

        assert len(field.tiles) == 12
        assert field.grid_width == 4
        assert field.grid_height == 3
        assert len({tile.id for tile in field.tiles}) == 12

    def test_defaults_come_from_config(self, sample_scan_result):
        aggregate = FieldAggregate(GridConfig(width=2, height=5))

        field = aggregate.create_field(None, None, sample_scan_result)

        assert len(field.tiles) == 10

    def test_invalid_dimensions_rejected(self, aggregate, sample_scan_result):
        with pytest.raises(ValueError):
            aggregate.create_field(-1, 10, sample_scan_result)


# ============================================================
# Tool Application Tests
# ============================================================

class TestApplyToolAt:
    """Tests for applying tools through the aggregate."""

    def test_plough_changes_only_target_tile(self, aggregate, grid_field):
        updated, occurred = aggregate.apply_tool_at(
            grid_field, Coordinate(x=0, y=0), Tool.PLOUGH, now=NOW
        )

        assert occurred
        assert tile_at(updated, 0, 0).type == TileType.SOIL
        assert tile_at(updated, 0, 0).last_updated == NOW
        changed = [t for t in updated.tiles if t.type != TileType.EMPTY]
        assert len(changed) == 1

    def test_input_snapshot_not_mutated(self, aggregate, grid_field):
        aggregate.apply_tool_at(grid_field, Coordinate(x=3, y=4), Tool.PLOUGH)

        assert tile_at(grid_field, 3, 4).type == TileType.EMPTY

    def test_failed_precondition_returns_same_field(self, aggregate, grid_field):
        updated, occurred = aggregate.apply_tool_at(
            grid_field, Coordinate(x=0, y=0), Tool.HARVEST
        )

        assert not occurred
        assert updated is grid_field

    def test_unknown_coordinate(self, aggregate, grid_field):
        with pytest.raises(TileNotFoundError):
            aggregate.apply_tool_at(grid_field, Coordinate(x=10, y=0), Tool.PLOUGH)

    def test_negative_coordinate(self, aggregate, grid_field):
        with pytest.raises(TileNotFoundError):
            aggregate.apply_tool_at(grid_field, Coordinate(x=0, y=-1), Tool.PLOUGH)

    def test_progress_untouched_before_growth(self, aggregate, grid_field):
        coord = Coordinate(x=1, y=1)
        field, _ = aggregate.apply_tool_at(grid_field, coord, Tool.PLOUGH)
        field, _ = aggregate.apply_tool_at(field, coord, Tool.SOW)
        field, _ = aggregate.apply_tool_at(field, coord, Tool.WATER)

        assert tile_at(field, 1, 1).type == TileType.WATERED
        assert tile_at(field, 1, 1).progress == 0

    def test_growth_sets_progress(self, aggregate, grid_field):
        coord = Coordinate(x=1, y=1)
        field = grid_field
        for tool in (Tool.PLOUGH, Tool.SOW, Tool.WATER):
            field, _ = aggregate.apply_tool_at(field, coord, tool)

        grown, grew = aggregate.complete_growth(field, coord)

        assert grew
        assert tile_at(grown, 1, 1).type == TileType.GROWN
        assert tile_at(grown, 1, 1).progress == 100

    def test_growth_skips_tiles_that_are_not_watered(self, aggregate, grid_field):
        field, grew = aggregate.complete_growth(grid_field, Coordinate(x=0, y=0))

        assert not grew
        assert field is grid_field

    def test_tools_need_a_grid(self, aggregate, stored_field):
        with pytest.raises(FieldNotReadyError):
            aggregate.apply_tool_at(stored_field, Coordinate(x=0, y=0), Tool.PLOUGH)


# ============================================================
# Stage Derivation Tests
# ============================================================

class TestStageDerivation:
    """Tests for deriving the field stage from its tiles."""

    def _plough(self, aggregate, field, count):
        for index in range(count):
            field, _ = aggregate.apply_tool_at(
                field, Coordinate(x=index // 10, y=index % 10), Tool.PLOUGH
            )
        return field

    def test_single_tile_does_not_move_field(self, aggregate, grid_field):
        field = self._plough(aggregate, grid_field, 1)

        assert field.current_stage == Stage.EMPTY

    def test_half_is_not_a_majority(self, aggregate, grid_field):
        field = self._plough(aggregate, grid_field, 50)

        assert field.current_stage == Stage.EMPTY

    def test_majority_moves_field(self, aggregate, grid_field):
        field = self._plough(aggregate, grid_field, 51)

        assert field.current_stage == Stage.PLOUGHED

    def test_furthest_stage_reached_by_majority(self, aggregate, grid_field):
        field = self._plough(aggregate, grid_field, 100)
        for index in range(60):
            field, _ = aggregate.apply_tool_at(
                field, Coordinate(x=index // 10, y=index % 10), Tool.SOW
            )

        assert field.current_stage == Stage.PLANTED

    def test_tiles_planted_counts_later_states(self, aggregate, grid_field):
        field = grid_field
        coords = [Coordinate(x=0, y=y) for y in range(3)]
        for coord in coords:
            field, _ = aggregate.apply_tool_at(field, coord, Tool.PLOUGH)
            field, _ = aggregate.apply_tool_at(field, coord, Tool.SOW)
        field, _ = aggregate.apply_tool_at(field, coords[0], Tool.WATER)
        field, _ = aggregate.apply_tool_at(field, Coordinate(x=5, y=5), Tool.PLOUGH)

        assert aggregate.tiles_planted(field) == 3

    def test_empty_tile_list(self, aggregate):
        assert aggregate.derive_stage([]) == Stage.EMPTY


# ============================================================
# Scan Tests
# ============================================================

class TestScans:
    """Tests for validating and applying scans."""

    def test_valid_reading(self, aggregate):
        result = aggregate.validate_scan(make_reading("growing", moisture_level=62))

        assert result.detected_stage == Stage.GROWING
        assert result.moisture_level == 62

    def test_unknown_stage_rejected(self, aggregate):
        with pytest.raises(ScanValidationError):
            aggregate.validate_scan(make_reading("flooded"))

    def test_out_of_range_moisture_rejected(self, aggregate):
        with pytest.raises(ScanValidationError):
            aggregate.validate_scan(make_reading("planted", moisture_level=140))

    def test_rescan_overwrites_stage_only_field(self, aggregate, stored_field):
        result = aggregate.validate_scan(
            make_reading("mature", moisture_level=33, soil_condition="Excellent")
        )

        updated = aggregate.rescan(stored_field, result, now=NOW)

        assert updated.current_stage == Stage.MATURE
        assert updated.moisture_level == 33
        assert updated.soil_condition == "Excellent"
        assert updated.last_scanned_at == NOW
        assert stored_field.current_stage == Stage.EMPTY

    def test_rescan_can_move_backwards(self, aggregate, stored_field):
        harvested = stored_field.model_copy(update={"current_stage": Stage.HARVESTED})
        result = aggregate.validate_scan(make_reading("empty"))

        updated = aggregate.rescan(harvested, result)

        assert updated.current_stage == Stage.EMPTY

    def test_rescan_refuses_grid_fields(self, aggregate, grid_field, sample_scan_result):
        with pytest.raises(FieldNotReadyError):
            aggregate.rescan(grid_field, sample_scan_result)

    def test_stage_only_progress(self, aggregate, stored_field):
        growing = stored_field.model_copy(update={"current_stage": Stage.GROWING})

        assert aggregate.progress(growing) == 70
