"""
Domain service: tool-driven transitions of a single tile.
"""
from typing import Optional
import logging

from fieldquest.domain.models import Tile, TileType, Tool

logger = logging.getLogger(__name__)


class TileStateMachine:
    """
    Transition function for grid tiles.

    Each tool has exactly one precondition type and one result type.
    Applying a tool to a tile of any other type is a silent no-op.
    Watering additionally arms a deferred watered -> grown advance, which
    the caller is responsible for scheduling.
    """

    TRANSITIONS: dict[Tool, tuple[TileType, TileType]] = {
        Tool.PLOUGH: (TileType.EMPTY, TileType.SOIL),
        Tool.SOW: (TileType.SOIL, TileType.PLANTED),
        Tool.WATER: (TileType.PLANTED, TileType.WATERED),
        Tool.HARVEST: (TileType.GROWN, TileType.HARVESTED),
    }

    GROWTH_TRANSITION = (TileType.WATERED, TileType.GROWN)

    def next_type(self, current: TileType, tool: Tool) -> Optional[TileType]:
        """Resulting tile type, or None when the precondition fails."""
        precondition, result = self.TRANSITIONS[tool]
        if current != precondition:
            return None
        return result

    def apply_tool(self, tile: Tile, tool: Tool) -> Tile:
        """
        Apply a tool to a tile.

        Args:
            tile: Current tile
            tool: Tool used on it

        Returns:
            A new tile with the resulting type, or the same tile
            object if the tool cannot be used on it yet
        """
        new_type = self.next_type(tile.type, tool)
        if new_type is None:
            logger.debug(f"Ignoring {tool.value} on tile {tile.id} ({tile.type.value})")
            return tile
        return tile.model_copy(update={"type": new_type})

    def schedules_growth(self, tool: Tool) -> bool:
        """Whether a successful use of this tool arms the growth advance."""
        return self.TRANSITIONS[tool][1] == self.GROWTH_TRANSITION[0]

    def advance_growth(self, tile: Tile) -> Tile:
        """Deferred watered -> grown transition; no-op for any other type."""
        watered, grown = self.GROWTH_TRANSITION
        if tile.type != watered:
            return tile
        return tile.model_copy(update={"type": grown})
