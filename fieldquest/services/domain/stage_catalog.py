"""
Domain service: static catalog of field lifecycle stages.

Holds display metadata and the fixed progress percentage of each stage,
plus the mapping from grid tile types onto stages.
"""
from dataclasses import dataclass
from typing import Union

from fieldquest.domain.errors import ScanValidationError
from fieldquest.domain.models import Stage, TileType


@dataclass(frozen=True)
class StageInfo:
    """Display metadata for a single stage."""
    stage: Stage
    display_name: str
    progress: int
    color_key: str
    order: int


class StageCatalog:
    """
    Ordered table of lifecycle stages.

    Progress is monotonically non-decreasing with stage order.
    """

    _ENTRIES = (
        (Stage.EMPTY, "Unploughed Land", 0, "amber-light"),
        (Stage.PLOUGHED, "Ploughed Field", 20, "amber-dark"),
        (Stage.PLANTED, "Seeds Planted", 40, "green-light"),
        (Stage.GROWING, "Crops Growing", 70, "green"),
        (Stage.MATURE, "Ready to Harvest", 95, "green-dark"),
        (Stage.HARVESTED, "Harvested", 100, "yellow"),
    )

    TILE_STAGES = {
        TileType.EMPTY: Stage.EMPTY,
        TileType.SOIL: Stage.PLOUGHED,
        TileType.PLANTED: Stage.PLANTED,
        TileType.WATERED: Stage.GROWING,
        TileType.GROWN: Stage.MATURE,
        TileType.HARVESTED: Stage.HARVESTED,
    }

    def __init__(self):
        self._stages = {
            stage: StageInfo(
                stage=stage,
                display_name=name,
                progress=progress,
                color_key=color,
                order=index,
            )
            for index, (stage, name, progress, color) in enumerate(self._ENTRIES)
        }

    def __iter__(self):
        return iter(self.ordered())

    def __len__(self) -> int:
        return len(self._stages)

    def ordered(self) -> list[StageInfo]:
        """All stages in lifecycle order."""
        return sorted(self._stages.values(), key=lambda info: info.order)

    def info(self, stage: Stage) -> StageInfo:
        return self._stages[stage]

    def progress(self, stage: Stage) -> int:
        return self._stages[stage].progress

    def order(self, stage: Stage) -> int:
        return self._stages[stage].order

    def stage_at(self, order: int) -> Stage:
        return self.ordered()[order].stage

    def for_tile(self, tile_type: TileType) -> Stage:
        """Stage a single tile of the given type corresponds to."""
        return self.TILE_STAGES[tile_type]

    def parse(self, value: Union[str, Stage]) -> Stage:
        """
        Validate an untrusted stage value.

        Args:
            value: Stage name as reported by a scan or the store

        Returns:
            The matching Stage

        Raises:
            ScanValidationError: If the value is not a known stage
        """
        if isinstance(value, Stage):
            return value
        try:
            return Stage(str(value).strip().lower())
        except ValueError:
            known = ", ".join(info.stage.value for info in self.ordered())
            raise ScanValidationError(
                f"Unknown field stage '{value}' (expected one of: {known})"
            )


# Module-level catalog; stages are static
stage_catalog = StageCatalog()
