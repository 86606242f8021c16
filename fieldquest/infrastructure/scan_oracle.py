"""
Infrastructure layer: field scan oracle.

The oracle turns an image into a stage classification and soil metrics.
Real inference lives outside this service; ``SimulatedScanOracle``
produces plausible readings after a configurable delay.
"""
from typing import Optional, Protocol
import asyncio
import logging
import numpy as np

from fieldquest.config import settings
from fieldquest.domain.models import ImageReference, ScanReading, Stage

logger = logging.getLogger(__name__)


class ScanOracle(Protocol):
    """Anything that can analyze a field image."""

    async def analyze(self, image: ImageReference) -> ScanReading:
        ...


class SimulatedScanOracle:
    """
    Stand-in oracle returning random readings.

    Moisture is drawn from [30, 70], soil condition from
    Good/Fair/Excellent and the stage from the known stage set.
    """

    SOIL_CONDITIONS = ("Good", "Fair", "Excellent")
    RECOMMENDATIONS = (
        "Soil pH is optimal for crop growth",
        "Consider adding organic matter",
        "Regular watering schedule recommended",
        "Monitor for pest activity",
    )

    def __init__(
        self,
        latency: Optional[float] = None,
        size_acres: Optional[float] = None,
        seed: Optional[int] = None,
    ):
        self.latency = settings.scan_latency_seconds if latency is None else latency
        self.size_acres = settings.scan_default_size_acres if size_acres is None else size_acres
        self.rng = np.random.default_rng(settings.scan_seed if seed is None else seed)

    async def analyze(self, image: ImageReference) -> ScanReading:
        logger.info(f"Analyzing image '{image.name}' ({image.size_bytes} bytes)")
        await asyncio.sleep(self.latency)

        stages = [stage.value for stage in Stage]
        reading = ScanReading(
            detected_stage=str(self.rng.choice(stages)),
            moisture_level=int(self.rng.integers(30, 71)),
            soil_condition=str(self.rng.choice(self.SOIL_CONDITIONS)),
            recommendations=list(self.RECOMMENDATIONS),
            size_acres=self.size_acres,
        )
        logger.debug(f"Scan reading: {reading}")
        return reading


# Singleton instance
_scan_oracle: Optional[SimulatedScanOracle] = None


def get_scan_oracle() -> SimulatedScanOracle:
    """
    Get or create the singleton scan oracle.

    Returns:
        SimulatedScanOracle instance
    """
    global _scan_oracle
    if _scan_oracle is None:
        _scan_oracle = SimulatedScanOracle()
    return _scan_oracle
