"""
API router for the stage catalog.
"""
from fastapi import APIRouter
from typing import List

from fieldquest.api.v1.models.responses import StageResponse
from fieldquest.services.domain.stage_catalog import stage_catalog


router = APIRouter(
    prefix="/stages",
    tags=["stages"],
)


@router.get(
    "",
    response_model=List[StageResponse],
    summary="List lifecycle stages",
    description="All field lifecycle stages in order, with their progress percentage.",
)
async def list_stages() -> List[StageResponse]:
    return [
        StageResponse(
            stage=info.stage.value,
            display_name=info.display_name,
            progress=info.progress,
            color_key=info.color_key,
            order=info.order,
        )
        for info in stage_catalog
    ]
