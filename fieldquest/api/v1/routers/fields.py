"""
API router for stored field endpoints.
"""
from fastapi import APIRouter, HTTPException, Path, Query, Request
from typing import Annotated, List, Optional

from fieldquest.api.dependencies import (
    FieldServiceDep,
    SessionRegistryDep,
    UploadedImageDep,
)
from fieldquest.api.rate_limit import SCAN_RATE_LIMIT, limiter
from fieldquest.api.v1.models.responses import FieldResponse, RescanResponse
from fieldquest.domain.errors import (
    FieldNotReadyError,
    ScanValidationError,
    SessionClosedError,
    SessionNotFoundError,
)
from fieldquest.infrastructure.store_client import StoreError


router = APIRouter(
    prefix="/fields",
    tags=["fields"],
)


def _store_http_error(e: StoreError, field_id: Optional[str] = None) -> HTTPException:
    if e.status_code == 404:
        return HTTPException(
            status_code=404,
            detail=f"Field with ID '{field_id}' not found"
        )
    return HTTPException(
        status_code=502,
        detail=f"Failed to reach the field store: {e.message}"
    )


@router.get(
    "",
    response_model=List[FieldResponse],
    summary="List a user's fields",
)
async def list_fields(
    user_id: Annotated[str, Query(description="Owner of the fields")],
    field_service: FieldServiceDep,
) -> List[FieldResponse]:
    try:
        fields = await field_service.list_fields(user_id)
    except StoreError as e:
        raise _store_http_error(e)
    catalog = field_service.aggregate.catalog
    return [FieldResponse.from_field(field, catalog) for field in fields]


@router.get(
    "/{field_id}",
    response_model=FieldResponse,
    summary="Get a stored field",
    responses={
        404: {"description": "Field not found"},
        502: {"description": "Field store failure"},
    },
)
async def get_field(
    field_id: Annotated[str, Path(description="Unique identifier for the field")],
    field_service: FieldServiceDep,
) -> FieldResponse:
    try:
        field = await field_service.get_field(field_id)
    except StoreError as e:
        raise _store_http_error(e, field_id)
    return FieldResponse.from_field(field, field_service.aggregate.catalog)


@router.post(
    "/{field_id}/scans",
    response_model=RescanResponse,
    summary="Rescan a stored field",
    description="""
    Analyze a new image of a stored field and overwrite its stage,
    moisture and soil condition with the result.

    When the field moves forward in its lifecycle, the tasks for the
    stages it reached are completed in the given session and their points
    are saved to the user's profile. Nothing is awarded if saving fails.
    """,
    responses={
        400: {"description": "The scan reported an unknown stage or invalid metrics"},
        404: {"description": "Field or session not found"},
        409: {"description": "Session closed or field has a tile grid"},
        429: {"description": "Too many scan requests"},
        502: {"description": "Field store failure"},
    },
)
@limiter.limit(SCAN_RATE_LIMIT)
async def rescan_field(
    request: Request,
    field_id: Annotated[str, Path(description="Unique identifier for the field")],
    session_id: Annotated[str, Query(description="Session receiving the points")],
    field_service: FieldServiceDep,
    registry: SessionRegistryDep,
    image: UploadedImageDep,
) -> RescanResponse:
    try:
        session = registry.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        outcome = await field_service.rescan_field(field_id, image, session)
    except StoreError as e:
        raise _store_http_error(e, field_id)
    except ScanValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (SessionClosedError, FieldNotReadyError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    return RescanResponse(
        field=FieldResponse.from_field(outcome.field, field_service.aggregate.catalog),
        previous_stage=outcome.previous_stage,
        completed_tasks=outcome.completed_tasks,
        points_awarded=outcome.points_awarded,
        points=outcome.balance,
    )
