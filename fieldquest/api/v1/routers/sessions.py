"""
API router for game session endpoints.
"""
from fastapi import APIRouter, HTTPException, Path, Query, Request, Response, status
from typing import Annotated, Optional

from fieldquest.api.dependencies import (
    SessionRegistryDep,
    StoreClientDep,
    UploadedImageDep,
)
from fieldquest.api.rate_limit import SCAN_RATE_LIMIT, limiter
from fieldquest.api.v1.models.responses import (
    FieldResponse,
    NotificationsResponse,
    SessionResponse,
    TaskCompletionResponse,
    TasksResponse,
    ToolActionResponse,
)
from fieldquest.domain.errors import (
    FieldNotReadyError,
    ScanInProgressError,
    ScanValidationError,
    SessionClosedError,
    SessionNotFoundError,
    TaskNotFoundError,
    TileNotFoundError,
)
from fieldquest.domain.models import Coordinate, Tool
from fieldquest.infrastructure.store_client import StoreError
from fieldquest.services.application.game_session import GameSession, SessionRegistry


router = APIRouter(
    prefix="/sessions",
    tags=["sessions"],
)

SessionIdPath = Annotated[str, Path(description="Game session identifier")]


def _get_session(registry: SessionRegistry, session_id: str) -> GameSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _session_response(session: GameSession) -> SessionResponse:
    field = None
    if session.field is not None:
        field = FieldResponse.from_field(
            session.field,
            session.aggregate.catalog,
            tiles_planted=session.tiles_planted(),
        )
    return SessionResponse(
        session_id=session.id,
        user_id=session.user_id,
        points=session.balance,
        scan_state=session.scan_state,
        field=field,
        tasks=session.ledger.active_tasks,
        completed_tasks=session.ledger.completed_tasks,
    )


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a game session",
    description="""
    Open a new game session with the reference task catalog.

    When a user id is given, the starting balance is loaded from the
    user's stored profile.
    """,
)
async def open_session(
    registry: SessionRegistryDep,
    store: StoreClientDep,
    user_id: Annotated[Optional[str], Query(description="Owner of the session")] = None,
) -> SessionResponse:
    try:
        session = await registry.open(user_id=user_id, store=store if user_id else None)
    except StoreError as e:
        raise HTTPException(
            status_code=502,
            detail=f"Failed to load profile for user '{user_id}': {e.message}"
        )
    return _session_response(session)


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get a game session",
)
async def get_session(
    session_id: SessionIdPath,
    registry: SessionRegistryDep,
) -> SessionResponse:
    return _session_response(_get_session(registry, session_id))


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close a game session",
    description="Close the session and cancel any pending growth or scan.",
)
async def close_session(
    session_id: SessionIdPath,
    registry: SessionRegistryDep,
) -> Response:
    try:
        registry.close(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{session_id}/scan",
    response_model=SessionResponse,
    summary="Scan a new field",
    description="""
    Analyze an uploaded field image and start a new field grid from it.

    The session keeps its previous field until the analysis succeeds.
    """,
    responses={
        400: {"description": "The scan reported an unknown stage or invalid metrics"},
        404: {"description": "Session not found"},
        409: {"description": "Session closed or another scan is in progress"},
        429: {"description": "Too many scan requests"},
    },
)
@limiter.limit(SCAN_RATE_LIMIT)
async def scan_field(
    request: Request,
    session_id: SessionIdPath,
    registry: SessionRegistryDep,
    image: UploadedImageDep,
) -> SessionResponse:
    session = _get_session(registry, session_id)
    try:
        await session.scan_field(image)
    except ScanValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (ScanInProgressError, SessionClosedError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _session_response(session)


@router.post(
    "/{session_id}/tiles/{x}/{y}/{tool}",
    response_model=ToolActionResponse,
    summary="Use a tool on a tile",
    description="""
    Apply plough, sow, water or harvest to one tile.

    Using a tool on a tile that is not ready for it does nothing and
    reports `transition_occurred: false`. The first successful use of each
    tool completes the matching task.
    """,
    responses={
        404: {"description": "Session or tile not found"},
        409: {"description": "Session closed or no field scanned yet"},
    },
)
async def apply_tool(
    session_id: SessionIdPath,
    x: Annotated[int, Path(description="Tile column")],
    y: Annotated[int, Path(description="Tile row")],
    tool: Annotated[Tool, Path(description="Tool to use")],
    registry: SessionRegistryDep,
) -> ToolActionResponse:
    session = _get_session(registry, session_id)
    try:
        outcome = session.apply_tool(Coordinate(x=x, y=y), tool)
    except TileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (FieldNotReadyError, SessionClosedError) as e:
        raise HTTPException(status_code=409, detail=str(e))

    return ToolActionResponse(
        tile=outcome.tile,
        transition_occurred=outcome.transition_occurred,
        completed_task=outcome.completed_task,
        points=outcome.balance,
        growth_scheduled=outcome.growth_scheduled,
        field_stage=session.field.current_stage.value,
        tiles_planted=session.tiles_planted(),
    )


@router.get(
    "/{session_id}/tasks",
    response_model=TasksResponse,
    summary="List session tasks",
)
async def list_tasks(
    session_id: SessionIdPath,
    registry: SessionRegistryDep,
) -> TasksResponse:
    session = _get_session(registry, session_id)
    return TasksResponse(
        tasks=session.ledger.active_tasks,
        completed_tasks=session.ledger.completed_tasks,
        points=session.balance,
    )


@router.post(
    "/{session_id}/tasks/{task_id}/complete",
    response_model=TaskCompletionResponse,
    summary="Complete a task",
    description="""
    Mark a task as done and credit its points.

    Completing a task that is already done is not an error; the response
    reports `newly_completed: false` and no points are credited.
    """,
    responses={
        404: {"description": "Session or task not found"},
        409: {"description": "Session closed"},
    },
)
async def complete_task(
    session_id: SessionIdPath,
    task_id: Annotated[str, Path(description="Task identifier")],
    registry: SessionRegistryDep,
) -> TaskCompletionResponse:
    session = _get_session(registry, session_id)
    try:
        task, newly_completed = session.complete_task(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return TaskCompletionResponse(
        task=task,
        newly_completed=newly_completed,
        points=session.balance,
    )


@router.get(
    "/{session_id}/notifications",
    response_model=NotificationsResponse,
    summary="List session notifications",
)
async def list_notifications(
    session_id: SessionIdPath,
    registry: SessionRegistryDep,
) -> NotificationsResponse:
    session = _get_session(registry, session_id)
    return NotificationsResponse(notifications=list(session.notifications))
