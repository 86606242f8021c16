"""
Application service: per-player game session.

A session owns everything one player mutates: the current field
snapshot, the task ledger, the reward account, pending growth advances
and the notifications shown to the player. It has an explicit lifetime;
closing it cancels pending work so nothing touches a disposed session.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
import asyncio
import logging
import time
import uuid

from fieldquest.config import settings
from fieldquest.domain.errors import (
    FieldNotReadyError,
    ScanInProgressError,
    SessionClosedError,
    SessionNotFoundError,
)
from fieldquest.domain.models import (
    Coordinate,
    Field,
    ImageReference,
    Notification,
    Task,
    Tile,
    Tool,
)
from fieldquest.infrastructure.scan_oracle import ScanOracle, get_scan_oracle
from fieldquest.infrastructure.store_client import FieldStoreClient
from fieldquest.services.domain.field_aggregate import FieldAggregate
from fieldquest.services.domain.growth_scheduler import GrowthScheduler
from fieldquest.services.domain.task_ledger import RewardAccount, TaskLedger

logger = logging.getLogger(__name__)


@dataclass
class ToolOutcome:
    """Result of applying a tool to one tile."""
    tile: Tile
    transition_occurred: bool
    completed_task: Optional[Task]
    balance: int
    growth_scheduled: bool = False


class GameSession:
    """
    Session context for one player.

    Tool actions are synchronous; the growth advance that follows
    watering and the scan oracle call are the only deferred work.
    """

    IDLE = "idle"
    ANALYZING = "analyzing"

    def __init__(
        self,
        oracle: ScanOracle,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        starting_points: Optional[int] = None,
        aggregate: Optional[FieldAggregate] = None,
        growth_delay: Optional[float] = None,
    ):
        self.id = session_id or uuid.uuid4().hex
        self.user_id = user_id
        self.oracle = oracle
        self.aggregate = aggregate or FieldAggregate()
        self.account = RewardAccount(
            settings.starting_points if starting_points is None else starting_points
        )
        self.ledger = TaskLedger(self.account)
        self.scheduler = GrowthScheduler(
            settings.growth_delay_seconds if growth_delay is None else growth_delay
        )
        self.notifications: list[Notification] = []
        self._field: Optional[Field] = None
        self._scan_task: Optional[asyncio.Future] = None
        self._closed = False
        self.last_active = time.monotonic()

    @property
    def field(self) -> Optional[Field]:
        return self._field

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def scan_state(self) -> str:
        return self.ANALYZING if self._scan_task is not None else self.IDLE

    @property
    def balance(self) -> int:
        return self.account.balance

    def tiles_planted(self) -> int:
        if self._field is None:
            return 0
        return self.aggregate.tiles_planted(self._field)

    def ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Session {self.id} is closed")

    def _require_grid(self) -> Field:
        if self._field is None or not self._field.has_grid:
            raise FieldNotReadyError("Scan a field before using tools")
        return self._field

    def notify(self, title: str, message: str) -> Notification:
        notification = Notification(
            title=title,
            message=message,
            created_at=datetime.now(timezone.utc),
        )
        self.notifications.append(notification)
        return notification

    def record_completion(self, task: Task) -> None:
        """Emit the player-visible notice for a completed task."""
        self.notify("Task completed", f"Task completed: {task.title}")

    # ------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------

    async def scan_field(self, image: ImageReference, name: Optional[str] = None) -> Field:
        """
        Analyze an image and start a new grid field from it.

        The current field stays untouched until the scan has been
        validated.

        Raises:
            ScanValidationError: If the oracle reading is rejected
            ScanInProgressError: If another scan is still being analyzed
            SessionClosedError: If the session is closed before the scan ends
        """
        self.ensure_open()
        if self._scan_task is not None:
            raise ScanInProgressError(f"Session {self.id} is already analyzing a scan")

        self._scan_task = asyncio.ensure_future(self.oracle.analyze(image))
        try:
            reading = await self._scan_task
        except asyncio.CancelledError:
            if self._closed:
                raise SessionClosedError(f"Session {self.id} closed during scan") from None
            raise
        finally:
            self._scan_task = None

        self.ensure_open()
        try:
            result = self.aggregate.validate_scan(reading)
        except ValueError:
            logger.warning(f"Rejected scan for session {self.id}: {reading.detected_stage}")
            raise

        field = self.aggregate.create_field(None, None, result, name=name)
        field = field.model_copy(update={"user_id": self.user_id, "image_url": image.name})

        self.scheduler.cancel_all()
        self._field = field
        self.notify("Field added", f"Field added: {field.name}")
        return field

    # ------------------------------------------------------------
    # Tool actions
    # ------------------------------------------------------------

    def apply_tool(self, coordinate: Coordinate, tool: Tool) -> ToolOutcome:
        """
        Apply a tool to one tile of the session's field.

        A successful transition completes the first pending task of the
        tool's type, if any, and credits its points. A failed
        precondition changes nothing.

        Raises:
            TileNotFoundError: If the coordinate is outside the grid
            FieldNotReadyError: If there is no grid field yet
            SessionClosedError: If the session is closed
        """
        self.ensure_open()
        field = self._require_grid()

        updated, occurred = self.aggregate.apply_tool_at(field, coordinate, tool)
        _, tile = self.aggregate.find_tile(updated, coordinate)
        if not occurred:
            return ToolOutcome(
                tile=tile,
                transition_occurred=False,
                completed_task=None,
                balance=self.account.balance,
            )

        growth_scheduled = False
        if self.aggregate.state_machine.schedules_growth(tool):
            self.scheduler.schedule(coordinate, lambda: self._advance_growth(updated.id, coordinate))
            growth_scheduled = True
        self._field = updated

        completed = None
        task = self.ledger.resolve_for_tool(tool)
        if task is not None:
            completed = self.ledger.complete_task(task.id)
            if completed is not None:
                self.record_completion(completed)

        return ToolOutcome(
            tile=tile,
            transition_occurred=True,
            completed_task=completed,
            balance=self.account.balance,
            growth_scheduled=growth_scheduled,
        )

    def complete_task(self, task_id: str) -> tuple[Task, bool]:
        """
        Complete a task directly from the task list.

        Returns:
            (task snapshot, whether this call completed it). Completing a
            task twice changes nothing and returns False.

        Raises:
            TaskNotFoundError: If the id is not in the catalog
            SessionClosedError: If the session is closed
        """
        self.ensure_open()
        completed = self.ledger.complete_task(task_id)
        if completed is None:
            return self.ledger.get(task_id), False
        self.record_completion(completed)
        return completed, True

    def _advance_growth(self, field_id: str, coordinate: Coordinate) -> None:
        if self._closed or self._field is None or self._field.id != field_id:
            return
        self._field, grew = self.aggregate.complete_growth(self._field, coordinate)
        if grew:
            logger.debug(f"Tile {coordinate.tile_id} grew in session {self.id}")

    # ------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------

    def close(self) -> None:
        """Cancel pending growth and in-flight scans; idempotent."""
        if self._closed:
            return
        self._closed = True
        self.scheduler.close()
        if self._scan_task is not None:
            self._scan_task.cancel()
        logger.info(f"Closed session {self.id}")

    async def __aenter__(self) -> "GameSession":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()


class SessionRegistry:
    """
    Open game sessions by id.

    Sessions idle for longer than ``idle_ttl`` seconds are closed and
    dropped on the next create or lookup. When ``max_sessions`` are open,
    creating another one evicts the least recently used.
    """

    def __init__(
        self,
        oracle: Optional[ScanOracle] = None,
        idle_ttl: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.oracle = oracle
        self.idle_ttl = settings.session_idle_ttl_seconds if idle_ttl is None else idle_ttl
        self.max_sessions = settings.max_sessions if max_sessions is None else max_sessions
        if self.max_sessions < 1:
            raise ValueError(f"max_sessions must be at least 1, got {self.max_sessions}")
        self._clock = clock
        self._sessions: dict[str, GameSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(
        self,
        user_id: Optional[str] = None,
        starting_points: Optional[int] = None,
    ) -> GameSession:
        self.evict_idle()
        while len(self._sessions) >= self.max_sessions:
            oldest = min(self._sessions.values(), key=lambda s: s.last_active)
            self._evict(oldest.id, "capacity")

        session = GameSession(
            oracle=self.oracle or get_scan_oracle(),
            user_id=user_id,
            starting_points=starting_points,
        )
        session.last_active = self._clock()
        self._sessions[session.id] = session
        logger.info(f"Opened session {session.id} (user={user_id}, points={session.balance})")
        return session

    async def open(
        self,
        user_id: Optional[str] = None,
        store: Optional[FieldStoreClient] = None,
    ) -> GameSession:
        """
        Open a session, loading the stored point total for known users.

        Raises:
            StoreError: If the profile lookup fails
        """
        starting_points = None
        if user_id and store is not None:
            starting_points = await store.get_total_points(user_id)
        return self.create(user_id=user_id, starting_points=starting_points)

    def get(self, session_id: str) -> GameSession:
        """Look up an open session and mark it active."""
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        session.last_active = self._clock()
        return session

    def evict_idle(self) -> int:
        """
        Close every session idle for longer than the TTL.

        Returns:
            Number of sessions evicted
        """
        now = self._clock()
        expired = [
            session_id for session_id, session in self._sessions.items()
            if now - session.last_active > self.idle_ttl
        ]
        for session_id in expired:
            self._evict(session_id, "idle")
        return len(expired)

    def _evict(self, session_id: str, reason: str) -> None:
        session = self._sessions.pop(session_id)
        session.close()
        logger.info(f"Evicted session {session_id} ({reason})")

    def close(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        session.close()

    def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            session.close()


# Singleton instance
_session_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """
    Get or create the singleton session registry.

    Returns:
        SessionRegistry instance
    """
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry()
    return _session_registry
