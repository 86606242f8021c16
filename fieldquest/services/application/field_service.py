"""
Application service: Orchestration layer for stored (stage-only) fields.
"""
from dataclasses import dataclass, field as dataclass_field
from typing import List
import logging

from fieldquest.domain.models import Field, ImageReference, ScanRecord, Task
from fieldquest.infrastructure.scan_oracle import ScanOracle
from fieldquest.infrastructure.store_client import FieldStoreClient
from fieldquest.services.application.game_session import GameSession
from fieldquest.services.domain.field_aggregate import FieldAggregate

logger = logging.getLogger(__name__)


@dataclass
class RescanOutcome:
    """Result of rescanning a stored field."""
    field: Field
    previous_stage: str
    completed_tasks: List[Task] = dataclass_field(default_factory=list)
    points_awarded: int = 0
    balance: int = 0


class FieldService:
    """
    Application service for fields tracked by scans only.

    Orchestrates the store, the scan oracle and the field rules.
    Points earned by a rescan are applied to the session only after the
    store has accepted every write.
    """

    def __init__(
        self,
        store: FieldStoreClient,
        oracle: ScanOracle,
        aggregate: FieldAggregate,
    ):
        """
        Initialize the service with dependencies.

        Args:
            store: Document store client
            oracle: Scan oracle used to analyze uploads
            aggregate: Field rules
        """
        self.store = store
        self.oracle = oracle
        self.aggregate = aggregate

    async def get_field(self, field_id: str) -> Field:
        return await self.store.get_field(field_id)

    async def list_fields(self, user_id: str) -> List[Field]:
        return await self.store.list_fields(user_id)

    async def rescan_field(
        self,
        field_id: str,
        image: ImageReference,
        session: GameSession,
    ) -> RescanOutcome:
        """
        Rescan a stored field and award points for stage advances.

        This method orchestrates:
        1. Loading the field from the store
        2. Analyzing the image with the oracle
        3. Validating the reading and overwriting the field stage
        4. Resolving the tasks the new stage unlocks
        5. Persisting the point total
        6. Completing the tasks in the session ledger
        7. Persisting the field and its scan record

        Args:
            field_id: Stored field id
            image: Uploaded field image
            session: Session whose ledger and account receive the points

        Returns:
            RescanOutcome with the updated field and awarded points

        Raises:
            StoreError: If a store call fails. Nothing is awarded when the
                point total cannot be saved
            ScanValidationError: If the oracle reading is rejected
            SessionClosedError: If the session is closed before the point
                total is saved
        """
        session.ensure_open()
        field = await self.store.get_field(field_id)

        reading = await self.oracle.analyze(image)
        session.ensure_open()
        try:
            result = self.aggregate.validate_scan(reading)
        except ValueError:
            logger.warning(f"Rejected scan for field {field_id}: {reading.detected_stage}")
            raise

        updated = self.aggregate.rescan(field, result)
        tasks = session.ledger.resolve_for_stage_advance(
            field.current_stage, updated.current_stage
        )
        points = sum(task.points for task in tasks)

        # The stored stage only advances once its points are saved
        owner = session.user_id or field.user_id
        if points and owner:
            await self.store.update_total_points(owner, session.balance + points)

        # Ledger follows the stored total, closed session or not
        completed = []
        for task in tasks:
            done = session.ledger.complete_task(task.id)
            if done is not None:
                session.record_completion(done)
                completed.append(done)

        if completed:
            logger.info(
                f"Field {field_id} reached {updated.current_stage.value}: "
                f"completed {len(completed)} task(s) for {points} points"
            )

        stored = await self.store.upsert_field(updated)
        await self.store.insert_scan(ScanRecord(
            field_id=stored.id,
            user_id=owner,
            detected_stage=result.detected_stage,
            moisture_level=result.moisture_level,
            soil_condition=result.soil_condition,
            recommendations=result.recommendations,
            image_url=image.name,
        ))

        return RescanOutcome(
            field=stored,
            previous_stage=field.current_stage.value,
            completed_tasks=completed,
            points_awarded=sum(task.points for task in completed),
            balance=session.balance,
        )
