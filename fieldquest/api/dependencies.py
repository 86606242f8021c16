"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends, File, UploadFile

from fieldquest.domain.models import ImageReference
from fieldquest.infrastructure.scan_oracle import SimulatedScanOracle, get_scan_oracle
from fieldquest.infrastructure.store_client import (
    FieldStoreClient,
    get_store_client,
)
from fieldquest.services.application.field_service import FieldService
from fieldquest.services.application.game_session import (
    SessionRegistry,
    get_session_registry,
)
from fieldquest.services.domain.field_aggregate import FieldAggregate


def get_field_aggregate() -> FieldAggregate:
    """
    Dependency factory for FieldAggregate.

    Returns:
        FieldAggregate instance
    """
    return FieldAggregate()


def get_field_service(
    store: Annotated[FieldStoreClient, Depends(get_store_client)],
    oracle: Annotated[SimulatedScanOracle, Depends(get_scan_oracle)],
    aggregate: Annotated[FieldAggregate, Depends(get_field_aggregate)],
) -> FieldService:
    """
    Dependency factory for FieldService.

    Args:
        store: Document store client (injected)
        oracle: Scan oracle (injected)
        aggregate: Field rules (injected)

    Returns:
        FieldService instance
    """
    return FieldService(store=store, oracle=oracle, aggregate=aggregate)


async def get_uploaded_image(image: UploadFile = File(...)) -> ImageReference:
    """Read an uploaded image into an ImageReference."""
    data = await image.read()
    return ImageReference(
        name=image.filename or "upload",
        content_type=image.content_type,
        data=data,
    )


# Type aliases for cleaner route signatures
FieldServiceDep = Annotated[FieldService, Depends(get_field_service)]
SessionRegistryDep = Annotated[SessionRegistry, Depends(get_session_registry)]
StoreClientDep = Annotated[FieldStoreClient, Depends(get_store_client)]
UploadedImageDep = Annotated[ImageReference, Depends(get_uploaded_image)]
