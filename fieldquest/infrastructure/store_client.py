"""
Infrastructure layer: document store client with retry logic.
"""
from datetime import datetime
from typing import List, Any, Optional
from pydantic import BaseModel, ValidationError
import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from fieldquest.config import settings
from fieldquest.domain.models import Field, ScanRecord, Stage
from fieldquest.infrastructure.store_constants import StoreConstants, StoreEndpoints


# Pydantic models for store rows
class FieldRecord(BaseModel):
    """Row of the ``fields`` table."""
    id: str
    user_id: Optional[str] = None
    name: str
    size_acres: float
    soil_condition: str
    moisture_level: int
    current_stage: Stage
    last_scanned_at: Optional[datetime] = None
    image_url: Optional[str] = None

    @classmethod
    def from_field(cls, field: Field) -> "FieldRecord":
        return cls(
            id=field.id,
            user_id=field.user_id,
            name=field.name,
            size_acres=field.size_acres,
            soil_condition=field.soil_condition,
            moisture_level=field.moisture_level,
            current_stage=field.current_stage,
            last_scanned_at=field.last_scanned_at,
            image_url=field.image_url,
        )

    def to_field(self) -> Field:
        return Field(**self.model_dump())


class ProfileRecord(BaseModel):
    """Subset of the ``profiles`` table used for points."""
    user_id: str
    total_points: int = 0


class StoreError(Exception):
    """Raised when a store call fails or returns unusable data."""

    def __init__(self, message: str, status_code: int = 502):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class FieldStoreClient:
    """
    Client for the field/profile document store.
    Implements retry logic with exponential backoff.
    """

    def __init__(self):
        """Initialize the store client with configuration."""
        self.base_url = settings.store_base_url
        self.api_key = settings.store_api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.api_key}",
                "accept": StoreConstants.CONTENT_TYPE_JSON,
            },
            timeout=settings.store_timeout,
        )

    async def __aenter__(self) -> "FieldStoreClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError)),
        reraise=True,
    )
    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Any:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: Store endpoint path
            **kwargs: Additional arguments for the request

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            StoreError: If the request fails with a client error
        """
        try:
            response = await self.client.request(method, endpoint, **kwargs)
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except httpx.HTTPStatusError as e:
            # Retry on server errors (5xx)
            if e.response.status_code >= 500:
                raise
            # Don't retry on client errors (4xx)
            raise StoreError(
                f"Store request failed: {e.response.status_code} - {e.response.text}",
                status_code=e.response.status_code,
            )

    async def request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Make a store request, converting exhausted retries into StoreError.
        """
        try:
            return await self._make_request(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise StoreError(
                f"Store unavailable: {e.response.status_code} - {e.response.text}",
                status_code=502,
            )
        except httpx.RequestError as e:
            raise StoreError(f"Store request error: {str(e)}", status_code=502)

    def _parse_fields(self, rows: Any) -> List[Field]:
        try:
            return [FieldRecord(**row).to_field() for row in rows or []]
        except (TypeError, ValidationError) as e:
            raise StoreError(f"Malformed field record: {str(e)}")

    async def get_field(self, field_id: str) -> Field:
        """
        Fetch a field by id.

        Raises:
            StoreError: If the request fails or the field does not exist
        """
        rows = await self.request(
            "GET",
            StoreEndpoints.FIELDS,
            params={
                "id": StoreEndpoints.eq(field_id),
                "select": StoreConstants.FIELD_COLUMNS,
            },
        )
        fields = self._parse_fields(rows)
        if not fields:
            raise StoreError(f"Field {field_id} not found", status_code=404)
        return fields[0]

    async def list_fields(self, user_id: str) -> List[Field]:
        """Fetch all fields owned by a user."""
        rows = await self.request(
            "GET",
            StoreEndpoints.FIELDS,
            params={
                "user_id": StoreEndpoints.eq(user_id),
                "select": StoreConstants.FIELD_COLUMNS,
                "order": "last_scanned_at.desc",
            },
        )
        return self._parse_fields(rows)

    async def upsert_field(self, field: Field) -> Field:
        """Insert or update a field and return the stored version."""
        record = FieldRecord.from_field(field)
        rows = await self.request(
            "POST",
            StoreEndpoints.FIELDS,
            json=record.model_dump(mode="json"),
            headers={
                "Prefer": f"{StoreConstants.MERGE_DUPLICATES},{StoreConstants.RETURN_REPRESENTATION}",
            },
        )
        fields = self._parse_fields(rows)
        return fields[0] if fields else field

    async def insert_scan(self, scan: ScanRecord) -> None:
        """Record an applied scan."""
        await self.request(
            "POST",
            StoreEndpoints.FIELD_SCANS,
            json=scan.model_dump(mode="json"),
            headers={"Prefer": StoreConstants.RETURN_MINIMAL},
        )

    async def get_total_points(self, user_id: str) -> Optional[int]:
        """Stored point total of a user, or None if the profile is missing."""
        rows = await self.request(
            "GET",
            StoreEndpoints.PROFILES,
            params={
                "user_id": StoreEndpoints.eq(user_id),
                "select": "user_id,total_points",
            },
        )
        if not rows:
            return None
        try:
            return ProfileRecord(**rows[0]).total_points
        except (TypeError, ValidationError) as e:
            raise StoreError(f"Malformed profile record: {str(e)}")

    async def update_total_points(self, user_id: str, total_points: int) -> None:
        """Overwrite a user's stored point total."""
        await self.request(
            "PATCH",
            StoreEndpoints.PROFILES,
            params={"user_id": StoreEndpoints.eq(user_id)},
            json={"total_points": total_points},
            headers={"Prefer": StoreConstants.RETURN_MINIMAL},
        )


# Singleton instance
_store_client: Optional[FieldStoreClient] = None


def get_store_client() -> FieldStoreClient:
    """
    Get or create the singleton store client instance.

    Returns:
        FieldStoreClient instance
    """
    global _store_client
    if _store_client is None:
        _store_client = FieldStoreClient()
    return _store_client
