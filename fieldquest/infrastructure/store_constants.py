"""
Document store endpoint constants.

The store exposes its tables over a PostgREST-style interface:
``/rest/v1/<table>`` with ``column=eq.value`` filters.
"""


class StoreEndpoints:
    """Store table paths."""

    REST_BASE = "/rest/v1"

    FIELDS = f"{REST_BASE}/fields"
    FIELD_SCANS = f"{REST_BASE}/field_scans"
    PROFILES = f"{REST_BASE}/profiles"

    @staticmethod
    def eq(value) -> str:
        """
        Equality filter value.

        Args:
            value: Value to match

        Returns:
            Filter expression, e.g. ``eq.42``
        """
        return f"eq.{value}"


class StoreConstants:
    """General store request constants."""

    CONTENT_TYPE_JSON = "application/json"

    # Prefer headers
    RETURN_REPRESENTATION = "return=representation"
    RETURN_MINIMAL = "return=minimal"
    MERGE_DUPLICATES = "resolution=merge-duplicates"

    FIELD_COLUMNS = (
        "id,user_id,name,size_acres,soil_condition,moisture_level,"
        "current_stage,last_scanned_at,image_url"
    )
