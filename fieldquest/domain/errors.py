"""
Error taxonomy for the field game core.

Validation errors subclass ``ValueError`` so anything that escapes the
routers is still reported as a bad request by the error middleware.
"""


class FieldQuestError(Exception):
    """Base class for all field game errors."""
    pass


class GameValidationError(FieldQuestError, ValueError):
    """Input was rejected; no state was changed."""
    pass


class ScanValidationError(GameValidationError):
    """A scan reading contained values outside the known ranges."""
    pass


class TileNotFoundError(GameValidationError):
    """A tool was applied to a coordinate outside the field grid."""

    def __init__(self, x: int, y: int):
        self.x = x
        self.y = y
        super().__init__(f"No tile at ({x}, {y})")


class TaskNotFoundError(GameValidationError):
    """The task id is not part of the ledger."""
    pass


class SessionNotFoundError(FieldQuestError):
    """No open game session with the given id."""
    pass


class SessionClosedError(FieldQuestError):
    """The game session was torn down."""
    pass


class ScanInProgressError(FieldQuestError):
    """A scan is already being analyzed for this session."""
    pass


class FieldNotReadyError(FieldQuestError):
    """The session has no field yet, or the field has no tile grid."""
    pass
