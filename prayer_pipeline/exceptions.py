"""
Custom exceptions for better error handling.
"""


class PrayerPipelineError(Exception):
    """Base exception for meeting service errors."""
    pass


class ValidationError(PrayerPipelineError):
    """Request is invalid; detected before any write."""
    pass


class InvalidRecurrenceRule(ValidationError):
    """Recurrence pattern, day or bound cannot produce a series."""
    pass


class NotFoundError(PrayerPipelineError):
    """Referenced entity does not exist."""
    def __init__(self, entity: str, entity_id: int):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class PermissionDeniedError(PrayerPipelineError):
    """Caller is not allowed to perform the operation."""
    pass


class PersistenceError(PrayerPipelineError):
    """Database read or write failed."""
    def __init__(self, message: str, operation: str = None):
        self.operation = operation
        super().__init__(message)


class NotificationError(PrayerPipelineError):
    """Notification fan-out failed."""
    def __init__(self, message: str, event_type: str = None):
        self.event_type = event_type
        super().__init__(message)
