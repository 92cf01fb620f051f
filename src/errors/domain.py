"""Typed domain exceptions for API error mapping.

Skips and generation failures are not exceptions: they are returned as
ProcessResult values. These exceptions cover bad caller input and
missing resources, so routes can map them to HTTP status codes.

Usage:
    # In service layer
    raise NotFoundError("Conversation", conversation_id)

    # In route handler
    try:
        result = service.enqueue_for_message(conversation_id, message_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class NotFoundError(DomainError):
    """Resource was not found. Maps to HTTP 404."""

    def __init__(self, resource_type: str, identifier: str) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ValidationError(DomainError):
    """Validation failure. Maps to HTTP 400."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class GenerationError(DomainError):
    """The text-generation backend failed, timed out, or returned junk.

    Attributes:
        detail: Short description stored on the failed reply job.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
