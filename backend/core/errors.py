"""
Application-level errors raised by use cases and mapped to HTTP status codes.
"""


class ApplicationError(Exception):
    """Base class for errors that carry an HTTP status code."""
    status_code = 500


class ValidationError(ApplicationError):
    """Bad input (400)."""
    status_code = 400


class NotFoundError(ApplicationError):
    """Missing resource (404)."""
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} with id {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(ApplicationError):
    """State conflict (409)."""
    status_code = 409


class PipelineError(Exception):
    """Pipeline stage failure tagged with an error kind."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


class RefinementError(PipelineError):
    """Chunked refinement aborted; nothing is persisted."""

    def __init__(self, message: str):
        super().__init__("REFINEMENT_FAILED", message)


class ClipSelectionError(PipelineError):
    """AI clip-selection response could not be used."""
