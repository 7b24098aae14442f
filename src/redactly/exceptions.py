"""Exception hierarchy for the Redactly redaction service.

Every error raised by the core library derives from ``RedactlyError`` so that
the HTTP layer and the UI can report it with a human-readable message without
catching unrelated exceptions.
"""


class RedactlyError(Exception):
    """Base exception for all application-specific errors."""


class TransportError(RedactlyError):
    """Raised when the detection or suggestion service cannot be reached
    or answers with a non-success status."""


class SchemaError(RedactlyError):
    """Raised when an external service response has an invalid shape."""


class DecodeError(RedactlyError):
    """Raised when an image cannot be decoded or has zero width/height."""


class EncodeError(RedactlyError):
    """Raised when a redacted image cannot be written back to its format."""


class CapacityError(RedactlyError):
    """Raised when the session queue is full."""


class DuplicateFileError(RedactlyError):
    """Raised when a file with the same name is already queued."""


class NoSelectionError(RedactlyError):
    """Raised when redaction is requested with nothing selected."""


class MissingOriginalError(RedactlyError):
    """Raised when redaction is requested without the original image bytes."""


class SuggestionError(RedactlyError):
    """Raised when AI redaction suggestions cannot be obtained."""


class InvalidStateError(RedactlyError):
    """Raised when an operation is not legal in the session's current status."""


class SessionNotFoundError(RedactlyError):
    """Raised when a session id is not in the queue."""


class EntityNotFoundError(RedactlyError):
    """Raised when an entity id does not belong to the session."""
