class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class StorageFailureError(RepositoryError):
    """Raised when a transactional write could not commit."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist or is not visible to the caller."""


class RepositoryConflictError(RepositoryError):
    """Raised when an operation violates state transition rules."""


class InvalidStateTransitionError(RepositoryConflictError):
    """Raised when a hire action targets a hire that is not eligible for it."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


class InvalidParticipantsError(RepositoryValidationError):
    """Raised when a thread or hire would pair a participant with themselves."""


class MalformedPayloadError(RepositoryValidationError):
    """Raised when a message carries no recognizable variant, or more than one."""


class InvalidDateRangeError(RepositoryValidationError):
    """Raised when an offer's start date is not strictly before its end date."""
