"""Domain exceptions for the batch executor."""


class DomainException(Exception):
    """Base exception for all domain errors."""
    pass


class StorageError(DomainException):
    """Raised when the on-disk namespace of a job cannot be prepared."""
    pass


class ExecutionError(DomainException):
    """Raised by an executor when a single script fails.

    Carries whatever output the command produced before failing so it can
    be written to the failure artifact.
    """

    def __init__(self, message: str, stdout: str = "", stderr: str = ""):
        super().__init__(message)
        self.message = message
        self.stdout = stdout or ""
        self.stderr = stderr or ""


class ValidationError(DomainException):
    """Raised when job input, such as a record id, is malformed."""
    pass


class QueryError(DomainException):
    """Raised when record ids cannot be fetched from the target org."""
    pass


class JobNotFoundError(DomainException):
    """Raised when no metadata exists for a job name."""
    pass


class JobAlreadyRunningError(DomainException):
    """Raised when a second run is started for a job that is already running."""
    pass


class ConfigurationError(DomainException):
    """Raised when configuration is invalid."""
    pass
