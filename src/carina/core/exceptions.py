"""Custom exceptions for the Carina client."""


class CarinaError(Exception):
    """Base exception for all Carina errors."""


class ConfigurationError(CarinaError):
    """Configuration-related errors."""


class MissingCredentialError(CarinaError):
    """A required credential field could not be resolved.

    Attributes:
        field: Name of the unsatisfied field
        sources: Flags and environment variables that could have supplied it
    """

    def __init__(self, field: str, sources: list[str]):
        """Initialize missing credential error.

        Args:
            field: Name of the unsatisfied field
            sources: Flags and environment variables that could have supplied it
        """
        self.field = field
        self.sources = sources
        super().__init__(f"{field} was not specified. Use {' or '.join(sources)}.")


class InvalidArgumentError(CarinaError):
    """A client-side precondition on an argument failed."""


class AuthError(CarinaError):
    """Authentication or cached token validation failed."""


class NotFoundError(CarinaError):
    """Cluster (or other backend object) not found."""


class BackendError(CarinaError):
    """Opaque failure reported by a backend API.

    Attributes:
        status_code: HTTP status code, if the failure came from a response
    """

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize backend error.

        Args:
            message: Error message
            status_code: HTTP status code (optional)
        """
        super().__init__(message)
        self.status_code = status_code


class UnsupportedOperationError(BackendError):
    """The selected backend does not offer the requested operation."""


class CacheError(CarinaError):
    """Token cache file could not be read or written."""


class CredentialsIOError(CarinaError):
    """Credential bundle files could not be written or removed."""


class VerificationError(CarinaError):
    """Credentials on disk could not be used to reach the Docker endpoint."""
