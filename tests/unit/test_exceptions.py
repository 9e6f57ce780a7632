"""Unit tests for custom exceptions."""

import pytest

from carina.core.exceptions import (
    AuthError,
    BackendError,
    CacheError,
    CarinaError,
    ConfigurationError,
    CredentialsIOError,
    InvalidArgumentError,
    MissingCredentialError,
    NotFoundError,
    UnsupportedOperationError,
    VerificationError,
)


class TestExceptionHierarchy:
    """Tests for exception hierarchy and inheritance."""

    def test_all_exceptions_inherit_from_carina_error(self) -> None:
        """Test that all custom exceptions inherit from CarinaError."""
        exceptions = [
            AuthError,
            BackendError,
            CacheError,
            ConfigurationError,
            CredentialsIOError,
            InvalidArgumentError,
            MissingCredentialError,
            NotFoundError,
            UnsupportedOperationError,
            VerificationError,
        ]

        for exc_class in exceptions:
            assert issubclass(exc_class, CarinaError)

    def test_unsupported_operation_is_backend_error(self) -> None:
        """Test that unsupported operations are reported as backend errors."""
        assert issubclass(UnsupportedOperationError, BackendError)

    def test_can_catch_with_base_exception(self) -> None:
        """Test that specific exceptions can be caught with CarinaError."""
        with pytest.raises(CarinaError):
            raise VerificationError("DOCKER_HOST not found")

    def test_backend_error_status_code(self) -> None:
        """Test that BackendError keeps the HTTP status."""
        exc = BackendError("Unable to list clusters: 500", status_code=500)

        assert exc.status_code == 500
        assert str(exc) == "Unable to list clusters: 500"
        assert BackendError("transport failed").status_code is None


class TestMissingCredentialError:
    """Tests for MissingCredentialError."""

    def test_message_names_field_and_sources(self) -> None:
        """Test that the message tells the user where to set the value."""
        exc = MissingCredentialError("UserName", ["--username", "OS_USERNAME"])

        assert exc.field == "UserName"
        assert exc.sources == ["--username", "OS_USERNAME"]
        assert str(exc) == "UserName was not specified. Use --username or OS_USERNAME."
