"""Tests for the databank exception hierarchy."""

import pytest

from databank.errors import (
    AlreadyConnectedError,
    AlreadyExistsError,
    BackendError,
    CodecError,
    ConfigError,
    DatabankError,
    DatabankNotImplementedError,
    IndexMaintenanceError,
    NoSuchThingError,
    NotANumberError,
    NotAnArrayError,
    NotConnectedError,
    TypeMismatchError,
    UnknownDriverError,
)


class TestErrorHierarchy:
    """Every error is a DatabankError so callers can catch them together."""

    @pytest.mark.parametrize(
        "error",
        [
            NotConnectedError(),
            AlreadyConnectedError(),
            AlreadyExistsError("user", "evan"),
            NoSuchThingError("user", "evan"),
            NotAnArrayError("inbox", "evan"),
            NotANumberError("counter", "hits"),
            DatabankNotImplementedError("search"),
            BackendError("boom"),
            CodecError("bad json"),
            IndexMaintenanceError("index down"),
            ConfigError("bad config"),
            UnknownDriverError("redis"),
        ],
    )
    def test_all_are_databank_errors(self, error):
        assert isinstance(error, DatabankError)

    def test_type_mismatch_family(self):
        assert issubclass(NotAnArrayError, TypeMismatchError)
        assert issubclass(NotANumberError, TypeMismatchError)

    def test_backend_family(self):
        assert issubclass(CodecError, BackendError)
        assert issubclass(IndexMaintenanceError, BackendError)

    def test_not_implemented_is_builtin_too(self):
        """Callers catching NotImplementedError still see it."""
        with pytest.raises(NotImplementedError):
            raise DatabankNotImplementedError("search")

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)
        assert issubclass(UnknownDriverError, ConfigError)


class TestErrorMessages:
    """Messages and attributes identify the record involved."""

    def test_already_exists(self):
        error = AlreadyExistsError("user", "evan")

        assert str(error) == "Already have a(n) 'user' with id 'evan'"
        assert error.type == "user"
        assert error.id == "evan"

    def test_no_such_thing(self):
        error = NoSuchThingError("user", "evan")

        assert str(error) == "No such 'user' with id 'evan'"
        assert error.type == "user"
        assert error.id == "evan"

    def test_type_mismatch(self):
        assert str(NotAnArrayError("inbox", "evan")) == "(inbox: evan) is not a(n) array"
        assert (
            str(NotANumberError("counter", "hits"))
            == "(counter: hits) is not a(n) number"
        )

    def test_connection_errors(self):
        assert str(NotConnectedError()) == "Not connected to a server."
        assert str(AlreadyConnectedError()) == "Already connected to a server."
        assert NotConnectedError().type is None

    def test_not_implemented(self):
        assert str(DatabankNotImplementedError()) == "Method not yet implemented."
        error = DatabankNotImplementedError("search")
        assert error.operation == "search"
        assert "search" in str(error)

    def test_backend_error_keeps_cause(self):
        cause = OSError("disk full")
        error = BackendError("disk driver failure", cause, type="user", id="evan")

        assert error.cause is cause
        assert str(error) == "disk driver failure: disk full"
        assert error.type == "user"
        assert error.id == "evan"

    def test_unknown_driver(self):
        error = UnknownDriverError("redis")

        assert error.driver == "redis"
        assert "redis" in str(error)
