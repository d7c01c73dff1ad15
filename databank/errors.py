"""Exception classes shared by every databank driver."""


class DatabankError(Exception):
    """Base exception for databank errors."""

    type: str | None = None
    id: str | None = None

    def __init__(self, message: str = "Databank error"):
        super().__init__(message)


class NotConnectedError(DatabankError):
    """Raised when an operation is issued on a disconnected bank."""

    def __init__(self):
        super().__init__("Not connected to a server.")


class AlreadyConnectedError(DatabankError):
    """Raised when connecting a bank that is already connected."""

    def __init__(self):
        super().__init__("Already connected to a server.")


class AlreadyExistsError(DatabankError):
    """Raised when creating a record that already exists."""

    def __init__(self, type: str, id: str):
        """Initialize with record type and ID."""
        self.type = type
        self.id = id
        super().__init__(f"Already have a(n) '{type}' with id '{id}'")


class NoSuchThingError(DatabankError):
    """Raised when a record is not found."""

    def __init__(self, type: str, id: str):
        """Initialize with record type and ID."""
        self.type = type
        self.id = id
        super().__init__(f"No such '{type}' with id '{id}'")


class TypeMismatchError(DatabankError):
    """Base exception for records that have the wrong shape for an operation."""

    expected = "value"

    def __init__(self, type: str, id: str):
        self.type = type
        self.id = id
        super().__init__(f"({type}: {id}) is not a(n) {self.expected}")


class NotAnArrayError(TypeMismatchError):
    """Raised by positional operations on a non-array record."""

    expected = "array"


class NotANumberError(TypeMismatchError):
    """Raised by incr/decr on a non-numeric record."""

    expected = "number"


class DatabankNotImplementedError(DatabankError, NotImplementedError):
    """Raised when a driver does not support an operation."""

    def __init__(self, operation: str = ""):
        self.operation = operation
        message = "Method not yet implemented."
        if operation:
            message = f"Method '{operation}' not yet implemented."
        super().__init__(message)


class BackendError(DatabankError):
    """Wraps a native failure (I/O, network, decoding) of a driver.

    The native exception is kept as ``__cause__`` and as ``cause``.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        type: str | None = None,
        id: str | None = None,
    ):
        self.cause = cause
        self.type = type
        self.id = id
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class CodecError(BackendError):
    """Raised when a value cannot be encoded or stored data cannot be decoded."""


class IndexMaintenanceError(BackendError):
    """Raised when a secondary index update fails."""


class ConfigError(DatabankError, ValueError):
    """Raised for invalid bank configuration."""


class UnknownDriverError(ConfigError):
    """Raised when no driver is registered under a name."""

    def __init__(self, driver: str):
        self.driver = driver
        super().__init__(f"Unknown databank driver: {driver}")
