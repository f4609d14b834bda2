"""Domain-specific errors for bluezdm."""


class BluezdmError(Exception):
    """Base error for bluezdm."""


class AdapterNotFoundError(BluezdmError):
    """Raised when an explicitly requested adapter does not exist after a rescan."""


class InvalidArgumentError(BluezdmError):
    """Raised when a required identifier or value is missing or malformed."""


class UsageError(BluezdmError):
    """Raised when a manager is used after it has been closed."""


class ConfigLoadError(BluezdmError):
    """Raised when reading the configuration file fails."""


class ConfigValidationError(BluezdmError):
    """Raised when the configuration does not conform to schema."""


class TransportError(BluezdmError):
    """Base bus transport error."""


class TransportConnectError(TransportError):
    """Raised when the bus connection cannot be established."""


class TransportCallError(TransportError):
    """Raised when a remote bus call fails."""


class TransportTimeoutError(TransportError):
    """Raised when a remote bus call does not complete in time."""


class ObjectGoneError(TransportCallError):
    """Raised when a remote object disappears between enumeration and use."""
