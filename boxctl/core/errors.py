"""Domain-specific errors for boxctl."""


class BoxctlError(Exception):
    """Base error for boxctl."""


class CatalogValidationError(BoxctlError):
    """Raised when a catalog file does not conform to schema or semantics."""


class CatalogLoadError(BoxctlError):
    """Raised when reading or writing catalog sources fails."""


class CatalogResolutionError(BoxctlError):
    """Raised when a catalog or control id cannot be found."""


class ConfigValidationError(BoxctlError):
    """Raised when the configuration file is malformed."""


class ConfigLoadError(BoxctlError):
    """Raised when the configuration file cannot be read."""


class DeviceSelectionError(BoxctlError):
    """Raised when device matching cannot resolve a single target."""


class DeviceDiscoveryError(BoxctlError):
    """Raised when HID device enumeration fails."""


class ActionParseError(BoxctlError):
    """Raised when an action string cannot be parsed."""


class ActionError(BoxctlError):
    """Raised when an action cannot be executed."""


class StreamStateError(BoxctlError):
    """Raised when a device stream is used in the wrong state."""


class TransportError(BoxctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when a HID device cannot be opened."""


class TransportReadError(TransportError):
    """Raised when reading a report from the device fails."""
