"""Domain-specific errors for lywsd03mmc-exporter."""


class ExporterError(Exception):
    """Base error for lywsd03mmc-exporter."""


class InvalidAddressError(ExporterError):
    """Raised when a device address is not a 6-byte hardware address."""


class DecodeError(ExporterError):
    """Base error for beacons that cannot be turned into a reading."""

    reason = "decode"


class InvalidLengthError(DecodeError):
    """Raised when a payload has the wrong length for its format."""

    reason = "invalid_length"


class AddressMismatchError(DecodeError):
    """Raised when the address embedded in a payload is not the sender's."""

    reason = "address_mismatch"


class UnknownFormatError(DecodeError):
    """Raised when no decoder is registered for a payload."""

    reason = "unknown_format"


class MissingKeyError(DecodeError):
    """Raised when an encrypted beacon arrives for a device without a key."""

    reason = "missing_key"


class DecryptionError(DecodeError):
    """Raised when authenticated decryption of a beacon fails."""

    reason = "decryption_failed"


class KeyFileError(ExporterError):
    """Raised when the key file cannot be read."""


class ConfigLoadError(ExporterError):
    """Raised when reading the config file fails."""


class ConfigValidationError(ExporterError):
    """Raised when the config file does not conform to schema or semantics."""


class TransportError(ExporterError):
    """Base transport error."""


class ScanError(TransportError):
    """Raised when BLE scanning cannot be started or fails."""
