class IpmCodecError(Exception):
    """Base class for errors raised while reading or writing IPM data."""


class Iso8583DataError(IpmCodecError, ValueError):
    """
    Raised when a message cannot be unpacked or packed.

    :param message: Description of the failure.
    :param binary_context_data: The raw message bytes being processed, kept for diagnosis.
    """

    def __init__(self, message: str, binary_context_data: bytes | None = None):
        super().__init__(message)
        self.binary_context_data = binary_context_data


class FramingError(IpmCodecError, ValueError):

    def __init__(self, message: str, binary_context_data: bytes | None = None):
        super().__init__(message)
        self.binary_context_data = binary_context_data
