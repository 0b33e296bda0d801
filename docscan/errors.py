"""Exceptions raised by the imaging pipeline."""


class ImagingError(Exception):
    """Base class for decode/encode failures."""


class DecodeError(ImagingError):
    """An input buffer is not a valid or supported image."""


class EncodeError(ImagingError):
    """A canvas could not be serialized to the requested format."""
