"""
Exception taxonomy for the FLAC encoder.
Every error carries an optional stage label naming the encoding stage
(e.g. "streaminfo", "read", "frame") where it was raised.
"""

from typing import Optional


class FlacEncoderError(Exception):
    """Base class for all encoder errors."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage:
            return f"encoding error at {self.stage}: {message}"
        return message


class ConfigurationError(FlacEncoderError):
    """Invalid bit depth, channel count, block size or other setting."""

    pass


class SourceReadError(FlacEncoderError):
    """The sample source failed mid-stream."""

    pass


class SinkWriteError(FlacEncoderError):
    """The output sink could not accept bytes."""

    pass


class EncodingInvariantError(FlacEncoderError):
    """An internally computed field cannot be represented in the bitstream."""

    pass


class EncoderStateError(FlacEncoderError):
    """An operation was requested in a state that does not allow it."""

    pass
