"""
Exception taxonomy for the compressor.

Transform failures are never raised: the engine resolves them to the
original bytes and flags the result instead.
"""


class CompressorError(Exception):
    """Base class for every error raised by the compressor."""


class PackagingError(CompressorError):
    """The archive writer could not serialize the given entries."""


class FatalCompressionError(CompressorError):
    """The run could not deliver any archive."""


class NoFeasibleArchiveError(FatalCompressionError):
    """Every round failed to package and no candidate exists."""

    def __init__(self, message: str = 'no feasible archive produced'):
        super().__init__(message)


class ExtractionWarning(UserWarning):
    """A single input entry could not be read and was skipped."""
