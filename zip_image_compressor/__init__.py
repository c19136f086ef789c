"""
ZIP Image Compressor - pack a set of images into a ZIP archive under a target size
by iteratively lowering resolution and encoding quality.
"""

from .archive import ArchiveEvaluator, CompressionLevel, read_zip_images
from .compressor import compress, compress_zip_file
from .config import CompressionOptions
from .errors import (
    CompressorError,
    ExtractionWarning,
    FatalCompressionError,
    NoFeasibleArchiveError,
    PackagingError,
)
from .models import (
    CompressionResult,
    CompressionStats,
    FormatKind,
    ImageFormat,
    ImageRecord,
    RoundOutcome,
    RoundRecord,
    TransformedImage,
)
from .search import SearchState, SizeTargetingSearch
from .transform import TransformEngine

__version__ = '1.0.0'

__all__ = [
    'ArchiveEvaluator',
    'CompressionLevel',
    'CompressionOptions',
    'CompressionResult',
    'CompressionStats',
    'CompressorError',
    'ExtractionWarning',
    'FatalCompressionError',
    'FormatKind',
    'ImageFormat',
    'ImageRecord',
    'NoFeasibleArchiveError',
    'PackagingError',
    'RoundOutcome',
    'RoundRecord',
    'SearchState',
    'SizeTargetingSearch',
    'TransformEngine',
    'TransformedImage',
    'compress',
    'compress_zip_file',
    'read_zip_images',
]
