"""
Programmatic entry points.
"""

import logging
import os
from typing import Optional, Sequence, Union

from .archive import ZipSource, read_zip_images
from .config import CompressionOptions
from .errors import CompressorError
from .models import CompressionResult, ImageRecord
from .search import ProgressReporter, SizeTargetingSearch

log = logging.getLogger(__name__)


def compress(images: Sequence[ImageRecord], target_size_bytes: float,
             options: Optional[CompressionOptions] = None,
             progress: Optional[ProgressReporter] = None) -> CompressionResult:
    """
    Pack `images` into a ZIP archive close to, and where possible under, `target_size_bytes`.

    Args:
        images: Input image set with unique names.
        target_size_bytes: Ceiling for the delivered archive.
        options: Run options; defaults apply when omitted.
        progress: Optional callable receiving (text, percent) updates.

    Returns:
        CompressionResult with the archive bytes and statistics.

    Raises:
        FatalCompressionError: if no archive could be produced.
    """
    search = SizeTargetingSearch(options=options, progress=progress)
    return search.run(images, target_size_bytes)


def compress_zip_file(input_path: ZipSource,
                      output_path: Union[str, os.PathLike],
                      target_size_bytes: float,
                      options: Optional[CompressionOptions] = None,
                      progress: Optional[ProgressReporter] = None) -> CompressionResult:
    """
    Read images from a ZIP archive, compress them and write the result to `output_path`.

    Raises:
        CompressorError: if the input holds no readable images or cannot be opened.
        FatalCompressionError: if no archive could be produced.
    """
    if progress is not None:
        progress('Loading ZIP file...', 0)

    images = read_zip_images(input_path)
    if not images:
        raise CompressorError('No image files found in the ZIP archive.')

    result = compress(images, target_size_bytes, options=options, progress=progress)

    with open(output_path, 'wb') as output:
        output.write(result.data)
    log.info(f"Wrote {result.stats.final_size} bytes to {output_path}")
    return result
