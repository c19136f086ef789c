"""
ZIP container access: image extraction from an input archive and the
archive evaluator that packages a round's images and reports the size.
"""

import logging
import os
import warnings
import zipfile
import zlib
from enum import IntEnum
from io import BytesIO
from typing import List, Sequence, Tuple, Union

from .config import FINAL_LEVEL, IGNORED_FOLDERS, TRIAL_LEVEL
from .errors import CompressorError, ExtractionWarning, PackagingError
from .models import ImageFormat, ImageRecord

log = logging.getLogger(__name__)

# Fixed entry metadata keeps equal inputs byte-identical
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_FILE_PERMISSIONS = 0o644 << 16

ZipSource = Union[str, os.PathLike, bytes, bytearray]


class CompressionLevel(IntEnum):
    TRIAL = TRIAL_LEVEL
    FINAL = FINAL_LEVEL


def is_ignored_entry(name: str) -> bool:
    """True for hidden files and OS metadata folders such as __MACOSX."""
    parts = [part for part in name.replace('\\', '/').split('/') if part]
    return any(part.startswith('.') or part in IGNORED_FOLDERS for part in parts)


def _skip_entry(name: str, reason: str) -> None:
    warnings.warn(f"Skipped {name}: {reason}", ExtractionWarning, stacklevel=3)


def read_zip_images(source: ZipSource) -> List[ImageRecord]:
    """
    Extract every supported image from a ZIP archive.

    Args:
        source: Path to a ZIP file or the archive's raw bytes.

    Returns:
        Image records in archive order. Unreadable entries are skipped with
        an ExtractionWarning.

    Raises:
        CompressorError: if the container itself cannot be opened.
    """
    if isinstance(source, (bytes, bytearray)):
        source = BytesIO(source)

    try:
        archive = zipfile.ZipFile(source)
    except (zipfile.BadZipFile, OSError) as e:
        raise CompressorError(f"Cannot open ZIP archive: {e}") from e

    records: List[ImageRecord] = []
    seen = set()
    with archive:
        for info in archive.infolist():
            if info.is_dir() or is_ignored_entry(info.filename):
                continue

            image_format = ImageFormat.from_filename(info.filename)
            if image_format is None:
                continue

            if info.filename in seen:
                _skip_entry(info.filename, 'duplicate entry name')
                continue

            try:
                data = archive.read(info)
            except (zipfile.BadZipFile, OSError, RuntimeError,
                    NotImplementedError, EOFError, zlib.error) as e:
                _skip_entry(info.filename, str(e))
                continue

            if not data:
                _skip_entry(info.filename, 'empty entry')
                continue

            seen.add(info.filename)
            records.append(ImageRecord(name=info.filename, raw_bytes=data, format=image_format))

    log.debug(f"Extracted {len(records)} images")
    return records


class ArchiveEvaluator:
    """Packages named blobs into a deflated ZIP and reports what it produced."""

    def package(self, items: Sequence[Tuple[str, bytes]],
                level: CompressionLevel = CompressionLevel.TRIAL) -> bytes:
        """
        Write `items` into an in-memory ZIP archive.

        Args:
            items: (entry name, entry bytes) pairs, written in order.
            level: TRIAL for round measurements, FINAL for the delivered archive.

        Returns:
            The archive bytes.

        Raises:
            PackagingError: if any entry cannot be serialized.
        """
        compresslevel = int(level)
        buffer = BytesIO()
        try:
            with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_DEFLATED,
                                 compresslevel=compresslevel) as archive:
                for name, data in items:
                    info = zipfile.ZipInfo(name, date_time=_FIXED_DATE_TIME)
                    info.compress_type = zipfile.ZIP_DEFLATED
                    info.external_attr = _FILE_PERMISSIONS
                    archive.writestr(info, data, compresslevel=compresslevel)
        except (OSError, ValueError, TypeError, zlib.error, zipfile.LargeZipFile) as e:
            raise PackagingError(f"Failed to package {len(items)} entries: {e}") from e

        return buffer.getvalue()

    def measure(self, items: Sequence[Tuple[str, bytes]],
                level: CompressionLevel = CompressionLevel.TRIAL) -> int:
        """Byte size of the archive `package` would produce."""
        return len(self.package(items, level))
