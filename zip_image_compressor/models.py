"""
Data models shared by the transform engine, the archive evaluator and the search loop.

All models are immutable: a round builds fresh objects and never edits the
ones produced by an earlier round.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class FormatKind(Enum):
    LOSSY = 'lossy'
    LOSSLESS_ONLY = 'lossless-only'


@dataclass(frozen=True)
class ImageFormat:
    """
    Encoding family of an input image, resolved once at ingestion.

    Fields:
        kind: Whether a quality parameter applies when re-encoding.
        subtype: Pillow encoder name used for the output ("JPEG", "WEBP", "PNG").
    """
    kind: FormatKind
    subtype: str

    @classmethod
    def lossy(cls, subtype: str) -> 'ImageFormat':
        return cls(FormatKind.LOSSY, subtype)

    @classmethod
    def lossless_only(cls, subtype: str) -> 'ImageFormat':
        return cls(FormatKind.LOSSLESS_ONLY, subtype)

    @property
    def is_lossy(self) -> bool:
        return self.kind is FormatKind.LOSSY

    @classmethod
    def from_filename(cls, name: str) -> Optional['ImageFormat']:
        """Return the format for a file name, or None when the extension is not an image."""
        extension = os.path.splitext(name)[1].lower()
        return EXTENSION_FORMATS.get(extension)


EXTENSION_FORMATS = {
    '.jpg': ImageFormat.lossy('JPEG'),
    '.jpeg': ImageFormat.lossy('JPEG'),
    '.gif': ImageFormat.lossy('JPEG'),
    '.bmp': ImageFormat.lossy('JPEG'),
    '.webp': ImageFormat.lossy('WEBP'),
    '.png': ImageFormat.lossless_only('PNG'),
}


@dataclass(frozen=True)
class ImageRecord:
    """
    One input image and its metadata.

    Fields:
        name: Unique entry name within the image set.
        raw_bytes: Original encoded bytes.
        format: Encoding family resolved from the name.
    """
    name: str
    raw_bytes: bytes = field(repr=False)
    format: ImageFormat

    @property
    def original_size(self) -> int:
        return len(self.raw_bytes)

    @classmethod
    def from_bytes(cls, name: str, raw_bytes: bytes) -> 'ImageRecord':
        """
        Build a record, resolving the format from the entry name.

        Raises:
            ValueError: if the name does not carry a supported image extension.
        """
        image_format = ImageFormat.from_filename(name)
        if image_format is None:
            raise ValueError(f"Unsupported image type: {name}")
        return cls(name=name, raw_bytes=bytes(raw_bytes), format=image_format)


@dataclass(frozen=True)
class TransformedImage:
    """
    Output of the transform engine for one image in one round.

    `quality` is None for lossless encodes and for fallbacks.
    """
    name: str
    encoded_bytes: bytes = field(repr=False)
    produced_from: ImageRecord = field(repr=False)
    width: Optional[int] = None
    height: Optional[int] = None
    quality: Optional[float] = None
    fallback: bool = False

    @property
    def size(self) -> int:
        return len(self.encoded_bytes)


@dataclass(frozen=True)
class RoundOutcome:
    """A packaged round: the ratio used, every transformed image and the trial archive size."""
    round_index: int
    ratio_used: float
    packaged_bytes: Tuple[TransformedImage, ...] = field(repr=False)
    measured_size: int

    def items(self) -> List[Tuple[str, bytes]]:
        return [(image.name, image.encoded_bytes) for image in self.packaged_bytes]


@dataclass(frozen=True)
class RoundRecord:
    """Diagnostic history entry for one executed round."""
    round_index: int
    ratio: float
    measured_size: Optional[int]
    packaged: bool
    fallback_count: int = 0


@dataclass(frozen=True)
class CompressionStats:
    original_total: int
    final_size: int
    space_saved: int
    savings_percent: float
    image_count: int
    rounds_run: int
    converged: bool
    selected_round: int
    history: Tuple[RoundRecord, ...] = ()


@dataclass(frozen=True)
class CompressionResult:
    data: bytes = field(repr=False)
    stats: CompressionStats
