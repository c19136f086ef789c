"""
Transform Engine - re-encode one image at a reduced resolution and quality.

The engine is total: decode errors, encode errors and timeouts all resolve to
the original bytes, so every image contributes something to every round.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageOps

from .config import (
    DEFAULT_TRANSFORM_TIMEOUT,
    MAX_DIMENSION,
    MAX_QUALITY,
    MIN_DIMENSION,
    MIN_QUALITY,
    MIN_RATIO,
    QUALITY_GAIN,
    clamp,
)
from .models import ImageRecord, TransformedImage

log = logging.getLogger(__name__)


def compute_dimensions(width: int, height: int, ratio: float) -> Tuple[int, int]:
    """
    Target dimensions for an image of `width` x `height` at `ratio`.

    The byte budget scales with area, so each axis scales by sqrt(ratio).
    Each axis is kept at or above MIN_DIMENSION; when either axis would exceed
    MAX_DIMENSION the longer axis is pinned to it and the other follows the
    original aspect ratio.
    """
    scale = math.sqrt(max(ratio, MIN_RATIO))
    new_width = max(MIN_DIMENSION, math.floor(width * scale))
    new_height = max(MIN_DIMENSION, math.floor(height * scale))

    if new_width > MAX_DIMENSION or new_height > MAX_DIMENSION:
        aspect_ratio = width / height
        if aspect_ratio > 1:
            new_width = min(new_width, MAX_DIMENSION)
            new_height = max(MIN_DIMENSION, math.floor(new_width / aspect_ratio))
        else:
            new_height = min(new_height, MAX_DIMENSION)
            new_width = max(MIN_DIMENSION, math.floor(new_height * aspect_ratio))

    return new_width, new_height


def compute_quality(ratio: float) -> float:
    """Lossy encode quality on a 0..1 scale for `ratio`."""
    return clamp(ratio * QUALITY_GAIN, MIN_QUALITY, MAX_QUALITY)


def _flatten_alpha(img: Image.Image) -> Image.Image:
    """Composite transparent pixels onto white so JPEG output has no black holes."""
    rgba = img.convert('RGBA')
    background = Image.new('RGBA', rgba.size, (255, 255, 255, 255))
    return Image.alpha_composite(background, rgba).convert('RGB')


class TransformEngine:
    """Decode, resize and re-encode single images with Pillow."""

    def __init__(self, timeout: Optional[float] = DEFAULT_TRANSFORM_TIMEOUT):
        self.timeout = timeout

    def transform(self, image: ImageRecord, ratio: float) -> TransformedImage:
        """
        Re-encode `image` for the given compression ratio.

        Args:
            image: Source image record (never modified).
            ratio: Fraction of the original byte budget targeted this round.

        Returns:
            TransformedImage; `fallback` is set when the original bytes were kept.
        """
        if self.timeout is None:
            return self._run_inline(image, ratio)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='transform')
        try:
            future = executor.submit(self.reencode, image, ratio)
            try:
                encoded, (width, height), quality = future.result(timeout=self.timeout)
            except FuturesTimeoutError:
                # A late result is dropped along with the future
                future.cancel()
                log.warning(f"Timeout processing {image.name}, using original bytes")
                return self._fallback(image)
            except Exception as e:
                log.warning(f"Failed to compress {image.name}: {e}")
                return self._fallback(image)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return self._result(image, encoded, width, height, quality)

    def _run_inline(self, image: ImageRecord, ratio: float) -> TransformedImage:
        try:
            encoded, (width, height), quality = self.reencode(image, ratio)
        except Exception as e:
            log.warning(f"Failed to compress {image.name}: {e}")
            return self._fallback(image)
        return self._result(image, encoded, width, height, quality)

    def reencode(self, image: ImageRecord, ratio: float) -> Tuple[bytes, Tuple[int, int], Optional[float]]:
        """
        Decode, resize and encode `image`, raising on any codec failure.

        Returns:
            Tuple: (encoded bytes, (width, height), quality or None)
        """
        with BytesIO(image.raw_bytes) as source, Image.open(source) as img:
            img.load()
            oriented = ImageOps.exif_transpose(img)
            if oriented.mode in ('P', '1'):
                oriented = oriented.convert('RGBA')

            size = compute_dimensions(oriented.width, oriented.height, ratio)
            resized = oriented.resize(size, Image.Resampling.LANCZOS)

            if image.format.is_lossy:
                quality = compute_quality(ratio)
                encoded = self._encode_lossy(resized, image.format.subtype, quality)
            else:
                quality = None
                encoded = self._encode_lossless(resized, image.format.subtype)

        return encoded, size, quality

    def _encode_lossy(self, img: Image.Image, subtype: str, quality: float) -> bytes:
        pil_quality = int(round(quality * 100))

        if subtype == 'WEBP':
            if img.mode not in ('RGB', 'RGBA'):
                img = img.convert('RGBA')
            save_params = {
                'format': 'WEBP',
                'quality': pil_quality,
                'method': 4,
            }
        else:
            if img.mode in ('RGBA', 'LA', 'PA'):
                img = _flatten_alpha(img)
            elif img.mode not in ('RGB', 'L'):
                img = img.convert('RGB')
            save_params = {
                'format': subtype,
                'quality': pil_quality,
                'optimize': True,
            }

        with BytesIO() as buffer:
            img.save(buffer, **save_params)
            return buffer.getvalue()

    def _encode_lossless(self, img: Image.Image, subtype: str) -> bytes:
        if img.mode == 'CMYK':
            img = img.convert('RGB')
        save_params = {'format': subtype}
        if subtype == 'PNG':
            save_params['compress_level'] = 6

        with BytesIO() as buffer:
            img.save(buffer, **save_params)
            return buffer.getvalue()

    @staticmethod
    def _result(image: ImageRecord, encoded: bytes, width: int, height: int,
                quality: Optional[float]) -> TransformedImage:
        return TransformedImage(
            name=image.name,
            encoded_bytes=encoded,
            produced_from=image,
            width=width,
            height=height,
            quality=quality,
        )

    @staticmethod
    def _fallback(image: ImageRecord) -> TransformedImage:
        return TransformedImage(
            name=image.name,
            encoded_bytes=image.raw_bytes,
            produced_from=image,
            fallback=True,
        )
