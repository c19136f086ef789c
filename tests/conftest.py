import io
import zipfile

import numpy as np
import pytest
from PIL import Image

from zip_image_compressor import ImageRecord


def make_image_bytes(width: int, height: int, fmt: str = 'JPEG', channels: int = 3,
                     seed: int = 0, **save_params) -> bytes:
    """Encode a noise image of the given size; noise keeps encoded sizes realistic."""
    rng = np.random.default_rng(seed)
    shape = (height, width) if channels == 1 else (height, width, channels)
    pixels = rng.integers(0, 256, size=shape, dtype=np.uint8)
    img = Image.fromarray(pixels)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt, **save_params)
    return buffer.getvalue()


def make_zip(entries) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', compression=zipfile.ZIP_STORED) as archive:
        for name, data in entries:
            if data is None:
                archive.writestr(zipfile.ZipInfo(name), b'')
            else:
                archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes(400, 300, 'JPEG', quality=75)


@pytest.fixture
def png_bytes():
    return make_image_bytes(400, 300, 'PNG', channels=4)


@pytest.fixture
def make_record():
    def _make(name: str = 'photo.jpg', width: int = 400, height: int = 300,
              seed: int = 0) -> ImageRecord:
        if name.lower().endswith('.png'):
            data = make_image_bytes(width, height, 'PNG', seed=seed)
        elif name.lower().endswith('.webp'):
            data = make_image_bytes(width, height, 'WEBP', seed=seed, quality=80)
        else:
            data = make_image_bytes(width, height, 'JPEG', seed=seed, quality=75)
        return ImageRecord.from_bytes(name, data)
    return _make
