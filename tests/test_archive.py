"""
Tests for ZIP extraction and the archive evaluator
"""

import io
import logging
import zipfile

import pytest

from conftest import make_image_bytes, make_zip
from zip_image_compressor import (
    ArchiveEvaluator,
    CompressionLevel,
    CompressorError,
    ExtractionWarning,
    ImageFormat,
    PackagingError,
    read_zip_images,
)
from zip_image_compressor.archive import is_ignored_entry


ITEMS = [
    ('b.jpg', b'second entry ' * 200),
    ('a.png', b'first entry ' * 300),
    ('nested/c.gif', bytes(range(256)) * 10),
]


class TestArchiveEvaluator:
    """Packaging named blobs"""

    def test_entries_written_in_order(self):
        data = ArchiveEvaluator().package(ITEMS, CompressionLevel.TRIAL)
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.namelist() == [name for name, _ in ITEMS]
            for name, payload in ITEMS:
                assert archive.read(name) == payload
                assert archive.getinfo(name).compress_type == zipfile.ZIP_DEFLATED

    def test_packaging_is_deterministic(self):
        evaluator = ArchiveEvaluator()
        for level in CompressionLevel:
            assert evaluator.package(ITEMS, level) == evaluator.package(ITEMS, level)
            assert evaluator.measure(ITEMS, level) == evaluator.measure(ITEMS, level)

    def test_measure_matches_package(self):
        evaluator = ArchiveEvaluator()
        assert evaluator.measure(ITEMS) == len(evaluator.package(ITEMS))

    def test_levels(self):
        assert int(CompressionLevel.TRIAL) == 6
        assert int(CompressionLevel.FINAL) == 9

    def test_final_level_archive_is_readable(self):
        data = ArchiveEvaluator().package(ITEMS, CompressionLevel.FINAL)
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.testzip() is None

    def test_empty_item_set(self):
        data = ArchiveEvaluator().package([], CompressionLevel.TRIAL)
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert archive.namelist() == []

    def test_unserializable_entry_raises(self):
        with pytest.raises(PackagingError):
            ArchiveEvaluator().package([('a.jpg', b'ok'), ('b.jpg', None)])


class TestIgnoredEntries:
    """Hidden files and metadata folders"""

    @pytest.mark.parametrize('name', [
        '.DS_Store',
        '__MACOSX/photo.jpg',
        '__MACOSX/._photo.jpg',
        'album/.hidden.png',
        '.cache/photo.jpg',
    ])
    def test_ignored(self, name):
        assert is_ignored_entry(name)

    @pytest.mark.parametrize('name', ['photo.jpg', 'album/photo.jpg', 'my.photo.png'])
    def test_kept(self, name):
        assert not is_ignored_entry(name)


class TestReadZipImages:
    """Extracting image records from an input archive"""

    def test_collects_supported_images(self):
        jpeg = make_image_bytes(80, 60)
        png = make_image_bytes(80, 60, 'PNG')
        data = make_zip([
            ('album/', None),
            ('album/a.jpg', jpeg),
            ('album/b.PNG', png),
            ('notes.txt', b'hello'),
            ('__MACOSX/album/._a.jpg', b'resource fork'),
            ('.hidden.jpg', jpeg),
        ])

        records = read_zip_images(data)

        assert [record.name for record in records] == ['album/a.jpg', 'album/b.PNG']
        assert records[0].raw_bytes == jpeg
        assert records[0].format == ImageFormat.lossy('JPEG')
        assert records[1].format == ImageFormat.lossless_only('PNG')
        assert records[1].original_size == len(png)

    def test_reads_from_path(self, tmp_path):
        path = tmp_path / 'input.zip'
        path.write_bytes(make_zip([('a.jpg', make_image_bytes(60, 60))]))
        assert [record.name for record in read_zip_images(str(path))] == ['a.jpg']
        assert [record.name for record in read_zip_images(path)] == ['a.jpg']

    def test_invalid_container(self):
        with pytest.raises(CompressorError):
            read_zip_images(b'this is not a zip file')

    def test_missing_file(self, tmp_path):
        with pytest.raises(CompressorError):
            read_zip_images(tmp_path / 'missing.zip')

    def test_empty_entry_skipped_with_warning(self):
        data = make_zip([('empty.jpg', b''), ('a.jpg', make_image_bytes(60, 60))])
        with pytest.warns(ExtractionWarning):
            records = read_zip_images(data)
        assert [record.name for record in records] == ['a.jpg']

    def test_skipped_entry_reported_once(self, caplog):
        data = make_zip([('empty.jpg', b''), ('a.jpg', make_image_bytes(60, 60))])
        with caplog.at_level(logging.WARNING):
            with pytest.warns(ExtractionWarning) as record:
                read_zip_images(data)

        skipped = [w for w in record if issubclass(w.category, ExtractionWarning)]
        assert len(skipped) == 1
        assert 'empty.jpg' in str(skipped[0].message)
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    def test_corrupt_entry_skipped_with_warning(self):
        payload = b'corrupt me please ' * 50
        good = make_image_bytes(60, 60)
        data = bytearray(make_zip([('bad.jpg', payload), ('good.jpg', good)]))
        offset = data.find(payload)
        data[offset] ^= 0xFF

        with pytest.warns(ExtractionWarning):
            records = read_zip_images(bytes(data))
        assert [record.name for record in records] == ['good.jpg']
