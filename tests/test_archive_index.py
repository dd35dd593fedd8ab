from __future__ import annotations

import struct
import warnings
import zipfile
from pathlib import Path
from typing import Iterable, Tuple

import pytest

from play_bundle.archive import ArchiveIndex, open_archive
from play_bundle.errors import ArchiveFormatError, EntryNotFoundError, FileSystemError


def _create_archive(
    path: Path,
    entries: Iterable[Tuple[str, bytes]],
    *,
    comment: bytes = b"",
    compression: int = zipfile.ZIP_STORED,
) -> Path:
    with zipfile.ZipFile(path, "w", compression=compression) as archive:
        for name, payload in entries:
            archive.writestr(name, payload)
        archive.comment = comment
    return path


BUNDLES = [
    ("bundles/level1", b"level one payload"),
    ("bundles/level2", b"second level" * 64),
    ("readme.txt", b""),
]


def test_open_archive_records_payload_offsets(tmp_path: Path) -> None:
    archive_path = _create_archive(tmp_path / "bundles.zip", BUNDLES)

    index = open_archive(archive_path)

    assert index.names() == [name for name, _ in BUNDLES]
    raw = archive_path.read_bytes()
    for name, payload in BUNDLES:
        entry = index.get(name)
        assert entry.size == len(payload)
        assert raw[entry.offset : entry.end] == payload
        assert index.read_bytes(name) == payload


def test_open_archive_with_trailing_comment(tmp_path: Path) -> None:
    archive_path = _create_archive(
        tmp_path / "commented.zip",
        BUNDLES[:1],
        comment=b"built by a test; PK\x05\x06 looks like a signature",
    )

    index = ArchiveIndex.open(archive_path)

    assert index.read_bytes("bundles/level1") == b"level one payload"


def test_open_archive_with_maximum_comment(tmp_path: Path) -> None:
    archive_path = _create_archive(tmp_path / "long.zip", BUNDLES[:2], comment=b"c" * 65535)

    index = open_archive(archive_path)

    assert len(index) == 2
    assert index.read_bytes("bundles/level2") == b"second level" * 64


def test_local_extra_field_moves_payload(tmp_path: Path) -> None:
    archive_path = tmp_path / "extra.zip"
    info = zipfile.ZipInfo("with-extra")
    info.compress_type = zipfile.ZIP_STORED
    info.extra = struct.pack("<HH", 0xCAFE, 4) + b"\x00\x01\x02\x03"
    with zipfile.ZipFile(archive_path, "w") as archive:
        archive.writestr(info, b"payload")

    index = open_archive(archive_path)

    entry = index.get("with-extra")
    assert archive_path.read_bytes()[entry.offset : entry.end] == b"payload"


def test_empty_archive_has_no_entries(tmp_path: Path) -> None:
    archive_path = _create_archive(tmp_path / "empty.zip", [])

    index = open_archive(archive_path)

    assert len(index) == 0
    assert "anything" not in index


def test_file_shorter_than_end_record(tmp_path: Path) -> None:
    archive_path = tmp_path / "short.zip"
    archive_path.write_bytes(b"PK\x05\x06")

    with pytest.raises(ArchiveFormatError):
        open_archive(archive_path)


def test_missing_end_record(tmp_path: Path) -> None:
    archive_path = tmp_path / "garbage.zip"
    archive_path.write_bytes(b"\x00" * 512)

    with pytest.raises(ArchiveFormatError, match="Could not find central directory"):
        open_archive(archive_path)


def test_compressed_entry_is_rejected(tmp_path: Path) -> None:
    archive_path = _create_archive(
        tmp_path / "deflated.zip",
        [("packed", b"a" * 4096)],
        compression=zipfile.ZIP_DEFLATED,
    )

    with pytest.raises(ArchiveFormatError) as excinfo:
        open_archive(archive_path)

    assert str(excinfo.value) == f"File packed in zip {archive_path} is not stored as uncompressed."


def test_duplicate_entry_names_are_rejected(tmp_path: Path) -> None:
    archive_path = tmp_path / "duplicates.zip"
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        _create_archive(archive_path, [("same", b"one"), ("same", b"two")])

    with pytest.raises(ArchiveFormatError, match="Duplicate entry same"):
        open_archive(archive_path)


def test_missing_archive(tmp_path: Path) -> None:
    with pytest.raises(FileSystemError):
        open_archive(tmp_path / "absent.zip")


def test_missing_entry_raises_lookup_error(tmp_path: Path) -> None:
    index = open_archive(_create_archive(tmp_path / "bundles.zip", BUNDLES))

    with pytest.raises(EntryNotFoundError) as excinfo:
        index.get("bundles/level3")

    assert isinstance(excinfo.value, KeyError)
    assert "bundles/level3" in str(excinfo.value)


def test_slice_and_load_request(tmp_path: Path) -> None:
    archive_path = _create_archive(tmp_path / "bundles.zip", BUNDLES)
    index = open_archive(archive_path)
    entry = index.get("bundles/level1")

    file_slice = index.slice("bundles/level1")
    from_disk = index.load_request("bundles/level1")
    from_memory = index.load_request("bundles/level1", from_memory=True)

    assert (file_slice.path, file_slice.offset, file_slice.length) == (archive_path, entry.offset, entry.size)
    assert not from_disk.from_memory
    assert from_disk.payload is None
    assert from_memory.from_memory
    assert from_memory.payload == b"level one payload"


def test_entries_are_read_only(tmp_path: Path) -> None:
    index = open_archive(_create_archive(tmp_path / "bundles.zip", BUNDLES))

    with pytest.raises(TypeError):
        index.entries["new"] = index.get("readme.txt")  # type: ignore[index]
