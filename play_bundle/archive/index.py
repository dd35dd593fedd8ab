"""Central-directory index for zip archives whose entries are stored uncompressed.

The index never inflates anything: it records where each entry's bytes start
inside the archive file and how long they are, so payloads can be read in place
(or handed to a loader as an offset/length pair).
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from ..errors import ArchiveFormatError, EntryNotFoundError, FileSystemError

logger = logging.getLogger(__name__)

LOCAL_FILE_HEADER_SIGNATURE = 0x04034B50
CENTRAL_DIRECTORY_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIRECTORY_SIGNATURE = 0x06054B50

END_OF_CENTRAL_DIRECTORY_SIZE = 22
MAX_COMMENT_SIZE = (1 << 16) - 1
LOCAL_FILE_HEADER_SIZE = 30
ZIP64_MARKER = 0xFFFFFFFF

# Central-directory file header after its signature: skip version, flags,
# method, time, date and crc (16 bytes), then sizes, name/extra/comment lengths,
# skip disk number and attributes (8 bytes), then the local header offset.
_CENTRAL_HEADER = struct.Struct("<16xIIHHH8xI")
_LOCAL_HEADER = struct.Struct("<I22xHH")
_U32 = struct.Struct("<I")


@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """Location of one stored entry inside an archive file."""

    name: str
    offset: int
    size: int

    @property
    def end(self) -> int:
        return self.offset + self.size


@dataclass(frozen=True, slots=True)
class FileSlice:
    """Offset/length descriptor a loader can read straight from disk."""

    path: Path
    offset: int
    length: int

    def read(self) -> bytes:
        with self.path.open("rb") as handle:
            handle.seek(self.offset)
            payload = handle.read(self.length)
        if len(payload) != self.length:
            raise ArchiveFormatError(
                f"Short read from {self.path}: expected {self.length} bytes at {self.offset}, got {len(payload)}"
            )
        return payload


@dataclass(frozen=True, slots=True)
class LoadRequest:
    """A bundle-sized load request: either copied bytes or a file slice."""

    name: str
    slice: FileSlice
    payload: Optional[bytes] = None

    @property
    def from_memory(self) -> bool:
        return self.payload is not None


EntryRef = Union[ArchiveEntry, str]


class ArchiveIndex:
    """Immutable name -> entry table for one archive file."""

    def __init__(self, path: Path, entries: Mapping[str, ArchiveEntry]) -> None:
        self._path = Path(path)
        self._entries: Mapping[str, ArchiveEntry] = MappingProxyType(dict(entries))

    @classmethod
    def open(cls, path: Union[str, Path]) -> "ArchiveIndex":
        return open_archive(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def entries(self) -> Mapping[str, ArchiveEntry]:
        return self._entries

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"ArchiveIndex({str(self._path)!r}, entries={len(self._entries)})"

    def names(self) -> List[str]:
        return list(self._entries)

    def get(self, name: str) -> ArchiveEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise EntryNotFoundError(name, self._path) from None

    def slice(self, entry: EntryRef) -> FileSlice:
        resolved = self._resolve(entry)
        return FileSlice(path=self._path, offset=resolved.offset, length=resolved.size)

    def read_bytes(self, entry: EntryRef) -> bytes:
        """Return the entry's payload, reopening the archive for the read."""

        resolved = self._resolve(entry)
        logger.debug("Loading %s with offset: %s and size: %s", resolved.name, resolved.offset, resolved.size)
        return self.slice(resolved).read()

    def load_request(self, name: str, *, from_memory: bool = False) -> LoadRequest:
        file_slice = self.slice(name)
        payload = file_slice.read() if from_memory else None
        return LoadRequest(name=name, slice=file_slice, payload=payload)

    def _resolve(self, entry: EntryRef) -> ArchiveEntry:
        if isinstance(entry, ArchiveEntry):
            return entry
        return self.get(entry)


def open_archive(path: Union[str, Path]) -> ArchiveIndex:
    """Parse the central directory of ``path`` into an :class:`ArchiveIndex`.

    Raises :class:`ArchiveFormatError` on any structural problem; a partially
    parsed index is never returned.
    """

    archive_path = Path(path)
    if not archive_path.is_file():
        raise FileSystemError(f"Archive not found: {archive_path}")

    with archive_path.open("rb") as handle:
        handle.seek(0, 2)
        file_size = handle.tell()
        central_directory = _locate_central_directory(handle, file_size, archive_path)
        records = _read_central_directory(handle, central_directory, archive_path)
        entries = _resolve_data_offsets(handle, records, file_size, archive_path)

    return ArchiveIndex(archive_path, entries)


def _locate_central_directory(handle: BinaryIO, file_size: int, path: Path) -> int:
    if file_size < END_OF_CENTRAL_DIRECTORY_SIZE:
        raise ArchiveFormatError(
            f"{path} is {file_size} bytes, shorter than an end of central directory record"
        )

    # Archive without a trailing comment.
    eocd_position = file_size - END_OF_CENTRAL_DIRECTORY_SIZE
    handle.seek(eocd_position)
    record = handle.read(END_OF_CENTRAL_DIRECTORY_SIZE)
    if _U32.unpack_from(record, 0)[0] == END_OF_CENTRAL_DIRECTORY_SIGNATURE:
        offset = _central_directory_offset(handle, record, eocd_position, file_size)
        if offset is not None:
            return offset

    # Assume the largest possible comment and search forward.
    window_start = max(0, file_size - END_OF_CENTRAL_DIRECTORY_SIZE - MAX_COMMENT_SIZE)
    handle.seek(window_start)
    window = handle.read(file_size - window_start)
    signature = _U32.pack(END_OF_CENTRAL_DIRECTORY_SIGNATURE)
    position = window.find(signature)
    while position != -1:
        record = window[position : position + END_OF_CENTRAL_DIRECTORY_SIZE]
        if len(record) == END_OF_CENTRAL_DIRECTORY_SIZE:
            offset = _central_directory_offset(handle, record, window_start + position, file_size)
            if offset is not None:
                return offset
        position = window.find(signature, position + 1)

    raise ArchiveFormatError(f"Could not find central directory in zip file: {path}")


def _central_directory_offset(
    handle: BinaryIO, record: bytes, eocd_position: int, file_size: int
) -> Optional[int]:
    offset = _U32.unpack_from(record, 16)[0]
    if offset == eocd_position:
        # Empty archive: the directory ends where it starts.
        return offset
    if offset + _U32.size > file_size:
        return None
    handle.seek(offset)
    if _U32.unpack(handle.read(_U32.size))[0] != CENTRAL_DIRECTORY_SIGNATURE:
        return None
    return offset


def _read_central_directory(
    handle: BinaryIO, offset: int, path: Path
) -> List[Tuple[str, int, int]]:
    handle.seek(offset)
    records: List[Tuple[str, int, int]] = []
    seen: set[str] = set()
    while True:
        signature = _U32.unpack(_read_exact(handle, _U32.size, path))[0]
        if signature == END_OF_CENTRAL_DIRECTORY_SIGNATURE:
            break
        if signature != CENTRAL_DIRECTORY_SIGNATURE:
            raise ArchiveFormatError(
                f"Unexpected signature 0x{signature:08x} at {handle.tell() - _U32.size} in {path}"
            )

        (
            compressed_size,
            uncompressed_size,
            name_length,
            extra_length,
            comment_length,
            local_header_offset,
        ) = _CENTRAL_HEADER.unpack(_read_exact(handle, _CENTRAL_HEADER.size, path))

        raw_name = _read_exact(handle, name_length, path)
        try:
            name = raw_name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ArchiveFormatError(f"Entry name is not valid UTF-8 in {path}: {raw_name!r}") from exc

        if ZIP64_MARKER in (compressed_size, uncompressed_size, local_header_offset):
            raise ArchiveFormatError(f"Entry {name} in zip {path} requires zip64, which is not supported")
        if compressed_size != uncompressed_size:
            raise ArchiveFormatError(f"File {name} in zip {path} is not stored as uncompressed.")
        if name in seen:
            raise ArchiveFormatError(f"Duplicate entry {name} in zip {path}")
        seen.add(name)

        handle.seek(extra_length + comment_length, 1)
        records.append((name, local_header_offset, compressed_size))
    return records


def _resolve_data_offsets(
    handle: BinaryIO,
    records: List[Tuple[str, int, int]],
    file_size: int,
    path: Path,
) -> Dict[str, ArchiveEntry]:
    entries: Dict[str, ArchiveEntry] = {}
    for name, local_header_offset, size in records:
        handle.seek(local_header_offset)
        signature, name_length, extra_length = _LOCAL_HEADER.unpack(
            _read_exact(handle, _LOCAL_HEADER.size, path)
        )
        if signature != LOCAL_FILE_HEADER_SIGNATURE:
            raise ArchiveFormatError(f"Missing local file header for {name} at {local_header_offset} in {path}")

        offset = local_header_offset + LOCAL_FILE_HEADER_SIZE + name_length + extra_length
        if offset + size > file_size:
            raise ArchiveFormatError(f"Entry {name} extends past the end of {path}")

        entries[name] = ArchiveEntry(name=name, offset=offset, size=size)
        logger.debug("Found file: %s, offset: %s, size: %s", name, offset, size)
    return entries


def _read_exact(handle: BinaryIO, length: int, path: Path) -> bytes:
    payload = handle.read(length)
    if len(payload) != length:
        raise ArchiveFormatError(f"Unexpected end of file while reading {path}")
    return payload
