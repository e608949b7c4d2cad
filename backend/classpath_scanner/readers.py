from __future__ import annotations

import io
import logging
import struct
import zipfile
import zlib
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, Optional

from .errors import EntryUnavailableError
from .models import ArchiveEntry

logger = logging.getLogger(__name__)

_LOCAL_HEADER_SIGNATURE = b"PK\x03\x04"
_DATA_DESCRIPTOR_SIGNATURE = b"PK\x07\x08"
_LOCAL_HEADER = struct.Struct("<HHHHHIIIHH")
_ZIP64_EXTRA_ID = 0x0001
_ZIP64_MARKER = 0xFFFFFFFF

_FLAG_ENCRYPTED = 0x0001
_FLAG_DATA_DESCRIPTOR = 0x0008
_FLAG_UTF8 = 0x0800

_STORED = 0
_DEFLATED = 8

_CHUNK_SIZE = 64 * 1024  # 64 KiB reads from the enclosing stream.


class ArchiveEntryReader(ABC):
    """
    Cursor over the entries of one archive.

    ``advance`` moves to the next entry and releases the previous one;
    ``open_current`` returns a binary stream over the current entry whose
    ``close`` releases that entry only, never the archive.
    """

    label: str
    depth: int

    @abstractmethod
    def advance(self) -> bool:
        """Move to the next entry. Returns False once the archive is exhausted."""

    @property
    @abstractmethod
    def current(self) -> ArchiveEntry: ...

    @abstractmethod
    def open_current(self) -> BinaryIO: ...

    def entry_path(self) -> str:
        return f"{self.label}!/{self.current.name}"


class ZipFileEntryReader(ArchiveEntryReader):
    """Random-access reader over a top-level ``zipfile.ZipFile``."""

    def __init__(self, archive: zipfile.ZipFile, *, label: str | None = None) -> None:
        self._archive = archive
        self._infos: Iterator[zipfile.ZipInfo] = iter(archive.infolist())
        self._info: Optional[zipfile.ZipInfo] = None
        self.label = label or str(archive.filename)
        self.depth = 0

    def advance(self) -> bool:
        self._info = next(self._infos, None)
        return self._info is not None

    @property
    def current(self) -> ArchiveEntry:
        if self._info is None:
            raise EntryUnavailableError(f"No current entry in {self.label}", "NO_CURRENT_ENTRY")
        return ArchiveEntry(
            name=self._info.filename,
            is_dir=self._info.is_dir(),
            size=self._info.file_size,
            depth=self.depth,
        )

    def open_current(self) -> BinaryIO:
        info = self._info
        if info is None:
            raise EntryUnavailableError(f"No current entry in {self.label}", "NO_CURRENT_ENTRY")
        try:
            return self._archive.open(info)
        except (NotImplementedError, RuntimeError) as exc:
            # zipfile signals unsupported compression and encryption this way.
            raise EntryUnavailableError(f"Cannot open {self.entry_path()}: {exc}") from exc


class _PushbackStream:
    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self._pushed = b""

    def read(self, size: int) -> bytes:
        if self._pushed:
            data, self._pushed = self._pushed[:size], self._pushed[size:]
            return data
        return self._raw.read(size)

    def read_exact(self, size: int) -> bytes:
        parts = []
        remaining = size
        while remaining > 0:
            chunk = self.read(remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def unread(self, data: bytes) -> None:
        if data:
            self._pushed = data + self._pushed


class _EntryState:
    __slots__ = (
        "entry",
        "method",
        "flags",
        "crc",
        "compressed_size",
        "zip64",
        "remaining",
        "decompressor",
        "tail",
        "running_crc",
        "opened",
        "finished",
        "closed",
    )

    def __init__(
        self,
        entry: ArchiveEntry,
        *,
        method: int,
        flags: int,
        crc: int,
        compressed_size: int,
        zip64: bool,
    ) -> None:
        self.entry = entry
        self.method = method
        self.flags = flags
        self.crc = crc
        self.compressed_size = compressed_size
        self.zip64 = zip64
        self.remaining = compressed_size
        self.decompressor = zlib.decompressobj(-zlib.MAX_WBITS) if method == _DEFLATED else None
        self.tail = b""
        self.running_crc = 0
        self.opened = False
        self.finished = False
        self.closed = False

    @property
    def has_descriptor(self) -> bool:
        return bool(self.flags & _FLAG_DATA_DESCRIPTOR)

    @property
    def readable(self) -> bool:
        return not self.flags & _FLAG_ENCRYPTED and self.method in (_STORED, _DEFLATED)


class _EntryStream(io.RawIOBase):
    def __init__(self, reader: "StreamEntryReader", state: _EntryState) -> None:
        self._reader = reader
        self._state = state

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._reader._read_payload(self._state, len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._reader._close_entry(self._state)
        finally:
            super().close()


class StreamEntryReader(ArchiveEntryReader):
    """
    Forward-only reader over a zip byte stream.

    Used for archives nested inside another archive's entry, where only the
    outer entry's decompressed bytes are available. Local file headers are
    parsed as they arrive; the central directory is never consulted. A
    stream that does not begin with a local file header has no entries.
    """

    def __init__(self, stream: BinaryIO, *, label: str, depth: int) -> None:
        self._source = _PushbackStream(stream)
        self._state: Optional[_EntryState] = None
        self._exhausted = False
        self.label = label
        self.depth = depth

    def advance(self) -> bool:
        if self._exhausted:
            return False
        if self._state is not None:
            self._close_entry(self._state)
            self._state = None
        signature = self._source.read_exact(4)
        if signature != _LOCAL_HEADER_SIGNATURE:
            # Central directory, end of stream or not a zip at all.
            self._exhausted = True
            return False
        self._state = self._read_local_header()
        return True

    @property
    def current(self) -> ArchiveEntry:
        if self._state is None:
            raise EntryUnavailableError(f"No current entry in {self.label}", "NO_CURRENT_ENTRY")
        return self._state.entry

    def open_current(self) -> BinaryIO:
        state = self._state
        if state is None:
            raise EntryUnavailableError(f"No current entry in {self.label}", "NO_CURRENT_ENTRY")
        if state.opened or state.closed:
            raise EntryUnavailableError(
                f"Entry {self.entry_path()} was already consumed", "ENTRY_CONSUMED"
            )
        if state.flags & _FLAG_ENCRYPTED:
            raise EntryUnavailableError(f"Entry {self.entry_path()} is encrypted")
        if not state.readable:
            raise EntryUnavailableError(
                f"Entry {self.entry_path()} uses unsupported compression method {state.method}"
            )
        state.opened = True
        return io.BufferedReader(_EntryStream(self, state), buffer_size=_CHUNK_SIZE)

    def _read_local_header(self) -> _EntryState:
        raw = self._source.read_exact(_LOCAL_HEADER.size)
        if len(raw) < _LOCAL_HEADER.size:
            raise EOFError(f"Truncated local file header in {self.label}")
        (
            _version,
            flags,
            method,
            _mtime,
            _mdate,
            crc,
            compressed_size,
            file_size,
            name_length,
            extra_length,
        ) = _LOCAL_HEADER.unpack(raw)
        raw_name = self._source.read_exact(name_length)
        extra = self._source.read_exact(extra_length)
        if len(raw_name) < name_length or len(extra) < extra_length:
            raise EOFError(f"Truncated local file header in {self.label}")
        try:
            name = raw_name.decode("utf-8" if flags & _FLAG_UTF8 else "cp437")
        except UnicodeDecodeError as exc:
            raise zipfile.BadZipFile(f"Undecodable entry name in {self.label}: {raw_name!r}") from exc

        zip64 = False
        if _ZIP64_MARKER in (compressed_size, file_size):
            file_size, compressed_size, zip64 = _apply_zip64_extra(
                extra, file_size, compressed_size
            )

        has_descriptor = bool(flags & _FLAG_DATA_DESCRIPTOR)
        if has_descriptor and method != _DEFLATED:
            raise zipfile.BadZipFile(
                f"Entry {self.label}!/{name} has a data descriptor but is not deflated"
            )
        if has_descriptor and flags & _FLAG_ENCRYPTED:
            # Encrypted data of unknown length cannot be skipped.
            raise zipfile.BadZipFile(
                f"Entry {self.label}!/{name} is encrypted and has a data descriptor"
            )
        entry = ArchiveEntry(
            name=name,
            is_dir=name.endswith("/"),
            size=None if has_descriptor else file_size,
            depth=self.depth,
        )
        logger.debug("Read local header %s!/%s", self.label, name)
        state = _EntryState(
            entry,
            method=method,
            flags=flags,
            crc=crc,
            compressed_size=compressed_size,
            zip64=zip64,
        )
        if not has_descriptor and compressed_size == 0:
            state.finished = True
        return state

    def _read_payload(self, state: _EntryState, size: int) -> bytes:
        if state is not self._state or state.closed or state.finished or size <= 0:
            return b""
        if state.method == _STORED:
            data = self._read_stored(state, size)
        else:
            data = self._read_deflated(state, size)
        state.running_crc = zlib.crc32(data, state.running_crc)
        if state.finished:
            self._verify_crc(state)
        return data

    def _read_stored(self, state: _EntryState, size: int) -> bytes:
        if state.remaining == 0:
            state.finished = True
            return b""
        data = self._source.read(min(size, state.remaining))
        if not data:
            raise EOFError(f"Truncated entry {self.label}!/{state.entry.name}")
        state.remaining -= len(data)
        if state.remaining == 0:
            state.finished = True
        return data

    def _read_deflated(self, state: _EntryState, size: int) -> bytes:
        decompressor = state.decompressor
        while True:
            # An empty source still flushes output held back by max_length.
            source, state.tail = state.tail, b""
            data = decompressor.decompress(source, size)
            state.tail = decompressor.unconsumed_tail
            if decompressor.eof:
                self._source.unread(decompressor.unused_data)
                state.tail = b""
                state.finished = True
                if state.has_descriptor:
                    self._read_data_descriptor(state)
                return data
            if data:
                return data
            if not state.tail:
                chunk = self._source.read(_CHUNK_SIZE)
                if not chunk:
                    raise EOFError(f"Truncated entry {self.label}!/{state.entry.name}")
                state.tail = chunk

    def _read_data_descriptor(self, state: _EntryState) -> None:
        size_width = 8 if state.zip64 else 4
        head = self._source.read_exact(4)
        if head == _DATA_DESCRIPTOR_SIGNATURE:
            head = self._source.read_exact(4)
        rest = self._source.read_exact(size_width * 2)
        if len(head) < 4 or len(rest) < size_width * 2:
            raise EOFError(f"Truncated data descriptor in {self.label}!/{state.entry.name}")
        state.crc = struct.unpack("<I", head)[0]

    def _verify_crc(self, state: _EntryState) -> None:
        if state.running_crc != state.crc:
            raise zipfile.BadZipFile(f"Bad CRC-32 for entry {self.label}!/{state.entry.name}")

    def _skip_unreadable(self, state: _EntryState) -> None:
        if state.has_descriptor:
            raise zipfile.BadZipFile(
                f"Cannot skip entry {self.label}!/{state.entry.name} of unknown length"
            )
        remaining = state.compressed_size
        while remaining > 0:
            chunk = self._source.read(min(_CHUNK_SIZE, remaining))
            if not chunk:
                raise EOFError(f"Truncated entry {self.label}!/{state.entry.name}")
            remaining -= len(chunk)
        state.finished = True

    def _close_entry(self, state: _EntryState) -> None:
        if state is not self._state or state.closed:
            return
        if not state.readable:
            self._skip_unreadable(state)
        else:
            while not state.finished:
                self._read_payload(state, _CHUNK_SIZE)
        state.closed = True


def _apply_zip64_extra(
    extra: bytes, file_size: int, compressed_size: int
) -> tuple[int, int, bool]:
    offset = 0
    while offset + 4 <= len(extra):
        header_id, length = struct.unpack_from("<HH", extra, offset)
        offset += 4
        if header_id == _ZIP64_EXTRA_ID:
            field_data = extra[offset : offset + length]
            position = 0
            if file_size == _ZIP64_MARKER and position + 8 <= len(field_data):
                file_size = struct.unpack_from("<Q", field_data, position)[0]
                position += 8
            if compressed_size == _ZIP64_MARKER and position + 8 <= len(field_data):
                compressed_size = struct.unpack_from("<Q", field_data, position)[0]
            return file_size, compressed_size, True
        offset += length
    return file_size, compressed_size, False
