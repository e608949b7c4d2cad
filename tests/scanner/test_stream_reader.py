from __future__ import annotations

import io
import struct
import zipfile

import pytest

from classpath_scanner.errors import EntryUnavailableError
from classpath_scanner.readers import StreamEntryReader, ZipFileEntryReader


def _entries(reader: StreamEntryReader) -> list[tuple[str, bytes]]:
    collected = []
    while reader.advance():
        entry = reader.current
        if entry.is_dir:
            continue
        with reader.open_current() as stream:
            collected.append((entry.name, stream.read()))
    return collected


@pytest.mark.parametrize("compression", [zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED])
def test_reads_entries_in_stream_order(zip_bytes, compression):
    payload = zip_bytes(
        {
            "com/z/Last.class": b"z" * 300,
            "com/": b"",
            "com/a/First.class": b"a" * 5000,
        },
        compression=compression,
    )
    reader = StreamEntryReader(io.BytesIO(payload), label="outer.jar!/inner.jar", depth=1)

    assert _entries(reader) == [
        ("com/z/Last.class", b"z" * 300),
        ("com/a/First.class", b"a" * 5000),
    ]
    assert reader.advance() is False


def test_reads_entries_with_data_descriptors(zip_bytes):
    payload = zip_bytes(
        {"a/One.class": b"one" * 1000, "a/Two.class": b"two"},
        streamed=True,
    )
    reader = StreamEntryReader(io.BytesIO(payload), label="streamed.jar", depth=1)

    assert reader.advance()
    assert reader.current.size is None
    reader.advance()
    assert reader.current.name == "a/Two.class"
    with reader.open_current() as stream:
        assert stream.read() == b"two"
    assert reader.advance() is False


def test_advance_skips_unread_entries(zip_bytes):
    payload = zip_bytes({"Skip.class": b"s" * 10_000, "Keep.class": b"keep"})
    reader = StreamEntryReader(io.BytesIO(payload), label="nested.jar", depth=1)

    assert reader.advance()
    with reader.open_current() as stream:
        assert stream.read(3) == b"sss"
    assert reader.advance()
    assert reader.current.name == "Keep.class"
    with reader.open_current() as stream:
        assert stream.read() == b"keep"


def test_entry_cannot_be_consumed_twice(zip_bytes):
    payload = zip_bytes({"Once.class": b"once"})
    reader = StreamEntryReader(io.BytesIO(payload), label="nested.jar", depth=1)
    reader.advance()
    with reader.open_current() as stream:
        stream.read()

    with pytest.raises(EntryUnavailableError) as exc_info:
        reader.open_current()

    assert exc_info.value.code == "ENTRY_CONSUMED"


def test_stale_stream_does_not_leak_the_next_entry(zip_bytes):
    payload = zip_bytes({"First.class": b"first", "Second.class": b"second"})
    reader = StreamEntryReader(io.BytesIO(payload), label="nested.jar", depth=1)
    reader.advance()
    stale = reader.open_current()

    reader.advance()

    assert stale.read() == b""
    with reader.open_current() as stream:
        assert stream.read() == b"second"


def test_non_zip_stream_has_no_entries():
    reader = StreamEntryReader(io.BytesIO(b"definitely not a zip"), label="fake.jar", depth=1)

    assert reader.advance() is False
    assert reader.advance() is False


def test_unsupported_method_is_unavailable_but_skippable(zip_bytes):
    payload = bytearray(
        zip_bytes({"Odd.class": b"odd", "Fine.class": b"fine"}, compression=zipfile.ZIP_STORED)
    )
    struct.pack_into("<H", payload, 8, 99)  # compression method of the first local header
    reader = StreamEntryReader(io.BytesIO(bytes(payload)), label="nested.jar", depth=1)

    reader.advance()
    with pytest.raises(EntryUnavailableError) as exc_info:
        reader.open_current()
    assert exc_info.value.code == "ENTRY_UNAVAILABLE"

    assert reader.advance()
    with reader.open_current() as stream:
        assert stream.read() == b"fine"


def test_corrupted_stored_entry_fails_crc_check(zip_bytes):
    name = "Broken.class"
    payload = bytearray(zip_bytes({name: b"hello"}, compression=zipfile.ZIP_STORED))
    payload[30 + len(name)] ^= 0xFF
    reader = StreamEntryReader(io.BytesIO(bytes(payload)), label="nested.jar", depth=1)
    reader.advance()

    with pytest.raises(zipfile.BadZipFile):
        with reader.open_current() as stream:
            stream.read()


def test_truncated_stream_raises_eof(zip_bytes):
    payload = zip_bytes({"Big.class": bytes(range(256)) * 200}, compression=zipfile.ZIP_STORED)
    reader = StreamEntryReader(io.BytesIO(payload[:200]), label="nested.jar", depth=1)
    reader.advance()

    with pytest.raises(EOFError):
        with reader.open_current() as stream:
            stream.read()


def test_zipfile_reader_follows_central_directory_order(tmp_path, zip_bytes):
    archive_path = tmp_path / "app.jar"
    archive_path.write_bytes(zip_bytes({"b/B.class": b"B", "a/": b"", "a/A.class": b"A"}))

    with zipfile.ZipFile(archive_path) as archive:
        reader = ZipFileEntryReader(archive)
        seen = []
        while reader.advance():
            seen.append((reader.current.name, reader.current.is_dir))
        assert reader.label == str(archive_path)

    assert seen == [("b/B.class", False), ("a/", True), ("a/A.class", False)]


def test_encrypted_entry_with_data_descriptor_is_rejected_on_advance(zip_bytes):
    payload = bytearray(zip_bytes({"Secret.class": b"secret"}, streamed=True))
    payload[6] |= 0x01  # general purpose flag bit 0: encrypted
    reader = StreamEntryReader(io.BytesIO(bytes(payload)), label="nested.jar", depth=1)

    with pytest.raises(zipfile.BadZipFile):
        reader.advance()
