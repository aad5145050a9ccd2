import logging
from io import BytesIO

import pytest
from ipmcodec.errors import FramingError
from ipmcodec.vbs import VbsReader, VbsWriter


def test_vbs_writer__records__written_with_length_and_end_marker():
    file = BytesIO()

    with VbsWriter(file) as writer:
        writer.write(b"hello")
        writer.write(b"hi")

    assert file.getvalue() == b"\x00\x00\x00\x05hello" b"\x00\x00\x00\x02hi" b"\x00\x00\x00\x00"


def test_vbs_writer__empty_record__raises_error():
    with VbsWriter(BytesIO()) as writer:
        with pytest.raises(ValueError, match="Cannot write an empty record"):
            writer.write(b"")


def test_vbs_writer__error_inside_with_block__still_writes_end_marker():
    file = BytesIO()

    with pytest.raises(RuntimeError):
        with VbsWriter(file, blocked=True) as writer:
            writer.write(b"hello")
            raise RuntimeError("boom")

    data = file.getvalue()
    assert len(data) == 1014
    assert data[:13] == b"\x00\x00\x00\x05hello\x00\x00\x00\x00"


def test_vbs_writer__write_after_close__raises_error():
    writer = VbsWriter(BytesIO())
    writer.close()

    with pytest.raises(ValueError, match="write to closed VbsWriter"):
        writer.write(b"hello")


def test_vbs_reader__records__read_without_length():
    file = BytesIO(b"\x00\x00\x00\x05hello" b"\x00\x00\x00\x02hi" b"\x00\x00\x00\x00" b"ignored")

    reader = VbsReader(file)

    assert list(reader) == [b"hello", b"hi"]
    assert reader.last_record == b"\x00\x00\x00\x02hi"


def test_vbs_reader__missing_end_marker__stops_at_end_of_file():
    file = BytesIO(b"\x00\x00\x00\x05hello")

    assert list(VbsReader(file)) == [b"hello"]


def test_vbs_reader__partial_length__stops_at_end_of_file():
    file = BytesIO(b"\x00\x00\x00\x05hello\x00\x00")

    assert list(VbsReader(file)) == [b"hello"]


def test_vbs_reader__truncated_record__stops_with_warning(caplog):
    file = BytesIO(b"\x00\x00\x00\x05hello" b"\x00\x00\x00\x10short")

    with caplog.at_level(logging.WARNING):
        records = list(VbsReader(file))

    assert records == [b"hello"]
    assert "Record truncated, expected 16 bytes but got 5" in caplog.text


def test_vbs_reader__record_too_long__raises_framing_error():
    file = BytesIO(b"\x00\x01\x00\x00" + b"x" * 10)
    reader = VbsReader(file, max_record_length=6000)

    with pytest.raises(FramingError, match="Record length 65536 exceeds maximum of 6000") as exc_info:
        next(reader)

    assert exc_info.value.binary_context_data == b"\x00\x01\x00\x00"


def test_vbs_reader__after_end__keeps_stopping():
    reader = VbsReader(BytesIO(b"\x00\x00\x00\x00"))

    assert list(reader) == []
    with pytest.raises(StopIteration):
        next(reader)


def test_vbs_reader__blocked_file__reads_records_across_blocks():
    records = [b"a" * 600, b"b" * 900, b"c"]
    file = BytesIO()

    with VbsWriter(file, blocked=True) as writer:
        for record in records:
            writer.write(record)

    blocked = file.getvalue()
    assert len(blocked) % 1014 == 0

    assert list(VbsReader(BytesIO(blocked), blocked=True)) == records
