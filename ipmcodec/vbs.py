"""
Variable blocked (VBS) record framing.

Each record is preceded by a 4 byte big endian length. A record with length zero marks
the end of the data.

    with open("file.ipm", "rb") as file:
        for record in VbsReader(file, blocked=True):
            ...
"""

import logging
from collections.abc import Iterator
from typing import BinaryIO

from ipmcodec.blocking import BlockedReader, BlockedWriter
from ipmcodec.errors import FramingError

logger = logging.getLogger(__name__)

RDW_LENGTH = 4
DEFAULT_MAX_RECORD_LENGTH = 6000


class VbsReader(Iterator[bytes]):
    """
    Iterates over the records of a VBS stream.

    Yields each record without its length header. Iteration stops at the zero length
    record, or when the data runs out at a record boundary.

    :param file: A binary file object opened in read mode.
    :param blocked: True if the stream uses 1014 byte physical blocking.
    :param max_record_length: Largest record length accepted before the stream is considered corrupt.
    """

    def __init__(self, file: BinaryIO, blocked: bool = False, max_record_length: int = DEFAULT_MAX_RECORD_LENGTH):
        self.file = BlockedReader(file) if blocked else file
        self.max_record_length = max_record_length
        self.last_record: bytes | None = None
        self._finished = False

    def __iter__(self) -> 'VbsReader':
        return self

    def __next__(self) -> bytes:
        if self._finished:
            raise StopIteration

        raw_length = self.file.read(RDW_LENGTH)

        if len(raw_length) < RDW_LENGTH:
            raise self._stop("End of file reached")

        length = int.from_bytes(raw_length, byteorder="big")

        if length == 0:
            raise self._stop("End of file marker reached")

        if length > self.max_record_length:
            self._finished = True
            raise FramingError(
                f"Record length {length} exceeds maximum of {self.max_record_length}", raw_length
            )

        record = self.file.read(length)

        if len(record) < length:
            logger.warning("Record truncated, expected %s bytes but got %s", length, len(record))
            raise self._stop("End of file reached inside record")

        self.last_record = raw_length + record
        return record

    def _stop(self, reason: str) -> StopIteration:
        logger.debug(reason)
        self._finished = True
        return StopIteration(reason)

    def close(self) -> None:
        self._finished = True

    def __enter__(self) -> 'VbsReader':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class VbsWriter:
    """
    Writes records to a VBS stream.

    Closing the writer, directly or by leaving a ``with`` block, writes the zero length end
    marker and, for blocked output, pads the last physical block. The underlying file is
    left open.

    :param file: A binary file object opened in write mode.
    :param blocked: True to write 1014 byte physical blocks.
    """

    def __init__(self, file: BinaryIO, blocked: bool = False):
        self._blocked_writer = BlockedWriter(file) if blocked else None
        self.file = file if self._blocked_writer is None else self._blocked_writer
        self._closed = False

    def write(self, record: bytes) -> None:
        if self._closed:
            raise ValueError("write to closed VbsWriter")

        if not record:
            raise ValueError("Cannot write an empty record, it would be read as the end of file marker")

        self.file.write(len(record).to_bytes(RDW_LENGTH, byteorder="big"))
        self.file.write(record)

    def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        self.file.write(bytes(RDW_LENGTH))

        if self._blocked_writer is not None:
            self._blocked_writer.close()

    def __enter__(self) -> 'VbsWriter':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
