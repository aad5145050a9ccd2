"""
Fixed physical blocking used by IPM files exchanged on legacy tape and file transfer systems.

The logical byte stream is cut into 1012 byte blocks, each followed by two ``0x40`` pad
bytes, so every physical block is 1014 bytes. The final block is padded out to full size.
"""

import logging
from io import BytesIO
from typing import BinaryIO

logger = logging.getLogger(__name__)

BLOCK_SIZE = 1014
BLOCK_PAYLOAD_SIZE = 1012
PAD_BYTE = b"\x40"


class BlockedReader(BinaryIO):
    """
    Reads the logical bytes out of a 1014 blocked file.

    A physical block shorter than 1014 bytes is treated as end of file, and none of its
    bytes are returned.
    """

    def __init__(self, file: BinaryIO, block_size: int = BLOCK_SIZE):
        self._file = file
        self._block_size = block_size
        self._buffer = BytesIO()
        self._eof = False

    def read(self, total_bytes: int) -> bytes:
        self._fill_buffer_if_needed(total_bytes)
        return self._buffer.read(total_bytes)

    def _fill_buffer_if_needed(self, total_bytes: int) -> None:
        if self._get_bytes_left_in_buffer() >= total_bytes:
            return

        self._buffer = BytesIO(self._buffer.read())

        while not self._eof and self._get_bytes_left_in_buffer() < total_bytes:
            block = self._file.read(self._block_size)

            if len(block) < self._block_size:
                if block:
                    logger.warning("Discarding short final block of %s bytes", len(block))
                self._eof = True
                break

            position = self._buffer.tell()
            self._buffer.seek(0, 2)
            self._buffer.write(block[:self._block_size - 2])
            self._buffer.seek(position)

    def _get_bytes_left_in_buffer(self) -> int:
        return self._buffer.getbuffer().nbytes - self._buffer.tell()

    def close(self) -> None:
        self._eof = True


class BlockedWriter(BinaryIO):
    """
    Writes a byte stream to a file in 1014 byte physical blocks.

    ``close`` must be called, or the writer used as a context manager, to pad out the final
    block. The underlying file is left open.
    """

    def __init__(self, file: BinaryIO, block_size: int = BLOCK_SIZE):
        self._file = file
        self._payload_size = block_size - 2
        self._remaining = self._payload_size
        self._closed = False

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed BlockedWriter")

        view = memoryview(data)
        while view:
            chunk = view[:self._remaining]
            self._file.write(chunk)
            view = view[len(chunk):]
            self._remaining -= len(chunk)

            if self._remaining == 0:
                self._file.write(PAD_BYTE * 2)
                self._remaining = self._payload_size

        return len(data)

    def close(self) -> None:
        if self._closed:
            return

        self._file.write(PAD_BYTE * (self._remaining + 2))
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "BlockedWriter":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
