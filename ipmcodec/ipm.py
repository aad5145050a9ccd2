"""
Module: ipm

Reads and writes IPM clearing files: ISO 8583 messages framed as VBS records, optionally
inside 1014 byte physical blocks.

Classes:
    - IpmReader: Iterates over the decoded messages of an IPM file.
    - IpmWriter: Packs messages and writes them to an IPM file.

Usage:
    Both classes take an already opened binary file, which stays owned by the caller.

    Example:
        with open("in.ipm", "rb") as in_file, IpmReader(in_file, blocked=True) as reader:
            for message in reader:
                print(message["MTI"], message.get("DE4"))

        with open("out.ipm", "wb") as out_file, IpmWriter(out_file, blocked=True) as writer:
            writer.write({"MTI": "1644", "DE24": "697", "PDS0105": "0000000001"})

Recovery:
    A message that fails to decode raises `Iso8583DataError` from ``next()``. Its record has
    already been consumed, so iteration can continue with the following message. The raw
    record, including its length header, is available as ``reader.last_record``.

Notes:
    - ``blocked``, ``hex_bitmap`` and ``encoding`` must be the same for the writer and reader
      of a file.
    - A file that ends without the zero length record is read as if it ended normally.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import BinaryIO

from ipmcodec.field_schema import FieldSpec, Message
from ipmcodec.iso8583 import DEFAULT_ENCODING, pack, unpack
from ipmcodec.vbs import DEFAULT_MAX_RECORD_LENGTH, VbsReader, VbsWriter

logger = logging.getLogger(__name__)


class IpmReader(Iterator[Message]):

    def __init__(
        self,
        file: BinaryIO,
        blocked: bool = False,
        schema: Mapping[int, FieldSpec] | None = None,
        encoding: str = DEFAULT_ENCODING,
        hex_bitmap: bool = False,
        max_record_length: int = DEFAULT_MAX_RECORD_LENGTH,
    ):
        self.vbs_reader = VbsReader(file, blocked=blocked, max_record_length=max_record_length)
        self.schema = schema
        self.encoding = encoding
        self.hex_bitmap = hex_bitmap
        self.message_count = 0

    def __iter__(self) -> 'IpmReader':
        return self

    def __next__(self) -> Message:
        record = next(self.vbs_reader)
        self.message_count += 1
        logger.debug("Reading message %s", self.message_count)
        return unpack(record, self.schema, encoding=self.encoding, hex_bitmap=self.hex_bitmap)

    @property
    def last_record(self) -> bytes | None:
        return self.vbs_reader.last_record

    def close(self) -> None:
        self.vbs_reader.close()

    def __enter__(self) -> 'IpmReader':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class IpmWriter:

    def __init__(
        self,
        file: BinaryIO,
        blocked: bool = False,
        schema: Mapping[int, FieldSpec] | None = None,
        encoding: str = DEFAULT_ENCODING,
        hex_bitmap: bool = False,
    ):
        self.vbs_writer = VbsWriter(file, blocked=blocked)
        self.schema = schema
        self.encoding = encoding
        self.hex_bitmap = hex_bitmap
        self.message_count = 0

    def write(self, message: Message) -> None:
        record = pack(message, self.schema, encoding=self.encoding, hex_bitmap=self.hex_bitmap)
        self.vbs_writer.write(record)
        self.message_count += 1

    def write_many(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.write(message)

    def close(self) -> None:
        self.vbs_writer.close()
        logger.debug("Closed IPM writer after %s messages", self.message_count)

    def __enter__(self) -> 'IpmWriter':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
