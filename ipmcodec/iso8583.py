"""
Module: iso8583

Packs and unpacks ISO 8583 messages as used in card network clearing files.

Functions:
    - unpack: Decodes message bytes into a dictionary of field values.
    - pack: Encodes a dictionary of field values into message bytes.

Message layout:
    MTI (4 ASCII digits), bitmap (16 bytes, or 32 ASCII hex characters when ``hex_bitmap`` is set),
    then every present data element in ascending bit order. The secondary bitmap bit (field 1) is
    always set, so the bitmap is always 128 bits wide.

Message dictionaries:
    - "MTI": the message type indicator.
    - "DEn": the value of data element n, typed according to the field schema.
    - "PDSnnnn": private data subelements found in PDS fields (48, 62, 123-125 by default).
    - "ICC_DATA" and "TAGxx": chip data found in ICC fields (55 by default).
    - "DE43_NAME", "DE43_SUBURB", ...: the parts of the card acceptor name/location.

    Example:
        >>> pack({"MTI": "1144", "DE2": "4444555566667777"})[:4]
        b'1144'
        >>> unpack(pack({"MTI": "1144", "DE2": "4444555566667777"}))
        {'MTI': '1144', 'DE2': '4444555566667777'}

Edge Cases:
    - A value of 0 is present, only None counts as absent.
    - Fixed length values longer than the field are truncated without warning.
    - Fixed length integer and decimal fields are zero padded on the left, other fixed length
      values are space padded on the right.
    - The MTI must be exactly 4 bytes.
    - When PDS keys are present, they replace whatever was in the PDS fields. PDS fields that
      receive no chunk are dropped from the packed message.
    - A bit without a schema entry fails ``unpack`` but is skipped, with a warning, by ``pack``.

Exceptions:
    - `Iso8583DataError`: Raised by ``unpack`` for unknown bits, invalid length prefixes, values
      that cannot be converted to their type, and messages whose length does not match their
      content. Raised by ``pack`` for values that cannot be formatted for their field.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import BinaryIO

from ipmcodec.bitmap import (
    BITMAP_LENGTH,
    HEX_BITMAP_LENGTH,
    bitmap_bytes_to_hex,
    bitmap_to_bytes,
    bytes_to_bitmap,
    hex_to_bitmap_bytes,
)
from ipmcodec.errors import Iso8583DataError
from ipmcodec.field_schema import (
    DATETIME,
    DECIMAL,
    DEFAULT_DATE_FORMAT,
    DEFAULT_SCHEMA,
    DE43,
    ICC,
    INTEGER,
    PDS,
    FieldSpec,
    FieldValue,
    Message,
)
from ipmcodec.subfields import de43_to_dict, dict_to_pds, icc_to_dict, pds_to_dict

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "latin_1"
MTI_LENGTH = 4
SECONDARY_BITMAP_BIT = 1
MAX_BIT = 128


class _StrictBinaryIO(BinaryIO):

    def __init__(self, file: BinaryIO):
        self._file = file
        super().__init__()

    def read(self, size: int) -> bytes:
        data = self._file.read(size)

        if len(data) < size:
            raise EOFError("Unexpected end of message")

        return data

    def tell(self) -> int:
        return self._file.tell()


def unpack(
    message: bytes,
    schema: Mapping[int, FieldSpec] | None = None,
    encoding: str = DEFAULT_ENCODING,
    hex_bitmap: bool = False,
) -> Message:
    """
    Decodes an ISO 8583 message.

    :param message: The raw message bytes, without any record length header.
    :param schema: Field schema to use, defaults to DEFAULT_SCHEMA.
    :param encoding: Text encoding of the message.
    :param hex_bitmap: True if the bitmap is written as 32 ASCII hex characters.
    :return: A dictionary of field values.
    :raises Iso8583DataError: If the message does not fit the schema.
    """
    schema = DEFAULT_SCHEMA if schema is None else schema
    logger.debug("Processing message: len=%s", len(message))

    file = _StrictBinaryIO(BytesIO(message))

    try:
        mti = file.read(MTI_LENGTH).decode(encoding)
        if hex_bitmap:
            bitmap_bytes = hex_to_bitmap_bytes(file.read(HEX_BITMAP_LENGTH))
        else:
            bitmap_bytes = file.read(BITMAP_LENGTH)
    except (EOFError, ValueError) as err:
        raise Iso8583DataError(f"Unable to read MTI and bitmap: {err}", message) from err

    values: Message = {"MTI": mti}

    for bit in sorted(bytes_to_bitmap(bitmap_bytes)):
        if bit == SECONDARY_BITMAP_BIT:
            continue

        field_spec = schema.get(bit)
        if field_spec is None:
            raise Iso8583DataError(f"No bit config available for bit {bit}", message)

        logger.debug("Processing bit %s", bit)
        values.update(_read_field(file, bit, field_spec, encoding, message))

    if file.tell() != len(message):
        raise Iso8583DataError(
            f"Message data not correct length. Parsed to {file.tell()}, total {len(message)}", message
        )

    return values


def _read_field(file: BinaryIO, bit: int, field_spec: FieldSpec, encoding: str, message: bytes) -> Message:
    field_key = f"DE{bit}"

    try:
        field_length = _read_field_length(file, field_spec)
    except ValueError as err:
        raise Iso8583DataError(f"Invalid field length {field_key}: {err}", message) from err
    except EOFError as err:
        raise Iso8583DataError(f"Length prefix of {field_key} runs past end of message", message) from err

    try:
        field_data = file.read(field_length)
    except EOFError as err:
        raise Iso8583DataError(
            f"{field_key} needs {field_length} bytes, message data not correct length", message
        ) from err

    if field_spec.processor == ICC:
        return {field_key: field_data, **icc_to_dict(field_data)}

    try:
        field_text = field_data.decode(encoding)
    except UnicodeDecodeError as err:
        raise Iso8583DataError(f"Unable to decode {field_key} as {encoding}", message) from err

    if field_spec.processor == PDS:
        return {field_key: field_text, **pds_to_dict(field_text)}

    if field_spec.processor == DE43:
        return {field_key: field_text, **de43_to_dict(field_text, field_spec.processor_config, field_key)}

    try:
        return {field_key: _string_to_value(field_text, field_spec)}
    except (ValueError, ArithmeticError) as err:
        raise Iso8583DataError(f"Unable to convert {field_key} value {field_text!r}", message) from err


def _read_field_length(file: BinaryIO, field_spec: FieldSpec) -> int:
    if not field_spec.is_variable:
        return field_spec.field_length

    length_bytes = file.read(field_spec.length_prefix_size)

    if not length_bytes.isdigit():
        raise ValueError(f"{length_bytes!r} is not a valid integer")

    return int(length_bytes)


def _string_to_value(field_text: str, field_spec: FieldSpec) -> FieldValue:
    if field_spec.value_type == INTEGER:
        return int(field_text)

    if field_spec.value_type == DECIMAL:
        return Decimal(field_text)

    if field_spec.value_type == DATETIME:
        try:
            return datetime.strptime(field_text, field_spec.date_format or DEFAULT_DATE_FORMAT)
        except ValueError:
            logger.debug("Leaving date value %r as text", field_text)
            return field_text

    return field_text


def pack(
    message: Message,
    schema: Mapping[int, FieldSpec] | None = None,
    encoding: str = DEFAULT_ENCODING,
    hex_bitmap: bool = False,
) -> bytes:
    """
    Encodes a dictionary of field values as an ISO 8583 message.

    The caller's dictionary is not modified.

    :param message: Field values keyed by "MTI", "DEn" and "PDSnnnn".
    :param schema: Field schema to use, defaults to DEFAULT_SCHEMA.
    :param encoding: Text encoding of the message.
    :param hex_bitmap: True to write the bitmap as 32 ASCII hex characters.
    :return: The packed message bytes.
    :raises Iso8583DataError: If a value cannot be written to its field.
    """
    schema = DEFAULT_SCHEMA if schema is None else schema
    message = dict(message)
    _rollup_pds_fields(message, schema, encoding)

    bitmap = {SECONDARY_BITMAP_BIT}
    field_data = BytesIO()

    for bit in range(2, MAX_BIT + 1):
        value = message.get(f"DE{bit}")
        if value is None:
            continue

        field_spec = schema.get(bit)
        if field_spec is None:
            logger.warning("No bit config available for DE%s, field not packed", bit)
            continue

        bitmap.add(bit)
        field_data.write(_field_to_bytes(bit, value, field_spec, encoding))

    bitmap_bytes = bitmap_to_bytes(bitmap, BITMAP_LENGTH)
    if hex_bitmap:
        bitmap_bytes = bitmap_bytes_to_hex(bitmap_bytes)

    return _mti_to_bytes(message.get("MTI"), encoding) + bitmap_bytes + field_data.getvalue()


def _mti_to_bytes(mti: FieldValue | None, encoding: str) -> bytes:
    if mti is None:
        raise Iso8583DataError("Message has no MTI")

    try:
        mti_bytes = str(mti).encode(encoding)
    except ValueError as err:
        raise Iso8583DataError(f"Unable to encode MTI {mti!r}") from err

    if len(mti_bytes) != MTI_LENGTH:
        raise Iso8583DataError(f"MTI must be {MTI_LENGTH} bytes, got {mti!r}")

    return mti_bytes


def _rollup_pds_fields(message: Message, schema: Mapping[int, FieldSpec], encoding: str) -> None:
    try:
        pds_chunks = dict_to_pds(message, encoding)
    except ValueError as err:
        raise Iso8583DataError(f"Unable to roll up PDS values: {err}") from err

    if not pds_chunks:
        return

    pds_fields = sorted(bit for bit, field_spec in schema.items() if field_spec.processor == PDS)

    if len(pds_chunks) > len(pds_fields):
        raise Iso8583DataError(
            f"PDS values need {len(pds_chunks)} fields but only {len(pds_fields)} are configured"
        )

    for bit, pds_chunk in zip(pds_fields, pds_chunks):
        message[f"DE{bit}"] = pds_chunk

    for bit in pds_fields[len(pds_chunks):]:
        message.pop(f"DE{bit}", None)


def _field_to_bytes(bit: int, value: FieldValue, field_spec: FieldSpec, encoding: str) -> bytes:
    try:
        if isinstance(value, bytes):
            data = value
        else:
            data = _value_to_string(value, field_spec).encode(encoding)
    except (ValueError, ArithmeticError) as err:
        raise Iso8583DataError(f"Unable to convert DE{bit} value {value!r}") from err

    if not field_spec.is_variable:
        return data[:field_spec.field_length].ljust(field_spec.field_length, b" ")

    prefix_size = field_spec.length_prefix_size
    if len(data) >= 10 ** prefix_size:
        raise Iso8583DataError(
            f"DE{bit} value is {len(data)} bytes, too long for a {field_spec.field_type} field"
        )

    return f"{len(data):0{prefix_size}d}".encode(encoding) + data


def _value_to_string(value: FieldValue, field_spec: FieldSpec) -> str:
    if isinstance(value, datetime):
        return value.strftime(field_spec.date_format or DEFAULT_DATE_FORMAT)

    if field_spec.value_type == INTEGER and not field_spec.is_variable:
        return format(int(value), f"0{field_spec.field_length}d")

    if field_spec.value_type == DECIMAL and not field_spec.is_variable:
        return format(Decimal(value), f"0{field_spec.field_length}")

    return str(value)
