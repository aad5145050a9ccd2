"""
Decoders and encoders for the formats nested inside individual data elements.

- PDS (private data subelements): ``tag(4) length(3) value`` units, rolled up across fields.
- ICC: compact TLV chip data with 1 or 2 byte tags and a 1 byte length.
- DE43: positional split of the card acceptor name and location.

Decoding problems in PDS and ICC data are logged and the entries collected so far are
returned; they never fail the enclosing message.
"""

import binascii
import logging
import re

logger = logging.getLogger(__name__)

PDS_PREFIX = "PDS"
PDS_TAG_LENGTH = 4
PDS_LENGTH_LENGTH = 3
PDS_MAX_CHUNK_LENGTH = 999

ICC_DATA_KEY = "ICC_DATA"
ICC_TWO_BYTE_TAG_PREFIXES = (0x9F, 0x5F)


def pds_to_dict(field_data: str) -> dict[str, str]:
    """
    Splits a PDS field into its subelements.

    :param field_data: The decoded field body.
    :return: A dictionary of ``PDSnnnn`` keys to subelement values.
    """
    pds_values = {}
    pointer = 0

    while pointer < len(field_data):
        tag = field_data[pointer:pointer + PDS_TAG_LENGTH]
        length_raw = field_data[pointer + PDS_TAG_LENGTH:pointer + PDS_TAG_LENGTH + PDS_LENGTH_LENGTH]

        if not (tag.isdecimal() and len(tag) == PDS_TAG_LENGTH
                and length_raw.isdecimal() and len(length_raw) == PDS_LENGTH_LENGTH):
            logger.warning("Invalid PDS tag or length at offset %s: %r", pointer, field_data[pointer:])
            break

        value_start = pointer + PDS_TAG_LENGTH + PDS_LENGTH_LENGTH
        value_end = value_start + int(length_raw)
        if value_end > len(field_data):
            logger.warning(
                "PDS%s declares %s bytes but only %s remain", tag, int(length_raw), len(field_data) - value_start
            )
            break

        pds_values[PDS_PREFIX + tag] = field_data[value_start:value_end]
        pointer = value_end

    return pds_values


def _pds_tag_number(key: str) -> int:
    tag = int(key[len(PDS_PREFIX):])
    if not 0 <= tag <= 9999:
        raise ValueError(f"{key} tag does not fit in {PDS_TAG_LENGTH} digits")
    return tag


def dict_to_pds(message: dict, encoding: str = "latin_1") -> list[str]:
    """
    Rolls the ``PDSnnnn`` entries of a message up into PDS field bodies.

    Entries are written in ascending tag order. A new chunk is started whenever the next
    unit would push the current one past 999 bytes; units are never split.

    :param message: A message containing ``PDSnnnn`` keys.
    :param encoding: Encoding used to measure value byte lengths.
    :return: The field bodies, in the order they should be assigned to PDS fields.
    """
    pds_keys = sorted((key for key in message if key.startswith(PDS_PREFIX)), key=_pds_tag_number)

    chunks = []
    current_chunk = ""
    current_length = 0

    for key in pds_keys:
        value = str(message[key])
        value_length = len(value.encode(encoding))
        if value_length > PDS_MAX_CHUNK_LENGTH - PDS_TAG_LENGTH - PDS_LENGTH_LENGTH:
            raise ValueError(f"{key} value is {value_length} bytes, too long for a PDS field")

        unit = f"{_pds_tag_number(key):04d}{value_length:03d}{value}"
        unit_length = len(unit.encode(encoding))

        if current_chunk and current_length + unit_length > PDS_MAX_CHUNK_LENGTH:
            chunks.append(current_chunk)
            current_chunk = ""
            current_length = 0

        current_chunk += unit
        current_length += unit_length

    if current_chunk:
        chunks.append(current_chunk)

    return chunks


def _hexlify(data: bytes) -> str:
    return binascii.hexlify(data).decode("ascii").upper()


def icc_to_dict(field_data: bytes) -> dict[str, str]:
    """
    Decodes compact TLV chip data.

    Only the ``9F`` and ``5F`` prefixes introduce two byte tags, and lengths are always a
    single byte. A ``00`` tag byte terminates the data.

    :param field_data: The raw field body.
    :return: ``ICC_DATA`` with the whole body in hex, plus one ``TAGxx`` key per element.
    """
    icc_values = {ICC_DATA_KEY: _hexlify(field_data)}
    pointer = 0

    while pointer < len(field_data) and field_data[pointer] != 0x00:
        tag_length = 2 if field_data[pointer] in ICC_TWO_BYTE_TAG_PREFIXES else 1
        tag = field_data[pointer:pointer + tag_length]
        pointer += tag_length

        if len(tag) < tag_length or pointer >= len(field_data):
            logger.warning("ICC data ended inside tag %s", _hexlify(tag))
            break

        value_length = field_data[pointer]
        pointer += 1
        value = field_data[pointer:pointer + value_length]

        if len(value) < value_length:
            logger.warning(
                "ICC tag %s declares %s bytes but only %s remain", _hexlify(tag), value_length, len(value)
            )
            break

        icc_values["TAG" + _hexlify(tag)] = _hexlify(value)
        pointer += value_length

    return icc_values


def de43_to_dict(field_data: str, pattern: str, field_key: str = "DE43") -> dict[str, str]:
    """
    Splits a card acceptor name/location field using a pattern with named groups.

    :return: ``{field_key}_{GROUP}`` keys with trailing whitespace removed, or an empty
        dictionary when the field does not match.
    """
    if not pattern:
        return {}

    match = re.fullmatch(pattern, field_data)
    if match is None:
        logger.debug("%s did not match the location pattern", field_key)
        return {}

    return {
        f"{field_key}_{group}": value.rstrip()
        for group, value in match.groupdict().items()
        if value is not None
    }
