import binascii

BITMAP_LENGTH = 16
HEX_BITMAP_LENGTH = BITMAP_LENGTH * 2


def bytes_to_bitmap(bitmap_bytes: bytes) -> set[int]:
    """
    Determines the field ids whose bits are set in the provided bitmap.

    Bits are read most significant first, so the top bit of byte 0 is field 1.

    :param bitmap_bytes: A byte string representing the bitmap.
    :return: The set of field ids (1-based) present in the bitmap.
    """
    set_bits = set()
    for i, byte in enumerate(bitmap_bytes):
        for j in range(8):
            if byte & (1 << (7 - j)):
                set_bits.add(i * 8 + j + 1)
    return set_bits


def bitmap_to_bytes(bitmap: set[int], length: int = BITMAP_LENGTH) -> bytes:
    """
    Inverse of :func:`bytes_to_bitmap`, zero padded to ``length`` bytes.

    Field ids that do not fit within ``length`` bytes are ignored.
    """
    bitmap_bytes = bytearray(length)
    for field_id in bitmap:
        byte_index, bit_offset = divmod(field_id - 1, 8)
        if 0 <= byte_index < length:
            bitmap_bytes[byte_index] |= 1 << (7 - bit_offset)
    return bytes(bitmap_bytes)


def hex_to_bitmap_bytes(hex_bitmap: bytes) -> bytes:
    return binascii.unhexlify(hex_bitmap)


def bitmap_bytes_to_hex(bitmap_bytes: bytes) -> bytes:
    return binascii.hexlify(bitmap_bytes)
