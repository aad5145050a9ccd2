from ipmcodec.bitmap import bitmap_bytes_to_hex, bitmap_to_bytes, bytes_to_bitmap, hex_to_bitmap_bytes


def test_bytes_to_bitmap__first_byte__reads_most_significant_bit_first():
    assert bytes_to_bitmap(b"\xC0" + bytes(15)) == {1, 2}


def test_bytes_to_bitmap__last_bit__is_field_128():
    assert bytes_to_bitmap(bytes(15) + b"\x01") == {128}


def test_bytes_to_bitmap__empty_bitmap__has_no_fields():
    assert bytes_to_bitmap(bytes(16)) == set()


def test_bitmap_to_bytes__selected_fields__sets_matching_bits():
    assert bitmap_to_bytes({1, 2, 9, 64, 65, 128}) == _make_bitmap([1, 2, 9, 64, 65, 128])


def test_bitmap_to_bytes__short_length__zero_pads_and_ignores_overflow():
    assert bitmap_to_bytes({1, 70}, 8) == b"\x80" + bytes(7)


def test_bitmap_to_bytes__inverse_of_bytes_to_bitmap():
    bitmap = _make_bitmap([1, 3, 48, 55, 127])

    assert bitmap_to_bytes(bytes_to_bitmap(bitmap)) == bitmap


def test_hex_bitmap__round_trips_through_ascii():
    bitmap = _make_bitmap([1, 2, 128])

    assert bitmap_bytes_to_hex(bitmap) == b"c0000000000000000000000000000001"
    assert hex_to_bitmap_bytes(b"C0000000000000000000000000000001") == bitmap


def _make_bitmap(indices: list[int]) -> bytes:
    bitmap = bytearray(16)
    for idx in indices:
        byte_idx = (idx - 1) // 8
        bit_idx = 7 - ((idx - 1) % 8)
        bitmap[byte_idx] |= (1 << bit_idx)
    return bytes(bitmap)
