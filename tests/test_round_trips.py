from io import BytesIO

from hypothesis import given, settings
from hypothesis import strategies as st
from ipmcodec.blocking import BlockedReader, BlockedWriter
from ipmcodec.iso8583 import pack, unpack
from ipmcodec.vbs import VbsReader, VbsWriter

records_strategy = st.lists(st.binary(min_size=1, max_size=3000), max_size=10)

pan_strategy = st.text(alphabet="0123456789", min_size=12, max_size=19)
text_strategy = st.text(alphabet=st.characters(min_codepoint=0x20, max_codepoint=0xFF), max_size=999)


@given(st.binary(max_size=5000))
@settings(max_examples=50)
def test_blocked_writer_reader__any_bytes__round_trip(data):
    file = BytesIO()

    with BlockedWriter(file) as writer:
        writer.write(data)

    blocked = file.getvalue()
    assert len(blocked) % 1014 == 0
    assert BlockedReader(BytesIO(blocked)).read(len(data)) == data


@given(records_strategy, st.booleans())
@settings(max_examples=50)
def test_vbs_writer_reader__any_records__round_trip(records, blocked):
    file = BytesIO()

    with VbsWriter(file, blocked=blocked) as writer:
        for record in records:
            writer.write(record)

    assert list(VbsReader(BytesIO(file.getvalue()), blocked=blocked)) == records


@given(pan_strategy, text_strategy, st.booleans())
@settings(max_examples=50)
def test_pack_unpack__variable_string_fields__round_trip(pan, text, hex_bitmap):
    message = {"MTI": "1240", "DE2": pan, "DE72": text}

    assert unpack(pack(message, hex_bitmap=hex_bitmap), hex_bitmap=hex_bitmap) == message


@given(st.dictionaries(
    st.integers(min_value=1, max_value=9999).map(lambda tag: f"PDS{tag:04d}"),
    st.text(alphabet="ABCDEFGHIJ0123456789 ", max_size=300),
    max_size=8,
))
@settings(max_examples=50)
def test_pack_unpack__pds_values__round_trip(pds_values):
    message = unpack(pack({"MTI": "1644", **pds_values}))

    assert {key: value for key, value in message.items() if key.startswith("PDS")} == pds_values
