import io
import struct

import pytest

from logixcip.cip import CIPClass
from logixcip.items import (
    CIPItem,
    CIPItemID,
    ItemOutOfDataError,
    new_item,
    read_items,
    serialize_items,
)


@pytest.mark.parametrize(
    "item_id, expected",
    [
        (CIPItemID.CONNECTION_ADDRESS, 0x00A1),
        (CIPItemID.CONNECTED_DATA, 0x00B1),
        (CIPItemID.UNCONNECTED_DATA, 0x00B2),
    ],
)
def test_item_id_values(item_id, expected):
    raw = new_item(item_id, b"").to_bytes()
    assert raw == struct.pack("<HH", expected, 0)


def test_to_bytes_header_then_data():
    item = new_item(CIPItemID.CONNECTED_DATA, b"\x01\x02")
    assert item.to_bytes() == struct.pack("<HH", 0x00B1, 2) + b"\x01\x02"


@pytest.mark.parametrize(
    "fmt, method, value",
    [
        ("<B", "byte", 200),
        ("<H", "uint16", 0xBEEF),
        ("<h", "int16", -5),
        ("<I", "uint32", 0xDEADBEEF),
        ("<i", "int32", -123456),
        ("<Q", "uint64", 2**63 + 7),
        ("<q", "int64", -(2**40)),
        ("<f", "float32", 1.5),
        ("<d", "float64", -2.25),
    ],
)
def test_typed_reads(fmt, method, value):
    item = CIPItem(data=struct.pack(fmt, value))
    assert getattr(item, method)() == value
    assert item.pos == struct.calcsize(fmt)
    assert item.rest() == b""


@pytest.mark.parametrize("method", ["uint16", "int32", "uint64", "float32", "float64"])
def test_out_of_data(method):
    item = CIPItem(data=b"\x01")
    with pytest.raises(ItemOutOfDataError):
        getattr(item, method)()
    assert item.pos == 0


def test_out_of_data_is_eof():
    with pytest.raises(EOFError):
        CIPItem().byte()


def test_read_and_write_stream():
    item = CIPItem()
    assert item.write(b"abc") == 3
    assert item.length == 3
    assert item.read(10) == b"abc"
    assert item.read(1) == b""
    item.reset()
    assert item.read(2) == b"ab"
    assert item.rest() == b"c"


def test_serialize_string_is_fixed_payload():
    item = CIPItem()
    item.serialize("Hi")
    assert len(item.data) == 4 + 84
    assert item.uint32() == 2
    assert item.rest().rstrip(b"\x00") == b"Hi"


def test_serialize_encodable():
    item = CIPItem()
    item.serialize(CIPClass(0x6B))
    assert bytes(item.data) == CIPClass(0x6B).encode()
    assert CIPClass.read(item) == 0x6B


def test_serialize_unsupported():
    with pytest.raises(TypeError):
        CIPItem().serialize(12)


def test_deserialize_struct():
    item = CIPItem(data=struct.pack("<HhI", 7, -3, 99))
    assert item.deserialize("HhI") == (7, -3, 99)
    with pytest.raises(ItemOutOfDataError):
        item.deserialize("B")


def test_serialize_items_round_trip():
    items = [
        CIPItem(item_id=CIPItemID.NULL),
        new_item(CIPItemID.UNCONNECTED_DATA, b"\x10\x20\x30"),
    ]
    raw = serialize_items(items)
    handle, counter = struct.unpack_from("<IH", raw)
    assert (handle, counter) == (0, 0)
    parsed = read_items(io.BytesIO(raw[6:]))
    assert [p.item_id for p in parsed] == [CIPItemID.NULL, CIPItemID.UNCONNECTED_DATA]
    assert [bytes(p.data) for p in parsed] == [b"", b"\x10\x20\x30"]


def test_read_items_truncated():
    raw = serialize_items([new_item(CIPItemID.CONNECTED_DATA, b"\x01\x02\x03")])
    with pytest.raises(EOFError):
        read_items(io.BytesIO(raw[6:-1]))


def test_read_items_keeps_unknown_id():
    raw = struct.pack("<HHH", 1, 0x1234, 0)
    parsed = read_items(io.BytesIO(raw))
    assert parsed[0].item_id == 0x1234