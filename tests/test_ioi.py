import pytest

from logixcip.ioi import (
    IOIBuilder,
    TagIOI,
    marshal_ioi_part,
    parse_tag_name,
    tag_from_path,
)
from logixcip.items import CIPItem, CIPItemID, ItemOutOfDataError, new_item

IOI_CASES = [
    (
        "profile[0,1,257]",
        "DINT",
        bytes([
            0x91, 0x07, 0x70, 0x72, 0x6F, 0x66, 0x69, 0x6C, 0x65, 0x00,
            0x28, 0x00,
            0x28, 0x01,
            0x29, 0x00, 0x01, 0x01,
        ]),
    ),
    (
        "profile[1,2,258]",
        "DINT",
        bytes([
            0x91, 0x07, 0x70, 0x72, 0x6F, 0x66, 0x69, 0x6C, 0x65, 0x00,
            0x28, 0x01,
            0x28, 0x02,
            0x29, 0x00, 0x02, 0x01,
        ]),
    ),
    (
        "profile[300,2,258]",
        "DINT",
        bytes([
            0x91, 0x07, 0x70, 0x72, 0x6F, 0x66, 0x69, 0x6C, 0x65, 0x00,
            0x29, 0x00, 0x2C, 0x01,
            0x28, 0x02,
            0x29, 0x00, 0x02, 0x01,
        ]),
    ),
    (
        "dwell3.acc",
        "DINT",
        bytes([
            0x91, 0x06, 0x64, 0x77, 0x65, 0x6C, 0x6C, 0x33,
            0x91, 0x03, 0x61, 0x63, 0x63, 0x00,
        ]),
    ),
    (
        "struct3.today.rate",
        "STRUCT",
        bytes([
            0x91, 0x07, 0x73, 0x74, 0x72, 0x75, 0x63, 0x74, 0x33, 0x00,
            0x91, 0x05, 0x74, 0x6F, 0x64, 0x61, 0x79, 0x00,
            0x91, 0x04, 0x72, 0x61, 0x74, 0x65,
        ]),
    ),
    (
        "my2dstruct4[1].today.hourlycount[3]",
        "INT",
        bytes([
            0x91, 0x0B, 0x6D, 0x79, 0x32, 0x64, 0x73, 0x74, 0x72, 0x75, 0x63, 0x74, 0x34, 0x00,
            0x28, 0x01,
            0x91, 0x05, 0x74, 0x6F, 0x64, 0x61, 0x79, 0x00,
            0x91, 0x0B, 0x68, 0x6F, 0x75, 0x72, 0x6C, 0x79, 0x63, 0x6F, 0x75, 0x6E, 0x74, 0x00,
            0x28, 0x03,
        ]),
    ),
    (
        "My2DstRucT4[1].ToDaY.hoURLycOuNt[3]",
        "INT",
        bytes([
            0x91, 0x0B, 0x6D, 0x79, 0x32, 0x64, 0x73, 0x74, 0x72, 0x75, 0x63, 0x74, 0x34, 0x00,
            0x28, 0x01,
            0x91, 0x05, 0x74, 0x6F, 0x64, 0x61, 0x79, 0x00,
            0x91, 0x0B, 0x68, 0x6F, 0x75, 0x72, 0x6C, 0x79, 0x63, 0x6F, 0x75, 0x6E, 0x74, 0x00,
            0x28, 0x03,
        ]),
    ),
]


@pytest.mark.parametrize("path,datatype,want", IOI_CASES)
def test_ioi_bytes(path, datatype, want):
    res = IOIBuilder().build(path, datatype)
    assert res.encode() == want


@pytest.mark.parametrize(
    "tag",
    ["test", "test[2]", "test[2,3]", "test[3000,3]", "test.tester", "test[2,3].tester"],
)
def test_ioi_to_bytes_and_back_again(tag):
    res = IOIBuilder().build(tag, "DINT")
    item = new_item(CIPItemID.NULL, res)
    assert tag_from_path(item) == tag


def test_build_is_cached_case_insensitively():
    builder = IOIBuilder()
    first = builder.build("MyTag", None)
    assert builder.build("MYTAG", None) is first
    assert first.path == "mytag"


def test_clear_cache_rebuilds():
    builder = IOIBuilder()
    first = builder.build("abc", None)
    builder.clear_cache()
    second = builder.build("abc", None)
    assert second is not first
    assert second.encode() == first.encode()


def test_bit_access_part_is_not_encoded():
    res = IOIBuilder().build("flags.5", None)
    assert res.bit_access is True
    assert res.bit_position == 5
    assert res.encode() == marshal_ioi_part("flags")


def test_numeric_member_above_31_is_symbolic():
    res = IOIBuilder().build("tag.40", None)
    assert res.bit_access is False
    assert res.encode() == marshal_ioi_part("tag") + b"\x91\x0240"


def test_large_index_uses_32_bit_element():
    res = IOIBuilder().build("big[70000]", None)
    assert res.encode() == marshal_ioi_part("big") + b"\x2a\x00" + (70000).to_bytes(4, "little")


def test_resolved_path_used_on_new_firmware():
    instance_path = b"\x20\x6b\x24\x05"
    builder = IOIBuilder(
        resolve=lambda name: instance_path if name == "known" else None,
        firmware=lambda: 21,
    )
    assert builder.build("KNOWN", 0xC4).encode() == instance_path
    assert builder.build("other", 0xC4).encode() == marshal_ioi_part("other")


def test_resolved_path_ignored_on_old_firmware():
    builder = IOIBuilder(resolve=lambda name: b"\x20\x6b\x24\x05", firmware=lambda: 20)
    assert builder.build("known", 0xC4).encode() == marshal_ioi_part("known")


def test_resolved_path_ignored_for_symbolic_and_unknown_types():
    builder = IOIBuilder(
        resolve=lambda name: b"\x20\x6b\x24\x05",
        firmware=lambda: 32,
        symbolic_types={"STRUCT"},
    )
    assert builder.build("known", "STRUCT").encode() == marshal_ioi_part("known")
    assert builder.build("known", None).encode() == marshal_ioi_part("known")


def test_array_part_without_bracket_start_raises():
    with pytest.raises(ValueError):
        IOIBuilder().build("tag]", None)


def test_parse_tag_name_array():
    tag = parse_tag_name("arr[1,2]")
    assert tag.base_path == "arr"
    assert tag.array_order == [1, 2]
    assert tag.bit_access is False


def test_parse_tag_name_bit():
    tag = parse_tag_name("word.7")
    assert tag.bit_access is True
    assert tag.bit_number == 7
    assert tag.base_path == "word"
    assert tag.array_order is None


def test_parse_tag_name_plain():
    tag = parse_tag_name("plain")
    assert tag.base_path == "plain"
    assert tag.full_path == "plain"
    assert tag.array_order is None


def test_parse_tag_name_rejects_bad_index():
    with pytest.raises(ValueError):
        parse_tag_name("arr[1, 2]")
    with pytest.raises(ValueError):
        parse_tag_name("arr[]")


def test_marshal_pads_odd_names():
    assert marshal_ioi_part("abc") == b"\x91\x03abc\x00"
    assert marshal_ioi_part("ab") == b"\x91\x02ab"


def test_marshal_rejects_long_names():
    with pytest.raises(ValueError):
        marshal_ioi_part("x" * 256)


def test_tag_from_path_leaves_unknown_segment_unread():
    item = CIPItem(data=bytearray(marshal_ioi_part("ab") + b"\x20\x6b"))
    assert tag_from_path(item) == "ab"
    assert item.rest() == b"\x20\x6b"


def test_tag_from_path_truncated_name_raises():
    item = CIPItem(data=bytearray(b"\x91\x05ab"))
    with pytest.raises(ItemOutOfDataError):
        tag_from_path(item)


def test_tagioi_encode_copies_buffer():
    ioi = TagIOI(buffer=bytearray(b"\x91\x02ab"))
    assert ioi.encode() == b"\x91\x02ab"