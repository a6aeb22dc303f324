import xml.etree.ElementTree as ET

import pytest

from logixcip.l5x import l5x_value, load_tags, load_tags_file

SAMPLE = """<?xml version="1.0" encoding="UTF-8"?>
<RSLogix5000Content SchemaRevision="1.0">
<Controller Name="Demo">
<Tags>
<Tag Name="CtrlDint" TagType="Base" DataType="DINT">
<Data Format="L5K"><![CDATA[5]]></Data>
<Data Format="Decorated"><DataValue DataType="DINT" Radix="Decimal" Value="5"/></Data>
</Tag>
<Tag Name="OnlyL5K" DataType="DINT">
<Data Format="L5K"><![CDATA[9]]></Data>
</Tag>
</Tags>
<Programs>
<Program Name="Main">
<Tags>
<Tag Name="Speed" DataType="REAL">
<Data Format="L5K"><![CDATA[1.5]]></Data>
<Data Format="Decorated"><DataValue DataType="REAL" Value="1.5"/></Data>
</Tag>
<Tag Name="Udt" DataType="MyUDT">
<Data Format="L5K"><![CDATA[[7,1]]]></Data>
<Data Format="Decorated">
<Structure DataType="MyUDT">
<DataValueMember Name="Count" DataType="DINT" Value="7"/>
<DataValueMember Name="On" DataType="BOOL" Value="1"/>
</Structure>
</Data>
</Tag>
<Tag Name="Arr" DataType="INT" Dimensions="3">
<Data Format="L5K"><![CDATA[[1,2,3]]]></Data>
<Data Format="Decorated">
<Array DataType="INT" Dimensions="3">
<Element Index="[0]" Value="1"/>
<Element Index="[1]" Value="2"/>
<Element Index="[2]" Value="3"/>
</Array>
</Data>
</Tag>
<Tag Name="Recs" DataType="Rec" Dimensions="1">
<Data Format="L5K"><![CDATA[[0]]]></Data>
<Data Format="Decorated">
<Array DataType="Rec" Dimensions="1">
<Element Index="[0]">
<Structure DataType="Rec">
<DataValueMember Name="Label" DataType="STRING"><![CDATA[hello]]></DataValueMember>
<DataValueMember Name="Id" DataType="DINT" Value="4"/>
</Structure>
</Element>
</Array>
</Data>
</Tag>
</Tags>
</Program>
</Programs>
</Controller>
</RSLogix5000Content>
"""


def _doc(text):
    return ET.fromstring(text)


def test_values_pass_through_for_valid_input():
    assert l5x_value("DINT", "42") == 42
    assert l5x_value("INT", "-12") == -12
    assert l5x_value("REAL", "1.5") == 1.5
    assert l5x_value("STRING", "abc") == "abc"
    assert l5x_value("LINT", "123456789012") == 123456789012


def test_bool_values():
    assert l5x_value("BOOL", "1") is True
    assert l5x_value("BIT", "true") is True
    assert l5x_value("BOOL", "0") is False
    assert l5x_value("BOOL", "yes") is False


def test_signed_values_are_clamped():
    assert l5x_value("DINT", "3000000000") == 2147483647
    assert l5x_value("SINT", "-500") == l5x_value("SINT", "-128")


def test_unsigned_values_wrap_after_clamp():
    assert l5x_value("BYTE", "-1") == 255
    assert l5x_value("WORD", "7") == 7


def test_malformed_numbers_give_zero():
    assert l5x_value("DINT", "abc") == 0
    assert l5x_value("INT", " 5") == l5x_value("INT", "x")
    assert l5x_value("REAL", "nope") == l5x_value("REAL", "0")


def test_unknown_type_raises():
    with pytest.raises(ValueError, match="unknown type UDINT"):
        l5x_value("UDINT", "1")


def test_load_tags_controller_scope():
    tags = load_tags(_doc(SAMPLE))
    assert tags["CtrlDint"] == 5
    assert "OnlyL5K" not in tags


def test_load_tags_program_scope():
    program = load_tags(_doc(SAMPLE))["program:Main"]
    assert program["Speed"] == 1.5
    assert program["Udt"] == {"Count": 7, "On": True}
    assert program["Arr"] == [1, 2, 3]
    assert program["Recs"] == [{"Label": "hello", "Id": 4}]


def test_load_tags_accepts_element_tree():
    tree = ET.ElementTree(_doc(SAMPLE))
    assert load_tags(tree) == load_tags(_doc(SAMPLE))


def test_load_tags_file(tmp_path):
    path = tmp_path / "project.L5X"
    path.write_text(SAMPLE, encoding="utf-8")
    assert load_tags_file(path) == load_tags(_doc(SAMPLE))


def test_unknown_controller_type_raises():
    text = """<RSLogix5000Content><Controller><Tags>
<Tag Name="Odd" DataType="MYSTERY"><Data/><Data><DataValue Value="1"/></Data></Tag>
</Tags></Controller></RSLogix5000Content>"""
    with pytest.raises(ValueError, match="Odd"):
        load_tags(_doc(text))


def test_bad_dimensions_raise():
    text = """<RSLogix5000Content><Controller><Programs><Program Name="P"><Tags>
<Tag Name="A" DataType="DINT" Dimensions="x"><Data/><Data><Array><Element Value="1"/></Array></Data></Tag>
</Tags></Program></Programs></Controller></RSLogix5000Content>"""
    with pytest.raises(ValueError, match="invalid dimensions"):
        load_tags(_doc(text))


def test_bad_struct_member_type_names_the_member():
    text = """<RSLogix5000Content><Controller><Programs><Program Name="P"><Tags>
<Tag Name="S" DataType="U"><Data/><Data><Structure>
<DataValueMember Name="M" DataType="MYSTERY" Value="1"/>
</Structure></Data></Tag>
</Tags></Program></Programs></Controller></RSLogix5000Content>"""
    with pytest.raises(ValueError, match=r"program:P\.S\.M"):
        load_tags(_doc(text))


def test_empty_program_gives_empty_mapping():
    text = """<RSLogix5000Content><Controller><Programs>
<Program Name="Empty"/></Programs></Controller></RSLogix5000Content>"""
    assert load_tags(_doc(text)) == {"program:Empty": {}}