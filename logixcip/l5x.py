"""Reading tag values out of L5X project exports."""

from __future__ import annotations

import os
import re
import xml.etree.ElementTree as ET
from typing import Any, Union

_INTEGER = re.compile(r"[+-]?[0-9]+")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}


def _parse_int(text: str, bits: int) -> int:
    """Base-10 parse clamped to a signed range; malformed text gives 0."""
    if not _INTEGER.fullmatch(text):
        return 0
    value = int(text)
    low = -(1 << (bits - 1))
    high = (1 << (bits - 1)) - 1
    return max(low, min(high, value))


def _wrap(value: int, bits: int) -> int:
    return value & ((1 << bits) - 1)


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def l5x_value(typestr: str, valuestr: str) -> Any:
    """Convert an L5X value string of the given data type to a Python value.

    Malformed numbers become zero and out-of-range numbers are clamped;
    an unknown data type raises ValueError.
    """
    if typestr == "REAL":
        return _parse_float(valuestr)
    if typestr == "DINT":
        return _parse_int(valuestr, 32)
    if typestr in ("BOOL", "BIT"):
        return valuestr in _TRUE
    if typestr == "INT":
        return _parse_int(valuestr, 16)
    if typestr == "STRING":
        return valuestr
    if typestr == "SINT":
        return _parse_int(valuestr, 8)
    if typestr == "LINT":
        return _parse_int(valuestr, 64)
    if typestr == "BYTE":
        return _wrap(_parse_int(valuestr, 8), 8)
    if typestr == "WORD":
        return _wrap(_parse_int(valuestr, 16), 16)
    if typestr == "DWORD":
        return _wrap(_parse_int(valuestr, 32), 32)
    if typestr == "LWORD":
        return _wrap(_parse_int(valuestr, 64), 64)
    raise ValueError(f"unknown type {typestr}")


def _tags(parent: ET.Element | None) -> list[ET.Element]:
    if parent is None:
        return []
    return parent.findall("./Tags/Tag")


def _decorated(tag: ET.Element) -> ET.Element | None:
    data = tag.findall("Data")
    return data[1] if len(data) > 1 else None


def _structure_values(structure: ET.Element, use_text_for_strings: bool) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for member in structure.findall("DataValueMember"):
        name = member.get("Name", "")
        dtype = member.get("DataType", "")
        if use_text_for_strings and dtype == "STRING":
            raw = member.text or ""
        else:
            raw = member.get("Value", "")
        try:
            values[name] = l5x_value(dtype, raw)
        except ValueError as exc:
            raise ValueError(f"error converting {name}: {exc}") from exc
    return values


def _program_tag(prefix: str, tag: ET.Element) -> tuple[bool, Any]:
    name = tag.get("Name", "")
    dtype = tag.get("DataType", "")
    data = _decorated(tag)
    if data is None:
        return False, None

    value = data.find("DataValue")
    if value is not None:
        try:
            return True, l5x_value(dtype, value.get("Value", ""))
        except ValueError as exc:
            raise ValueError(f"error converting {prefix}.{name}: {exc}") from exc

    structure = data.find("Structure")
    if structure is not None:
        members: dict[str, Any] = {}
        for member in structure.findall("DataValueMember"):
            member_name = member.get("Name", "")
            try:
                members[member_name] = l5x_value(
                    member.get("DataType", ""), member.get("Value", "")
                )
            except ValueError as exc:
                raise ValueError(
                    f"error converting {prefix}.{name}.{member_name}: {exc}"
                ) from exc
        return True, members

    array = data.find("Array")
    if array is not None:
        dims = tag.get("Dimensions", "")
        if not _INTEGER.fullmatch(dims):
            raise ValueError(f"{prefix}.{name} invalid dimensions on {dims}")
        elements: list[Any] = []
        for element in array.findall("Element"):
            structures = element.findall("Structure")
            if structures:
                elements.append(_structure_values(structures[0], True))
                continue
            try:
                elements.append(l5x_value(dtype, element.get("Value", "")))
            except ValueError as exc:
                raise ValueError(f"error converting {name}: {exc}") from exc
        return True, elements

    return False, None


def load_tags(root: Union[ET.Element, ET.ElementTree]) -> dict[str, Any]:
    """Collect tag values from a parsed L5X document.

    Controller tags map by name; each program's tags sit in a nested dict
    under "program:<name>". Structures become dicts and arrays become lists.
    """
    if isinstance(root, ET.ElementTree):
        root = root.getroot()
    controller = root if root.tag == "Controller" else root.find("Controller")

    tags: dict[str, Any] = {}
    for tag in _tags(controller):
        data = _decorated(tag)
        if data is None:
            continue
        value = data.find("DataValue")
        if value is None:
            continue
        name = tag.get("Name", "")
        try:
            tags[name] = l5x_value(tag.get("DataType", ""), value.get("Value", ""))
        except ValueError as exc:
            raise ValueError(f"error converting {name}: {exc}") from exc

    programs = controller.findall("./Programs/Program") if controller is not None else []
    for program in programs:
        prefix = f"program:{program.get('Name', '')}"
        program_tags: dict[str, Any] = {}
        for tag in _tags(program):
            found, value = _program_tag(prefix, tag)
            if found:
                program_tags[tag.get("Name", "")] = value
        tags[prefix] = program_tags
    return tags


def load_tags_file(path: Union[str, os.PathLike]) -> dict[str, Any]:
    """Parse an L5X file and collect its tag values."""
    return load_tags(ET.parse(path))