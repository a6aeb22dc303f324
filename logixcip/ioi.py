"""Tag name parsing and the symbolic request paths (IOIs) that address tags."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from .cip import CIPElement
from .items import CIPItem, ItemOutOfDataError

logger = logging.getLogger(__name__)

SEGMENT_EXTENDED_SYMBOLIC = 0x91
_ELEMENT_8BIT = 0x28
_ELEMENT_16BIT = 0x29

_BIT_ACCESS = re.compile(r"\.([0-9]+)\Z")
_ARRAY_ACCESS = re.compile(r"\[([0-9,\t\n\f\r ]*)\]\Z")
_INTEGER = re.compile(r"[+-]?[0-9]+")


def _atoi(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid integer {text!r}")
    return int(text)


@dataclass
class TagPartDescriptor:
    """A tag name split into its base name, array indices and bit number."""

    full_path: str
    base_path: str
    array_order: Optional[list[int]] = None
    bit_number: int = 0
    bit_access: bool = False


def parse_tag_name(tagpath: str) -> TagPartDescriptor:
    """Split a trailing array index or bit number off a tag name."""
    tag = TagPartDescriptor(full_path=tagpath, base_path=tagpath)

    bit = _BIT_ACCESS.search(tagpath)
    if bit is not None:
        tag.bit_access = True
        tag.base_path = tagpath[: bit.start()]
        tag.bit_number = int(bit.group(1))

    array = _ARRAY_ACCESS.search(tagpath)
    if array is not None:
        text = array.group(1)
        tag.base_path = tagpath[: array.start()]
        try:
            tag.array_order = [_atoi(part) for part in text.split(",")]
        except ValueError as exc:
            raise ValueError(
                f"couldn't parse {text!r} to an array position"
            ) from exc
    return tag


@dataclass
class TagIOI:
    """The request path for one tag, with any bit access noted alongside."""

    path: str = ""
    type: object = None
    bit_access: bool = False
    bit_position: int = 0
    buffer: bytearray = field(default_factory=bytearray)

    def encode(self) -> bytes:
        """The encoded request path."""
        return bytes(self.buffer)


def marshal_ioi_part(tagpath: str) -> bytes:
    """Encode one name as an extended symbolic segment, padded to even length."""
    try:
        tag = parse_tag_name(tagpath)
    except ValueError as exc:
        raise ValueError(f"could not parse tag path: {exc}") from exc
    name = tag.base_path.encode("utf-8")
    if len(name) > 0xFF:
        raise ValueError(f"tag name {tag.base_path!r} is longer than 255 bytes")
    segment = bytes((SEGMENT_EXTENDED_SYMBOLIC, len(name))) + name
    if len(name) % 2:
        segment += b"\x00"
    return segment


class IOIBuilder:
    """Builds and caches request paths for tag names.

    ``resolve`` maps a lower-case tag name to an instance path (or None);
    it is used only when ``firmware()`` reports a major revision above 20
    and the requested data type is known and not in ``symbolic_types``.
    """

    def __init__(
        self,
        resolve: Optional[Callable[[str], Optional[bytes]]] = None,
        firmware: Optional[Callable[[], int]] = None,
        symbolic_types: Iterable[object] = (),
    ) -> None:
        self._resolve = resolve
        self._firmware = firmware
        self._symbolic_types = frozenset(symbolic_types)
        self._cache: dict[str, TagIOI] = {}
        self._lock = threading.Lock()

    def clear_cache(self) -> None:
        """Forget every request path built so far."""
        with self._lock:
            self._cache.clear()

    def _direct_path(self, key: str, datatype: object) -> Optional[bytes]:
        if self._resolve is None:
            return None
        firmware = self._firmware() if self._firmware is not None else 0
        if firmware <= 20:
            return None
        if datatype is None or datatype == 0 or datatype in self._symbolic_types:
            return None
        return self._resolve(key)

    def build(self, tagpath: str, datatype: object = None) -> TagIOI:
        """Return the request path for a tag name; names are case-insensitive."""
        with self._lock:
            key = tagpath.lower()

            direct = self._direct_path(key, datatype)
            if direct is not None:
                return TagIOI(path=key, type=datatype, buffer=bytearray(direct))

            cached = self._cache.get(key)
            if cached is not None:
                return cached

            ioi = TagIOI(path=key, type=datatype)
            for part in key.split("."):
                if part.endswith("]"):
                    start = part.find("[")
                    if start < 0:
                        raise ValueError(f"malformed array access in {part!r}")
                    ioi.buffer += marshal_ioi_part(part[:start])
                    try:
                        order = parse_tag_name(part).array_order or []
                    except ValueError as exc:
                        logger.warning("problem parsing path: %s", exc)
                        order = []
                    for index in order:
                        ioi.buffer += CIPElement(index).encode()
                    continue

                if _INTEGER.fullmatch(part) and int(part) <= 31:
                    # Bit access: the bit is picked out of the word after reading.
                    ioi.bit_access = True
                    ioi.bit_position = int(part)
                    continue
                ioi.buffer += marshal_ioi_part(part)

            self._cache[key] = ioi
            return ioi


def _ascii_part(item: CIPItem) -> str:
    length = item.byte()
    raw = item.read(length)
    if len(raw) != length:
        raise ItemOutOfDataError("problem reading tag path")
    if length % 2:
        item.byte()
    return raw.decode("utf-8", errors="replace")


def _append_index(tag: str, index: int) -> str:
    if tag.endswith("]"):
        return f"{tag[:-1]},{index}]"
    return f"{tag}[{index}]"


def tag_from_path(item: CIPItem) -> str:
    """Decode a symbolic request path back into a tag name.

    Reading stops at the end of the item or at the first byte that does not
    continue the path; that byte is left unread.
    """
    tag = ""
    while True:
        marker = item.read(1)
        if not marker:
            return tag
        code = marker[0]
        if code == _ELEMENT_8BIT:
            tag = _append_index(tag, item.byte())
        elif code == _ELEMENT_16BIT:
            item.byte()
            tag = _append_index(tag, item.uint16())
        elif code == SEGMENT_EXTENDED_SYMBOLIC:
            name = _ascii_part(item)
            tag = name if not tag else f"{tag}.{name}"
        else:
            item.pos -= 1
            return tag