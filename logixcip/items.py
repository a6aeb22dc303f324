"""Common packet format items: containers for request and response data."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import Iterable, Protocol


class _Readable(Protocol):
    def read(self, size: int) -> bytes: ...


class CIPItemID(enum.IntEnum):
    """Type ids of common packet format items."""

    NULL = 0x0000
    LIST_IDENTITY_RESPONSE = 0x000C
    CONNECTION_ADDRESS = 0x00A1
    CONNECTED_DATA = 0x00B1
    UNCONNECTED_DATA = 0x00B2
    LIST_SERVICE_RESPONSE = 0x0100
    SOCK_ADDR_INFO_OT = 0x8000
    SOCK_ADDR_INFO_TO = 0x8001
    SEQUENCE_ADDRESS = 0x8002


class ItemOutOfDataError(EOFError):
    """Raised when more data is requested than an item has left."""


_ITEM_HEADER = struct.Struct("<HH")
_ITEMS_HEADER = struct.Struct("<IHH")
_STRING_PAYLOAD = 84


def _item_id(value: int) -> int:
    try:
        return CIPItemID(value)
    except ValueError:
        return int(value)


@dataclass
class CIPItem:
    """One item's data with a read position; readable and writable like a stream."""

    item_id: int = CIPItemID.NULL
    data: bytearray = field(default_factory=bytearray)
    pos: int = 0

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)
        self.item_id = _item_id(self.item_id)

    @property
    def length(self) -> int:
        """Number of data bytes, as carried in the item header."""
        return len(self.data)

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes from the current position; b"" when exhausted."""
        if size is None or size < 0:
            end = len(self.data)
        else:
            end = min(len(self.data), self.pos + size)
        chunk = bytes(self.data[self.pos:end])
        self.pos = max(self.pos, end)
        return chunk

    def write(self, data: bytes) -> int:
        """Append bytes to the end of the item's data."""
        self.data.extend(data)
        return len(data)

    def rest(self) -> bytes:
        """All bytes not yet read."""
        return bytes(self.data[self.pos:])

    def _unpack(self, fmt: str) -> tuple:
        size = struct.calcsize(fmt)
        if len(self.data) < self.pos + size:
            raise ItemOutOfDataError("item out of data")
        values = struct.unpack_from(fmt, self.data, self.pos)
        self.pos += size
        return values

    def byte(self) -> int:
        return self._unpack("<B")[0]

    def uint16(self) -> int:
        return self._unpack("<H")[0]

    def int16(self) -> int:
        return self._unpack("<h")[0]

    def uint32(self) -> int:
        return self._unpack("<I")[0]

    def int32(self) -> int:
        return self._unpack("<i")[0]

    def uint64(self) -> int:
        return self._unpack("<Q")[0]

    def int64(self) -> int:
        return self._unpack("<q")[0]

    def float32(self) -> float:
        return self._unpack("<f")[0]

    def float64(self) -> float:
        return self._unpack("<d")[0]

    def serialize(self, value) -> None:
        """Append a value's wire form to the data.

        Strings become a 32-bit length and an 84-byte padded payload; bytes are
        appended as they are; other objects must provide ``encode()``.
        """
        if isinstance(value, str):
            raw = value.encode()
            self.write(struct.pack("<I", len(raw)))
            self.write(raw[:_STRING_PAYLOAD].ljust(_STRING_PAYLOAD, b"\x00"))
        elif isinstance(value, (bytes, bytearray, memoryview)):
            self.write(bytes(value))
        elif hasattr(value, "encode"):
            self.write(bytes(value.encode()))
        else:
            raise TypeError(f"cannot serialize value of type {type(value).__name__}")

    def deserialize(self, fmt: str) -> tuple:
        """Unpack a struct format (little endian unless stated) from the current position."""
        if not fmt or fmt[0] not in "<>!=@":
            fmt = "<" + fmt
        return self._unpack(fmt)

    def to_bytes(self) -> bytes:
        """The item header followed by its data."""
        return _ITEM_HEADER.pack(int(self.item_id), len(self.data)) + bytes(self.data)

    def reset(self) -> None:
        """Move the read position back to the start."""
        self.pos = 0


def new_item(item_id: int, value=None) -> CIPItem:
    """Create an item of the given id, serializing value into it if given."""
    item = CIPItem(item_id=item_id)
    if value is not None:
        item.serialize(value)
    return item


def _read_exact(stream: _Readable, size: int, what: str) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        raise EOFError(f"couldn't read {what}")
    return bytes(data)


def read_items(stream: _Readable) -> list[CIPItem]:
    """Read an item count and that many items from a stream positioned at the count."""
    (count,) = struct.unpack("<H", _read_exact(stream, 2, "item count"))
    items = []
    for index in range(count):
        item_id, length = _ITEM_HEADER.unpack(
            _read_exact(stream, _ITEM_HEADER.size, f"item {index} header")
        )
        data = _read_exact(stream, length, f"item {index} data")
        items.append(CIPItem(item_id=item_id, data=bytearray(data)))
    return items


def serialize_items(items: Iterable[CIPItem]) -> bytes:
    """Encode items with the interface handle, sequence counter and count header."""
    items = list(items)
    body = b"".join(item.to_bytes() for item in items)
    return _ITEMS_HEADER.pack(0, 0, len(items)) + body