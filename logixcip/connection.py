"""Session registration, forward open requests and response parsing."""

from __future__ import annotations

import enum
import io
import logging
import struct
from dataclasses import dataclass
from typing import Protocol, Union

from .cip import CipObject, CIPStatus, status_text
from .errors import CIPError
from .items import CIPItem, CIPItemID, read_items

logger = logging.getLogger(__name__)

CONN_SIZE_LARGE_DEFAULT = 4000
CONN_SIZE_STANDARD_DEFAULT = 511
CONN_SIZE_STANDARD_MAX = 511
PORT_DEFAULT = 44818
VENDOR_ID_DEFAULT = 0x9999
SOCKET_TIMEOUT_DEFAULT = 10.0
RPI_DEFAULT = 2.5

_TRANSPORT_TRIGGER = 0xA3
_REDUNDANT_OWNER = 0  # 0 = not redundant
_CONNECTION_TYPE = 2  # point to point
_PRIORITY = 0  # low
_VARIABLE_SIZE = 1  # variable length


class _Readable(Protocol):
    def read(self, size: int) -> bytes: ...


class CIPService(enum.IntEnum):
    """CIP service codes; any other byte value maps to an unnamed member."""

    GET_ATTRIBUTES_ALL = 0x01
    SET_ATTRIBUTES_ALL = 0x02
    GET_ATTRIBUTE_LIST = 0x03
    SET_ATTRIBUTE_LIST = 0x04
    RESET = 0x05
    START = 0x06
    STOP = 0x07
    CREATE = 0x08
    DELETE = 0x09
    MULTIPLE_SERVICE = 0x0A
    APPLY_ATTRIBUTES = 0x0D
    GET_ATTRIBUTE_SINGLE = 0x0E
    SET_ATTRIBUTE_SINGLE = 0x10
    FIND_NEXT_OBJECT_INSTANCE = 0x11
    RESTORE = 0x15
    SAVE = 0x16
    NO_OPERATION = 0x17
    GET_MEMBER = 0x18
    SET_MEMBER = 0x19
    INSERT_MEMBER = 0x1A
    REMOVE_MEMBER = 0x1B
    GROUP_SYNC = 0x1C
    READ_TAG = 0x4C
    WRITE_TAG = 0x4D
    FORWARD_CLOSE = 0x4E
    READ_TAG_FRAGMENTED = 0x52
    WRITE_TAG_FRAGMENTED = 0x53
    FORWARD_OPEN = 0x54
    GET_INSTANCE_ATTRIBUTE_LIST = 0x55
    LARGE_FORWARD_OPEN = 0x5B

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, int) or not 0 <= value <= 0xFF:
            return None
        member = int.__new__(cls, value)
        member._name_ = f"SERVICE_0x{value:02X}"
        member._value_ = value
        return cls._value2member_map_.setdefault(value, member)

    def response(self) -> "CIPService":
        """The service code a reply to this service carries."""
        return CIPService(int(self) | 0x80)

    def unresponse(self) -> "CIPService":
        """The request service code for a reply code."""
        return CIPService(int(self) & 0x7F)


class EIPCommand(enum.IntEnum):
    """EtherNet/IP encapsulation commands."""

    NOP = 0x0000
    LIST_SERVICES = 0x0004
    LIST_IDENTITY = 0x0063
    LIST_INTERFACES = 0x0064
    REGISTER_SESSION = 0x0065
    UNREGISTER_SESSION = 0x0066
    SEND_RR_DATA = 0x006F
    SEND_UNIT_DATA = 0x0070


_EIP_HEADER = struct.Struct("<HHIIQI")


@dataclass
class EIPHeader:
    """The 24-byte encapsulation header preceding every EtherNet/IP packet."""

    command: int = EIPCommand.NOP
    length: int = 0
    session_handle: int = 0
    status: int = 0
    context: int = 0
    options: int = 0

    SIZE = _EIP_HEADER.size

    def encode(self) -> bytes:
        return _EIP_HEADER.pack(
            int(self.command),
            self.length,
            self.session_handle,
            self.status,
            self.context,
            self.options,
        )

    @classmethod
    def decode(cls, data: bytes) -> "EIPHeader":
        """Decode a header from the first 24 bytes of data."""
        if len(data) < _EIP_HEADER.size:
            raise ValueError(
                f"encapsulation header needs {_EIP_HEADER.size} bytes, got {len(data)}"
            )
        command, length, session, status, context, options = _EIP_HEADER.unpack_from(
            data
        )
        try:
            command = EIPCommand(command)
        except ValueError:
            pass
        return cls(command, length, session, status, context, options)


@dataclass
class ForwardOpenReply:
    """The body of a successful forward open reply."""

    ot_network_connection_id: int
    to_connection_id: int
    connection_serial_number: int
    originator_vendor_id: int
    originator_serial_number: int
    ot_api_ns: int
    to_api_ns: int
    application_reply: int
    reserved: int

    @classmethod
    def decode(cls, item: CIPItem) -> "ForwardOpenReply":
        """Read the reply from the item's current position."""
        return cls(*item.deserialize("IIHHIIIBB"))


def connection_parameters(size: int, large: bool) -> int:
    """Network connection parameters for a point-to-point, variable-size connection."""
    size = int(size)
    if large:
        if not 0 <= size <= 0xFFFF:
            raise ValueError(f"large connection size {size} is outside 0..65535")
        return (
            _REDUNDANT_OWNER << 31
            | _CONNECTION_TYPE << 29
            | _PRIORITY << 26
            | _VARIABLE_SIZE << 25
            | size
        )
    if not 0 <= size <= CONN_SIZE_STANDARD_MAX:
        raise ValueError(
            f"standard connection size {size} is outside 0..{CONN_SIZE_STANDARD_MAX}"
        )
    return (
        _REDUNDANT_OWNER << 15
        | _CONNECTION_TYPE << 13
        | _PRIORITY << 10
        | _VARIABLE_SIZE << 9
        | size
    )


def build_forward_open(
    path: bytes,
    connection_size: int,
    connection_serial: int,
    ot_connection_id: int,
    to_connection_id: int,
    vendor_id: int,
    originator_serial: int,
    rpi_us: int,
    large: bool,
) -> CIPItem:
    """Build the unconnected data item of a (large) forward open request.

    ``path`` is the encoded connection path to the message router.
    """
    path = bytes(path)
    params = connection_parameters(connection_size, large)
    if large:
        service, priority, ticks, multiplier, param_fmt = (
            CIPService.LARGE_FORWARD_OPEN, 0x0A, 0x0E, 0x03, "I",
        )
    else:
        service, priority, ticks, multiplier, param_fmt = (
            CIPService.FORWARD_OPEN, 0x07, 0xE9, 0x00, "H",
        )

    item = CIPItem(item_id=CIPItemID.UNCONNECTED_DATA)
    # Request path to the connection manager, instance 1.
    item.write(struct.pack("<BB", int(service), 0x02))
    item.write(CipObject.CONNECTION_MANAGER.encode())
    item.write(bytes((0x24, 0x01)))
    item.write(
        struct.pack(
            "<BBIIHHIII",
            priority,
            ticks,
            ot_connection_id,
            to_connection_id,
            connection_serial,
            vendor_id,
            originator_serial,
            multiplier,
            rpi_us,
        )
    )
    item.write(struct.pack("<" + param_fmt, params))
    item.write(struct.pack("<I", rpi_us))
    item.write(struct.pack("<" + param_fmt, params))
    item.write(struct.pack("<BB", _TRANSPORT_TRIGGER, len(path) // 2))
    item.write(path)
    return item


def build_register_session() -> bytes:
    """Payload of a register session request: protocol version 1, no options."""
    return struct.pack("<HH", 1, 0)


def parse_response(
    header: EIPHeader, data: Union[bytes, bytearray, _Readable]
) -> list[CIPItem]:
    """Check a SendRRData reply and return its items.

    The second item is left positioned just past the message router
    response header and any extended status.
    """
    if header.status != 0:
        raise ConnectionError(f"forward open failed. status: {header.status}")

    stream = io.BytesIO(bytes(data)) if isinstance(data, (bytes, bytearray)) else data
    pre_item = stream.read(6)
    if pre_item is None or len(pre_item) != 6:
        raise EOFError("problem reading items header from forward open request")

    items = read_items(stream)
    if len(items) < 2:
        raise ValueError(f"expected at least 2 items in response, got {len(items)}")

    reply = items[1]
    _service, _reserved, status, status_len = reply.deserialize("BBBB")
    extended = b""
    if status_len:
        extended = reply.read(status_len * 2)
        if len(extended) != status_len * 2:
            raise EOFError("error deserializing response extended status")

    if status != CIPStatus.OK:
        logger.error("bad status on response: 0x%X (%s)", status, status_text(status))
        ext_code = struct.unpack_from("<H", extended)[0] if len(extended) >= 2 else 0
        raise CIPError(status, ext_code)
    return items