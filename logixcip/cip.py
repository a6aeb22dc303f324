"""CIP path segments, well-known object classes and general status codes."""

from __future__ import annotations

import enum
import struct
from typing import Protocol


class _Readable(Protocol):
    def read(self, size: int) -> bytes: ...


class _ClassSize(enum.IntEnum):
    BITS_8 = 0x20
    BITS_16 = 0x21


class _InstanceSize(enum.IntEnum):
    BITS_8 = 0x24
    BITS_16 = 0x25
    BITS_32 = 0x26


class _ElementSize(enum.IntEnum):
    BITS_8 = 0x28
    BITS_16 = 0x29
    BITS_32 = 0x2A


class _AttributeSize(enum.IntEnum):
    BITS_8 = 0x30
    BITS_16 = 0x31


def _take(stream: _Readable, size: int) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        raise EOFError(f"expected {size} bytes of segment data")
    return bytes(data)


def _read_marker(stream: _Readable) -> int:
    return _take(stream, 1)[0]


def _read_padded_uint16(stream: _Readable) -> int:
    _take(stream, 1)
    return struct.unpack("<H", _take(stream, 2))[0]


def _read_padded_uint32(stream: _Readable) -> int:
    _take(stream, 1)
    return struct.unpack("<I", _take(stream, 4))[0]


class _PathSegment(int):
    """An unsigned integer limited to the range its segment can carry."""

    _max = 0xFFFF

    def __new__(cls, value=0):
        number = int.__new__(cls, value)
        if not 0 <= int(number) <= cls._max:
            raise ValueError(
                f"{cls.__name__} value {int(number)} is outside 0..{cls._max}"
            )
        return number


class CIPClass(_PathSegment):
    """A CIP object class id, encoded as a class logical segment."""

    _max = 0xFFFF

    def encode(self) -> bytes:
        """Encode as a class logical segment."""
        value = int(self)
        if value < 256:
            return bytes((_ClassSize.BITS_8, value))
        return bytes((_ClassSize.BITS_16, 0)) + struct.pack("<H", value)

    def encoded_len(self) -> int:
        """Number of bytes the encoded segment occupies."""
        return 2 if int(self) < 256 else 4

    @classmethod
    def read(cls, stream: _Readable) -> "CIPClass":
        """Decode a class segment from a stream."""
        marker = _read_marker(stream)
        if marker == _ClassSize.BITS_8:
            return cls(_take(stream, 1)[0])
        if marker == _ClassSize.BITS_16:
            return cls(_read_padded_uint16(stream))
        raise ValueError(f"expected 0x20 or 0x21 but got class size of {marker:x}")


class CIPInstance(_PathSegment):
    """A CIP instance id, encoded as an instance logical segment."""

    _max = 0xFFFFFFFF

    def encode(self) -> bytes:
        """Encode as an instance logical segment."""
        value = int(self)
        if value < 256:
            return bytes((_InstanceSize.BITS_8, value))
        if value <= 0xFFFF:
            return bytes((_InstanceSize.BITS_16, 0)) + struct.pack("<H", value)
        return bytes((_InstanceSize.BITS_32, 0)) + struct.pack("<I", value)

    def encoded_len(self) -> int:
        """Number of bytes the encoded segment occupies."""
        value = int(self)
        if value < 256:
            return 2
        if value <= 0xFFFF:
            return 4
        return 6

    @classmethod
    def read(cls, stream: _Readable) -> "CIPInstance":
        """Decode an instance segment from a stream."""
        marker = _read_marker(stream)
        if marker == _InstanceSize.BITS_8:
            return cls(_take(stream, 1)[0])
        if marker == _InstanceSize.BITS_16:
            return cls(_read_padded_uint16(stream))
        if marker == _InstanceSize.BITS_32:
            return cls(_read_padded_uint32(stream))
        raise ValueError(
            f"expected 0x24, 0x25 or 0x26 but got instance size of {marker:x}"
        )


class CIPAttribute(_PathSegment):
    """A CIP attribute id, encoded as an attribute logical segment."""

    _max = 0xFFFF

    def encode(self) -> bytes:
        """Encode as an attribute logical segment."""
        value = int(self)
        if value < 256:
            return bytes((_AttributeSize.BITS_8, value))
        return bytes((_AttributeSize.BITS_16, 0)) + struct.pack("<H", value)

    def encoded_len(self) -> int:
        """Number of bytes the encoded segment occupies."""
        return 2 if int(self) < 256 else 4

    @classmethod
    def read(cls, stream: _Readable) -> "CIPAttribute":
        """Decode an attribute segment from a stream."""
        marker = _read_marker(stream)
        if marker == _AttributeSize.BITS_8:
            return cls(_take(stream, 1)[0])
        if marker == _AttributeSize.BITS_16:
            return cls(_read_padded_uint16(stream))
        raise ValueError(
            f"expected 0x30 or 0x31 but got attribute size of {marker:x}"
        )


class CIPElement(_PathSegment):
    """An array element index, encoded as an element logical segment."""

    _max = 0xFFFFFFFF

    def encode(self) -> bytes:
        """Encode as an element logical segment."""
        value = int(self)
        if value < 256:
            return bytes((_ElementSize.BITS_8, value))
        if value < 65536:
            return bytes((_ElementSize.BITS_16, 0)) + struct.pack("<H", value)
        return bytes((_ElementSize.BITS_32, 0)) + struct.pack("<I", value)

    def encoded_len(self) -> int:
        """Number of bytes the encoded segment occupies."""
        value = int(self)
        if value < 256:
            return 2
        if value < 65536:
            return 4
        return 6


class CipObject(CIPClass, enum.Enum):
    """Well-known CIP object classes."""

    IDENTITY = 0x01
    MESSAGE_ROUTER = 0x02
    DEVICE_NET = 0x03
    ASSEMBLY = 0x04
    CONNECTION = 0x05
    CONNECTION_MANAGER = 0x06
    REGISTER = 0x07
    DISCRETE_INPUT_POINT = 0x08
    DISCRETE_OUTPUT_POINT = 0x09
    ANALOG_INPUT_POINT = 0x0A
    ANALOG_OUTPUT_POINT = 0x0B
    PRESENCE_SENSING = 0x0E
    PARAMETER = 0x0F
    PARAMETER_GROUP = 0x10
    GROUP = 0x12
    DISCRETE_INPUT_GROUP = 0x1D
    DISCRETE_OUTPUT_GROUP = 0x1E
    DISCRETE_GROUP = 0x1F
    ANALOG_INPUT_GROUP = 0x20
    ANALOG_OUTPUT_GROUP = 0x21
    ANALOG_GROUP = 0x22
    POSITION_SENSOR = 0x23
    POSITION_CONTROL_SUPERVISOR = 0x24
    POSITION_CONTROLLER = 0x25
    BLOCK_SEQUENCER = 0x26
    COMMAND_BLOCK = 0x27
    MOTOR_DATA = 0x28
    CONTROL_SUPERVISOR = 0x29
    DRIVE = 0x2A
    ACK_HANDLER = 0x2B
    OVERLOAD = 0x2C
    SOFT_START = 0x2D
    SELECTION = 0x2E
    S_DEVICE_SUPERVISOR = 0x30
    S_ANALOG_SENSOR = 0x31
    S_ANALOG_ACTUATOR = 0x32
    S_SINGLE_STAGE_CONTROLLER = 0x33
    S_GAS_CALIBRATION = 0x34
    TRIP_POINT = 0x35
    FILE = 0x37
    SYMBOL = 0x6B
    TEMPLATE = 0x6C
    CONNECTION_CONFIG = 0xF3
    ORIGINATOR_CONN_LIST = 0x45
    PORT = 0xF4
    BASE_ENERGY = 0x4E
    ELECTRICAL_ENERGY = 0x4F
    EVENT_LOG = 0x41
    MOTION_AXIS = 0x42
    NON_ELECTRICAL_ENERGY = 0x50
    POWER_CURTAILMENT = 0x5C
    POWER_MANAGEMENT = 0x53
    S_PARTIAL_PRESSURE = 0x38
    S_SENSOR_CALIBRATION = 0x40
    SAFETY_ANALOG_INPUT_GROUP = 0x4A
    SAFETY_ANALOG_INPUT_POINT = 0x49
    SAFETY_DUAL_CHANNEL_FEEDBACK = 0x59
    SAFETY_FEEDBACK = 0x5A
    SAFETY_DISCRETE_INPUT_GROUP = 0x3E
    SAFETY_DISCRETE_INPUT_POINT = 0xED
    SAFETY_DISCRETE_OUTPUT_GROUP = 0x3C
    SAFETY_DISCRETE_OUTPUT_POINT = 0x3B
    SAFETY_DUAL_CHANNEL_ANALOG_INPUT = 0x4B
    SAFETY_DUAL_CHANNEL_OUTPUT = 0x3F
    SAFETY_LIMIT_FUNCTIONS = 0x5B
    SAFETY_STOP_FUNCTIONS = 0x5A
    SAFETY_SUPERVISOR = 0x39
    SAFETY_VALIDATOR = 0x3A
    TARGET_CONNECTION_LIST = 0x4D
    TIME_SYNC = 0x43
    BASE_SWITCH = 0x51
    COMPONET_LINK = 0xF7
    COMPONET_REPEATER = 0xF8
    CONTROLNET = 0xF0
    CONTROLNET_KEEPER = 0xF1
    CONTROLNET_SCHEDULING = 0xF2
    DLR = 0x47
    ETHERNET_LINK = 0xF6
    MODBUS = 0x44
    MODBUS_SERIAL = 0x46
    PARALLEL_REDUNDANCY_PROTOCOL = 0x56
    PRP_NODES_TABLE = 0x57
    SERCOS_III_LINK = 0x4C
    SNMP = 0x52
    QOS = 0x48
    RSTP_BRIDGE = 0x54
    RSTP_PORT = 0x55
    TCPIP = 0xF5
    PCCC = 0x67
    IO_CLASS = 0x69
    PROGRAMS = 0x68
    TIME = 0x8B
    CONTROLLER_INFO = 0xAC
    RUN_MODE = 0x8E
    MESSAGES = 0x8D
    DPI_DEVICE = 0x92
    DPI_PARAMS = 0x93
    DPI_FAULT = 0x97


_STATUS_TEXT: dict[int, str] = {
    0x00: "OK",
    0x01: "Connection failure - A connection related service failed along the connection path.",
    0x02: "Resource unavailable - Resources needed for the object to perform the requested service were unavailable",
    0x03: "InvalidParameterValue",
    0x04: "Path segment error - The path segment identifier or the segment syntax was not understood by the processing node.",
    0x05: "Path destination unknown - The path is referencing an object class, instance or structure element that is not known or is not contained in the processing node. Path processing shall stop when a path destination unknown error is encountered",
    0x06: "PartialTransfer",
    0x07: "ConnectionLost",
    0x08: "Service not supported - The requested service was not implemented or was not defined for this Object Class/Instance",
    0x09: "Invalid attribute value - Invalid attribute data detected",
    0x0A: "AttributeListError",
    0x0B: "AlreadyInRequestedMode",
    0x0C: "ObjectStateConflict",
    0x0D: "ObjectAlreadyExists",
    0x0E: "Attribute not settable - A request to modify a non-modifiable attribute was received.",
    0x0F: "PrivilegeViolation",
    0x10: "DeviceStateConflict",
    0x11: "ReplyDataTooLarge",
    0x12: "FragmentationOfMessage",
    0x13: "Not enough data - The service did not supply enough data to perform the specified operation",
    0x14: "Attribute not supported - The attribute specified in the request is not supported",
    0x15: "Too much data - The service supplied more data than was expected",
    0x16: "Object does not exist - The object specified does not exist in the device.",
    0x17: "ServiceFragmentation",
    0x18: "NoStoredAttributeData",
    0x19: "StoreOperationFailure",
    0x1A: "RoutingFailureReqTooLarge",
    0x1B: "RoutingFailureRespTooLarge",
    0x1C: "MissingAttributeListEntry",
    0x1D: "InvalidAttributeValueList",
    0x1E: "EmbeddedServiceError",
    0x1F: "VendorSpecificError",
    0x20: "Invalid parameter - A parameter associated with the request was invalid. This code is used when a parameter does not meet the requirements of this specification and/or the requirements defined in an Application Object Specification",
    0x21: "WriteOnceValueOrMedium",
    0x22: "InvalidReplyReceived",
    0x23: "BufferOverflow",
    0x24: "MessageFormatError",
    0x25: "KeyFailure",
    0x26: "Path size invalid - The size of the path which was sent with the Service Request is either not large enough to allow the Request to be routed to an object or too much routing data was included",
    0x27: "UnexpectedAttribInList",
    0x28: "InvalidMemberID",
    0x29: "MemberNotSettable",
    0x2A: "Group2OnlyServerGeneralFailure",
    0x2B: "UnknownModbusError",
    0x2C: "AttributeNotGettable",
}


def status_text(code: int) -> str:
    """Describe a general CIP status byte; values are truncated to one byte."""
    code = int(code) & 0xFF
    text = _STATUS_TEXT.get(code)
    if text is not None:
        return text
    if 0x2C < code < 0xD0:
        return f"Unknown Error: 0x{code:X} (reserved by CIP for future extensions)"
    return f"Unknown CIPStatus: 0x{code:X} (reserved for object class and service errors)"


class CIPStatus(enum.IntEnum):
    """General status codes returned in CIP responses."""

    OK = 0x00
    CONNECTION_FAILURE = 0x01
    RESOURCE_UNAVAILABLE = 0x02
    INVALID_PARAMETER_VALUE = 0x03
    PATH_SEGMENT_ERROR = 0x04
    PATH_DESTINATION_UNKNOWN = 0x05
    PARTIAL_TRANSFER = 0x06
    CONNECTION_LOST = 0x07
    SERVICE_NOT_SUPPORTED = 0x08
    INVALID_ATTRIBUTE_VALUE = 0x09
    ATTRIBUTE_LIST_ERROR = 0x0A
    ALREADY_IN_REQUESTED_MODE = 0x0B
    OBJECT_STATE_CONFLICT = 0x0C
    OBJECT_ALREADY_EXISTS = 0x0D
    ATTRIBUTE_NOT_SETTABLE = 0x0E
    PRIVILEGE_VIOLATION = 0x0F
    DEVICE_STATE_CONFLICT = 0x10
    REPLY_DATA_TOO_LARGE = 0x11
    FRAGMENTATION_OF_MESSAGE = 0x12
    NOT_ENOUGH_DATA = 0x13
    ATTRIBUTE_NOT_SUPPORTED = 0x14
    TOO_MUCH_DATA = 0x15
    OBJECT_DOES_NOT_EXIST = 0x16
    SERVICE_FRAGMENTATION = 0x17
    NO_STORED_ATTRIBUTE_DATA = 0x18
    STORE_OPERATION_FAILURE = 0x19
    ROUTING_FAILURE_REQ_TOO_LARGE = 0x1A
    ROUTING_FAILURE_RESP_TOO_LARGE = 0x1B
    MISSING_ATTRIBUTE_LIST_ENTRY = 0x1C
    INVALID_ATTRIBUTE_VALUE_LIST = 0x1D
    EMBEDDED_SERVICE_ERROR = 0x1E
    VENDOR_SPECIFIC_ERROR = 0x1F
    INVALID_PARAMETER = 0x20
    WRITE_ONCE_VALUE_OR_MEDIUM = 0x21
    INVALID_REPLY_RECEIVED = 0x22
    BUFFER_OVERFLOW = 0x23
    MESSAGE_FORMAT_ERROR = 0x24
    KEY_FAILURE = 0x25
    PATH_SIZE_INVALID = 0x26
    UNEXPECTED_ATTRIB_IN_LIST = 0x27
    INVALID_MEMBER_ID = 0x28
    MEMBER_NOT_SETTABLE = 0x29
    GROUP2_ONLY_SERVER_GENERAL_FAILURE = 0x2A
    UNKNOWN_MODBUS_ERROR = 0x2B
    ATTRIBUTE_NOT_GETTABLE = 0x2C

    def __str__(self) -> str:
        return status_text(self.value)