"""Client for reading controller attributes over an EtherNet/IP connection."""

from __future__ import annotations

import io
import logging
import random
import socket
import struct
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from .cip import CIPAttribute, CIPClass, CIPInstance, CipObject, status_text
from .connection import (
    CONN_SIZE_LARGE_DEFAULT,
    CONN_SIZE_STANDARD_DEFAULT,
    CONN_SIZE_STANDARD_MAX,
    PORT_DEFAULT,
    RPI_DEFAULT,
    SOCKET_TIMEOUT_DEFAULT,
    VENDOR_ID_DEFAULT,
    CIPService,
    EIPCommand,
    EIPHeader,
    ForwardOpenReply,
    build_forward_open,
    build_register_session,
    parse_response,
)
from .errors import CIPError
from .ioi import IOIBuilder, TagIOI
from .items import CIPItem, CIPItemID, new_item, read_items, serialize_items

logger = logging.getLogger(__name__)

# Backplane port 1, slot 0.
DEFAULT_PATH = b"\x01\x00"

CIP_TYPE_STRUCT = 0xA0
CIP_TYPE_STRING = 0xD0

_CONNECTED_REQUEST = struct.Struct("<HBB")
_RESULT_HEADER_SIZE = 6
_FORWARD_CLOSE = struct.Struct("<BBBBBBBBHHIBB")
_PROP_LIST_FORMAT = "HHHHHHHHIHHIHHI"


class _Counter:
    """A thread-safe wrapping 32-bit counter."""

    def __init__(self, start: int = 0) -> None:
        self._value = start & 0xFFFFFFFF
        self._lock = threading.Lock()

    def add(self, amount: int = 1) -> int:
        with self._lock:
            self._value = (self._value + amount) & 0xFFFFFFFF
            return self._value


# Every tag request needs a fresh sequence number or the controller repeats its last answer.
_SEQUENCER = _Counter(random.getrandbits(32))


class ResponseStatusError(Exception):
    """A connected reply carried a non-zero status; the reply item is attached."""

    def __init__(self, message: str, status: int, item: CIPItem) -> None:
        super().__init__(message)
        self.status = status
        self.item = item


@dataclass
class Controller:
    """Where the controller lives and the route to it."""

    ip_address: str = ""
    port: int = PORT_DEFAULT
    vendor_id: int = VENDOR_ID_DEFAULT
    path: bytes = DEFAULT_PATH


@dataclass
class KnownProgram:
    """A program in the controller, addressed by its instance id."""

    name: str
    instance: int

    def encode(self) -> bytes:
        return CipObject.PROGRAMS.encode() + CIPInstance(self.instance).encode()


@dataclass
class KnownTag:
    """A tag found in the controller, addressed by its symbol instance."""

    name: str
    instance: int
    tag_type: int = 0
    array_order: list[int] = field(default_factory=list)
    udt: Any = None
    parent: Optional[KnownProgram] = None
    data_table_id: int = 0

    def encode(self) -> bytes:
        prefix = self.parent.encode() if self.parent is not None else b""
        return prefix + CipObject.SYMBOL.encode() + CIPInstance(self.instance).encode()


@dataclass
class ControllerPropList:
    """Controller info attributes 1, 2, 3, 4 and 10, which change when the project does."""

    attr1_id: int
    attr1_status: int
    attr1: int
    attr2_id: int
    attr2_status: int
    attr2: int
    attr3_id: int
    attr3_status: int
    attr3: int
    attr4_id: int
    attr4_status: int
    attr4: int
    attr5_id: int
    attr5_status: int
    attr5: int

    @classmethod
    def decode(cls, item: CIPItem) -> "ControllerPropList":
        return cls(*item.deserialize(_PROP_LIST_FORMAT))

    def match(self, other: "ControllerPropList") -> bool:
        """Whether the values and statuses of every attribute agree."""
        return all(
            getattr(self, f"attr{n}") == getattr(other, f"attr{n}")
            and getattr(self, f"attr{n}_status") == getattr(other, f"attr{n}_status")
            for n in range(1, 6)
        )


class Client:
    """A connection to one controller for attribute reads and generic messages."""

    def __init__(
        self,
        ip_address: str = "",
        *,
        path: bytes = DEFAULT_PATH,
        port: int = PORT_DEFAULT,
        auto_connect: bool = True,
        connection_size: int = CONN_SIZE_LARGE_DEFAULT,
        socket_timeout: float = SOCKET_TIMEOUT_DEFAULT,
        rpi: float = RPI_DEFAULT,
        vendor_id: int = VENDOR_ID_DEFAULT,
        serial_number: int = 0,
    ) -> None:
        self.controller = Controller(ip_address=ip_address, port=port, path=bytes(path))
        self.serial_number = serial_number
        self.vendor_id = vendor_id
        self.socket_timeout = socket_timeout
        self.auto_connect = auto_connect
        self.keep_alive_auto_start = False
        self.keep_alive_props: list[int] = [1, 2, 3, 4, 10]
        self.keep_alive_frequency = 30.0
        self.rpi = rpi
        self.connection_size = connection_size
        self.known_tags: dict[str, KnownTag] = {}
        self.known_types: dict[str, Any] = {}
        self.known_programs: dict[str, KnownProgram] = {}
        self.known_firmware = 0
        self.session_handle = 0
        self.ot_network_connection_id = 0
        self.connection_serial_number = 0
        self.context = 0

        self._connected = False
        self._sock: Optional[socket.socket] = None
        self._sequence = _Counter()
        self._state_lock = threading.RLock()
        self._io_lock = threading.Lock()
        self._keep_alive_running = False
        self._cancel_keep_alive: Optional[threading.Event] = None
        self._ioi = IOIBuilder(
            resolve=self._resolve_known_tag,
            firmware=self.firmware,
            symbolic_types=(CIP_TYPE_STRUCT, CIP_TYPE_STRING),
        )

    # -- connection management -------------------------------------------------

    def connect(self) -> None:
        """Open the socket, register a session and open a CIP connection."""
        with self._state_lock:
            if self._connected:
                return
            if not self.connection_size:
                self.connection_size = CONN_SIZE_LARGE_DEFAULT
            if not self.controller.port:
                self.controller.port = PORT_DEFAULT
            if not self.controller.vendor_id:
                self.controller.vendor_id = VENDOR_ID_DEFAULT
            if not self.socket_timeout:
                self.socket_timeout = SOCKET_TIMEOUT_DEFAULT
            if not self.rpi:
                self.rpi = RPI_DEFAULT
            if self.controller.path is None:
                self.controller.path = DEFAULT_PATH
            self._sequence.add(int(time.time() * 1000))

            address = (self.controller.ip_address, self.controller.port)
            try:
                self._sock = socket.create_connection(address, timeout=self.socket_timeout)
            except OSError as exc:
                logger.error("cannot connect to controller %s: %s", address, exc)
                raise ConnectionError(f"cannot connect to controller: {exc}") from exc

            try:
                self._register_session()
                if self.connection_size > CONN_SIZE_STANDARD_MAX:
                    try:
                        self._forward_open(large=True)
                    except (CIPError, OSError, EOFError, ValueError, struct.error) as exc:
                        logger.warning(
                            "large forward open failed. falling back to standard forward open: %s",
                            exc,
                        )
                        self.connection_size = CONN_SIZE_STANDARD_DEFAULT
                if self.connection_size <= CONN_SIZE_STANDARD_MAX:
                    self._forward_open(large=False)
            except Exception:
                self._close_socket()
                raise
            self._connected = True

        if self.keep_alive_auto_start:
            threading.Thread(target=self.keep_alive, daemon=True).start()

    def connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        """Close the CIP connection and the socket; errors on the way are logged."""
        with self._state_lock:
            if not self._connected:
                return
            self._connected = False
            logger.info("starting disconnection")
            if self._keep_alive_running and self._cancel_keep_alive is not None:
                self._cancel_keep_alive.set()

            try:
                path = self._message_router_path()
                request = CIPItem(item_id=CIPItemID.UNCONNECTED_DATA)
                request.write(
                    _FORWARD_CLOSE.pack(
                        CIPService.FORWARD_CLOSE,
                        0x02,
                        0x20,
                        CipObject.CONNECTION_MANAGER,
                        0x24,
                        0x01,
                        0x0A,
                        0x0E,
                        self.connection_serial_number & 0xFFFF,
                        self.vendor_id,
                        self.serial_number,
                        len(path) // 2,
                        0x00,
                    )
                )
                request.write(path)
                payload = serialize_items([CIPItem(), request])
                header, data = self._send_recv(EIPCommand.SEND_RR_DATA, payload)
                parse_response(header, data)
            except (CIPError, OSError, EOFError, ValueError, struct.error) as exc:
                logger.error("error during disconnect request: %s", exc)

            self._close_socket()
            logger.info("successfully disconnected from controller")

    def keep_alive(self) -> None:
        """Poll the controller info attributes until cancelled or the connection drops."""
        if not self.keep_alive_auto_start or not self.socket_timeout:
            return
        if self._keep_alive_running:
            logger.warning("keepalive already running")
        cancel = threading.Event()
        self._cancel_keep_alive = cancel
        self._keep_alive_running = True
        try:
            try:
                original = self.get_attr_list(
                    CipObject.CONTROLLER_INFO, 1, *self.keep_alive_props
                ).rest()
            except Exception as exc:
                logger.error("initial keep alive property get failed: %s", exc)
                return
            while not cancel.wait(self.keep_alive_frequency):
                if not self._connected:
                    logger.warning("keepalive failed. not connected")
                    return
                try:
                    current = self.get_attr_list(
                        CipObject.CONTROLLER_INFO, 1, *self.keep_alive_props
                    ).rest()
                except Exception as exc:
                    logger.error("keepalive failed: %s", exc)
                    self.disconnect()
                    return
                if current != original:
                    logger.info("controller change detected.")
                    original = current
            self.keep_alive_auto_start = False
        finally:
            self._keep_alive_running = False

    def keep_alive_cancel(self, force: bool = False) -> None:
        """Stop the keepalive; refused while auto start is on unless forced."""
        if self.keep_alive_auto_start and not force:
            raise RuntimeError("unable to cancel keepalive due to keep_alive_auto_start")
        if self._cancel_keep_alive is None:
            raise RuntimeError("keepalive is not running")
        self._cancel_keep_alive.set()

    def __enter__(self) -> "Client":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    # -- controller information -----------------------------------------------

    def firmware(self) -> int:
        """Major firmware revision of the controller, or 0 if it cannot be read."""
        if self.known_firmware:
            return self.known_firmware
        try:
            item = self.get_attr_single(CipObject.IDENTITY, 1, 4)
            major = item.byte()
        except Exception:
            return 0
        logger.debug("controller firmware major version: %d", major)
        self.known_firmware = major
        return major

    def new_ioi(self, tagpath: str, datatype: object = None) -> TagIOI:
        """Request path for a tag, using a known symbol instance when possible."""
        return self._ioi.build(tagpath, datatype)

    def get_attr_single(self, cip_class: int, instance: int, attr: int) -> CIPItem:
        """Get one attribute; the item is left positioned at the attribute data."""
        try:
            self._check_connection()
        except ConnectionError as exc:
            raise ConnectionError(f"could not start single read: {exc}") from exc
        path = (
            CIPClass(int(cip_class)).encode()
            + CIPInstance(int(instance)).encode()
            + CIPAttribute(int(attr)).encode()
        )
        item = self._unit_request(
            _SEQUENCER.add(), CIPService.GET_ATTRIBUTE_SINGLE, path
        )
        item.deserialize("HBBH")
        return item

    def get_attr_list(self, cip_class: int, instance: int, *args: int) -> CIPItem:
        """Get several attributes; the item is left just past the attribute count.

        The data then holds id, status and value for each attribute in turn.
        """
        self._check_connection()
        path = CIPClass(int(cip_class)).encode() + CIPInstance(int(instance)).encode()
        body = struct.pack("<H", len(args)) + b"".join(
            struct.pack("<H", int(attr)) for attr in args
        )
        item = self._unit_request(
            self._sequence.add(), CIPService.GET_ATTRIBUTE_LIST, path, body
        )
        _seq, _service, _pad, status = item.deserialize("HBBH")
        if status:
            raise ResponseStatusError(
                f"response header has status 0x{status:X} ({status_text(status)})",
                status,
                item,
            )
        item.int16()
        return item

    def get_controller_prop_list(self) -> ControllerPropList:
        """Read the controller info attributes that reveal project changes."""
        item = self.get_attr_list(CipObject.CONTROLLER_INFO, 1, 1, 2, 3, 4, 10)
        try:
            result = ControllerPropList.decode(item)
        except EOFError as exc:
            raise EOFError(f"couldn't read data. {exc}") from exc
        logger.debug("controller prop list: %s", result)
        return result

    def generic_cip_message(self, service: int, path: bytes, msg_data: bytes = b"") -> CIPItem:
        """Send any service to an encoded path; the item is left at the reply data."""
        self._check_connection()
        service = CIPService(int(service))
        item = self._unit_request(_SEQUENCER.add(), service, bytes(path), bytes(msg_data))
        item.int16()
        reply_service = CIPService(item.int16() & 0xFF).unresponse()
        if reply_service != service:
            raise ValueError(
                f"expected service response 0x{int(service):X} but got 0x{int(reply_service):X}"
            )
        status = item.int16()
        if status:
            raise ResponseStatusError(
                f"got status of 0x{status & 0xFFFF:X} instead of 0", status & 0xFFFF, item
            )
        return item

    # -- internals -------------------------------------------------------------

    def _resolve_known_tag(self, key: str) -> Optional[bytes]:
        tag = self.known_tags.get(key)
        if tag is None or not tag.tag_type:
            return None
        return tag.encode()

    def _check_connection(self) -> None:
        if self._connected:
            return
        if not self.auto_connect:
            raise ConnectionError("not connected and auto_connect not enabled")
        try:
            self.connect()
        except Exception as exc:
            raise ConnectionError(f"not connected and connect attempt failed: {exc}") from exc

    def _message_router_path(self) -> bytes:
        return (
            bytes(self.controller.path)
            + CipObject.MESSAGE_ROUTER.encode()
            + CIPInstance(1).encode()
        )

    def _close_socket(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError as exc:
                logger.error("error closing connection: %s", exc)
            self._sock = None

    def _recv_exact(self, size: int) -> bytes:
        chunks = bytearray()
        while len(chunks) < size:
            chunk = self._sock.recv(size - len(chunks))
            if not chunk:
                raise ConnectionError("connection closed by controller")
            chunks += chunk
        return bytes(chunks)

    def _send_recv(self, command: int, payload: bytes) -> tuple[EIPHeader, io.BytesIO]:
        if self._sock is None:
            raise ConnectionError("no open socket to the controller")
        header = EIPHeader(command, len(payload), self.session_handle, 0, self.context, 0)
        with self._io_lock:
            try:
                self._sock.sendall(header.encode() + payload)
                reply = EIPHeader.decode(self._recv_exact(EIPHeader.SIZE))
                body = self._recv_exact(reply.length)
            except OSError as exc:
                if isinstance(exc, ConnectionError):
                    raise
                raise ConnectionError(f"problem talking to controller: {exc}") from exc
        return reply, io.BytesIO(body)

    def _register_session(self) -> None:
        try:
            header, _ = self._send_recv(EIPCommand.REGISTER_SESSION, build_register_session())
        except (OSError, ValueError) as exc:
            logger.error("cannot get connect response: %s", exc)
            raise ConnectionError(f"cannot get connect response: {exc}") from exc
        self.session_handle = header.session_handle
        logger.info("session connected: 0x%X", self.session_handle)

    def _forward_open(self, large: bool) -> None:
        if not large and self.connection_size > CONN_SIZE_STANDARD_MAX:
            logger.warning("connection size too large. resetting to max size")
            self.connection_size = CONN_SIZE_STANDARD_MAX
        self.connection_serial_number = self._sequence.add() & 0xFFFF
        request = build_forward_open(
            self._message_router_path(),
            self.connection_size,
            self.connection_serial_number,
            self._sequence.add(),
            self._sequence.add(),
            self.vendor_id,
            self.serial_number,
            int(self.rpi * 1_000_000),
            large,
        )
        payload = serialize_items([CIPItem(), request])
        header, data = self._send_recv(EIPCommand.SEND_RR_DATA, payload)
        items = parse_response(header, data)
        reply = ForwardOpenReply.decode(items[1])
        self.ot_network_connection_id = reply.ot_network_connection_id
        logger.info(
            "successfully opened connection: size %d, id 0x%X",
            self.connection_size,
            self.ot_network_connection_id,
        )

    def _unit_request(
        self, sequence: int, service: int, path: bytes, body: bytes = b""
    ) -> CIPItem:
        if len(path) // 2 > 0xFF:
            raise ValueError("request path is too long")
        request = new_item(
            CIPItemID.CONNECTED_DATA,
            _CONNECTED_REQUEST.pack(sequence & 0xFFFF, int(service), len(path) // 2),
        )
        request.write(path)
        request.write(body)
        address = new_item(
            CIPItemID.CONNECTION_ADDRESS, struct.pack("<I", self.ot_network_connection_id)
        )
        _header, data = self._send_recv(
            EIPCommand.SEND_UNIT_DATA, serialize_items([address, request])
        )
        if len(data.read(_RESULT_HEADER_SIZE)) != _RESULT_HEADER_SIZE:
            raise EOFError("problem reading read result header")
        items = read_items(data)
        if len(items) < 2:
            raise ValueError(f"expected 2 items in reply, got {len(items)}")
        return items[1]