"""Control messages exchanged with the location daemon over a named pipe."""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass, field
from typing import Optional, Type, TypeVar, Union

from locengine.pipe import (
    PathType,
    pipe_get,
    pipe_read,
    pipe_remove,
    pipe_unblock,
    pipe_write,
)

log = logging.getLogger(__name__)

SSID_BUF_SIZE = 32 + 1
IPV6_ADDR_SIZE = 16
FLUSH_CHUNK = 128

# Native layout, shared with the daemon on the same machine.
_SIZE_FIELD = struct.Struct("@N")
_HEADER = struct.Struct("@NHIB0L")
_IF_REQUEST = struct.Struct(f"@iiL{IPV6_ADDR_SIZE}s{SSID_BUF_SIZE}s{SSID_BUF_SIZE}s0L")
_INT = struct.Struct("@i")
_ULONG_BITS = 8 * struct.calcsize("@L")

MESSAGE_SIZE = _HEADER.size + _IF_REQUEST.size


class CtrlType(enum.IntEnum):
    """Kind of control message; values below 0xF0 belong to the daemon."""

    IF_REQUEST = 0xF0
    IF_RELEASE = 0xF1
    RESPONSE = 0xF2
    UNBLOCK = 0xF3


class ResponseResult(enum.IntEnum):
    """Result carried by a RESPONSE message."""

    IF_REQUEST_SUCCESS = 0xF0
    IF_RELEASE_SUCCESS = 0xF1
    IF_FAILURE = 0xF2


class IfRequestType(enum.IntEnum):
    """Kind of data connection being requested."""

    SUPL = 0
    WIFI = 1
    ANY = 2


class IfRequestSenderId(enum.IntEnum):
    """Component that sent the interface request."""

    QUIPC = 0
    MSAPM = 1
    MSAPU = 2
    GPSONE_DAEMON = 3
    MODEM = 4


_E = TypeVar("_E", bound=enum.IntEnum)


def _enum_or_int(kind: Type[_E], value: int) -> Union[_E, int]:
    try:
        return kind(value)
    except ValueError:
        return value


def _encode_cstr(name: str, text: str) -> bytes:
    raw = text.encode("utf-8")
    if len(raw) >= SSID_BUF_SIZE:
        raise ValueError(f"{name} is longer than {SSID_BUF_SIZE - 1} bytes")
    return raw


def _decode_cstr(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


@dataclass
class IfRequest:
    """Request to bring a data interface up or down."""

    request_type: Union[IfRequestType, int] = IfRequestType.SUPL
    sender_id: Union[IfRequestSenderId, int] = IfRequestSenderId.QUIPC
    ipv4_addr: int = 0
    ipv6_addr: bytes = bytes(IPV6_ADDR_SIZE)
    ssid: str = ""
    password: str = field(default_factory=str)

    def _pack(self) -> bytes:
        if len(self.ipv6_addr) != IPV6_ADDR_SIZE:
            raise ValueError(f"ipv6_addr must be {IPV6_ADDR_SIZE} bytes")
        if not 0 <= self.ipv4_addr < 1 << _ULONG_BITS:
            raise ValueError(f"ipv4_addr out of range: {self.ipv4_addr}")
        return _IF_REQUEST.pack(
            int(self.request_type),
            int(self.sender_id),
            self.ipv4_addr,
            bytes(self.ipv6_addr),
            _encode_cstr("ssid", self.ssid),
            _encode_cstr("password", self.password),
        )

    @classmethod
    def _unpack(cls, data: bytes) -> "IfRequest":
        req_type, sender, ipv4, ipv6, ssid, credential = _IF_REQUEST.unpack_from(data)
        return cls(
            request_type=_enum_or_int(IfRequestType, req_type),
            sender_id=_enum_or_int(IfRequestSenderId, sender),
            ipv4_addr=ipv4,
            ipv6_addr=ipv6,
            ssid=_decode_cstr(ssid),
            password=_decode_cstr(credential),
        )


@dataclass
class CtrlMessage:
    """A control message.

    if_request is set for IF_REQUEST and IF_RELEASE messages; result holds
    the response code of a RESPONSE or the reserved word of an UNBLOCK.
    """

    ctrl_type: Union[CtrlType, int]
    if_request: Optional[IfRequest] = None
    result: int = 0
    reserved1: int = 0
    reserved2: int = 0

    def pack(self) -> bytes:
        """Encode the message; its leading size field holds its own length."""
        if self.if_request is not None:
            union = self.if_request._pack()
        else:
            union = _INT.pack(self.result).ljust(_IF_REQUEST.size, b"\0")
        header = _HEADER.pack(MESSAGE_SIZE, self.reserved1, self.reserved2,
                              int(self.ctrl_type))
        return header + union

    @classmethod
    def unpack(cls, data: bytes) -> "CtrlMessage":
        """Decode a message; a short message is padded with zero bytes."""
        if len(data) < _SIZE_FIELD.size:
            raise ValueError(f"message too short: {len(data)} bytes")
        data = bytes(data[:MESSAGE_SIZE]).ljust(MESSAGE_SIZE, b"\0")
        _size, reserved1, reserved2, raw_type = _HEADER.unpack_from(data)
        union = data[_HEADER.size:]
        ctrl_type = _enum_or_int(CtrlType, raw_type)
        if ctrl_type in (CtrlType.IF_REQUEST, CtrlType.IF_RELEASE):
            return cls(ctrl_type, if_request=IfRequest._unpack(union),
                       reserved1=reserved1, reserved2=reserved2)
        (result,) = _INT.unpack_from(union)
        return cls(ctrl_type, result=result, reserved1=reserved1, reserved2=reserved2)


def msg_get(q_path: PathType, mode: int) -> int:
    """Open (creating if needed) the message queue at q_path."""
    return pipe_get(q_path, mode)


def msg_remove(q_path: Optional[PathType], fd: int) -> None:
    """Close the queue and remove it from the file system."""
    pipe_remove(q_path, fd)


def msg_send(fd: int, message: CtrlMessage) -> int:
    """Send one message and return the number of bytes written."""
    data = message.pack()
    written = pipe_write(fd, data)
    if written != len(data):
        log.error("pipe broken %d, msgsz = %d", written, len(data))
        raise BrokenPipeError(f"wrote {written} of {len(data)} bytes")
    return written


def msg_receive(fd: int, bufsize: int = MESSAGE_SIZE) -> CtrlMessage:
    """Receive one message whose size may not exceed bufsize."""
    header = pipe_read(fd, _SIZE_FIELD.size)
    if len(header) != _SIZE_FIELD.size:
        log.error("pipe broken %d", len(header))
        raise BrokenPipeError(f"read {len(header)} bytes of the size field")
    (msgsz,) = _SIZE_FIELD.unpack(header)
    if bufsize < msgsz:
        log.error("msgbuf is too small %d < %d", bufsize, msgsz)
        raise ValueError(f"buffer of {bufsize} bytes is too small for {msgsz}")
    if msgsz < _SIZE_FIELD.size:
        raise ValueError(f"invalid message size {msgsz}")
    expected = msgsz - _SIZE_FIELD.size
    body = pipe_read(fd, expected) if expected else b""
    if len(body) != expected:
        log.error("pipe broken %d, msgsz = %d", len(body), msgsz)
        raise BrokenPipeError(f"read {len(body)} of {expected} body bytes")
    return CtrlMessage.unpack(header + body)


def msg_flush(fd: int) -> int:
    """Discard everything waiting in the queue and return the bytes discarded."""
    total = 0
    while True:
        try:
            chunk = pipe_read(fd, FLUSH_CHUNK)
        except BlockingIOError:
            break
        if not chunk:
            break
        log.debug("flushed %r", chunk)
        total += len(chunk)
    return total


def msg_unblock(fd: int) -> None:
    """Unblock the queue."""
    pipe_unblock(fd)