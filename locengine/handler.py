"""Turn interface requests from the location daemon into engine requests."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from locengine.message import (
    IPV6_ADDR_SIZE,
    CtrlMessage,
    IfRequestSenderId,
    IfRequestType,
)

log = logging.getLogger(__name__)


class AgpsType(enum.Enum):
    """Kind of assisted-GPS data connection the engine is asked to manage."""

    SUPL = "supl"
    WIFI = "wifi"
    ANY = "any"


@dataclass(frozen=True)
class WifiRequest:
    """Request (or release) of a Wi-Fi connection on behalf of a sender."""

    agps_type: AgpsType
    sender_id: IfRequestSenderId
    ssid: str
    password: str
    is_request: bool


@dataclass(frozen=True)
class BitRequest:
    """Request (or release) of a data connection for the daemon's BIT link."""

    agps_type: AgpsType
    ipv4_addr: int
    ipv6_addr: bytes
    is_request: bool


EngineRequest = Union[WifiRequest, BitRequest]
Sender = Callable[[EngineRequest], None]

_AGPS_TYPES = {
    IfRequestType.SUPL: AgpsType.SUPL,
    IfRequestType.WIFI: AgpsType.WIFI,
    IfRequestType.ANY: AgpsType.ANY,
}

_WIFI_SENDERS = frozenset({
    IfRequestSenderId.QUIPC,
    IfRequestSenderId.MSAPM,
    IfRequestSenderId.MSAPU,
})


def _build(message: CtrlMessage, is_request: bool) -> EngineRequest:
    request = message.if_request
    if request is None:
        raise ValueError("message carries no interface request")

    agps_type = _AGPS_TYPES.get(request.request_type)
    if agps_type is None:
        log.debug("invalid IF_REQUEST_TYPE!")
        raise ValueError(f"invalid interface request type: {request.request_type}")
    log.debug("IF_REQUEST_TYPE_%s", agps_type.name)

    sender = request.sender_id
    if sender in _WIFI_SENDERS:
        sender_id = IfRequestSenderId(sender)
        log.debug("IF_REQUEST_SENDER_ID_%s", sender_id.name)
        return WifiRequest(agps_type, sender_id, request.ssid,
                           request.password, is_request)
    if sender == IfRequestSenderId.GPSONE_DAEMON:
        log.debug("IF_REQUEST_SENDER_ID_GPSONE_DAEMON")
        ipv6 = bytes(request.ipv6_addr)[:IPV6_ADDR_SIZE]
        return BitRequest(agps_type, request.ipv4_addr, ipv6, is_request)
    log.debug("invalid IF_REQUEST_SENDER_ID!")
    raise ValueError(f"invalid interface request sender: {sender}")


def _dispatch(message: CtrlMessage, send: Optional[Sender],
              is_request: bool) -> EngineRequest:
    if send is None:
        log.error("NO agps data handle")
        raise RuntimeError("no engine to send the request to")
    engine_request = _build(message, is_request)
    send(engine_request)
    return engine_request


def handle_if_request(message: CtrlMessage, send: Optional[Sender]) -> EngineRequest:
    """Ask the engine to bring up the interface described by message.

    The engine request is passed to send and also returned. Raises
    RuntimeError without an engine and ValueError for an unknown type or sender.
    """
    return _dispatch(message, send, True)


def handle_if_release(message: CtrlMessage, send: Optional[Sender]) -> EngineRequest:
    """Ask the engine to release the interface described by message."""
    return _dispatch(message, send, False)