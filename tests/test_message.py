import contextlib
import os
import struct

import pytest

from locengine.message import (
    MESSAGE_SIZE,
    CtrlMessage,
    CtrlType,
    IfRequest,
    IfRequestSenderId,
    IfRequestType,
    ResponseResult,
    msg_flush,
    msg_get,
    msg_receive,
    msg_remove,
    msg_send,
    msg_unblock,
)

SIZE_FIELD = struct.Struct("@N")


@pytest.fixture
def queue(tmp_path):
    path = tmp_path / "queue"
    reader = msg_get(str(path), os.O_RDONLY | os.O_NONBLOCK)
    writer = os.open(path, os.O_WRONLY)
    yield path, reader, writer
    for fd in (reader, writer):
        with contextlib.suppress(OSError):
            os.close(fd)


def _wifi_request():
    password = "password"
    return IfRequest(
        request_type=IfRequestType.WIFI,
        sender_id=IfRequestSenderId.MSAPM,
        ipv4_addr=0x0A000001,
        ipv6_addr=bytes(range(16)),
        ssid="example-net",
        password=password,
    )


def test_if_request_round_trip():
    message = CtrlMessage(CtrlType.IF_REQUEST, if_request=_wifi_request(),
                          reserved1=7, reserved2=9)
    decoded = CtrlMessage.unpack(message.pack())
    assert decoded == message
    assert decoded.if_request.request_type is IfRequestType.WIFI


def test_packed_size_field_matches_length():
    data = CtrlMessage(CtrlType.IF_RELEASE, if_request=IfRequest()).pack()
    assert len(data) == MESSAGE_SIZE
    assert SIZE_FIELD.unpack_from(data)[0] == len(data)


def test_response_round_trip():
    message = CtrlMessage(CtrlType.RESPONSE, result=ResponseResult.IF_FAILURE)
    decoded = CtrlMessage.unpack(message.pack())
    assert decoded.ctrl_type is CtrlType.RESPONSE
    assert decoded.result == ResponseResult.IF_FAILURE
    assert decoded.if_request is None


def test_unknown_values_kept_as_integers():
    request = IfRequest(request_type=2, sender_id=9)
    decoded = CtrlMessage.unpack(CtrlMessage(CtrlType.IF_REQUEST, if_request=request).pack())
    assert decoded.if_request.sender_id == 9
    assert decoded.if_request.request_type is IfRequestType.ANY

    other = CtrlMessage.unpack(CtrlMessage(0x10, result=5).pack())
    assert other.ctrl_type == 0x10
    assert other.result == 5


def test_ssid_too_long_rejected():
    request = IfRequest(ssid="x" * 33)
    with pytest.raises(ValueError):
        CtrlMessage(CtrlType.IF_REQUEST, if_request=request).pack()


def test_ssid_of_32_bytes_fits():
    request = IfRequest(ssid="y" * 32)
    decoded = CtrlMessage.unpack(CtrlMessage(CtrlType.IF_REQUEST, if_request=request).pack())
    assert decoded.if_request.ssid == "y" * 32


def test_bad_ipv6_length_rejected():
    with pytest.raises(ValueError):
        CtrlMessage(CtrlType.IF_REQUEST, if_request=IfRequest(ipv6_addr=b"\x00" * 4)).pack()


def test_unpack_too_short_rejected():
    with pytest.raises(ValueError):
        CtrlMessage.unpack(b"\x01")


def test_send_and_receive_through_queue(queue):
    _path, reader, writer = queue
    message = CtrlMessage(CtrlType.IF_REQUEST, if_request=_wifi_request())
    assert msg_send(writer, message) == MESSAGE_SIZE
    assert msg_receive(reader) == message


def test_receive_buffer_too_small(queue):
    _path, reader, writer = queue
    msg_send(writer, CtrlMessage(CtrlType.UNBLOCK))
    with pytest.raises(ValueError):
        msg_receive(reader, MESSAGE_SIZE - 1)


def test_receive_truncated_size_field(queue):
    _path, reader, writer = queue
    os.write(writer, b"\x01\x02\x03")
    os.close(writer)
    with pytest.raises(BrokenPipeError):
        msg_receive(reader)


def test_receive_truncated_body(queue):
    _path, reader, writer = queue
    data = CtrlMessage(CtrlType.RESPONSE, result=1).pack()
    os.write(writer, data[:SIZE_FIELD.size + 4])
    os.close(writer)
    with pytest.raises(BrokenPipeError):
        msg_receive(reader)


def test_flush_discards_everything(queue):
    _path, reader, writer = queue
    msg_send(writer, CtrlMessage(CtrlType.UNBLOCK))
    msg_send(writer, CtrlMessage(CtrlType.RESPONSE, result=1))
    assert msg_flush(reader) == 2 * MESSAGE_SIZE
    os.close(writer)
    assert os.read(reader, 16) == b""


def test_unblock_then_receive(queue):
    _path, reader, writer = queue
    msg_unblock(reader)
    message = CtrlMessage(CtrlType.UNBLOCK, result=3)
    msg_send(writer, message)
    assert msg_receive(reader) == message


def test_remove_unlinks_queue(queue):
    path, reader, _writer = queue
    msg_remove(str(path), reader)
    assert not path.exists()