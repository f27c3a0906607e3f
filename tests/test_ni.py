import threading

import pytest

from locengine.ni import (
    LOC_NI_NO_RESPONSE_TIME,
    NI_PRIVACY_OVERRIDE,
    NI_RESPONSE_GRACE,
    NiManager,
    NiNotification,
    NiType,
    UserResponse,
)


class Recorder:
    def __init__(self):
        self.calls = []
        self.lock = threading.Lock()

    def __call__(self, *args):
        with self.lock:
            self.calls.append(args)


def make_manager(**kwargs):
    sent = Recorder()
    notified = Recorder()
    manager = NiManager(sent, **kwargs)
    manager.init(notified)
    return manager, sent, notified


def join(session):
    session.thread.join(5)
    assert not session.thread.is_alive()


def test_init_without_callback_raises():
    manager = NiManager(Recorder())
    with pytest.raises(ValueError):
        manager.init(None)


def test_request_before_init_raises():
    manager = NiManager(Recorder())
    with pytest.raises(RuntimeError):
        manager.request(NiNotification(), b"payload")


def test_second_init_keeps_first_callback():
    manager, _, notified = make_manager()
    other = Recorder()
    manager.init(other)
    assert manager.notify_cb is notified


def test_request_assigns_id_and_notifies():
    manager, sent, notified = make_manager()
    notification = NiNotification(ni_type=NiType.UMTS_SUPL, timeout=30)
    req_id = manager.request(notification, b"payload")
    assert req_id == 1
    assert notification.notification_id == req_id
    assert notified.calls == [(notification,)]
    assert manager.respond(req_id, UserResponse.DENY) is True
    join(manager.session)
    assert sent.calls == [(UserResponse.DENY, b"payload")]


def test_default_timeout_used_when_zero():
    manager, _, _ = make_manager()
    manager.request(NiNotification(timeout=0), b"payload")
    assert manager.session.resp_time_left == NI_RESPONSE_GRACE + LOC_NI_NO_RESPONSE_TIME
    manager.reset_on_engine_restart()
    join(manager.session)


def test_accept_sends_response_and_clears_session():
    manager, sent, _ = make_manager()
    req_id = manager.request(NiNotification(timeout=30), b"payload")
    manager.respond(req_id, UserResponse.ACCEPT)
    join(manager.session)
    assert sent.calls == [(UserResponse.ACCEPT, b"payload")]
    assert manager.session.raw_request is None
    assert manager.session.req_id == 0
    assert manager.session.resp_recvd is False


def test_timeout_sends_no_response():
    manager, sent, _ = make_manager(grace=0)
    manager.request(NiNotification(timeout=0.05), b"payload")
    join(manager.session)
    assert sent.calls == [(UserResponse.NORESP, b"payload")]


def test_second_ordinary_request_ignored_while_pending():
    manager, sent, notified = make_manager()
    first = manager.request(NiNotification(timeout=30), b"first")
    second = manager.request(NiNotification(timeout=30), b"second")
    assert second is None
    assert len(notified.calls) == 1
    manager.respond(first, UserResponse.ACCEPT)
    join(manager.session)
    assert sent.calls == [(UserResponse.ACCEPT, b"first")]


def test_ordinary_request_ignored_while_emergency_pending():
    manager, _, _ = make_manager()
    manager.request(NiNotification(ni_type=NiType.EMERGENCY_SUPL, timeout=30), b"es")
    assert manager.request(NiNotification(timeout=30), b"other") is None
    manager.reset_on_engine_restart()
    join(manager.session_es)


def test_ids_increase_across_sessions():
    manager, _, _ = make_manager()
    first = manager.request(NiNotification(timeout=30), b"a")
    second = manager.request(
        NiNotification(ni_type=NiType.EMERGENCY_SUPL, timeout=30), b"b")
    assert second == first + 1
    manager.reset_on_engine_restart()
    join(manager.session)
    join(manager.session_es)


def test_accepting_emergency_ignores_ordinary_session():
    manager, sent, _ = make_manager()
    normal_id = manager.request(NiNotification(timeout=30), b"normal")
    es_id = manager.request(
        NiNotification(ni_type=NiType.EMERGENCY_SUPL, timeout=30), b"es")
    assert manager.respond(es_id, UserResponse.ACCEPT) is True
    join(manager.session)
    join(manager.session_es)
    assert normal_id != es_id
    assert sent.calls == [(UserResponse.ACCEPT, b"es")]
    assert manager.session.raw_request is None


def test_respond_unknown_id_returns_false():
    manager, sent, _ = make_manager()
    assert manager.respond(42, UserResponse.ACCEPT) is False
    assert sent.calls == []


def test_reset_on_engine_restart_sends_nothing():
    manager, sent, _ = make_manager()
    req_id = manager.request(NiNotification(timeout=30), b"payload")
    manager.reset_on_engine_restart()
    join(manager.session)
    assert sent.calls == []
    assert manager.session.raw_request is None
    assert manager.respond(req_id, UserResponse.ACCEPT) is False


def test_privacy_override_mutes_session():
    muted = Recorder()
    manager, _, _ = make_manager(mute_session=muted)
    manager.request(NiNotification(notify_flags=NI_PRIVACY_OVERRIDE, timeout=30), b"p")
    assert len(muted.calls) == 1
    manager.reset_on_engine_restart()
    join(manager.session)


def test_no_mute_without_privacy_override():
    muted = Recorder()
    manager, _, _ = make_manager(mute_session=muted)
    manager.request(NiNotification(notify_flags=0, timeout=30), b"p")
    assert muted.calls == []
    manager.reset_on_engine_restart()
    join(manager.session)


@pytest.mark.parametrize(
    "response, value",
    [(UserResponse.ACCEPT, 1), (UserResponse.DENY, 2), (UserResponse.NORESP, 3)],
)
def test_user_response_is_forwarded_with_its_value(response, value):
    manager, sent, _ = make_manager()
    req_id = manager.request(NiNotification(timeout=30), b"payload")
    assert manager.respond(req_id, response) is True
    join(manager.session)
    assert len(sent.calls) == 1
    forwarded, payload = sent.calls[0]
    assert forwarded is response
    assert forwarded.value == value
    assert payload == b"payload"