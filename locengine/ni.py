"""Network-initiated (NI) location requests awaiting a user's response."""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)

LOC_NI_NO_RESPONSE_TIME = 20  # seconds
NI_RESPONSE_GRACE = 5  # seconds added to every response timeout
LOC_NI_NOTIF_KEY_ADDRESS = "Address"

NI_NEED_NOTIFY = 0x0001
NI_NEED_VERIFY = 0x0002
NI_PRIVACY_OVERRIDE = 0x0004


class NiType(enum.IntEnum):
    """Kind of network-initiated request."""

    VOICE = 1
    UMTS_SUPL = 2
    UMTS_CTRL_PLANE = 3
    EMERGENCY_SUPL = 4


class UserResponse(enum.IntEnum):
    """The user's answer to a network-initiated request."""

    ACCEPT = 1
    DENY = 2
    NORESP = 3
    IGNORE = 4


@dataclass
class NiNotification:
    """A request shown to the user; notification_id is assigned on request."""

    ni_type: NiType = NiType.UMTS_SUPL
    notification_id: int = 0
    notify_flags: int = 0
    timeout: float = 0
    default_response: UserResponse = UserResponse.NORESP
    requestor_id: str = ""
    requestor_id_encoding: int = 0
    text: str = ""
    text_encoding: int = 0
    extras: str = ""


@dataclass
class NiSession:
    """State of one NI session; raw_request is None when no session is active."""

    resp_time_left: float = 0
    resp_recvd: bool = False
    raw_request: Any = None
    req_id: int = 0
    resp: UserResponse = UserResponse.NORESP
    thread: Optional[threading.Thread] = field(default=None, repr=False, compare=False)
    cond: threading.Condition = field(
        default_factory=threading.Condition, repr=False, compare=False)

    @property
    def active(self) -> bool:
        return self.raw_request is not None


SendResponse = Callable[[UserResponse, Any], Any]
NotifyCallback = Callable[[NiNotification], Any]


class NiManager:
    """Tracks one ordinary and one emergency NI session.

    Each accepted request gets a thread that waits for the user's response
    and, when none arrives in time, answers NORESP. The response and the
    request's pass-through data are then handed to send_response.
    """

    def __init__(self, send_response: SendResponse,
                 mute_session: Optional[Callable[[], Any]] = None, *,
                 grace: float = NI_RESPONSE_GRACE,
                 no_response_time: float = LOC_NI_NO_RESPONSE_TIME) -> None:
        self.send_response = send_response
        self.mute_session = mute_session
        self.grace = grace
        self.no_response_time = no_response_time
        self.notify_cb: Optional[NotifyCallback] = None
        self.session = NiSession()
        self.session_es = NiSession()
        self.req_id_counter = 0
        self._lock = threading.Lock()

    def init(self, notify_cb: Optional[NotifyCallback]) -> None:
        """Set the notification callback; a second call leaves things unchanged."""
        if notify_cb is None:
            raise ValueError("NI init failed: no notify callback")
        if self.notify_cb is not None:
            log.warning("NI already initialised")
            return
        self.session = NiSession()
        self.session_es = NiSession()
        self.notify_cb = notify_cb

    def _require_init(self) -> NotifyCallback:
        if self.notify_cb is None:
            raise RuntimeError("NI init has not happened yet")
        return self.notify_cb

    def request(self, notification: NiNotification, pass_through: Any) -> Optional[int]:
        """Start a session for notification and notify the user.

        Returns the notification id, or None when the request is ignored
        because a session that blocks it is in progress.
        """
        notify_cb = self._require_init()
        with self._lock:
            if notification.ni_type == NiType.EMERGENCY_SUPL:
                if self.session_es.active:
                    log.warning("SUPL ES NI in progress, new SUPL ES NI ignored, type: %d",
                                notification.ni_type)
                    return None
                session = self.session_es
            else:
                if self.session.active or self.session_es.active:
                    log.warning("SUPL NI in progress, new SUPL NI ignored, type: %d",
                                notification.ni_type)
                    return None
                session = self.session

            self.req_id_counter += 1
            with session.cond:
                session.raw_request = pass_through
                session.req_id = self.req_id_counter
                timeout = notification.timeout or self.no_response_time
                session.resp_time_left = self.grace + timeout

            notification.notification_id = session.req_id
            if notification.notify_flags == NI_PRIVACY_OVERRIDE and self.mute_session:
                self.mute_session()

            log.info("Notification: type %d, timeout %s, default response %d",
                     notification.ni_type, notification.timeout,
                     notification.default_response)
            log.info("Automatically sends 'no response' in %s seconds",
                     session.resp_time_left)
            session.thread = threading.Thread(
                target=self._await_response, args=(session,),
                name="loc_eng_ni", daemon=True)
            session.thread.start()
            req_id = session.req_id

        notify_cb(notification)
        return req_id

    def _await_response(self, session: NiSession) -> None:
        send = False
        resp = UserResponse.NORESP
        payload: Any = None
        with session.cond:
            deadline = time.monotonic() + session.resp_time_left
            while not session.resp_recvd:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    session.resp = UserResponse.NORESP
                    break
                session.cond.wait(remaining)
            session.resp_recvd = False

            # raw_request is None after an engine restart: exit without sending.
            if session.raw_request is not None:
                if session.resp != UserResponse.IGNORE:
                    send = True
                    resp = session.resp
                    payload = session.raw_request
                session.raw_request = None
            session.resp_time_left = 0
            session.req_id = 0

        if send:
            self.send_response(resp, payload)

    @staticmethod
    def _deliver(session: NiSession, response: UserResponse) -> None:
        with session.cond:
            session.resp = response
            session.resp_recvd = True
            session.cond.notify_all()

    def respond(self, notif_id: int, user_response: UserResponse) -> bool:
        """Pass the user's response to the matching session.

        Accepting an emergency session makes a pending ordinary session
        ignored. Returns False when notif_id is not an active session.
        """
        self._require_init()
        es, normal = self.session_es, self.session
        target: Optional[NiSession] = None
        if notif_id == es.req_id and es.active:
            target = es
            if user_response == UserResponse.ACCEPT and normal.active:
                self._deliver(normal, UserResponse.IGNORE)
        elif notif_id == normal.req_id and normal.active:
            target = normal

        if target is None:
            log.error("notif_id %d not an active session", notif_id)
            return False
        log.info("send user response %d for notif %d", user_response, notif_id)
        self._deliver(target, user_response)
        return True

    def reset_on_engine_restart(self) -> None:
        """Drop pending requests and wake their threads without sending anything."""
        if self.notify_cb is None:
            log.debug("NI init has not happened yet")
            return
        for session in (self.session_es, self.session):
            with session.cond:
                if session.raw_request is None:
                    continue
                session.raw_request = None
                session.resp_recvd = True
                session.cond.notify_all()