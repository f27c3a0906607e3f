"""XTRA assistance data: injection into the engine and server requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)


class XtraAdapter(Protocol):
    """The engine side that receives XTRA data and server requests."""

    def set_xtra_data(self, data: bytes) -> Any: ...

    def request_xtra_server(self) -> Any: ...


def _run_now(task: Callable[[], Any]) -> None:
    task()


@dataclass
class XtraCallbacks:
    """Callbacks the framework provides for XTRA downloads."""

    download_request_cb: Optional[Callable[[], Any]] = None
    report_xtra_server_cb: Optional[Callable[[str, str, str], Any]] = None


@dataclass
class XtraModule:
    """XTRA support bound to an engine adapter.

    Work for the adapter is handed to post, which runs it at once by default
    and may instead queue it on the engine's message thread.
    """

    adapter: XtraAdapter
    post: Callable[[Callable[[], Any]], Any] = _run_now
    download_request_cb: Optional[Callable[[], Any]] = field(default=None, init=False)
    report_xtra_server_cb: Optional[Callable[[str, str, str], Any]] = field(
        default=None, init=False)

    def init(self, callbacks: Optional[XtraCallbacks]) -> None:
        """Store the framework callbacks; raises ValueError when none are given."""
        if callbacks is None:
            log.error("xtra init failed, cb is None")
            raise ValueError("XTRA callbacks are required")
        self.download_request_cb = callbacks.download_request_cb
        self.report_xtra_server_cb = callbacks.report_xtra_server_cb

    def inject_data(self, data: bytes) -> None:
        """Hand a copy of an XTRA file to the engine."""
        payload = bytes(data)
        log.debug("length: %d", len(payload))
        self.post(lambda: self.adapter.set_xtra_data(payload))

    def request_server(self) -> None:
        """Ask the modem for the XTRA server addresses."""
        log.debug("request xtra server")
        self.post(self.adapter.request_xtra_server)