"""A worker thread that runs init, pre, loop and post steps and reports readiness."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Protocol

log = logging.getLogger(__name__)

THREAD_NAME = "loc_eng_dmn_conn"

Step = Callable[[Any], Any]


class _Joinable(Protocol):
    def join(self) -> Any: ...


CreateThread = Callable[[str, Callable[[Any], None], Any], _Joinable]


class ThreadHelper:
    """Runs a task loop on its own thread.

    A step fails when it raises an exception or returns a negative number.
    The loop step runs repeatedly until unblock() is called or it fails.
    """

    def __init__(self, context: Any = None) -> None:
        self.context = context
        self.error: Optional[BaseException] = None
        self._cond = threading.Condition()
        self._exit = False
        self._ready = False
        self._thread: Optional[_Joinable] = None
        self._proc_init: Optional[Step] = None
        self._proc_pre: Optional[Step] = None
        self._proc: Optional[Step] = None
        self._proc_post: Optional[Step] = None

    @property
    def exited(self) -> bool:
        """True once the thread has been asked to stop or a step failed."""
        return self._exit

    @property
    def ready(self) -> bool:
        """True once the thread has signalled that it is ready."""
        return self._ready

    def signal_wait(self) -> bool:
        """Block until ready is signalled; return False if the thread has exited."""
        with self._cond:
            self._cond.wait_for(lambda: self._ready or self._exit)
            return not self._exit

    def signal_ready(self) -> None:
        """Mark the thread ready and wake a waiter."""
        with self._cond:
            self._ready = True
            self._cond.notify_all()

    def signal_block(self) -> bool:
        """Clear the ready flag so the next wait blocks; return its previous value."""
        with self._cond:
            previous = self._ready
            self._ready = False
            return previous

    def _set_exit(self) -> None:
        with self._cond:
            self._exit = True
            self._cond.notify_all()

    def _run_step(self, step: Optional[Step]) -> bool:
        if step is None:
            return True
        try:
            result = step(self.context)
        except Exception as exc:  # a failing step stops the thread
            self.error = exc
            log.error("step %r failed: %s", step, exc)
            return False
        if isinstance(result, (int, float)) and not isinstance(result, bool) and result < 0:
            log.error("step %r returned %r", step, result)
            return False
        return True

    def _main(self, _arg: Any = None) -> None:
        if not self._run_step(self._proc_init):
            self._set_exit()
            self.signal_ready()
            return
        self.signal_ready()

        if not self._run_step(self._proc_pre):
            self._set_exit()
            return

        while not self._exit:
            if self._proc is None:
                with self._cond:
                    self._cond.wait_for(lambda: self._exit)
                continue
            if not self._run_step(self._proc):
                self._set_exit()

        if self._proc_post is not None and not self._run_step(self._proc_post):
            log.error("post step failed")

    def launch(self, proc_init: Optional[Step], proc_pre: Optional[Step],
               proc: Optional[Step], proc_post: Optional[Step],
               create_thread: Optional[CreateThread] = None,
               context: Any = None) -> None:
        """Start the thread and wait until its init step has finished.

        create_thread, when given, is called as create_thread(name, start, arg)
        and must start the thread and return an object with join(). A context
        of None keeps the current one. Raises RuntimeError when the thread
        has exited by the time it is ready.
        """
        with self._cond:
            self._exit = False
            self._ready = False
        self.error = None
        if context is not None:
            self.context = context
        self._proc_init = proc_init
        self._proc_pre = proc_pre
        self._proc = proc
        self._proc_post = proc_post

        log.debug("starting %s thread", THREAD_NAME)
        if create_thread is not None:
            self._thread = create_thread(THREAD_NAME, self._main, self)
        else:
            thread = threading.Thread(target=self._main, name=THREAD_NAME, daemon=True)
            thread.start()
            self._thread = thread

        self.signal_wait()
        log.debug("%s thread ready", THREAD_NAME)
        if self._exit:
            raise RuntimeError("thread exited during start-up") from self.error

    def unblock(self) -> None:
        """Ask the task loop to stop after its current step."""
        log.debug("unblock %s thread", THREAD_NAME)
        self._set_exit()

    def join(self) -> None:
        """Wait for the thread to finish."""
        if self._thread is None:
            raise RuntimeError("thread was never launched")
        self._thread.join()
        self._thread = None