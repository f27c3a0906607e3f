"""Named-pipe primitives for the control channel to the location daemon."""

from __future__ import annotations

import contextlib
import errno
import fcntl
import logging
import os
from typing import Optional, Union

log = logging.getLogger(__name__)

PIPE_PERMISSIONS = 0o660
UNLOCK_LENGTH = 32

PathType = Union[str, "os.PathLike[str]"]


def pipe_get(pipe_name: PathType, mode: int) -> int:
    """Create the named pipe if needed, make it group accessible and open it.

    Returns the open file descriptor; raises OSError when the pipe cannot
    be created or opened.
    """
    path = os.fspath(pipe_name)
    log.debug("%s, mode = %d", path, mode)
    try:
        os.mkfifo(path, PIPE_PERMISSIONS)
    except FileExistsError:
        pass
    except OSError as exc:
        log.error("failed: %s", exc.strerror)
        raise

    # mkfifo is subject to the umask, so set the group bits explicitly.
    try:
        os.chmod(path, PIPE_PERMISSIONS)
    except OSError as exc:
        log.error("failed to change mode for %s, error = %s", path, exc.strerror)

    try:
        fd = os.open(path, mode)
    except OSError as exc:
        log.error("failed: %s", exc.strerror)
        raise
    log.debug("fd = %d, %s", fd, path)
    return fd


def pipe_remove(pipe_name: Optional[PathType], fd: int) -> None:
    """Close the descriptor and remove the pipe from the file system."""
    with contextlib.suppress(OSError):
        os.close(fd)
    if pipe_name:
        with contextlib.suppress(OSError):
            os.unlink(os.fspath(pipe_name))
    log.debug("fd = %d, %s", fd, pipe_name)


def pipe_write(fd: int, data: bytes) -> int:
    """Write data to the pipe and return the number of bytes written."""
    return os.write(fd, data)


def pipe_read(fd: int, size: int) -> bytes:
    """Read at most size bytes from the pipe; an empty result means end of file."""
    return os.read(fd, size)


def pipe_unblock(fd: int) -> None:
    """Release any record lock held on the first bytes of the pipe."""
    log.debug("unblock fd = %d", fd)
    try:
        fcntl.lockf(fd, fcntl.LOCK_UN, UNLOCK_LENGTH)
    except OSError as exc:
        log.error("fcntl failure, %s", exc.strerror or errno.errorcode.get(exc.errno, ""))
        raise