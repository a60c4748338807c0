"""POSIX message queue sender.

The charger firmware accepts lock and charge-control requests on POSIX
message queues. Messages are fixed-size: the event string padded with NUL
bytes to :data:`~wallbox_bridge._constants.MQ_MESSAGE_SIZE`.
"""

from __future__ import annotations

import ctypes
import ctypes.util
import logging
import os
import time

from wallbox_bridge._constants import MQ_MESSAGE_SIZE
from wallbox_bridge.exceptions import DataSourceError

_logger = logging.getLogger(__name__)

_SEND_TIMEOUT_SECONDS = 1.0


class _Timespec(ctypes.Structure):
    _fields_ = [("tv_sec", ctypes.c_long), ("tv_nsec", ctypes.c_long)]


def _load_librt() -> ctypes.CDLL:
    name = ctypes.util.find_library("rt") or "librt.so.1"
    try:
        lib = ctypes.CDLL(name, use_errno=True)
    except OSError as exc:
        raise DataSourceError(f"POSIX message queues unavailable: {exc}", source="mqueue") from exc
    lib.mq_open.restype = ctypes.c_int
    lib.mq_open.argtypes = [ctypes.c_char_p, ctypes.c_int]
    lib.mq_timedsend.restype = ctypes.c_int
    lib.mq_timedsend.argtypes = [
        ctypes.c_int,
        ctypes.c_char_p,
        ctypes.c_size_t,
        ctypes.c_uint,
        ctypes.POINTER(_Timespec),
    ]
    lib.mq_close.restype = ctypes.c_int
    lib.mq_close.argtypes = [ctypes.c_int]
    return lib


def pad_message(event: str, size: int = MQ_MESSAGE_SIZE) -> bytes:
    """Encode *event* and NUL-pad it to *size* bytes.

    Raises
    ------
    ValueError
        If the encoded event does not fit.
    """
    data = event.encode("ascii")
    if len(data) > size:
        raise ValueError(f"event too long for message queue ({len(data)} > {size} bytes)")
    return data + b"\x00" * (size - len(data))


def queue_path(name: str) -> bytes:
    return (name if name.startswith("/") else f"/{name}").encode("ascii")


class PosixQueueSender:
    """Sends padded events to named POSIX message queues."""

    def __init__(self, *, timeout: float = _SEND_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout
        self._lib: ctypes.CDLL | None = None

    def send(self, queue: str, event: str) -> None:
        """Open *queue*, send *event* and close it again.

        Raises
        ------
        DataSourceError
            If the queue cannot be opened or the send fails or times out.
        """
        lib = self._lib
        if lib is None:
            lib = self._lib = _load_librt()

        message = pad_message(event)
        mqd = lib.mq_open(queue_path(queue), os.O_WRONLY)
        if mqd == -1:
            err = ctypes.get_errno()
            raise DataSourceError(f"mq_open({queue}) failed: {os.strerror(err)}", source="mqueue")
        try:
            deadline = time.time() + self._timeout
            timeout = _Timespec(int(deadline), int((deadline % 1) * 1_000_000_000))
            if lib.mq_timedsend(mqd, message, len(message), 0, ctypes.byref(timeout)) == -1:
                err = ctypes.get_errno()
                raise DataSourceError(f"mq_timedsend({queue}) failed: {os.strerror(err)}", source="mqueue")
            _logger.debug("Sent %s to message queue %s", event, queue)
        finally:
            lib.mq_close(mqd)
