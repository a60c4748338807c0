from __future__ import annotations

import pytest

from wallbox_bridge._constants import EVENT_REQUEST_LOGIN, MQ_MESSAGE_SIZE
from wallbox_bridge.datasource._mqueue import pad_message, queue_path


def test_pad_message_fills_fixed_size() -> None:
    message = pad_message("EVENT_REQUEST_LOCK")

    assert len(message) == MQ_MESSAGE_SIZE
    assert message.startswith(b"EVENT_REQUEST_LOCK\x00")
    assert message.rstrip(b"\x00") == b"EVENT_REQUEST_LOCK"


def test_login_event_format() -> None:
    assert EVENT_REQUEST_LOGIN.format(user_id="5") == "EVENT_REQUEST_LOGIN#5.000000"


def test_pad_message_rejects_oversized_event() -> None:
    with pytest.raises(ValueError):
        pad_message("x" * 17, size=16)


def test_queue_path_is_absolute() -> None:
    assert queue_path("WALLBOX_MYWALLBOX_WALLBOX_LOGIN") == b"/WALLBOX_MYWALLBOX_WALLBOX_LOGIN"
    assert queue_path("/already") == b"/already"
