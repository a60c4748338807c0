"""Charger status code translation.

The charger reports its state as numeric codes spread over three places:
the TMS charger status in the ``m2w`` hash, the session state machine and
the control pilot state in the ``state`` hash. Each becomes an explicit
enumeration here; unknown codes resolve to ``UNKNOWN`` and render as
``"Unknown"``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from wallbox_bridge.models._base import WallboxEnum

_CHARGER_STATUS_LABELS: dict[int, str] = {
    0: "Ready",
    1: "Charging",
    2: "Connected waiting car",
    3: "Connected waiting schedule",
    4: "Paused",
    5: "Schedule end",
    6: "Locked",
    7: "Error",
    8: "Connected waiting current assignation",
    9: "Unconfigured power sharing",
    10: "Queue by power boost",
    11: "Discharging",
    12: "Connected waiting admin auth for mid",
    13: "Connected mid safety margin exceeded",
    14: "OCPP unavailable",
    15: "OCPP charge finishing",
    16: "OCPP reserved",
    17: "Updating",
    18: "Queue by eco smart",
}

_CONTROL_PILOT_LABELS: dict[int, str] = {
    0xE: "Error",
    0xF: "Failure",
    0xA1: "Ready 1",  # 12V, no vehicle
    0xA2: "Ready 2",
    0xB1: "Connected 1",  # 9V, vehicle not requesting charge
    0xB2: "Connected 2",
    0xC1: "Charging 1",  # 6V, vehicle charging
    0xC2: "Charging 2",
}

_STATE_MACHINE_LABELS: dict[int, str] = {
    0xE: "Error",
    0xF: "Unviable",
    0xA1: "Ready",
    0xA2: "PS Unconfig",
    0xA3: "Unavailable",
    0xA4: "Finish",
    0xA5: "Reserved",
    0xA6: "Updating",
    0xB1: "Connected 1",
    0xB2: "Connected 2",
    0xB3: "Connected 3",
    0xB4: "Connected 4",
    0xB5: "Connected 5",
    0xB6: "Connected 6",
    0xB7: "Waiting 1",
    0xB8: "Waiting 2",
    0xB9: "Waiting 3",
    0xBA: "Waiting 4",
    0xBB: "Mid 1",
    0xBC: "Mid 2",
    0xBD: "Waiting eco power",
    0xC1: "Charging 1",
    0xC2: "Charging 2",
    0xC3: "Discharging 1",
    0xC4: "Discharging 2",
    0xD1: "Lock",
    0xD2: "Wait Unlock",
}


class ChargerStatus(WallboxEnum):
    """TMS charger status (``m2w`` hash, ``tms.charger_status``)."""

    UNKNOWN = -1
    READY = 0
    CHARGING = 1
    CONNECTED_WAITING_CAR = 2
    CONNECTED_WAITING_SCHEDULE = 3
    PAUSED = 4
    SCHEDULE_END = 5
    LOCKED = 6
    ERROR = 7
    CONNECTED_WAITING_CURRENT_ASSIGNATION = 8
    UNCONFIGURED_POWER_SHARING = 9
    QUEUE_BY_POWER_BOOST = 10
    DISCHARGING = 11
    CONNECTED_WAITING_ADMIN_AUTH_FOR_MID = 12
    CONNECTED_MID_SAFETY_MARGIN_EXCEEDED = 13
    OCPP_UNAVAILABLE = 14
    OCPP_CHARGE_FINISHING = 15
    OCPP_RESERVED = 16
    UPDATING = 17
    QUEUE_BY_ECO_SMART = 18

    @classmethod
    def _labels(cls) -> Mapping[int, str]:
        return _CHARGER_STATUS_LABELS


class ControlPilotState(WallboxEnum):
    """IEC 61851 control pilot state (``state`` hash, ``ctrlPilot``)."""

    UNKNOWN = -1
    ERROR = 0xE
    FAILURE = 0xF
    READY_1 = 0xA1
    READY_2 = 0xA2
    CONNECTED_1 = 0xB1
    CONNECTED_2 = 0xB2
    CHARGING_1 = 0xC1
    CHARGING_2 = 0xC2

    @classmethod
    def _labels(cls) -> Mapping[int, str]:
        return _CONTROL_PILOT_LABELS


class StateMachineState(WallboxEnum):
    """Session state machine (``state`` hash, ``session.state``)."""

    UNKNOWN = -1
    ERROR = 0xE
    UNVIABLE = 0xF
    READY = 0xA1
    PS_UNCONFIG = 0xA2
    UNAVAILABLE = 0xA3
    FINISH = 0xA4
    RESERVED = 0xA5
    UPDATING = 0xA6
    CONNECTED_1 = 0xB1
    CONNECTED_2 = 0xB2
    CONNECTED_3 = 0xB3
    CONNECTED_4 = 0xB4
    CONNECTED_5 = 0xB5
    CONNECTED_6 = 0xB6
    WAITING_1 = 0xB7
    WAITING_2 = 0xB8
    WAITING_3 = 0xB9
    WAITING_4 = 0xBA
    MID_1 = 0xBB
    MID_2 = 0xBC
    WAITING_ECO_POWER = 0xBD
    CHARGING_1 = 0xC1
    CHARGING_2 = 0xC2
    DISCHARGING_1 = 0xC3
    DISCHARGING_2 = 0xC4
    LOCK = 0xD1
    WAIT_UNLOCK = 0xD2

    @classmethod
    def _labels(cls) -> Mapping[int, str]:
        return _STATE_MACHINE_LABELS


# Session states that take precedence over the TMS charger status.
STATE_OVERRIDES: dict[StateMachineState, ChargerStatus] = {
    StateMachineState.UPDATING: ChargerStatus.UPDATING,
    StateMachineState.LOCK: ChargerStatus.LOCKED,
    StateMachineState.WAIT_UNLOCK: ChargerStatus.LOCKED,
}

_UNPLUGGED_STATUSES = frozenset({ChargerStatus.READY, ChargerStatus.LOCKED})


def effective_status(charger_status: Any, session_state: Any) -> str:
    """Human label of the charger status with session state overrides applied."""
    status = ChargerStatus.from_code(charger_status)
    state = StateMachineState.from_code(session_state)
    return STATE_OVERRIDES.get(state, status).label  # type: ignore[call-overload]


def cable_connected(charger_status: Any) -> int:
    """``1`` when a vehicle is plugged in, ``0`` otherwise."""
    return 0 if ChargerStatus.from_code(charger_status) in _UNPLUGGED_STATUSES else 1


def describe_code(enum_cls: type[WallboxEnum], code: Any) -> str:
    """Render a raw code as ``"<code>: <label>"``."""
    member = enum_cls.from_code(code)
    try:
        shown = int(code)
    except (TypeError, ValueError, OverflowError):
        shown = int(member)
    return f"{shown}: {member.label}"
