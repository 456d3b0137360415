from typing import Final

from sdw.types import (
    ActiveStateCode,
    ResultCode,
    SubStateCode,
    UnitFileStateCode,
)

_ACTIVE_STATES: Final[dict[str, ActiveStateCode]] = {
    'activating': ActiveStateCode.ACTIVATING,
    'active': ActiveStateCode.ACTIVE,
    'reloading': ActiveStateCode.RELOADING,
    'deactivating': ActiveStateCode.DEACTIVATING,
    'inactive': ActiveStateCode.INACTIVE,
    'failed': ActiveStateCode.FAILED,
}

# SubStateCode.FAILED exists but 'failed' is not mapped
_SUB_STATES: Final[dict[str, SubStateCode]] = {
    'start': SubStateCode.START,
    'running': SubStateCode.RUNNING,
    'stop-sigterm': SubStateCode.STOP_SIGTERM,
    'dead': SubStateCode.DEAD,
}

_UNIT_FILE_STATES: Final[dict[str, UnitFileStateCode]] = {
    'enabled': UnitFileStateCode.ENABLED,
    'disabled': UnitFileStateCode.DISABLED,
}


def decode_active_state(state: str | None) -> ActiveStateCode:
    """Map an ActiveState string to its code, UNKNOWN if unmapped.
    """
    return _ACTIVE_STATES.get(state or '', ActiveStateCode.UNKNOWN)


def decode_sub_state(state: str | None) -> SubStateCode:
    """Map a SubState string to its code, UNKNOWN if unmapped.
    """
    return _SUB_STATES.get(state or '', SubStateCode.UNKNOWN)


def decode_unit_file_state(state: str | None) -> int:
    """Map a unit file state to its code.

    States other than enabled and disabled are plain success.
    """
    return _UNIT_FILE_STATES.get(state or '', ResultCode.SUCCESS)
