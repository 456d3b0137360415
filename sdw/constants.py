from enum import StrEnum
from typing import Final


class DBusConstants(StrEnum):
    """Standard D-Bus service and interface constants.
    """

    # D-Bus daemon service constants
    SERVICE_NAME = 'org.freedesktop.DBus'
    OBJECT_PATH = '/org/freedesktop/DBus'
    INTERFACE = 'org.freedesktop.DBus'

    # Standard D-Bus interface for properties access
    PROPERTIES_INTERFACE = 'org.freedesktop.DBus.Properties'


class SystemdDBusConstants(StrEnum):
    """Systemd D-Bus service and interface constants.
    """

    # Service identification
    SERVICE_NAME = 'org.freedesktop.systemd1'
    OBJECT_PATH = '/org/freedesktop/systemd1'
    UNIT_PATH_PREFIX = '/org/freedesktop/systemd1/unit'

    # Core systemd interfaces
    MANAGER_INTERFACE = 'org.freedesktop.systemd1.Manager'
    SERVICE_INTERFACE = 'org.freedesktop.systemd1.Service'
    UNIT_INTERFACE = 'org.freedesktop.systemd1.Unit'

    # Signals
    JOB_REMOVED_SIGNAL = 'JobRemoved'


class ManagerMethods(StrEnum):
    """Manager methods called by the wrapper.
    """

    GET_UNIT_BY_PID = 'GetUnitByPID'
    GET_UNIT_FILE_STATE = 'GetUnitFileState'
    ENABLE_UNIT_FILES = 'EnableUnitFiles'
    DISABLE_UNIT_FILES = 'DisableUnitFiles'
    RELOAD = 'Reload'
    SUBSCRIBE = 'Subscribe'
    UNSUBSCRIBE = 'Unsubscribe'


class UnitPropertyNames(StrEnum):
    """Property names read from the Manager, Unit and Service interfaces.
    """

    VERSION = 'Version'
    ACTIVE_STATE = 'ActiveState'
    SUB_STATE = 'SubState'
    MAIN_PID = 'MainPID'
    CONTROL_PID = 'ControlPID'


class UnitControlModes(StrEnum):
    """Systemd unit control mode constants.
    """

    REPLACE = 'replace'


class NotifyMessages(StrEnum):
    """sd_notify state lines.
    """

    READY = 'READY=1'
    STOPPING = 'STOPPING=1'
    MAINPID = 'MAINPID={pid}'


JOB_REMOVED_MATCH: Final[str] = (
    "type='signal',"
    "sender='org.freedesktop.systemd1',"
    "interface='org.freedesktop.systemd1.Manager',"
    "member='JobRemoved',"
    "path='/org/freedesktop/systemd1'"
)


class UnitLimits:
    """Length bounds for unit names and returned strings.
    """

    # Names are rejected at this many UTF-8 bytes or more
    MAX_UNIT_NAME_LEN: Final[int] = 64
    MAX_RESPONSE_LEN: Final[int] = 256

    # Logical object path prefix used while escaping unit names
    CODEC_PREFIX: Final[str] = '/test'


class VersionConfig:
    """Manager version gating constants.
    """

    # SLES 15.0 GA ships 234, RHEL 8.0 GA ships 239
    MIN_SUPPORTED_VERSION: Final[int] = 234
    VERSION_PATTERN: Final[str] = r'^[^0-9]*([0-9]+)'


class TraceLevels:
    """Trace level bounds accepted by set_trace_level.
    """

    ERROR: Final[int] = 0
    INFO: Final[int] = 1
    DEBUG: Final[int] = 2
