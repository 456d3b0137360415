from sdw.client import SystemdWrapper
from sdw.config import set_trace_level, setup_logger
from sdw.errors import (
    InitializationError,
    InvalidArgumentError,
    JobTimeoutError,
    NotifySocketError,
    SdwError,
    UnsupportedVersionError,
)
from sdw.models import JobRemovedEvent, OperationResult, UnitFileChange
from sdw.notify import Notifier, SystemdNotifier, is_supervised
from sdw.transport import DBusNextTransport, ManagerTransport
from sdw.types import (
    ActiveStateCode,
    InitStatus,
    JobCommand,
    ResultCode,
    SubStateCode,
    UnitFileStateCode,
)
from sdw.unit_name import decode_unit_name, encode_unit_name

__all__ = [
    'ActiveStateCode',
    'DBusNextTransport',
    'InitStatus',
    'InitializationError',
    'InvalidArgumentError',
    'JobCommand',
    'JobRemovedEvent',
    'JobTimeoutError',
    'ManagerTransport',
    'Notifier',
    'NotifySocketError',
    'OperationResult',
    'ResultCode',
    'SdwError',
    'SubStateCode',
    'SystemdNotifier',
    'SystemdWrapper',
    'UnitFileChange',
    'UnitFileStateCode',
    'UnsupportedVersionError',
    'decode_unit_name',
    'encode_unit_name',
    'is_supervised',
    'set_trace_level',
    'setup_logger',
]
