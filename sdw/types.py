from enum import IntEnum, StrEnum


class ResultCode(IntEnum):
    """Status codes returned by every public operation.
    """

    SUCCESS = 0
    EINIT = -1
    EVERSION = -2
    EINVAL = -3
    ENOTIFYSOCK = -4
    ETIMEOUT = -5


class UnitFileStateCode(IntEnum):
    """Codes for the unit file states the wrapper categorizes.
    """

    ENABLED = 11
    DISABLED = 12


class ActiveStateCode(IntEnum):
    """Codes for the unit ActiveState property.
    """

    UNKNOWN = 20
    ACTIVATING = 21
    ACTIVE = 22
    RELOADING = 23
    DEACTIVATING = 24
    INACTIVE = 25
    FAILED = 26


class SubStateCode(IntEnum):
    """Codes for the unit SubState property.
    """

    UNKNOWN = 30
    START = 31
    RUNNING = 32
    STOP_SIGTERM = 33
    DEAD = 34
    FAILED = 35


class InitStatus(StrEnum):
    """Connection gatekeeper states.
    """

    UNINITIALIZED = 'uninitialized'
    VERSION_CHECK_PENDING = 'version-check-pending'
    READY = 'ready'
    INIT_FAILED = 'init-failed'
    VERSION_UNSUPPORTED = 'version-unsupported'


class JobCommand(StrEnum):
    """Mutating commands that queue a manager job.

    The value is the Manager method name.
    """

    START = 'StartUnit'
    RESTART = 'RestartUnit'
    STOP = 'StopUnit'


class JobStatus(StrEnum):
    """Lifecycle of a submitted job as seen by the waiter.
    """

    UNKNOWN = 'unknown'
    DONE = 'done'
    FAILED = 'failed'


class JobResult(StrEnum):
    """Result strings carried by the JobRemoved signal.
    """

    DONE = 'done'
    CANCELED = 'canceled'
    TIMEOUT = 'timeout'
    FAILED = 'failed'
    DEPENDENCY = 'dependency'
    SKIPPED = 'skipped'
    INVALID = 'invalid'
    ASSERT = 'assert'
    UNSUPPORTED = 'unsupported'
    COLLECTED = 'collected'
    ONCE = 'once'


class PropertyType(StrEnum):
    """D-Bus signatures accepted by typed property reads.
    """

    STRING = 's'
    UINT32 = 'u'
    INT32 = 'i'
