import asyncio
import logging
import os
import re
from collections.abc import Awaitable, Callable
from typing import Self

from dbus_next.constants import BusType
from dbus_next.errors import DBusError

from sdw.config import set_trace_level
from sdw.constants import (
    ManagerMethods,
    NotifyMessages,
    SystemdDBusConstants,
    UnitLimits,
    UnitPropertyNames,
    VersionConfig,
)
from sdw.dispatcher import CommandDispatcher
from sdw.errors import (
    InitializationError,
    InvalidArgumentError,
    SdwError,
    UnsupportedVersionError,
)
from sdw.models import OperationResult
from sdw.notify import Notifier, SystemdNotifier
from sdw.properties import PropertyAccessor
from sdw.states import (
    decode_active_state,
    decode_sub_state,
    decode_unit_file_state,
)
from sdw.transport import DBusNextTransport, ManagerTransport
from sdw.types import InitStatus, PropertyType, ResultCode
from sdw.unit_name import decode_unit_name, encode_unit_name


class SystemdWrapper:
    """Controls and queries units of the service manager.

    Owns one transport connection and the init status guarding it. The
    first operation, or open(), connects and checks the manager
    version; the outcome is kept for the lifetime of the instance.
    Every public operation returns an OperationResult and never raises.
    """

    def __init__(
        self,
        transport: ManagerTransport | None = None,
        notifier: Notifier | None = None,
        bus_type: BusType = BusType.SYSTEM,
        min_version: int = VersionConfig.MIN_SUPPORTED_VERSION,
    ) -> None:
        """Initialize the wrapper.

        Args:
            transport: Transport to the manager, a dbus-next connection
                to bus_type if not given
            notifier: Notification channel, sd_notify if not given
            bus_type: The D-Bus bus type used by the default transport
            min_version: Lowest supported manager version
        """
        self._logger = logging.getLogger(__name__)

        self._transport = transport or DBusNextTransport(bus_type)
        self._notifier = notifier or SystemdNotifier()
        self._min_version = min_version
        self._properties = PropertyAccessor(self._transport)
        self._dispatcher = CommandDispatcher(self._transport)
        self._status = InitStatus.UNINITIALIZED
        self._init_message = ''
        self._init_lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        transport: ManagerTransport | None = None,
        notifier: Notifier | None = None,
        bus_type: BusType = BusType.SYSTEM,
        min_version: int = VersionConfig.MIN_SUPPORTED_VERSION,
    ) -> Self:
        """Create a wrapper and connect it right away.

        Check is_supported() or the status property for the outcome.
        """
        wrapper = cls(transport, notifier, bus_type, min_version)
        await wrapper.ensure_ready()
        return wrapper

    async def close(self) -> None:
        """Disconnect from the manager. The init status is kept.
        """
        await self._transport.disconnect()

    async def __aenter__(self) -> Self:
        await self.ensure_ready()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def status(self) -> InitStatus:
        return self._status

    async def ensure_ready(self) -> InitStatus:
        """Connect and check the manager version on first use.

        Later calls return the stored status without any remote I/O.
        """
        async with self._init_lock:
            if self._status is not InitStatus.UNINITIALIZED:
                return self._status

            try:
                await self._transport.connect()
            except ConnectionError as e:
                self._logger.error('sdbus initialization failed: %s', e)
                self._init_message = str(e)
                self._status = InitStatus.INIT_FAILED
                return self._status

            self._status = InitStatus.VERSION_CHECK_PENDING

            try:
                version = await self._properties.get_property(
                    SystemdDBusConstants.OBJECT_PATH,
                    SystemdDBusConstants.SERVICE_NAME,
                    SystemdDBusConstants.MANAGER_INTERFACE,
                    UnitPropertyNames.VERSION,
                    PropertyType.STRING,
                )
            except SdwError as e:
                self._init_message = e.message
                self._status = InitStatus.VERSION_UNSUPPORTED
                return self._status

            if self._is_supported_version(str(version)):
                self._status = InitStatus.READY
            else:
                self._init_message = (
                    f'systemd version {version!r} is not supported'
                )
                self._status = InitStatus.VERSION_UNSUPPORTED

            return self._status

    def _is_supported_version(self, version: str) -> bool:
        match = re.match(VersionConfig.VERSION_PATTERN, version)
        self._logger.debug('systemd version %s', version)
        if match is None:
            self._logger.error("no version number in '%s'", version)
            return False

        number = int(match.group(1))
        if number < self._min_version:
            self._logger.error(
                'systemd version %d is below %d',
                number,
                self._min_version,
            )
            return False

        self._logger.info('systemd version %d is supported', number)
        return True

    async def is_supported(self) -> OperationResult:
        """Check that the manager is reachable and recent enough.
        """
        status = await self.ensure_ready()
        if status is InitStatus.READY:
            return OperationResult.success()
        return self._gate_failure(status)

    @staticmethod
    def set_trace_level(level: int) -> None:
        """Set the wrapper log verbosity (0 error, 1 info, 2 debug).
        """
        set_trace_level(level)

    async def get_version(self) -> OperationResult:
        """Read the manager version string.
        """
        async def operation() -> OperationResult:
            version = await self._properties.get_property(
                SystemdDBusConstants.OBJECT_PATH,
                SystemdDBusConstants.SERVICE_NAME,
                SystemdDBusConstants.MANAGER_INTERFACE,
                UnitPropertyNames.VERSION,
                PropertyType.STRING,
            )
            return OperationResult.success(self._bounded(version))

        return await self._run('GetVersion', operation)

    async def check_pid(self, unit_name: str, pid: int = 0) -> OperationResult:
        """Check that a process belongs to the given unit.

        Args:
            unit_name: Expected unit of the process
            pid: Process id, 0 for the calling process
        """
        async def operation() -> OperationResult:
            encoded = encode_unit_name(unit_name)
            target = self._require_pid(pid) or os.getpid()
            unit_path = await self._unit_path_by_pid(target)

            if encoded not in unit_path:
                self._logger.info("no unit found for PID '%u'", target)
                raise InvalidArgumentError(
                    f"unit '{unit_name}' not found for PID '{target}'"
                )

            self._logger.info(
                "unit '%s' found for PID '%u'",
                unit_name,
                target,
            )
            return OperationResult.success(unit_path)

        return await self._run('CheckPID', operation)

    async def check_control_pid(
        self,
        unit_name: str,
        pid: int,
    ) -> OperationResult:
        """Compare the ControlPID of a unit with pid.
        """
        async def operation() -> OperationResult:
            expected = self._require_pid(pid)
            control_pid = await self._read_control_pid(unit_name)

            if control_pid != expected:
                self._logger.info(
                    'ControlPID %u != PID %u',
                    control_pid,
                    expected,
                )
                raise InvalidArgumentError(
                    f'ControlPID {control_pid} != PID {expected}'
                )

            self._logger.info('ControlPID %u == PID %u', control_pid, expected)
            return OperationResult.success(control_pid)

        return await self._run('CheckControlPID', operation)

    async def get_main_pid(self, unit_name: str) -> OperationResult:
        """Read the MainPID of a service.
        """
        async def operation() -> OperationResult:
            main_pid = await self._properties.get_service_property(
                encode_unit_name(unit_name),
                UnitPropertyNames.MAIN_PID,
                PropertyType.UINT32,
            )
            return OperationResult.success(main_pid)

        return await self._run('GetMainPID', operation)

    async def get_control_pid(self, unit_name: str) -> OperationResult:
        """Read the ControlPID of a service.
        """
        async def operation() -> OperationResult:
            return OperationResult.success(
                await self._read_control_pid(unit_name)
            )

        return await self._run('GetControlPID', operation)

    async def get_unit_by_pid(self, pid: int) -> OperationResult:
        """Look up the unit object path of a running process.
        """
        async def operation() -> OperationResult:
            target = self._require_pid(pid)
            unit_path = await self._unit_path_by_pid(target)
            self._logger.info(
                "unit '%s' found for PID '%u'",
                unit_path,
                target,
            )
            return OperationResult.success(self._bounded(unit_path))

        return await self._run('GetUnitByPID', operation)

    async def start(
        self,
        unit_name: str,
        wait_seconds: float = 0,
    ) -> OperationResult:
        """Start a unit.

        Args:
            unit_name: The name of the unit to start
            wait_seconds: 0 returns once the job is queued, otherwise
                wait up to this many seconds for the job result

        Returns:
            Result carrying the job object path
        """
        async def operation() -> OperationResult:
            job_path = await self._dispatcher.start(
                self._require_unit_name(unit_name),
                wait_seconds,
            )
            return OperationResult.success(job_path)

        return await self._run('StartUnit', operation)

    async def stop(
        self,
        unit_name: str,
        wait_seconds: float = 0,
    ) -> OperationResult:
        """Stop a unit. See start().
        """
        async def operation() -> OperationResult:
            job_path = await self._dispatcher.stop(
                self._require_unit_name(unit_name),
                wait_seconds,
            )
            return OperationResult.success(job_path)

        return await self._run('StopUnit', operation)

    async def restart(
        self,
        unit_name: str,
        wait_seconds: float = 0,
    ) -> OperationResult:
        """Restart a unit. See start().
        """
        async def operation() -> OperationResult:
            job_path = await self._dispatcher.restart(
                self._require_unit_name(unit_name),
                wait_seconds,
            )
            return OperationResult.success(job_path)

        return await self._run('RestartUnit', operation)

    async def enable(self, unit_name: str) -> OperationResult:
        """Enable a unit file, then reload.
        """
        async def operation() -> OperationResult:
            changes = await self._dispatcher.enable(
                self._require_unit_name(unit_name)
            )
            return OperationResult.success(changes)

        return await self._run('Enable', operation)

    async def disable(self, unit_name: str) -> OperationResult:
        """Disable a unit file, then reload.
        """
        async def operation() -> OperationResult:
            changes = await self._dispatcher.disable(
                self._require_unit_name(unit_name)
            )
            return OperationResult.success(changes)

        return await self._run('Disable', operation)

    async def reload(self) -> OperationResult:
        """Reload all unit files.
        """
        async def operation() -> OperationResult:
            await self._dispatcher.reload()
            return OperationResult.success()

        return await self._run('Reload', operation)

    async def get_unit_file_state(self, unit_name: str) -> OperationResult:
        """Read the unit file state.

        Returns:
            Code 11 (enabled), 12 (disabled) or 0 for any other state,
            with the state string as value
        """
        async def operation() -> OperationResult:
            name = self._require_unit_name(unit_name)
            body = await self._call_manager(
                ManagerMethods.GET_UNIT_FILE_STATE,
                's',
                [name],
                f"GetUnitFileState '{name}'",
            )
            state = str(body[0])
            self._logger.info('unit file state: %s.', state)
            return OperationResult.success(
                self._bounded(state),
                decode_unit_file_state(state),
            )

        return await self._run('GetUnitFileState', operation)

    async def get_active_state(self, unit_name: str) -> OperationResult:
        """Read the ActiveState of a unit.

        Returns:
            An ActiveStateCode with the state string as value
        """
        async def operation() -> OperationResult:
            state = await self._read_unit_state(
                unit_name,
                UnitPropertyNames.ACTIVE_STATE,
            )
            return OperationResult.success(
                self._bounded(state),
                decode_active_state(state),
            )

        return await self._run('GetActiveState', operation)

    async def get_sub_state(self, unit_name: str) -> OperationResult:
        """Read the SubState of a unit.

        Returns:
            A SubStateCode with the state string as value
        """
        async def operation() -> OperationResult:
            state = await self._read_unit_state(
                unit_name,
                UnitPropertyNames.SUB_STATE,
            )
            return OperationResult.success(
                self._bounded(state),
                decode_sub_state(state),
            )

        return await self._run('GetSubState', operation)

    async def encode(self, unit_name: str) -> OperationResult:
        """Encode a unit name into its object path segment.
        """
        async def operation() -> OperationResult:
            return OperationResult.success(encode_unit_name(unit_name))

        return await self._run('Encode', operation)

    async def decode(self, encoded: str) -> OperationResult:
        """Decode an object path segment into the unit name.
        """
        async def operation() -> OperationResult:
            return OperationResult.success(decode_unit_name(encoded))

        return await self._run('Decode', operation)

    async def notify_ready(self) -> OperationResult:
        """Tell the supervisor that startup has finished.
        """
        return await self._notify(NotifyMessages.READY)

    async def notify_stopping(self) -> OperationResult:
        """Tell the supervisor that the service is stopping.
        """
        return await self._notify(NotifyMessages.STOPPING)

    async def notify_mainpid(self, pid: int) -> OperationResult:
        """Tell the supervisor about a new main process.
        """
        try:
            message = NotifyMessages.MAINPID.format(pid=self._require_pid(pid))
        except InvalidArgumentError as e:
            return OperationResult.from_error(e)

        return await self._notify(message)

    async def _notify(self, message: str) -> OperationResult:
        async def operation() -> OperationResult:
            self._notifier.notify(message)
            return OperationResult.success()

        return await self._run('Notify', operation)

    async def _run(
        self,
        description: str,
        operation: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        """Run an operation behind the init gate and map its errors.
        """
        status = await self.ensure_ready()
        if status is not InitStatus.READY:
            return self._gate_failure(status)

        try:
            return await operation()
        except SdwError as e:
            return OperationResult.from_error(e)
        except (DBusError, ConnectionError, OSError, ValueError) as e:
            self._logger.error('%s failed: %s', description, e)
            return OperationResult.failure(
                ResultCode.EINVAL,
                f'{description} failed: {e}',
            )

    def _gate_failure(self, status: InitStatus) -> OperationResult:
        if status is InitStatus.VERSION_UNSUPPORTED:
            error: SdwError = UnsupportedVersionError(
                self._init_message or 'invalid systemd version'
            )
        else:
            error = InitializationError(
                self._init_message or 'sdbus initialization failed'
            )
        return OperationResult.from_error(error)

    async def _call_manager(
        self,
        member: str,
        signature: str,
        body: list,
        description: str,
    ) -> list:
        try:
            reply = await self._transport.call_method(
                SystemdDBusConstants.SERVICE_NAME,
                SystemdDBusConstants.OBJECT_PATH,
                SystemdDBusConstants.MANAGER_INTERFACE,
                member,
                signature,
                body,
            )
        except (DBusError, ConnectionError) as e:
            self._logger.error('%s - failed: %s', description, e)
            raise InvalidArgumentError(f'{description} - failed: {e}') from e

        if not reply:
            raise InvalidArgumentError(
                f'failed to parse response message of {member}'
            )
        return reply

    async def _unit_path_by_pid(self, pid: int) -> str:
        body = await self._call_manager(
            ManagerMethods.GET_UNIT_BY_PID,
            'u',
            [pid],
            f"GetUnitByPID '{pid}'",
        )
        return str(body[0])

    async def _read_control_pid(self, unit_name: str) -> int:
        return await self._properties.get_unit_property(  # type: ignore
            encode_unit_name(unit_name),
            SystemdDBusConstants.SERVICE_NAME,
            SystemdDBusConstants.SERVICE_INTERFACE,
            UnitPropertyNames.CONTROL_PID,
            PropertyType.UINT32,
        )

    async def _read_unit_state(
        self,
        unit_name: str,
        property_name: str,
    ) -> str:
        return await self._properties.get_unit_property(  # type: ignore
            encode_unit_name(unit_name),
            SystemdDBusConstants.SERVICE_NAME,
            SystemdDBusConstants.UNIT_INTERFACE,
            property_name,
            PropertyType.STRING,
        )

    @staticmethod
    def _require_unit_name(unit_name: str) -> str:
        if not isinstance(unit_name, str) or not unit_name:
            raise InvalidArgumentError(f'invalid unit name {unit_name!r}')
        return unit_name

    @staticmethod
    def _require_pid(pid: int) -> int:
        if isinstance(pid, bool) or not isinstance(pid, int) or pid < 0:
            raise InvalidArgumentError(f'invalid pid {pid!r}')
        return pid

    @staticmethod
    def _bounded(value: str) -> str | None:
        if len(value.encode('utf-8')) > UnitLimits.MAX_RESPONSE_LEN:
            return None
        return value
