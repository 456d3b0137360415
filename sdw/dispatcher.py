import logging
import time
from collections.abc import Callable
from typing import Any

from dbus_next.errors import DBusError
from pydantic import ValidationError

from sdw.constants import (
    ManagerMethods,
    SystemdDBusConstants,
    UnitControlModes,
)
from sdw.errors import InvalidArgumentError, JobTimeoutError
from sdw.job import Job
from sdw.models import UnitFileChange
from sdw.transport import ManagerTransport
from sdw.types import JobCommand, ResultCode


class CommandDispatcher:
    """Issues mutating Manager calls.

    Start, stop and restart either return once the job is queued or
    wait for the job to finish.
    """

    def __init__(
        self,
        transport: ManagerTransport,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            transport: Transport used for the remote calls
            clock: Monotonic clock used for job deadlines
        """
        self._logger = logging.getLogger(__name__)

        self._transport = transport
        self._clock = clock

    async def start(self, unit_name: str, wait_seconds: float = 0) -> str:
        """Start a unit.

        Args:
            unit_name: The name of the unit to start
            wait_seconds: 0 returns once the job is queued, otherwise
                wait up to this many seconds for the job to finish

        Returns:
            The job object path

        Raises:
            InvalidArgumentError: If the call or the job failed
            JobTimeoutError: If the job did not finish in time
        """
        return await self.run(unit_name, JobCommand.START, wait_seconds)

    async def stop(self, unit_name: str, wait_seconds: float = 0) -> str:
        """Stop a unit. See start().
        """
        return await self.run(unit_name, JobCommand.STOP, wait_seconds)

    async def restart(self, unit_name: str, wait_seconds: float = 0) -> str:
        """Restart a unit. See start().
        """
        return await self.run(unit_name, JobCommand.RESTART, wait_seconds)

    async def run(
        self,
        unit_name: str,
        command: JobCommand,
        wait_seconds: float,
    ) -> str:
        """Issue a job command, optionally waiting for its completion.
        """
        if wait_seconds < 0:
            raise InvalidArgumentError(
                f'invalid wait time {wait_seconds} for {command}'
            )

        if wait_seconds == 0:
            return await self.submit(unit_name, command)

        # Subscribe before submitting so the completion cannot be missed
        try:
            subscription = await self._transport.subscribe_job_removed()
        except (DBusError, ConnectionError) as e:
            self._logger.error('Failed to subscribe to JobRemoved: %s', e)
            raise InvalidArgumentError(
                f'failed to subscribe to job signals: {e}'
            ) from e

        job = Job(command, subscription, wait_seconds, self._clock)
        try:
            job.assign_path(await self.submit(unit_name, command))

            rc = await job.wait()
            if rc == ResultCode.ETIMEOUT:
                raise JobTimeoutError(
                    f'wait time {wait_seconds}s expired for job {job.path}'
                )
            if rc != ResultCode.SUCCESS:
                raise InvalidArgumentError(
                    f"job '{job.path}' canceled with '{job.result}'"
                )

            return job.path  # type: ignore
        finally:
            await job.release()

    async def submit(self, unit_name: str, command: JobCommand) -> str:
        """Queue a job for a unit.

        Returns:
            The job object path
        """
        body = await self._call_manager(
            command,
            'ss',
            [unit_name, UnitControlModes.REPLACE],
            f"{command} '{unit_name}'",
        )

        if not body or not isinstance(body[0], str):
            raise InvalidArgumentError(
                f'failed to parse response message of {command}'
            )

        job_path = body[0]
        self._logger.info('%s: queued service job as %s.', command, job_path)
        return job_path

    async def enable(self, unit_name: str) -> list[UnitFileChange]:
        """Enable a unit file and reload the manager.

        Returns:
            The changes applied by the manager
        """
        body = await self._call_manager(
            ManagerMethods.ENABLE_UNIT_FILES,
            'asbb',
            [[unit_name], False, True],
            f"EnableUnitFiles '{unit_name}'",
        )

        if len(body) != 2:
            raise InvalidArgumentError(
                'failed to parse response message of EnableUnitFiles'
            )

        carries_install_info = bool(body[0])
        changes = self._parse_changes(body[1])
        self._logger.info(
            'EnableUnitFiles %d %s',
            carries_install_info,
            self._format_changes(changes),
        )

        await self.reload()
        return changes

    async def disable(self, unit_name: str) -> list[UnitFileChange]:
        """Disable a unit file and reload the manager.

        Returns:
            The changes applied by the manager
        """
        body = await self._call_manager(
            ManagerMethods.DISABLE_UNIT_FILES,
            'asb',
            [[unit_name], False],
            f"DisableUnitFiles '{unit_name}'",
        )

        if len(body) != 1:
            raise InvalidArgumentError(
                'failed to parse response message of DisableUnitFiles'
            )

        changes = self._parse_changes(body[0])
        self._logger.info(
            'DisableUnitFiles %s',
            self._format_changes(changes),
        )

        await self.reload()
        return changes

    async def reload(self) -> None:
        """Reload all unit files.
        """
        await self._call_manager(ManagerMethods.RELOAD, description='Reload')

    async def _call_manager(
        self,
        member: str,
        signature: str = '',
        body: list[Any] | None = None,
        description: str = '',
    ) -> list[Any]:
        try:
            return await self._transport.call_method(
                SystemdDBusConstants.SERVICE_NAME,
                SystemdDBusConstants.OBJECT_PATH,
                SystemdDBusConstants.MANAGER_INTERFACE,
                member,
                signature,
                body,
            )
        except (DBusError, ConnectionError) as e:
            self._logger.error('%s - failed: %s', description or member, e)
            raise InvalidArgumentError(
                f'{description or member} - failed: {e}'
            ) from e

    def _parse_changes(self, raw_changes: Any) -> list[UnitFileChange]:
        try:
            return [UnitFileChange.from_dbus(change) for change in raw_changes]
        except (TypeError, ValueError, ValidationError) as e:
            self._logger.error('failed to parse response message: %s', e)
            raise InvalidArgumentError(
                f'failed to parse response message: {e}'
            ) from e

    @staticmethod
    def _format_changes(changes: list[UnitFileChange]) -> str:
        if not changes:
            return "'NULL' 'NULL' 'NULL'"
        return ', '.join(
            f"'{c.change_type}' '{c.file_name}' '{c.destination}'"
            for c in changes
        )
