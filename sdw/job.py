import asyncio
import logging
import time
from collections.abc import Callable

from sdw.models import JobRemovedEvent
from sdw.transport import JobRemovedSubscription
from sdw.types import JobCommand, JobResult, JobStatus, ResultCode


class Job:
    """A queued unit job whose completion is awaited synchronously.

    The manager broadcasts JobRemoved for every job in the system, so
    events are matched to this job by object path only. The path is
    assigned once the command call has returned.
    """

    def __init__(
        self,
        command: JobCommand,
        subscription: JobRemovedSubscription,
        wait_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the job.

        Args:
            command: The command that queued the job
            subscription: Channel delivering JobRemoved events, opened
                before the command was issued
            wait_seconds: Upper bound for wait()
            clock: Monotonic clock in seconds
        """
        self._logger = logging.getLogger(__name__)

        self._command = command
        self._subscription = subscription
        self._wait_seconds = wait_seconds
        self._clock = clock
        self._deadline = clock() + wait_seconds
        self._status = JobStatus.UNKNOWN
        self._path: str | None = None
        self._result: str | None = None
        self._released = False

    @property
    def command(self) -> JobCommand:
        return self._command

    @property
    def status(self) -> JobStatus:
        return self._status

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def result(self) -> str | None:
        return self._result

    @property
    def deadline(self) -> float:
        return self._deadline

    @property
    def released(self) -> bool:
        return self._released

    def assign_path(self, path: str) -> None:
        """Set the correlation path returned by the command call.

        Raises:
            ValueError: If a path was already assigned
        """
        if self._path is not None:
            raise ValueError(
                f'job path already set to {self._path}, got {path}'
            )
        self._path = path

    def handle_event(self, event: JobRemovedEvent) -> None:
        """Apply one JobRemoved event to this job.

        Events of other jobs leave the state untouched. 'skipped' is
        recorded but does not resolve the job.
        """
        if self._path is None:
            self._logger.error('invalid job path (None)')
            return

        if event.job_path != self._path:
            self._logger.info(
                "'%s' ignore signal for %u result: '%s'",
                self._path,
                event.job_id,
                event.result,
            )
            return

        if self._status is not JobStatus.UNKNOWN:
            return

        self._result = event.result

        if event.result == JobResult.DONE:
            self._logger.info("job '%s' finished", event.job_path)
            self._status = JobStatus.DONE
        elif event.result != JobResult.SKIPPED:
            self._logger.error(
                "job '%s' canceled with '%s'",
                event.job_path,
                event.result,
            )
            self._status = JobStatus.FAILED

    async def wait(self) -> ResultCode:
        """Wait until the job resolves or the deadline passes.

        Returns:
            SUCCESS if the job is done, ETIMEOUT if the deadline passed
            first and EINVAL for any other outcome
        """
        self._logger.info(
            'waiting %ss for job %s to finish',
            self._wait_seconds,
            self._path,
        )

        while self._status is JobStatus.UNKNOWN:
            remaining = self._deadline - self._clock()
            if remaining <= 0:
                self._logger.info(
                    'wait time %s expired for job %s',
                    self._wait_seconds,
                    self._path,
                )
                return ResultCode.ETIMEOUT

            try:
                event = await asyncio.wait_for(
                    self._subscription.next_event(),
                    remaining,
                )
            except asyncio.TimeoutError:
                continue
            except ConnectionError as e:
                self._logger.error('waiting for job %s failed: %s',
                                   self._path, e)
                return ResultCode.EINVAL

            self.handle_event(event)

        if self._status is JobStatus.DONE:
            return ResultCode.SUCCESS

        return ResultCode.EINVAL

    async def release(self) -> None:
        """Close the subscription and drop the captured result.

        Only the first call has an effect.
        """
        if self._released:
            return

        self._released = True
        self._result = None
        await self._subscription.close()
