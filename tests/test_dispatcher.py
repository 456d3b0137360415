"""Tests for mutating manager calls."""

import asyncio

import pytest
from dbus_next.errors import DBusError

from sdw.dispatcher import CommandDispatcher
from sdw.errors import InvalidArgumentError, JobTimeoutError
from sdw.models import UnitFileChange
from sdw.types import JobCommand
from tests.conftest import JOB_PATH, OTHER_JOB_PATH, FakeTransport, job_event


def unit_error() -> DBusError:
    return DBusError(
        'org.freedesktop.systemd1.NoSuchUnit',
        'Unit foo.service not found.',
    )


@pytest.fixture
def dispatcher(transport: FakeTransport) -> CommandDispatcher:
    return CommandDispatcher(transport)


# ============================================================================
# Tests: Job commands
# ============================================================================


class TestSubmit:
    """Tests for commands returning once the job is queued."""

    @pytest.mark.asyncio
    async def test_async_start_does_not_subscribe(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()

        job_path = await dispatcher.start('foo.service')

        assert job_path == JOB_PATH
        assert transport.match_added == 0
        assert transport.calls == [
            (
                'org.freedesktop.systemd1.Manager',
                'StartUnit',
                ['foo.service', 'replace'],
            ),
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ('method', 'member'),
        [('stop', 'StopUnit'), ('restart', 'RestartUnit')],
    )
    async def test_command_members(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
        method: str,
        member: str,
    ):
        await transport.connect()

        await getattr(dispatcher, method)('foo.service')

        assert transport.members == [member]

    @pytest.mark.asyncio
    async def test_remote_error_is_invalid_argument(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.errors['StartUnit'] = unit_error()

        with pytest.raises(InvalidArgumentError, match='not found'):
            await dispatcher.start('foo.service')

    @pytest.mark.asyncio
    async def test_non_path_reply_is_rejected(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.replies['StartUnit'] = []

        with pytest.raises(InvalidArgumentError):
            await dispatcher.start('foo.service')

    @pytest.mark.asyncio
    async def test_negative_wait_is_rejected(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()

        with pytest.raises(InvalidArgumentError):
            await dispatcher.run('foo.service', JobCommand.START, -1)

        assert transport.calls == []


class TestSynchronousRun:
    """Tests for commands waiting on the job result."""

    @pytest.mark.asyncio
    async def test_subscribes_before_submitting(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        match_count_at_submit = []

        def on_start() -> None:
            match_count_at_submit.append(transport.match_added)
            transport.publish_job_removed(job_event('done'))

        transport.hooks['StartUnit'] = on_start

        job_path = await dispatcher.start('foo.service', wait_seconds=5)

        assert job_path == JOB_PATH
        assert match_count_at_submit == [1]
        assert transport.match_removed == 1

    @pytest.mark.asyncio
    async def test_waits_past_foreign_events(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        loop = asyncio.get_running_loop()

        def on_restart() -> None:
            loop.call_later(
                0.01,
                transport.publish_job_removed,
                job_event('failed', OTHER_JOB_PATH),
            )
            loop.call_later(
                0.02,
                transport.publish_job_removed,
                job_event('done'),
            )

        transport.hooks['RestartUnit'] = on_restart

        assert await dispatcher.restart('foo.service', 5) == JOB_PATH

    @pytest.mark.asyncio
    async def test_failed_job_raises(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.hooks['StopUnit'] = lambda: transport.publish_job_removed(
            job_event('canceled')
        )

        with pytest.raises(InvalidArgumentError, match='canceled'):
            await dispatcher.stop('foo.service', 5)

        assert transport.open_subscriptions == 0

    @pytest.mark.asyncio
    async def test_timeout_raises(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()

        with pytest.raises(JobTimeoutError):
            await dispatcher.start('foo.service', 0.05)

        assert transport.match_removed == 1

    @pytest.mark.asyncio
    async def test_submit_failure_releases_subscription(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.errors['StartUnit'] = unit_error()

        with pytest.raises(InvalidArgumentError):
            await dispatcher.start('foo.service', 5)

        assert transport.match_added == 1
        assert transport.match_removed == 1
        assert transport.open_subscriptions == 0

    @pytest.mark.asyncio
    async def test_lost_bus_during_teardown_keeps_result(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()

        async def failing_remove() -> None:
            raise ConnectionError('Not connected to D-Bus.')

        transport._remove_job_removed_match = failing_remove
        transport.hooks['StartUnit'] = lambda: transport.publish_job_removed(
            job_event('done')
        )

        assert await dispatcher.start('foo.service', 5) == JOB_PATH
        assert transport.open_subscriptions == 0

    @pytest.mark.asyncio
    async def test_concurrent_waits_resolve_independently(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        paths = iter([OTHER_JOB_PATH, JOB_PATH])
        transport.hooks['StartUnit'] = lambda: transport.replies.update(
            StartUnit=[next(paths)]
        )
        transport.replies['StartUnit'] = []
        loop = asyncio.get_running_loop()
        loop.call_later(
            0.02,
            transport.publish_job_removed,
            job_event('done', JOB_PATH),
        )
        loop.call_later(
            0.04,
            transport.publish_job_removed,
            job_event('done', OTHER_JOB_PATH),
        )

        results = await asyncio.gather(
            dispatcher.start('bar.service', 5),
            dispatcher.start('foo.service', 5),
        )

        assert sorted(results) == sorted([OTHER_JOB_PATH, JOB_PATH])
        assert transport.match_added == 1
        assert transport.match_removed == 1


# ============================================================================
# Tests: Unit files
# ============================================================================


class TestUnitFiles:
    """Tests for enable, disable and reload."""

    @pytest.mark.asyncio
    async def test_enable_reloads_after_success(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.replies['EnableUnitFiles'] = [
            True,
            [[
                'symlink',
                '/etc/systemd/system/multi-user.target.wants/foo.service',
                '/usr/lib/systemd/system/foo.service',
            ]],
        ]

        changes = await dispatcher.enable('foo.service')

        assert transport.members == ['EnableUnitFiles', 'Reload']
        assert transport.calls[0][2] == [['foo.service'], False, True]
        assert changes == [
            UnitFileChange(
                change_type='symlink',
                file_name=(
                    '/etc/systemd/system/multi-user.target.wants/foo.service'
                ),
                destination='/usr/lib/systemd/system/foo.service',
            ),
        ]

    @pytest.mark.asyncio
    async def test_enable_failure_skips_reload(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.errors['EnableUnitFiles'] = unit_error()

        with pytest.raises(InvalidArgumentError):
            await dispatcher.enable('foo.service')

        assert 'Reload' not in transport.members

    @pytest.mark.asyncio
    async def test_enable_malformed_reply_skips_reload(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.replies['EnableUnitFiles'] = [True]

        with pytest.raises(InvalidArgumentError):
            await dispatcher.enable('foo.service')

        assert 'Reload' not in transport.members

    @pytest.mark.asyncio
    async def test_disable_reloads_after_success(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.replies['DisableUnitFiles'] = [[]]

        changes = await dispatcher.disable('foo.service')

        assert changes == []
        assert transport.members == ['DisableUnitFiles', 'Reload']
        assert transport.calls[0][2] == [['foo.service'], False]

    @pytest.mark.asyncio
    async def test_reload_failure_is_reported(
        self,
        transport: FakeTransport,
        dispatcher: CommandDispatcher,
    ):
        await transport.connect()
        transport.replies['DisableUnitFiles'] = [[]]
        transport.errors['Reload'] = DBusError(
            'org.freedesktop.DBus.Error.AccessDenied',
            'Access denied',
        )

        with pytest.raises(InvalidArgumentError):
            await dispatcher.disable('foo.service')
