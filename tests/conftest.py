"""Shared fixtures: an in-memory manager transport and notifier."""

from collections.abc import Callable
from typing import Any

import pytest
from dbus_next.errors import DBusError
from dbus_next.signature import Variant

from sdw.client import SystemdWrapper
from sdw.constants import DBusConstants, SystemdDBusConstants
from sdw.errors import NotifySocketError
from sdw.models import JobRemovedEvent
from sdw.notify import Notifier
from sdw.transport import ManagerTransport

JOB_PATH = '/org/freedesktop/systemd1/job/42'
OTHER_JOB_PATH = '/org/freedesktop/systemd1/job/41'
UNIT_PATH_PREFIX = '/org/freedesktop/systemd1/unit'


def job_event(
    result: str,
    job_path: str = JOB_PATH,
    unit: str = 'foo.service',
) -> JobRemovedEvent:
    return JobRemovedEvent(
        job_id=int(job_path.rsplit('/', 1)[-1]),
        job_path=job_path,
        unit=unit,
        result=result,
    )


class FakeTransport(ManagerTransport):
    """In-memory ManagerTransport recording every call."""

    def __init__(self, version: str | None = '252 (252.22-1)') -> None:
        super().__init__()
        self.fail_connect = False
        self.connect_calls = 0
        self.calls: list[tuple[str, str, list[Any]]] = []
        self.replies: dict[str, list[Any]] = {
            'StartUnit': [JOB_PATH],
            'StopUnit': [JOB_PATH],
            'RestartUnit': [JOB_PATH],
            'Reload': [],
        }
        self.errors: dict[str, Exception] = {}
        self.hooks: dict[str, Callable[[], None]] = {}
        self.properties: dict[tuple[str, str], Variant] = {}
        self.match_added = 0
        self.match_removed = 0
        self._connected = False

        if version is not None:
            self.set_property(
                SystemdDBusConstants.OBJECT_PATH,
                'Version',
                Variant('s', version),
            )

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def members(self) -> list[str]:
        return [member for _, member, _ in self.calls]

    @property
    def open_subscriptions(self) -> int:
        return len(self._subscriptions)

    def set_property(self, path: str, name: str, value: Variant) -> None:
        self.properties[(path, name)] = value

    def set_unit_property(self, encoded: str, name: str, value: Variant) -> None:
        self.set_property(f'{UNIT_PATH_PREFIX}/{encoded}', name, value)

    def property_reads(self, name: str) -> int:
        return sum(
            1
            for _, member, body in self.calls
            if member == 'Get' and body[1] == name
        )

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_connect:
            raise ConnectionError('no bus available')
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False
        self.abort_subscriptions()

    async def call_method(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = '',
        body: list[Any] | None = None,
    ) -> list[Any]:
        if not self._connected:
            raise ConnectionError('Not connected to D-Bus.')

        body = body or []
        self.calls.append((interface, member, body))

        if member in self.errors:
            raise self.errors[member]

        if interface == DBusConstants.PROPERTIES_INTERFACE:
            key = (path, body[1])
            if key not in self.properties:
                raise DBusError(
                    'org.freedesktop.DBus.Error.UnknownProperty',
                    f'Unknown property {body[1]}',
                )
            return [self.properties[key]]

        if member in self.hooks:
            self.hooks[member]()

        return self.replies.get(member, [])

    async def _add_job_removed_match(self) -> None:
        self.match_added += 1

    async def _remove_job_removed_match(self) -> None:
        self.match_removed += 1


class FakeNotifier(Notifier):
    """Notifier recording sent states."""

    def __init__(self, has_socket: bool = True) -> None:
        self.has_socket = has_socket
        self.sent: list[str] = []

    def notify(self, state: str) -> None:
        if not self.has_socket:
            raise NotifySocketError(
                'message could not be sent, NOTIFY_SOCKET not set'
            )
        self.sent.append(state)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def wrapper(transport: FakeTransport, notifier: FakeNotifier) -> SystemdWrapper:
    return SystemdWrapper(transport=transport, notifier=notifier)
