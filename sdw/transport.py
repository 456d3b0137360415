import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from dbus_next import Message, MessageType
from dbus_next.aio.message_bus import MessageBus
from dbus_next.constants import BusType
from dbus_next.errors import DBusError
from dbus_next.signature import Variant
from pydantic import ValidationError

from sdw.constants import (
    JOB_REMOVED_MATCH,
    DBusConstants,
    ManagerMethods,
    SystemdDBusConstants,
)
from sdw.models import JobRemovedEvent


class JobRemovedSubscription:
    """Channel delivering JobRemoved events to a single waiting job.

    Every open subscription receives every JobRemoved signal seen on the
    connection; picking out the right job is left to the consumer.
    """

    def __init__(
        self,
        on_close: Callable[['JobRemovedSubscription'], Awaitable[None]],
    ) -> None:
        self._queue: asyncio.Queue[JobRemovedEvent | None] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: JobRemovedEvent) -> None:
        """Queue an event for the consumer.
        """
        if not self._closed:
            self._queue.put_nowait(event)

    def abort(self) -> None:
        """Wake the consumer because the connection went away.
        """
        if not self._closed:
            self._queue.put_nowait(None)

    async def next_event(self) -> JobRemovedEvent:
        """Wait for the next event.

        Raises:
            ConnectionError: If the connection was lost
        """
        event = await self._queue.get()
        if event is None:
            raise ConnectionError(
                'D-Bus connection lost while waiting for job signals.'
            )
        return event

    async def close(self) -> None:
        """Stop receiving events. Further calls are no-ops.
        """
        if self._closed:
            return

        self._closed = True
        await self._on_close(self)


class ManagerTransport(ABC):
    """Capability interface for talking to the service manager.

    Implementations provide raw method calls and property reads.
    JobRemoved fan-out to per-job subscriptions is shared here.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        self._subscriptions: set[JobRemovedSubscription] = set()
        self._match_lock = asyncio.Lock()

    @property
    @abstractmethod
    def connected(self) -> bool:
        """Whether the transport currently holds an open connection.
        """

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection.

        Raises:
            ConnectionError: If the connection cannot be established
        """

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection if it is open.
        """

    @abstractmethod
    async def call_method(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = '',
        body: list[Any] | None = None,
    ) -> list[Any]:
        """Call a remote method and return the reply body.

        Raises:
            DBusError: If the remote side replied with an error
            ConnectionError: If the transport is not connected
        """

    @abstractmethod
    async def _add_job_removed_match(self) -> None:
        """Start routing JobRemoved signals to this connection.
        """

    @abstractmethod
    async def _remove_job_removed_match(self) -> None:
        """Stop routing JobRemoved signals to this connection.
        """

    async def get_property(
        self,
        destination: str,
        path: str,
        interface: str,
        property_name: str,
    ) -> Variant:
        """Read a remote property through org.freedesktop.DBus.Properties.

        Returns:
            The property value as a variant
        """
        body = await self.call_method(
            destination,
            path,
            DBusConstants.PROPERTIES_INTERFACE,
            'Get',
            'ss',
            [interface, property_name],
        )
        if not body:
            raise ValueError(
                f'Empty reply reading {interface}.{property_name}'
            )
        return body[0]

    async def subscribe_job_removed(self) -> JobRemovedSubscription:
        """Open a new JobRemoved channel.

        The match rule is installed with the first open subscription and
        removed with the last one.
        """
        async with self._match_lock:
            if not self._subscriptions:
                await self._add_job_removed_match()

            subscription = JobRemovedSubscription(self._release_subscription)
            self._subscriptions.add(subscription)

        self._logger.debug(
            'Opened JobRemoved subscription (%d open).',
            len(self._subscriptions),
        )
        return subscription

    async def _release_subscription(
        self,
        subscription: JobRemovedSubscription,
    ) -> None:
        async with self._match_lock:
            self._subscriptions.discard(subscription)
            self._logger.debug(
                'Closed JobRemoved subscription (%d open).',
                len(self._subscriptions),
            )

            if self._subscriptions or not self.connected:
                return

            try:
                await self._remove_job_removed_match()
            except (DBusError, ConnectionError) as e:
                self._logger.warning(
                    'Failed to remove JobRemoved match: %s',
                    e,
                )

    def publish_job_removed(self, event: JobRemovedEvent) -> None:
        """Fan an event out to every open subscription.
        """
        for subscription in list(self._subscriptions):
            subscription.deliver(event)

    def abort_subscriptions(self) -> None:
        """Wake every open subscription after a connection loss.
        """
        for subscription in list(self._subscriptions):
            subscription.abort()


class DBusNextTransport(ManagerTransport):
    """ManagerTransport backed by a dbus-next asyncio MessageBus.
    """

    def __init__(self, bus_type: BusType = BusType.SYSTEM) -> None:
        """
        Initializes the transport.

        Args:
            bus_type: The D-Bus bus type to connect to.
        """
        super().__init__()

        self._bus_type = bus_type
        self._bus: MessageBus | None = None
        self._disconnect_watcher: asyncio.Task | None = None
        self._manager_subscribed = False
        self._connection_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._bus is not None and self._bus.connected

    async def connect(self) -> None:
        """Connects to the D-Bus with a single attempt.
        """
        async with self._connection_lock:
            if self.connected:
                self._logger.debug('Already connected to D-Bus.')
                return

            try:
                self._logger.info(
                    'Connecting to the %s bus...',
                    self._bus_type.name.lower(),
                )
                self._bus = await MessageBus(bus_type=self._bus_type).connect()
            except DBusError as e:
                self._logger.error('Failed to connect to D-Bus: %s', e)
                raise ConnectionError(
                    f'failed to connect to systemd D-Bus: {e}'
                ) from e
            except Exception as e:
                self._logger.error(
                    'An unexpected error occurred during D-Bus connection: %s',
                    e,
                    exc_info=True,
                )
                raise ConnectionError(
                    f'failed to connect to systemd D-Bus: {e}'
                ) from e

            self._bus.add_message_handler(self._on_message)
            self._disconnect_watcher = asyncio.create_task(
                self._watch_disconnect(self._bus)
            )
            self._manager_subscribed = False
            self._logger.info('Successfully connected to D-Bus.')

    async def disconnect(self) -> None:
        """Disconnects from the D-Bus if connected.
        """
        async with self._connection_lock:
            if self._bus is None:
                return

            self._logger.info('Disconnecting from D-Bus.')
            self._bus.remove_message_handler(self._on_message)
            self._bus.disconnect()
            self._bus = None
            self.abort_subscriptions()

            if self._disconnect_watcher is not None:
                self._disconnect_watcher.cancel()
                self._disconnect_watcher = None

    async def call_method(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = '',
        body: list[Any] | None = None,
    ) -> list[Any]:
        bus = self._get_bus()

        self._logger.debug(
            "'%s' '%s' '%s' '%s' %s",
            destination,
            path,
            interface,
            member,
            body or [],
        )
        reply = await bus.call(
            Message(
                destination=destination,
                path=path,
                interface=interface,
                member=member,
                signature=signature,
                body=body or [],
            )
        )

        if reply.message_type == MessageType.ERROR:
            text = str(reply.body[0]) if reply.body else ''
            raise DBusError(reply.error_name, text, reply)

        return reply.body

    async def _add_job_removed_match(self) -> None:
        await self.call_method(
            DBusConstants.SERVICE_NAME,
            DBusConstants.OBJECT_PATH,
            DBusConstants.INTERFACE,
            'AddMatch',
            's',
            [JOB_REMOVED_MATCH],
        )
        self._logger.info('AddMatch(%s)', JOB_REMOVED_MATCH)

        if not self._manager_subscribed:
            await self._subscribe_manager()

    async def _remove_job_removed_match(self) -> None:
        await self.call_method(
            DBusConstants.SERVICE_NAME,
            DBusConstants.OBJECT_PATH,
            DBusConstants.INTERFACE,
            'RemoveMatch',
            's',
            [JOB_REMOVED_MATCH],
        )
        self._logger.debug('RemoveMatch(%s)', JOB_REMOVED_MATCH)

        if self._manager_subscribed:
            await self._unsubscribe_manager()

    async def _subscribe_manager(self) -> None:
        """Ask the manager to emit job signals to this connection.
        """
        try:
            await self.call_method(
                SystemdDBusConstants.SERVICE_NAME,
                SystemdDBusConstants.OBJECT_PATH,
                SystemdDBusConstants.MANAGER_INTERFACE,
                ManagerMethods.SUBSCRIBE,
            )
            self._manager_subscribed = True
        except DBusError as e:
            # Signals still arrive when another client has subscribed
            self._logger.warning('Manager Subscribe failed: %s', e)

    async def _unsubscribe_manager(self) -> None:
        """Stop the job signals requested by _subscribe_manager().
        """
        self._manager_subscribed = False
        try:
            await self.call_method(
                SystemdDBusConstants.SERVICE_NAME,
                SystemdDBusConstants.OBJECT_PATH,
                SystemdDBusConstants.MANAGER_INTERFACE,
                ManagerMethods.UNSUBSCRIBE,
            )
        except DBusError as e:
            self._logger.warning('Manager Unsubscribe failed: %s', e)

    def _on_message(self, message: Message) -> None:
        """Route JobRemoved signals to the open subscriptions.
        """
        if message.message_type != MessageType.SIGNAL:
            return None
        if message.interface != SystemdDBusConstants.MANAGER_INTERFACE:
            return None
        if message.member != SystemdDBusConstants.JOB_REMOVED_SIGNAL:
            return None
        if message.path != SystemdDBusConstants.OBJECT_PATH:
            return None

        try:
            event = JobRemovedEvent.from_signal_body(message.body)
        except (ValueError, ValidationError) as e:
            self._logger.error('Malformed JobRemoved signal: %s', e)
            return None

        self._logger.info(
            "id: %u, path: '%s', unit: '%s', result: '%s'",
            event.job_id,
            event.job_path,
            event.unit,
            event.result,
        )
        self.publish_job_removed(event)
        return None

    async def _watch_disconnect(self, bus: MessageBus) -> None:
        try:
            await bus.wait_for_disconnect()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.warning('D-Bus connection closed with error: %s', e)

        if self._subscriptions:
            self._logger.warning(
                'D-Bus connection lost with %d job waiters pending.',
                len(self._subscriptions),
            )
        self.abort_subscriptions()

    def _get_bus(self) -> MessageBus:
        if not self.connected:
            raise ConnectionError('Not connected to D-Bus.')
        return self._bus  # type: ignore
