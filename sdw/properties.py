import logging

from dbus_next.errors import DBusError

from sdw.constants import SystemdDBusConstants
from sdw.errors import InvalidArgumentError
from sdw.transport import ManagerTransport
from sdw.types import PropertyType
from sdw.unit_name import unit_object_path


class PropertyAccessor:
    """Typed property reads against the service manager.
    """

    def __init__(self, transport: ManagerTransport) -> None:
        """Initialize the accessor.

        Args:
            transport: Transport used for the remote calls
        """
        self._logger = logging.getLogger(__name__)

        self._transport = transport

    async def get_property(
        self,
        object_path: str,
        service_name: str,
        interface_name: str,
        property_name: str,
        type_tag: PropertyType,
    ) -> str | int:
        """Read a single property restricted to one D-Bus type.

        Args:
            object_path: Object path of the remote object
            service_name: Bus name owning the object
            interface_name: Interface the property belongs to
            property_name: The property name to retrieve
            type_tag: Expected D-Bus signature of the value

        Returns:
            The property value

        Raises:
            InvalidArgumentError: If the call fails or the value has a
                different type
        """
        self._logger.debug(
            "'%s' '%s' '%s' '%s'",
            service_name,
            object_path,
            interface_name,
            property_name,
        )

        try:
            variant = await self._transport.get_property(
                service_name,
                object_path,
                interface_name,
                property_name,
            )
        except (DBusError, ConnectionError, ValueError) as e:
            self._logger.error(
                'Failed to get property %s.%s for %s: %s',
                interface_name,
                property_name,
                object_path,
                e,
            )
            raise InvalidArgumentError(
                f'failed to issue method call: {e}'
            ) from e

        signature = getattr(variant, 'signature', None)
        if signature != type_tag:
            self._logger.error(
                'Property %s has signature %s, expected %s',
                property_name,
                signature,
                type_tag,
            )
            raise InvalidArgumentError(
                f'failed to parse response message: {property_name} '
                f'has type {signature!r}, expected {type_tag.value!r}'
            )

        value = variant.value
        if type_tag == PropertyType.STRING:
            value = str(value)
        else:
            value = int(value)

        self._logger.info('unit property %s: %s', property_name, value)
        return value

    async def get_service_property(
        self,
        unit_name_encoded: str,
        property_name: str,
        type_tag: PropertyType,
    ) -> str | int:
        """Read a property of the Service interface of a unit.

        Args:
            unit_name_encoded: Encoded unit name
            property_name: e.g. 'MainPID'
            type_tag: Expected D-Bus signature of the value
        """
        return await self.get_property(
            unit_object_path(unit_name_encoded),
            SystemdDBusConstants.SERVICE_NAME,
            SystemdDBusConstants.SERVICE_INTERFACE,
            property_name,
            type_tag,
        )

    async def get_unit_property(
        self,
        unit_name_encoded: str,
        service_name: str,
        interface_name: str,
        property_name: str,
        type_tag: PropertyType,
    ) -> str | int:
        """Read a property of any interface on a unit object.
        """
        return await self.get_property(
            unit_object_path(unit_name_encoded),
            service_name,
            interface_name,
            property_name,
            type_tag,
        )
