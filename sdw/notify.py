import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping

from systemd import daemon

from sdw.errors import InvalidArgumentError, NotifySocketError


class Notifier(ABC):
    """Side channel for lifecycle notifications to the supervisor.
    """

    @abstractmethod
    def notify(self, state: str) -> None:
        """Send one state line.

        Raises:
            NotifySocketError: If no notification socket is available
            InvalidArgumentError: If sending failed
        """


class SystemdNotifier(Notifier):
    """Notifier using sd_notify through systemd-python.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def notify(self, state: str) -> None:
        try:
            sent = daemon.notify(state)
        except OSError as e:
            self._logger.error('message could not be sent %s', e)
            raise InvalidArgumentError(
                f'message could not be sent: {e}'
            ) from e

        if not sent:
            self._logger.error(
                'message could not be sent, NOTIFY_SOCKET not set'
            )
            raise NotifySocketError(
                'message could not be sent, NOTIFY_SOCKET not set'
            )

        self._logger.info("notify('%s')", state)


def is_supervised(environ: Mapping[str, str] | None = None) -> bool:
    """Check whether this process runs as a service of the manager.

    For callers deciding whether to send readiness notifications; the
    wrapper itself never consults it.

    Args:
        environ: Environment to inspect, defaults to os.environ

    Returns:
        True if the parent is PID 1 and INVOCATION_ID is set
    """
    environ = os.environ if environ is None else environ
    return os.getppid() == 1 and bool(environ.get('INVOCATION_ID'))
