import logging
import sys

from systemd.journal import JournalHandler

from sdw.constants import TraceLevels

_TRACE_LEVELS = {
    TraceLevels.ERROR: logging.ERROR,
    TraceLevels.INFO: logging.INFO,
    TraceLevels.DEBUG: logging.DEBUG,
}


def setup_logger(
    trace_level: int = TraceLevels.ERROR,
    console: bool = False,
) -> None:
    """Configure logging to use systemd journal.

    Args:
        trace_level: Initial trace level, see set_trace_level()
        console: Also write records to stderr
    """
    app_logger = logging.getLogger('sdw')
    set_trace_level(trace_level)

    if not any(isinstance(h, JournalHandler) for h in app_logger.handlers):
        journal_handler = JournalHandler(SYSLOG_IDENTIFIER='sdw')
        app_logger.addHandler(journal_handler)

    if console and not any(
        type(h) is logging.StreamHandler for h in app_logger.handlers
    ):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter('%(name)s: %(levelname)s: %(message)s')
        )
        app_logger.addHandler(console_handler)


def set_trace_level(level: int) -> None:
    """Set the verbosity of the sdw loggers.

    Args:
        level: 0 (errors), 1 (info) or 2 (debug); other values are ignored
    """
    if level not in _TRACE_LEVELS:
        return

    logging.getLogger('sdw').setLevel(_TRACE_LEVELS[level])
