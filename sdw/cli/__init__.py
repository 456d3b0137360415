import click
from dbus_next.constants import BusType

from sdw.cli.commands.codec import decode, encode
from sdw.cli.commands.query import (
    check_control_pid,
    check_pid,
    get_active_state,
    get_main_pid,
    get_sub_state,
    get_unit_by_pid,
    get_unit_file_state,
    get_version,
    is_supported,
)
from sdw.cli.commands.units import (
    disable,
    enable,
    reload,
    restart,
    start,
    stop,
)
from sdw.cli.runner import CliSettings
from sdw.config import setup_logger


@click.group()
@click.option(
    '-v',
    '--verbose',
    type=click.IntRange(0, 2),
    default=0,
    show_default=True,
    help='Trace level: 0 errors, 1 info, 2 debug.',
)
@click.option(
    '--user',
    is_flag=True,
    help='Talk to the user service manager instead of the system one.',
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, user: bool) -> None:
    """sdwc - Control and query systemd units.
    """
    setup_logger(verbose, console=True)
    ctx.obj = CliSettings(
        bus_type=BusType.SESSION if user else BusType.SYSTEM,
    )


def register_commands() -> None:
    """Attach every sdwc command to the group.
    """
    for command in (
        start,
        stop,
        restart,
        enable,
        disable,
        reload,
        get_version,
        is_supported,
        get_unit_by_pid,
        check_pid,
        check_control_pid,
        get_main_pid,
        get_active_state,
        get_sub_state,
        get_unit_file_state,
        encode,
        decode,
    ):
        cli.add_command(command)


def run_cli() -> None:
    """Run the CLI interface.
    """
    register_commands()

    cli()


__all__ = [
    'cli',
    'register_commands',
    'run_cli',
]
