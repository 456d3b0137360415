import click

from sdw.cli.commands.units import unit_option
from sdw.cli.runner import exit_code, finish, run_operation


def pid_option(required: bool = False):
    defaults = {} if required else {'default': 0, 'show_default': True}
    return click.option(
        '-p',
        '--pid',
        type=click.IntRange(min=0),
        required=required,
        help='Process id.',
        **defaults,
    )


@click.command('get-version')
@click.pass_context
def get_version(ctx: click.Context) -> None:
    """Print the systemd version.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.get_version())
    finish(ctx, result, f"version: '{result.value}'", 'GetVersion failed')


@click.command('is-supported')
@click.pass_context
def is_supported(ctx: click.Context) -> None:
    """Check whether the running systemd version is supported.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.is_supported())
    click.echo(f"systemd version is{'' if result.ok else ' not'} supported")
    ctx.exit(exit_code(result.code))


@click.command('get-unit-by-pid')
@pid_option(required=True)
@click.pass_context
def get_unit_by_pid(ctx: click.Context, pid: int) -> None:
    """Print the unit object path a process belongs to.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.get_unit_by_pid(pid))
    finish(
        ctx,
        result,
        f"found unit '{result.value}' for pid '{pid}'",
        f"GetUnitByPID '{pid}' failed",
    )


@click.command('check-pid')
@unit_option
@pid_option()
@click.pass_context
def check_pid(ctx: click.Context, unit_name: str, pid: int) -> None:
    """Check that a process (0 for sdwc itself) belongs to a unit.
    """
    result = run_operation(
        ctx,
        lambda wrapper: wrapper.check_pid(unit_name, pid),
    )
    finish(
        ctx,
        result,
        f"found unit '{unit_name}' for pid '{pid}'",
        f"CheckPid '{unit_name}' pid '{pid}' failed",
    )


@click.command('check-control-pid')
@unit_option
@pid_option(required=True)
@click.pass_context
def check_control_pid(ctx: click.Context, unit_name: str, pid: int) -> None:
    """Check that a process is the control process of a unit.
    """
    result = run_operation(
        ctx,
        lambda wrapper: wrapper.check_control_pid(unit_name, pid),
    )
    finish(
        ctx,
        result,
        f"found unit '{unit_name}' for control pid '{pid}'",
        f"CheckControlPID '{unit_name}' pid '{pid}' failed",
    )


@click.command('get-main-pid')
@unit_option
@click.pass_context
def get_main_pid(ctx: click.Context, unit_name: str) -> None:
    """Print the main process id of a service.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.get_main_pid(unit_name))
    finish(
        ctx,
        result,
        f"mainPID: '{result.value}'",
        f"GetMainPID '{unit_name}' failed",
    )


@click.command('get-active-state')
@unit_option
@click.pass_context
def get_active_state(ctx: click.Context, unit_name: str) -> None:
    """Print the ActiveState of a unit.
    """
    result = run_operation(
        ctx,
        lambda wrapper: wrapper.get_active_state(unit_name),
    )
    finish(
        ctx,
        result,
        f"ActiveState: {result.code} '{result.value}'",
        f"GetActiveState '{unit_name}' failed",
    )


@click.command('get-sub-state')
@unit_option
@click.pass_context
def get_sub_state(ctx: click.Context, unit_name: str) -> None:
    """Print the SubState of a unit.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.get_sub_state(unit_name))
    finish(
        ctx,
        result,
        f"SubState: {result.code} '{result.value}'",
        f"GetSubState '{unit_name}' failed",
    )


@click.command('get-unit-file-state')
@unit_option
@click.pass_context
def get_unit_file_state(ctx: click.Context, unit_name: str) -> None:
    """Print the unit file state of a unit.
    """
    result = run_operation(
        ctx,
        lambda wrapper: wrapper.get_unit_file_state(unit_name),
    )
    finish(
        ctx,
        result,
        f"UnitFileState: {result.code} '{result.value}'",
        f"GetUnitFileState '{unit_name}' failed",
    )
