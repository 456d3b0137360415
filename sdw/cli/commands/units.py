import click

from sdw.cli.runner import finish, run_operation

unit_option = click.option(
    '-u',
    '--unit',
    'unit_name',
    required=True,
    help='Unit name, e.g. foo.service.',
)
wait_option = click.option(
    '-w',
    '--wait',
    'wait_seconds',
    type=click.FloatRange(min=0),
    default=0,
    show_default=True,
    help='Seconds to wait for the job to finish, 0 to only queue it.',
)


@click.command('start')
@unit_option
@wait_option
@click.pass_context
def start(ctx: click.Context, unit_name: str, wait_seconds: float) -> None:
    """Start a unit.
    """
    result = run_operation(
        ctx,
        lambda wrapper: wrapper.start(unit_name, wait_seconds),
    )
    finish(ctx, result, f"started '{unit_name}'", f"Start '{unit_name}' failed")


@click.command('stop')
@unit_option
@wait_option
@click.pass_context
def stop(ctx: click.Context, unit_name: str, wait_seconds: float) -> None:
    """Stop a unit.
    """
    result = run_operation(
        ctx,
        lambda wrapper: wrapper.stop(unit_name, wait_seconds),
    )
    finish(ctx, result, f"stopped '{unit_name}'", f"Stop '{unit_name}' failed")


@click.command('restart')
@unit_option
@wait_option
@click.pass_context
def restart(ctx: click.Context, unit_name: str, wait_seconds: float) -> None:
    """Restart a unit.
    """
    result = run_operation(
        ctx,
        lambda wrapper: wrapper.restart(unit_name, wait_seconds),
    )
    finish(
        ctx,
        result,
        f"restarted '{unit_name}'",
        f"Restart '{unit_name}' failed",
    )


@click.command('enable')
@unit_option
@click.pass_context
def enable(ctx: click.Context, unit_name: str) -> None:
    """Enable a unit file and reload the manager.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.enable(unit_name))
    finish(
        ctx,
        result,
        f"enabled '{unit_name}'",
        f"Enable '{unit_name}' failed",
    )


@click.command('disable')
@unit_option
@click.pass_context
def disable(ctx: click.Context, unit_name: str) -> None:
    """Disable a unit file and reload the manager.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.disable(unit_name))
    finish(
        ctx,
        result,
        f"disabled '{unit_name}'",
        f"Disable '{unit_name}' failed",
    )


@click.command('reload')
@click.pass_context
def reload(ctx: click.Context) -> None:
    """Reload all unit files.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.reload())
    finish(ctx, result, 'reloaded units', 'Reload failed')
