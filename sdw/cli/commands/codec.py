import click

from sdw.cli.runner import finish, run_operation


@click.command('encode')
@click.argument('unit_name')
@click.pass_context
def encode(ctx: click.Context, unit_name: str) -> None:
    """Encode a unit name into its object path segment.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.encode(unit_name))
    finish(
        ctx,
        result,
        f"encoded: '{result.value}'",
        f"Encode '{unit_name}' failed",
    )


@click.command('decode')
@click.argument('encoded')
@click.pass_context
def decode(ctx: click.Context, encoded: str) -> None:
    """Decode an object path segment into a unit name.
    """
    result = run_operation(ctx, lambda wrapper: wrapper.decode(encoded))
    finish(
        ctx,
        result,
        f"decoded: '{result.value}'",
        f"Decode '{encoded}' failed",
    )
