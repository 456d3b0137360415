import asyncio
from collections.abc import Awaitable, Callable

import click
from dbus_next.constants import BusType
from pydantic import BaseModel

from sdw.client import SystemdWrapper
from sdw.models import OperationResult


class CliSettings(BaseModel):
    """Options shared by every sdwc command.
    """
    model_config = {'frozen': True}

    bus_type: BusType = BusType.SYSTEM


def exit_code(code: int) -> int:
    """Map a result code to a process exit status.
    """
    return abs(code) & 0xff


def run_operation(
    ctx: click.Context,
    operation: Callable[[SystemdWrapper], Awaitable[OperationResult]],
) -> OperationResult:
    """Run one wrapper operation on a fresh connection.
    """
    settings = ctx.find_object(CliSettings) or CliSettings()

    async def _run_operation() -> OperationResult:
        async with SystemdWrapper(bus_type=settings.bus_type) as wrapper:
            return await operation(wrapper)

    return asyncio.run(_run_operation())


def finish(
    ctx: click.Context,
    result: OperationResult,
    success_line: str,
    failure_line: str,
) -> None:
    """Print the outcome of an operation and exit with its code.
    """
    if result.ok:
        click.echo(success_line)
    else:
        click.echo(f'{failure_line} (rc={result.code})')
        if result.message:
            click.echo(f'Error: {result.message}', err=True)

    ctx.exit(exit_code(result.code))
