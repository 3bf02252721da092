import click
import logging
import ssl
from rich.console import Console
from rich.table import Table

from nutline.config import settings
from nutline.nut.client import NUTClient
from nutline.nut.session import Session, SessionOptions
from nutline.nut.ups import UPS
from nutline.utils.logging import setup_logging
from .utils import handle_async_command, handle_nut_errors

console = Console()


@click.group()
@click.option('--host', default=settings.NUT_HOST, show_default=True, help='NUT server host.')
@click.option('--port', default=settings.NUT_PORT, show_default=True, type=int, help='NUT server port.')
@click.option('--tls', is_flag=True, default=settings.USE_TLS, help='Upgrade the connection with STARTTLS.')
@click.option('--insecure', is_flag=True, help='Skip TLS certificate verification.')
@click.option('--verbose', '-v', is_flag=True, help='Enables verbose mode.')
@click.option('--quiet', '-q', is_flag=True, help='Enables quiet mode.')
@click.pass_context
def app(ctx, host, port, tls, insecure, verbose, quiet):
    """
    nutline - Network UPS Tools client.
    """
    ctx.ensure_object(dict)

    if verbose:
        setup_logging(force=True, level=logging.DEBUG)
    elif quiet:
        setup_logging(force=True, level=logging.ERROR)
    else:
        setup_logging(force=True, level=logging.WARNING)

    options = SessionOptions.from_settings()
    options.use_tls = tls
    if tls and insecure:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        options.tls_context = context

    ctx.obj['HOST'] = host
    ctx.obj['PORT'] = port
    ctx.obj['OPTIONS'] = options


def _connect(ctx) -> Session:
    return Session.connect(ctx.obj['HOST'], ctx.obj['PORT'], ctx.obj['OPTIONS'])


def _login(session: Session, username: str, password: str) -> None:
    if not session.authenticate(username, password):
        raise click.ClickException("Authentication failed: invalid credentials")


@app.command()
@click.pass_context
@handle_nut_errors
def check(ctx):
    """Tests the connection to the NUT server."""
    console.print(f"[bold blue]Testing NUT Server Connection to {ctx.obj['HOST']}:{ctx.obj['PORT']}[/bold blue]")
    with _connect(ctx) as session:
        console.print(f"Server version: {session.version}")
        console.print(f"Protocol version: {session.protocol_version}")
        console.print(f"TLS: {'Yes' if session.tls_active else 'No'}")
    console.print("[green]✅ NUT server connection successful![/green]")


@app.command(name='list')
@click.pass_context
@handle_async_command
async def list_devices(ctx):
    """Lists the UPS devices served by the NUT server."""
    client = NUTClient(host=ctx.obj['HOST'], port=ctx.obj['PORT'], username=None, options=ctx.obj['OPTIONS'])
    try:
        devices = await client.list_ups()
    finally:
        await client.close()

    if not devices:
        console.print("[yellow]No UPS devices found[/yellow]")
        return
    table = Table(title="UPS Devices")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for name, description in devices.items():
        table.add_row(name, description)
    console.print(table)


@app.command(name='vars')
@click.argument('ups_name')
@click.pass_context
@handle_nut_errors
def variables(ctx, ups_name):
    """Shows the variables of a UPS with their inferred types."""
    with _connect(ctx) as session:
        ups_vars = UPS(session, ups_name).get_variables()

    table = Table(title=f"Variables of {ups_name}")
    table.add_column("Name", style="cyan")
    table.add_column("Value")
    table.add_column("Type")
    table.add_column("Server type")
    table.add_column("RW")
    table.add_column("Description")
    for var in ups_vars:
        server_type = var.original_type
        if var.maximum_length:
            server_type = f"{server_type}:{var.maximum_length}"
        table.add_row(
            var.name,
            str(var.python_value),
            var.type.value,
            server_type,
            "yes" if var.writeable else "no",
            var.description,
        )
    console.print(table)


@app.command(name='commands')
@click.argument('ups_name')
@click.pass_context
@handle_nut_errors
def commands(ctx, ups_name):
    """Shows the instant commands of a UPS."""
    with _connect(ctx) as session:
        ups_commands = UPS(session, ups_name).get_commands()

    table = Table(title=f"Commands of {ups_name}")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for command in ups_commands:
        table.add_row(command.name, command.description)
    console.print(table)


@app.command(name='set')
@click.argument('ups_name')
@click.argument('variable')
@click.argument('value')
@click.option('--username', default=settings.NUT_USERNAME, prompt=True, help='NUT username.')
@click.option('--password', default=settings.NUT_PASSWORD, prompt=True, hide_input=True, help='NUT password.')
@click.pass_context
@handle_nut_errors
def set_variable(ctx, ups_name, variable, value, username, password):
    """Sets a writeable variable of a UPS."""
    with _connect(ctx) as session:
        _login(session, username, password)
        ok = UPS(session, ups_name).set_variable(variable, value)
    if not ok:
        raise click.ClickException(f"Server did not acknowledge SET VAR {variable}")
    console.print(f"[green]✅ {variable} set to {value!r} on {ups_name}[/green]")


@app.command()
@click.argument('ups_name')
@click.argument('command')
@click.option('--username', default=settings.NUT_USERNAME, prompt=True, help='NUT username.')
@click.option('--password', default=settings.NUT_PASSWORD, prompt=True, hide_input=True, help='NUT password.')
@click.pass_context
@handle_nut_errors
def instcmd(ctx, ups_name, command, username, password):
    """Runs an instant command on a UPS."""
    with _connect(ctx) as session:
        _login(session, username, password)
        ok = UPS(session, ups_name).send_command(command)
    if not ok:
        raise click.ClickException(f"Server did not acknowledge INSTCMD {command}")
    console.print(f"[green]✅ {command} sent to {ups_name}[/green]")


if __name__ == '__main__':
    app()
