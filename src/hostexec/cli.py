"""hostexec CLI - Main entry point."""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from hostexec import __version__
from hostexec.config import load_hosts_file
from hostexec.errors import HostExecError
from hostexec.host import Host, HostFactory
from hostexec.models import Command, Result
from hostexec.output import configure_logging

console = Console()
error_console = Console(stderr=True)

DEFAULT_HOSTS_FILE = Path("hosts.yaml")


class OutputFormatter:
    """Handles output formatting for CLI."""

    def __init__(self, json_output: bool = False):
        self.json_output = json_output

    def print_hosts(self, hosts: dict[str, Host]) -> None:
        """Print hosts in table or JSON format."""
        if self.json_output:
            data = [
                {
                    "name": host.name,
                    "platform": host.platform,
                    "variant": host.variant.platform.value,
                    "reachable_name": host.reachable_name,
                    "user": host["user"],
                }
                for host in hosts.values()
            ]
            console.print_json(json.dumps(data, indent=2, default=str))
            return

        table = Table(title="Hosts")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Platform", style="magenta")
        table.add_column("Variant", style="green")
        table.add_column("Address", style="bold")
        table.add_column("User", style="blue")

        for host in hosts.values():
            table.add_row(
                host.name,
                host.platform or "",
                host.variant.platform.value,
                host.reachable_name,
                host["user"] or "",
            )

        console.print(table)

    def print_result(self, result: Result) -> None:
        """Print a command result summary."""
        if self.json_output:
            console.print_json(json.dumps(result.to_dict(), default=str))
            return
        status = "[green]✓[/green]" if result.success else "[yellow]![/yellow]"
        console.print(f"{status} {result.host}: exit code {result.exit_code}")

    def print_success(self, message: str) -> None:
        """Print success message."""
        if not self.json_output:
            console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print error message."""
        if self.json_output:
            error_console.print_json(json.dumps({"error": message}))
        else:
            error_console.print(f"[red]✗[/red] {message}")


def load_hosts(ctx: click.Context) -> dict[str, Host]:
    """Build the hosts from the hosts file once per invocation."""
    if "hosts" not in ctx.obj:
        try:
            hosts, options = load_hosts_file(Path(ctx.obj["hosts_file"]))
        except (OSError, ValueError) as e:
            ctx.obj["formatter"].print_error(f"Cannot load hosts: {e}")
            sys.exit(1)

        if ctx.obj["dry_run"]:
            options["dry_run"] = True
        ctx.obj["hosts"] = HostFactory.create_all(hosts, options)
    return ctx.obj["hosts"]


def get_host(ctx: click.Context, name: str) -> Host:
    """Look up a host from the hosts file, exiting if unknown."""
    hosts = load_hosts(ctx)
    if name not in hosts:
        ctx.obj["formatter"].print_error(f"Host '{name}' not found in {ctx.obj['hosts_file']}")
        sys.exit(1)
    return hosts[name]


@click.group()
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option(
    "--hosts", "hosts_file",
    type=click.Path(dir_okay=False),
    default=str(DEFAULT_HOSTS_FILE),
    show_default=True,
    help="YAML hosts file",
)
@click.option("--dry-run", is_flag=True, help="Log commands without running them")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.version_option(version=__version__, prog_name="hostexec")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    hosts_file: str,
    dry_run: bool,
    verbose: bool,
) -> None:
    """hostexec - run commands on and copy files to test hosts."""
    ctx.ensure_object(dict)
    configure_logging(verbose)
    ctx.obj["formatter"] = OutputFormatter(json_output)
    ctx.obj["hosts_file"] = hosts_file
    ctx.obj["dry_run"] = dry_run


@cli.command("hosts")
@click.pass_context
def list_hosts(ctx: click.Context) -> None:
    """List hosts from the hosts file."""
    ctx.obj["formatter"].print_hosts(load_hosts(ctx))


@cli.command("exec")
@click.argument("host_name")
@click.argument("command", nargs=-1, required=True)
@click.option("--accept-all-exit-codes", is_flag=True, help="Treat any exit code as success")
@click.option(
    "--acceptable-exit-code", "-a",
    "acceptable_exit_codes",
    type=int,
    multiple=True,
    help="Exit code treated as success (repeatable)",
)
@click.option("--expect-connection-failure", is_flag=True, help="The command should drop the connection")
@click.option("--reset-connection", is_flag=True, help="Close the connection after the command")
@click.option("--pty", is_flag=True, help="Request a terminal")
@click.pass_context
def exec_command(
    ctx: click.Context,
    host_name: str,
    command: tuple[str, ...],
    accept_all_exit_codes: bool,
    acceptable_exit_codes: tuple[int, ...],
    expect_connection_failure: bool,
    reset_connection: bool,
    pty: bool,
) -> None:
    """Run COMMAND on HOST_NAME."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    host = get_host(ctx, host_name)

    options = {
        "accept_all_exit_codes": accept_all_exit_codes,
        "expect_connection_failure": expect_connection_failure,
        "reset_connection": reset_connection,
        "pty": pty,
    }
    if acceptable_exit_codes:
        options["acceptable_exit_codes"] = list(acceptable_exit_codes)

    try:
        result = host.exec(Command(" ".join(command)), **options)
    except (HostExecError, ConnectionError) as e:
        formatter.print_error(str(e))
        sys.exit(1)
    finally:
        host.close()

    formatter.print_result(result)


@cli.command("scp")
@click.argument("host_name")
@click.argument("source", type=click.Path())
@click.argument("target")
@click.option("--ignore", "-i", multiple=True, help="Path segment to skip (repeatable)")
@click.pass_context
def scp(ctx: click.Context, host_name: str, source: str, target: str, ignore: tuple[str, ...]) -> None:
    """Copy SOURCE to TARGET on HOST_NAME."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    host = get_host(ctx, host_name)

    try:
        result = host.do_scp_to(source, target, ignore=list(ignore))
    except (HostExecError, ConnectionError) as e:
        formatter.print_error(str(e))
        sys.exit(1)
    finally:
        host.close()

    formatter.print_result(result)


@cli.command("scp-from")
@click.argument("host_name")
@click.argument("source")
@click.argument("target", type=click.Path())
@click.pass_context
def scp_from(ctx: click.Context, host_name: str, source: str, target: str) -> None:
    """Copy SOURCE on HOST_NAME to local TARGET."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    host = get_host(ctx, host_name)

    try:
        result = host.do_scp_from(source, target)
    except (HostExecError, ConnectionError) as e:
        formatter.print_error(str(e))
        sys.exit(1)
    finally:
        host.close()

    formatter.print_result(result)


@cli.command("rsync")
@click.argument("host_name")
@click.argument("source", type=click.Path())
@click.argument("target")
@click.option("--ignore", "-i", multiple=True, help="Path to exclude (repeatable)")
@click.pass_context
def rsync(ctx: click.Context, host_name: str, source: str, target: str, ignore: tuple[str, ...]) -> None:
    """Rsync SOURCE into TARGET on HOST_NAME."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    host = get_host(ctx, host_name)

    try:
        host.do_rsync_to(source, target, ignore=list(ignore))
    except HostExecError as e:
        formatter.print_error(str(e))
        sys.exit(1)

    formatter.print_success(f"Synced {source} to {host}:{target}")


@cli.command("wait-port")
@click.argument("host_name")
@click.argument("port", type=int)
@click.option("--attempts", type=int, default=15, show_default=True, help="Number of probes")
@click.pass_context
def wait_port(ctx: click.Context, host_name: str, port: int, attempts: int) -> None:
    """Wait until PORT on HOST_NAME accepts connections."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    host = get_host(ctx, host_name)

    if not host.wait_for_port(port, attempts):
        formatter.print_error(f"Port {port} on {host} did not open")
        sys.exit(1)
    formatter.print_success(f"Port {port} on {host} is open")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
