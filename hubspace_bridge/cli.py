"""
Hubspace Bridge CLI - Command line interface for the device bridge.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

import click
from rich.console import Console
from rich.table import Table

from .api.client import HubspaceClient
from .api.errors import HubspaceError
from .auth.tokens import TokenManager
from .config import Config, DEFAULT_DATA_DIR, set_config
from .devices.mapping import DeviceMapper
from .devices.models import Capability, DeviceNode, Missing, ValueType
from .discovery.reconcile import DiscoveryService, ReconcileResult
from .registry.accessories import AccessoryRegistry

console = Console()

T = TypeVar("T")


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler()]
    )


def run_async(coro):
    """Run an async function."""
    return asyncio.run(coro)


def _with_client(config: Config, action: Callable[[HubspaceClient], Awaitable[T]]) -> T:
    """Run `action` with a connected client, exiting on bridge errors."""
    async def runner():
        client = HubspaceClient.from_config(config, TokenManager.from_config(config))
        try:
            return await action(client)
        finally:
            await client.close()

    try:
        return run_async(runner())
    except HubspaceError as e:
        console.print(f"[red]Error ({e.code}): {e}[/red]")
        sys.exit(1)
    except KeyError as e:
        console.print(f"[red]{e.args[0] if e.args else e}[/red]")
        sys.exit(1)


def _parse_value(capability: Capability, text: str):
    if capability.value_type == ValueType.BOOLEAN:
        lowered = text.strip().lower()
        if lowered in ("1", "on", "true", "yes"):
            return True
        if lowered in ("0", "off", "false", "no"):
            return False
        raise click.BadParameter(f"Expected on/off for {capability.value}, got '{text}'")
    if capability.value_type == ValueType.INTEGER:
        try:
            return int(text)
        except ValueError:
            raise click.BadParameter(f"Expected an integer for {capability.value}, got '{text}'")
    return text


def _format_value(value) -> str:
    if isinstance(value, Missing):
        return f"[yellow]{value.value}[/yellow]"
    if isinstance(value, bool):
        return "[green]on[/green]" if value else "[dim]off[/dim]"
    return str(value)


def _device_rows(table: Table, node: DeviceNode, depth: int = 0):
    indent = "  " * depth
    capabilities = ", ".join(c.value for c in node.capabilities()) or "[dim]-[/dim]"
    table.add_row(
        f"{indent}{node.display_name}",
        node.classification.value,
        node.model or "",
        f"[dim]{node.device_id}[/dim]",
        capabilities,
    )
    for child in node.children:
        _device_rows(table, child, depth + 1)


def _print_result(result: ReconcileResult, registry: AccessoryRegistry):
    console.print(f"\n[bold]Discovery:[/bold] {result.summary()}")

    table = Table(show_header=True)
    table.add_column("Accessory", style="cyan")
    table.add_column("Control")
    table.add_column("Attribute", style="dim")
    table.add_column("Type", style="dim")

    for binding in result.bindings:
        record = registry.get(binding.accessory_id)
        name = record.display_name if record else binding.accessory_id
        table.add_row(name, binding.label, binding.attribute_key, binding.value_type.value)

    console.print(table)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--data-dir', type=click.Path(), help='Data directory')
@click.option('--username', envvar='HUBSPACE_USERNAME', help='Hubspace account email')
@click.option('--password', envvar='HUBSPACE_PASSWORD', help='Hubspace account password')
@click.pass_context
def main(ctx, verbose, data_dir, username, password):
    """Hubspace Bridge - sync Hubspace cloud devices to local accessories"""
    setup_logging(verbose)

    config = Config.load(Path(data_dir) if data_dir else DEFAULT_DATA_DIR)
    if username:
        config.username = username
    if password:
        config.password = password
    set_config(config)

    ctx.ensure_object(dict)
    ctx.obj['config'] = config


def _require_credentials(config: Config):
    if not config.has_credentials:
        console.print(
            "[red]No credentials. Pass --username/--password, set HUBSPACE_USERNAME/"
            "HUBSPACE_PASSWORD, or run 'hubspace-bridge login --save'.[/red]"
        )
        sys.exit(1)


@main.command()
@click.option('--save', is_flag=True, help='Store the credentials in the config file')
@click.pass_context
def login(ctx, save: bool):
    """Authenticate and show the account."""
    config: Config = ctx.obj['config']
    _require_credentials(config)

    async def do_login(client: HubspaceClient):
        await client.token_manager.get_token()
        return await client.get_account_id()

    account_id = _with_client(config, do_login)

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("User", config.username)
    table.add_row("Account", f"[cyan]{account_id}[/cyan]")
    table.add_row("Data Directory", str(config.data_dir))
    console.print(table)

    if save:
        config.save()
        console.print(f"[green]Credentials saved to {config.config_path}[/green]")


@main.command()
@click.pass_context
def devices(ctx):
    """List the account's device graph."""
    config: Config = ctx.obj['config']
    _require_credentials(config)

    async def fetch(client: HubspaceClient) -> List[DeviceNode]:
        return DeviceMapper().map_devices(await client.get_metadevices())

    nodes = _with_client(config, fetch)

    if not nodes:
        console.print("[yellow]No supported devices found.[/yellow]")
        return

    table = Table(show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Class")
    table.add_column("Model")
    table.add_column("Device ID")
    table.add_column("Capabilities")

    for node in nodes:
        _device_rows(table, node)

    console.print(table)


@main.command()
@click.pass_context
def discover(ctx):
    """Run one discovery cycle against the accessory registry."""
    config: Config = ctx.obj['config']
    _require_credentials(config)
    registry = AccessoryRegistry(config.data_dir)

    async def cycle(client: HubspaceClient) -> ReconcileResult:
        return await DiscoveryService.from_config(config, client, registry).run_cycle()

    result = _with_client(config, cycle)
    _print_result(result, registry)


@main.command()
@click.argument('accessory_id')
@click.argument('capability', type=click.Choice([c.value for c in Capability]))
@click.option('--instance', help='Function instance name (e.g. spigot-1)')
@click.option('--index', type=int, help='Positional index (e.g. outlet number, from 0)')
@click.pass_context
def get(ctx, accessory_id: str, capability: str, instance: Optional[str], index: Optional[int]):
    """Read a capability of a registered accessory."""
    config: Config = ctx.obj['config']
    _require_credentials(config)
    registry = AccessoryRegistry(config.data_dir)

    async def read(client: HubspaceClient):
        control = DiscoveryService.from_config(config, client, registry).control_for(accessory_id)
        return await control.get(Capability(capability), instance, index)

    value = _with_client(config, read)
    console.print(f"{capability}: {_format_value(value)}")


@main.command('set')
@click.argument('accessory_id')
@click.argument('capability', type=click.Choice([c.value for c in Capability]))
@click.argument('value')
@click.option('--instance', help='Function instance name (e.g. spigot-1)')
@click.option('--index', type=int, help='Positional index (e.g. outlet number, from 0)')
@click.pass_context
def set_value(ctx, accessory_id: str, capability: str, value: str, instance: Optional[str], index: Optional[int]):
    """Write a capability of a registered accessory."""
    config: Config = ctx.obj['config']
    _require_credentials(config)
    registry = AccessoryRegistry(config.data_dir)
    parsed = _parse_value(Capability(capability), value)

    async def write(client: HubspaceClient):
        control = DiscoveryService.from_config(config, client, registry).control_for(accessory_id)
        await control.set(Capability(capability), parsed, instance, index)

    _with_client(config, write)
    console.print(f"[green]✓ {capability} set to {value}[/green]")


@main.command()
@click.option('--interval', type=float, help='Seconds between discovery cycles')
@click.pass_context
def watch(ctx, interval: Optional[float]):
    """Keep the accessory registry in sync until interrupted."""
    config: Config = ctx.obj['config']
    _require_credentials(config)
    registry = AccessoryRegistry(config.data_dir)

    every = interval or config.discovery_interval
    console.print(f"\n[bold blue]Watching Hubspace devices[/bold blue] (every {every:.0f}s)")
    console.print("   Press Ctrl+C to stop\n")

    async def loop(client: HubspaceClient):
        service = DiscoveryService.from_config(config, client, registry)
        await service.run_forever(every, on_result=lambda r: _print_result(r, registry))

    try:
        _with_client(config, loop)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")


if __name__ == "__main__":
    main()
