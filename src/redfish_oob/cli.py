"""CLI interface for Redfish out-of-band management."""

import json
import logging
import signal
import sys
import threading
from typing import Any, Callable, Optional

import click

from . import __version__
from .client import RedfishClient, remote_direct
from .multi import connect, format_multi_node_output, load_nodes_from_csv, run_on_nodes
from .power import PowerState, format_power_output


logger = logging.getLogger(__name__)


class Settings:
    """Options shared by every command."""

    def __init__(self, **options: Any) -> None:
        self.__dict__.update(options)
        self.cancel = threading.Event()


def _install_interrupt_handler(cancel: threading.Event) -> None:
    """Turn CTRL+C into a cancel request so polls stop at the next wait."""
    if threading.current_thread() is not threading.main_thread():
        return

    def handler(signum, frame) -> None:
        click.echo("\nInterrupted, cancelling...", err=True)
        cancel.set()

    signal.signal(signal.SIGINT, handler)


def format_result(node_id: str, result: str, output_format: str = "text") -> str:
    """Format the outcome of a single-node command."""
    if output_format.lower() == "json":
        return json.dumps({"node_id": node_id, "result": result}, indent=2)
    return f"System {node_id}: {result}"


def _run(
    settings: Settings,
    action: Callable[[RedfishClient], str],
    render: Callable[[str, str, str], str] = format_result,
) -> None:
    """Run an action on the configured node, or on every node of --nodes-file."""
    if not settings.nodes_file and not settings.url:
        raise click.UsageError("Either --nodes-file or --url is required")

    _install_interrupt_handler(settings.cancel)

    try:
        if settings.nodes_file:
            nodes = load_nodes_from_csv(settings.nodes_file)
            results = run_on_nodes(
                nodes,
                action,
                insecure=settings.insecure,
                use_proxy=settings.use_proxy,
                jumphost=settings.jumphost,
                jumphost_user=settings.jumphost_user,
                ssh_key=settings.ssh_key,
                ssh_password=settings.ssh_password,
                max_workers=settings.max_workers,
                quiet=settings.quiet,
            )
            click.echo(format_multi_node_output(results, settings.output_format))

            # Exit with error if any nodes failed
            if any(not r['success'] for r in results):
                sys.exit(1)
            return

        with connect(
            settings.url,
            username=settings.username or "",
            password=settings.password or "",
            insecure=settings.insecure,
            use_proxy=settings.use_proxy,
            jumphost=settings.jumphost,
            jumphost_user=settings.jumphost_user,
            ssh_key=settings.ssh_key,
            ssh_password=settings.ssh_password,
        ) as client:
            result = action(client)
            click.echo(render(client.node_id, result, settings.output_format))

    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--url",
    envvar="REDFISH_URL",
    help="Redfish system URL, e.g. https://10.0.0.1/redfish/v1/Systems/1 (not needed with --nodes-file)",
)
@click.option(
    "--username",
    "-u",
    envvar="REDFISH_USERNAME",
    help="BMC username (not needed with --nodes-file)",
)
@click.option(
    "--password",
    "-p",
    envvar="REDFISH_PASSWORD",
    help="BMC password (not needed with --nodes-file)",
)
@click.option(
    "--insecure/--secure",
    default=False,
    envvar="REDFISH_INSECURE",
    help="Skip TLS certificate verification (default: verify)",
)
@click.option(
    "--use-proxy/--no-proxy",
    default=True,
    envvar="REDFISH_USE_PROXY",
    help="Use proxy settings from the environment (default: yes)",
)
@click.option(
    "--retries",
    type=click.IntRange(min=1),
    default=None,
    envvar="REDFISH_RETRIES",
    help="State queries allowed per convergence poll (default: 30)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format",
)
@click.option(
    "--jumphost",
    envvar="REDFISH_JUMPHOST",
    help="SSH jumphost to tunnel through (optional)",
)
@click.option(
    "--jumphost-user",
    envvar="REDFISH_JUMPHOST_USER",
    help="SSH username for jumphost (defaults to current user)",
)
@click.option(
    "--ssh-key",
    envvar="REDFISH_JUMPHOST_SSH_KEY",
    help="Path to SSH private key for jumphost (optional, uses SSH agent/default keys if not specified)",
)
@click.option(
    "--ssh-password",
    envvar="REDFISH_JUMPHOST_SSH_PASSWORD",
    help="SSH password for jumphost (only needed if not using SSH keys)",
)
@click.option(
    "--nodes-file",
    type=click.Path(exists=True),
    metavar="CSV_FILE",
    help="CSV file with node list (columns: url,username,password,name)",
)
@click.option(
    "--max-workers",
    type=int,
    default=5,
    help="Max parallel nodes for multi-node mode (default: 5)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress progress messages (errors and final report still shown)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Log every Redfish request and poll attempt",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    url: Optional[str],
    username: Optional[str],
    password: Optional[str],
    insecure: bool,
    use_proxy: bool,
    retries: Optional[int],
    output_format: str,
    jumphost: Optional[str],
    jumphost_user: Optional[str],
    ssh_key: Optional[str],
    ssh_password: Optional[str],
    nodes_file: Optional[str],
    max_workers: int,
    quiet: bool,
    verbose: bool,
) -> None:
    """Control power, boot source and virtual media of bare-metal nodes via Redfish."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
    )

    ctx.obj = Settings(
        url=url,
        username=username,
        password=password,
        insecure=insecure,
        use_proxy=use_proxy,
        retries=retries,
        output_format=output_format,
        jumphost=jumphost,
        jumphost_user=jumphost_user,
        ssh_key=ssh_key,
        ssh_password=ssh_password,
        nodes_file=nodes_file,
        max_workers=max_workers,
        quiet=quiet,
    )


@main.command()
@click.pass_obj
def status(settings: Settings) -> None:
    """Show the node's power state."""
    def render(node_id: str, result: str, output_format: str) -> str:
        return format_power_output(node_id, PowerState(result), format=output_format)

    _run(settings, lambda client: client.system_power_status().value, render)


@main.command("power-on")
@click.pass_obj
def power_on(settings: Settings) -> None:
    """Power the node on."""
    def action(client: RedfishClient) -> str:
        client.system_power_on()
        return "power on requested"

    _run(settings, action)


@main.command("power-off")
@click.pass_obj
def power_off(settings: Settings) -> None:
    """Force the node off."""
    def action(client: RedfishClient) -> str:
        client.system_power_off()
        return "power off requested"

    _run(settings, action)


@main.command()
@click.pass_obj
def reboot(settings: Settings) -> None:
    """Power cycle the node and wait until it is back on."""
    def action(client: RedfishClient) -> str:
        client.reboot_system(retries=settings.retries, cancel=settings.cancel)
        return "rebooted"

    _run(settings, action)


@main.command("eject-media")
@click.pass_obj
def eject_media(settings: Settings) -> None:
    """Eject all inserted virtual media."""
    def action(client: RedfishClient) -> str:
        client.eject_virtual_media(retries=settings.retries, cancel=settings.cancel)
        return "virtual media ejected"

    _run(settings, action)


@main.command("insert-media")
@click.argument("image")
@click.pass_obj
def insert_media(settings: Settings, image: str) -> None:
    """Eject current media and insert IMAGE (a URL reachable by the BMC)."""
    def action(client: RedfishClient) -> str:
        client.set_virtual_media(image, retries=settings.retries, cancel=settings.cancel)
        return f"inserted {image}"

    _run(settings, action)


@main.command("set-boot-source")
@click.pass_obj
def set_boot_source(settings: Settings) -> None:
    """Boot next from the node's CD/DVD virtual media."""
    def action(client: RedfishClient) -> str:
        client.set_boot_source_by_type()
        return "boot source set to virtual media"

    _run(settings, action)


@main.command("remote-direct")
@click.argument("image")
@click.pass_obj
def remote_direct_command(settings: Settings, image: str) -> None:
    """Insert IMAGE, boot from it and power cycle the node."""
    def action(client: RedfishClient) -> str:
        remote_direct(client, image, retries=settings.retries, cancel=settings.cancel)
        return f"booting from {image}"

    _run(settings, action)


if __name__ == "__main__":
    main()
