"""
Carina command line interface.

Manages clusters through the Carina API and works with downloaded
credentials bundles.
"""

import logging
import logging.config as log_config
from contextlib import contextmanager
from typing import Iterable

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from carina import __version__
from carina.config.provider import ClientConfig, EnvConfigProvider
from carina.errors import AuthenticationError, CarinaError, CredentialsError
from carina.logging_config import get_logging_config
from carina.modules.api.models import SUPPORTED_API_VERSION, Cluster, CreateClusterOpts
from carina.modules.client import ClusterClient
from carina.modules.credentials import CredentialsBundle

logger = logging.getLogger("carina.cli")

console = Console()
err_console = Console(stderr=True)

EXIT_MISSING_CREDENTIALS = 1
EXIT_AUTH_FAILED = 3
EXIT_COMMAND_FAILED = 4


@contextmanager
def command_errors():
    """Report CarinaError failures and exit with the command failure code."""
    try:
        yield
    except CarinaError as e:
        logger.debug("Command failed", exc_info=True)
        err_console.print(f"[red]ERROR:[/red] {escape(str(e))}", highlight=False)
        raise SystemExit(EXIT_COMMAND_FAILED)


def get_client(ctx: click.Context) -> ClusterClient:
    """Log in with the configured credentials, exiting on failure."""
    config: ClientConfig = ctx.obj["config"]
    if not config.has_credentials:
        err_console.print(
            "Either set --username and --api-key or set the "
            "CARINA_USERNAME and CARINA_APIKEY environment variables."
        )
        raise SystemExit(EXIT_MISSING_CREDENTIALS)

    try:
        client = ClusterClient.login(
            config.username,
            config.api_key,
            endpoint=config.endpoint,
            identity_endpoint=config.identity_endpoint,
            region=config.region,
            timeout=config.timeout,
        )
    except AuthenticationError as e:
        err_console.print(f"[red]ERROR:[/red] {escape(str(e))}", highlight=False)
        raise SystemExit(EXIT_AUTH_FAILED)
    except CarinaError as e:
        err_console.print(f"[red]ERROR:[/red] {escape(str(e))}", highlight=False)
        raise SystemExit(EXIT_COMMAND_FAILED)

    ctx.call_on_close(client.close)
    return client


def print_clusters(clusters: Iterable[Cluster]) -> None:
    table = Table()
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("COE")
    table.add_column("Nodes", justify="right")
    table.add_column("Status")
    for cluster in clusters:
        nodes = "" if cluster.node_count is None else str(cluster.node_count)
        table.add_row(cluster.id, cluster.name, cluster.coe, nodes, cluster.status)
    console.print(table)


@click.group()
@click.option("--username", help="Rackspace username [env: CARINA_USERNAME]")
@click.option("--api-key", "api_key", help="Rackspace API key [env: CARINA_APIKEY]")
@click.option("--endpoint", help="Carina API endpoint, discovered from the service catalog by default")
@click.option("--identity-endpoint", "identity_endpoint", help="Rackspace identity endpoint")
@click.option("--region", help="Region of the Carina endpoint in the service catalog")
@click.option("--log-level", "log_level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.version_option(__version__, prog_name="carina")
@click.pass_context
def cli(ctx, username, api_key, endpoint, identity_endpoint, region, log_level):
    """Command line interface to manage Carina clusters."""
    load_dotenv()
    config = EnvConfigProvider().get_client_config().override(
        username=username,
        api_key=api_key,
        endpoint=endpoint,
        identity_endpoint=identity_endpoint,
        region=region,
        log_level=log_level.upper() if log_level else None,
    )
    log_config.dictConfig(get_logging_config(config.log_level))
    ctx.obj = {"config": config}


@cli.command("list")
@click.pass_context
def list_clusters(ctx):
    """List clusters."""
    client = get_client(ctx)
    with command_errors():
        print_clusters(client.list_clusters())


@cli.command("types")
@click.pass_context
def list_cluster_types(ctx):
    """List the cluster types available for new clusters."""
    client = get_client(ctx)
    with command_errors():
        cluster_types = client.list_cluster_types()

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("COE")
    table.add_column("Host Type")
    table.add_column("Active")
    for cluster_type in cluster_types:
        table.add_row(
            str(cluster_type.id),
            cluster_type.name,
            cluster_type.coe,
            cluster_type.host_type,
            "yes" if cluster_type.is_active else "no",
        )
    console.print(table)


@cli.command("get")
@click.argument("cluster_id")
@click.pass_context
def get_cluster(ctx, cluster_id):
    """Get a cluster by id."""
    client = get_client(ctx)
    with command_errors():
        print_clusters([client.get_cluster(cluster_id)])


@cli.command("create")
@click.argument("name")
@click.option("--type-id", "cluster_type_id", type=int, required=True, help="Cluster type id (see 'carina types')")
@click.option("--nodes", type=click.IntRange(min=1), help="Number of nodes")
@click.pass_context
def create_cluster(ctx, name, cluster_type_id, nodes):
    """Create a new cluster."""
    client = get_client(ctx)
    with command_errors():
        opts = CreateClusterOpts(name=name, cluster_type_id=cluster_type_id, node_count=nodes)
        print_clusters([client.create_cluster(opts)])


@cli.command("resize")
@click.argument("cluster_id")
@click.argument("nodes", type=click.IntRange(min=1))
@click.pass_context
def resize_cluster(ctx, cluster_id, nodes):
    """Resize a cluster to NODES nodes."""
    client = get_client(ctx)
    with command_errors():
        print_clusters([client.resize_cluster(cluster_id, nodes)])


@cli.command("delete")
@click.argument("cluster_id")
@click.pass_context
def delete_cluster(ctx, cluster_id):
    """Delete a cluster by id."""
    client = get_client(ctx)
    with command_errors():
        cluster = client.delete_cluster(cluster_id)
    if cluster is not None:
        print_clusters([cluster])
    else:
        console.print(f"Deleted {cluster_id}", highlight=False)


@cli.command("quotas")
@click.pass_context
def show_quotas(ctx):
    """Show account quotas."""
    client = get_client(ctx)
    with command_errors():
        quotas = client.get_quotas()
    console.print(f"Max clusters: {quotas.max_clusters}", highlight=False)
    console.print(f"Max nodes per cluster: {quotas.max_nodes_per_cluster}", highlight=False)


@cli.command("api-version")
@click.pass_context
def api_version(ctx):
    """Show the API versions served and whether this client supports them."""
    client = get_client(ctx)
    with command_errors():
        metadata = client.get_api_metadata()
    lowest, highest = metadata.supported_version_range()
    console.print(f"API versions: {lowest} - {highest}", highlight=False)
    if not metadata.is_supported_version():
        err_console.print(
            f"[yellow]Warning:[/yellow] this client supports API version {SUPPORTED_API_VERSION} only"
        )


@cli.command("credentials")
@click.argument("cluster_id")
@click.option("--path", "path", type=click.Path(file_okay=False), default=".", show_default=True,
              help="Directory to write the credentials to")
@click.pass_context
def download_credentials(ctx, cluster_id, path):
    """Download cluster credentials."""
    client = get_client(ctx)
    with command_errors():
        bundle = client.get_credentials(cluster_id)
        written = bundle.write(path)
    for file_path in written:
        console.print(f"[green]✅[/green] {file_path}", highlight=False)


def _load_bundle(path: str) -> CredentialsBundle:
    with command_errors():
        return CredentialsBundle.from_directory(path)


@cli.command("host")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
def show_host(path):
    """Print the COE endpoint declared in the credentials at PATH."""
    bundle = _load_bundle(path)
    with command_errors():
        click.echo(bundle.parse_host())


@cli.command("verify")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--strict-ca", is_flag=True, help="Fail when ca.pem contains no certificates")
def verify_credentials(path, strict_ca):
    """Check that the credentials at PATH can connect to their cluster."""
    bundle = _load_bundle(path)
    try:
        bundle.verify(strict_ca=strict_ca)
    except CredentialsError as e:
        err_console.print(f"[red]✗[/red] {escape(str(e))}", highlight=False)
        raise SystemExit(EXIT_COMMAND_FAILED)
    console.print(f"[green]✓[/green] Connected to {bundle.parse_host()}", highlight=False)


def main():
    cli(prog_name="carina")


if __name__ == "__main__":
    main()
