"""Main CLI entry point for the Carina client."""

from __future__ import annotations

import contextlib
import copy
import functools
from collections.abc import Callable, Iterator
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from carina import __version__
from carina.core.exceptions import CarinaError, NotFoundError, VerificationError
from carina.core.models import CloudType
from carina.utils.logging import get_logger, setup_logging

if TYPE_CHECKING:
    from carina.cache.token_cache import TokenCache
    from carina.core.config import CarinaConfig
    from carina.core.lifecycle import LifecycleOrchestrator
    from carina.core.models import Cluster
    from carina.interfaces.cluster_provider import ClusterProvider
    from carina.interfaces.cluster_types import Account

console = Console()
err_console = Console(stderr=True)

logger = get_logger(__name__)


class CarinaContext:
    """Shared context for CLI commands with lazy initialization."""

    def __init__(
        self,
        config_path: str | None = None,
        cloud: str | None = None,
        username: str | None = None,
        api_key: str | None = None,
        password: str | None = None,
        project: str | None = None,
        domain: str | None = None,
        region: str | None = None,
        endpoint: str | None = None,
        template: str | None = None,
    ):
        """Initialize context with the global flags.

        Args:
            config_path: Path to configuration file (defaults to CARINA_HOME)
            cloud: Explicit backend, or None to detect it
            username: --username value
            api_key: --api-key value
            password: --password value
            project: --project value
            domain: --domain value
            region: --region value
            endpoint: --endpoint value
            template: Magnum cluster template overriding the configured one
        """
        self.config_path = config_path
        self.cloud = cloud
        self.username = username
        self.api_key = api_key
        self.password = password
        self.project = project
        self.domain = domain
        self.region = region
        self.endpoint = endpoint
        self.template = template
        self.cache: TokenCache | None = None
        self.update_checked = False
        self._config: CarinaConfig | None = None
        self._account: Account | None = None
        self._adapter: ClusterProvider | None = None
        self._orchestrator: LifecycleOrchestrator | None = None

    @property
    def config(self) -> CarinaConfig:
        """Get or load config lazily."""
        if self._config is None:
            from carina.core.config import CONFIG_FILENAME, CarinaConfig, carina_home

            path = self.config_path or carina_home() / CONFIG_FILENAME
            self._config = CarinaConfig.from_file(path)
        return self._config

    @property
    def account(self) -> Account:
        """Resolve the account from flags and environment lazily."""
        if self._account is None:
            from carina.core.credentials import resolve_account

            self._account = resolve_account(
                cloud_type=self.cloud,
                username=self.username,
                api_key=self.api_key,
                password=self.password,
                project=self.project,
                domain=self.domain,
                region=self.region,
                endpoint=self.endpoint,
            )
        return self._account

    @property
    def adapter(self) -> ClusterProvider:
        """Get or create the backend adapter lazily."""
        if self._adapter is None:
            from carina.adapters import get_adapter

            self._adapter = get_adapter(
                self.account.cloud_type,
                template=self.template or self.config.magnum.template,
            )
        return self._adapter

    @property
    def orchestrator(self) -> LifecycleOrchestrator:
        """Authenticate and build the orchestrator lazily."""
        if self._orchestrator is None:
            from carina.auth import authenticate
            from carina.core.lifecycle import LifecycleOrchestrator

            session = authenticate(self.adapter, self.account, self.cache)
            self._orchestrator = LifecycleOrchestrator(self.adapter, session)
        return self._orchestrator

    def credentials_path(self, cluster_name: str, path: str | None = None) -> Path:
        """Directory holding a cluster's credential bundle."""
        if path:
            return Path(path).expanduser()

        from carina.core.bundle import cluster_credentials_path
        from carina.core.config import credentials_base_dir

        return cluster_credentials_path(credentials_base_dir(), self.account.username, cluster_name)

    def check_for_update(self) -> None:
        """Print the new release notice at most once per invocation."""
        if self.update_checked or self.cache is None or not self.config.update_check.enabled:
            return
        self.update_checked = True

        from carina.utils.version import inform_latest

        interval = timedelta(hours=self.config.update_check.interval_hours)
        inform_latest(self.cache, __version__, err_console, interval)


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Print CarinaError failures in red on stderr and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CarinaError as e:
            _fail(e)

    return wrapper


def _fail(e: CarinaError) -> None:
    logger.debug("command_failed", error=str(e), error_type=type(e).__name__)
    err_console.print(f"[red]Error: {escape(str(e))}[/red]", highlight=False)
    raise click.exceptions.Exit(1) from e


@contextlib.contextmanager
def _flushed(cache: TokenCache) -> Iterator[TokenCache]:
    """Yield the cache and flush it on exit, reporting write failures like command errors."""
    try:
        yield cache
    finally:
        try:
            cache.flush()
        except CarinaError as e:
            _fail(e)


def _print_clusters(clusters: list[Cluster]) -> None:
    table = Table(box=None, pad_edge=False)
    table.add_column("ClusterName", style="cyan")
    table.add_column("Flavor")
    table.add_column("Nodes", justify="right")
    table.add_column("AutoScale")
    table.add_column("Status", style="bold")

    for cluster in clusters:
        status_color = "yellow" if cluster.is_transient else "green"
        table.add_row(
            cluster.name,
            cluster.flavor or "-",
            str(cluster.nodes),
            "true" if cluster.autoscale else "false",
            f"[{status_color}]{cluster.status}[/{status_color}]",
        )

    console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="carina")
@click.option("--username", help="Username [CARINA_USERNAME/RS_USERNAME/OS_USERNAME]")
@click.option("--api-key", help="Public Carina API key [CARINA_APIKEY/RS_API_KEY]")
@click.option("--password", help="Rackspace private cloud password [OS_PASSWORD]")
@click.option("--project", help="Rackspace private cloud project name [OS_PROJECT_NAME]")
@click.option("--domain", help="Rackspace private cloud domain name [OS_DOMAIN_NAME]")
@click.option("--region", help="Rackspace private cloud region name [OS_REGION_NAME]")
@click.option("--endpoint", help="Custom API endpoint [OS_AUTH_URL]")
@click.option(
    "--cloud",
    type=click.Choice([c.value for c in CloudType]),
    help="The cloud type: magnum or make-swarm (detected when omitted)",
)
@click.option(
    "--cache/--no-cache",
    default=None,
    help="Cache API tokens and update times (defaults to the config file setting)",
)
@click.option(
    "--config",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to configuration file (defaults to $CARINA_HOME/config.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Log level (defaults to the config file setting)",
)
@click.pass_context
@handle_errors
def cli(
    ctx: click.Context,
    username: str | None,
    api_key: str | None,
    password: str | None,
    project: str | None,
    domain: str | None,
    region: str | None,
    endpoint: str | None,
    cloud: str | None,
    cache: bool | None,
    config: str | None,
    log_level: str | None,
) -> None:
    """Create and interact with Docker Swarm clusters."""
    carina_ctx = CarinaContext(
        config_path=config,
        cloud=cloud,
        username=username,
        api_key=api_key,
        password=password,
        project=project,
        domain=domain,
        region=region,
        endpoint=endpoint,
    )
    ctx.obj = carina_ctx

    log_config = carina_ctx.config.logging
    setup_logging(
        level=log_level or log_config.level,
        format=log_config.format,
        output=log_config.output,
    )

    use_cache = carina_ctx.config.cache_enabled if cache is None else cache
    if not use_cache:
        logger.debug("token_cache_disabled")
        return

    from carina.cache.token_cache import TokenCache
    from carina.core.config import CACHE_FILENAME, carina_home

    # Flushed when the context closes, on success and on failure
    carina_ctx.cache = ctx.with_resource(_flushed(TokenCache.load(carina_home() / CACHE_FILENAME)))
    carina_ctx.check_for_update()


@cli.command()
@click.argument("name")
@click.option("--nodes", type=int, default=1, show_default=True, help="Number of nodes")
@click.option("--segments", type=int, default=None, hidden=True, help="Deprecated alias of --nodes")
@click.option("--autoscale", is_flag=True, help="Enable autoscale")
@click.option("--template", help="Cluster template name or id (magnum only)")
@click.option("--wait", is_flag=True, help="Wait for the cluster to become active")
@click.pass_obj
@handle_errors
def create(
    obj: CarinaContext,
    name: str,
    nodes: int,
    segments: int | None,
    autoscale: bool,
    template: str | None,
    wait: bool,
) -> None:
    """Create a swarm cluster."""
    if segments is not None:
        nodes = segments
    if template:
        obj.template = template

    cluster = obj.orchestrator.create(name, nodes, autoscale=autoscale, wait=wait)
    _print_clusters([cluster])


@cli.command()
@click.argument("name")
@click.pass_obj
@handle_errors
def get(obj: CarinaContext, name: str) -> None:
    """Show information about a swarm cluster."""
    cluster = obj.orchestrator.get_cluster(name)
    if cluster is None:
        raise NotFoundError(f"Cluster {name} was not found")
    _print_clusters([cluster])


@cli.command(name="ls")
@click.pass_obj
@handle_errors
def list_clusters(obj: CarinaContext) -> None:
    """List swarm clusters."""
    _print_clusters(obj.orchestrator.list_clusters())


@cli.command()
@click.argument("name")
@click.option("--by", "delta", type=int, required=True, help="Number of nodes to add")
@click.pass_obj
@handle_errors
def grow(obj: CarinaContext, name: str, delta: int) -> None:
    """Add nodes to a swarm cluster."""
    _print_clusters([obj.orchestrator.grow(name, delta)])


@cli.command()
@click.argument("name")
@click.argument("value", type=click.Choice(["on", "off"], case_sensitive=False))
@click.pass_obj
@handle_errors
def autoscale(obj: CarinaContext, name: str, value: str) -> None:
    """Enable or disable autoscale on a cluster."""
    _print_clusters([obj.orchestrator.set_autoscale(name, value.lower() == "on")])


@cli.command()
@click.argument("name")
@click.option("--path", help="Directory to write the credentials to")
@click.option("--silent", is_flag=True, help="Do not print where the credentials were written")
@click.pass_obj
@handle_errors
def credentials(obj: CarinaContext, name: str, path: str | None, silent: bool) -> None:
    """Download a cluster's credentials."""
    from carina.core.bundle import next_steps

    target = obj.credentials_path(name, path)
    obj.orchestrator.download_credentials(name, target)

    if not silent:
        click.echo("#")
        click.echo(f'# Credentials written to "{target}"')
        click.echo(next_steps(name), nl=False)
        click.echo("#")


@cli.command()
@click.argument("name")
@click.option("--path", help="Directory holding the credentials")
@click.option("--shell", help="Shell flavour: bash, fish, powershell or cmd")
@click.pass_obj
@handle_errors
def env(obj: CarinaContext, name: str, path: str | None, shell: str | None) -> None:
    """Show the command to load a cluster's Docker environment."""
    from carina.core import bundle

    target = obj.credentials_path(name, path)
    try:
        bundle.verify(target)
    except VerificationError as e:
        logger.info("credentials_refresh", cluster_name=name, reason=str(e))
        obj.orchestrator.download_credentials(name, target)

    click.echo(bundle.source_help(bundle.credential_file_path(target, shell), name, shell))


@cli.command()
@click.argument("name")
@click.option("--wait", is_flag=True, help="Wait for the rebuild to finish")
@click.pass_obj
@handle_errors
def rebuild(obj: CarinaContext, name: str, wait: bool) -> None:
    """Rebuild a swarm cluster."""
    _print_clusters([obj.orchestrator.rebuild(name, wait=wait)])


@cli.command(name="rm")
@click.argument("name")
@click.option("--path", help="Directory holding the credentials to remove")
@click.pass_obj
@handle_errors
def delete(obj: CarinaContext, name: str, path: str | None) -> None:
    """Delete a swarm cluster and its local credentials."""
    target = obj.credentials_path(name, path)
    _print_clusters([obj.orchestrator.delete(name, credentials_path=target)])


@cli.command()
@click.pass_obj
@handle_errors
def quotas(obj: CarinaContext) -> None:
    """Show the account's cluster quotas."""
    limits = obj.orchestrator.get_quotas()

    table = Table(box=None, pad_edge=False)
    table.add_column("MaxClusters", justify="right")
    table.add_column("MaxNodesPerCluster", justify="right")
    table.add_row(
        "-" if limits.max_clusters is None else str(limits.max_clusters),
        "-" if limits.max_nodes_per_cluster is None else str(limits.max_nodes_per_cluster),
    )
    console.print(table)


def _alias(command: click.Command, name: str) -> click.Command:
    hidden = copy.copy(command)
    hidden.name = name
    hidden.hidden = True
    return hidden


cli.add_command(_alias(get, "inspect"))
cli.add_command(_alias(list_clusters, "list"))
cli.add_command(_alias(credentials, "creds"))
cli.add_command(_alias(delete, "delete"))


if __name__ == "__main__":
    cli()
