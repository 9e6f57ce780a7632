"""Unit tests for Carina CLI commands.

Tests focus on command parsing, option handling and the calls made on a
mocked orchestrator; nothing here touches the network.
"""

from pathlib import Path
from unittest.mock import MagicMock, PropertyMock, patch

import pytest
from click.testing import CliRunner

from carina import __version__
from carina.cli.main import CarinaContext, cli
from carina.cache.token_cache import TokenCache
from carina.clients.http import DEFAULT_TIMEOUT
from carina.core.exceptions import CacheError, InvalidArgumentError, VerificationError
from carina.core.models import Cluster, Quotas

CREDS = ["--username", "alice", "--api-key", "key-123"]


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep setup_logging from binding loggers to the runner's streams."""
    with patch("carina.cli.main.setup_logging") as setup:
        yield setup


@pytest.fixture
def orchestrator() -> MagicMock:
    """Mocked lifecycle orchestrator injected into the CLI context."""
    orchestrator = MagicMock()
    with patch.object(
        CarinaContext, "orchestrator", new_callable=PropertyMock, return_value=orchestrator
    ):
        yield orchestrator


@pytest.fixture
def active_cluster() -> Cluster:
    return Cluster(name="web", nodes=2, status="active", flavor="container1-4G")


def _run(cli_runner, *args):
    return cli_runner.invoke(cli, [*CREDS, "--no-cache", *args])


class TestCliBasics:
    """Test group level behavior."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_hides_aliases(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for name in ("create", "get", "ls", "grow", "autoscale", "credentials", "env", "rm"):
            assert name in result.output
        assert "inspect" not in result.output
        assert "creds" not in result.output

    def test_logging_configured_from_flag(self, cli_runner, orchestrator, no_logging_setup):
        orchestrator.list_clusters.return_value = []

        result = cli_runner.invoke(cli, [*CREDS, "--no-cache", "--log-level", "DEBUG", "ls"])

        assert result.exit_code == 0
        no_logging_setup.assert_called_once_with(level="DEBUG", format="console", output="stderr")

    def test_missing_credentials(self, cli_runner):
        result = cli_runner.invoke(cli, ["--no-cache", "ls"])

        assert result.exit_code == 1
        assert "Error: API key or password was not specified" in result.output

    def test_invalid_config_file(self, cli_runner, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("wait: [unclosed")

        result = cli_runner.invoke(cli, ["--config", str(config), "--no-cache", "ls"])

        assert result.exit_code == 1
        assert "Error: Failed to load configuration" in result.output


class TestClusterCommands:
    """Test cluster lifecycle commands."""

    def test_ls(self, cli_runner, orchestrator, active_cluster):
        orchestrator.list_clusters.return_value = [
            active_cluster,
            Cluster(name="db", nodes=1, status="building", flavor="container1-4G"),
        ]

        result = _run(cli_runner, "ls")

        assert result.exit_code == 0
        assert "ClusterName" in result.output
        assert "web" in result.output
        assert "building" in result.output

    def test_list_alias(self, cli_runner, orchestrator, active_cluster):
        orchestrator.list_clusters.return_value = [active_cluster]

        result = _run(cli_runner, "list")

        assert result.exit_code == 0
        assert "web" in result.output

    def test_create_with_wait(self, cli_runner, orchestrator, active_cluster):
        orchestrator.create.return_value = active_cluster

        result = _run(cli_runner, "create", "web", "--nodes", "2", "--wait")

        assert result.exit_code == 0
        orchestrator.create.assert_called_once_with("web", 2, autoscale=False, wait=True)
        assert "active" in result.output

    def test_create_segments_alias(self, cli_runner, orchestrator, active_cluster):
        orchestrator.create.return_value = active_cluster

        result = _run(cli_runner, "create", "web", "--segments", "3", "--autoscale")

        assert result.exit_code == 0
        orchestrator.create.assert_called_once_with("web", 3, autoscale=True, wait=False)

    def test_create_invalid_nodes(self, cli_runner, orchestrator):
        orchestrator.create.side_effect = InvalidArgumentError("nodes must be >= 1")

        result = _run(cli_runner, "create", "web", "--nodes", "0")

        assert result.exit_code == 1
        assert "Error: nodes must be >= 1" in result.output

    def test_get(self, cli_runner, orchestrator, active_cluster):
        orchestrator.get_cluster.return_value = active_cluster

        result = _run(cli_runner, "get", "web")

        assert result.exit_code == 0
        orchestrator.get_cluster.assert_called_once_with("web")
        assert "container1-4G" in result.output

    def test_inspect_alias(self, cli_runner, orchestrator, active_cluster):
        orchestrator.get_cluster.return_value = active_cluster

        result = _run(cli_runner, "inspect", "web")

        assert result.exit_code == 0
        orchestrator.get_cluster.assert_called_once_with("web")

    def test_get_has_no_wait_option(self, cli_runner, orchestrator):
        result = _run(cli_runner, "get", "web", "--wait")

        assert result.exit_code == 2
        orchestrator.get_cluster.assert_not_called()

    def test_get_empty_snapshot(self, cli_runner, orchestrator):
        orchestrator.get_cluster.return_value = None

        result = _run(cli_runner, "get", "web")

        assert result.exit_code == 1
        assert "was not found" in result.output

    def test_grow_requires_by(self, cli_runner, orchestrator):
        result = _run(cli_runner, "grow", "web")

        assert result.exit_code == 2
        orchestrator.grow.assert_not_called()

    def test_grow(self, cli_runner, orchestrator, active_cluster):
        orchestrator.grow.return_value = active_cluster

        result = _run(cli_runner, "grow", "web", "--by", "2")

        assert result.exit_code == 0
        orchestrator.grow.assert_called_once_with("web", 2)

    @pytest.mark.parametrize(("value", "enabled"), [("on", True), ("off", False)])
    def test_autoscale(self, cli_runner, orchestrator, active_cluster, value, enabled):
        orchestrator.set_autoscale.return_value = active_cluster

        result = _run(cli_runner, "autoscale", "web", value)

        assert result.exit_code == 0
        orchestrator.set_autoscale.assert_called_once_with("web", enabled)

    def test_rebuild(self, cli_runner, orchestrator, active_cluster):
        orchestrator.rebuild.return_value = active_cluster

        result = _run(cli_runner, "rebuild", "web", "--wait")

        assert result.exit_code == 0
        orchestrator.rebuild.assert_called_once_with("web", wait=True)

    def test_rm_removes_default_credentials_path(
        self, cli_runner, orchestrator, active_cluster, isolated_home
    ):
        orchestrator.delete.return_value = active_cluster

        result = _run(cli_runner, "rm", "web")

        assert result.exit_code == 0
        orchestrator.delete.assert_called_once_with(
            "web", credentials_path=isolated_home / "clusters" / "alice" / "web"
        )

    def test_delete_alias_with_path(self, cli_runner, orchestrator, active_cluster, tmp_path):
        orchestrator.delete.return_value = active_cluster

        result = _run(cli_runner, "delete", "web", "--path", str(tmp_path / "mine"))

        assert result.exit_code == 0
        orchestrator.delete.assert_called_once_with("web", credentials_path=tmp_path / "mine")

    def test_quotas(self, cli_runner, orchestrator):
        orchestrator.get_quotas.return_value = Quotas(max_clusters=3, max_nodes_per_cluster=None)

        result = _run(cli_runner, "quotas")

        assert result.exit_code == 0
        assert "MaxClusters" in result.output
        assert "3" in result.output


class TestCredentialCommands:
    """Test credentials and env."""

    def test_credentials(self, cli_runner, orchestrator, isolated_home):
        result = _run(cli_runner, "credentials", "web")

        target = isolated_home / "clusters" / "alice" / "web"
        assert result.exit_code == 0
        orchestrator.download_credentials.assert_called_once_with("web", target)
        assert f'# Credentials written to "{target}"' in result.output
        assert "carina env web" in result.output

    def test_creds_alias_silent(self, cli_runner, orchestrator, tmp_path):
        result = _run(cli_runner, "creds", "web", "--path", str(tmp_path), "--silent")

        assert result.exit_code == 0
        orchestrator.download_credentials.assert_called_once_with("web", Path(tmp_path))
        assert result.output == ""

    def test_env_with_valid_credentials(self, cli_runner, orchestrator, tmp_path):
        with patch("carina.core.bundle.verify") as verify:
            result = _run(cli_runner, "env", "web", "--path", str(tmp_path), "--shell", "bash")

        assert result.exit_code == 0
        verify.assert_called_once()
        orchestrator.download_credentials.assert_not_called()
        assert f'source "{tmp_path / "docker.env"}"' in result.output

    def test_env_redownloads_stale_credentials(self, cli_runner, orchestrator, tmp_path):
        with patch("carina.core.bundle.verify", side_effect=VerificationError("stale")):
            result = _run(cli_runner, "env", "web", "--path", str(tmp_path), "--shell", "fish")

        assert result.exit_code == 0
        orchestrator.download_credentials.assert_called_once_with("web", Path(tmp_path))
        assert "docker.fish" in result.output


class TestTokenCacheIntegration:
    """Test the cache lifecycle around a command."""

    def test_cache_flushed_and_update_notice(self, cli_runner, orchestrator, isolated_home):
        orchestrator.list_clusters.return_value = []

        with patch("carina.utils.version.latest_release", return_value="v99.0.0"):
            result = cli_runner.invoke(cli, [*CREDS, "ls"])

        assert result.exit_code == 0
        assert "A new version of the Carina client is out" in result.output
        assert (isolated_home / "cache.json").exists()

    def test_cache_flushed_on_error(self, cli_runner, orchestrator, isolated_home):
        orchestrator.list_clusters.side_effect = InvalidArgumentError("boom")

        with patch("carina.utils.version.latest_release", return_value="v1.0.0"):
            result = cli_runner.invoke(cli, [*CREDS, "ls"])

        assert result.exit_code == 1
        assert (isolated_home / "cache.json").exists()

    def test_no_cache_writes_nothing(self, cli_runner, orchestrator, isolated_home):
        orchestrator.list_clusters.return_value = []

        with patch("carina.utils.version.latest_release") as latest:
            result = _run(cli_runner, "ls")

        assert result.exit_code == 0
        latest.assert_not_called()
        assert not (isolated_home / "cache.json").exists()

    def test_cache_write_failure_reported(self, cli_runner, orchestrator, isolated_home):
        orchestrator.list_clusters.return_value = []

        failure = CacheError("Unable to write cache: read-only")
        with patch("carina.utils.version.latest_release", return_value="v1.0.0"):
            with patch.object(TokenCache, "flush", side_effect=failure):
                result = cli_runner.invoke(cli, [*CREDS, "ls"])

        assert result.exit_code == 1
        assert "Error: Unable to write cache: read-only" in result.output
        assert not isinstance(result.exception, CacheError)


def test_context_uses_fixed_timings(tmp_path, isolated_home):
    config = tmp_path / "config.yaml"
    config.write_text("http_timeout_seconds: 1\nwait:\n  poll_interval_seconds: 1\n")
    context = CarinaContext(config_path=str(config), username="alice", api_key="key-123")
    session = MagicMock()

    with patch("carina.auth.authenticate", return_value=session):
        with patch("carina.core.lifecycle.LifecycleOrchestrator") as orchestrator_cls:
            context.orchestrator

    assert context.adapter.timeout == DEFAULT_TIMEOUT
    orchestrator_cls.assert_called_once_with(context.adapter, session)
