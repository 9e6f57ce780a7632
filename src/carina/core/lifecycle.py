"""Cluster lifecycle operations and the wait-until-stable poll loop."""

from __future__ import annotations

import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from carina.core import bundle
from carina.core.models import Cluster, Quotas
from carina.utils.logging import get_logger

if TYPE_CHECKING:
    from carina.interfaces.cluster_provider import ClusterProvider
    from carina.interfaces.cluster_types import CredentialBundle, Session

logger = get_logger(__name__)

STARTUP_DELAY_SECONDS = 40.0
POLL_INTERVAL_SECONDS = 10.0


class LifecycleOrchestrator:
    """Issue lifecycle operations through an adapter.

    ``create`` and ``rebuild`` can block until the cluster leaves the
    transient statuses (new, building, rebuilding-swarm). Waiting sleeps a
    fixed grace period once, then polls at a fixed interval with a fresh
    transport on every poll. There is no overall timeout and no backoff.
    """

    def __init__(
        self,
        adapter: ClusterProvider,
        session: Session,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize orchestrator.

        Args:
            adapter: Backend adapter
            session: Authenticated session
            sleep: Sleep function (injectable for tests)
        """
        self.adapter = adapter
        self.session = session
        self._sleep = sleep

    def list_clusters(self) -> list[Cluster]:
        return self.adapter.list_clusters(self.session)

    def get_cluster(self, name: str) -> Cluster | None:
        return self.adapter.get_cluster(self.session, name)

    def create(self, name: str, nodes: int, autoscale: bool = False, wait: bool = False) -> Cluster:
        cluster = self.adapter.create_cluster(self.session, name, nodes, autoscale)
        logger.info("cluster_created", cluster_name=name, status=cluster.status)
        return self._wait(name, cluster) if wait else cluster

    def rebuild(self, name: str, wait: bool = False) -> Cluster:
        cluster = self.adapter.rebuild_cluster(self.session, name)
        logger.info("cluster_rebuild_started", cluster_name=name, status=cluster.status)
        return self._wait(name, cluster) if wait else cluster

    def grow(self, name: str, delta: int) -> Cluster:
        return self.adapter.grow_cluster(self.session, name, delta)

    def set_autoscale(self, name: str, enabled: bool) -> Cluster:
        return self.adapter.set_autoscale(self.session, name, enabled)

    def delete(self, name: str, credentials_path: str | Path | None = None) -> Cluster:
        """Delete a cluster, then its credentials on disk.

        Local credentials are only touched once the backend accepted the
        delete.

        Args:
            name: Cluster name
            credentials_path: Directory of the cluster's credential bundle

        Returns:
            Last snapshot of the cluster
        """
        cluster = self.adapter.delete_cluster(self.session, name)
        logger.info("cluster_deleted", cluster_name=name)
        if credentials_path is not None:
            bundle.remove_bundle(credentials_path)
        return cluster

    def get_quotas(self) -> Quotas:
        return self.adapter.get_quotas(self.session)

    def download_credentials(self, name: str, target_dir: str | Path) -> CredentialBundle:
        """Download a cluster's credentials and write them to target_dir."""
        credentials = self.adapter.download_credentials(self.session, name)
        bundle.materialize(credentials, target_dir)
        return credentials

    def _wait(self, name: str, cluster: Cluster) -> Cluster:
        if not cluster.is_transient:
            return cluster

        logger.info("waiting_for_cluster", cluster_name=name, delay=STARTUP_DELAY_SECONDS)
        self._sleep(STARTUP_DELAY_SECONDS)

        current: Cluster | None = cluster
        # A None snapshot without an error counts as still transient.
        while current is None or current.is_transient:
            self._sleep(POLL_INTERVAL_SECONDS)
            self.session.renew_http()
            current = self.adapter.get_cluster(self.session, name)
            logger.debug(
                "cluster_polled",
                cluster_name=name,
                status=None if current is None else current.status,
            )

        logger.info("cluster_stable", cluster_name=name, status=current.status)
        return current
