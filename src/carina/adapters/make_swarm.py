"""make-swarm adapter implementing the ClusterProvider interface."""

from typing import Any

from carina.clients.http import DEFAULT_TIMEOUT, new_http_session
from carina.clients.identity import RACKSPACE_IDENTITY_URL, rackspace_authenticate
from carina.clients.swarm_client import SwarmClient
from carina.core.exceptions import AuthError, InvalidArgumentError
from carina.core.models import CloudType, Cluster, Quotas
from carina.interfaces.cluster_provider import ClusterProvider
from carina.interfaces.cluster_types import Account, CredentialBundle, Session
from carina.utils.logging import get_logger

logger = get_logger(__name__)


class MakeSwarmAdapter(ClusterProvider):
    """Adapter wrapping SwarmClient to implement ClusterProvider.

    Authentication goes through the Rackspace identity service with the
    account's API key; the resulting token is sent to the cluster service.
    """

    cloud_type = CloudType.MAKE_SWARM

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        identity_url: str = RACKSPACE_IDENTITY_URL,
    ):
        """Initialize make-swarm adapter.

        Args:
            timeout: Per-request timeout in seconds
            identity_url: Rackspace identity token endpoint
        """
        self.timeout = timeout
        self.identity_url = identity_url

    def _client(self, session: Session) -> SwarmClient:
        return SwarmClient(session.endpoint, session.username, session.token, session.http)

    @staticmethod
    def _to_cluster(data: dict[str, Any]) -> Cluster:
        return Cluster(
            name=data.get("cluster_name", ""),
            nodes=data.get("nodes"),
            autoscale=bool(data.get("autoscale", False)),
            status=data.get("status") or "",
            flavor=data.get("flavor") or "",
        )

    def authenticate(self, account: Account) -> Session:
        creds = account.credentials
        http = new_http_session(self.timeout)
        token = rackspace_authenticate(http, creds.username, creds.secret, self.identity_url)
        return Session(
            token=token,
            endpoint=creds.endpoint,
            username=creds.username,
            http=http,
            timeout=self.timeout,
        )

    def resume_session(self, account: Account, token: str) -> Session:
        creds = account.credentials
        session = Session(
            token=token,
            endpoint=creds.endpoint,
            username=creds.username,
            http=new_http_session(self.timeout),
            timeout=self.timeout,
        )
        if not self._client(session).probe():
            session.http.close()
            raise AuthError(f"Unable to auth on /clusters/{creds.username}")
        return session

    def list_clusters(self, session: Session) -> list[Cluster]:
        return [self._to_cluster(item) for item in self._client(session).list_clusters()]

    def get_cluster(self, session: Session, name: str) -> Cluster | None:
        data = self._client(session).get_cluster(name)
        if data is None:
            return None
        return self._to_cluster(data)

    def create_cluster(
        self, session: Session, name: str, node_count: int, autoscale: bool = False
    ) -> Cluster:
        if node_count < 1:
            raise InvalidArgumentError("nodes must be >= 1")

        data = self._client(session).create_cluster(name, node_count, autoscale)
        logger.info("swarm_cluster_created", cluster_name=name, nodes=node_count)
        return self._to_cluster(data)

    def grow_cluster(self, session: Session, name: str, delta: int) -> Cluster:
        data = self._client(session).grow_cluster(name, delta)
        logger.info("swarm_cluster_grown", cluster_name=name, by=delta)
        return self._to_cluster(data)

    def delete_cluster(self, session: Session, name: str) -> Cluster:
        data = self._client(session).delete_cluster(name)
        logger.info("swarm_cluster_deleted", cluster_name=name)
        return self._to_cluster(data)

    def rebuild_cluster(self, session: Session, name: str) -> Cluster:
        data = self._client(session).rebuild_cluster(name)
        logger.info("swarm_cluster_rebuild_requested", cluster_name=name)
        return self._to_cluster(data)

    def set_autoscale(self, session: Session, name: str, enabled: bool) -> Cluster:
        data = self._client(session).set_autoscale(name, enabled)
        logger.info("swarm_cluster_autoscale_set", cluster_name=name, enabled=enabled)
        return self._to_cluster(data)

    def get_quotas(self, session: Session) -> Quotas:
        data = self._client(session).get_quotas()
        return Quotas(
            max_clusters=data.get("max_clusters"),
            max_nodes_per_cluster=data.get("max_nodes_per_cluster"),
        )

    def download_credentials(self, session: Session, name: str) -> CredentialBundle:
        files = self._client(session).download_credentials(name)
        return CredentialBundle.from_files(files)
