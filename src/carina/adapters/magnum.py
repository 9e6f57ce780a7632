"""Magnum adapter implementing the ClusterProvider interface."""

from typing import Any

import requests

from carina.clients.http import DEFAULT_TIMEOUT, new_http_session
from carina.clients.identity import find_endpoint, keystone_authenticate, keystone_validate
from carina.clients.magnum_client import MagnumClient, required_field
from carina.core.bundle import render_shell_scripts
from carina.core.exceptions import (
    AuthError,
    BackendError,
    InvalidArgumentError,
    NotFoundError,
    UnsupportedOperationError,
)
from carina.core.models import CloudType, Cluster, ClusterStatus, Quotas
from carina.interfaces.cluster_provider import ClusterProvider
from carina.interfaces.cluster_types import Account, CredentialBundle, Session
from carina.utils.certificates import generate_client_csr
from carina.utils.logging import get_logger

logger = get_logger(__name__)

SERVICE_TYPE = "container-infra"
SWARM_COES = ("swarm", "swarm-mode")

# Magnum statuses that mean the cluster is still being provisioned
_BUILDING_STATUSES = {"CREATE_IN_PROGRESS", "UPDATE_IN_PROGRESS"}


def normalize_status(status: str | None) -> str:
    """Map a Magnum status onto the client's status vocabulary."""
    if not status:
        return ""
    if status.upper() in _BUILDING_STATUSES:
        return ClusterStatus.BUILDING.value
    return status.lower()


def _check_scope(account: Account, token_body: dict[str, Any]) -> None:
    """Reject a token scoped to another project or domain than the account asks for."""
    creds = account.credentials
    project = token_body.get("project") or {}
    if project.get("name", "") != creds.project:
        raise AuthError(f"Cached token is not scoped to project {creds.project!r}")

    domain = project.get("domain")
    if creds.project and domain:
        wanted = (creds.domain or "default").lower()
        if wanted not in {str(domain.get("name", "")).lower(), str(domain.get("id", "")).lower()}:
            raise AuthError(f"Cached token is not scoped to domain {wanted!r}")


class MagnumAdapter(ClusterProvider):
    """Adapter wrapping MagnumClient to implement ClusterProvider.

    Magnum has no autoscaling and no rebuild; those operations raise
    UnsupportedOperationError. Client certificates are signed by the cluster
    CA from a CSR generated locally, so the CA key is never part of the
    bundle.
    """

    cloud_type = CloudType.MAGNUM

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, template: str | None = None):
        """Initialize Magnum adapter.

        Args:
            timeout: Per-request timeout in seconds
            template: Cluster template name or uuid used by create; the first
                swarm template is used when None
        """
        self.timeout = timeout
        self.template = template

    def _client(self, session: Session) -> MagnumClient:
        return MagnumClient(session.endpoint, session.token, session.http)

    @staticmethod
    def _to_cluster(data: dict[str, Any]) -> Cluster:
        return Cluster(
            name=data.get("name") or "",
            nodes=data.get("node_count"),
            autoscale=False,
            status=normalize_status(data.get("status")),
            flavor=data.get("flavor_id") or "",
            id=data.get("uuid"),
            api_address=data.get("api_address"),
        )

    def _session(
        self, account: Account, token: str, token_body: dict[str, Any], http: requests.Session
    ) -> Session:
        endpoint = find_endpoint(token_body, SERVICE_TYPE, account.credentials.region)
        return Session(
            token=token,
            endpoint=endpoint,
            username=account.credentials.username,
            http=http,
            project_id=(token_body.get("project") or {}).get("id"),
            timeout=self.timeout,
        )

    def authenticate(self, account: Account) -> Session:
        creds = account.credentials
        http = new_http_session(self.timeout)
        token, body = keystone_authenticate(
            http, creds.endpoint, creds.username, creds.secret, creds.project, creds.domain
        )
        return self._session(account, token, body, http)

    def resume_session(self, account: Account, token: str) -> Session:
        http = new_http_session(self.timeout)
        try:
            body = keystone_validate(http, account.credentials.endpoint, token)
            _check_scope(account, body)
            return self._session(account, token, body, http)
        except Exception:
            http.close()
            raise

    def _require_cluster(self, session: Session, name: str) -> Cluster:
        cluster = self.get_cluster(session, name)
        if cluster is None:
            raise NotFoundError(f"Cluster not found: {name}")
        return cluster

    def _resolve_template(self, client: MagnumClient) -> str:
        if self.template:
            what = f"get cluster template {self.template}"
            return required_field(client.get_template(self.template), "uuid", what)

        for template in client.list_templates():
            if template.get("coe") in SWARM_COES:
                return required_field(template, "uuid", "list cluster templates")
        raise BackendError("No swarm cluster template is available; specify one with --template")

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
        if autoscale:
            raise UnsupportedOperationError("Autoscale is not supported by magnum")

        client = self._client(session)
        template_id = self._resolve_template(client)
        uuid = client.create_cluster(name, template_id, node_count)
        logger.info("magnum_cluster_created", cluster_name=name, uuid=uuid, nodes=node_count)

        data = client.get_cluster(uuid)
        if data is None:
            return Cluster(name=name, nodes=node_count, status=ClusterStatus.NEW.value, id=uuid)
        return self._to_cluster(data)

    def grow_cluster(self, session: Session, name: str, delta: int) -> Cluster:
        cluster = self._require_cluster(session, name)
        ident = cluster.id or name
        client = self._client(session)
        client.update_node_count(ident, cluster.nodes + delta)
        logger.info("magnum_cluster_grown", cluster_name=name, by=delta)
        return self._require_cluster(session, ident)

    def delete_cluster(self, session: Session, name: str) -> Cluster:
        cluster = self._require_cluster(session, name)
        self._client(session).delete_cluster(cluster.id or name)
        logger.info("magnum_cluster_deleted", cluster_name=name)
        return cluster

    def rebuild_cluster(self, session: Session, name: str) -> Cluster:
        raise UnsupportedOperationError("Rebuild is not supported by magnum")

    def set_autoscale(self, session: Session, name: str, enabled: bool) -> Cluster:
        raise UnsupportedOperationError("Autoscale is not supported by magnum")

    def get_quotas(self, session: Session) -> Quotas:
        if not session.project_id:
            raise BackendError("Quotas require a project scoped token; set --project")
        data = self._client(session).get_cluster_quota(session.project_id)
        return Quotas(max_clusters=data.get("hard_limit"))

    def download_credentials(self, session: Session, name: str) -> CredentialBundle:
        cluster = self._require_cluster(session, name)
        if not cluster.id or not cluster.api_address:
            raise BackendError(f"Cluster {name} has no Docker endpoint yet")

        client = self._client(session)
        ca = client.get_ca_certificate(cluster.id)
        key_pem, csr_pem = generate_client_csr(session.username)
        cert = client.sign_certificate(cluster.id, csr_pem.decode("utf-8"))

        docker_host = cluster.api_address
        if "://" not in docker_host:
            docker_host = f"tcp://{docker_host}"
        scripts = render_shell_scripts(docker_host)

        return CredentialBundle.from_files(
            {
                "ca.pem": ca.encode("utf-8"),
                "ca-key.pem": b"",
                "cert.pem": cert.encode("utf-8"),
                "key.pem": key_pem,
                **scripts,
            }
        )
