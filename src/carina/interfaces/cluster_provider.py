"""Cluster provider interface implemented by each backend adapter."""

from abc import ABC, abstractmethod

from carina.core.models import CloudType, Cluster, Quotas
from carina.interfaces.cluster_types import Account, CredentialBundle, Session


class ClusterProvider(ABC):
    """Abstract interface for cluster lifecycle operations on one backend.

    Implementations translate each operation into a single backend call (or
    the minimum needed to answer it) and never poll or retry. Errors are
    raised from the carina.core.exceptions taxonomy and must not be swallowed.
    """

    cloud_type: CloudType

    @abstractmethod
    def authenticate(self, account: Account) -> Session:
        """Exchange credentials for a fresh session.

        Args:
            account: Resolved account for this backend

        Returns:
            Session whose transport has the fixed request timeout

        Raises:
            AuthError: If the credentials are rejected
        """

    @abstractmethod
    def resume_session(self, account: Account, token: str) -> Session:
        """Rebuild a session from a cached token and validate it.

        Validation is a lightweight authenticated probe; the token is only
        accepted when the probe succeeds.

        Raises:
            AuthError: If the probe fails (non-200 answer or network failure)
        """

    @abstractmethod
    def list_clusters(self, session: Session) -> list[Cluster]:
        """List all clusters of the account."""

    @abstractmethod
    def get_cluster(self, session: Session, name: str) -> Cluster | None:
        """Get a cluster by name.

        Returns:
            Cluster snapshot, or None when the backend answered without a body

        Raises:
            NotFoundError: If no cluster has this name
        """

    @abstractmethod
    def create_cluster(
        self, session: Session, name: str, node_count: int, autoscale: bool = False
    ) -> Cluster:
        """Create a cluster.

        Raises:
            InvalidArgumentError: If node_count < 1 (checked before any request)
        """

    @abstractmethod
    def grow_cluster(self, session: Session, name: str, delta: int) -> Cluster:
        """Add delta nodes to a cluster."""

    @abstractmethod
    def delete_cluster(self, session: Session, name: str) -> Cluster:
        """Delete a cluster and return its last snapshot."""

    @abstractmethod
    def rebuild_cluster(self, session: Session, name: str) -> Cluster:
        """Rebuild a cluster from scratch."""

    @abstractmethod
    def set_autoscale(self, session: Session, name: str, enabled: bool) -> Cluster:
        """Turn autoscaling on or off."""

    @abstractmethod
    def get_quotas(self, session: Session) -> Quotas:
        """Get the account's cluster quotas."""

    @abstractmethod
    def download_credentials(self, session: Session, name: str) -> CredentialBundle:
        """Fetch the TLS credential bundle of a cluster."""
