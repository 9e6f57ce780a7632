"""Interface definitions shared by the backend adapters."""

from carina.interfaces.cluster_provider import ClusterProvider
from carina.interfaces.cluster_types import (
    Account,
    CredentialBundle,
    Session,
    UserCredentials,
)

__all__ = [
    "Account",
    "ClusterProvider",
    "CredentialBundle",
    "Session",
    "UserCredentials",
]
