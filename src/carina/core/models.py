"""Core data models for the Carina client."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CloudType(str, Enum):
    """Backend selector."""

    MAKE_SWARM = "make-swarm"
    MAGNUM = "magnum"


class ClusterStatus(str, Enum):
    """Cluster statuses that mean an asynchronous operation is still running.

    Any status string not listed here (active, error, unknown future values)
    is treated as stable.
    """

    NEW = "new"
    BUILDING = "building"
    REBUILDING_SWARM = "rebuilding-swarm"


TRANSIENT_STATUSES = frozenset(status.value for status in ClusterStatus)


class Cluster(BaseModel):
    """Read-only snapshot of a cluster as returned by a backend."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Cluster name, unique per account and backend")
    nodes: int = Field(0, description="Number of nodes (segments)")
    autoscale: bool = False
    status: str = ""
    flavor: str = ""
    id: str | None = Field(None, description="Backend identifier, when it differs from the name")
    api_address: str | None = Field(None, description="Docker API address, when known")

    @field_validator("nodes", mode="before")
    @classmethod
    def _coerce_nodes(cls, value: Any) -> int:
        # make-swarm reports node counts as either numbers or numeric strings
        if value is None or value == "":
            return 0
        return int(value)

    @property
    def is_transient(self) -> bool:
        """True while the cluster is new, building or rebuilding its swarm."""
        return self.status in TRANSIENT_STATUSES


class Quotas(BaseModel):
    """Account limits reported by a backend."""

    max_clusters: int | None = None
    max_nodes_per_cluster: int | None = None
