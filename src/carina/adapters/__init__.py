"""Backend adapters implementing ClusterProvider."""

from carina.adapters.magnum import MagnumAdapter
from carina.adapters.make_swarm import MakeSwarmAdapter
from carina.clients.http import DEFAULT_TIMEOUT
from carina.core.exceptions import InvalidArgumentError
from carina.core.models import CloudType
from carina.interfaces.cluster_provider import ClusterProvider


def get_adapter(
    cloud_type: CloudType | str,
    timeout: float = DEFAULT_TIMEOUT,
    template: str | None = None,
) -> ClusterProvider:
    """Select the adapter for a backend.

    Args:
        cloud_type: Backend tag of the account
        timeout: Per-request timeout in seconds
        template: Magnum cluster template used by create (ignored by make-swarm)

    Returns:
        Adapter instance

    Raises:
        InvalidArgumentError: If the cloud type is unknown
    """
    try:
        cloud = CloudType(cloud_type)
    except ValueError as e:
        raise InvalidArgumentError(f"Unknown cloud type: {cloud_type}") from e

    if cloud is CloudType.MAKE_SWARM:
        return MakeSwarmAdapter(timeout=timeout)
    return MagnumAdapter(timeout=timeout, template=template)


__all__ = [
    "MagnumAdapter",
    "MakeSwarmAdapter",
    "get_adapter",
]
