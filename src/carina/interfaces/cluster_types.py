"""Data types for the ClusterProvider interface."""

from dataclasses import dataclass, field

import requests

from carina.clients.http import DEFAULT_TIMEOUT, new_http_session
from carina.core.models import CloudType

CA_FILE = "ca.pem"
CA_KEY_FILE = "ca-key.pem"
CERT_FILE = "cert.pem"
KEY_FILE = "key.pem"
DOCKER_ENV_FILE = "docker.env"

DOCKER_HOST_VAR = "DOCKER_HOST"


@dataclass(frozen=True)
class UserCredentials:
    """Credential payload of an account.

    make-swarm accounts only use endpoint, username and secret (the API key).
    Magnum accounts use the password as secret plus project, domain and region.
    """

    endpoint: str
    username: str
    secret: str
    project: str = ""
    domain: str = ""
    region: str = ""


@dataclass(frozen=True)
class Account:
    """Resolved credentials tagged with the backend they are meant for."""

    cloud_type: CloudType
    credentials: UserCredentials

    @property
    def username(self) -> str:
        return self.credentials.username


@dataclass
class Session:
    """Authenticated handle used for backend calls.

    Attributes:
        token: Opaque auth token
        endpoint: Base URL of the cluster service
        username: Account username
        http: Transport used for requests
        project_id: Scoped project id (magnum only)
        timeout: Per-request timeout in seconds
    """

    token: str
    endpoint: str
    username: str
    http: requests.Session
    project_id: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    def renew_http(self) -> None:
        """Replace the transport with a fresh one using the same timeout."""
        self.http.close()
        self.http = new_http_session(self.timeout)


def parse_docker_host(docker_env: str) -> str | None:
    """Extract the DOCKER_HOST value from shell ``export KEY=value`` lines.

    Args:
        docker_env: Contents of a docker.env file

    Returns:
        The first DOCKER_HOST value found, or None
    """
    for line in docker_env.splitlines():
        if not line.startswith("export "):
            continue
        name, sep, value = line[len("export ") :].partition("=")
        if sep and name.strip() == DOCKER_HOST_VAR:
            return value.strip()
    return None


@dataclass
class CredentialBundle:
    """TLS material and shell environment for a cluster's Docker endpoint."""

    ca: bytes
    ca_key: bytes
    cert: bytes
    key: bytes
    docker_env: bytes
    extra_files: dict[str, bytes] = field(default_factory=dict)

    @property
    def docker_host(self) -> str | None:
        """Docker host URL parsed out of the environment script."""
        return parse_docker_host(self.docker_env.decode("utf-8", errors="replace"))

    def files(self) -> dict[str, bytes]:
        """All files of the bundle keyed by file name."""
        files = dict(self.extra_files)
        files.update(
            {
                CA_FILE: self.ca,
                CA_KEY_FILE: self.ca_key,
                CERT_FILE: self.cert,
                KEY_FILE: self.key,
                DOCKER_ENV_FILE: self.docker_env,
            }
        )
        return files

    @classmethod
    def from_files(cls, files: dict[str, bytes]) -> "CredentialBundle":
        """Build a bundle from a file name to content mapping.

        Missing well-known files become empty.
        """
        known = {CA_FILE, CA_KEY_FILE, CERT_FILE, KEY_FILE, DOCKER_ENV_FILE}
        return cls(
            ca=files.get(CA_FILE, b""),
            ca_key=files.get(CA_KEY_FILE, b""),
            cert=files.get(CERT_FILE, b""),
            key=files.get(KEY_FILE, b""),
            docker_env=files.get(DOCKER_ENV_FILE, b""),
            extra_files={name: data for name, data in files.items() if name not in known},
        )
