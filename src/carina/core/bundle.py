"""Credential bundle materialization and verification.

A bundle is written to ``<credentials-root>/clusters/<username>/<cluster-name>/``
and holds the CA certificate and key, the client certificate and key and the
shell scripts that point a Docker client at the cluster. ``verify`` reads the
files back and performs a real TLS handshake with the Docker endpoint so that
stale or broken credentials on disk are detected before they are used.
"""

import os
import shutil
import socket
import ssl
from pathlib import Path
from urllib.parse import urlparse

from carina.clients.http import DEFAULT_TIMEOUT
from carina.core.config import CLUSTERS_DIRNAME
from carina.core.exceptions import CredentialsIOError, VerificationError
from carina.interfaces.cluster_types import (
    CA_FILE,
    CA_KEY_FILE,
    CERT_FILE,
    DOCKER_ENV_FILE,
    KEY_FILE,
    CredentialBundle,
    parse_docker_host,
)
from carina.utils.logging import get_logger

logger = get_logger(__name__)

SHELL_FILES = {
    "bash": DOCKER_ENV_FILE,
    "fish": "docker.fish",
    "powershell": "docker.ps1",
    "cmd": "docker.cmd",
}

FILE_MODE = 0o600


def cluster_credentials_path(base_dir: str | Path, username: str, cluster_name: str) -> Path:
    """Default location of a cluster's credential bundle."""
    return Path(base_dir) / CLUSTERS_DIRNAME / username / cluster_name


def materialize(bundle: CredentialBundle, target_dir: str | Path) -> Path:
    """Write every file of a bundle with owner-only permissions.

    Existing files are overwritten without prompting.

    Args:
        bundle: Downloaded credentials
        target_dir: Directory to write to (created with parents if absent)

    Returns:
        The target directory

    Raises:
        CredentialsIOError: If the directory or a file cannot be written
    """
    path = Path(target_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
        for name, data in bundle.files().items():
            file_path = path / name
            fd = os.open(file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(file_path, FILE_MODE)
    except OSError as e:
        raise CredentialsIOError(f"Unable to write credentials to {path}: {e}") from e

    logger.info("credentials_written", path=str(path), files=len(bundle.files()))
    return path


def _read(path: Path, name: str) -> bytes:
    try:
        return (path / name).read_bytes()
    except OSError as e:
        raise VerificationError(f"Unable to read {path / name}: {e}") from e


def _tls_context(path: Path, ca: bytes) -> ssl.SSLContext:
    # Chain is checked against the bundle CA only; endpoints are addressed by IP.
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_REQUIRED
    try:
        context.load_verify_locations(cadata=ca.decode("utf-8"))
        context.load_cert_chain(certfile=str(path / CERT_FILE), keyfile=str(path / KEY_FILE))
    except (OSError, ValueError) as e:
        raise VerificationError(f"Invalid TLS material in {path}: {e}") from e
    return context


def verify(target_dir: str | Path, timeout: float = DEFAULT_TIMEOUT) -> None:
    """Check that the credentials on disk can reach the cluster's Docker endpoint.

    Args:
        target_dir: Directory holding a materialized bundle
        timeout: Connect and handshake timeout in seconds

    Raises:
        VerificationError: If a file is unreadable, DOCKER_HOST is missing or
            malformed, or the TLS handshake fails
    """
    path = Path(target_dir)
    ca = _read(path, CA_FILE)
    _read(path, CA_KEY_FILE)
    docker_env = _read(path, DOCKER_ENV_FILE)
    _read(path, CERT_FILE)
    _read(path, KEY_FILE)

    docker_host = parse_docker_host(docker_env.decode("utf-8", errors="replace"))
    if not docker_host:
        raise VerificationError(f"DOCKER_HOST not found in {path / DOCKER_ENV_FILE}")

    try:
        parsed = urlparse(docker_host)
        host, port = parsed.hostname, parsed.port
    except ValueError as e:
        raise VerificationError(f"Malformed DOCKER_HOST {docker_host!r}: {e}") from e
    if not host or port is None:
        raise VerificationError(f"Malformed DOCKER_HOST {docker_host!r}")

    context = _tls_context(path, ca)
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host):
                pass
    except OSError as e:
        logger.debug("credentials_verification_failed", path=str(path), host=host, error=str(e))
        raise VerificationError(f"Unable to connect to {host}:{port} with {path}: {e}") from e

    logger.debug("credentials_verified", path=str(path), host=host, port=port)


def remove_bundle(target_dir: str | Path) -> bool:
    """Remove a cluster's credential directory.

    Args:
        target_dir: Directory holding a materialized bundle

    Returns:
        True if the directory was removed, False if it did not exist

    Raises:
        CredentialsIOError: If the path is unsafe to delete, does not look
            like a credential bundle, or cannot be removed
    """
    path = Path(os.path.normpath(str(target_dir)))
    if str(path) in ("", ".") or path == Path(path.anchor):
        raise CredentialsIOError(
            "Path to cluster is empty, the current directory, or a root path, not deleting"
        )

    if not path.exists():
        return False

    if not (path / CA_FILE).exists():
        raise CredentialsIOError(
            f"Path to cluster credentials exists but not the {CA_FILE}, not deleting. "
            "Remove by hand."
        )

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise CredentialsIOError(f"Unable to remove credentials at {path}: {e}") from e

    logger.info("credentials_removed", path=str(path))
    return True


def render_shell_scripts(docker_host: str) -> dict[str, bytes]:
    """Environment scripts pointing a Docker client at docker_host.

    Each script locates its own directory for DOCKER_CERT_PATH so the bundle
    can be moved after download.
    """
    scripts = {
        DOCKER_ENV_FILE: (
            f"export DOCKER_HOST={docker_host}\n"
            "export DOCKER_TLS_VERIFY=1\n"
            'export DOCKER_CERT_PATH=$(cd "$(dirname "${BASH_SOURCE[0]:-$0}")" && pwd)\n'
        ),
        "docker.fish": (
            f"set -x DOCKER_HOST {docker_host}\n"
            "set -x DOCKER_TLS_VERIFY 1\n"
            "set -x DOCKER_CERT_PATH (dirname (status -f))\n"
        ),
        "docker.ps1": (
            f'$env:DOCKER_HOST="{docker_host}"\n'
            '$env:DOCKER_TLS_VERIFY="1"\n'
            "$env:DOCKER_CERT_PATH=$PSScriptRoot\n"
        ),
        "docker.cmd": (
            f"set DOCKER_HOST={docker_host}\r\n"
            "set DOCKER_TLS_VERIFY=1\r\n"
            "set DOCKER_CERT_PATH=%~dp0\r\n"
        ),
    }
    return {name: text.encode("utf-8") for name, text in scripts.items()}


def detect_shell(shell: str | None = None, environ: dict[str, str] | None = None) -> str:
    """Pick the shell flavour for env scripts.

    Args:
        shell: Explicit shell name (bash, fish, powershell, cmd)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        One of the keys of SHELL_FILES
    """
    if shell:
        name = shell.lower()
    else:
        env = os.environ if environ is None else environ
        login_shell = env.get("SHELL", "")
        if login_shell:
            name = Path(login_shell).name.lower()
        elif os.name == "nt":
            name = "powershell"
        else:
            name = "bash"

    if name in ("pwsh", "powershell"):
        return "powershell"
    if name in SHELL_FILES:
        return name
    return "bash"


def credential_file_path(target_dir: str | Path, shell: str | None = None) -> Path:
    """Path of the env script matching the shell."""
    return Path(target_dir) / SHELL_FILES[detect_shell(shell)]


def source_help(env_path: str | Path, cluster_name: str, shell: str | None = None) -> str:
    """Text printed by ``carina env`` for the user's shell to evaluate."""
    flavour = detect_shell(shell)
    if flavour == "fish":
        return (
            f'source "{env_path}"\n'
            "# Run the command below to get environment variables set for your Docker client:\n"
            f"# eval (carina env {cluster_name} --shell fish)"
        )
    if flavour == "powershell":
        return (
            f'. "{env_path}"\n'
            "# Run the command below to get environment variables set for your Docker client:\n"
            f"# carina env {cluster_name} --shell powershell | iex"
        )
    if flavour == "cmd":
        return (
            f'CALL "{env_path}"\n'
            "REM Run the command below to get environment variables set for your Docker client:\n"
            f"REM FOR /f \"tokens=*\" %i IN ('carina env {cluster_name} --shell cmd') DO %i"
        )
    return (
        f'source "{env_path}"\n'
        "# Run the command below to get environment variables set for your Docker client:\n"
        f"# eval $(carina env {cluster_name})"
    )


def next_steps(cluster_name: str) -> str:
    """Hint printed after credentials are downloaded."""
    return (
        "# To see how to connect to your cluster, run: "
        f"carina env {cluster_name}\n"
    )
