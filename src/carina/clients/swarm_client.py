"""REST client for the make-swarm cluster service."""

import io
import posixpath
import zipfile
from typing import Any
from urllib.parse import quote

import requests

from carina.clients.http import json_body, send
from carina.core.exceptions import BackendError
from carina.utils.logging import get_logger

logger = get_logger(__name__)

PUBLIC_ENDPOINT = "https://app.getcarina.com"


class SwarmClient:
    """Thin wrapper over the make-swarm API.

    Every call is a single request; responses are returned as decoded JSON.
    """

    def __init__(self, endpoint: str, username: str, token: str, http: requests.Session):
        """Initialize make-swarm client.

        Args:
            endpoint: Base URL of the service
            username: Account username (clusters live under /clusters/<username>)
            token: Auth token sent as X-Auth-Token
            http: Transport to use
        """
        self.endpoint = endpoint.rstrip("/")
        self.username = username
        self.token = token
        self.http = http

    def _url(self, *parts: str) -> str:
        return "/".join([self.endpoint, *(quote(part, safe="") for part in parts)])

    def _clusters_url(self, *parts: str) -> str:
        return self._url("clusters", self.username, *parts)

    def _send(self, method: str, url: str, what: str, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["X-Auth-Token"] = self.token
        return send(self.http, method, url, what, headers=headers, **kwargs)

    def probe(self) -> bool:
        """Cheap authenticated request used to validate a cached token.

        Returns:
            True only when the service answers 200
        """
        try:
            response = self.http.head(
                self._clusters_url(), headers={"X-Auth-Token": self.token}
            )
        except requests.RequestException as e:
            logger.debug("swarm_probe_failed", username=self.username, error=str(e))
            return False
        return response.status_code == 200

    def list_clusters(self) -> list[dict[str, Any]]:
        response = self._send("GET", self._clusters_url(), "list clusters")
        body = json_body(response, "list clusters")
        if isinstance(body, dict):
            body = body.get("clusters", [])
        return body or []

    def get_cluster(self, name: str) -> dict[str, Any] | None:
        response = self._send("GET", self._clusters_url(name), f"get cluster {name}")
        if not response.content:
            return None
        return json_body(response, f"get cluster {name}")

    def create_cluster(self, name: str, nodes: int, autoscale: bool) -> dict[str, Any]:
        payload = {"cluster_name": name, "nodes": nodes, "autoscale": autoscale}
        response = self._send("POST", self._clusters_url(), f"create cluster {name}", json=payload)
        return json_body(response, f"create cluster {name}")

    def grow_cluster(self, name: str, nodes: int) -> dict[str, Any]:
        response = self._send(
            "POST", self._clusters_url(name, "grow"), f"grow cluster {name}", json={"nodes": nodes}
        )
        return json_body(response, f"grow cluster {name}")

    def rebuild_cluster(self, name: str) -> dict[str, Any]:
        response = self._send("POST", self._clusters_url(name, "rebuild"), f"rebuild cluster {name}")
        return json_body(response, f"rebuild cluster {name}")

    def set_autoscale(self, name: str, enabled: bool) -> dict[str, Any]:
        value = "true" if enabled else "false"
        response = self._send(
            "PUT",
            self._clusters_url(name, "autoscale", value),
            f"set autoscale on cluster {name}",
        )
        return json_body(response, f"set autoscale on cluster {name}")

    def delete_cluster(self, name: str) -> dict[str, Any]:
        response = self._send("DELETE", self._clusters_url(name), f"delete cluster {name}")
        return json_body(response, f"delete cluster {name}")

    def get_quotas(self) -> dict[str, Any]:
        response = self._send("GET", self._url("quotas", self.username), "get quotas")
        return json_body(response, "get quotas")

    def download_credentials(self, name: str) -> dict[str, bytes]:
        """Fetch the credentials archive of a cluster.

        Args:
            name: Cluster name

        Returns:
            Mapping of file name to content for every file in the archive

        Raises:
            BackendError: If the archive cannot be fetched or read
        """
        what = f"download credentials for cluster {name}"
        response = self._send("GET", self._clusters_url(name, "zip"), what)
        zip_url = json_body(response, what).get("zip_url")
        if not zip_url:
            raise BackendError(f"Unable to {what}: no archive location returned")

        archive = send(self.http, "GET", zip_url, what)
        try:
            with zipfile.ZipFile(io.BytesIO(archive.content)) as zf:
                files = {
                    posixpath.basename(info.filename): zf.read(info)
                    for info in zf.infolist()
                    if not info.is_dir()
                }
        except zipfile.BadZipFile as e:
            raise BackendError(f"Unable to {what}: invalid credentials archive") from e

        logger.debug("swarm_credentials_downloaded", cluster_name=name, files=sorted(files))
        return files
