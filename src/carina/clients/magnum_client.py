"""REST client for the OpenStack Magnum container-infra service."""

from typing import Any
from urllib.parse import quote

import requests

from carina.clients.http import json_body, send
from carina.core.exceptions import BackendError
from carina.utils.logging import get_logger

logger = get_logger(__name__)

API_VERSION_HEADER = "OpenStack-API-Version"


def required_field(body: dict[str, Any], key: str, what: str) -> Any:
    """Return body[key], raising BackendError when the backend left it out."""
    value = body.get(key) if isinstance(body, dict) else None
    if not value:
        raise BackendError(f"Unable to {what}: response has no {key}")
    return value


class MagnumClient:
    """Thin wrapper over the Magnum v1 API."""

    def __init__(self, endpoint: str, token: str, http: requests.Session):
        """Initialize Magnum client.

        Args:
            endpoint: container-infra endpoint from the service catalog
            token: Keystone token sent as X-Auth-Token
            http: Transport to use
        """
        base = endpoint.rstrip("/")
        if base.endswith("/v1"):
            base = base[: -len("/v1")]
        self.endpoint = base
        self.token = token
        self.http = http

    def _url(self, *parts: str) -> str:
        return "/".join([self.endpoint, "v1", *(quote(part, safe="") for part in parts)])

    def _send(self, method: str, url: str, what: str, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers["X-Auth-Token"] = self.token
        headers[API_VERSION_HEADER] = "container-infra latest"
        return send(self.http, method, url, what, headers=headers, **kwargs)

    def list_clusters(self) -> list[dict[str, Any]]:
        response = self._send("GET", self._url("clusters"), "list clusters")
        return json_body(response, "list clusters").get("clusters", [])

    def get_cluster(self, ident: str) -> dict[str, Any] | None:
        response = self._send("GET", self._url("clusters", ident), f"get cluster {ident}")
        if not response.content:
            return None
        return json_body(response, f"get cluster {ident}")

    def create_cluster(self, name: str, template_id: str, node_count: int) -> str:
        """Request a new cluster.

        Returns:
            uuid of the cluster being created
        """
        what = f"create cluster {name}"
        payload = {"name": name, "cluster_template_id": template_id, "node_count": node_count}
        response = self._send("POST", self._url("clusters"), what, json=payload)
        return required_field(json_body(response, what), "uuid", what)

    def update_node_count(self, ident: str, node_count: int) -> None:
        patch = [{"op": "replace", "path": "/node_count", "value": node_count}]
        self._send("PATCH", self._url("clusters", ident), f"resize cluster {ident}", json=patch)

    def delete_cluster(self, ident: str) -> None:
        self._send("DELETE", self._url("clusters", ident), f"delete cluster {ident}")

    def list_templates(self) -> list[dict[str, Any]]:
        response = self._send("GET", self._url("clustertemplates"), "list cluster templates")
        return json_body(response, "list cluster templates").get("clustertemplates", [])

    def get_template(self, ident: str) -> dict[str, Any]:
        response = self._send(
            "GET", self._url("clustertemplates", ident), f"get cluster template {ident}"
        )
        return json_body(response, f"get cluster template {ident}")

    def get_ca_certificate(self, cluster_uuid: str) -> str:
        what = f"get CA certificate for cluster {cluster_uuid}"
        response = self._send("GET", self._url("certificates", cluster_uuid), what)
        return required_field(json_body(response, what), "pem", what)

    def sign_certificate(self, cluster_uuid: str, csr_pem: str) -> str:
        what = f"sign client certificate for cluster {cluster_uuid}"
        payload = {"cluster_uuid": cluster_uuid, "csr": csr_pem}
        response = self._send("POST", self._url("certificates"), what, json=payload)
        return required_field(json_body(response, what), "pem", what)

    def get_cluster_quota(self, project_id: str) -> dict[str, Any]:
        response = self._send("GET", self._url("quotas", project_id, "Cluster"), "get quotas")
        return json_body(response, "get quotas")
