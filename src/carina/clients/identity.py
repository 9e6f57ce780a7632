"""Identity service clients: Rackspace identity v2 and OpenStack Keystone v3."""

from typing import Any

import requests

from carina.clients.http import json_body, send
from carina.core.exceptions import AuthError, BackendError, CarinaError
from carina.utils.logging import get_logger

logger = get_logger(__name__)

RACKSPACE_IDENTITY_URL = "https://identity.api.rackspacecloud.com/v2.0/tokens"


def rackspace_authenticate(
    http: requests.Session,
    username: str,
    api_key: str,
    identity_url: str = RACKSPACE_IDENTITY_URL,
) -> str:
    """Exchange a username and API key for a Rackspace auth token.

    Args:
        http: Transport to use
        username: Rackspace username
        api_key: Rackspace API key
        identity_url: Token endpoint of the identity service

    Returns:
        Auth token

    Raises:
        AuthError: If the credentials are rejected or no token is returned
        BackendError: If the identity service cannot be reached
    """
    payload = {
        "auth": {
            "RAX-KSKEY:apiKeyCredentials": {
                "username": username,
                "apiKey": api_key,
            }
        }
    }
    logger.debug("rackspace_authenticating", username=username, identity_url=identity_url)
    response = send(http, "POST", identity_url, "authenticate with Rackspace identity", json=payload)
    body = json_body(response, "authenticate with Rackspace identity")

    try:
        token = body["access"]["token"]["id"]
    except (KeyError, TypeError) as e:
        raise AuthError("Rackspace identity response did not contain a token") from e

    logger.info("rackspace_authenticated", username=username)
    return token


def keystone_tokens_url(auth_url: str) -> str:
    """Build the Keystone v3 token URL from an OS_AUTH_URL style value."""
    base = auth_url.rstrip("/")
    if base.endswith("/v2.0"):
        base = base[: -len("/v2.0")]
    if not base.endswith("/v3"):
        base = f"{base}/v3"
    return f"{base}/auth/tokens"


def keystone_authenticate(
    http: requests.Session,
    auth_url: str,
    username: str,
    password: str,
    project: str = "",
    domain: str = "default",
) -> tuple[str, dict[str, Any]]:
    """Password authentication against Keystone v3.

    The token is scoped to the project when one is given; the domain applies
    to both the user and the project.

    Returns:
        Tuple of (token, token body)

    Raises:
        AuthError: If the credentials are rejected
        BackendError: If Keystone cannot be reached
    """
    domain_ref = {"name": domain or "default"}
    auth: dict[str, Any] = {
        "identity": {
            "methods": ["password"],
            "password": {
                "user": {"name": username, "password": password, "domain": domain_ref},
            },
        }
    }
    if project:
        auth["scope"] = {"project": {"name": project, "domain": domain_ref}}

    url = keystone_tokens_url(auth_url)
    logger.debug("keystone_authenticating", username=username, url=url, project=project)
    response = send(http, "POST", url, "authenticate with Keystone", json={"auth": auth})

    token = response.headers.get("X-Subject-Token")
    if not token:
        raise AuthError("Keystone response did not contain a token")

    body = json_body(response, "authenticate with Keystone")
    logger.info("keystone_authenticated", username=username)
    return token, body.get("token", {})


def keystone_validate(http: requests.Session, auth_url: str, token: str) -> dict[str, Any]:
    """Validate an existing Keystone token.

    Returns:
        The token body (including the service catalog)

    Raises:
        AuthError: If the token is rejected or Keystone cannot be reached
    """
    url = keystone_tokens_url(auth_url)
    headers = {"X-Auth-Token": token, "X-Subject-Token": token}
    try:
        response = send(http, "GET", url, "validate Keystone token", headers=headers)
    except AuthError:
        raise
    except CarinaError as e:
        raise AuthError(str(e)) from e

    if response.status_code != 200:
        raise AuthError(f"Unable to validate Keystone token: {response.status_code}")
    return json_body(response, "validate Keystone token").get("token", {})


def find_endpoint(
    token_body: dict[str, Any],
    service_type: str,
    region: str = "",
    interface: str = "public",
) -> str:
    """Look up a service endpoint in a Keystone v3 catalog.

    Args:
        token_body: Token body returned by Keystone
        service_type: Catalog service type (e.g. container-infra)
        region: Region to match (any region when empty)
        interface: Endpoint interface

    Returns:
        Endpoint URL without trailing slash

    Raises:
        BackendError: If the catalog has no matching endpoint
    """
    for service in token_body.get("catalog", []):
        if service.get("type") != service_type:
            continue
        for endpoint in service.get("endpoints", []):
            if endpoint.get("interface") != interface:
                continue
            if region and region not in (endpoint.get("region"), endpoint.get("region_id")):
                continue
            return endpoint["url"].rstrip("/")

    raise BackendError(
        f"No {interface} {service_type} endpoint found in the service catalog"
        + (f" for region {region}" if region else "")
    )
