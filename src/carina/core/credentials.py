"""Resolve user credentials from flags and environment variables.

Every field follows a fixed chain: the flag value, then the first non-empty
environment variable of an ordered list, then (for the domain only) a literal
default. The source that satisfied each field is logged at debug level.
"""

import os

from carina.clients.swarm_client import PUBLIC_ENDPOINT
from carina.core.exceptions import InvalidArgumentError, MissingCredentialError
from carina.core.models import CloudType
from carina.interfaces.cluster_types import Account, UserCredentials
from carina.utils.logging import get_logger

logger = get_logger(__name__)

CARINA_USERNAME_ENV_VAR = "CARINA_USERNAME"
RACKSPACE_USERNAME_ENV_VAR = "RS_USERNAME"
OPENSTACK_USERNAME_ENV_VAR = "OS_USERNAME"
CARINA_APIKEY_ENV_VAR = "CARINA_APIKEY"
RACKSPACE_APIKEY_ENV_VAR = "RS_API_KEY"
OPENSTACK_PASSWORD_ENV_VAR = "OS_PASSWORD"
OPENSTACK_AUTH_URL_ENV_VAR = "OS_AUTH_URL"
OPENSTACK_PROJECT_ENV_VAR = "OS_PROJECT_NAME"
OPENSTACK_DOMAIN_ENV_VAR = "OS_DOMAIN_NAME"
OPENSTACK_REGION_ENV_VAR = "OS_REGION_NAME"

DEFAULT_DOMAIN = "default"


def _lookup(
    field: str,
    flag: str,
    value: str | None,
    env_vars: tuple[str, ...],
    environ: dict[str, str],
) -> str | None:
    if value:
        logger.debug("credential_resolved", field=field, source=flag)
        return value
    for name in env_vars:
        env_value = environ.get(name)
        if env_value:
            logger.debug("credential_resolved", field=field, source=name)
            return env_value
    return None


def _require(
    field: str,
    flag: str,
    value: str | None,
    env_vars: tuple[str, ...],
    environ: dict[str, str],
) -> str:
    resolved = _lookup(field, flag, value, env_vars, environ)
    if resolved is None:
        raise MissingCredentialError(field, [flag, *env_vars])
    return resolved


def detect_cloud_type(
    api_key: str | None = None,
    password: str | None = None,
    environ: dict[str, str] | None = None,
) -> CloudType:
    """Pick the backend from the kind of secret available.

    An API key selects make-swarm; otherwise a password selects magnum.

    Raises:
        MissingCredentialError: If neither an API key nor a password is set
    """
    env = os.environ if environ is None else environ
    api_key_found = bool(
        api_key or env.get(CARINA_APIKEY_ENV_VAR) or env.get(RACKSPACE_APIKEY_ENV_VAR)
    )
    password_found = bool(password or env.get(OPENSTACK_PASSWORD_ENV_VAR))

    if api_key_found:
        return CloudType.MAKE_SWARM
    if password_found:
        return CloudType.MAGNUM
    raise MissingCredentialError(
        "API key or password",
        [
            "--api-key",
            CARINA_APIKEY_ENV_VAR,
            RACKSPACE_APIKEY_ENV_VAR,
            "--password",
            OPENSTACK_PASSWORD_ENV_VAR,
        ],
    )


def _resolve_make_swarm(
    username: str | None,
    api_key: str | None,
    endpoint: str | None,
    environ: dict[str, str],
) -> UserCredentials:
    if endpoint:
        logger.debug("credential_resolved", field="endpoint", source="--endpoint")
    else:
        endpoint = PUBLIC_ENDPOINT
        logger.debug("credential_resolved", field="endpoint", source="default", value=endpoint)

    resolved_username = _require(
        "UserName",
        "--username",
        username,
        (CARINA_USERNAME_ENV_VAR, RACKSPACE_USERNAME_ENV_VAR),
        environ,
    )
    resolved_api_key = _require(
        "API Key",
        "--api-key",
        api_key,
        (CARINA_APIKEY_ENV_VAR, RACKSPACE_APIKEY_ENV_VAR),
        environ,
    )
    return UserCredentials(endpoint=endpoint, username=resolved_username, secret=resolved_api_key)


def _resolve_magnum(
    username: str | None,
    password: str | None,
    project: str | None,
    domain: str | None,
    region: str | None,
    endpoint: str | None,
    environ: dict[str, str],
) -> UserCredentials:
    resolved_endpoint = _require(
        "Endpoint", "--endpoint", endpoint, (OPENSTACK_AUTH_URL_ENV_VAR,), environ
    )
    resolved_username = _require(
        "UserName", "--username", username, (OPENSTACK_USERNAME_ENV_VAR,), environ
    )
    resolved_password = _require(
        "Password", "--password", password, (OPENSTACK_PASSWORD_ENV_VAR,), environ
    )

    resolved_project = _lookup(
        "Project", "--project", project, (OPENSTACK_PROJECT_ENV_VAR,), environ
    )
    if resolved_project is None:
        logger.debug(
            "credential_not_specified",
            field="Project",
            sources=["--project", OPENSTACK_PROJECT_ENV_VAR],
        )

    resolved_domain = _lookup("Domain", "--domain", domain, (OPENSTACK_DOMAIN_ENV_VAR,), environ)
    if resolved_domain is None:
        resolved_domain = DEFAULT_DOMAIN
        logger.debug("credential_resolved", field="Domain", source="default", value=DEFAULT_DOMAIN)

    resolved_region = _lookup("Region", "--region", region, (OPENSTACK_REGION_ENV_VAR,), environ)
    if resolved_region is None:
        logger.debug(
            "credential_not_specified",
            field="Region",
            sources=["--region", OPENSTACK_REGION_ENV_VAR],
        )

    return UserCredentials(
        endpoint=resolved_endpoint,
        username=resolved_username,
        secret=resolved_password,
        project=resolved_project or "",
        domain=resolved_domain,
        region=resolved_region or "",
    )


def resolve_account(
    cloud_type: CloudType | str | None = None,
    username: str | None = None,
    api_key: str | None = None,
    password: str | None = None,
    project: str | None = None,
    domain: str | None = None,
    region: str | None = None,
    endpoint: str | None = None,
    environ: dict[str, str] | None = None,
) -> Account:
    """Build an Account from flags and environment variables.

    Args:
        cloud_type: Explicit backend, or None/empty to detect it
        username: --username value
        api_key: --api-key value
        password: --password value
        project: --project value
        domain: --domain value
        region: --region value
        endpoint: --endpoint value
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Fully populated Account

    Raises:
        MissingCredentialError: Naming the first unsatisfied field and where
            it could have come from
        InvalidArgumentError: If cloud_type is not a known backend
    """
    env = dict(os.environ) if environ is None else environ

    # Some secret is always required, whatever the backend
    detected = detect_cloud_type(api_key, password, env)

    if cloud_type:
        try:
            cloud = CloudType(cloud_type)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown cloud type: {cloud_type}") from e
    else:
        logger.debug(
            "cloud_type_detecting",
            hint="Use --cloud=[magnum|make-swarm] to skip detection.",
        )
        cloud = detected
        logger.debug("cloud_type_detected", cloud=cloud.value)

    if cloud is CloudType.MAKE_SWARM:
        credentials = _resolve_make_swarm(username, api_key, endpoint, env)
    else:
        credentials = _resolve_magnum(username, password, project, domain, region, endpoint, env)

    return Account(cloud_type=cloud, credentials=credentials)
