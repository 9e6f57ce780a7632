"""HTTP transport shared by the backend clients."""

from typing import Any

import requests

from carina import __version__
from carina.core.exceptions import AuthError, BackendError, NotFoundError
from carina.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0
USER_AGENT = f"getcarina/carina {__version__}"


class TimeoutSession(requests.Session):
    """requests session that applies a fixed timeout to every request."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        super().__init__()
        self.timeout = timeout
        self.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:  # type: ignore[override]
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


def new_http_session(timeout: float = DEFAULT_TIMEOUT) -> requests.Session:
    """Create a fresh transport with the given per-request timeout."""
    return TimeoutSession(timeout=timeout)


def _error_detail(response: requests.Response) -> str:
    text = response.text.strip()
    return text[:500] if text else response.reason or ""


def check_response(response: requests.Response, what: str) -> requests.Response:
    """Map an unsuccessful response onto the client error taxonomy.

    Args:
        response: Response to check
        what: Short description of the call, used in error messages

    Returns:
        The response, when its status is 2xx

    Raises:
        AuthError: On 401 or 403
        NotFoundError: On 404
        BackendError: On any other non-2xx status
    """
    status = response.status_code
    if 200 <= status < 300:
        return response

    detail = _error_detail(response)
    logger.debug("http_request_failed", what=what, status_code=status, detail=detail)

    if status in (401, 403):
        raise AuthError(f"Unable to {what}: not authorized ({status}) {detail}".rstrip())
    if status == 404:
        raise NotFoundError(f"Unable to {what}: not found")
    raise BackendError(f"Unable to {what}: {status} {detail}".rstrip(), status_code=status)


def send(
    http: requests.Session,
    method: str,
    url: str,
    what: str,
    **kwargs: Any,
) -> requests.Response:
    """Send a request and check the response.

    Args:
        http: Transport to use
        method: HTTP method
        url: Absolute URL
        what: Short description of the call, used in error messages
        **kwargs: Passed through to requests

    Returns:
        Successful response

    Raises:
        BackendError: If the request could not be sent or the response failed
    """
    try:
        response = http.request(method, url, **kwargs)
    except requests.RequestException as e:
        logger.debug("http_transport_failed", what=what, url=url, error=str(e))
        raise BackendError(f"Unable to {what}: {e}") from e
    return check_response(response, what)


def json_body(response: requests.Response, what: str) -> Any:
    """Decode a JSON response body.

    Raises:
        BackendError: If the body is not valid JSON
    """
    try:
        return response.json()
    except ValueError as e:
        raise BackendError(f"Unable to {what}: invalid JSON response") from e
